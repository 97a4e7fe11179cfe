import sys
from typing import Callable, Optional

from PySide6.QtWidgets import QApplication, QMainWindow, QMessageBox
from PySide6.QtCore import QTimer

from config import AppConfig, load_config
from exceptions import ConfigurationError
from logger import get_logger, set_session_context, set_station_context
from scan_controller import ScanController
from scan_session import ScanResult, StatusKind
from scan_widget import ScanWidget
from session_store import JsonKeyValueStore, SessionStore
from sound_cues import SoundCuePlayer

logger = get_logger(__name__)

FLASH_COLORS = {
    StatusKind.ADDED: "green",
    StatusKind.DUPLICATE: "red",
}


class MainWindow(QMainWindow):
    """
    The station window: wires the scan controller to the scanning screen.

    Attributes:
        config (AppConfig): Station settings.
        controller (ScanController): Owns the session and its persistence.
        scan_widget (ScanWidget): The scanning screen.
    """

    def __init__(self, config: AppConfig, clipboard_sink: Optional[Callable[[str], None]] = None):
        """
        Args:
            config: Station settings; its state directory must already exist
            clipboard_sink: Override for the clipboard (tests)
        """
        super().__init__()
        self.setWindowTitle(f"Serial Guard - {config.station_name}")
        self.resize(720, 860)

        self.config = config
        set_station_context(config.station_name)
        set_session_context(config.storage_key)
        logger.info("Initializing MainWindow")

        store = SessionStore(
            JsonKeyValueStore(config.state_dir),
            key=config.storage_key,
            station=config.station_name,
        )
        self.cue_player = SoundCuePlayer(
            config.error_sound,
            config.success_sound,
            error_volume=config.error_volume,
            success_volume=config.success_volume,
            enabled=config.sounds_enabled,
            parent=self,
        )
        self.controller = ScanController(
            store,
            cue_player=self.cue_player,
            clipboard_sink=clipboard_sink,
            async_writes=config.async_writes,
            parent=self,
        )

        self.scan_widget = ScanWidget()
        self.setCentralWidget(self.scan_widget)

        self.scan_widget.serial_submitted.connect(self.controller.submit)
        self.scan_widget.undo_requested.connect(self.controller.undo)
        self.scan_widget.reset_requested.connect(self.controller.reset)
        self.scan_widget.copy_requested.connect(self.controller.copy_serials)
        self.controller.status_changed.connect(self.on_status)
        self.controller.session_changed.connect(self.refresh_view)

        self.refresh_view()
        if not self.controller.session.is_empty:
            session = self.controller.session
            self.scan_widget.show_status(ScanResult(
                StatusKind.INFO,
                f"Sesión restaurada: {session.unique_count} serial(es), "
                f"{session.duplicate_count} duplicado(s)",
            ))
        self.scan_widget.set_focus_to_input()

    def refresh_view(self):
        """Redraw the scanning screen from the controller's session."""
        self.scan_widget.refresh(
            self.controller.session,
            can_undo=self.controller.can_undo,
            can_reset=self.controller.can_reset,
            can_copy=self.controller.can_copy,
        )

    def on_status(self, result: ScanResult):
        self.scan_widget.show_status(result)
        color = FLASH_COLORS.get(result.kind)
        if color:
            self.flash_border(color)

    def flash_border(self, color: str, duration_ms: int = 500):
        """
        Flash the border around the serial list (green for a new serial,
        red for a duplicate).
        """
        self.scan_widget.frame.setStyleSheet(f"QFrame#SerialsFrame {{ border: 2px solid {color}; }}")
        QTimer.singleShot(duration_ms, lambda: self.scan_widget.frame.setStyleSheet(""))

    def closeEvent(self, event):
        logger.info("Closing MainWindow")
        self.controller.close()
        super().closeEvent(event)


def main(argv=None) -> int:
    app = QApplication(argv if argv is not None else sys.argv)

    config = load_config()
    try:
        config.ensure_directories()
    except ConfigurationError as e:
        logger.error(f"Cannot prepare data directory: {e}")
        QMessageBox.critical(None, "Serial Guard", e.get_display_message())
        return 1

    window = MainWindow(config)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
