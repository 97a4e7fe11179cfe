"""
Boundary between the scan session and the outside world.

ScanController owns the station's ScanSession and connects it to the pieces
that do I/O: the session store (save after every change), the sound cues and
the clipboard. The session stays a pure state machine; everything that can
fail lives here and is turned into an informational status instead of an
exception.
"""

from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal, Slot
from PySide6.QtGui import QGuiApplication

from async_state_writer import AsyncStateWriter
from exceptions import ClipboardError, SerialGuardError, StorageError
from logger import get_logger
from scan_session import ScanResult, ScanSession, StatusKind
from session_store import SessionStore

logger = get_logger(__name__)


def qt_clipboard_sink(text: str) -> None:
    """
    Put text on the system clipboard.

    Raises:
        ClipboardError: If no clipboard is available
    """
    clipboard = QGuiApplication.clipboard()
    if clipboard is None:
        raise ClipboardError("Clipboard not available")
    clipboard.setText(text)


class ScanController(QObject):
    """
    Runs Submit / Undo / Reset / Copy against the station's session.

    Every operation returns its ScanResult and also emits status_changed with
    it. Operations that change the session emit session_changed and schedule
    a full save of the session record.

    Attributes:
        status_changed (Signal): Emitted with the ScanResult of each operation
            and with INFO results for storage failures
        session_changed (Signal): Emitted after the session state changed
    """
    status_changed = Signal(object)
    session_changed = Signal()
    _storage_failed = Signal(str)

    def __init__(
        self,
        store: SessionStore,
        cue_player=None,
        clipboard_sink: Optional[Callable[[str], None]] = None,
        async_writes: bool = False,
        parent: QObject = None,
    ):
        """
        Args:
            store: Loads the session now and saves it after every change
            cue_player: Object with play_for_status(kind), or None for silence
            clipboard_sink: Callable receiving the export text
                            (default: system clipboard)
            async_writes: Save on a background thread instead of inline
            parent: Qt parent
        """
        super().__init__(parent)
        self._store = store
        self._cue_player = cue_player
        self._clipboard_sink = clipboard_sink or qt_clipboard_sink

        # Background write failures arrive on the writer thread; the queued
        # signal hands them to the GUI thread
        self._storage_failed.connect(self._report_storage_failure)
        self._writer = AsyncStateWriter(
            store.write_record,
            sync_mode=not async_writes,
            on_error=self._on_write_error,
        )

        self._session = store.load()
        logger.info(
            f"ScanController ready: {self._session.unique_count} unique, "
            f"{self._session.duplicate_count} duplicates, {self._session.scan_count} scans"
        )

    @property
    def session(self) -> ScanSession:
        return self._session

    @property
    def can_undo(self) -> bool:
        return self._session.unique_count > 0

    @property
    def can_reset(self) -> bool:
        return self._session.scan_count > 0

    @property
    def can_copy(self) -> bool:
        return self._session.unique_count > 0

    @Slot(str)
    def submit(self, raw: str) -> ScanResult:
        """Submit scanner or keyboard input; plays the matching cue."""
        result = self._session.submit(raw)

        if result.kind != StatusKind.EMPTY:
            self.session_changed.emit()

        if self._cue_player is not None:
            self._cue_player.play_for_status(result.kind)

        self.status_changed.emit(result)

        if result.kind != StatusKind.EMPTY:
            self._persist()
        return result

    @Slot()
    def undo(self) -> ScanResult:
        """Undo the last unique serial."""
        result = self._session.undo()

        if result.serial is not None:
            self.session_changed.emit()

        self.status_changed.emit(result)

        if result.serial is not None:
            self._persist()
        return result

    @Slot()
    def reset(self) -> ScanResult:
        """Start a new pallet."""
        result = self._session.reset()
        self.session_changed.emit()
        self.status_changed.emit(result)
        self._persist()
        return result

    @Slot()
    def copy_serials(self) -> ScanResult:
        """Copy the unique serials to the clipboard as a comma-separated list."""
        text, result = self._session.export_serials()

        if text is not None:
            try:
                self._clipboard_sink(text)
                logger.info(f"Copied {self._session.unique_count} serials to clipboard")
            except ClipboardError as e:
                logger.warning(f"Clipboard copy failed: {e}")
                result = ScanResult(StatusKind.INFO, e.get_display_message())
            except Exception as e:
                logger.warning(f"Clipboard copy failed: {e}", exc_info=True)
                result = ScanResult(StatusKind.INFO, ClipboardError(str(e)).get_display_message())

        self.status_changed.emit(result)
        return result

    def close(self) -> None:
        """Write any pending record and stop the background writer."""
        self._writer.shutdown()
        logger.info("ScanController closed")

    def _persist(self) -> None:
        try:
            record = self._store.build_record(self._session)
        except Exception as e:
            logger.error(f"Could not build session record: {e}", exc_info=True)
            self._storage_failed.emit(StorageError(str(e), key=self._store.key).get_display_message())
            return
        self._writer.schedule(record)

    def _on_write_error(self, error: Exception) -> None:
        if isinstance(error, SerialGuardError):
            message = error.get_display_message()
        else:
            message = StorageError(str(error), key=self._store.key).get_display_message()
        self._storage_failed.emit(message)

    @Slot(str)
    def _report_storage_failure(self, message: str) -> None:
        self.status_changed.emit(ScanResult(StatusKind.INFO, message))
