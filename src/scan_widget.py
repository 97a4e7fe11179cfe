from PySide6.QtWidgets import (
    QWidget, QHBoxLayout, QVBoxLayout, QTableWidget, QTableWidgetItem,
    QLabel, QLineEdit, QHeaderView, QPushButton, QAbstractItemView, QFrame
)
from PySide6.QtGui import QFont
from PySide6.QtCore import Qt, Signal

from scan_session import ScanResult, ScanSession, StatusKind

STATUS_COLORS = {
    StatusKind.ADDED: "#1b7f3b",
    StatusKind.DUPLICATE: "#c62828",
    StatusKind.EMPTY: "#b26a00",
    StatusKind.INFO: "#1f4e79",
}


def format_position(position: int) -> str:
    """Zero-padded list number as shown to the operator ("01", "02", ...)."""
    return str(position).zfill(2)


class ScanWidget(QWidget):
    """
    The scanning screen: serial input, status line, counters and the lists of
    unique serials and duplicates.

    The widget holds no scanning logic. It emits signals for operator actions
    and is refreshed from a ScanSession by the main window.

    Attributes:
        serial_submitted (Signal): Emitted with the raw input text when Enter
                                   is pressed or "Añadir" is clicked.
        undo_requested (Signal): Emitted by the undo button.
        reset_requested (Signal): Emitted by the reset button.
        copy_requested (Signal): Emitted by the copy button.
        frame (QFrame): Frame around the serial table, used for border flashes.
        serial_input (QLineEdit): Receives scanner keystrokes.
        status_label (QLabel): Message of the last operation.
        serials_table (QTableWidget): Numbered unique serials.
        duplicates_table (QTableWidget): Numbered duplicate events.
    """
    serial_submitted = Signal(str)
    undo_requested = Signal()
    reset_requested = Signal()
    copy_requested = Signal()

    def __init__(self, parent: QWidget = None):
        super().__init__(parent)

        main_layout = QVBoxLayout(self)

        title = QLabel("Serial Guard")
        title_font = QFont(); title_font.setPointSize(22); title_font.setBold(True)
        title.setFont(title_font)
        hint = QLabel("Escanea o escribe un número de serie y pulsa Enter. "
                      "Los duplicados se detectan al instante.")
        hint.setWordWrap(True)
        main_layout.addWidget(title)
        main_layout.addWidget(hint)

        input_row = QHBoxLayout()
        input_label = QLabel("Número de serie")
        self.serial_input = QLineEdit()
        self.serial_input.setPlaceholderText("Escanea o escribe aquí…")
        input_font = self.serial_input.font(); input_font.setPointSize(16)
        self.serial_input.setFont(input_font)
        self.serial_input.returnPressed.connect(self._on_submit)
        self.add_button = QPushButton("Añadir")
        self.add_button.clicked.connect(self._on_submit)
        input_row.addWidget(input_label)
        input_row.addWidget(self.serial_input, stretch=1)
        input_row.addWidget(self.add_button)
        main_layout.addLayout(input_row)

        self.status_label = QLabel("")
        status_font = QFont(); status_font.setPointSize(16); status_font.setBold(True)
        self.status_label.setFont(status_font)
        self.status_label.setWordWrap(True)
        self.status_label.setObjectName("StatusLabel")
        main_layout.addWidget(self.status_label)

        stats_row = QHBoxLayout()
        self.total_label = QLabel()
        self.unique_label = QLabel()
        self.duplicates_label = QLabel()
        for label in (self.total_label, self.unique_label, self.duplicates_label):
            label.setAlignment(Qt.AlignCenter)
            stats_row.addWidget(label)
        main_layout.addLayout(stats_row)

        actions_row = QHBoxLayout()
        self.undo_button = QPushButton("↩ Deshacer")
        self.undo_button.clicked.connect(self._emit_and_refocus(self.undo_requested))
        self.reset_button = QPushButton("✕ Reiniciar pallet")
        self.reset_button.clicked.connect(self._emit_and_refocus(self.reset_requested))
        self.copy_button = QPushButton("⎘ Copiar valores")
        self.copy_button.clicked.connect(self._emit_and_refocus(self.copy_requested))
        actions_row.addWidget(self.undo_button)
        actions_row.addWidget(self.reset_button)
        actions_row.addWidget(self.copy_button)
        main_layout.addLayout(actions_row)

        self.frame = QFrame()
        self.frame.setObjectName("SerialsFrame")
        frame_layout = QVBoxLayout(self.frame)
        frame_layout.setContentsMargins(0, 0, 0, 0)

        frame_layout.addWidget(QLabel("Seriales escaneados"))
        self.empty_label = QLabel("Aún no hay seriales. Escanea el primero.")
        frame_layout.addWidget(self.empty_label)
        self.serials_table = self._make_table(["#", "Serial"])
        frame_layout.addWidget(self.serials_table)
        main_layout.addWidget(self.frame, stretch=2)

        self.duplicates_frame = QFrame()
        dup_layout = QVBoxLayout(self.duplicates_frame)
        dup_layout.setContentsMargins(0, 0, 0, 0)
        dup_title = QLabel("Duplicados detectados")
        dup_title.setStyleSheet(f"color: {STATUS_COLORS[StatusKind.DUPLICATE]};")
        dup_layout.addWidget(dup_title)
        self.duplicates_table = self._make_table(["#", "Serial", "Detalle"])
        dup_layout.addWidget(self.duplicates_table)
        main_layout.addWidget(self.duplicates_frame, stretch=1)

        footer = QLabel("Si el lector añade Enter automáticamente, solo escanea sin tocar nada más.")
        footer.setWordWrap(True)
        main_layout.addWidget(footer)

        self.refresh(ScanSession())

    @staticmethod
    def _make_table(headers) -> QTableWidget:
        table = QTableWidget()
        table.setColumnCount(len(headers))
        table.setHorizontalHeaderLabels(headers)
        table.verticalHeader().setVisible(False)
        table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeToContents)
        table.horizontalHeader().setStretchLastSection(True)
        table.setEditTriggers(QTableWidget.NoEditTriggers)
        table.setSelectionMode(QAbstractItemView.NoSelection)
        table.setFocusPolicy(Qt.NoFocus)
        return table

    def _emit_and_refocus(self, signal):
        def handler():
            signal.emit()
            self.set_focus_to_input()
        return handler

    def _on_submit(self):
        text = self.serial_input.text()
        self.serial_input.clear()
        self.serial_submitted.emit(text)
        self.set_focus_to_input()

    def set_focus_to_input(self):
        """Keep keyboard focus on the input so the next scan is captured."""
        self.serial_input.setFocus()

    def show_status(self, result: ScanResult):
        """Display the message of an operation in the color of its kind."""
        self.status_label.setText(result.message)
        self.status_label.setStyleSheet(f"color: {STATUS_COLORS.get(result.kind, 'black')};")

    def refresh(self, session: ScanSession, can_undo: bool = None,
                can_reset: bool = None, can_copy: bool = None):
        """
        Redraw counters, lists and button states from a session.

        Button states default to what the session itself implies.
        """
        self.total_label.setText(f"Total escaneados\n{session.scan_count}")
        self.unique_label.setText(f"Únicos\n{session.unique_count}")
        self.duplicates_label.setText(f"Duplicados\n{session.duplicate_count}")

        self.undo_button.setEnabled(session.unique_count > 0 if can_undo is None else can_undo)
        self.reset_button.setEnabled(session.scan_count > 0 if can_reset is None else can_reset)
        self.copy_button.setEnabled(session.unique_count > 0 if can_copy is None else can_copy)

        numbered = session.numbered_serials()
        self.serials_table.setRowCount(len(numbered))
        for row, (position, serial) in enumerate(numbered):
            self.serials_table.setItem(row, 0, QTableWidgetItem(format_position(position)))
            self.serials_table.setItem(row, 1, QTableWidgetItem(serial))
        self.empty_label.setVisible(not numbered)
        if numbered:
            self.serials_table.scrollToBottom()

        duplicates = session.numbered_duplicates()
        self.duplicates_table.setRowCount(len(duplicates))
        for row, (position, event) in enumerate(duplicates):
            self.duplicates_table.setItem(row, 0, QTableWidgetItem(format_position(position)))
            self.duplicates_table.setItem(row, 1, QTableWidgetItem(event.serial))
            self.duplicates_table.setItem(
                row, 2,
                QTableWidgetItem(f"picado en #{event.dup_at} · original en #{event.first_position}")
            )
        self.duplicates_frame.setVisible(bool(duplicates))
