"""
Custom exceptions for the Serial Guard application.

These exceptions are raised by the lower layers (storage, clipboard, config)
and caught at the UI boundary (ScanController), where they are turned into
informational statuses for the operator. The scan session itself never raises:
every input, including an empty one, produces a defined status.

Why a dedicated hierarchy:
- The controller can catch every application failure with one except clause
- Operator-facing text is kept next to the error (get_display_message)
- Logs show which subsystem failed (storage vs clipboard vs config)

Exception hierarchy:
    SerialGuardError (base)
    ├── StorageError (persisted session could not be written or read)
    ├── ClipboardError (export could not reach the clipboard)
    └── ConfigurationError (config.ini value unusable, no default possible)
"""

from typing import Optional


class SerialGuardError(Exception):
    """
    Base exception for all Serial Guard errors.

    Catch this at the UI boundary to handle any application failure:
        try:
            store.save(session)
        except SerialGuardError as e:
            logger.error(f"Application error: {e}")

    Note: This does NOT inherit from OSError or ValueError so that application
    errors stay distinguishable from the system errors they wrap.
    """

    def get_display_message(self) -> str:
        """Return the text shown to the operator in the status line."""
        return str(self)


class StorageError(SerialGuardError):
    """
    Raised when the persisted session cannot be written (or explicitly read).

    Typical causes on a scanning station:
    - Data directory on a USB stick or network share that went away
    - Disk full
    - Permission denied after an OS profile change

    The scan session stays fully usable in memory; only durability is lost
    until the next successful save.

    Attributes:
        key (str | None): Storage key the operation was working on
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key

    def get_display_message(self) -> str:
        return f"No se pudo guardar la sesión: {self}"


class ClipboardError(SerialGuardError):
    """
    Raised when the serial export cannot be written to the clipboard.

    On some remote-desktop setups the clipboard is owned by another process
    and refuses writes. The serial list itself is unaffected.
    """

    def get_display_message(self) -> str:
        return "No se pudo acceder al portapapeles"


class ConfigurationError(SerialGuardError):
    """
    Raised when a config.ini value is unusable and no default can stand in.

    Most invalid values fall back to defaults with a logged warning; this is
    reserved for cases such as a data directory path that cannot be created.

    Attributes:
        section (str | None): config.ini section of the offending option
        option (str | None): option name
    """

    def __init__(self, message: str, section: Optional[str] = None, option: Optional[str] = None):
        super().__init__(message)
        self.section = section
        self.option = option

    def get_display_message(self) -> str:
        if self.section and self.option:
            return f"Configuración inválida [{self.section}] {self.option}: {self}"
        return f"Configuración inválida: {self}"
