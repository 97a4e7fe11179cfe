"""
Scan session state machine for a single pallet.

A ScanSession tracks the serial numbers scanned onto the current pallet:
the ordered list of unique serials, an append-only log of duplicate
submissions, and the total number of accepted scans. It performs no I/O;
every operation returns a ScanResult describing what happened, and the
caller (ScanController) decides which sound to play, what to display and
when to persist.

Persisted record (see to_dict / from_dict):
    {
        "uniqueSerials": ["ABC123", "X2"],
        "duplicateEvents": [{"serial": "ABC123", "firstPosition": 1, "dupAt": 3}],
        "scanCount": 3
    }

Records written before the field names were fixed used snake_case
(unique_serials, duplicate_events, scan_count); those names are still read.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from logger import get_logger

logger = get_logger(__name__)


class StatusKind(str, Enum):
    """Outcome category of a session operation."""
    EMPTY = "empty"
    DUPLICATE = "dup"
    ADDED = "ok"
    INFO = "info"


@dataclass(frozen=True)
class ScanResult:
    """
    Result of submit / undo / reset / export.

    Attributes:
        kind: Outcome category, drives styling and sound cues
        message: Operator-facing text
        serial: Normalized serial involved, if any
        first_position: 1-based position of the original scan (duplicates only)
        dup_at: scan_count at which the duplicate was recorded (duplicates only)
    """
    kind: StatusKind
    message: str
    serial: Optional[str] = None
    first_position: Optional[int] = None
    dup_at: Optional[int] = None


@dataclass(frozen=True)
class DuplicateEvent:
    """One rejected re-submission of an already scanned serial."""
    serial: str
    first_position: int
    dup_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'serial': self.serial,
            'firstPosition': self.first_position,
            'dupAt': self.dup_at,
        }


def normalize_serial(raw: Optional[str]) -> Optional[str]:
    """
    Normalize scanner or keyboard input into a serial.

    Strips surrounding whitespace (scanners often append CR/LF or TAB) and
    upper-cases the result so "abc123" and " ABC123 " are the same serial.

    Returns:
        The normalized serial, or None if nothing is left.
    """
    serial = (raw or "").strip().upper()
    return serial or None


RECORD_VERSION = "1.0"


def _is_supported_version(version: Any) -> bool:
    """Envelope versions sharing RECORD_VERSION's major number can be read."""
    if not isinstance(version, str):
        return False
    return version.split('.')[0] == RECORD_VERSION.split('.')[0]


def _field(data: Dict[str, Any], name: str, legacy_name: str) -> Any:
    return data[name] if name in data else data.get(legacy_name)


def _is_serial(value: Any) -> bool:
    # Stored serials must already be in normalized form or submit() could never match them
    return isinstance(value, str) and normalize_serial(value) == value


def _is_position(value: Any) -> bool:
    # bool is a subclass of int; true/false in a stored record is malformed
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _parse_serials(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    if not all(_is_serial(s) for s in value):
        return None
    if len(set(value)) != len(value):
        return None
    return list(value)


def _parse_duplicate_events(value: Any) -> Optional[List[DuplicateEvent]]:
    if not isinstance(value, list):
        return None

    events = []
    for item in value:
        if not isinstance(item, dict):
            return None
        serial = item.get('serial')
        first_position = _field(item, 'firstPosition', 'first_position')
        dup_at = _field(item, 'dupAt', 'dup_at')
        if not _is_serial(serial):
            return None
        if not (_is_position(first_position) and _is_position(dup_at)):
            return None
        events.append(DuplicateEvent(serial, first_position, dup_at))
    return events


def _parse_scan_count(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return None


class ScanSession:
    """
    The serial scanning state of one pallet.

    Invariants:
    - unique_serials never contains the same serial twice
    - scan_count >= len(unique_serials) after any sequence of operations
    - a DuplicateEvent is never modified or removed except by reset()

    Membership and first-position lookups go through a serial -> position
    index, so a submission costs O(1) regardless of pallet size.

    Attributes:
        last_result (ScanResult | None): Result of the most recent operation.
            Transient: never persisted, None on a freshly loaded session.
    """

    def __init__(self):
        self._serials: List[str] = []
        self._positions: Dict[str, int] = {}
        self._duplicates: List[DuplicateEvent] = []
        self._scan_count = 0
        self.last_result: Optional[ScanResult] = None

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @property
    def unique_serials(self) -> Tuple[str, ...]:
        return tuple(self._serials)

    @property
    def duplicate_events(self) -> Tuple[DuplicateEvent, ...]:
        return tuple(self._duplicates)

    @property
    def scan_count(self) -> int:
        return self._scan_count

    @property
    def unique_count(self) -> int:
        return len(self._serials)

    @property
    def duplicate_count(self) -> int:
        return len(self._duplicates)

    @property
    def is_empty(self) -> bool:
        return not self._serials and not self._duplicates and self._scan_count == 0

    def numbered_serials(self) -> List[Tuple[int, str]]:
        """Unique serials with their 1-based positions."""
        return list(enumerate(self._serials, start=1))

    def numbered_duplicates(self) -> List[Tuple[int, DuplicateEvent]]:
        """Duplicate events with their 1-based positions in the duplicate log."""
        return list(enumerate(self._duplicates, start=1))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def submit(self, raw: Optional[str]) -> ScanResult:
        """
        Process one scanned or typed serial.

        Empty input is reported and changes nothing. Any other input counts as
        a scan: scan_count is incremented first, so a duplicate records the
        incremented value as its dup_at.

        Args:
            raw: Text as received from the scanner or keyboard

        Returns:
            ScanResult with kind EMPTY, DUPLICATE or ADDED
        """
        serial = normalize_serial(raw)

        if serial is None:
            return self._finish(ScanResult(StatusKind.EMPTY, "Serial vacío — no se añadió"))

        self._scan_count += 1

        first_position = self._positions.get(serial)
        if first_position is not None:
            event = DuplicateEvent(serial, first_position, self._scan_count)
            self._duplicates.append(event)
            logger.warning(
                f"Duplicate serial {serial} (first at #{first_position}, scan #{self._scan_count})"
            )
            return self._finish(ScanResult(
                StatusKind.DUPLICATE,
                f"DUPLICADO detectado: {serial} (picado antes en #{first_position})",
                serial=serial,
                first_position=first_position,
                dup_at=self._scan_count,
            ))

        self._serials.append(serial)
        self._positions[serial] = len(self._serials)
        logger.info(f"Added {serial} at #{len(self._serials)}")
        return self._finish(ScanResult(StatusKind.ADDED, f"Añadido: {serial}", serial=serial))

    def undo(self) -> ScanResult:
        """
        Remove the most recently added unique serial.

        Only unique admissions are undone: if the last submission was a
        duplicate, the last unique serial is still the one removed, and the
        duplicate log is left untouched. scan_count drops by one, never
        below zero. With no unique serials this only reports.
        """
        if not self._serials:
            return self._finish(ScanResult(StatusKind.INFO, "No hay seriales para deshacer"))

        serial = self._serials.pop()
        del self._positions[serial]
        self._scan_count = max(0, self._scan_count - 1)
        logger.info(f"Undo removed {serial}, scan count now {self._scan_count}")
        return self._finish(ScanResult(StatusKind.INFO, "Último serial eliminado", serial=serial))

    def reset(self) -> ScanResult:
        """Clear the pallet: serials, duplicate log and scan count."""
        logger.info(
            f"Pallet reset ({len(self._serials)} unique, {len(self._duplicates)} duplicates, "
            f"{self._scan_count} scans discarded)"
        )
        self._serials = []
        self._positions = {}
        self._duplicates = []
        self._scan_count = 0
        return self._finish(ScanResult(StatusKind.INFO, "Pallet reiniciado"))

    def export_serials(self) -> Tuple[Optional[str], ScanResult]:
        """
        Build the comma-separated export of the unique serials, in scan order.

        Returns:
            (text, result): text is None when there is nothing to export, in
            which case result has kind EMPTY.
        """
        if not self._serials:
            return None, ScanResult(StatusKind.EMPTY, "No hay seriales para copiar")

        # dict.fromkeys keeps first-seen order while dropping repeats
        text = ", ".join(dict.fromkeys(self._serials))
        return text, ScanResult(
            StatusKind.INFO,
            f"{len(self._serials)} serial(es) copiados al portapapeles",
        )

    def _finish(self, result: ScanResult) -> ScanResult:
        self.last_result = result
        return result

    # ------------------------------------------------------------------
    # Persistence record
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Encode the durable part of the session (last_result is excluded)."""
        return {
            'uniqueSerials': list(self._serials),
            'duplicateEvents': [event.to_dict() for event in self._duplicates],
            'scanCount': self._scan_count,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ScanSession":
        """
        Rebuild a session from a persisted record, field by field.

        Each field is checked for its exact shape. A field that fails is
        replaced by its empty default and the rest of the record is still
        used, so a damaged record never prevents the station from starting.

        A storage envelope ({"version": ..., "data": {...}}) is unwrapped.
        An envelope whose version has a different major number than
        RECORD_VERSION is not read at all and yields an empty session.

        Args:
            data: Decoded JSON value, possibly malformed or None

        Returns:
            A usable ScanSession (empty if nothing could be recovered)
        """
        session = cls()

        if isinstance(data, dict) and isinstance(data.get('data'), dict):
            version = data.get('version')
            if not _is_supported_version(version):
                logger.warning(f"Ignoring persisted session with unsupported version {version!r}")
                return session
            data = data['data']

        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"Ignoring persisted session of type {type(data).__name__}")
            return session

        serials = _parse_serials(_field(data, 'uniqueSerials', 'unique_serials'))
        if serials is None:
            logger.warning("Persisted uniqueSerials malformed, starting with no serials")
            serials = []

        events = _parse_duplicate_events(_field(data, 'duplicateEvents', 'duplicate_events'))
        if events is None:
            logger.warning("Persisted duplicateEvents malformed, starting with no duplicates")
            events = []

        scan_count = _parse_scan_count(_field(data, 'scanCount', 'scan_count'))
        if scan_count is None:
            logger.warning("Persisted scanCount malformed, resetting to 0")
            scan_count = 0

        session._serials = serials
        session._positions = {serial: i for i, serial in enumerate(serials, start=1)}
        session._duplicates = events
        session._scan_count = scan_count

        logger.info(
            f"Session restored: {len(serials)} unique, {len(events)} duplicates, {scan_count} scans"
        )
        return session
