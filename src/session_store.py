"""
Durable storage for the current scan session.

Two layers:
- JsonKeyValueStore: a minimal key-value capability backed by one JSON file
  per key, written atomically so a crash mid-write never leaves a torn file.
- SessionStore: loads and saves a ScanSession under a fixed, versioned key.

The key carries a schema version (..._v1). A future incompatible record
format gets a new key instead of being misread from the old one.
"""

import json
import os
import re
import shutil
import socket
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from exceptions import StorageError
from logger import get_logger
from scan_session import RECORD_VERSION, ScanSession

logger = get_logger(__name__)

STORAGE_KEY = "serial_scan_dup.current_pallet_v1"

_KEY_PATTERN = re.compile(r'^[A-Za-z0-9._-]+$')


def is_valid_key(key: str) -> bool:
    """Keys become file names, so only [A-Za-z0-9._-] is allowed."""
    return bool(_KEY_PATTERN.match(key))


class JsonKeyValueStore:
    """
    Key-value store keeping each value in <directory>/<key>.json.

    Reads are forgiving (missing or malformed entries read as None), writes
    are strict (any failure raises StorageError) so the caller can tell the
    operator that durability was lost.
    """

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        if not is_valid_key(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Any:
        """Return the stored value for key, or None if absent or unreadable."""
        path = self._path_for(key)

        if not path.exists():
            logger.debug(f"No stored value for {key}")
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning(f"Could not read stored value for {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        """
        Store value under key, replacing any previous value.

        Writes to a temp file in the same directory first, then moves it over
        the target, so readers see either the old or the new value.

        Raises:
            StorageError: If the directory cannot be created or the write fails
        """
        path = self._path_for(key)
        tmp_path = None

        try:
            self.directory.mkdir(parents=True, exist_ok=True)

            with tempfile.NamedTemporaryFile(
                mode='w',
                dir=self.directory,
                prefix='.tmp_state_',
                suffix='.json',
                delete=False,
                encoding='utf-8'
            ) as tmp_file:
                tmp_path = tmp_file.name
                json.dump(value, tmp_file, indent=2, ensure_ascii=False)

            shutil.move(tmp_path, path)
            tmp_path = None
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to store value for {key}: {e}", exc_info=True)
            raise StorageError(str(e), key=key) from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError as cleanup_error:
                    logger.debug(f"Could not remove temp file {tmp_path}: {cleanup_error}")


class SessionStore:
    """
    Loads and saves the current ScanSession.

    Attributes:
        kv_store: Key-value capability holding the record
        key (str): Versioned storage key
        station (str): Station name written into every record
    """

    def __init__(self, kv_store: JsonKeyValueStore, key: str = STORAGE_KEY, station: Optional[str] = None):
        self.kv_store = kv_store
        self.key = key
        self.station = station or socket.gethostname()

    def load(self) -> ScanSession:
        """
        Load the persisted session, or an empty one.

        Never raises: a missing key, unreadable file or malformed record all
        yield a usable session; the details only go to the log.
        """
        try:
            data = self.kv_store.get(self.key)
        except Exception as e:
            logger.error(f"Unexpected error reading {self.key}: {e}", exc_info=True)
            data = None

        if data is None:
            logger.info(f"No persisted session under {self.key}, starting empty")
            return ScanSession()

        return ScanSession.from_dict(data)

    def build_record(self, session: ScanSession) -> dict:
        """Wrap the session's durable state in the storage envelope."""
        return {
            'version': RECORD_VERSION,
            'timestamp': datetime.now().isoformat(),
            'station': self.station,
            'data': session.to_dict(),
        }

    def write_record(self, record: dict) -> None:
        """
        Write an already built record (used by the background writer).

        Raises:
            StorageError: If the underlying store fails
        """
        self.kv_store.set(self.key, record)
        logger.debug(f"Session saved under {self.key}")

    def save(self, session: ScanSession) -> None:
        """
        Persist the full session, overwriting the previous record.

        Raises:
            StorageError: If the underlying store fails
        """
        self.write_record(self.build_record(session))
