"""
Write-behind queue for the session record.

Every Submit/Undo/Reset persists the full session. On a station whose data
directory sits on a slow share, doing that synchronously would stall the
scanner input. Only the newest record matters, so a single pending slot is
kept and older unwritten records are simply replaced.
"""

import copy
import threading
from typing import Callable, Dict, Any, Optional

from logger import get_logger

logger = get_logger(__name__)


class AsyncStateWriter:
    """
    Single-slot write-behind queue.

    Behaviour:
    - schedule(record): non-blocking, replaces any pending write
    - flush(): blocking, waits until the background thread has finished writing
    - shutdown(): flush then stop daemon thread

    Concurrency model:
    - schedule() and flush() are called from the Qt main thread only
    - The daemon thread calls write_fn
    - The record is deep-copied on schedule() so the session can keep mutating

    Failures of write_fn are logged and handed to on_error (from the writer
    thread); they never reach the caller of schedule().

    sync_mode=True skips the thread and writes inline; used by tests and by
    stations configured with AsyncWrites = false.
    """

    def __init__(
        self,
        write_fn: Callable[[Dict[str, Any]], None],
        sync_mode: bool = False,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self._write_fn = write_fn
        self._sync_mode = sync_mode
        self._on_error = on_error
        self._closed = False
        self.failed_writes = 0

        if sync_mode:
            return

        self._condition = threading.Condition()
        self._pending: Optional[Dict[str, Any]] = None
        self._is_writing = False
        self._stop = False
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="session-writer"
        )
        self._thread.start()

    @property
    def sync_mode(self) -> bool:
        return self._sync_mode

    def schedule(self, record: Dict[str, Any]) -> None:
        """
        Non-blocking: schedule record for writing.

        If a previous record has not started writing yet, it is dropped in
        favour of this one.
        """
        if self._closed:
            logger.warning("Session writer already shut down, record not written")
            return

        if self._sync_mode:
            self._write(record)
            return

        snapshot = copy.deepcopy(record)
        with self._condition:
            self._pending = snapshot
            self._condition.notify()

    def flush(self) -> None:
        """
        Blocking: wait until nothing is pending and no write is in progress.

        Called before the window closes so the last scan is on disk.
        """
        if self._sync_mode:
            return

        with self._condition:
            while self._pending is not None or self._is_writing:
                self._condition.wait()

    def shutdown(self) -> None:
        """Flush, then stop the writer thread. Safe to call more than once."""
        if self._closed:
            return

        if self._sync_mode:
            self._closed = True
            return

        self.flush()
        with self._condition:
            self._stop = True
            self._condition.notify()
        self._thread.join(timeout=10)
        self._closed = True

    def _write(self, record: Dict[str, Any]) -> None:
        try:
            self._write_fn(record)
        except Exception as e:
            self.failed_writes += 1
            logger.exception("Session writer: write failed")
            if self._on_error is not None:
                try:
                    self._on_error(e)
                except Exception:
                    logger.exception("Session writer: error callback failed")

    def _run(self) -> None:
        while True:
            with self._condition:
                while self._pending is None and not self._stop:
                    self._condition.wait()

                if self._stop and self._pending is None:
                    break

                record = self._pending
                self._pending = None
                self._is_writing = True

            # Written outside the lock so schedule() never blocks on I/O
            try:
                self._write(record)
            finally:
                with self._condition:
                    self._is_writing = False
                    self._condition.notify_all()
