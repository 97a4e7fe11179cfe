r"""
Centralized logging configuration for Serial Guard.

This module provides the logging setup shared by every module:
- Structured JSON logging to a daily file for later analysis
- Automatic file rotation (prevents log files from growing indefinitely)
- Configurable log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Automatic cleanup of old logs (retention policy)
- Human-readable console output for setup and troubleshooting
- Context-aware logging (station_id, session_key)

On a scanning station, the log is the only audit trail of what was scanned,
which duplicates were flagged and whether the session could be saved.

Log file location: <DataDir>\Logs\serial_guard\
Log file format: YYYY-MM-DD.log

Example log entry (JSON format):
    {"timestamp": "2026-10-19T09:12:45.123", "level": "WARNING", "tool": "serial_guard",
     "station_id": "PALLET-01", "session_key": "serial_scan_dup.current_pallet_v1",
     "module": "scan_session", "function": "submit", "line": 212,
     "message": "Duplicate serial ABC123 (first at #1, scan #2)"}
"""

import logging
import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any
import configparser
from contextvars import ContextVar


DEFAULT_DATA_DIR = Path(os.path.expanduser("~")) / ".serial_guard"

# Context variables for structured logging
_station_id: ContextVar[Optional[str]] = ContextVar('station_id', default=None)
_session_key: ContextVar[Optional[str]] = ContextVar('session_key', default=None)


class StructuredJSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON with fields:
    - timestamp: ISO 8601 format with milliseconds
    - level: Log level name
    - tool: Always "serial_guard"
    - station_id: Scanning station (if set)
    - session_key: Storage key of the active session (if set)
    - module, function, line: Origin of the record
    - message: Log message
    - exc_info: Exception information (if present)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'tool': 'serial_guard',
            'station_id': _station_id.get(),
            'session_key': _session_key.get(),
            'module': record.name,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['exc_info'] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_data'):
            log_data['extra'] = record.extra_data

        return json.dumps(log_data, ensure_ascii=False)


class AppLogger:
    """
    Centralized application logger with file rotation and cleanup.

    Logging is configured only once, on the first get_logger() call, no matter
    how many modules import it.

    Settings read from config.ini:
        [Paths]
        DataDir = C:\\SerialGuard        # logs go to <DataDir>\\Logs\\serial_guard

        [Logging]
        LogLevel = INFO
        MaxLogSizeMB = 10
        LogRetentionDays = 30

    Attributes:
        _initialized: Whether logging has been configured (class-level)
    """

    _initialized: bool = False

    @classmethod
    def get_logger(cls, name: str = 'SerialGuard') -> logging.Logger:
        """
        Get or create a logger, configuring the logging system on first use.

        Usage in modules:
            from logger import get_logger
            logger = get_logger(__name__)

        Args:
            name: Logger name, typically the module name (__name__)

        Returns:
            Logger sharing the application's handlers
        """
        if not cls._initialized:
            cls._setup_logging()
            cls._initialized = True

        return logging.getLogger(name)

    @classmethod
    def _setup_logging(cls):
        """
        Configure handlers, formatters and level from config.ini.

        When the configured log directory cannot be created (read-only share,
        missing drive), logs fall back to ~/.serial_guard/logs so the station
        keeps an audit trail.
        """
        config = cls._load_config()

        data_dir = config.get('Paths', 'DataDir', fallback=str(DEFAULT_DATA_DIR))
        log_dir = Path(data_dir) / "Logs" / "serial_guard"

        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            log_dir = DEFAULT_DATA_DIR / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            print(f"Warning: Could not access logs directory. Using local: {log_dir}. Error: {e}")

        log_file = log_dir / f"{datetime.now():%Y-%m-%d}.log"

        log_level_str = config.get('Logging', 'LogLevel', fallback='INFO')
        log_level = getattr(logging, log_level_str.upper(), logging.INFO)

        max_log_size = config.getint('Logging', 'MaxLogSizeMB', fallback=10) * 1024 * 1024

        json_formatter = StructuredJSONFormatter()

        # Example: 2026-10-19 09:12:45 | scan_session | INFO | submit:212 | Added ABC123
        console_formatter = logging.Formatter(
            fmt='%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_log_size,
            backupCount=30,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(json_formatter)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(console_formatter)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

        retention_days = config.getint('Logging', 'LogRetentionDays', fallback=30)
        cls._cleanup_old_logs(log_dir, retention_days)

        logger = logging.getLogger('SerialGuard')
        logger.info("=" * 80)
        logger.info("Serial Guard Started")
        logger.info(f"Log Level: {log_level_str}")
        logger.info(f"Log File: {log_file}")
        logger.info("=" * 80)

    @staticmethod
    def _load_config() -> configparser.ConfigParser:
        """
        Load config.ini from the working directory.

        Returns an empty ConfigParser if the file is missing, so every setting
        falls back to its default.
        """
        config = configparser.ConfigParser()
        config_path = Path('config.ini')

        if config_path.exists():
            config.read(config_path, encoding='utf-8')

        return config

    @staticmethod
    def _cleanup_old_logs(log_dir: Path, retention_days: int):
        """
        Delete log files older than the retention period.

        Args:
            log_dir: Directory containing log files
            retention_days: Days to keep; 0 or negative disables cleanup
        """
        if retention_days <= 0:
            return

        cutoff_date = datetime.now() - timedelta(days=retention_days)

        try:
            # Matches 2026-10-19.log as well as rotated 2026-10-19.log.1
            for log_file in log_dir.glob("*.log*"):
                file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
                if file_mtime < cutoff_date:
                    log_file.unlink()
                    logging.getLogger('SerialGuard').debug(f"Deleted old log: {log_file.name}")

        except Exception as e:
            # Non-fatal: a locked or vanished file must not stop the station
            logging.getLogger('SerialGuard').warning(f"Failed to cleanup old logs: {e}")


def get_logger(name: str = 'SerialGuard') -> logging.Logger:
    """
    Get application logger.

    Example:
        >>> from logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Station ready")
    """
    return AppLogger.get_logger(name)


def set_station_context(station_id: Optional[str]) -> None:
    """
    Set the scanning station name included in every subsequent log entry.

    Args:
        station_id: Station identifier (e.g., "PALLET-01") or None to clear
    """
    _station_id.set(station_id)


def set_session_context(session_key: Optional[str]) -> None:
    """
    Set the storage key of the active scan session for structured logging.

    Args:
        session_key: e.g. "serial_scan_dup.current_pallet_v1", or None to clear
    """
    _session_key.set(session_key)


def clear_logging_context() -> None:
    """Clear station and session context."""
    _station_id.set(None)
    _session_key.set(None)
