"""
Station configuration loaded from config.ini.

Example config.ini:

    [Paths]
    DataDir = D:\\SerialGuard

    [Storage]
    AsyncWrites = true

    [Sounds]
    Enabled = true
    ErrorSound = sounds/Error.wav
    SuccessSound = sounds/Correct.wav
    ErrorVolume = 1.0
    SuccessVolume = 0.5

    [Station]
    Name = PALLET-01

    [Logging]
    LogLevel = INFO

Every option has a default; a missing file gives a working station.
"""

import configparser
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from exceptions import ConfigurationError
from logger import DEFAULT_DATA_DIR, get_logger
from session_store import STORAGE_KEY, is_valid_key

logger = get_logger(__name__)


@dataclass(frozen=True)
class AppConfig:
    """Resolved station settings."""
    data_dir: Path
    storage_key: str = STORAGE_KEY
    async_writes: bool = True
    sounds_enabled: bool = True
    error_sound: Path = Path("sounds/Error.wav")
    success_sound: Path = Path("sounds/Correct.wav")
    error_volume: float = 1.0
    success_volume: float = 0.5
    station_name: str = ""

    @property
    def state_dir(self) -> Path:
        return self.data_dir / "state"

    def ensure_directories(self) -> None:
        """
        Create the state directory.

        Raises:
            ConfigurationError: If DataDir cannot be created
        """
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(str(e), section='Paths', option='DataDir') from e


def _read_config(config_path: Path) -> configparser.ConfigParser:
    config = configparser.ConfigParser()

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}, using defaults")
        return config

    try:
        config.read(config_path, encoding='utf-8')
        logger.info(f"Configuration loaded from {config_path}")
    except configparser.Error as e:
        logger.error(f"Failed to parse config: {e}, using defaults")
        return configparser.ConfigParser()

    return config


def _get_bool(config: configparser.ConfigParser, section: str, option: str, default: bool) -> bool:
    try:
        return config.getboolean(section, option, fallback=default)
    except ValueError:
        logger.warning(f"Invalid boolean for [{section}] {option}, using {default}")
        return default


def _get_volume(config: configparser.ConfigParser, section: str, option: str, default: float) -> float:
    try:
        value = config.getfloat(section, option, fallback=default)
    except ValueError:
        logger.warning(f"Invalid number for [{section}] {option}, using {default}")
        return default
    return min(1.0, max(0.0, value))


def _resolve(path_str: str, base_dir: Path) -> Path:
    path = Path(path_str).expanduser()
    return path if path.is_absolute() else base_dir / path


def load_config(config_path: Optional[str] = "config.ini") -> AppConfig:
    """
    Build an AppConfig from config.ini.

    Relative sound paths are resolved against the directory holding the
    config file.

    Args:
        config_path: Path to config.ini (default: working directory)

    Returns:
        AppConfig with defaults substituted for missing or invalid values
    """
    path = Path(config_path or "config.ini")
    config = _read_config(path)
    base_dir = path.parent if str(path.parent) else Path(".")

    data_dir = Path(config.get('Paths', 'DataDir', fallback=str(DEFAULT_DATA_DIR))).expanduser()

    storage_key = config.get('Storage', 'StorageKey', fallback=STORAGE_KEY).strip() or STORAGE_KEY
    if not is_valid_key(storage_key):
        logger.warning(f"Invalid [Storage] StorageKey {storage_key!r}, using {STORAGE_KEY}")
        storage_key = STORAGE_KEY

    station_name = config.get('Station', 'Name', fallback='').strip() or socket.gethostname()

    return AppConfig(
        data_dir=data_dir,
        storage_key=storage_key,
        async_writes=_get_bool(config, 'Storage', 'AsyncWrites', True),
        sounds_enabled=_get_bool(config, 'Sounds', 'Enabled', True),
        error_sound=_resolve(config.get('Sounds', 'ErrorSound', fallback='sounds/Error.wav'), base_dir),
        success_sound=_resolve(config.get('Sounds', 'SuccessSound', fallback='sounds/Correct.wav'), base_dir),
        error_volume=_get_volume(config, 'Sounds', 'ErrorVolume', 1.0),
        success_volume=_get_volume(config, 'Sounds', 'SuccessVolume', 0.5),
        station_name=station_name,
    )
