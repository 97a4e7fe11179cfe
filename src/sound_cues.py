"""
Audio feedback for scan results.

Operators rarely look at the screen while scanning, so the outcome of each
scan is signalled by sound: a loud error cue for a duplicate, a softer
success cue for a new serial, nothing for empty input or informational
statuses.
"""

from pathlib import Path
from typing import Dict, Optional

from PySide6.QtCore import QObject, QUrl
from PySide6.QtWidgets import QApplication

from logger import get_logger
from scan_session import StatusKind

logger = get_logger(__name__)

CUE_ERROR = "error"
CUE_SUCCESS = "success"

_CUES_BY_KIND = {
    StatusKind.DUPLICATE: CUE_ERROR,
    StatusKind.ADDED: CUE_SUCCESS,
}


def cue_for_status(kind: StatusKind) -> Optional[str]:
    """Name of the cue to play for a status kind, or None for silence."""
    return _CUES_BY_KIND.get(kind)


class SoundCuePlayer(QObject):
    """
    Plays the error and success cues through QSoundEffect.

    A cue whose sound file is missing is disabled with a warning. The error
    cue then falls back to the system beep; a duplicate is never silent.

    Attributes:
        enabled (bool): Master switch from [Sounds] Enabled
    """

    def __init__(
        self,
        error_sound: Path,
        success_sound: Path,
        error_volume: float = 1.0,
        success_volume: float = 0.5,
        enabled: bool = True,
        parent: QObject = None,
    ):
        super().__init__(parent)
        self.enabled = enabled
        self._effects: Dict[str, object] = {}

        if not enabled:
            logger.info("Sound cues disabled")
            return

        self._load_effect(CUE_ERROR, Path(error_sound), error_volume)
        self._load_effect(CUE_SUCCESS, Path(success_sound), success_volume)

    def _load_effect(self, cue: str, path: Path, volume: float) -> None:
        if not path.exists():
            logger.warning(f"Sound file for '{cue}' cue not found: {path}")
            return

        # QtMultimedia is loaded only once a sound file exists
        from PySide6.QtMultimedia import QSoundEffect

        effect = QSoundEffect(self)
        effect.setSource(QUrl.fromLocalFile(str(path.resolve())))
        effect.setVolume(volume)
        self._effects[cue] = effect
        logger.debug(f"Loaded '{cue}' cue from {path} (volume {volume})")

    def has_cue(self, cue: str) -> bool:
        return cue in self._effects

    def play(self, cue: Optional[str]) -> None:
        """Play a cue by name; None or an unknown cue is ignored."""
        if not self.enabled or cue is None:
            return

        try:
            effect = self._effects.get(cue)
            if effect is not None:
                effect.play()
            elif cue == CUE_ERROR:
                QApplication.beep()
        except Exception as e:
            logger.warning(f"Could not play '{cue}' cue: {e}")

    def play_for_status(self, kind: StatusKind) -> None:
        self.play(cue_for_status(kind))
