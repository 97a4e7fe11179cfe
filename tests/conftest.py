"""
Pytest configuration file for Serial Guard tests.

Puts the 'src' directory on sys.path so tests import modules the same way
the application does (e.g. `from scan_session import ScanSession`), and
provides fixtures shared by the persistence and controller tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Run Qt headless when no display is available.
os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

repo_root = Path(__file__).parent.parent

src_dir = repo_root / 'src'
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))


@pytest.fixture
def state_dir(tmp_path):
    """Empty directory used as the key-value store location."""
    path = tmp_path / "state"
    path.mkdir()
    return path


@pytest.fixture
def kv_store(state_dir):
    from session_store import JsonKeyValueStore
    return JsonKeyValueStore(state_dir)


@pytest.fixture
def session_store(kv_store):
    from session_store import SessionStore
    return SessionStore(kv_store, station="TEST-STATION")


class RecordingCuePlayer:
    """Stand-in for SoundCuePlayer that records the kinds it was asked to play."""

    def __init__(self):
        self.kinds = []

    def play_for_status(self, kind):
        self.kinds.append(kind)


@pytest.fixture
def cue_player():
    return RecordingCuePlayer()


@pytest.fixture
def clipboard():
    """List collecting the texts sent to the clipboard sink."""
    return []


@pytest.fixture
def controller(session_store, cue_player, clipboard):
    """ScanController writing synchronously to a temporary store."""
    from scan_controller import ScanController
    ctl = ScanController(session_store, cue_player=cue_player, clipboard_sink=clipboard.append)
    yield ctl
    ctl.close()


def make_record(unique_serials=None, duplicate_events=None, scan_count=0):
    """Build a persisted session record in the on-disk shape."""
    return {
        'uniqueSerials': unique_serials if unique_serials is not None else [],
        'duplicateEvents': duplicate_events if duplicate_events is not None else [],
        'scanCount': scan_count,
    }
