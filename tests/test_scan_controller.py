"""
Unit tests for src/scan_controller.py: the UI boundary around ScanSession.

Tests cover:
- Session loaded from the store at construction
- Save-on-every-change (and no save for Empty submissions / no-op undo)
- status_changed / session_changed signals
- Sound cue mapping per status kind
- Clipboard export and clipboard failures reported as INFO
- Storage failures (sync and background) reported as INFO, never raised
- Button-state projections
"""

from unittest.mock import patch

from conftest import make_record
from exceptions import ClipboardError, StorageError
from scan_controller import ScanController
from scan_session import StatusKind
from session_store import STORAGE_KEY
from sound_cues import CUE_ERROR, CUE_SUCCESS, cue_for_status


def _stored(kv_store):
    record = kv_store.get(STORAGE_KEY)
    return record["data"] if record else None


class TestLoading:

    def test_starts_empty_without_record(self, controller):
        assert controller.session.is_empty
        assert not controller.can_undo
        assert not controller.can_reset
        assert not controller.can_copy

    def test_restores_persisted_session(self, session_store, kv_store):
        kv_store.set(STORAGE_KEY, {"version": "1.0", "data": make_record(["A", "B"], [], 3)})

        ctl = ScanController(session_store, clipboard_sink=lambda text: None)

        assert ctl.session.unique_serials == ("A", "B")
        assert ctl.session.scan_count == 3
        assert ctl.session.last_result is None
        ctl.close()


class TestPersistence:

    def test_each_change_is_saved(self, controller, kv_store):
        controller.submit("a")
        assert _stored(kv_store)["uniqueSerials"] == ["A"]

        controller.submit("a")
        assert _stored(kv_store)["scanCount"] == 2
        assert len(_stored(kv_store)["duplicateEvents"]) == 1

        controller.undo()
        assert _stored(kv_store)["uniqueSerials"] == []

        controller.submit("b")
        controller.reset()
        assert _stored(kv_store) == make_record()

    def test_empty_submission_not_saved(self, controller, kv_store):
        controller.submit("   ")

        assert kv_store.get(STORAGE_KEY) is None

    def test_noop_undo_not_saved(self, controller, kv_store):
        controller.undo()

        assert kv_store.get(STORAGE_KEY) is None

    def test_reset_of_empty_session_is_saved(self, controller, kv_store):
        controller.reset()

        assert _stored(kv_store) == make_record()

    def test_survives_reload(self, session_store, controller):
        controller.submit("x1")
        controller.submit("x2")
        controller.submit("x1")
        controller.close()

        reloaded = ScanController(session_store, clipboard_sink=lambda text: None)

        assert reloaded.session.to_dict() == controller.session.to_dict()
        reloaded.close()


class TestSignalsAndCues:

    def test_status_and_session_signals(self, controller):
        statuses, changes = [], []
        controller.status_changed.connect(statuses.append)
        controller.session_changed.connect(lambda: changes.append(True))

        controller.submit("a")
        controller.submit("")

        assert [r.kind for r in statuses] == [StatusKind.ADDED, StatusKind.EMPTY]
        assert len(changes) == 1

    def test_cue_requested_for_every_submission(self, controller, cue_player):
        controller.submit("a")
        controller.submit("a")
        controller.submit("")

        assert cue_player.kinds == [StatusKind.ADDED, StatusKind.DUPLICATE, StatusKind.EMPTY]

    def test_undo_and_reset_play_nothing(self, controller, cue_player):
        controller.submit("a")
        controller.undo()
        controller.reset()

        assert cue_player.kinds == [StatusKind.ADDED]

    def test_cue_mapping(self):
        assert cue_for_status(StatusKind.DUPLICATE) == CUE_ERROR
        assert cue_for_status(StatusKind.ADDED) == CUE_SUCCESS
        assert cue_for_status(StatusKind.EMPTY) is None
        assert cue_for_status(StatusKind.INFO) is None

    def test_button_states_follow_session(self, controller):
        controller.submit("a")
        assert controller.can_undo and controller.can_reset and controller.can_copy

        controller.submit("a")
        controller.undo()
        assert not controller.can_undo
        assert controller.can_reset
        assert not controller.can_copy


class TestClipboard:

    def test_copy_sends_export_text(self, controller, clipboard):
        for raw in ["b", "a", "b"]:
            controller.submit(raw)

        result = controller.copy_serials()

        assert clipboard == ["B, A"]
        assert result.kind == StatusKind.INFO
        assert "2 serial(es)" in result.message

    def test_copy_with_nothing_to_export(self, controller, clipboard):
        result = controller.copy_serials()

        assert clipboard == []
        assert result.kind == StatusKind.EMPTY

    def test_clipboard_error_reported(self, session_store):
        def broken(text):
            raise ClipboardError("owned by another process")

        ctl = ScanController(session_store, clipboard_sink=broken)
        ctl.submit("a")

        result = ctl.copy_serials()

        assert result.kind == StatusKind.INFO
        assert result.message == "No se pudo acceder al portapapeles"
        ctl.close()

    def test_unexpected_clipboard_failure_reported(self, session_store):
        def broken(text):
            raise RuntimeError("no display")

        ctl = ScanController(session_store, clipboard_sink=broken)
        ctl.submit("a")

        assert ctl.copy_serials().message == "No se pudo acceder al portapapeles"
        ctl.close()


class TestStorageFailures:

    def test_sync_write_failure_reported_after_result(self, controller, session_store):
        statuses = []
        controller.status_changed.connect(statuses.append)

        with patch.object(session_store.kv_store, "set", side_effect=StorageError("disk full", key=STORAGE_KEY)):
            result = controller.submit("a")

        assert result.kind == StatusKind.ADDED
        assert controller.session.unique_serials == ("A",)
        assert [r.kind for r in statuses] == [StatusKind.ADDED, StatusKind.INFO]
        assert statuses[-1].message == "No se pudo guardar la sesión: disk full"

    def test_background_write_failure_reported(self, qtbot, session_store):
        statuses = []
        ctl = ScanController(session_store, clipboard_sink=lambda text: None, async_writes=True)
        ctl.status_changed.connect(statuses.append)

        with patch.object(session_store.kv_store, "set", side_effect=OSError("share offline")):
            ctl.submit("a")
            qtbot.waitUntil(lambda: len(statuses) == 2, timeout=5000)

        assert statuses[0].kind == StatusKind.ADDED
        assert statuses[1].kind == StatusKind.INFO
        assert "share offline" in statuses[1].message
        ctl.close()

    def test_async_writes_reach_disk_on_close(self, session_store, kv_store):
        ctl = ScanController(session_store, clipboard_sink=lambda text: None, async_writes=True)
        for raw in ["a", "b", "c"]:
            ctl.submit(raw)

        ctl.close()

        assert _stored(kv_store)["uniqueSerials"] == ["A", "B", "C"]
