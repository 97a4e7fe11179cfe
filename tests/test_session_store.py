"""
Unit tests for src/session_store.py: key-value store and session persistence.

Tests cover:
- JsonKeyValueStore get/set and atomic replacement
- Forgiving reads (missing, malformed, non-UTF-8 files)
- Strict writes (StorageError on failure, no temp files left behind)
- SessionStore load/save with the versioned key and record envelope
"""

import json
from unittest.mock import patch

import pytest

from conftest import make_record
from exceptions import StorageError
from scan_session import ScanSession
from session_store import (
    RECORD_VERSION,
    STORAGE_KEY,
    JsonKeyValueStore,
    SessionStore,
    is_valid_key,
)


class TestJsonKeyValueStore:

    def test_missing_key_reads_none(self, kv_store):
        assert kv_store.get("absent") is None

    def test_set_then_get(self, kv_store, state_dir):
        kv_store.set("k1", {"a": [1, 2]})

        assert kv_store.get("k1") == {"a": [1, 2]}
        assert (state_dir / "k1.json").exists()

    def test_set_overwrites(self, kv_store):
        kv_store.set("k1", {"v": 1})
        kv_store.set("k1", {"v": 2})

        assert kv_store.get("k1") == {"v": 2}

    def test_set_creates_directory(self, tmp_path):
        store = JsonKeyValueStore(tmp_path / "nested" / "dir")

        store.set("k", [1])

        assert store.get("k") == [1]

    def test_malformed_json_reads_none(self, kv_store, state_dir):
        (state_dir / "k.json").write_text("{not json", encoding="utf-8")

        assert kv_store.get("k") is None

    def test_non_utf8_file_reads_none(self, kv_store, state_dir):
        (state_dir / "k.json").write_bytes(b"\xff\xfe\xfa")

        assert kv_store.get("k") is None

    def test_no_temp_files_left_after_write(self, kv_store, state_dir):
        kv_store.set("k", {"x": 1})

        assert [p.name for p in state_dir.iterdir()] == ["k.json"]

    def test_failed_write_raises_storage_error(self, kv_store, state_dir):
        with patch("session_store.shutil.move", side_effect=OSError("disk full")):
            with pytest.raises(StorageError) as exc_info:
                kv_store.set("k", {"x": 1})

        assert exc_info.value.key == "k"
        assert "disk full" in str(exc_info.value)
        assert list(state_dir.iterdir()) == []

    def test_unserializable_value_raises_storage_error(self, kv_store):
        with pytest.raises(StorageError):
            kv_store.set("k", {"x": object()})

    def test_failed_write_keeps_previous_value(self, kv_store):
        kv_store.set("k", {"v": 1})

        with patch("session_store.shutil.move", side_effect=OSError("boom")):
            with pytest.raises(StorageError):
                kv_store.set("k", {"v": 2})

        assert kv_store.get("k") == {"v": 1}

    @pytest.mark.parametrize("key", ["../evil", "a/b", "", "sp ace"])
    def test_invalid_keys_rejected(self, kv_store, key):
        assert not is_valid_key(key)
        with pytest.raises(ValueError):
            kv_store.get(key)

    def test_default_key_is_valid_and_versioned(self):
        assert is_valid_key(STORAGE_KEY)
        assert STORAGE_KEY.endswith("_v1")


class TestSessionStore:

    def test_load_without_record_is_empty(self, session_store):
        session = session_store.load()

        assert session.is_empty

    def test_save_then_load(self, session_store):
        session = ScanSession()
        for raw in ["a", "b", "a"]:
            session.submit(raw)

        session_store.save(session)
        loaded = session_store.load()

        assert loaded.unique_serials == ("A", "B")
        assert loaded.scan_count == 3
        assert loaded.duplicate_events == session.duplicate_events

    def test_record_envelope(self, session_store, state_dir):
        session = ScanSession()
        session.submit("a")

        session_store.save(session)

        with open(state_dir / f"{STORAGE_KEY}.json", encoding="utf-8") as f:
            record = json.load(f)
        assert record["version"] == RECORD_VERSION
        assert record["station"] == "TEST-STATION"
        assert "timestamp" in record
        assert record["data"] == session.to_dict()

    def test_load_corrupt_file_is_empty(self, session_store, state_dir):
        (state_dir / f"{STORAGE_KEY}.json").write_text("]]]", encoding="utf-8")

        assert session_store.load().is_empty

    def test_load_partially_valid_record(self, session_store, kv_store):
        kv_store.set(STORAGE_KEY, {"version": "1.0", "data": make_record(["A"], "bad", 1)})

        loaded = session_store.load()

        assert loaded.unique_serials == ("A",)
        assert loaded.duplicate_events == ()
        assert loaded.scan_count == 1

    def test_load_survives_store_exception(self, kv_store):
        store = SessionStore(kv_store, station="S")
        with patch.object(kv_store, "get", side_effect=RuntimeError("unexpected")):
            assert store.load().is_empty

    def test_custom_key_is_isolated(self, kv_store):
        other = SessionStore(kv_store, key="other_pallet_v1", station="S")
        session = ScanSession()
        session.submit("z")
        other.save(session)

        assert SessionStore(kv_store, station="S").load().is_empty
        assert other.load().unique_serials == ("Z",)

    def test_save_failure_raises_storage_error(self, session_store):
        with patch.object(session_store.kv_store, "set", side_effect=StorageError("denied", key=STORAGE_KEY)):
            with pytest.raises(StorageError):
                session_store.save(ScanSession())

    def test_station_defaults_to_hostname(self, kv_store):
        with patch("session_store.socket.gethostname", return_value="HOST-1"):
            store = SessionStore(kv_store)

        assert store.station == "HOST-1"

    def test_load_ignores_unsupported_record_version(self, session_store, kv_store):
        kv_store.set(STORAGE_KEY, {"version": "2.0", "data": make_record(["A"], [], 1)})

        assert session_store.load().is_empty
