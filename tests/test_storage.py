# Tests for Quick Unlock local storage
# Covers: MemoryStore, JsonFileStore (atomic write, permissions, corrupt
#         file), SQLiteStore (WAL, persistence), create_store, record locks

import asyncio
import json
import os
import stat
import sys

import pytest

from freedom_hub.vault.errors import StorageError
from freedom_hub.vault.storage import (
    CorruptStoreFile,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    SQLiteStore,
    create_store,
    record_lock,
)


@pytest.fixture(params=["memory", "file", "sqlite"])
def any_store(request, tmp_path):
    return create_store(request.param, tmp_path / "data")


class TestCommonBehaviour:
    def test_satisfies_protocol(self, any_store):
        assert isinstance(any_store, KeyValueStore)

    def test_missing_key_is_none(self, any_store):
        assert any_store.get("biometric.vault.v1") is None

    def test_set_get_overwrite(self, any_store):
        any_store.set("k", "one")
        assert any_store.get("k") == "one"
        any_store.set("k", "two")
        assert any_store.get("k") == "two"

    def test_delete_is_idempotent(self, any_store):
        any_store.set("k", "v")
        assert any_store.delete("k") is True
        assert any_store.get("k") is None
        assert any_store.delete("k") is False
        assert any_store.get("k") is None

    def test_keys_are_independent(self, any_store):
        any_store.set("a", "1")
        any_store.set("b", "2")
        any_store.delete("a")
        assert any_store.get("b") == "2"


class TestJsonFileStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "quick_unlock.json"
        JsonFileStore(path).set("k", "v")
        assert JsonFileStore(path).get("k") == "v"
        assert json.loads(path.read_text()) == {"k": "v"}

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_owner_only_permissions(self, tmp_path):
        path = tmp_path / "quick_unlock.json"
        JsonFileStore(path).set("k", "v")
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path):
        store = JsonFileStore(tmp_path / "quick_unlock.json")
        store.set("k", "v")
        store.delete("k")
        assert [p.name for p in tmp_path.iterdir()] == ["quick_unlock.json"]

    def test_empty_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "quick_unlock.json"
        path.write_text("")
        assert JsonFileStore(path).get("k") is None

    def test_corrupt_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "quick_unlock.json"
        path.write_text("{not json")
        with pytest.raises(CorruptStoreFile) as exc_info:
            JsonFileStore(path).get("k")
        assert isinstance(exc_info.value, StorageError)

    def test_delete_clears_corrupt_file(self, tmp_path, caplog):
        path = tmp_path / "quick_unlock.json"
        path.write_text("{truncated")
        store = JsonFileStore(path)

        with caplog.at_level("WARNING", logger="freedom_hub.vault.storage"):
            assert store.delete("k") is True
        assert "not valid JSON" in caplog.text

        assert store.get("k") is None
        assert (tmp_path / "quick_unlock.json.corrupt").read_text() == "{truncated"
        assert store.delete("k") is False

    def test_set_replaces_corrupt_file(self, tmp_path):
        path = tmp_path / "quick_unlock.json"
        path.write_text("[1, 2]")
        store = JsonFileStore(path)

        store.set("k", "v")

        assert json.loads(path.read_text()) == {"k": "v"}
        assert (tmp_path / "quick_unlock.json.corrupt").read_text() == "[1, 2]"

    def test_unreadable_file_still_raises_on_write(self, tmp_path, monkeypatch):
        path = tmp_path / "quick_unlock.json"
        path.write_text('{"k": "v"}')
        store = JsonFileStore(path)

        def denied(*args, **kwargs):
            raise PermissionError("permission denied")

        monkeypatch.setattr("freedom_hub.vault.storage.open", denied, raising=False)
        with pytest.raises(StorageError, match="permission denied"):
            store.delete("k")
        with pytest.raises(StorageError, match="permission denied"):
            store.set("k", "w")
        monkeypatch.undo()

        assert store.get("k") == "v"
        assert not (tmp_path / "quick_unlock.json.corrupt").exists()

    def test_non_object_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "quick_unlock.json"
        path.write_text("[1, 2]")
        with pytest.raises(StorageError):
            JsonFileStore(path).get("k")

    def test_failed_write_keeps_previous_document(self, tmp_path, monkeypatch):
        path = tmp_path / "quick_unlock.json"
        store = JsonFileStore(path)
        store.set("k", "old")

        def boom(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("freedom_hub.vault.storage.os.replace", boom)
        with pytest.raises(StorageError, match="disk full"):
            store.set("k", "new")

        assert store.get("k") == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["quick_unlock.json"]


class TestSQLiteStore:
    def test_persists_across_instances(self, tmp_path):
        db = tmp_path / "quick_unlock.db"
        SQLiteStore(db).set("k", "v")
        assert SQLiteStore(db).get("k") == "v"

    def test_uses_wal(self, tmp_path):
        from freedom_hub.core.db import connect

        db = tmp_path / "quick_unlock.db"
        SQLiteStore(db)
        conn = connect(db)
        try:
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        finally:
            conn.close()
        assert mode.lower() == "wal"

    def test_unusable_path_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.mkdir()
        with pytest.raises(StorageError):
            SQLiteStore(blocker)


def test_create_store_types(tmp_path):
    assert isinstance(create_store("memory", tmp_path), MemoryStore)
    assert isinstance(create_store("file", tmp_path), JsonFileStore)
    assert isinstance(create_store("sqlite", tmp_path), SQLiteStore)
    with pytest.raises(ValueError):
        create_store("redis", tmp_path)


class TestRecordLock:
    def test_same_store_and_key_share_lock(self):
        store = MemoryStore()
        assert record_lock(store, "k") is record_lock(store, "k")

    def test_different_keys_or_stores_do_not(self):
        store = MemoryStore()
        assert record_lock(store, "a") is not record_lock(store, "b")
        assert record_lock(MemoryStore(), "a") is not record_lock(store, "a")

    @pytest.mark.asyncio
    async def test_lock_serialises(self):
        store = MemoryStore()
        order = []

        async def worker(name):
            async with record_lock(store, "k"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )
