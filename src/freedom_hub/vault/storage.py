# Quick Unlock Vault - Local Key-Value Storage
#
# The vault persists one string value under one fixed key. Any object with
# get / set / delete satisfies KeyValueStore. Implementations raise
# StorageError for I/O failures so the vault surfaces one error type.
#
#   MemoryStore    - process memory (tests, ephemeral sessions)
#   JsonFileStore  - one JSON document, atomic replace, mode 0600
#   SQLiteStore    - kv table in a WAL-mode SQLite database

import asyncio
import json
import logging
import os
import sqlite3
import tempfile
import weakref
from pathlib import Path
from typing import Dict, Optional, Protocol, Union, runtime_checkable

from ..core.db import connect
from .errors import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool:
        """Remove `key`; True if something was removed."""
        ...


class CorruptStoreFile(StorageError):
    """The store document exists but cannot be parsed."""


class MemoryStore:
    """Dict-backed store. Contents vanish with the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class JsonFileStore:
    """
    Key-value pairs kept in a single JSON file.

    Writes go to a temp file in the same directory and are moved into place
    with os.replace, so readers see either the old or the new document,
    never a partial one. The file is restricted to the owner (0600).

    Reading an unparseable document raises CorruptStoreFile. Writes and
    deletes move such a document aside to `<name>.corrupt` and continue
    from an empty one, so the record can always be cleared or replaced.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}") from e

        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except ValueError as e:
            raise CorruptStoreFile(f"Store file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CorruptStoreFile(f"Store file {self.path} must hold a JSON object")
        return data

    def _load_for_write(self) -> Dict[str, str]:
        try:
            return self._load()
        except CorruptStoreFile as e:
            self._set_aside(e)
            return {}

    def _set_aside(self, reason: CorruptStoreFile) -> None:
        corrupt = self.path.with_name(self.path.name + ".corrupt")
        logger.warning("%s; moving it to %s and starting empty", reason, corrupt)
        try:
            os.replace(self.path, corrupt)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to move aside {self.path}: {e}") from e

    def _save(self, data: Dict[str, str]) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise StorageError(f"Failed to write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load_for_write()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> bool:
        try:
            data = self._load()
        except CorruptStoreFile as e:
            self._set_aside(e)
            return True
        if key not in data:
            return False
        del data[key]
        self._save(data)
        return True


class SQLiteStore:
    """Key-value pairs in a `kv` table of a local SQLite database."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS kv (
                            key TEXT PRIMARY KEY,
                            value TEXT NOT NULL
                        )
                    """)
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open {self.db_path}: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        return connect(self.db_path)

    def get(self, key: str) -> Optional[str]:
        try:
            conn = self._connect()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                        (key, value),
                    )
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write {key!r}: {e}") from e

    def delete(self, key: str) -> bool:
        try:
            conn = self._connect()
            try:
                with conn:
                    cursor = conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete {key!r}: {e}") from e
        return cursor.rowcount > 0


def create_store(backend: str, data_dir: Union[str, Path]) -> KeyValueStore:
    """Build the store named by `backend` ("file", "sqlite" or "memory")."""
    data_dir = Path(data_dir)
    if backend == "file":
        return JsonFileStore(data_dir / "quick_unlock.json")
    if backend == "sqlite":
        return SQLiteStore(data_dir / "quick_unlock.db")
    if backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown store backend: {backend!r}")


# ── Per-record locks ─────────────────────────────────────────────────

# store -> {storage key -> lock}; entries go away with the store
_record_locks: "weakref.WeakKeyDictionary[object, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def record_lock(store: KeyValueStore, key: str) -> asyncio.Lock:
    """
    Lock shared by every vault that uses `key` in `store`.

    Serialises enable / unlock / disable on one record so a concurrent
    enable and disable cannot interleave their read and write.
    """
    locks = _record_locks.setdefault(store, {})
    lock = locks.get(key)
    if lock is None:
        lock = locks[key] = asyncio.Lock()
        logger.debug("Created record lock for %r", key)
    return lock
