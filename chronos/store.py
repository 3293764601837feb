import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from queue import Empty, Queue
from typing import Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from . import config
from .core.errors import PersistenceError, StateError

__all__ = [
    "AGGREGATE_KEY",
    "KeyValueStore",
    "KeyringStore",
    "MemoryStore",
    "SaveWorker",
    "SqliteStore",
    "get_db",
    "open_store",
]

logger = logging.getLogger(__name__)

AGGREGATE_KEY = "aggregate"


class KeyValueStore(Protocol):
    def store(self, key: str, value: str) -> None: ...

    def retrieve(self, key: str) -> str | None: ...

    def delete(self, key: str) -> None: ...


# ── backends ─────────────────────────────────────────────────────────────────


class MemoryStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self.writes = 0

    def store(self, key: str, value: str) -> None:
        self._data[key] = value
        self.writes += 1

    def retrieve(self, key: str) -> str | None:
        return self._data.get(key)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class KeyringStore:
    """Secure store on the OS keychain via keyring."""

    def __init__(self, service: str | None = None):
        self.service = service or config.get_keyring_service()

    def store(self, key: str, value: str) -> None:
        try:
            keyring.set_password(self.service, key, value)
        except KeyringError as e:
            raise PersistenceError(f"keyring write failed for '{key}': {e}") from e

    def retrieve(self, key: str) -> str | None:
        try:
            return keyring.get_password(self.service, key)
        except KeyringError as e:
            raise PersistenceError(f"keyring read failed for '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            return
        except KeyringError as e:
            raise PersistenceError(f"keyring delete failed for '{key}': {e}") from e


@contextmanager
def get_db(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    db_path = db_path if db_path else config.DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA journal_mode=WAL")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class SqliteStore:
    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path
        with self._conn() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        try:
            with get_db(self.db_path) as conn:
                yield conn
        except (sqlite3.Error, OSError) as e:
            raise PersistenceError(f"sqlite store: {e}") from e

    def store(self, key: str, value: str) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def retrieve(self, key: str) -> str | None:
        with self._conn() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def delete(self, key: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))


def open_store(backend: str | None = None) -> KeyValueStore:
    backend = backend or config.get_store_backend()
    if backend == "keyring":
        return KeyringStore()
    if backend == "memory":
        return MemoryStore()
    return SqliteStore()


# ── background saves ─────────────────────────────────────────────────────────


class SaveWorker:
    """Single consumer for save requests.

    Requests carry a version that grows with every mutation. When several are
    queued only the newest is written, and nothing older than the last write
    is ever applied. Failed writes are logged and dropped.
    """

    def __init__(self, store: KeyValueStore, key: str = AGGREGATE_KEY):
        self.store = store
        self.key = key
        self.written_version = 0
        self._queue: Queue[tuple[int, str] | None] = Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name="chronos-save", daemon=True)
        self._thread.start()

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, version: int, blob: str) -> None:
        if self._closed:
            raise StateError("save worker is closed")
        self._queue.put((version, blob))

    def flush(self) -> None:
        self._queue.join()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put(None)
        self._thread.join()

    def _run(self) -> None:
        while True:
            batch = [self._queue.get()]
            while True:
                try:
                    batch.append(self._queue.get_nowait())
                except Empty:
                    break
            try:
                pending = [item for item in batch if item is not None]
                if pending:
                    self._write(*max(pending, key=lambda item: item[0]))
            finally:
                for _ in batch:
                    self._queue.task_done()
            if None in batch:
                return

    def _write(self, version: int, blob: str) -> None:
        if version <= self.written_version:
            return
        try:
            self.store.store(self.key, blob)
        except Exception:
            logger.exception("save v%d failed; in-memory state stays authoritative", version)
            return
        self.written_version = version
