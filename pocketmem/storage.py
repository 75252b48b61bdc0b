"""Persistent storage for the memory list.

The whole collection lives as one JSON array under a single key of a small
SQLite key-value table. Mutations are pure functions over an immutable
snapshot; :class:`MemoryStore` owns the current snapshot and writes it through
after every accepted change.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from .config import BACKUP_SUFFIX, DEFAULT_EXPIRES, MEMORY_TYPE, SAVE_WARNING, STORAGE_KEY
from .errors import MemoryImportError, StorageError, ValidationError
from .schemas import Memory, dumps_memories

logger = logging.getLogger(__name__)

Snapshot = Tuple[Memory, ...]


class KeyValueDatabase:
    """Small SQLite wrapper exposing string values under string keys."""

    def __init__(self, db_path: str = ":memory:") -> None:
        try:
            self.connection = sqlite3.connect(db_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open database {db_path!r}: {exc}") from exc
        self.connection.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._create_schema()

    def _create_schema(self) -> None:
        with self._lock:
            try:
                self.connection.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                self.connection.commit()
            except sqlite3.Error as exc:
                self.connection.close()
                raise StorageError(f"Cannot initialise database: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        try:
            cur = self.connection.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cur.fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read {key!r}: {exc}") from exc
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            try:
                self.connection.execute(
                    """
                    INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, value, now),
                )
                self.connection.commit()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        with self._lock:
            try:
                self.connection.execute("DELETE FROM kv WHERE key = ?", (key,))
                self.connection.commit()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to delete {key!r}: {exc}") from exc

    def close(self) -> None:
        self.connection.close()


# ----------------------------------------------------------------------
# Pure transitions
# ----------------------------------------------------------------------
def _require_content(what: str, value: str) -> Tuple[str, str]:
    what = (what or "").strip()
    value = (value or "").strip()
    if not what or not value:
        raise ValidationError("Both 'what' and 'value' must be non-empty.")
    return what, value


def add_memory(
    memories: Sequence[Memory],
    what: str,
    value: str,
    *,
    type: str = MEMORY_TYPE,
    expires: str = DEFAULT_EXPIRES,
) -> Tuple[Snapshot, Memory]:
    what, value = _require_content(what, value)
    existing = {memory.id for memory in memories}
    memory = Memory(what=what, value=value, type=type or MEMORY_TYPE, expires=expires or DEFAULT_EXPIRES)
    while memory.id in existing:
        memory = Memory(what=what, value=value, type=memory.type, expires=memory.expires)
    return tuple(memories) + (memory,), memory


def edit_memory(memories: Sequence[Memory], memory_id: str, what: str, value: str) -> Snapshot:
    what, value = _require_content(what, value)
    return tuple(
        memory.with_content(what, value) if memory.id == memory_id else memory
        for memory in memories
    )


def delete_memory(memories: Sequence[Memory], memory_id: str) -> Snapshot:
    return tuple(memory for memory in memories if memory.id != memory_id)


def export_memories(memories: Iterable[Memory]) -> bytes:
    return dumps_memories(memories, indent=2).encode("utf-8")


def export_filename(today: Optional[date] = None) -> str:
    return f"memories-{(today or date.today()).isoformat()}.json"


def parse_memories(payload: bytes | str) -> Snapshot:
    """Decode an import payload; the root must be a JSON array of objects."""

    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MemoryImportError("Import file is not UTF-8 text.") from exc
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MemoryImportError(f"Import file is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, list):
        raise MemoryImportError("Import file must contain a JSON array of memories.")

    memories: List[Memory] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise MemoryImportError(f"Entry {index} is not a memory object.")
        memories.append(Memory.from_payload(item))
    return tuple(memories)


# ----------------------------------------------------------------------
# Stateful store
# ----------------------------------------------------------------------
class MemoryStore:
    """Own the current memory snapshot and persist it after each mutation."""

    def __init__(
        self,
        database: KeyValueDatabase,
        *,
        key: str = STORAGE_KEY,
        on_change: Optional[Callable[[Snapshot], None]] = None,
    ) -> None:
        self.database = database
        self.key = key
        self.on_change = on_change
        self.last_warning: Optional[str] = None
        self._memories: Snapshot = ()

    @property
    def memories(self) -> Snapshot:
        return self._memories

    @property
    def backup_key(self) -> str:
        return f"{self.key}{BACKUP_SUFFIX}"

    def __len__(self) -> int:
        return len(self._memories)

    def get(self, memory_id: str) -> Optional[Memory]:
        for memory in self._memories:
            if memory.id == memory_id:
                return memory
        return None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load(self) -> Snapshot:
        """Read the persisted list; any failure yields an empty list."""

        try:
            blob = self.database.get(self.key)
        except StorageError as exc:
            logger.error("Could not read stored memories: %s", exc)
            blob = None
        if blob is None:
            logger.info("No stored memories found under %s", self.key)
            self._memories = ()
            return self._memories
        try:
            self._memories = parse_memories(blob)
        except MemoryImportError as exc:
            logger.error("Stored memories are unreadable, starting empty: %s", exc)
            self._memories = ()
            return self._memories
        logger.info("Loaded %s memories", len(self._memories))
        return self._memories

    def save(self, memories: Sequence[Memory]) -> Optional[str]:
        """Write ``memories``; return a warning instead of raising on failure."""

        try:
            self.database.set(self.key, dumps_memories(memories))
        except StorageError as exc:
            logger.warning("Failed to save memories: %s", exc)
            self.last_warning = SAVE_WARNING
            return SAVE_WARNING
        self.last_warning = None
        return None

    def _commit(self, memories: Snapshot) -> Snapshot:
        self._memories = memories
        self.save(memories)
        if self.on_change is not None:
            self.on_change(memories)
        return memories

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add(
        self,
        what: str,
        value: str,
        *,
        type: str = MEMORY_TYPE,
        expires: str = DEFAULT_EXPIRES,
    ) -> Memory:
        memories, memory = add_memory(self._memories, what, value, type=type, expires=expires)
        self._commit(memories)
        return memory

    def edit(self, memory_id: str, what: str, value: str) -> Snapshot:
        memories = edit_memory(self._memories, memory_id, what, value)
        if memories == self._memories:
            return self._memories
        return self._commit(memories)

    def delete(self, memory_id: str) -> Snapshot:
        memories = delete_memory(self._memories, memory_id)
        if len(memories) == len(self._memories):
            return self._memories
        return self._commit(memories)

    def replace(self, memories: Iterable[Memory]) -> Snapshot:
        return self._commit(tuple(memories))

    def clear(self) -> Snapshot:
        return self.replace(())

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------
    def export_all(self) -> bytes:
        return export_memories(self._memories)

    def import_all(self, payload: bytes | str) -> Snapshot:
        """Replace the whole collection with ``payload``.

        The previous collection is kept under :attr:`backup_key` first.
        """

        memories = parse_memories(payload)
        try:
            self.database.set(self.backup_key, dumps_memories(self._memories))
        except StorageError as exc:
            logger.warning("Could not back up memories before import: %s", exc)
        logger.info("Importing %s memories, replacing %s", len(memories), len(self._memories))
        return self.replace(memories)

    def restore_backup(self) -> Snapshot:
        blob = self.database.get(self.backup_key)
        if blob is None:
            raise MemoryImportError("No backup is available.")
        return self.replace(parse_memories(blob))


__all__ = [
    "KeyValueDatabase",
    "MemoryStore",
    "Snapshot",
    "add_memory",
    "delete_memory",
    "edit_memory",
    "export_filename",
    "export_memories",
    "parse_memories",
]
