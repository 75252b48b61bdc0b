from __future__ import annotations

from typing import Iterator

import pytest

from pocketmem.storage import KeyValueDatabase, MemoryStore


@pytest.fixture
def database() -> Iterator[KeyValueDatabase]:
    db = KeyValueDatabase(":memory:")
    yield db
    db.close()


@pytest.fixture
def store(database: KeyValueDatabase) -> MemoryStore:
    memory_store = MemoryStore(database)
    memory_store.load()
    return memory_store
