"""Shared fixtures for object-cache tests."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from object_cache.backends import FileSystemBackend, StorageBackend
from object_cache.cache import ObjectCache
from object_cache.models import StoredEntry


class FakeClock:
    """Controllable clock returning timezone-aware UTC datetimes."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemoryBackend(StorageBackend):
    """Dict-backed backend that timestamps writes with the fake clock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.entries: dict[str, StoredEntry] = {}
        self.writes: list[str] = []
        self.deletes: list[str] = []

    async def read(self, storage_id: str) -> Optional[StoredEntry]:
        return self.entries.get(storage_id)

    async def write(self, storage_id: str, data: bytes, media_type: str) -> None:
        self.entries[storage_id] = StoredEntry(
            data=data, media_type=media_type, last_modified=self.clock()
        )
        self.writes.append(storage_id)

    async def delete(self, storage_id: str) -> None:
        self.entries.pop(storage_id, None)
        self.deletes.append(storage_id)

    async def exists(self, storage_id: str) -> bool:
        return storage_id in self.entries


@pytest.fixture
def clock():
    """Fake clock starting at 2024-01-01 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def memory_backend(clock):
    """In-memory backend sharing the fake clock."""
    return InMemoryBackend(clock)


@pytest.fixture
def memory_cache(memory_backend, clock):
    """ObjectCache over the in-memory backend."""
    return ObjectCache(memory_backend, clock=clock)


@pytest.fixture
def tmp_cache_dir(tmp_path):
    """Temporary cache directory (not yet created)."""
    return tmp_path / ".cache"


@pytest.fixture
def fs_backend(tmp_cache_dir):
    """FileSystemBackend over a freshly created temporary directory."""
    return FileSystemBackend(tmp_cache_dir, create_directory=True)


@pytest.fixture
def fs_cache(fs_backend):
    """ObjectCache over the filesystem backend using the real clock."""
    return ObjectCache(fs_backend)
