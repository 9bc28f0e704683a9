"""Storage backend contract."""

import asyncio
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Callable, Optional, TypeVar

from object_cache.models import StoredEntry

T = TypeVar("T")


class StorageBackend(ABC):
    """Durable storage for cache entries keyed by storage identifier.

    Storage identifiers are derived by ObjectCache from the caller's cache key
    and value representation; backends map them to physical names.
    """

    @abstractmethod
    async def read(self, storage_id: str) -> Optional[StoredEntry]:
        """Read an entry.

        Args:
            storage_id: Storage identifier

        Returns:
            The stored entry, or None if nothing is stored under the identifier

        Raises:
            StorageError: If the backend fails for any reason other than absence
        """

    @abstractmethod
    async def write(self, storage_id: str, data: bytes, media_type: str) -> None:
        """Write an entry, replacing any existing one.

        Args:
            storage_id: Storage identifier
            data: Payload to store
            media_type: Media type of the payload

        Raises:
            StorageError: If the write fails
        """

    @abstractmethod
    async def delete(self, storage_id: str) -> None:
        """Delete an entry; deleting a missing entry succeeds.

        Raises:
            StorageError: If the delete fails
        """

    @abstractmethod
    async def exists(self, storage_id: str) -> bool:
        """Check whether an entry is stored under the identifier."""

    @staticmethod
    async def _run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run blocking I/O in the event loop's default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))
