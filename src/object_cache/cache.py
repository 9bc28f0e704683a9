"""Cache-aside orchestration for JSON objects and binary files.

ObjectCache sits in front of a value producer (a network fetch, a computation,
a file generation) and a StorageBackend. A lookup reuses the stored value
while it is fresh, calls the producer when the value is missing or stale, and
can fall back to the stale value when the producer fails.
"""

import inspect
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from object_cache.backends.base import StorageBackend
from object_cache.codecs import Codec, get_codec
from object_cache.mime import get_extension
from object_cache.models import (
    BinaryCacheOptions,
    BinaryWithMetadata,
    CacheOptions,
    CacheResult,
    Representation,
    StoredEntry,
    ValueSource,
)
from object_cache.single_flight import SingleFlight

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Called with the existing value (or None); may be a coroutine function
Producer = Callable[[Optional[T]], Union[Awaitable[T], T]]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class ObjectCache:
    """Caches object/file data in a storage backend.

    The cache holds no values in memory between calls; all state lives in the
    backend. Concurrent lookups of the same key are not coordinated unless
    ``single_flight`` is enabled, so an expired entry may be regenerated by
    several callers at once, with the last write winning.

    With ``single_flight``, callers joining an in-flight lookup receive the
    leader's CacheResult and the same decoded value object, not a copy; treat
    returned values as read-only. Lookups are coalesced per storage identifier
    and explicit mime type, so followers also share the leader's staleness and
    stale-on-error options.

    Attributes:
        backend: Storage backend holding the entries
        clock: Returns the current time, used for staleness checks
    """

    def __init__(
        self,
        backend: StorageBackend,
        single_flight: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the cache.

        Args:
            backend: Storage backend holding the entries
            single_flight: Coalesce concurrent lookups of the same entry into
                one producer call
            clock: Returns the current timezone-aware time
        """
        self.backend = backend
        self.clock = clock
        self._single_flight: Optional[SingleFlight[CacheResult]] = (
            SingleFlight() if single_flight else None
        )

    @staticmethod
    def _get_codec(cache_key: str, representation: Representation) -> Codec:
        if not cache_key:
            raise ValueError("Cache key must be a non-empty string")
        return get_codec(representation)

    def get_storage_id(self, cache_key: str, is_binary: bool = False) -> str:
        """Get the storage identifier for a cache key.

        Args:
            cache_key: A unique key that identifies the cached value
            is_binary: Whether the value is binary

        Returns:
            The key with the representation's suffix applied
        """
        representation = Representation.BINARY if is_binary else Representation.STRUCTURED
        return self._get_codec(cache_key, representation).storage_id(cache_key)

    def _is_expired(self, entry: Optional[StoredEntry], stale_after_seconds: Optional[float]) -> bool:
        if stale_after_seconds is None or entry is None:
            return False
        age = (self.clock() - entry.last_modified).total_seconds()
        return age > stale_after_seconds

    async def resolve(
        self,
        cache_key: str,
        generator: Producer,
        options: Optional[CacheOptions] = None,
    ) -> CacheResult:
        """Get the cached value if it exists and isn't expired, otherwise generate and store it.

        The generator is called at most once per lookup.

        Args:
            cache_key: A unique key that identifies the cached value
            generator: Produces a fresh value when there is a cache miss; called
                with the existing value, or None when nothing is cached
            options: Options to control the cache semantics

        Returns:
            CacheResult describing the value and where it came from

        Raises:
            DecodeError: If the stored entry cannot be decoded
            StorageError: If the backend fails
            Exception: Whatever the generator raised, unless the stale value
                was returned instead
        """
        options = options or CacheOptions()
        codec = self._get_codec(cache_key, options.representation)
        storage_id = codec.storage_id(cache_key)

        if self._single_flight is None:
            result = await self._resolve(cache_key, storage_id, codec, generator, options)
        else:
            # Callers asking for different media types must not share a write
            flight_key = f"{storage_id}|{options.mime_type or ''}"
            result = await self._single_flight.run(
                flight_key,
                lambda: self._resolve(cache_key, storage_id, codec, generator, options),
            )

        if options.is_binary and options.return_binary_metadata:
            result = replace(
                result,
                value=BinaryWithMetadata(
                    data=bytes(result.value),
                    mime_type=result.mime_type,
                    file_extension=get_extension(result.mime_type),
                ),
            )

        return result

    async def _resolve(
        self,
        cache_key: str,
        storage_id: str,
        codec: Codec,
        generator: Producer,
        options: CacheOptions,
    ) -> CacheResult:
        entry = await self.backend.read(storage_id)
        expired = self._is_expired(entry, options.stale_after_seconds)

        if options.mime_type is not None:
            mime_type = options.mime_type
        elif entry is not None:
            mime_type = entry.media_type
        else:
            mime_type = codec.default_mime_type

        existing = codec.decode(entry.data, storage_id) if entry is not None else None

        if entry is None or expired:
            if entry is None:
                logger.debug(f"Cache value '{cache_key}' empty; getting data for the first time")
            else:
                logger.info(
                    f"Cache value '{cache_key}' expired: {entry.last_modified.isoformat()}"
                )

            try:
                value = generator(existing)
                if inspect.isawaitable(value):
                    value = await value
            except Exception as e:
                if entry is None or not options.return_stale_result_on_error:
                    raise
                logger.error(f"Error regenerating cache value '{cache_key}'", exc_info=e)
                logger.warning(
                    f"Received error {str(e) or type(e).__name__} when trying to repopulate "
                    f"cache value '{cache_key}'; failing gracefully and using the cache"
                )
                result = CacheResult(
                    value=existing,
                    source=ValueSource.STALE_FALLBACK,
                    mime_type=mime_type,
                    error=e,
                )
            else:
                await self.backend.write(storage_id, codec.encode(value), mime_type)
                logger.info(f"Cached value '{storage_id}' written")
                result = CacheResult(value=value, source=ValueSource.GENERATED, mime_type=mime_type)
        else:
            logger.debug(
                f"Found cached value '{storage_id}' which is within "
                f"{options.stale_after_seconds} seconds old so using that"
            )
            result = CacheResult(value=existing, source=ValueSource.CACHED, mime_type=mime_type)

        return result

    async def get_or_generate(
        self,
        cache_key: str,
        generator: Producer,
        options: Optional[CacheOptions] = None,
    ) -> Any:
        """Get the cached value if it exists and isn't expired, otherwise generate and store it.

        Args:
            cache_key: A unique key that identifies the cached value
            generator: Produces a fresh value when there is a cache miss
            options: Options to control the cache semantics

        Returns:
            The cached, generated, or (on generator failure) stale value
        """
        result = await self.resolve(cache_key, generator, options)
        return result.value

    async def get_or_generate_binary(
        self,
        cache_key: str,
        generator: Producer,
        options: Optional[BinaryCacheOptions] = None,
    ) -> BinaryWithMetadata:
        """Binary variant of get_or_generate that returns the media type and extension too.

        Args:
            cache_key: A unique key that identifies the cached value
            generator: Produces fresh bytes when there is a cache miss
            options: Options to control the cache semantics

        Returns:
            BinaryWithMetadata for the cached or generated data
        """
        options = options or BinaryCacheOptions()
        result = await self.resolve(cache_key, generator, options.to_cache_options())
        return result.value

    async def put(
        self,
        cache_key: str,
        data: Any,
        mime_type: Optional[str] = None,
        is_binary: Optional[bool] = None,
    ) -> None:
        """Add the given value to the cache, replacing any existing value.

        Args:
            cache_key: A unique key that identifies the cached value
            data: The data to cache
            mime_type: Media type of the data; defaults to application/json or
                application/octet-stream depending on the representation
            is_binary: Store as binary; when None, bytes-like data is binary
                and anything else is JSON
        """
        if is_binary is None:
            is_binary = isinstance(data, (bytes, bytearray, memoryview))

        representation = Representation.BINARY if is_binary else Representation.STRUCTURED
        codec = self._get_codec(cache_key, representation)
        storage_id = codec.storage_id(cache_key)

        await self.backend.write(
            storage_id,
            codec.encode(data),
            mime_type if mime_type is not None else codec.default_mime_type,
        )
        logger.debug(f"Cached value '{storage_id}' written")

    async def put_binary(self, cache_key: str, data: bytes, mime_type: Optional[str] = None) -> None:
        """Add the given binary value to the cache.

        Args:
            cache_key: A unique key that identifies the cached value
            data: The binary data to cache
            mime_type: Media type of the data; default application/octet-stream
        """
        await self.put(cache_key, data, mime_type, is_binary=True)

    async def clear(self, cache_key: str) -> None:
        """Clear the cached values for the given cache key.

        Removes both the JSON and the binary entry; missing entries are ignored.

        Args:
            cache_key: A unique key that identifies the cached value
        """
        for representation in Representation:
            storage_id = self._get_codec(cache_key, representation).storage_id(cache_key)
            await self.backend.delete(storage_id)
        logger.info(f"Cleared cache value '{cache_key}'")

    async def exists(self, cache_key: str, is_binary: bool = False) -> bool:
        """Check whether a value is cached for the key.

        Args:
            cache_key: A unique key that identifies the cached value
            is_binary: Check the binary entry rather than the JSON one

        Returns:
            True if an entry is stored, regardless of staleness
        """
        return await self.backend.exists(self.get_storage_id(cache_key, is_binary))

    async def get(self, cache_key: str, is_binary: bool = False) -> Optional[Any]:
        """Get the cached value without generating one, regardless of staleness.

        Args:
            cache_key: A unique key that identifies the cached value
            is_binary: Read the binary entry rather than the JSON one

        Returns:
            The decoded value, or None if nothing is cached

        Raises:
            DecodeError: If the stored entry cannot be decoded
        """
        representation = Representation.BINARY if is_binary else Representation.STRUCTURED
        codec = self._get_codec(cache_key, representation)
        storage_id = codec.storage_id(cache_key)

        entry = await self.backend.read(storage_id)
        if entry is None:
            return None
        return codec.decode(entry.data, storage_id)

    async def inspect(self, cache_key: str, is_binary: bool = False) -> Optional[StoredEntry]:
        """Read the raw stored entry for a key without decoding or regenerating.

        Args:
            cache_key: A unique key that identifies the cached value
            is_binary: Read the binary entry rather than the JSON one

        Returns:
            The stored entry, or None if nothing is cached
        """
        return await self.backend.read(self.get_storage_id(cache_key, is_binary))
