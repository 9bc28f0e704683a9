"""Data models for cache options, stored entries and results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Representation(str, Enum):
    """How a cached value is represented in storage."""

    STRUCTURED = "structured"
    BINARY = "binary"


class ValueSource(str, Enum):
    """Where the value returned by a cache lookup came from."""

    CACHED = "cached"
    GENERATED = "generated"
    STALE_FALLBACK = "stale_fallback"


@dataclass
class CacheOptions:
    """Options to control cache semantics for a single lookup.

    Attributes:
        stale_after_seconds: Seconds after caching at which a value is considered
            stale; None caches forever
        return_stale_result_on_error: Return the existing (stale) value if
            generating a fresh one fails
        is_binary: Whether the value is raw bytes rather than a JSON value
        mime_type: Media type of the data; inferred from the stored entry or the
            representation default when omitted
        return_binary_metadata: [Internal] wrap binary results in
            BinaryWithMetadata instead of returning raw bytes
    """

    stale_after_seconds: Optional[float] = None
    return_stale_result_on_error: bool = False
    is_binary: bool = False
    mime_type: Optional[str] = None
    return_binary_metadata: bool = False

    def __post_init__(self) -> None:
        if self.stale_after_seconds is not None and self.stale_after_seconds < 0:
            raise ValueError(
                f"stale_after_seconds must be non-negative, got {self.stale_after_seconds}"
            )

    @property
    def representation(self) -> Representation:
        """Representation tag selecting the codec and storage suffix."""
        return Representation.BINARY if self.is_binary else Representation.STRUCTURED


@dataclass
class BinaryCacheOptions:
    """Options to control cache semantics for a binary lookup.

    Same as CacheOptions without the representation flags, which the binary
    entry points fix themselves.
    """

    stale_after_seconds: Optional[float] = None
    return_stale_result_on_error: bool = False
    mime_type: Optional[str] = None

    def to_cache_options(self) -> CacheOptions:
        """Expand into CacheOptions for a binary lookup returning metadata."""
        return CacheOptions(
            stale_after_seconds=self.stale_after_seconds,
            return_stale_result_on_error=self.return_stale_result_on_error,
            is_binary=True,
            mime_type=self.mime_type,
            return_binary_metadata=True,
        )


@dataclass(frozen=True)
class StoredEntry:
    """An entry as persisted by a storage backend.

    Attributes:
        data: Raw stored payload
        media_type: Media type recorded for the payload
        last_modified: Timezone-aware time the backend wrote the entry
    """

    data: bytes
    media_type: str
    last_modified: datetime


@dataclass(frozen=True)
class BinaryWithMetadata:
    """Binary data along with its media type and file extension.

    Attributes:
        data: Binary payload
        mime_type: Resolved media type
        file_extension: Extension without the leading dot, or None when the
            media type has none
    """

    data: bytes
    mime_type: str
    file_extension: Optional[str]


@dataclass
class CacheResult:
    """Outcome of a cache lookup.

    Attributes:
        value: The value handed back to the caller
        source: Whether the value was cached, freshly generated, or a stale
            fallback after a failed generation
        mime_type: Resolved media type of the value
        error: The producer error that was suppressed for a stale fallback
    """

    value: Any
    source: ValueSource
    mime_type: str
    error: Optional[BaseException] = field(default=None, repr=False)

    @property
    def used_stale_fallback(self) -> bool:
        """True when a failed regeneration was answered with the stale value."""
        return self.source is ValueSource.STALE_FALLBACK
