"""Encode/decode strategies for each value representation."""

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional

from object_cache.exceptions import DecodeError
from object_cache.mime import JSON, OCTET_STREAM
from object_cache.models import Representation

STRUCTURED_SUFFIX = ".json"


def _encode_structured(value: Any) -> bytes:
    return json.dumps(value, indent=2).encode("utf-8")


def _decode_structured(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))


def _encode_binary(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError(f"Binary cache values must be bytes-like, got {type(value).__name__}")
    return bytes(value)


def _decode_binary(data: bytes) -> bytes:
    return bytes(data)


@dataclass(frozen=True)
class Codec:
    """How one representation is named, encoded and decoded in storage.

    Attributes:
        representation: Representation this codec handles
        suffix: Suffix appended to the cache key to form the storage identifier
        default_mime_type: Media type used when none is given or stored
    """

    representation: Representation
    suffix: str
    default_mime_type: str
    _encode: Callable[[Any], bytes]
    _decode: Callable[[bytes], Any]

    def storage_id(self, cache_key: str) -> str:
        """Derive the storage identifier for a cache key."""
        return f"{cache_key}{self.suffix}"

    def encode(self, value: Any) -> bytes:
        """Serialize a value for storage.

        Raises:
            TypeError: If the value cannot be represented
        """
        return self._encode(value)

    def decode(self, data: bytes, storage_id: Optional[str] = None) -> Any:
        """Deserialize stored bytes.

        Args:
            data: Stored payload
            storage_id: Storage identifier, for error reporting

        Raises:
            DecodeError: If the payload is not valid for this representation
        """
        try:
            return self._decode(data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(
                f"Cached value '{storage_id}' could not be decoded as {self.representation.value}: {e}",
                storage_id=storage_id,
            ) from e


CODECS = {
    Representation.STRUCTURED: Codec(
        representation=Representation.STRUCTURED,
        suffix=STRUCTURED_SUFFIX,
        default_mime_type=JSON,
        _encode=_encode_structured,
        _decode=_decode_structured,
    ),
    Representation.BINARY: Codec(
        representation=Representation.BINARY,
        suffix="",
        default_mime_type=OCTET_STREAM,
        _encode=_encode_binary,
        _decode=_decode_binary,
    ),
}


def get_codec(representation: Representation) -> Codec:
    """Get the codec for a representation."""
    return CODECS[representation]
