"""Media type and file extension resolution.

Lookups use Python's built-in media type table rather than the host's
mime.types files, so the same media type always yields the same extension
regardless of where the cache runs.
"""

import mimetypes
from pathlib import PurePosixPath
from typing import Optional

OCTET_STREAM = "application/octet-stream"
JSON = "application/json"

# Built-in defaults only; MimeTypes() does not read /etc/mime.types
_registry = mimetypes.MimeTypes()

# Types with several registered extensions resolve to the conventional one
_PREFERRED_EXTENSIONS = {
    "application/json": "json",
    "application/pdf": "pdf",
    "application/xml": "xml",
    "application/zip": "zip",
    "application/gzip": "gz",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "image/gif": "gif",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/svg+xml": "svg",
    "image/tiff": "tiff",
    "image/webp": "webp",
    "text/csv": "csv",
    "text/html": "html",
    "text/markdown": "md",
    "text/plain": "txt",
    "video/mp4": "mp4",
}

_PREFERRED_TYPES = {extension: mime_type for mime_type, extension in _PREFERRED_EXTENSIONS.items()}


def normalize(mime_type: str) -> str:
    """Strip parameters and lowercase a media type.

    Args:
        mime_type: Media type, possibly with parameters (e.g. "; charset=utf-8")

    Returns:
        Bare media type such as "text/plain"
    """
    return mime_type.split(";", 1)[0].strip().lower()


def get_extension(mime_type: Optional[str]) -> Optional[str]:
    """Get the file extension for a media type.

    Args:
        mime_type: Media type to resolve

    Returns:
        Extension without the leading dot, or None for application/octet-stream
        and unknown types
    """
    if not mime_type:
        return None

    bare = normalize(mime_type)
    if bare == OCTET_STREAM:
        return None
    if bare in _PREFERRED_EXTENSIONS:
        return _PREFERRED_EXTENSIONS[bare]

    extension = _registry.guess_extension(bare, strict=False)
    return extension[1:] if extension else None


def get_type(name: str) -> Optional[str]:
    """Get the media type for a file name based on its extension.

    Args:
        name: File name or path

    Returns:
        Media type or None if the extension is unknown
    """
    suffix = PurePosixPath(name).suffix.lower()
    if not suffix:
        return None
    if suffix[1:] in _PREFERRED_TYPES:
        return _PREFERRED_TYPES[suffix[1:]]

    mime_type, _ = _registry.guess_type(f"file{suffix}", strict=False)
    return mime_type


def is_known_extension(extension: str) -> bool:
    """Whether an extension (without dot) maps to a known media type."""
    return get_type(f"file.{extension}") is not None
