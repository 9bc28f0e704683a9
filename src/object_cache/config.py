"""Configuration management for object-cache.

Handles loading, saving, and validating TOML configuration stored in:
- macOS: ~/.config/object-cache/config.toml
- Linux: ~/.config/object-cache/config.toml (XDG_CONFIG_HOME)
- Windows: %APPDATA%\\object-cache\\config.toml

Credentials are never written to the config file; the S3 backend reads them
from environment variables.
"""

import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import tomllib
import tomli_w

from object_cache.backends import FileSystemBackend, S3Backend, StorageBackend
from object_cache.cache import ObjectCache
from object_cache.models import CacheOptions

BACKENDS = ("filesystem", "s3")

# Dotted TOML keys -> CacheConfig attributes
_KEY_MAP = {
    "cache.backend": "backend",
    "cache.default_stale_after_seconds": "default_stale_after_seconds",
    "cache.return_stale_result_on_error": "return_stale_result_on_error",
    "cache.single_flight": "single_flight",
    "filesystem.directory": "cache_dir",
    "filesystem.create_directory": "create_directory",
    "s3.bucket": "s3_bucket",
    "s3.key_prefix": "s3_key_prefix",
    "s3.endpoint_url": "s3_endpoint_url",
    "s3.region": "s3_region",
    "logging.level": "log_level",
    "logging.directory": "log_dir",
}

# Environment variables -> CacheConfig attributes (take precedence over the file)
_ENV_OVERRIDES = {
    "OBJECT_CACHE_BACKEND": "backend",
    "OBJECT_CACHE_DIR": "cache_dir",
    "OBJECT_CACHE_S3_BUCKET": "s3_bucket",
    "OBJECT_CACHE_S3_KEY_PREFIX": "s3_key_prefix",
    "OBJECT_CACHE_S3_ENDPOINT_URL": "s3_endpoint_url",
    "OBJECT_CACHE_S3_REGION": "s3_region",
}


@dataclass
class CacheConfig:
    """Configuration for object-cache.

    Attributes:
        backend: Storage backend name ("filesystem" or "s3")
        default_stale_after_seconds: Staleness window applied by default_options();
            None caches forever
        return_stale_result_on_error: Default stale-on-error behavior
        single_flight: Coalesce concurrent lookups of the same entry
        cache_dir: Directory for the filesystem backend
        create_directory: Create cache_dir when the backend is built
        s3_bucket: Bucket for the S3 backend
        s3_key_prefix: Prefix for all object keys
        s3_endpoint_url: Endpoint URL for S3-compatible stores (empty = AWS)
        s3_region: Region name (empty = boto3 default)
        log_level: Logging level name
        log_dir: Directory for the log file; None logs to stderr
    """

    # Cache semantics
    backend: str = "filesystem"
    default_stale_after_seconds: Optional[float] = None
    return_stale_result_on_error: bool = False
    single_flight: bool = False

    # Filesystem backend
    cache_dir: Path = field(default_factory=lambda: get_default_cache_dir())
    create_directory: bool = True

    # S3 backend
    s3_bucket: str = "object-cache"
    s3_key_prefix: str = ""
    s3_endpoint_url: str = ""
    s3_region: str = ""

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from TOML file.

        Args:
            path: Path to config file (defaults to standard location)

        Returns:
            CacheConfig instance with loaded values

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the file names an unknown backend
        """
        if path is None:
            path = get_config_path()

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        config = cls()

        for dotted_key, attr in _KEY_MAP.items():
            section, name = dotted_key.split(".")
            if section in data and name in data[section]:
                config._set_attr(attr, data[section][name])

        config.apply_env_overrides()
        config.validate()
        return config

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration, falling back to defaults when the file is missing.

        Environment overrides apply in both cases.
        """
        try:
            return cls.load(path)
        except FileNotFoundError:
            config = cls()
            config.apply_env_overrides()
            config.validate()
            return config

    def apply_env_overrides(self) -> None:
        """Override settings from OBJECT_CACHE_* environment variables."""
        for env_var, attr in _ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                self._set_attr(attr, value)

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If a setting is invalid
        """
        if self.backend not in BACKENDS:
            raise ValueError(
                f"Unknown cache backend: {self.backend!r} (expected one of {', '.join(BACKENDS)})"
            )
        if self.default_stale_after_seconds is not None and self.default_stale_after_seconds < 0:
            raise ValueError("default_stale_after_seconds must be non-negative")

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to TOML file.

        Args:
            path: Path to save config (defaults to standard location)
        """
        if path is None:
            path = get_config_path()

        # Ensure directory exists
        path.parent.mkdir(parents=True, exist_ok=True)

        cache_section: dict[str, Any] = {
            "backend": self.backend,
            "return_stale_result_on_error": self.return_stale_result_on_error,
            "single_flight": self.single_flight,
        }
        # TOML has no null
        if self.default_stale_after_seconds is not None:
            cache_section["default_stale_after_seconds"] = self.default_stale_after_seconds

        data = {
            "cache": cache_section,
            "filesystem": {
                "directory": str(self.cache_dir),
                "create_directory": self.create_directory,
            },
            "s3": {
                "bucket": self.s3_bucket,
                "key_prefix": self.s3_key_prefix,
                "endpoint_url": self.s3_endpoint_url,
                "region": self.s3_region,
            },
            "logging": {
                "level": self.log_level,
                "directory": str(self.log_dir) if self.log_dir else "",
            },
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    def _resolve_key(self, key: str) -> str:
        attr = _KEY_MAP.get(key, key)
        if attr not in {f.name for f in fields(self)}:
            raise ValueError(f"Invalid config key: {key}")
        return attr

    def _set_attr(self, attr: str, value: Any) -> None:
        """Set an attribute, coercing TOML or string values to its type."""
        if attr in ("cache_dir", "log_dir"):
            value = Path(str(value)).expanduser() if value else None
            if attr == "cache_dir" and value is None:
                value = get_default_cache_dir()
        elif attr == "default_stale_after_seconds":
            if value in (None, "") or str(value).lower() == "none":
                value = None
            else:
                value = float(value)
        elif isinstance(getattr(self, attr), bool):
            if isinstance(value, str):
                value = value.lower() in ("true", "1", "yes")
            else:
                value = bool(value)
        elif isinstance(getattr(self, attr), str):
            value = str(value)

        setattr(self, attr, value)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a configuration value by key.

        Accepts dotted file keys (e.g., "s3.bucket") or attribute names
        (e.g., "s3_bucket").

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value as a string, or default
        """
        try:
            attr = self._resolve_key(key)
        except ValueError:
            return default

        value = getattr(self, attr)
        if value is None:
            return default
        return str(value)

    def set(self, key: str, value: str) -> None:
        """Set a configuration value by key, preserving its type.

        Args:
            key: Configuration key (dotted file key or attribute name)
            value: Configuration value

        Raises:
            ValueError: If the key is unknown or the value is invalid
        """
        self._set_attr(self._resolve_key(key), value)
        self.validate()

    def build_backend(self) -> StorageBackend:
        """Create the configured storage backend.

        Returns:
            FileSystemBackend or S3Backend
        """
        self.validate()

        if self.backend == "s3":
            return S3Backend(
                bucket=self.s3_bucket,
                key_prefix=self.s3_key_prefix or None,
                endpoint_url=self.s3_endpoint_url or None,
                region=self.s3_region or None,
            )

        return FileSystemBackend(self.cache_dir, create_directory=self.create_directory)

    def build_cache(self) -> ObjectCache:
        """Create an ObjectCache over the configured backend."""
        return ObjectCache(self.build_backend(), single_flight=self.single_flight)

    def default_options(self, is_binary: bool = False) -> CacheOptions:
        """Create CacheOptions carrying the configured defaults.

        Args:
            is_binary: Whether the lookup is for binary data

        Returns:
            CacheOptions instance
        """
        return CacheOptions(
            stale_after_seconds=self.default_stale_after_seconds,
            return_stale_result_on_error=self.return_stale_result_on_error,
            is_binary=is_binary,
        )


def get_config_dir() -> Path:
    """Get the platform-specific config directory.

    Returns:
        Path to the config directory for object-cache.
    """
    if sys.platform == "darwin" or sys.platform == "linux":
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return Path(xdg_config) / "object-cache"
        return Path.home() / ".config" / "object-cache"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "object-cache"
        return Path.home() / "AppData" / "Roaming" / "object-cache"
    else:
        return Path.home() / ".config" / "object-cache"


def get_config_path() -> Path:
    """Get the path to the config.toml file.

    Returns:
        Path to config.toml
    """
    return get_config_dir() / "config.toml"


def get_default_cache_dir() -> Path:
    """Get the default directory for the filesystem backend.

    Returns:
        Path to the platform cache directory for object-cache
    """
    if sys.platform == "win32":
        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            return Path(local_appdata) / "object-cache" / "cache"
        return Path.home() / "AppData" / "Local" / "object-cache" / "cache"

    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache) / "object-cache"
    return Path.home() / ".cache" / "object-cache"


def ensure_config_exists(path: Optional[Path] = None) -> CacheConfig:
    """Ensure config file exists, creating default if needed.

    Args:
        path: Path to config file (defaults to standard location)

    Returns:
        CacheConfig instance
    """
    config_path = path or get_config_path()

    if config_path.exists():
        try:
            return CacheConfig.load(config_path)
        except tomllib.TOMLDecodeError:
            # If config is corrupted, create a new one
            pass

    # Create default config
    config = CacheConfig()
    config.save(config_path)
    return config
