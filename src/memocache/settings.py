"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache framework settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BUILTIN_DEFAULT_PROVIDER = "memory"

_TRUTHY = ("1", "true", "yes", "on")


def _env_first(*names: str, default: str | None = None) -> str | None:
    """
    Return the first non-empty environment variable in `names`.

    Args:
        *names: Environment variable names to check in order.
        default: Value returned if no non-empty variable is found.
    """
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env_first(name)
    if raw is None:
        return default
    return raw.lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class CacheSettings:
    """Explicit settings used to build the default providers."""

    default_provider: str = BUILTIN_DEFAULT_PROVIDER
    strict: bool = False
    default_max_age_s: float | None = None

    disk_folder: Path = Path(".cache") / "memocache"
    disk_retention_s: float = 7 * 24 * 3600

    remote_host: str | None = None
    remote_port: int = 6379
    remote_database: int = 0
    remote_username: str | None = None
    remote_password: str | None = None
    remote_key_prefix: str = "memocache"
    remote_timeout_s: float = 5.0

    compression_threshold: int = 1024

    @staticmethod
    def from_env() -> "CacheSettings":
        """Load settings from `MEMOCACHE_*` environment variables."""
        max_age = _env_first("MEMOCACHE_DEFAULT_MAX_AGE_S")
        return CacheSettings(
            default_provider=_env_first(
                "MEMOCACHE_DEFAULT_PROVIDER", default=BUILTIN_DEFAULT_PROVIDER
            )
            or BUILTIN_DEFAULT_PROVIDER,
            strict=_env_bool("MEMOCACHE_STRICT"),
            default_max_age_s=float(max_age) if max_age else None,
            disk_folder=Path(
                _env_first("MEMOCACHE_DISK_FOLDER", default=".cache/memocache")
                or ".cache/memocache"
            ),
            disk_retention_s=float(
                _env_first("MEMOCACHE_DISK_RETENTION_S", default="604800") or "604800"
            ),
            remote_host=_env_first("MEMOCACHE_REMOTE_HOST"),
            remote_port=int(_env_first("MEMOCACHE_REMOTE_PORT", default="6379") or "6379"),
            remote_database=int(
                _env_first("MEMOCACHE_REMOTE_DB", default="0") or "0"
            ),
            remote_username=_env_first("MEMOCACHE_REMOTE_USERNAME"),
            remote_password=_env_first("MEMOCACHE_REMOTE_PASSWORD"),
            remote_key_prefix=_env_first(
                "MEMOCACHE_REMOTE_PREFIX", default="memocache"
            )
            or "memocache",
            remote_timeout_s=float(
                _env_first("MEMOCACHE_REMOTE_TIMEOUT_S", default="5") or "5"
            ),
            compression_threshold=int(
                _env_first("MEMOCACHE_COMPRESSION_THRESHOLD", default="1024") or "1024"
            ),
        )
