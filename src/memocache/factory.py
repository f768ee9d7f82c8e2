"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers that register the built-in providers from settings.
"""

from __future__ import annotations

from typing import Any

from .backends.disk import DiskCache
from .backends.memory import InMemoryCache
from .backends.remote import RemoteCache
from .registry import ProviderDescriptor, ProviderRegistry
from .settings import CacheSettings


def _common_config(settings: CacheSettings) -> dict[str, Any]:
    config: dict[str, Any] = {"strict": settings.strict}
    if settings.default_max_age_s is not None:
        config["default_max_age"] = settings.default_max_age_s
    return config


def register_default_providers(
    registry: ProviderRegistry,
    settings: CacheSettings | None = None,
) -> ProviderRegistry:
    """
    Register the built-in providers that are not registered yet.

    Providers:
    - `memory` (always)
    - `disk` (always, folder from settings)
    - `remote` (only when a remote host is configured; connects lazily)
    """
    cfg = settings or CacheSettings.from_env()

    if "memory" not in registry:
        registry.register(
            ProviderDescriptor(
                name="memory", backend=InMemoryCache(), config=_common_config(cfg)
            )
        )

    if "disk" not in registry:
        registry.register(
            ProviderDescriptor(
                name="disk",
                backend=DiskCache(),
                config={
                    **_common_config(cfg),
                    "folder": str(cfg.disk_folder),
                    "retention_age_s": cfg.disk_retention_s,
                },
            )
        )

    if cfg.remote_host and "remote" not in registry:
        registry.register(
            ProviderDescriptor(
                name="remote",
                backend=RemoteCache(),
                config={
                    **_common_config(cfg),
                    "host": cfg.remote_host,
                    "port": cfg.remote_port,
                    "database": cfg.remote_database,
                    "username": cfg.remote_username,
                    "password": cfg.remote_password,
                    "key_prefix": cfg.remote_key_prefix,
                    "connect_timeout_s": cfg.remote_timeout_s,
                    "socket_timeout_s": cfg.remote_timeout_s,
                    "compression_threshold": cfg.compression_threshold,
                },
            )
        )

    return registry


def create_default_registry(settings: CacheSettings | None = None) -> ProviderRegistry:
    """Create a fresh registry holding the built-in providers."""
    return register_default_providers(ProviderRegistry(), settings)
