"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: backends/__init__.py.
"""

from .base import (
    BackendConfig,
    CacheBackend,
    CacheRequest,
    SupportsClearCache,
    SupportsConnect,
    SupportsInitialize,
    SupportsTeardown,
    load_settings,
)
from .disk import DiskCache, DiskConfig
from .memory import InMemoryCache, MemoryConfig
from .remote import RemoteCache, RemoteConfig

__all__ = [
    "BackendConfig",
    "CacheBackend",
    "CacheRequest",
    "SupportsClearCache",
    "SupportsConnect",
    "SupportsInitialize",
    "SupportsTeardown",
    "load_settings",
    "DiskCache",
    "DiskConfig",
    "InMemoryCache",
    "MemoryConfig",
    "RemoteCache",
    "RemoteConfig",
]
