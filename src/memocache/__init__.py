"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Memoize computations under a cache key with pluggable storage providers.
"""

from .backends import (
    CacheRequest,
    DiskCache,
    InMemoryCache,
    RemoteCache,
)
from .codec import CacheEnvelope, decode_value, encode_value
from .errors import (
    BackendInitializationError,
    ConfigurationError,
    Disconnected,
    DuplicateProvider,
    EnvelopeError,
    MemoCacheError,
    ProtocolError,
    ProviderNotRegistered,
    ResponseError,
    SweepError,
    TeardownError,
    WireError,
    WireTimeoutError,
)
from .factory import create_default_registry, register_default_providers
from .keys import derive_cache_key
from .manager import CacheManager, get_default_manager, reset_default_manager
from .policy import MISSING, CachePolicy, PolicyMode, resolve_cache_policy
from .registry import (
    ProviderDescriptor,
    ProviderRegistry,
    ProviderState,
    get_default_registry,
    reset_default_registry,
)
from .settings import CacheSettings

__all__ = [
    "CacheRequest",
    "DiskCache",
    "InMemoryCache",
    "RemoteCache",
    "CacheEnvelope",
    "decode_value",
    "encode_value",
    "BackendInitializationError",
    "ConfigurationError",
    "Disconnected",
    "DuplicateProvider",
    "EnvelopeError",
    "MemoCacheError",
    "ProtocolError",
    "ProviderNotRegistered",
    "ResponseError",
    "SweepError",
    "TeardownError",
    "WireError",
    "WireTimeoutError",
    "create_default_registry",
    "register_default_providers",
    "derive_cache_key",
    "CacheManager",
    "get_default_manager",
    "reset_default_manager",
    "MISSING",
    "CachePolicy",
    "PolicyMode",
    "resolve_cache_policy",
    "ProviderDescriptor",
    "ProviderRegistry",
    "ProviderState",
    "get_default_registry",
    "reset_default_registry",
    "CacheSettings",
]
