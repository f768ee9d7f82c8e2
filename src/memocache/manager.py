"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Get-or-create orchestration over registered cache providers.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from .backends.base import (
    CacheBackend,
    CacheRequest,
    SupportsClearCache,
    SupportsConnect,
)
from .errors import ConfigurationError
from .factory import register_default_providers
from .keys import derive_cache_key, describe_executor
from .policy import MISSING, Age, CachePolicy, resolve_cache_policy
from .registry import (
    ProviderDescriptor,
    ProviderRegistry,
    get_default_registry,
    reset_default_registry,
)
from .settings import BUILTIN_DEFAULT_PROVIDER, CacheSettings

logger = logging.getLogger("memocache.manager")


class KeyedLock:
    """Per-key re-entrant locks that are dropped once no thread holds them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, list[Any]] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._entries[key] = entry
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._lock:
                entry[1] -= 1
                if entry[1] == 0:
                    self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CacheManager:
    """
    Public entry point: resolve provider and policy, then read/compute/write.

    Concurrent misses for the same provider and key within one process are
    serialized, so the executor runs once and later callers see the stored
    value. Across processes the last write wins.

    Args:
        registry: Provider registry; the process-wide one when omitted.
        settings: Settings used for default-provider resolution.
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        *,
        settings: CacheSettings | None = None,
    ) -> None:
        self.registry = registry if registry is not None else get_default_registry()
        self.settings = settings or CacheSettings.from_env()
        self.default_provider: str | None = None
        self._gate = KeyedLock()

    def resolve_provider_name(self, provider: str | None = None) -> str:
        """Explicit name, then process override, then settings, then built-in."""
        for candidate in (provider, self.default_provider, self.settings.default_provider):
            if candidate and candidate.strip():
                return candidate.strip()
        return BUILTIN_DEFAULT_PROVIDER

    def register_provider(
        self,
        name: str,
        backend: CacheBackend,
        config: Mapping[str, Any] | None = None,
        *,
        init_args: Mapping[str, Any] | None = None,
        dry_run: bool = False,
    ) -> ProviderDescriptor:
        descriptor = ProviderDescriptor(
            name=name,
            backend=backend,
            config=dict(config) if config is not None else {},
            init_args=dict(init_args) if init_args is not None else None,
        )
        return self.registry.register(descriptor, dry_run=dry_run)

    def get_provider(self, name: str) -> ProviderDescriptor:
        return self.registry.resolve(name)

    def remove_provider(self, name: str, *, teardown: bool = True) -> ProviderDescriptor:
        return self.registry.remove(name, teardown=teardown)

    def _acquire_client(self, descriptor: ProviderDescriptor) -> Any:
        """Acquire the lazy client once per call; backends reuse the handle."""
        if isinstance(descriptor.backend, SupportsConnect):
            return descriptor.acquire_client()
        return None

    def get_or_create(
        self,
        executor: Callable[..., Any],
        arguments: Sequence[Any] | None = None,
        *,
        provider: str | None = None,
        key: str | None = None,
        max_age: Age | None = MISSING,
        expire_at: datetime | None = MISSING,
        sliding_age: Age | None = MISSING,
        description: str | None = None,
    ) -> Any:
        """
        Return the cached result of `executor(*arguments)` or compute and store it.

        Args:
            executor: Computation to run on a cache miss.
            arguments: Positional arguments; their order is part of the key.
            provider: Provider name; falls back to the configured default.
            key: Explicit cache key; derived from executor and arguments if omitted.
            max_age: Time-to-live from now.
            expire_at: Absolute deadline.
            sliding_age: Time-to-live refreshed on every hit.
            description: Metadata describing the computation.

        Raises:
            ProviderNotRegistered: No provider with the resolved name exists.
        """
        if not callable(executor):
            raise TypeError("executor must be callable")

        name = self.resolve_provider_name(provider)
        descriptor = self.registry.resolve(name)
        client = self._acquire_client(descriptor)

        args = tuple(arguments or ())
        executor_text = describe_executor(executor)
        cache_key = key if key is not None else derive_cache_key(executor_text, args)
        if not cache_key:
            raise ValueError("Cache key must be non-empty")

        default_policy = descriptor.config.get("default_policy")
        if default_policy is not None and not isinstance(default_policy, CachePolicy):
            raise ConfigurationError(
                f"Provider '{descriptor.name}' default_policy must be a CachePolicy"
            )
        policy = resolve_cache_policy(
            max_age=max_age,
            expire_at=expire_at,
            sliding_age=sliding_age,
            default_policy=default_policy,
            default_max_age=descriptor.config.get("default_max_age"),
        )

        request = CacheRequest(
            key=cache_key,
            executor=executor,
            policy=policy,
            arguments=args,
            description=description or executor_text,
            client=client,
        )
        with self._gate.hold(f"{descriptor.key}:{cache_key}"):
            return descriptor.backend.get_or_create(descriptor, request)

    async def aget_or_create(
        self,
        executor: Callable[..., Any],
        arguments: Sequence[Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Run `get_or_create` in a worker thread."""
        return await asyncio.to_thread(self.get_or_create, executor, arguments, **kwargs)

    def clear_cache(self, provider: str | None = None, *, force: bool = False) -> int:
        """Clear entries of one provider. Returns the number of removed entries."""
        descriptor = self.registry.resolve(self.resolve_provider_name(provider))
        if not isinstance(descriptor.backend, SupportsClearCache):
            raise ConfigurationError(
                f"Provider '{descriptor.name}' does not support clearing"
            )
        removed = descriptor.backend.clear_cache(descriptor, force=force)
        logger.info("cleared %d entries from provider '%s'", removed, descriptor.name)
        return removed


_DEFAULT_MANAGER: CacheManager | None = None
_DEFAULT_MANAGER_LOCK = threading.Lock()


def get_default_manager() -> CacheManager:
    """Return the process-wide manager with built-in providers registered."""
    global _DEFAULT_MANAGER
    if _DEFAULT_MANAGER is not None:
        return _DEFAULT_MANAGER
    with _DEFAULT_MANAGER_LOCK:
        if _DEFAULT_MANAGER is None:
            settings = CacheSettings.from_env()
            registry = register_default_providers(get_default_registry(), settings)
            _DEFAULT_MANAGER = CacheManager(registry, settings=settings)
    return _DEFAULT_MANAGER


def reset_default_manager() -> None:
    """Drop the process-wide manager and registry (for tests)."""
    global _DEFAULT_MANAGER
    with _DEFAULT_MANAGER_LOCK:
        _DEFAULT_MANAGER = None
    reset_default_registry()
