"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Thread-safe provider registry with exactly-once lazy initialization.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .backends.base import (
    CacheBackend,
    SupportsConnect,
    SupportsInitialize,
    SupportsTeardown,
    load_settings,
)
from .errors import (
    BackendInitializationError,
    ConfigurationError,
    DuplicateProvider,
    ProviderNotRegistered,
    TeardownError,
)

logger = logging.getLogger("memocache.registry")


def normalize_name(name: str) -> str:
    return str(name).strip().lower()


def merge_config(
    base: Mapping[str, Any], override: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Overlay `override` onto `base` key by key; override values win."""
    merged = dict(base)
    if override:
        for key, value in override.items():
            merged[key] = value
    return merged


@dataclass(slots=True)
class ProviderState:
    """Runtime-only state of one provider. Never persisted or compared."""

    initialized: bool = False
    initialization_attempted: bool = False
    failed_permanently: bool = False
    last_error: BaseException | None = None
    client: Any = None
    lock: threading.Lock = field(default_factory=threading.Lock)


@dataclass(slots=True)
class ProviderDescriptor:
    """
    Registered identity, config and runtime state of one cache provider.

    Attributes:
        name: Unique provider name, compared case-insensitively.
        backend: Backend implementation (see `memocache.backends.base`).
        config: Mutable option mapping. Backends re-read it on every call.
        init_args: One-time overrides merged into `config` at registration.
        state: Runtime state; excluded from equality.
    """

    name: str
    backend: CacheBackend
    config: dict[str, Any] = field(default_factory=dict)
    init_args: dict[str, Any] | None = field(default=None, compare=False)
    state: ProviderState = field(
        default_factory=ProviderState, compare=False, repr=False
    )

    @property
    def key(self) -> str:
        return normalize_name(self.name)

    @property
    def strict(self) -> bool:
        return bool(self.config.get("strict", False))

    def settings(self) -> Any:
        """Validate the current config through the backend's config model."""
        model = getattr(self.backend, "config_model", None)
        if model is None:
            return dict(self.config)
        return load_settings(model, self.config)

    def acquire_client(self) -> Any | None:
        """
        Return the backend's lazily created client, creating it at most once.

        Concurrent first callers race to the descriptor lock; the winner runs
        the backend ``connect`` hook while the others wait and then reuse the
        stored handle. On failure the error is recorded and either raised as
        `BackendInitializationError` (strict) or ``None`` is returned so the
        caller proceeds without this backend.
        """
        state = self.state
        client = state.client
        if state.initialized and client is not None:
            return client

        if not isinstance(self.backend, SupportsConnect):
            raise ConfigurationError(
                f"Provider '{self.name}' does not support lazy connections"
            )

        with state.lock:
            client = state.client
            if state.initialized and client is not None:
                return client
            if state.failed_permanently:
                return self._initialization_failed(state.last_error)

            state.initialization_attempted = True
            try:
                client = self.backend.connect(self.settings())
            except ConfigurationError as e:
                state.initialized = False
                state.failed_permanently = True
                state.last_error = e
                return self._initialization_failed(e)
            except Exception as e:  # noqa: BLE001
                state.initialized = False
                state.last_error = e
                return self._initialization_failed(e)

            state.client = client
            state.last_error = None
            state.initialized = True
            logger.info("provider '%s' connected", self.name)
            return client

    def _initialization_failed(self, error: BaseException | None) -> None:
        message = f"Provider '{self.name}' failed to initialize: {error}"
        if self.strict:
            raise BackendInitializationError(message) from error
        logger.warning("%s; continuing without cache", message)
        return None

    def invalidate_client(self, client: Any = None) -> Any:
        """
        Drop a broken client so the next acquisition reconnects.

        When `client` is given, only that exact handle is dropped; a handle
        already replaced by another thread is left alone.
        """
        with self.state.lock:
            current = self.state.client
            if current is None or (client is not None and current is not client):
                return None
            self.state.client = None
            return current

    def reset_state(self) -> None:
        """Forget runtime state, including permanent failures."""
        with self.state.lock:
            self.state.initialized = False
            self.state.initialization_attempted = False
            self.state.failed_permanently = False
            self.state.last_error = None
            self.state.client = None


class ProviderRegistry:
    """Explicit registry of cache providers keyed by case-insensitive name."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._providers: dict[str, ProviderDescriptor] = {}

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        with self._lock:
            return normalize_name(name) in self._providers

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)

    def register(
        self,
        descriptor: ProviderDescriptor,
        *,
        dry_run: bool = False,
    ) -> ProviderDescriptor:
        """
        Validate and register one provider.

        Pending `init_args` are merged into the config and then cleared. When
        the backend has an ``initialize`` hook it runs immediately with the
        validated settings; a failure rolls the registration back.

        Raises:
            ConfigurationError: Name, backend or config is invalid.
            DuplicateProvider: The name is already registered.
            BackendInitializationError: The eager ``initialize`` hook failed.
        """
        self._validate(descriptor)
        key = descriptor.key

        with self._lock:
            existing = self._providers.get(key)
            if existing is not None:
                raise DuplicateProvider(
                    f"Provider '{descriptor.name}' conflicts with registered "
                    f"provider '{existing.name}'"
                )
            if dry_run:
                return descriptor

            if descriptor.init_args:
                descriptor.config = merge_config(descriptor.config, descriptor.init_args)
            descriptor.init_args = None

            settings = descriptor.settings()
            self._providers[key] = descriptor

            if isinstance(descriptor.backend, SupportsInitialize):
                descriptor.state.initialization_attempted = True
                try:
                    descriptor.backend.initialize(settings)
                except Exception as e:
                    self._providers.pop(key, None)
                    descriptor.state.last_error = e
                    if isinstance(e, ConfigurationError):
                        raise
                    raise BackendInitializationError(
                        f"Provider '{descriptor.name}' failed to initialize: {e}"
                    ) from e

            if not isinstance(descriptor.backend, SupportsConnect):
                descriptor.state.initialized = True

        logger.info("registered provider '%s'", descriptor.name)
        return descriptor

    def _validate(self, descriptor: ProviderDescriptor) -> None:
        if not isinstance(descriptor.name, str) or not descriptor.name.strip():
            raise ConfigurationError("Provider name must be a non-empty string")
        backend_id = getattr(descriptor.backend, "backend_id", None)
        if not isinstance(backend_id, str) or not backend_id.strip():
            raise ConfigurationError(
                f"Provider '{descriptor.name}' backend has no backend_id"
            )
        get_or_create = getattr(descriptor.backend, "get_or_create", None)
        if not callable(get_or_create):
            raise ConfigurationError(
                f"Provider '{descriptor.name}' backend has no callable get_or_create"
            )
        if not isinstance(descriptor.config, Mapping):
            raise ConfigurationError(
                f"Provider '{descriptor.name}' config must be a mapping"
            )
        if not isinstance(descriptor.config, dict):
            descriptor.config = dict(descriptor.config)
        if descriptor.init_args is not None and not isinstance(
            descriptor.init_args, Mapping
        ):
            raise ConfigurationError(
                f"Provider '{descriptor.name}' init_args must be a mapping"
            )

    def resolve(self, name: str) -> ProviderDescriptor:
        """Look up one provider by case-insensitive name."""
        with self._lock:
            descriptor = self._providers.get(normalize_name(name))
        if descriptor is None:
            raise ProviderNotRegistered(f"Unknown cache provider '{name}'")
        return descriptor

    def list_providers(self) -> list[str]:
        with self._lock:
            return sorted(self._providers.keys())

    def remove(self, name: str, *, teardown: bool = True) -> ProviderDescriptor:
        """
        Remove one provider, running its teardown hook best-effort.

        Teardown failures are logged and never block removal.
        """
        with self._lock:
            descriptor = self._providers.pop(normalize_name(name), None)
        if descriptor is None:
            raise ProviderNotRegistered(f"Unknown cache provider '{name}'")

        if teardown and isinstance(descriptor.backend, SupportsTeardown):
            try:
                descriptor.backend.deinitialize(descriptor)
            except Exception as e:  # noqa: BLE001
                error = TeardownError(
                    f"Teardown of provider '{descriptor.name}' failed: {e}"
                )
                error.__cause__ = e
                logger.warning("%s", error, exc_info=e)
        descriptor.reset_state()
        logger.info("removed provider '%s'", descriptor.name)
        return descriptor

    def clear(self, *, teardown: bool = True) -> None:
        for name in self.list_providers():
            try:
                self.remove(name, teardown=teardown)
            except ProviderNotRegistered:
                continue


_DEFAULT_REGISTRY: ProviderRegistry | None = None
_DEFAULT_REGISTRY_LOCK = threading.Lock()


def get_default_registry() -> ProviderRegistry:
    """Return the process-wide registry, creating an empty one on first use."""
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is not None:
        return _DEFAULT_REGISTRY
    with _DEFAULT_REGISTRY_LOCK:
        if _DEFAULT_REGISTRY is None:
            _DEFAULT_REGISTRY = ProviderRegistry()
    return _DEFAULT_REGISTRY


def reset_default_registry() -> None:
    """Drop the process-wide registry (for tests)."""
    global _DEFAULT_REGISTRY
    with _DEFAULT_REGISTRY_LOCK:
        registry, _DEFAULT_REGISTRY = _DEFAULT_REGISTRY, None
    if registry is not None:
        registry.clear()
