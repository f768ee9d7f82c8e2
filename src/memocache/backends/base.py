"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Backend contracts shared by all cache providers.

Only ``get_or_create`` is mandatory. The remaining hooks are optional and are
discovered by attribute presence:

- ``config_model``: pydantic model describing the config keys the backend reads
- ``initialize(settings)``: eager setup run once at registration
- ``connect(settings)``: lazy resource factory (for example a socket)
- ``clear_cache(provider, force=...)``: remove stored entries
- ``deinitialize(provider)``: best-effort teardown on removal
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import ConfigurationError
from ..policy import CachePolicy

if TYPE_CHECKING:
    from ..registry import ProviderDescriptor

ModelT = TypeVar("ModelT", bound=BaseModel)


class BackendConfig(BaseModel):
    """Base for per-backend config models. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)

    strict: bool = False


@dataclass(frozen=True, slots=True)
class CacheRequest:
    """
    One read/compute/write cycle handed to a backend.

    Attributes:
        key: Cache key, already derived when the caller did not supply one.
        executor: Computation producing the value on a miss.
        arguments: Positional arguments passed to `executor`.
        policy: Resolved expiration contract for this call.
        description: Human-readable executor description stored as metadata.
        client: Handle acquired for this call from a backend with a ``connect``
            hook. ``None`` means the backend is unavailable for this call.
    """

    key: str
    executor: Callable[..., Any]
    policy: CachePolicy
    arguments: tuple[Any, ...] = ()
    description: str = ""
    client: Any = field(default=None, compare=False, repr=False)

    def compute(self) -> Any:
        return self.executor(*self.arguments)


class CacheBackend(Protocol):
    """Mandatory backend contract."""

    backend_id: str

    def get_or_create(
        self, provider: ProviderDescriptor, request: CacheRequest
    ) -> Any: ...


@runtime_checkable
class SupportsInitialize(Protocol):
    def initialize(self, settings: Any) -> None: ...


@runtime_checkable
class SupportsConnect(Protocol):
    def connect(self, settings: Any) -> Any: ...


@runtime_checkable
class SupportsClearCache(Protocol):
    def clear_cache(self, provider: ProviderDescriptor, *, force: bool = False) -> int: ...


@runtime_checkable
class SupportsTeardown(Protocol):
    def deinitialize(self, provider: ProviderDescriptor) -> None: ...


def load_settings(model: type[ModelT], config: Mapping[str, Any]) -> ModelT:
    """
    Validate a provider config mapping against a backend config model.

    Keys the model does not declare are ignored. Missing required fields are
    reported together in one `ConfigurationError`.
    """
    try:
        return model.model_validate(dict(config))
    except ValidationError as e:
        missing = tuple(
            ".".join(str(part) for part in err["loc"])
            for err in e.errors()
            if err["type"] == "missing"
        )
        if missing:
            raise ConfigurationError(
                f"Missing mandatory parameter(s) for {model.__name__}: "
                + ", ".join(missing),
                missing=missing,
            ) from e
        raise ConfigurationError(f"Invalid {model.__name__}: {e}") from e
