"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Process-local cache backend suitable for development/test workloads.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .base import BackendConfig, CacheRequest

if TYPE_CHECKING:
    from ..registry import ProviderDescriptor


class MemoryConfig(BackendConfig):
    """Options read by `InMemoryCache`."""

    namespace: str = "default"


@dataclass(slots=True)
class _Entry:
    value: Any
    expires_at_s: float
    ttl_s: int
    sliding: bool


class InMemoryCache:
    """Dict-backed cache with lazy expiry on read."""

    backend_id = "memory"
    config_model = MemoryConfig

    def __init__(self) -> None:
        self._rows: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _qualified(self, provider: ProviderDescriptor, key: str) -> str:
        settings: MemoryConfig = provider.settings()
        return f"{provider.key}:{settings.namespace}:{key}"

    def get_or_create(self, provider: ProviderDescriptor, request: CacheRequest) -> Any:
        qualified = self._qualified(provider, request.key)
        now = time.time()
        with self._lock:
            row = self._rows.get(qualified)
            if row is not None:
                if row.expires_at_s > now:
                    if row.sliding:
                        row.expires_at_s = now + row.ttl_s
                    return row.value
                self._rows.pop(qualified, None)

        value = request.compute()
        if value is None:
            return None

        policy = request.policy
        if policy.mode == "absolute":
            expires_at_s = policy.expire_at.timestamp()
        else:
            expires_at_s = time.time() + policy.ttl_s
        with self._lock:
            self._rows[qualified] = _Entry(
                value=value,
                expires_at_s=expires_at_s,
                ttl_s=policy.ttl_s,
                sliding=policy.sliding,
            )
        return value

    def clear_cache(self, provider: ProviderDescriptor, *, force: bool = False) -> int:
        """Drop entries of this provider; without `force` only expired ones."""
        prefix = f"{provider.key}:"
        now = time.time()
        with self._lock:
            doomed = [
                key
                for key, row in self._rows.items()
                if key.startswith(prefix) and (force or row.expires_at_s <= now)
            ]
            for key in doomed:
                del self._rows[key]
        return len(doomed)

    def deinitialize(self, provider: ProviderDescriptor) -> None:
        self.clear_cache(provider, force=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
