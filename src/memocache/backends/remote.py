"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Remote key-value cache backend built on the in-house wire client.

Key layout:
- ``{prefix}:{key}`` holds the value envelope
- ``{prefix}:{key}:meta`` holds JSON metadata with the same expiry
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ..codec import DEFAULT_COMPRESSION_THRESHOLD, dumps, loads
from ..errors import Disconnected, EnvelopeError, ProtocolError, WireTimeoutError
from ..wire.connection import RespConnection
from ..wire.sweep import DEFAULT_DELETE_BATCH_SIZE, DEFAULT_SCAN_COUNT, delete_matching
from .base import BackendConfig, CacheRequest

if TYPE_CHECKING:
    from ..registry import ProviderDescriptor

logger = logging.getLogger("memocache.remote")

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RemoteConfig(BackendConfig):
    """Options read by `RemoteCache`."""

    host: str
    port: int = 6379
    database: int = 0
    username: str | None = None
    password: str | None = None
    key_prefix: str = "memocache"
    connect_timeout_s: float = 5.0
    socket_timeout_s: float = 5.0
    compression_threshold: int = DEFAULT_COMPRESSION_THRESHOLD
    scan_count: int = DEFAULT_SCAN_COUNT
    delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE


def escape_glob(text: str) -> str:
    """Escape glob metacharacters so `text` matches literally in ``MATCH``."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class RemoteCache:
    """Cache backend storing value envelopes on a remote key-value server."""

    backend_id = "remote"
    config_model = RemoteConfig

    def connect(self, settings: RemoteConfig) -> RespConnection:
        conn = RespConnection(
            settings.host,
            settings.port,
            database=settings.database,
            username=settings.username,
            password=settings.password,
            connect_timeout_s=settings.connect_timeout_s,
            socket_timeout_s=settings.socket_timeout_s,
        )
        conn.connect()
        return conn

    def _execute(
        self, provider: ProviderDescriptor, conn: RespConnection, *args: Any
    ) -> Any:
        try:
            return conn.execute(*args)
        except (Disconnected, ProtocolError, WireTimeoutError):
            if provider.invalidate_client(conn) is not None:
                logger.warning(
                    "dropping broken connection for provider '%s'", provider.name
                )
            conn.close()
            raise

    def get_or_create(self, provider: ProviderDescriptor, request: CacheRequest) -> Any:
        settings: RemoteConfig = provider.settings()
        conn = request.client
        if conn is None:
            return request.compute()

        data_key = f"{settings.key_prefix}:{request.key}"
        meta_key = f"{data_key}:meta"
        policy = request.policy

        raw = self._execute(provider, conn, "GET", data_key)
        if raw is not None:
            try:
                value = loads(raw)
            except EnvelopeError:
                logger.warning("discarding undecodable entry '%s'", data_key)
            else:
                if policy.sliding:
                    self._execute(provider, conn, "EXPIRE", data_key, policy.ttl_s)
                    self._execute(provider, conn, "EXPIRE", meta_key, policy.ttl_s)
                return value

        value = request.compute()
        if value is None:
            return None

        payload = dumps(value, compression_threshold=settings.compression_threshold)
        meta = json.dumps(
            {
                "source": request.description,
                "created_at": datetime.now(timezone.utc).isoformat(),
                "mode": policy.mode,
                "ttl_s": policy.ttl_s,
            },
            ensure_ascii=True,
        )
        self._execute(provider, conn, "SET", data_key, payload, "EX", policy.ttl_s)
        self._execute(provider, conn, "SET", meta_key, meta, "EX", policy.ttl_s)
        return value

    def clear_cache(self, provider: ProviderDescriptor, *, force: bool = False) -> int:
        """
        Delete every key under this provider's prefix.

        Expiry is enforced by the server, so `force` makes no difference here.
        """
        settings: RemoteConfig = provider.settings()
        conn = provider.acquire_client()
        if conn is None:
            return 0
        pattern = f"{escape_glob(settings.key_prefix)}:*"
        try:
            return delete_matching(
                conn,
                pattern,
                scan_count=settings.scan_count,
                batch_size=settings.delete_batch_size,
            )
        except (Disconnected, ProtocolError, WireTimeoutError):
            provider.invalidate_client(conn)
            conn.close()
            raise

    def deinitialize(self, provider: ProviderDescriptor) -> None:
        conn = provider.invalidate_client()
        if conn is not None:
            conn.close()
