"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Local-disk cache backend: one JSON file per key, freshness by file mtime.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from ..codec import CacheEnvelope, decode_value, encode_value
from ..errors import EnvelopeError
from .base import BackendConfig, CacheRequest

if TYPE_CHECKING:
    from ..policy import CachePolicy
    from ..registry import ProviderDescriptor

logger = logging.getLogger("memocache.disk")

DISK_SCHEMA_VERSION = 1
_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")


class DiskConfig(BackendConfig):
    """Options read by `DiskCache`."""

    folder: Path
    retention_age_s: float = 7 * 24 * 3600
    compression_threshold: int = 64 * 1024


class DiskRecord(BaseModel):
    """On-disk file layout."""

    version: int
    query: str = ""
    data: CacheEnvelope


class DiskCache:
    """Stores each key as ``<folder>/<key>.json``."""

    backend_id = "disk"
    config_model = DiskConfig

    def initialize(self, settings: DiskConfig) -> None:
        settings.folder.mkdir(parents=True, exist_ok=True)

    def path_for(self, folder: Path, key: str) -> Path:
        if _SAFE_KEY.match(key) and key not in (".", ".."):
            name = key
        else:
            name = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return folder / f"{name}.json"

    def _is_fresh(self, path: Path, policy: CachePolicy, now: float) -> bool:
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return False
        if mtime + policy.ttl_s <= now:
            return False
        if policy.mode == "absolute" and now >= policy.expire_at.timestamp():
            return False
        return True

    def _read(self, path: Path) -> Any | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            record = DiskRecord.model_validate_json(raw)
        except ValidationError:
            logger.debug("unreadable cache file %s", path)
            return None
        if record.version != DISK_SCHEMA_VERSION:
            return None
        try:
            return decode_value(record.data)
        except EnvelopeError:
            logger.debug("undecodable cache payload in %s", path)
            return None

    def _write(self, path: Path, record: DiskRecord) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(record.model_dump_json())
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get_or_create(self, provider: ProviderDescriptor, request: CacheRequest) -> Any:
        settings: DiskConfig = provider.settings()
        path = self.path_for(settings.folder, request.key)
        policy = request.policy

        if self._is_fresh(path, policy, time.time()):
            value = self._read(path)
            if value is not None:
                if policy.sliding:
                    try:
                        os.utime(path)
                    except FileNotFoundError:
                        logger.debug("entry '%s' removed before refresh", path.name)
                return value

        value = request.compute()
        if value is None:
            return None

        record = DiskRecord(
            version=DISK_SCHEMA_VERSION,
            query=request.description,
            data=encode_value(
                value, compression_threshold=settings.compression_threshold
            ),
        )
        self._write(path, record)
        return value

    def clear_cache(self, provider: ProviderDescriptor, *, force: bool = False) -> int:
        """Remove cache files; without `force` only those past retention age."""
        settings: DiskConfig = provider.settings()
        if not settings.folder.is_dir():
            return 0
        cutoff = time.time() - settings.retention_age_s
        removed = 0
        for path in settings.folder.glob("*.json"):
            try:
                if force or path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
        return removed
