from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone

import pytest

from memocache.backends.base import CacheRequest
from memocache.backends.disk import DISK_SCHEMA_VERSION, DiskCache
from memocache.errors import ConfigurationError
from memocache.policy import CachePolicy, resolve_cache_policy
from memocache.registry import ProviderDescriptor, ProviderRegistry


@pytest.fixture
def provider(tmp_path) -> ProviderDescriptor:
    registry = ProviderRegistry()
    return registry.register(
        ProviderDescriptor(
            name="disk",
            backend=DiskCache(),
            config={"folder": str(tmp_path / "cache"), "retention_age_s": 3600},
        )
    )


def _request(key: str, value, policy: CachePolicy | None = None, calls=None):
    def executor():
        if calls is not None:
            calls.append(1)
        return value

    return CacheRequest(
        key=key,
        executor=executor,
        policy=policy or CachePolicy.from_ttl(60),
        description="load things",
    )


def test_missing_folder_option_fails_registration():
    with pytest.raises(ConfigurationError, match="folder"):
        ProviderRegistry().register(
            ProviderDescriptor(name="disk", backend=DiskCache(), config={})
        )


def test_initialize_creates_folder(provider, tmp_path):
    assert (tmp_path / "cache").is_dir()


def test_writes_versioned_record(provider, tmp_path):
    provider.backend.get_or_create(provider, _request("abc", {"n": 1}))
    record = json.loads((tmp_path / "cache" / "abc.json").read_text())
    assert record["version"] == DISK_SCHEMA_VERSION
    assert record["query"] == "load things"
    assert record["data"]["fmt"] == "json"


def test_hit_skips_executor(provider):
    calls: list[int] = []
    provider.backend.get_or_create(provider, _request("k", [1, 2], calls=calls))
    assert provider.backend.get_or_create(provider, _request("k", [9], calls=calls)) == [1, 2]
    assert len(calls) == 1


def test_stale_file_is_recomputed(provider, tmp_path):
    calls: list[int] = []
    provider.backend.get_or_create(provider, _request("k", "old", calls=calls))
    path = tmp_path / "cache" / "k.json"
    past = time.time() - 120
    os.utime(path, (past, past))
    assert provider.backend.get_or_create(provider, _request("k", "new", calls=calls)) == "new"
    assert len(calls) == 2


def test_absolute_deadline_in_past_is_always_a_miss(provider):
    calls: list[int] = []
    policy = resolve_cache_policy(expire_at=datetime(2000, 1, 1, tzinfo=timezone.utc))
    provider.backend.get_or_create(provider, _request("k", "a", policy, calls))
    provider.backend.get_or_create(provider, _request("k", "a", policy, calls))
    assert len(calls) == 2


def test_sliding_hit_touches_file(provider, tmp_path):
    policy = CachePolicy.from_ttl(60, mode="sliding")
    provider.backend.get_or_create(provider, _request("k", "v", policy))
    path = tmp_path / "cache" / "k.json"
    past = time.time() - 30
    os.utime(path, (past, past))
    provider.backend.get_or_create(provider, _request("k", "v", policy))
    assert path.stat().st_mtime > past + 20


def test_schema_version_mismatch_is_a_miss(provider, tmp_path):
    calls: list[int] = []
    provider.backend.get_or_create(provider, _request("k", "v1", calls=calls))
    path = tmp_path / "cache" / "k.json"
    record = json.loads(path.read_text())
    record["version"] = DISK_SCHEMA_VERSION + 1
    path.write_text(json.dumps(record))
    assert provider.backend.get_or_create(provider, _request("k", "v2", calls=calls)) == "v2"
    assert len(calls) == 2


def test_corrupt_file_is_a_miss(provider, tmp_path):
    (tmp_path / "cache" / "k.json").write_text("{not json")
    assert provider.backend.get_or_create(provider, _request("k", "fresh")) == "fresh"


def test_unsafe_keys_are_hashed(provider, tmp_path):
    provider.backend.get_or_create(provider, _request("../escape me", "v"))
    files = list((tmp_path / "cache").glob("*.json"))
    assert len(files) == 1
    assert len(files[0].stem) == 64


def test_folder_is_reread_from_config(provider, tmp_path):
    provider.config["folder"] = str(tmp_path / "moved")
    provider.backend.get_or_create(provider, _request("k", "v"))
    assert (tmp_path / "moved" / "k.json").exists()


def test_clear_cache_respects_retention(provider, tmp_path):
    provider.backend.get_or_create(provider, _request("fresh", "v"))
    provider.backend.get_or_create(provider, _request("old", "v"))
    past = time.time() - 7200
    os.utime(tmp_path / "cache" / "old.json", (past, past))

    assert provider.backend.clear_cache(provider) == 1
    assert (tmp_path / "cache" / "fresh.json").exists()
    assert provider.backend.clear_cache(provider, force=True) == 1
    assert list((tmp_path / "cache").glob("*.json")) == []


def test_sliding_hit_survives_concurrent_removal(provider, tmp_path, monkeypatch):
    policy = CachePolicy.from_ttl(60, mode="sliding")
    provider.backend.get_or_create(provider, _request("k", "v", policy))
    path = tmp_path / "cache" / "k.json"

    def removed_meanwhile(target, *args, **kwargs):
        os.remove(target)
        raise FileNotFoundError(target)

    monkeypatch.setattr(os, "utime", removed_meanwhile)
    calls: list[int] = []
    assert provider.backend.get_or_create(provider, _request("k", "other", policy, calls)) == "v"
    assert calls == []
    assert not path.exists()
