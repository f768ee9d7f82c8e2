"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache policy resolution.

Turns the freshness inputs of one call (max age, absolute deadline, sliding
age) and the provider defaults into one canonical `CachePolicy`. The first
matching input wins:

1. ``max_age``
2. ``expire_at``
3. ``sliding_age``
4. provider ``default_policy`` (used verbatim)
5. provider ``default_max_age``
6. library fallback of five minutes

Inputs default to ``MISSING``. Passing ``None`` explicitly means "freshness
requested but unset" and resolves to the minimum TTL for that mode.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, TypeAlias

PolicyMode = Literal["max_age", "absolute", "sliding"]

MIN_TTL_S = 1
DEFAULT_MAX_AGE = timedelta(minutes=5)

Age: TypeAlias = timedelta | int | float


class _Missing:
    """Marker for an argument the caller did not pass."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True, slots=True)
class CachePolicy:
    """
    Resolved expiration contract for one read/compute/write cycle.

    Attributes:
        mode: Which caller input (or default) produced the policy.
        ttl_s: Lifetime in whole seconds, never below one.
        expire_at: Absolute UTC deadline, populated for every mode.
        sliding: Whether read hits should push the deadline forward.
    """

    mode: PolicyMode
    ttl_s: int
    expire_at: datetime
    sliding: bool = False

    @classmethod
    def from_ttl(
        cls,
        ttl_s: int,
        *,
        mode: PolicyMode = "max_age",
        now: datetime | None = None,
    ) -> CachePolicy:
        """Build a policy whose deadline is ``now + ttl_s``."""
        ttl = max(MIN_TTL_S, int(ttl_s))
        current = now or _utcnow()
        return cls(
            mode=mode,
            ttl_s=ttl,
            expire_at=current + timedelta(seconds=ttl),
            sliding=mode == "sliding",
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _age_seconds(age: Age | None) -> float:
    if age is None:
        return 0.0
    if isinstance(age, timedelta):
        return age.total_seconds()
    if isinstance(age, bool) or not isinstance(age, (int, float)):
        raise TypeError(f"Unsupported age value: {age!r}")
    return float(age)


def ttl_from_age(age: Age | None) -> int:
    """Round an age up to whole seconds, clamped to at least one second."""
    seconds = _age_seconds(age)
    if math.isnan(seconds):
        return MIN_TTL_S
    return max(MIN_TTL_S, math.ceil(seconds))


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC. Naive values are read as local time."""
    return value.astimezone(timezone.utc)


def resolve_cache_policy(
    *,
    max_age: Age | None = MISSING,
    expire_at: datetime | None = MISSING,
    sliding_age: Age | None = MISSING,
    default_policy: CachePolicy | None = None,
    default_max_age: Age | None = None,
    now: datetime | None = None,
) -> CachePolicy:
    """Resolve caller freshness inputs and provider defaults into one policy."""
    current = to_utc(now) if now is not None else _utcnow()

    if max_age is not MISSING:
        return CachePolicy.from_ttl(ttl_from_age(max_age), mode="max_age", now=current)

    if expire_at is not MISSING:
        if expire_at is None:
            return CachePolicy.from_ttl(MIN_TTL_S, mode="absolute", now=current)
        deadline = to_utc(expire_at)
        ttl = ttl_from_age(deadline - current)
        return CachePolicy(mode="absolute", ttl_s=ttl, expire_at=deadline)

    if sliding_age is not MISSING:
        return CachePolicy.from_ttl(
            ttl_from_age(sliding_age), mode="sliding", now=current
        )

    if default_policy is not None:
        return default_policy

    if default_max_age is not None:
        return CachePolicy.from_ttl(
            ttl_from_age(default_max_age), mode="max_age", now=current
        )

    return CachePolicy.from_ttl(
        ttl_from_age(DEFAULT_MAX_AGE), mode="max_age", now=current
    )
