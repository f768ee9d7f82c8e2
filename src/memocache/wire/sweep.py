"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cursor-based deletion of every key matching a pattern.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..errors import ProtocolError, SweepError

logger = logging.getLogger("memocache.wire.sweep")

DEFAULT_SCAN_COUNT = 500
DEFAULT_DELETE_BATCH_SIZE = 500
DEFAULT_MAX_STALLS = 3


class CommandExecutor(Protocol):
    def execute(self, *args: Any) -> Any: ...


def _parse_scan_reply(reply: Any) -> tuple[str, list[str]]:
    if not isinstance(reply, list) or len(reply) != 2:
        raise ProtocolError(f"Malformed SCAN reply: {reply!r}")
    cursor, keys = reply
    if isinstance(cursor, bytes):
        cursor = cursor.decode("ascii")
    if not isinstance(cursor, str) or not cursor.isdigit():
        raise ProtocolError(f"Malformed SCAN cursor: {cursor!r}")
    if not isinstance(keys, list):
        raise ProtocolError(f"Malformed SCAN key list: {keys!r}")
    return cursor, [k.decode("utf-8") if isinstance(k, bytes) else k for k in keys]


def delete_matching(
    conn: CommandExecutor,
    pattern: str,
    *,
    scan_count: int = DEFAULT_SCAN_COUNT,
    batch_size: int = DEFAULT_DELETE_BATCH_SIZE,
    max_stalls: int = DEFAULT_MAX_STALLS,
) -> int:
    """
    Delete all keys matching `pattern` without a blocking full-keyspace listing.

    Iterates with ``SCAN`` and deletes in ``DEL`` batches of at most
    `batch_size` keys. A non-zero cursor that comes back unchanged counts as
    a stall; more than `max_stalls` consecutive stalls raise
    `SweepError`.

    Returns:
        Number of keys the server reported as deleted.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    cursor = "0"
    stalls = 0
    pending: list[str] = []
    deleted = 0

    def flush() -> int:
        if not pending:
            return 0
        count = conn.execute("DEL", *pending)
        pending.clear()
        return int(count or 0)

    while True:
        next_cursor, keys = _parse_scan_reply(
            conn.execute("SCAN", cursor, "MATCH", pattern, "COUNT", scan_count)
        )
        if next_cursor != "0" and next_cursor == cursor:
            stalls += 1
            if stalls > max_stalls:
                raise SweepError(
                    f"SCAN cursor stuck at {cursor} for pattern {pattern!r}"
                )
        else:
            stalls = 0

        for key in keys:
            pending.append(key)
            if len(pending) >= batch_size:
                deleted += flush()

        cursor = next_cursor
        if cursor == "0":
            break

    deleted += flush()
    logger.debug("swept %d keys matching %r", deleted, pattern)
    return deleted
