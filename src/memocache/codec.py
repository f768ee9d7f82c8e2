"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Self-describing envelope codec for cached values.

The envelope records how the payload was produced so that decoding never
guesses::

    {"v": 1, "fmt": "json" | "binarySerialized",
     "enc": "plain" | "gzip+base64", "type": "<module.qualname>", "data": "..."}

Decoding branches on ``enc`` first (undo transport encoding), then on ``fmt``.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import math
import pickle
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import EnvelopeError

ENVELOPE_VERSION = 1
DEFAULT_COMPRESSION_THRESHOLD = 1024

FORMAT_JSON = "json"
FORMAT_BINARY = "binarySerialized"
ENCODING_PLAIN = "plain"
ENCODING_GZIP = "gzip+base64"

EnvelopeFormat = Literal["json", "binarySerialized"]
EnvelopeEncoding = Literal["plain", "gzip+base64"]


class CacheEnvelope(BaseModel):
    """Wire/storage wrapper around one serialized cached value."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    v: int = ENVELOPE_VERSION
    fmt: EnvelopeFormat
    enc: EnvelopeEncoding
    type: str = ""
    data: str


def is_json_native(value: Any) -> bool:
    """Return True when `value` survives a JSON round trip unchanged."""
    if value is None or isinstance(value, (str, bool, int)):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, list):
        return all(is_json_native(item) for item in value)
    if isinstance(value, dict):
        return all(
            isinstance(k, str) and is_json_native(v) for k, v in value.items()
        )
    return False


def type_hint(value: Any) -> str:
    cls = type(value)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def encode_value(
    value: Any,
    *,
    compression_threshold: int = DEFAULT_COMPRESSION_THRESHOLD,
) -> CacheEnvelope:
    """Serialize one value into an envelope, compressing large payloads."""
    if is_json_native(value):
        fmt: EnvelopeFormat = FORMAT_JSON
        raw = json.dumps(value, ensure_ascii=True, separators=(",", ":")).encode(
            "ascii"
        )
    else:
        fmt = FORMAT_BINARY
        try:
            raw = pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise EnvelopeError(
                f"Value of type '{type_hint(value)}' cannot be serialized"
            ) from e

    if len(raw) >= compression_threshold:
        enc: EnvelopeEncoding = ENCODING_GZIP
        data = base64.b64encode(gzip.compress(raw)).decode("ascii")
    elif fmt == FORMAT_JSON:
        enc = ENCODING_PLAIN
        data = raw.decode("utf-8")
    else:
        enc = ENCODING_PLAIN
        data = base64.b64encode(raw).decode("ascii")

    return CacheEnvelope(fmt=fmt, enc=enc, type=type_hint(value), data=data)


def decode_value(envelope: CacheEnvelope) -> Any:
    """Restore the stored value from an envelope."""
    if envelope.v != ENVELOPE_VERSION:
        raise EnvelopeError(f"Unsupported envelope version: {envelope.v}")

    try:
        if envelope.enc == ENCODING_GZIP:
            raw = gzip.decompress(base64.b64decode(envelope.data, validate=True))
        elif envelope.fmt == FORMAT_BINARY:
            raw = base64.b64decode(envelope.data, validate=True)
        else:
            raw = envelope.data.encode("utf-8")
    except (binascii.Error, OSError, EOFError) as e:
        raise EnvelopeError(f"Corrupt '{envelope.enc}' payload") from e

    try:
        if envelope.fmt == FORMAT_JSON:
            return json.loads(raw.decode("utf-8"))
        return pickle.loads(raw)  # noqa: S301
    except (
        ValueError,
        pickle.UnpicklingError,
        EOFError,
        AttributeError,
        ImportError,
        IndexError,
    ) as e:
        raise EnvelopeError(
            f"Corrupt '{envelope.fmt}' payload for type '{envelope.type}'"
        ) from e


def dumps(
    value: Any,
    *,
    compression_threshold: int = DEFAULT_COMPRESSION_THRESHOLD,
) -> str:
    """Encode a value straight to envelope JSON text."""
    return encode_value(
        value, compression_threshold=compression_threshold
    ).model_dump_json()


def parse_envelope(raw: str | bytes) -> CacheEnvelope:
    """Parse envelope JSON text, rejecting unknown formats and encodings."""
    try:
        return CacheEnvelope.model_validate_json(raw)
    except ValidationError as e:
        raise EnvelopeError(f"Invalid cache envelope: {e.error_count()} error(s)") from e


def loads(raw: str | bytes) -> Any:
    """Decode envelope JSON text back into a value."""
    return decode_value(parse_envelope(raw))
