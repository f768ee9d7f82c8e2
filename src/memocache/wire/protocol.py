"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request framing and response decoding for the remote key-value protocol.

Requests are arrays of bulk strings. Responses carry a one-byte type tag:

- ``+`` status line
- ``-`` error line
- ``:`` 64-bit integer
- ``$`` length-prefixed bulk string (``-1`` is null)
- ``*`` array of further responses (``-1`` is null)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from ..errors import Disconnected, ProtocolError, ResponseError, WireDataError

CRLF = b"\r\n"

TAG_STATUS = b"+"
TAG_ERROR = b"-"
TAG_INTEGER = b":"
TAG_BULK = b"$"
TAG_ARRAY = b"*"

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Upper bound on a single declared bulk/array length.
MAX_DECLARED_LENGTH = 512 * 1024 * 1024
MAX_LINE_LENGTH = 64 * 1024


class ByteStream(Protocol):
    """Buffered binary stream as returned by ``socket.makefile("rb")``."""

    def read(self, size: int = -1, /) -> bytes: ...

    def readline(self, size: int = -1, /) -> bytes: ...


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bool):
        raise WireDataError("Boolean arguments are ambiguous; pass str or int")
    if isinstance(value, int):
        return str(value).encode("ascii")
    if isinstance(value, float):
        return repr(value).encode("ascii")
    raise WireDataError(f"Unsupported argument type: {type(value).__name__}")


def encode_command(args: Sequence[Any]) -> bytes:
    """Serialize one request as an array-of-bulk-strings frame."""
    if not args:
        raise WireDataError("Command must have at least one argument")
    parts = [b"*%d\r\n" % len(args)]
    for arg in args:
        data = _to_bytes(arg)
        parts.append(b"$%d\r\n" % len(data))
        parts.append(data)
        parts.append(CRLF)
    return b"".join(parts)


class ResponseReader:
    """
    Decode exactly one response value at a time from a byte stream.

    Args:
        stream: Buffered binary stream to read from.
        encoding: Text encoding applied to bulk strings; ``None`` keeps bytes.
    """

    def __init__(self, stream: ByteStream, *, encoding: str | None = "utf-8") -> None:
        self._stream = stream
        self._encoding = encoding

    def read_response(self) -> Any:
        """Read one response, raising `ResponseError` for a top-level error."""
        value = self._read_value()
        if isinstance(value, ResponseError):
            raise value
        return value

    def _read_line(self) -> bytes:
        line = self._stream.readline(MAX_LINE_LENGTH + 2)
        if not line:
            raise Disconnected("Connection closed by server")
        if not line.endswith(CRLF):
            if len(line) >= MAX_LINE_LENGTH + 2:
                raise ProtocolError(
                    f"Response line exceeds {MAX_LINE_LENGTH} bytes without CRLF"
                )
            if not line.endswith(b"\n"):
                raise Disconnected("Connection closed mid-line")
            raise ProtocolError(f"Missing CRLF terminator in line {line!r}")
        return line[:-2]

    def _read_exact(self, size: int) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                raise Disconnected(
                    f"Connection closed with {remaining} of {size} bytes unread"
                )
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def _parse_int(self, raw: bytes, *, what: str) -> int:
        try:
            value = int(raw)
        except ValueError as e:
            raise ProtocolError(f"Malformed {what}: {raw!r}") from e
        if value < INT64_MIN or value > INT64_MAX:
            raise ProtocolError(f"{what} out of 64-bit range: {value}")
        return value

    def _parse_length(self, raw: bytes, *, what: str) -> int:
        length = self._parse_int(raw, what=what)
        if length < -1 or length > MAX_DECLARED_LENGTH:
            raise ProtocolError(f"Invalid {what}: {length}")
        return length

    def _text(self, raw: bytes) -> str | bytes:
        if self._encoding is None:
            return raw
        return raw.decode(self._encoding, errors="replace")

    def _read_value(self) -> Any:
        line = self._read_line()
        if not line:
            raise ProtocolError("Empty response line")
        tag, rest = line[:1], line[1:]

        if tag == TAG_STATUS:
            return rest.decode("utf-8", errors="replace")
        if tag == TAG_ERROR:
            return ResponseError(rest.decode("utf-8", errors="replace"))
        if tag == TAG_INTEGER:
            return self._parse_int(rest, what="integer reply")
        if tag == TAG_BULK:
            length = self._parse_length(rest, what="bulk length")
            if length == -1:
                return None
            data = self._read_exact(length)
            if self._read_exact(2) != CRLF:
                raise ProtocolError("Bulk string is not followed by CRLF")
            return self._text(data)
        if tag == TAG_ARRAY:
            count = self._parse_length(rest, what="array length")
            if count == -1:
                return None
            return [self._read_value() for _ in range(count)]

        raise ProtocolError(f"Unknown response type tag {tag!r}")
