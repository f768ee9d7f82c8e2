"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Synchronous request/response connection to the remote key-value server.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import Any

from ..errors import Disconnected, ProtocolError, WireTimeoutError
from .protocol import ResponseReader, encode_command

logger = logging.getLogger("memocache.wire")


class RespConnection:
    """
    One socket to the remote server with a strict one-request-at-a-time lock.

    The protocol has no request ids, so every ``execute`` writes one frame and
    reads one reply while holding ``_lock``. Any wire failure closes the
    socket: a stream in an unknown position is never reused.

    Args:
        host: Server host name or address.
        port: Server TCP port.
        database: Logical database index selected after connect.
        username: Optional ACL user name sent with ``AUTH``.
        password: Optional password; enables ``AUTH``.
        connect_timeout_s: Timeout for establishing the TCP connection.
        socket_timeout_s: Timeout applied to each read and write.
    """

    def __init__(
        self,
        host: str,
        port: int = 6379,
        *,
        database: int = 0,
        username: str | None = None,
        password: str | None = None,
        connect_timeout_s: float = 5.0,
        socket_timeout_s: float = 5.0,
    ) -> None:
        self.host = host
        self.port = port
        self.database = database
        self._username = username
        self._password = password
        self._connect_timeout_s = connect_timeout_s
        self._socket_timeout_s = socket_timeout_s
        self._lock = threading.Lock()
        self._sock: socket.socket | None = None
        self._reader: ResponseReader | None = None
        self._stream: Any = None

    def __repr__(self) -> str:
        return f"RespConnection({self.host}:{self.port}/{self.database})"

    @property
    def is_connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> None:
        """Open the socket and run the AUTH / SELECT / PING handshake."""
        with self._lock:
            if self._sock is not None:
                return
            try:
                sock = socket.create_connection(
                    (self.host, self.port), timeout=self._connect_timeout_s
                )
            except socket.timeout as e:
                raise WireTimeoutError(f"Timed out connecting to {self!r}") from e
            except OSError as e:
                raise Disconnected(f"Cannot connect to {self!r}: {e}") from e
            sock.settimeout(self._socket_timeout_s)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self._sock = sock
            self._stream = sock.makefile("rb")
            self._reader = ResponseReader(self._stream)

            try:
                if self._password:
                    if self._username:
                        self._roundtrip(("AUTH", self._username, self._password))
                    else:
                        self._roundtrip(("AUTH", self._password))
                if self.database:
                    self._roundtrip(("SELECT", self.database))
                reply = self._roundtrip(("PING",))
            except BaseException:
                self._close_locked()
                raise
            if reply != "PONG":
                self._close_locked()
                raise ProtocolError(f"Unexpected PING reply from {self!r}: {reply!r}")
        logger.debug("connected to %r", self)

    def execute(self, *args: Any) -> Any:
        """Send one command and return its decoded reply."""
        with self._lock:
            if self._sock is None:
                raise Disconnected(f"{self!r} is not connected")
            return self._roundtrip(args)

    def _roundtrip(self, args: tuple[Any, ...]) -> Any:
        assert self._sock is not None and self._reader is not None
        frame = encode_command(args)
        try:
            self._sock.sendall(frame)
            return self._reader.read_response()
        except socket.timeout as e:
            self._close_locked()
            raise WireTimeoutError(
                f"Timed out waiting for {args[0]!r} reply from {self!r}"
            ) from e
        except (Disconnected, ProtocolError):
            self._close_locked()
            raise
        except OSError as e:
            self._close_locked()
            raise Disconnected(f"Socket error on {self!r}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._close_locked()

    def _close_locked(self) -> None:
        sock, stream = self._sock, self._stream
        self._sock = None
        self._stream = None
        self._reader = None
        if stream is not None:
            try:
                stream.close()
            except OSError:
                logger.debug("error closing stream for %r", self, exc_info=True)
        if sock is not None:
            try:
                sock.close()
            except OSError:
                logger.debug("error closing socket for %r", self, exc_info=True)

    def __enter__(self) -> RespConnection:
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
