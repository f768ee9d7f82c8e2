from __future__ import annotations

import fnmatch
import math
import socket
import socketserver
import threading
import time

import pytest


def _read_request(rfile) -> list[bytes]:
    line = rfile.readline()
    if not line:
        raise EOFError
    if not line.startswith(b"*"):
        raise ValueError(f"bad request header {line!r}")
    count = int(line[1:].strip())
    args: list[bytes] = []
    for _ in range(count):
        header = rfile.readline()
        if not header:
            raise EOFError
        size = int(header[1:].strip())
        data = rfile.read(size + 2)
        if len(data) < size + 2:
            raise EOFError
        args.append(data[:-2])
    return args


def _bulk(value: bytes | None) -> bytes:
    if value is None:
        return b"$-1\r\n"
    return b"$%d\r\n%s\r\n" % (len(value), value)


class FakeRemoteServer:
    """Tiny threaded key-value server speaking the request/response protocol."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.data: dict[bytes, tuple[bytes, float | None]] = {}
        self.order: list[bytes] = []
        self.connections = 0
        self.commands: list[list[bytes]] = []
        self.password: str | None = None
        self._sockets: list[socket.socket] = []
        server = self

        class Handler(socketserver.StreamRequestHandler):
            def handle(self) -> None:
                with server.lock:
                    server.connections += 1
                    server._sockets.append(self.connection)
                while True:
                    try:
                        args = _read_request(self.rfile)
                        reply = server.dispatch(args)
                        self.wfile.write(reply)
                        self.wfile.flush()
                    except (EOFError, OSError, ValueError):
                        return

        self._tcp = socketserver.ThreadingTCPServer(("127.0.0.1", 0), Handler)
        self._tcp.daemon_threads = True
        self.host, self.port = self._tcp.server_address[:2]
        self._thread = threading.Thread(target=self._tcp.serve_forever, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self.kick()
        self._tcp.shutdown()
        self._tcp.server_close()

    def kick(self) -> None:
        """Close every client connection from the server side."""
        with self.lock:
            sockets, self._sockets = self._sockets, []
        for sock in sockets:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

    def _live(self, key: bytes) -> bytes | None:
        row = self.data.get(key)
        if row is None:
            return None
        value, expires_at = row
        if expires_at is not None and expires_at <= time.time():
            del self.data[key]
            return None
        return value

    def ttl(self, key: str) -> int:
        with self.lock:
            if self._live(key.encode()) is None:
                return -2
            expires_at = self.data[key.encode()][1]
        if expires_at is None:
            return -1
        return math.ceil(expires_at - time.time())

    def keys(self) -> list[str]:
        with self.lock:
            return sorted(k.decode() for k in list(self.data) if self._live(k) is not None)

    def dispatch(self, args: list[bytes]) -> bytes:
        with self.lock:
            self.commands.append(args)
            cmd = args[0].decode().upper()
            if cmd == "PING":
                return b"+PONG\r\n"
            if cmd == "AUTH":
                if self.password is None or args[-1].decode() == self.password:
                    return b"+OK\r\n"
                return b"-WRONGPASS invalid username-password pair\r\n"
            if cmd == "SELECT":
                return b"+OK\r\n"
            if cmd == "GET":
                return _bulk(self._live(args[1]))
            if cmd == "SET":
                expires_at = None
                opts = [a.decode().upper() for a in args[3:]]
                if "EX" in opts:
                    expires_at = time.time() + int(opts[opts.index("EX") + 1])
                if args[1] not in self.data and args[1] not in self.order:
                    self.order.append(args[1])
                self.data[args[1]] = (args[2], expires_at)
                return b"+OK\r\n"
            if cmd == "DEL":
                count = 0
                for key in args[1:]:
                    if self._live(key) is not None:
                        del self.data[key]
                        count += 1
                return b":%d\r\n" % count
            if cmd == "EXPIRE":
                if self._live(args[1]) is None:
                    return b":0\r\n"
                value, _ = self.data[args[1]]
                self.data[args[1]] = (value, time.time() + int(args[2]))
                return b":1\r\n"
            if cmd == "SCAN":
                cursor = int(args[1])
                opts = [a.decode() for a in args[2:]]
                pattern = opts[opts.index("MATCH") + 1] if "MATCH" in opts else "*"
                count = int(opts[opts.index("COUNT") + 1]) if "COUNT" in opts else 10
                page = self.order[cursor : cursor + count]
                next_cursor = cursor + count if cursor + count < len(self.order) else 0
                found = [
                    k
                    for k in page
                    if self._live(k) is not None
                    and fnmatch.fnmatchcase(k.decode(), pattern)
                ]
                body = b"".join(_bulk(k) for k in found)
                return (
                    b"*2\r\n"
                    + _bulk(str(next_cursor).encode())
                    + b"*%d\r\n" % len(found)
                    + body
                )
            return b"-ERR unknown command '%s'\r\n" % args[0]


@pytest.fixture
def fake_remote():
    server = FakeRemoteServer()
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def closed_port() -> int:
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
