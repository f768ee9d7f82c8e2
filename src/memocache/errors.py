"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error hierarchy for provider registration, initialization and wire I/O.
"""

from __future__ import annotations


class MemoCacheError(RuntimeError):
    """Base error for all cache framework failures."""


class ProviderNotRegistered(MemoCacheError):
    """Raised when an unknown provider name is requested."""


class DuplicateProvider(MemoCacheError):
    """Raised when a provider name is already registered (case-insensitive)."""


class ConfigurationError(MemoCacheError):
    """Raised when provider config is malformed or missing mandatory options."""

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.missing = missing


class BackendInitializationError(MemoCacheError):
    """Raised when lazy backend initialization fails in strict mode."""


class TeardownError(MemoCacheError):
    """Wraps failures raised by a backend teardown hook. Logged, never raised."""


class EnvelopeError(MemoCacheError):
    """Raised when a stored cache envelope cannot be decoded."""


class WireError(MemoCacheError):
    """Base error for remote wire protocol failures."""


class Disconnected(WireError):
    """Raised when the remote stream ends unexpectedly."""


class ProtocolError(WireError):
    """Raised on unknown type tags or malformed framing."""


class WireTimeoutError(WireError):
    """Raised when a stream read or write exceeds its timeout."""


class WireDataError(WireError):
    """Raised when a request argument cannot be encoded."""


class ResponseError(WireError):
    """Error reply (`-ERR ...`) returned by the remote server."""


class SweepError(WireError):
    """Raised when a cursor-based key sweep stops making progress."""
