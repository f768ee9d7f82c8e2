"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: wire/__init__.py.
"""

from .connection import RespConnection
from .protocol import ResponseReader, encode_command
from .sweep import delete_matching

__all__ = [
    "RespConnection",
    "ResponseReader",
    "encode_command",
    "delete_matching",
]
