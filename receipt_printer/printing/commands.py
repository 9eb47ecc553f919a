"""
ESC/POS command bytes and the CommandBuffer builder.
"""

from __future__ import annotations

from typing import Union

ESC = b"\x1b"
GS = b"\x1d"
LF = b"\x0a"

INITIALIZE = ESC + b"@"
EMPHASIS_ON = ESC + b"E\x01"
EMPHASIS_OFF = ESC + b"E\x00"
ALIGN_LEFT = ESC + b"a\x00"
ALIGN_CENTER = ESC + b"a\x01"
SIZE_NORMAL = GS + b"!\x00"
SIZE_SMALL = GS + b"!\x01"
SIZE_DOUBLE = GS + b"!\x11"
PARTIAL_CUT = GS + b"VB\x00"
FEED_AND_CUT = GS + b"V\x00"
RASTER_IMAGE = GS + b"v0\x00"
QR_FUNCTION = GS + b"(k"


def line_spacing(n: int) -> bytes:
    """ESC d n."""
    return ESC + b"d" + bytes([n & 0xFF])


def qr_command(function: bytes, payload: bytes = b"") -> bytes:
    """
    GS ( k pL pH cn fn [params]; pL/pH count the function bytes plus payload.

    Only pL carries the length: it is (len + 3) & 0xFF with pH fixed at 0, so
    payloads beyond 252 bytes wrap around. Printers read a wrapped length as a
    short store command followed by garbage.
    """
    return QR_FUNCTION + bytes([(len(function) + len(payload)) & 0xFF, 0x00]) + function + payload


class CommandBuffer:
    """Append-only ESC/POS byte stream."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def write(self, data: Union[bytes, bytearray, str]) -> "CommandBuffer":
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._buf.extend(data)
        return self

    def text(self, s: str) -> "CommandBuffer":
        return self.write(s)

    def line(self, s: str = "") -> "CommandBuffer":
        return self.write(s + "\n")

    def __len__(self) -> int:
        return len(self._buf)

    def to_bytes(self) -> bytes:
        return bytes(self._buf)


__all__ = [
    "ALIGN_CENTER",
    "ALIGN_LEFT",
    "EMPHASIS_OFF",
    "EMPHASIS_ON",
    "ESC",
    "FEED_AND_CUT",
    "GS",
    "INITIALIZE",
    "LF",
    "PARTIAL_CUT",
    "QR_FUNCTION",
    "RASTER_IMAGE",
    "SIZE_DOUBLE",
    "SIZE_NORMAL",
    "SIZE_SMALL",
    "CommandBuffer",
    "line_spacing",
    "qr_command",
]
