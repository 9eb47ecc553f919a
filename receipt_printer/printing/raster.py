"""
Bitmap to ESC/POS raster conversion.

Each pixel's luminance is 0.299R + 0.587G + 0.114B; pixels darker than 128
print. Rows are packed MSB-first into ceil(width / 8) bytes, and the result is
framed by the GS v 0 raster header (mode 0, little-endian byte-width and height).
"""

from __future__ import annotations

from PIL import Image

from .commands import RASTER_IMAGE

THRESHOLD = 128


def _le16(value: int) -> bytes:
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"Raster dimension out of range: {value}")
    return bytes([value & 0xFF, (value >> 8) & 0xFF])


def pack_rows(image: Image.Image) -> bytes:
    """Pack image into 1-bit rows without the command header."""
    rgb = image.convert("RGB")
    width, height = rgb.size
    bytes_per_row = (width + 7) // 8
    out = bytearray(bytes_per_row * height)
    px = rgb.load()
    for y in range(height):
        row = y * bytes_per_row
        for x in range(width):
            r, g, b = px[x, y]
            if int(0.299 * r + 0.587 * g + 0.114 * b) < THRESHOLD:
                out[row + x // 8] |= 0x80 >> (x % 8)
    return bytes(out)


def to_raster(image: Image.Image) -> bytes:
    """Return the complete GS v 0 command for image."""
    width, height = image.size
    bytes_per_row = (width + 7) // 8
    return RASTER_IMAGE + _le16(bytes_per_row) + _le16(height) + pack_rows(image)


__all__ = ["THRESHOLD", "pack_rows", "to_raster"]
