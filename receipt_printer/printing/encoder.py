"""
ESC/POS encoding for test pages and receipts.

EscPosEncoder is a pure transformation: the same receipt and logo always give
the same bytes. It knows nothing about how the bytes reach the printer.
"""

from __future__ import annotations

import logging
from typing import Optional

from PIL import Image

from . import commands as c
from .raster import to_raster
from .receipt import ITEM_NAME_WIDTH, Receipt, ReceiptItem

logger = logging.getLogger(__name__)

LINE_WIDTH = 45
TEST_PAGE_TEXT = "Hello World"

# Largest payload whose store length byte (payload + 3) still fits in pL
QR_MAX_PAYLOAD = 252

QR_MODULE_SIZE = 8
# '0' = level L (7% recovery)
QR_ERROR_CORRECTION = 0x30


def format_header_row() -> str:
    return f"{'Item':<{ITEM_NAME_WIDTH}} {'Qty':>6} {'Price':>11} {'Tax':>12}\n"


def format_row(name: str, qty: int, price: float, tax: float) -> str:
    return f"{name[:ITEM_NAME_WIDTH]:<{ITEM_NAME_WIDTH}} {qty:>6d} {price:>11.2f} {tax:>12.2f}\n"


def format_item_row(item: ReceiptItem) -> str:
    return format_row(item.display_name, item.qty, item.price, item.tax)


def separator() -> str:
    return "-" * LINE_WIDTH + "\n"


def qr_sequence(data: str) -> bytes:
    """
    Size, error correction, store and print sub-commands for a QR symbol (model 2).
    """
    payload = data.encode("utf-8")
    if len(payload) > QR_MAX_PAYLOAD:
        logger.warning(
            "QR payload of %d bytes exceeds %d; the store length byte wraps",
            len(payload),
            QR_MAX_PAYLOAD,
        )
    return b"".join(
        (
            c.qr_command(bytes([0x31, 0x43, QR_MODULE_SIZE])),
            c.qr_command(bytes([0x31, 0x45, QR_ERROR_CORRECTION])),
            c.qr_command(b"\x31\x50\x30", payload),
            c.qr_command(b"\x31\x51\x30"),
        )
    )


class EscPosEncoder:
    def initialize(self) -> bytes:
        return c.INITIALIZE

    def feed_and_cut(self) -> bytes:
        return c.FEED_AND_CUT

    def test_page(self) -> bytes:
        buf = c.CommandBuffer()
        buf.write(c.INITIALIZE)
        buf.write(c.line_spacing(2))
        buf.write(c.ALIGN_CENTER)
        buf.write(c.SIZE_DOUBLE)
        buf.line(TEST_PAGE_TEXT)
        buf.write(c.LF + c.SIZE_NORMAL + c.ALIGN_LEFT)
        buf.write(c.line_spacing(4))
        buf.write(c.PARTIAL_CUT)
        return buf.to_bytes()

    def receipt(self, receipt: Receipt, logo: Optional[Image.Image] = None) -> bytes:
        buf = c.CommandBuffer()
        buf.write(c.INITIALIZE)

        if logo is not None:
            buf.write(c.ALIGN_CENTER)
            buf.write(to_raster(logo))
            buf.write(c.LF * 2)

        buf.write(c.ALIGN_CENTER)
        buf.write(c.EMPHASIS_ON)
        buf.write(c.SIZE_DOUBLE)
        buf.line(receipt.store_name)
        buf.write(c.EMPHASIS_OFF)
        buf.write(c.SIZE_SMALL)
        for text in (receipt.store_address, receipt.receipt_number, receipt.receipt_date):
            buf.write(c.ALIGN_CENTER)
            buf.line(text)

        buf.write(c.ALIGN_LEFT)
        buf.text(separator())
        buf.write(c.SIZE_SMALL)
        buf.text(format_header_row())
        for item in receipt.items:
            buf.text(format_item_row(item))
        buf.text(separator())
        totals = receipt.totals()
        buf.text(format_row("TOTAL", totals.qty, totals.price, totals.tax))

        buf.write(c.ALIGN_CENTER)
        buf.write(qr_sequence(receipt.receipt_id))
        buf.write(c.LF * 3)
        buf.write(c.line_spacing(4))
        buf.write(c.PARTIAL_CUT)
        return buf.to_bytes()


__all__ = [
    "LINE_WIDTH",
    "QR_MAX_PAYLOAD",
    "TEST_PAGE_TEXT",
    "EscPosEncoder",
    "format_header_row",
    "format_item_row",
    "format_row",
    "qr_sequence",
    "separator",
]
