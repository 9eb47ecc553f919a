#!/usr/bin/env python3
"""
Receipt Printer - HTTP bridge for USB ESC/POS receipt printers.

Run: python app.py  (RECEIPTPRINTER_HOST / RECEIPTPRINTER_PORT to override)
"""

import os

from receipt_printer import create_app

app = create_app()

if __name__ == "__main__":
    host = os.environ.get("RECEIPTPRINTER_HOST", "127.0.0.1")
    port = int(os.environ.get("RECEIPTPRINTER_PORT", "5000"))
    app.run(host=host, port=port, threaded=True)
