"""
Receipt Printer package

Drives USB thermal receipt printers with ESC/POS. This module provides an
application factory that exposes the PrinterService operations over HTTP:
- Configures logging (receipt_printer.core.logging)
- Builds the PrinterService from saved config + environment, unless one is given
- Registers the API and health blueprints
- Initializes the permission listener once
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Mapping
from typing import Any, Optional

from flask import Flask, g

from receipt_printer.core.config import resolve_settings
from receipt_printer.core.logging import configure_logging
from receipt_printer.service import PrinterService

logger = logging.getLogger(__name__)


def _set_request_id() -> None:
    """
    Assign a request ID for logging, honoring an incoming X-Request-ID.
    """
    from flask import request

    g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex


def create_app(
    config_overrides: Optional[Mapping[str, Any]] = None,
    service: Optional[PrinterService] = None,
    init_logging: bool = True,
) -> Flask:
    """
    Application factory.

    Parameters:
    - config_overrides: settings applied over saved config and environment
    - service: a prebuilt PrinterService (tests pass one with a fake host)
    - init_logging: configure root logging

    Returns:
    - Flask app instance
    """
    if init_logging:
        configure_logging()

    app = Flask("receipt_printer")
    app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("RECEIPTPRINTER_MAX_CONTENT_LENGTH", 1024 * 1024))
    app.url_map.strict_slashes = False

    if service is None:
        service = PrinterService.from_settings(resolve_settings(config_overrides))
    elif config_overrides:
        service.settings.update(config_overrides)
    app.extensions["receipt_printer"] = service

    if service.initialize():
        app.logger.info("USB permission listener ready")
    else:
        app.logger.warning("USB manager unavailable; discovery will return no devices")

    @app.before_request
    def _before_request():
        _set_request_id()

    @app.after_request
    def _after_request(response):
        response.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        return response

    from receipt_printer.web import api_bp, health_bp

    app.register_blueprint(api_bp)
    app.register_blueprint(health_bp)

    app.logger.info("Receipt Printer app created (transport=%s)", service.settings.get("transport"))
    return app


__all__ = ["PrinterService", "create_app"]
