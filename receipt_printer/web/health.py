from __future__ import annotations

"""
Health endpoints for Receipt Printer.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Worker pool status
- Whether the host offers a USB manager, and whether the permission listener is registered
- The configured transport
"""

from typing import Any, Dict

from flask import Blueprint, current_app

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    svc = current_app.extensions["receipt_printer"]
    status: Dict[str, Any] = {"status": "ok", "transport": svc.settings.get("transport", "usb")}
    status.update(svc.worker.status())

    try:
        manager_ok = svc.context is not None and svc.context.usb_manager() is not None
    except Exception as e:
        current_app.logger.warning("USB manager check failed: %s", e)
        manager_ok = False
    status["usb_manager_ok"] = manager_ok
    status["permission_listener"] = svc.broker.listener_registered
    if not manager_ok:
        status["status"] = "degraded"
        status["reason"] = "usb_manager_unavailable"
    return status, 200
