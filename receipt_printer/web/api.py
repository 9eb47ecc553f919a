from __future__ import annotations

"""
JSON API (v1) for Receipt Printer.

Endpoints:
- GET  /api/v1/printers                          : Discover permitted USB printers
- POST /api/v1/printers/<device_id>/test-page    : Print a test page (async). 202 + Location
- POST /api/v1/printers/<device_id>/receipt      : Print a receipt JSON body (async). 202 + Location
- GET  /api/v1/jobs                              : Recent jobs, newest first
- GET  /api/v1/jobs/<job_id>                     : Job status
- GET  /api/v1/events?after=<seq>                : onChange events after seq
- POST /api/v1/events/value                      : Emit a {"value": str} onChange event
"""

import os
from concurrent.futures import TimeoutError as FutureTimeoutError

from flask import Blueprint, current_app, jsonify, request, url_for
from pydantic import ValidationError

from receipt_printer.core.errors import PrinterError
from receipt_printer.printing.worker import get_job, list_jobs

from . import schemas

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except Exception:
        return default


DISCOVERY_TIMEOUT_S = _env_float("RECEIPTPRINTER_DISCOVERY_TIMEOUT", 10.0)
MAX_RECEIPT_BYTES = int(_env_float("RECEIPTPRINTER_MAX_RECEIPT_BYTES", 256 * 1024))


def _service():
    return current_app.extensions["receipt_printer"]


def _json_error(msg: str, code: int = 400):
    return jsonify({"error": msg}), code


def _accepted(future):
    href = url_for("api.job_status", job_id=future.job_id)
    body = schemas.JobAcceptedResponse(id=future.job_id, links=schemas.Links(self=href))
    resp = jsonify(body.model_dump())
    resp.status_code = 202
    resp.headers["Location"] = href
    return resp


@api_bp.get("/printers")
def list_printers():
    """
    Run discovery and wait for its result.

    Devices lacking permission are not listed; their permission result shows
    up later on /api/v1/events.
    """
    future = _service().discover_usb_printers()
    try:
        printers = future.result(timeout=DISCOVERY_TIMEOUT_S)
    except FutureTimeoutError:
        return _json_error("Discovery timed out", 504)
    except PrinterError as e:
        current_app.logger.error("Discovery failed: %s", e)
        return _json_error(str(e), 500)
    return jsonify(schemas.PrinterListResponse(printers=printers).model_dump())


@api_bp.post("/printers/<int:device_id>/test-page")
def print_test_page(device_id: int):
    future = _service().print_test_page(device_id)
    current_app.logger.info("Test page queued for device %s job=%s", device_id, future.job_id)
    return _accepted(future)


@api_bp.post("/printers/<int:device_id>/receipt")
def print_receipt(device_id: int):
    """
    Accept a receipt JSON body and queue it. The body is passed through as
    text; field defaults and coercion are applied by the print operation.
    """
    if not request.is_json:
        return _json_error("Expected application/json body", 415)
    body = request.get_data(as_text=True)
    if len(body.encode("utf-8")) > MAX_RECEIPT_BYTES:
        return _json_error("Receipt too large", 413)
    future = _service().print_receipt(device_id, body)
    current_app.logger.info("Receipt queued for device %s job=%s", device_id, future.job_id)
    return _accepted(future)


@api_bp.get("/jobs")
def jobs_list():
    return jsonify(schemas.JobListResponse(jobs=list_jobs()).model_dump())


@api_bp.get("/jobs/<job_id>")
def job_status(job_id: str):
    """
    Return job status JSON, 404 if not found.
    """
    job = get_job(job_id)
    if job:
        return job
    return _json_error("not_found", 404)


@api_bp.get("/events")
def list_events():
    try:
        after = int(request.args.get("after", 0))
    except ValueError:
        return _json_error("after must be an integer", 400)
    svc = _service()
    events = svc.events_since(after)
    return jsonify(schemas.EventsResponse(events=events, last_seq=svc.events.last_seq).model_dump(exclude_none=True))


@api_bp.post("/events/value")
def emit_value():
    if not request.is_json:
        return _json_error("Expected application/json body", 415)
    data = request.get_json(silent=True) or {}
    try:
        req = schemas.ValueRequest.model_validate(data)
    except ValidationError as e:
        try:
            msg = e.errors()[0].get("msg") or str(e)
        except Exception:
            msg = str(e)
        return _json_error(msg, 400)
    return _accepted(_service().set_value(req.value))
