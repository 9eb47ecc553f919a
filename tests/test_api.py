import json
import time
from typing import Any, Dict

import pytest

from receipt_printer import create_app
from receipt_printer.devices.manager import StaticHostContext
from receipt_printer.printing.worker import PrintWorker
from receipt_printer.service import PrinterService


@pytest.fixture
def client(service):
    app = create_app(service=service, init_logging=False)
    app.config.update(TESTING=True)
    return app.test_client()


def _wait_for_job(client, href: str, timeout: float = 5.0) -> Dict[str, Any]:
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(href).get_json()
        if body["status"] in ("success", "error") or time.monotonic() > deadline:
            return body
        time.sleep(0.01)


def test_list_printers(client, fake_manager):
    fake_manager.add_device(1001)
    fake_manager.add_device(1002, permitted=False)
    r = client.get("/api/v1/printers")
    assert r.status_code == 200
    assert [p["deviceId"] for p in r.get_json()["printers"]] == [1001]


def test_print_test_page_is_accepted_and_completes(client, fake_manager):
    conn = fake_manager.add_device(7)
    r = client.post("/api/v1/printers/7/test-page")
    assert r.status_code == 202, r.get_data(as_text=True)
    body = r.get_json()
    assert body["status"] == "queued"
    assert r.headers["Location"] == body["links"]["self"]
    job = _wait_for_job(client, body["links"]["self"])
    assert job["status"] == "success"
    assert len(conn.writes) == 3


def test_print_receipt_posts_raw_json(client, fake_manager):
    conn = fake_manager.add_device(7)
    payload = {"storeName": "Corner Cafe", "items": [{"name": "Coffee", "qty": 2, "price": 10.0, "tax": 1.5}]}
    r = client.post("/api/v1/printers/7/receipt", data=json.dumps(payload), headers={"Content-Type": "application/json"})
    assert r.status_code == 202
    job = _wait_for_job(client, r.headers["Location"])
    assert job["status"] == "success"
    assert b"Corner Cafe" in conn.writes[0][0]


def test_receipt_requires_json_content_type(client):
    r = client.post("/api/v1/printers/7/receipt", data="{}", headers={"Content-Type": "text/plain"})
    assert r.status_code == 415
    assert "error" in r.get_json()


def test_failed_print_is_reported_in_job(client):
    r = client.post("/api/v1/printers/404/test-page")
    job = _wait_for_job(client, r.headers["Location"])
    assert job["status"] == "error"
    assert job["error"] == "Device not found: 404"
    assert job["error_kind"] == "device_not_found"


def test_unknown_job(client):
    r = client.get("/api/v1/jobs/does-not-exist")
    assert r.status_code == 404
    assert r.get_json() == {"error": "not_found"}


def test_jobs_are_listed(client, fake_manager):
    fake_manager.add_device(7)
    href = client.post("/api/v1/printers/7/test-page").headers["Location"]
    job = _wait_for_job(client, href)
    r = client.get("/api/v1/jobs")
    assert r.status_code == 200
    listed = {j["id"]: j for j in r.get_json()["jobs"]}
    assert listed[job["id"]]["status"] == "success"
    assert listed[job["id"]]["type"] == "test_page"


def test_permission_events_can_be_polled(client, fake_manager):
    fake_manager.add_device(1002, permitted=False)
    assert client.get("/api/v1/printers").get_json()["printers"] == []
    fake_manager.deliver(1002, True)
    body = client.get("/api/v1/events?after=0").get_json()
    assert body["events"][-1] == {"seq": body["last_seq"], "usbPermissionGranted": True, "deviceId": 1002}
    assert [p["deviceId"] for p in client.get("/api/v1/printers").get_json()["printers"]] == [1002]
    assert client.get(f"/api/v1/events?after={body['last_seq']}").get_json()["events"] == []


def test_value_passthrough(client):
    r = client.post("/api/v1/events/value", data=json.dumps({"value": "ping"}), headers={"Content-Type": "application/json"})
    assert r.status_code == 202
    _wait_for_job(client, r.headers["Location"])
    events = client.get("/api/v1/events").get_json()["events"]
    assert {"value": "ping"}.items() <= events[-1].items()


def test_value_validation(client):
    r = client.post("/api/v1/events/value", data=json.dumps({}), headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    r = client.get("/api/v1/events?after=abc")
    assert r.status_code == 400


def test_healthz(client):
    body = client.get("/healthz").get_json()
    assert body["status"] == "ok"
    assert body["usb_manager_ok"] is True
    assert body["permission_listener"] is True
    assert body["transport"] == "usb"


def test_healthz_degraded_without_usb_manager():
    svc = PrinterService(StaticHostContext(None), settings={"transport": "usb"}, worker=PrintWorker(1))
    try:
        app = create_app(service=svc, init_logging=False)
        body = app.test_client().get("/healthz").get_json()
    finally:
        svc.shutdown()
    assert body["status"] == "degraded"
    assert body["reason"] == "usb_manager_unavailable"


def test_request_id_header_is_echoed(client):
    r = client.get("/healthz", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
