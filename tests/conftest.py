# Ensure the repository root is on sys.path so `receipt_printer` can be imported in tests,
# and provide in-memory stand-ins for the host USB subsystem.

import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    here = Path(__file__).resolve()
    repo_str = str(here.parent.parent)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()

import pytest  # noqa: E402

from receipt_printer.devices.manager import (  # noqa: E402
    DeviceConnection,
    StaticHostContext,
    UsbDevice,
    UsbEndpoint,
    UsbInterface,
    UsbManager,
)
from receipt_printer.printing.worker import PrintWorker  # noqa: E402
from receipt_printer.service import PrinterService  # noqa: E402

BULK_IN = UsbEndpoint(0x81)
BULK_OUT = UsbEndpoint(0x01)


class FakeConnection(DeviceConnection):
    """Records every call in order so tests can assert on the wire sequence."""

    def __init__(self, interfaces: Sequence[UsbInterface]):
        self.interfaces = {i.number: i for i in interfaces}
        self.calls: List[tuple] = []
        self.writes: List[tuple] = []
        self.claim_ok = True
        self.fail_on_write: Optional[int] = None
        self.close_count = 0
        self.release_count = 0

    def get_interface(self, index):
        return self.interfaces.get(index)

    def claim_interface(self, interface, force=True):
        self.calls.append(("claim", interface.number, force))
        return self.claim_ok

    def release_interface(self, interface):
        self.release_count += 1
        self.calls.append(("release", interface.number))
        return True

    def bulk_transfer(self, endpoint, data, timeout_ms):
        if self.fail_on_write is not None and len(self.writes) == self.fail_on_write:
            self.calls.append(("write_failed", endpoint.address, timeout_ms))
            return -1
        self.writes.append((bytes(data), timeout_ms))
        self.calls.append(("write", endpoint.address, timeout_ms))
        return len(data)

    def close(self):
        self.close_count += 1
        self.calls.append(("close",))


class FakeUsbManager(UsbManager):
    def __init__(self):
        self.devices: Dict[int, UsbDevice] = {}
        self.connections: Dict[int, FakeConnection] = {}
        self.permitted: set = set()
        self.requests: List[int] = []
        self.listeners: list = []
        self.open_fails: set = set()

    def add_device(
        self,
        device_id: int,
        vendor_id: int = 0x04B8,
        product_id: int = 0x0E28,
        permitted: bool = True,
        endpoints: Sequence[UsbEndpoint] = (BULK_IN, BULK_OUT),
    ) -> FakeConnection:
        self.devices[device_id] = UsbDevice(device_id, vendor_id, product_id, f"/dev/bus/usb/001/{device_id % 1000:03d}")
        if permitted:
            self.permitted.add(device_id)
        conn = FakeConnection([UsbInterface(0, tuple(endpoints))])
        self.connections[device_id] = conn
        return conn

    def device_list(self):
        return list(self.devices.values())

    def has_permission(self, device):
        return device.device_id in self.permitted

    def request_permission(self, device):
        self.requests.append(device.device_id)

    def register_permission_listener(self, listener):
        self.listeners.append(listener)

    def deliver(self, device_id: int, granted: bool) -> None:
        """Simulate the host answering a permission request."""
        if granted:
            self.permitted.add(device_id)
        for listener in self.listeners:
            listener(self.devices.get(device_id), granted)

    def open_device(self, device):
        if device.device_id in self.open_fails:
            return None
        return self.connections.get(device.device_id)


@pytest.fixture
def fake_manager() -> FakeUsbManager:
    return FakeUsbManager()


@pytest.fixture
def service(fake_manager):
    svc = PrinterService(
        StaticHostContext(fake_manager),
        settings={"transport": "usb", "max_workers": 2, "print_logo": False},
        logo_provider=lambda: None,
        worker=PrintWorker(max_workers=2),
    )
    yield svc
    svc.shutdown()
