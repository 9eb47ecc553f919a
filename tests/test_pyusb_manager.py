import threading
from types import SimpleNamespace

import pytest
import usb.backend.libusb1
import usb.core
import usb.util

from receipt_printer.core.errors import ConnectionOpenFailedError, TransferFailedError
from receipt_printer.devices import pyusb_manager as pm
from receipt_printer.devices.manager import UsbEndpoint
from receipt_printer.printing.session import PrintSession, SessionState
from receipt_printer.printing.transport import UsbTransport


def _dev(bus, address, vid=0x04B8, pid=0x0E28):
    return SimpleNamespace(bus=bus, address=address, idVendor=vid, idProduct=pid)


def test_device_identity_and_node_path():
    assert pm.device_id_for(1, 7) == 1007
    assert pm.device_node_path(1, 7) == "/dev/bus/usb/001/007"


def test_device_list_maps_pyusb_devices(monkeypatch):
    monkeypatch.setattr(usb.core, "find", lambda **kw: iter([_dev(1, 7), _dev(3, 12, 0x0416, 0x5011)]))
    devices = pm.PyUsbManager().device_list()
    assert [(d.device_id, d.vendor_id, d.product_id, d.device_name) for d in devices] == [
        (1007, 0x04B8, 0x0E28, "/dev/bus/usb/001/007"),
        (3012, 0x0416, 0x5011, "/dev/bus/usb/003/012"),
    ]
    assert pm.PyUsbManager().find_device(3012).handle.address == 12


def _request_and_wait(manager, device):
    results = []
    done = threading.Event()

    def listener(dev, granted):
        results.append((dev.device_id, granted))
        done.set()

    manager.register_permission_listener(listener)
    manager.request_permission(device)
    assert done.wait(5)
    return results


def test_allowlisted_device_is_granted_on_request(monkeypatch):
    monkeypatch.setattr(pm, "_node_accessible", lambda path: False)
    manager = pm.PyUsbManager(allowlist=[(0x04B8, 0x0E28)])
    device = pm.UsbDevice(1007, 0x04B8, 0x0E28, "/dev/bus/usb/001/007")
    assert manager.has_permission(device) is False
    assert _request_and_wait(manager, device) == [(1007, True)]
    assert manager.has_permission(device) is True


def test_inaccessible_device_is_denied(monkeypatch):
    monkeypatch.setattr(pm, "_node_accessible", lambda path: False)
    manager = pm.PyUsbManager()
    device = pm.UsbDevice(1008, 0x1234, 0x5678, "/dev/bus/usb/001/008")
    assert _request_and_wait(manager, device) == [(1008, False)]
    assert manager.has_permission(device) is False


def test_missing_node_defers_to_libusb(tmp_path):
    assert pm._node_accessible(str(tmp_path / "no-such-node")) is True


class _FakePyUsbDevice:
    def __init__(self, error=None):
        self.error = error
        self.written = []

    def write(self, address, data, timeout=None):
        if self.error:
            raise self.error
        self.written.append((address, bytes(data), timeout))
        return len(data)


def test_connection_bulk_write():
    dev = _FakePyUsbDevice()
    conn = pm.PyUsbConnection(dev)
    assert conn.bulk_transfer(UsbEndpoint(0x01), b"\x1b\x40", 2000) == 2
    assert dev.written == [(0x01, b"\x1b\x40", 2000)]


@pytest.mark.parametrize("error", [usb.core.USBError("Pipe error"), usb.core.USBTimeoutError("Operation timed out")])
def test_connection_write_errors_are_transfer_failures(error):
    conn = pm.PyUsbConnection(_FakePyUsbDevice(error))
    with pytest.raises(TransferFailedError):
        conn.bulk_transfer(UsbEndpoint(0x01), b"x", 2000)


class _FakeInterface(list):
    def __init__(self, number, addresses):
        super().__init__(SimpleNamespace(bEndpointAddress=a) for a in addresses)
        self.bInterfaceNumber = number


class _FakeHandle:
    """Open pyusb Device: configuration, kernel driver and claim bookkeeping."""

    def __init__(self, bus=1, address=7, configured=True, configure_error=None, kernel_active=False):
        self.bus = bus
        self.address = address
        self.idVendor = 0x04B8
        self.idProduct = 0x0E28
        self.configured = configured
        self.configure_error = configure_error
        self.kernel_active = kernel_active
        self.interfaces = [_FakeInterface(0, (0x81, 0x01))]
        self.calls = []

    def get_active_configuration(self):
        if not self.configured:
            raise usb.core.USBError("Configuration not set")
        return self.interfaces

    def set_configuration(self):
        self.calls.append("set_configuration")
        if self.configure_error:
            raise self.configure_error
        self.configured = True

    def is_kernel_driver_active(self, number):
        return self.kernel_active

    def detach_kernel_driver(self, number):
        self.calls.append(("detach", number))
        self.kernel_active = False

    def attach_kernel_driver(self, number):
        self.calls.append(("attach", number))
        self.kernel_active = True


@pytest.fixture
def usb_util_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(usb.util, "claim_interface", lambda dev, n: calls.append(("claim", n)))
    monkeypatch.setattr(usb.util, "release_interface", lambda dev, n: calls.append(("release", n)))
    monkeypatch.setattr(usb.util, "dispose_resources", lambda dev: calls.append(("dispose",)))
    return calls


def test_get_interface_sets_configuration_when_unconfigured():
    handle = _FakeHandle(configured=False)
    intf = pm.PyUsbConnection(handle).get_interface(0)
    assert handle.calls == ["set_configuration"]
    assert intf.number == 0
    assert [ep.address for ep in intf.endpoints] == [0x81, 0x01]


def test_get_interface_missing_index():
    assert pm.PyUsbConnection(_FakeHandle()).get_interface(1) is None


def test_configuration_failure_is_a_connection_error():
    handle = _FakeHandle(configured=False, configure_error=usb.core.USBError("Resource busy"))
    with pytest.raises(ConnectionOpenFailedError, match="Failed to configure device: .*Resource busy"):
        pm.PyUsbConnection(handle).get_interface(0)


def test_configuration_failure_fails_session_open_and_closes(fake_manager, usb_util_calls):
    fake_manager.add_device(7)
    handle = _FakeHandle(configured=False, configure_error=usb.core.USBError("Resource busy"))
    fake_manager.connections[7] = pm.PyUsbConnection(handle)
    session = PrintSession(UsbTransport(fake_manager), fake_manager.devices[7])
    with pytest.raises(ConnectionOpenFailedError):
        session.open()
    assert session.state == SessionState.CLOSED
    assert usb_util_calls == [("dispose",)]


def test_claim_detaches_kernel_driver_and_release_reattaches(usb_util_calls):
    handle = _FakeHandle(kernel_active=True)
    conn = pm.PyUsbConnection(handle)
    intf = conn.get_interface(0)
    assert conn.claim_interface(intf, True) is True
    assert handle.calls == [("detach", 0)]
    assert conn.release_interface(intf) is True
    assert handle.calls == [("detach", 0), ("attach", 0)]
    assert usb_util_calls == [("claim", 0), ("release", 0)]


def test_release_leaves_kernel_driver_alone_when_not_detached(usb_util_calls):
    handle = _FakeHandle(kernel_active=False)
    conn = pm.PyUsbConnection(handle)
    intf = conn.get_interface(0)
    conn.claim_interface(intf, True)
    conn.release_interface(intf)
    assert handle.calls == []


def test_claim_failure_returns_false(monkeypatch):
    def refuse(dev, n):
        raise usb.core.USBError("Resource busy")

    monkeypatch.setattr(usb.util, "claim_interface", refuse)
    conn = pm.PyUsbConnection(_FakeHandle())
    assert conn.claim_interface(conn.get_interface(0), True) is False


def test_open_device_looks_up_missing_handle(monkeypatch):
    handle = _FakeHandle(bus=1, address=7)
    monkeypatch.setattr(usb.core, "find", lambda **kw: iter([handle]))
    conn = pm.PyUsbManager().open_device(pm.UsbDevice(1007, 0x04B8, 0x0E28, "/dev/bus/usb/001/007"))
    assert isinstance(conn, pm.PyUsbConnection)
    assert conn.get_interface(0).number == 0


def test_open_device_returns_none_when_detached_or_unconfigurable(monkeypatch):
    monkeypatch.setattr(usb.core, "find", lambda **kw: iter([]))
    manager = pm.PyUsbManager()
    assert manager.open_device(pm.UsbDevice(1007, 0x04B8, 0x0E28, "/dev/bus/usb/001/007")) is None
    broken = _FakeHandle(configured=False, configure_error=usb.core.USBError("Access denied"))
    device = pm.UsbDevice(1007, 0x04B8, 0x0E28, "/dev/bus/usb/001/007", handle=broken)
    assert manager.open_device(device) is None


def test_host_context_without_backend_has_no_manager(monkeypatch):
    monkeypatch.setattr(usb.backend.libusb1, "get_backend", lambda *a, **kw: None)
    assert pm.PyUsbHostContext().usb_manager() is None


def test_host_context_builds_manager_once(monkeypatch):
    monkeypatch.setattr(usb.backend.libusb1, "get_backend", lambda *a, **kw: object())
    context = pm.PyUsbHostContext(allowlist=["04b8:0e28"])
    manager = context.usb_manager()
    assert isinstance(manager, pm.PyUsbManager)
    assert context.usb_manager() is manager
    assert manager._allowlist == {(0x04B8, 0x0E28)}
