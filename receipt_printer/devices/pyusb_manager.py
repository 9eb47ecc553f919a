"""
pyusb-backed USB manager.

Maps the host USB seam onto libusb through pyusb:
- deviceId is bus * 1000 + address, unique while the device stays attached
- deviceName is the Linux device node path (/dev/bus/usb/BBB/AAA)
- permission means the device node is readable and writable by this process,
  or the device was granted earlier in the process
- permission requests resolve on a background thread and are delivered to the
  registered listeners, never to the caller that asked
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Iterable, List, Optional, Set, Tuple

import usb.core
import usb.util

from receipt_printer.core.config import parse_usb_id_pair
from receipt_printer.core.errors import ConnectionOpenFailedError, TransferFailedError

from .manager import (
    DeviceConnection,
    HostContext,
    PermissionListener,
    UsbDevice,
    UsbEndpoint,
    UsbInterface,
    UsbManager,
)

logger = logging.getLogger(__name__)


def device_id_for(bus: int, address: int) -> int:
    return int(bus) * 1000 + int(address)


def device_node_path(bus: int, address: int) -> str:
    return f"/dev/bus/usb/{int(bus):03d}/{int(address):03d}"


def _node_accessible(path: str) -> bool:
    # Platforms without usbfs nodes (macOS, Windows) leave access to libusb
    if not os.path.exists(path):
        return True
    return os.access(path, os.R_OK | os.W_OK)


class PyUsbConnection(DeviceConnection):
    """Open handle on a pyusb Device."""

    def __init__(self, device: usb.core.Device) -> None:
        self._device = device
        self._detached: Set[int] = set()

    def get_interface(self, index: int) -> Optional[UsbInterface]:
        try:
            cfg = self._device.get_active_configuration()
        except usb.core.USBError:
            try:
                self._device.set_configuration()
                cfg = self._device.get_active_configuration()
            except usb.core.USBError as e:
                raise ConnectionOpenFailedError(f"Failed to configure device: {e}") from e
        intf = usb.util.find_descriptor(cfg, bInterfaceNumber=index)
        if intf is None:
            return None
        endpoints = tuple(UsbEndpoint(ep.bEndpointAddress) for ep in intf)
        return UsbInterface(number=intf.bInterfaceNumber, endpoints=endpoints)

    def claim_interface(self, interface: UsbInterface, force: bool = True) -> bool:
        try:
            if force and self._device.is_kernel_driver_active(interface.number):
                self._device.detach_kernel_driver(interface.number)
                self._detached.add(interface.number)
        except (NotImplementedError, usb.core.USBError) as e:
            # Not supported on every platform; claiming may still work
            logger.debug("Kernel driver check skipped for interface %d: %s", interface.number, e)
        try:
            usb.util.claim_interface(self._device, interface.number)
            return True
        except usb.core.USBError as e:
            logger.error("Claim of interface %d failed: %s", interface.number, e)
            return False

    def release_interface(self, interface: UsbInterface) -> bool:
        try:
            usb.util.release_interface(self._device, interface.number)
        except usb.core.USBError as e:
            logger.warning("Release of interface %d failed: %s", interface.number, e)
            return False
        if interface.number in self._detached:
            try:
                self._device.attach_kernel_driver(interface.number)
            except (NotImplementedError, usb.core.USBError) as e:
                logger.debug("Kernel driver reattach skipped for interface %d: %s", interface.number, e)
            self._detached.discard(interface.number)
        return True

    def bulk_transfer(self, endpoint: UsbEndpoint, data: bytes, timeout_ms: int) -> int:
        try:
            return int(self._device.write(endpoint.address, data, timeout=timeout_ms))
        except usb.core.USBTimeoutError as e:
            raise TransferFailedError(f"Bulk transfer timed out after {timeout_ms} ms: {e}") from e
        except usb.core.USBError as e:
            raise TransferFailedError(f"Bulk transfer failed: {e}") from e

    def close(self) -> None:
        usb.util.dispose_resources(self._device)


class PyUsbManager(UsbManager):
    """
    UsbManager over libusb.

    allowlist holds (vendor_id, product_id) pairs that are granted on request
    even when the device node is not accessible yet (e.g. a udev rule is about
    to apply).
    """

    def __init__(self, backend=None, allowlist: Iterable[Tuple[int, int]] = ()) -> None:
        self._backend = backend
        self._allowlist: Set[Tuple[int, int]] = set(allowlist)
        self._granted: Set[int] = set()
        self._pending: Set[int] = set()
        self._listeners: List[PermissionListener] = []
        self._lock = threading.Lock()

    def _devices(self) -> List[usb.core.Device]:
        return list(usb.core.find(find_all=True, backend=self._backend) or [])

    def device_list(self) -> List[UsbDevice]:
        devices: List[UsbDevice] = []
        for dev in self._devices():
            devices.append(
                UsbDevice(
                    device_id=device_id_for(dev.bus, dev.address),
                    vendor_id=int(dev.idVendor),
                    product_id=int(dev.idProduct),
                    device_name=device_node_path(dev.bus, dev.address),
                    handle=dev,
                )
            )
        return devices

    def has_permission(self, device: UsbDevice) -> bool:
        with self._lock:
            if device.device_id in self._granted:
                return True
        return _node_accessible(device.device_name)

    def request_permission(self, device: UsbDevice) -> None:
        with self._lock:
            if device.device_id in self._pending:
                return
            self._pending.add(device.device_id)
        t = threading.Thread(
            target=self._resolve_permission,
            args=(device,),
            daemon=True,
            name=f"usb-permission-{device.device_id}",
        )
        t.start()

    def _resolve_permission(self, device: UsbDevice) -> None:
        granted = (device.vendor_id, device.product_id) in self._allowlist or _node_accessible(device.device_name)
        with self._lock:
            self._pending.discard(device.device_id)
            if granted:
                self._granted.add(device.device_id)
            listeners = list(self._listeners)
        logger.info("USB permission result: device=%s granted=%s", device.device_name, granted)
        for listener in listeners:
            try:
                listener(device, granted)
            except Exception:
                logger.exception("Permission listener failed")

    def register_permission_listener(self, listener: PermissionListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def open_device(self, device: UsbDevice) -> Optional[DeviceConnection]:
        handle = device.handle
        if handle is None:
            found = self.find_device(device.device_id)
            handle = found.handle if found else None
        if handle is None:
            return None
        try:
            # Touching the configuration forces libusb to open the handle
            try:
                handle.get_active_configuration()
            except usb.core.USBError:
                handle.set_configuration()
        except usb.core.USBError as e:
            logger.error("Opening %s failed: %s", device.device_name, e)
            return None
        return PyUsbConnection(handle)


class PyUsbHostContext(HostContext):
    """
    Host context that builds a PyUsbManager on first use.

    Returns None from usb_manager() when no libusb backend can be loaded.
    """

    def __init__(self, allowlist: Iterable[str] = ()) -> None:
        self._allowlist = [parse_usb_id_pair(v) for v in allowlist]
        self._manager: Optional[PyUsbManager] = None
        self._lock = threading.Lock()

    def usb_manager(self) -> Optional[UsbManager]:
        with self._lock:
            if self._manager is not None:
                return self._manager
            try:
                import usb.backend.libusb1

                backend = usb.backend.libusb1.get_backend()
            except Exception as e:
                logger.error("libusb backend failed to load: %s", e)
                backend = None
            if backend is None:
                logger.error("No libusb backend available")
                return None
            self._manager = PyUsbManager(backend=backend, allowlist=self._allowlist)
            return self._manager


__all__ = [
    "PyUsbConnection",
    "PyUsbHostContext",
    "PyUsbManager",
    "device_id_for",
    "device_node_path",
]
