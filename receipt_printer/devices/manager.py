"""
Host USB subsystem abstraction.

The USB manager is the seam between the printer service and whatever the host
offers for USB access: device enumeration, permission queries and requests,
permission-result delivery and opening a device connection. The default
implementation lives in pyusb_manager; tests substitute in-memory fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

# Endpoint direction bits (bEndpointAddress bit 7)
USB_DIR_OUT = 0x00
USB_DIR_IN = 0x80


@dataclass(frozen=True)
class UsbDeviceDescriptor:
    """Immutable snapshot of a permitted device, as returned by discovery."""

    device_id: int
    vendor_id: int
    product_id: int
    device_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "vendorId": self.vendor_id,
            "productId": self.product_id,
            "deviceName": self.device_name,
        }


@dataclass
class UsbDevice:
    """An attached device as seen by a UsbManager. `handle` is backend-specific."""

    device_id: int
    vendor_id: int
    product_id: int
    device_name: str
    handle: Any = field(default=None, repr=False, compare=False)

    def descriptor(self) -> UsbDeviceDescriptor:
        return UsbDeviceDescriptor(self.device_id, self.vendor_id, self.product_id, self.device_name)


@dataclass(frozen=True)
class UsbEndpoint:
    address: int

    @property
    def direction(self) -> int:
        return self.address & 0x80


@dataclass(frozen=True)
class UsbInterface:
    number: int
    endpoints: Tuple[UsbEndpoint, ...] = ()


# Called with (device, granted). device may be None when the host could not
# tell which device the result refers to.
PermissionListener = Callable[[Optional[UsbDevice], bool], None]


class DeviceConnection(ABC):
    """An open handle to one device."""

    @abstractmethod
    def get_interface(self, index: int) -> Optional[UsbInterface]:
        ...

    @abstractmethod
    def claim_interface(self, interface: UsbInterface, force: bool = True) -> bool:
        ...

    @abstractmethod
    def release_interface(self, interface: UsbInterface) -> bool:
        ...

    @abstractmethod
    def bulk_transfer(self, endpoint: UsbEndpoint, data: bytes, timeout_ms: int) -> int:
        """
        Write data to endpoint. Returns the number of bytes written, or a
        negative value on failure. May raise TransferFailedError with details.
        """

    @abstractmethod
    def close(self) -> None:
        ...


class UsbManager(ABC):
    """Host USB subsystem: enumeration, permission and device open."""

    @abstractmethod
    def device_list(self) -> List[UsbDevice]:
        ...

    @abstractmethod
    def has_permission(self, device: UsbDevice) -> bool:
        ...

    @abstractmethod
    def request_permission(self, device: UsbDevice) -> None:
        """Ask the host for access. The result arrives later on the listener."""

    @abstractmethod
    def register_permission_listener(self, listener: PermissionListener) -> None:
        ...

    @abstractmethod
    def open_device(self, device: UsbDevice) -> Optional[DeviceConnection]:
        """Return a connection, or None when no handle could be obtained."""

    def find_device(self, device_id: int) -> Optional[UsbDevice]:
        for device in self.device_list():
            if device.device_id == device_id:
                return device
        return None


class HostContext(ABC):
    """What the host environment provides to the printer service."""

    @abstractmethod
    def usb_manager(self) -> Optional[UsbManager]:
        ...


class StaticHostContext(HostContext):
    """Host context wrapping an already constructed manager (or None)."""

    def __init__(self, manager: Optional[UsbManager]) -> None:
        self._manager = manager

    def usb_manager(self) -> Optional[UsbManager]:
        return self._manager


__all__ = [
    "USB_DIR_IN",
    "USB_DIR_OUT",
    "DeviceConnection",
    "HostContext",
    "PermissionListener",
    "StaticHostContext",
    "UsbDevice",
    "UsbDeviceDescriptor",
    "UsbEndpoint",
    "UsbInterface",
    "UsbManager",
]
