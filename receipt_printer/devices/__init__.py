"""
USB device layer for Receipt Printer.

- manager: the host USB seam (types, UsbManager, DeviceConnection, HostContext)
- pyusb_manager: the libusb implementation of that seam
- permissions: the permission broker and its single listener
- registry: device discovery
"""

from .manager import (
    USB_DIR_IN,
    USB_DIR_OUT,
    DeviceConnection,
    HostContext,
    StaticHostContext,
    UsbDevice,
    UsbDeviceDescriptor,
    UsbEndpoint,
    UsbInterface,
    UsbManager,
)
from .permissions import PermissionBroker
from .registry import DeviceRegistry

__all__ = [
    "USB_DIR_IN",
    "USB_DIR_OUT",
    "DeviceConnection",
    "DeviceRegistry",
    "HostContext",
    "PermissionBroker",
    "StaticHostContext",
    "UsbDevice",
    "UsbDeviceDescriptor",
    "UsbEndpoint",
    "UsbInterface",
    "UsbManager",
]
