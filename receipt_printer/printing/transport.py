"""
Transports move an encoded command stream to a printer.

Two implementations share one capability (open, claim, write, release, close):
- UsbTransport talks to the device through the host UsbManager: interface 0,
  first OUT endpoint, one bulk write per call
- EscposTransport hands the bytes to python-escpos' Usb printer, opened on the
  same bus/address and writing to the first OUT endpoint of interface 0

Neither knows anything about ESC/POS encoding.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Optional, Tuple

import usb.core
import usb.util

from receipt_printer.core.errors import (
    ConnectionOpenFailedError,
    EndpointNotFoundError,
    TransferFailedError,
)
from receipt_printer.devices.manager import (
    USB_DIR_OUT,
    DeviceConnection,
    UsbDevice,
    UsbEndpoint,
    UsbInterface,
    UsbManager,
)

logger = logging.getLogger(__name__)

INTERFACE_INDEX = 0


class Transport(ABC):
    name = "abstract"

    @abstractmethod
    def open(self, device: UsbDevice) -> None:
        """Obtain a device handle. Raises ConnectionOpenFailedError."""

    @abstractmethod
    def claim(self) -> None:
        """Claim the interface and select the OUT endpoint. Raises EndpointNotFoundError."""

    @abstractmethod
    def write(self, data: bytes, timeout_ms: int) -> int:
        """One bulk write. Raises TransferFailedError; never retries."""

    @abstractmethod
    def release(self) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


class UsbTransport(Transport):
    name = "usb"

    def __init__(self, manager: UsbManager) -> None:
        self._manager = manager
        self._connection: Optional[DeviceConnection] = None
        self._interface: Optional[UsbInterface] = None
        self._endpoint: Optional[UsbEndpoint] = None

    @property
    def endpoint(self) -> Optional[UsbEndpoint]:
        return self._endpoint

    def open(self, device: UsbDevice) -> None:
        connection = self._manager.open_device(device)
        if connection is None:
            logger.error("Failed to open device connection: %s", device.device_name)
            raise ConnectionOpenFailedError()
        self._connection = connection

    def claim(self) -> None:
        if self._connection is None:
            raise ConnectionOpenFailedError("Device connection is not open")
        interface = self._connection.get_interface(INTERFACE_INDEX)
        if interface is None:
            logger.error("Interface %d not present", INTERFACE_INDEX)
            raise EndpointNotFoundError(f"No interface {INTERFACE_INDEX} on device")
        if not self._connection.claim_interface(interface, True):
            raise ConnectionOpenFailedError(f"Failed to claim interface {INTERFACE_INDEX}")
        self._interface = interface
        self._endpoint = next((ep for ep in interface.endpoints if ep.direction == USB_DIR_OUT), None)
        if self._endpoint is None:
            logger.error("No OUT endpoint found")
            raise EndpointNotFoundError()

    def write(self, data: bytes, timeout_ms: int) -> int:
        if self._connection is None or self._endpoint is None:
            raise TransferFailedError("No endpoint selected")
        written = self._connection.bulk_transfer(self._endpoint, data, timeout_ms)
        if written < 0:
            raise TransferFailedError(f"Bulk transfer failed ({written})", written=written)
        if written < len(data):
            raise TransferFailedError(f"Short bulk transfer: {written} of {len(data)} bytes", written=written)
        return written

    def release(self) -> None:
        if self._connection is not None and self._interface is not None:
            self._connection.release_interface(self._interface)
        self._interface = None
        self._endpoint = None

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
        self._connection = None


class EscposTransport(Transport):
    """
    Transport backed by python-escpos' Usb printer class.

    The library opens the device at the requested bus/address and configures
    it; claim() then selects the first OUT endpoint of interface 0 as the
    library's output endpoint. Writes go through its raw channel with the
    per-call timeout.
    """

    name = "escpos"

    def __init__(self, profile: Optional[str] = None) -> None:
        self._profile = profile
        self._printer: Any = None

    @staticmethod
    def _location(device: UsbDevice) -> Tuple[int, int]:
        handle = device.handle
        if handle is not None and getattr(handle, "bus", None) is not None:
            return int(handle.bus), int(handle.address)
        bus, address = divmod(device.device_id, 1000)
        return bus, address

    def open(self, device: UsbDevice) -> None:
        from escpos.printer import Usb

        bus, address = self._location(device)
        usb_args = {"bus": bus, "address": address}
        try:
            if self._profile:
                printer = Usb(device.vendor_id, device.product_id, usb_args=usb_args, timeout=0, profile=self._profile)
            else:
                printer = Usb(device.vendor_id, device.product_id, usb_args=usb_args, timeout=0)
            printer.open()
        except Exception as e:
            logger.error("python-escpos could not open %s: %s", device.device_name, e)
            raise ConnectionOpenFailedError(f"Failed to open device connection: {e}") from e
        self._printer = printer

    def claim(self) -> None:
        dev = getattr(self._printer, "device", None)
        if dev is None:
            raise ConnectionOpenFailedError("Device connection is not open")
        try:
            cfg = dev.get_active_configuration()
        except usb.core.USBError as e:
            raise ConnectionOpenFailedError(f"Failed to configure device: {e}") from e
        intf = usb.util.find_descriptor(cfg, bInterfaceNumber=INTERFACE_INDEX)
        if intf is None:
            logger.error("Interface %d not present", INTERFACE_INDEX)
            raise EndpointNotFoundError(f"No interface {INTERFACE_INDEX} on device")
        endpoint = usb.util.find_descriptor(
            intf,
            custom_match=lambda e: usb.util.endpoint_direction(e.bEndpointAddress) == usb.util.ENDPOINT_OUT,
        )
        if endpoint is None:
            logger.error("No OUT endpoint found")
            raise EndpointNotFoundError()
        self._printer.out_ep = endpoint.bEndpointAddress

    def write(self, data: bytes, timeout_ms: int) -> int:
        if self._printer is None:
            raise TransferFailedError("No endpoint selected")
        self._printer.timeout = timeout_ms
        try:
            self._printer._raw(data)
        except usb.core.USBTimeoutError as e:
            raise TransferFailedError(f"Bulk transfer timed out after {timeout_ms} ms: {e}") from e
        except usb.core.USBError as e:
            raise TransferFailedError(f"Bulk transfer failed: {e}") from e
        return len(data)

    def release(self) -> None:
        # python-escpos releases the interface when the printer is closed
        return None

    def close(self) -> None:
        if self._printer is not None:
            self._printer.close()
        self._printer = None


def create_transport(settings: Mapping[str, Any], manager: UsbManager) -> Transport:
    kind = str(settings.get("transport", "usb")).lower()
    if kind == "usb":
        return UsbTransport(manager)
    if kind == "escpos":
        return EscposTransport(profile=settings.get("escpos_profile") or None)
    raise ValueError(f"Unsupported transport: {kind}")


__all__ = ["INTERFACE_INDEX", "EscposTransport", "Transport", "UsbTransport", "create_transport"]
