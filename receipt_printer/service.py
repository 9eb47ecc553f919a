"""
PrinterService: the operations exposed to the host.

- discover_usb_printers() -> Future[list of descriptor dicts]
- print_test_page(device_id) -> Future[bool]
- print_receipt(device_id, receipt_json) -> Future[bool]
- set_value(value) -> Future[None], a passthrough onChange signal
- an onChange event channel carrying {"value"} or {"usbPermissionGranted", "deviceId"?}

The service owns the single permission listener (through its PermissionBroker)
for the lifetime of the process; initialize() may be called any number of times.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional

from PIL import Image

from receipt_printer.core.config import resolve_settings
from receipt_printer.core.errors import (
    ContextUnavailableError,
    DeviceNotFoundError,
    ManagerUnavailableError,
    PermissionDeniedError,
)
from receipt_printer.devices.manager import HostContext, UsbDevice, UsbManager
from receipt_printer.devices.permissions import PermissionBroker
from receipt_printer.devices.registry import DeviceRegistry
from receipt_printer.events import Event, EventChannel, value_event
from receipt_printer.printing.encoder import EscPosEncoder
from receipt_printer.printing.logo import load_logo
from receipt_printer.printing.receipt import Receipt
from receipt_printer.printing.session import RECEIPT_TIMEOUT_MS, TEST_PAGE_TIMEOUT_MS, PrintSession
from receipt_printer.printing.transport import Transport, create_transport
from receipt_printer.printing.worker import PrintWorker

logger = logging.getLogger(__name__)

TransportFactory = Callable[[UsbManager], Transport]
LogoProvider = Callable[[], Optional[Image.Image]]


class PrinterService:
    def __init__(
        self,
        context: Optional[HostContext],
        settings: Optional[Mapping[str, Any]] = None,
        *,
        transport_factory: Optional[TransportFactory] = None,
        logo_provider: Optional[LogoProvider] = None,
        worker: Optional[PrintWorker] = None,
    ) -> None:
        self.settings: Dict[str, Any] = dict(settings) if settings is not None else resolve_settings()
        self.context = context
        self.events = EventChannel()
        self.broker = PermissionBroker(self.events)
        self.registry = DeviceRegistry(context, self.broker)
        self.encoder = EscPosEncoder()
        self.worker = worker or PrintWorker(max_workers=int(self.settings.get("max_workers", 4)))
        self._transport_factory = transport_factory or (lambda manager: create_transport(self.settings, manager))
        self._logo_provider = logo_provider or (lambda: load_logo(self.settings))

    @classmethod
    def from_settings(cls, settings: Optional[Mapping[str, Any]] = None) -> "PrinterService":
        """Build a service over the local libusb host."""
        from receipt_printer.devices.pyusb_manager import PyUsbHostContext

        resolved = dict(settings) if settings is not None else resolve_settings()
        context = PyUsbHostContext(allowlist=resolved.get("permission_allowlist") or ())
        return cls(context, resolved)

    def initialize(self) -> bool:
        """
        Register the permission listener if the host offers a USB manager.

        Idempotent; returns True when the listener is (now) registered.
        """
        if self.context is None:
            return False
        manager = self.context.usb_manager()
        if manager is None:
            return False
        self.broker.ensure_listener(manager)
        return self.broker.listener_registered

    # ---- host operations -------------------------------------------------

    def discover_usb_printers(self) -> Future:
        return self.worker.submit("discover", self._discover)

    def print_test_page(self, device_id: int) -> Future:
        return self.worker.submit("test_page", self._print_test_page, int(device_id), meta={"device_id": int(device_id)})

    def print_receipt(self, device_id: int, receipt_json: str) -> Future:
        return self.worker.submit(
            "receipt", self._print_receipt, int(device_id), receipt_json, meta={"device_id": int(device_id)}
        )

    def set_value(self, value: str) -> Future:
        return self.worker.submit("set_value", self._set_value, str(value))

    # ---- events ----------------------------------------------------------

    def subscribe(self, callback: Callable[[Event], None]) -> Callable[[], None]:
        return self.events.subscribe(callback)

    def unsubscribe(self, callback: Callable[[Event], None]) -> None:
        self.events.unsubscribe(callback)

    def events_since(self, seq: int = 0) -> List[Event]:
        return self.events.since(seq)

    def shutdown(self, wait: bool = True) -> None:
        self.worker.shutdown(wait=wait)

    # ---- implementation (runs on worker threads) --------------------------

    def _discover(self) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self.registry.discover()]

    def _set_value(self, value: str) -> None:
        self.events.emit(value_event(value))

    def _require_device(self, device_id: int) -> tuple[UsbManager, UsbDevice]:
        if self.context is None:
            logger.error("Context is null")
            raise ContextUnavailableError()
        manager = self.context.usb_manager()
        if manager is None:
            logger.error("UsbManager is null")
            raise ManagerUnavailableError()
        device = manager.find_device(device_id)
        if device is None:
            logger.error("Device not found: %s", device_id)
            raise DeviceNotFoundError(device_id)
        if not manager.has_permission(device):
            logger.error("No permission for device: %s", device_id)
            raise PermissionDeniedError(device_id)
        return manager, device

    def _session(self, manager: UsbManager, device: UsbDevice) -> PrintSession:
        return PrintSession(self._transport_factory(manager), device)

    def _print_test_page(self, device_id: int) -> bool:
        manager, device = self._require_device(device_id)
        with self._session(manager, device) as session:
            session.transfer(self.encoder.initialize(), TEST_PAGE_TIMEOUT_MS)
            session.transfer(self.encoder.test_page(), TEST_PAGE_TIMEOUT_MS)
            session.transfer(self.encoder.feed_and_cut(), TEST_PAGE_TIMEOUT_MS)
        logger.info("Test print sent successfully to %s", device.device_name)
        return True

    def _print_receipt(self, device_id: int, receipt_json: str) -> bool:
        manager, device = self._require_device(device_id)
        with self._session(manager, device) as session:
            receipt = Receipt.from_json(receipt_json)
            buffer = self.encoder.receipt(receipt, logo=self._logo_provider())
            session.transfer(buffer, RECEIPT_TIMEOUT_MS)
        logger.info(
            "Receipt %s printed on %s (%d items, %d bytes)",
            receipt.receipt_number,
            device.device_name,
            len(receipt.items),
            len(buffer),
        )
        return True


__all__ = ["PrinterService"]
