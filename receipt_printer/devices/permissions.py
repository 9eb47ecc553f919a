"""
USB permission broker.

Permission requests and their results are two independent flows: a caller
asks and forgets, and the result shows up later on the event channel. The
broker owns the single process-wide listener registration and the
per-device PermissionState table.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from receipt_printer.events import EventChannel, permission_event

from .manager import UsbDevice, UsbManager

logger = logging.getLogger(__name__)


class PermissionBroker:
    def __init__(self, events: EventChannel) -> None:
        self._events = events
        self._states: Dict[int, bool] = {}
        self._registered = False
        self._lock = threading.Lock()

    @property
    def listener_registered(self) -> bool:
        return self._registered

    def ensure_listener(self, manager: UsbManager) -> bool:
        """
        Register the permission listener with manager (idempotent).

        Returns True only on the call that actually registered it.
        """
        with self._lock:
            if self._registered:
                return False
            manager.register_permission_listener(self._on_permission_result)
            self._registered = True
        logger.info("USB permission listener registered")
        return True

    def request(self, manager: UsbManager, device: UsbDevice) -> None:
        logger.info("Requesting permission for device: %s", device.device_name)
        manager.request_permission(device)

    def state(self, device_id: int) -> Optional[bool]:
        """
        Last delivered result for device_id; None if pending or never requested.

        For observers only. Print operations gate on UsbManager.has_permission,
        which reflects the host's current answer rather than a cached one.
        """
        with self._lock:
            return self._states.get(device_id)

    def _on_permission_result(self, device: Optional[UsbDevice], granted: bool) -> None:
        name = device.device_name if device is not None else None
        logger.debug("USB_PERMISSION result: device=%s, granted=%s", name, granted)
        if device is not None:
            with self._lock:
                self._states[device.device_id] = bool(granted)
        if granted and device is not None:
            self._events.emit(permission_event(True, device.device_id))
        else:
            self._events.emit(permission_event(False))


__all__ = ["PermissionBroker"]
