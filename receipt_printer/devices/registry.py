"""
Device discovery.
"""

from __future__ import annotations

import logging
from typing import List

from .manager import HostContext, UsbDeviceDescriptor
from .permissions import PermissionBroker

logger = logging.getLogger(__name__)


class DeviceRegistry:
    def __init__(self, context: HostContext | None, broker: PermissionBroker) -> None:
        self._context = context
        self._broker = broker

    def discover(self) -> List[UsbDeviceDescriptor]:
        """
        Return descriptors for attached devices this process may use.

        Devices without permission get a permission request and are left out
        of this result; a later call includes them once access is granted.
        Never raises for a missing host context or USB manager; the result is
        empty instead.
        """
        if self._context is None:
            logger.debug("Host context is unavailable")
            return []
        manager = self._context.usb_manager()
        if manager is None:
            logger.debug("UsbManager is null")
            return []
        self._broker.ensure_listener(manager)

        result: List[UsbDeviceDescriptor] = []
        for device in manager.device_list():
            if not manager.has_permission(device):
                self._broker.request(manager, device)
                continue
            result.append(device.descriptor())
        logger.info("Discovered devices: %d", len(result))
        return result


__all__ = ["DeviceRegistry"]
