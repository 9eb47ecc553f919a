"""
Print session: one device connection for one print operation.

    IDLE -> DEVICE_OPENED -> INTERFACE_CLAIMED -> TRANSFERRING -> CLOSED

Every path ends in CLOSED. Used as a context manager, the session releases the
interface and closes the connection exactly once, whether the body returns or
raises (including errors raised while encoding inside the block).
"""

from __future__ import annotations

import enum
import logging
from typing import Optional

from receipt_printer.core.errors import TransferFailedError
from receipt_printer.devices.manager import UsbDevice

from .transport import Transport

logger = logging.getLogger(__name__)

TEST_PAGE_TIMEOUT_MS = 2000
RECEIPT_TIMEOUT_MS = 4000


class SessionState(str, enum.Enum):
    IDLE = "idle"
    DEVICE_OPENED = "device_opened"
    INTERFACE_CLAIMED = "interface_claimed"
    TRANSFERRING = "transferring"
    CLOSED = "closed"


class PrintSession:
    def __init__(self, transport: Transport, device: UsbDevice) -> None:
        self.transport = transport
        self.device = device
        self.state = SessionState.IDLE
        self._opened = False
        self._claimed = False

    def open(self) -> "PrintSession":
        """
        Open the device and claim its interface.

        On a claim failure the session is closed before the error propagates.
        """
        if self.state is not SessionState.IDLE:
            raise RuntimeError(f"Session cannot be opened from state {self.state.value}")
        self.transport.open(self.device)
        self._opened = True
        self.state = SessionState.DEVICE_OPENED
        try:
            self.transport.claim()
            self._claimed = True
        except BaseException:
            # claim() may have reserved the interface before failing
            self._claimed = True
            self.close()
            raise
        self.state = SessionState.INTERFACE_CLAIMED
        logger.debug("Session opened on %s via %s", self.device.device_name, self.transport.name)
        return self

    def transfer(self, buffer: bytes, timeout_ms: int) -> int:
        if self.state not in (SessionState.INTERFACE_CLAIMED, SessionState.TRANSFERRING):
            raise TransferFailedError(f"Session is not ready for transfer ({self.state.value})")
        self.state = SessionState.TRANSFERRING
        written = self.transport.write(buffer, timeout_ms)
        logger.debug("Transferred %d bytes (timeout=%dms)", written, timeout_ms)
        return written

    def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        try:
            if self._claimed:
                self._claimed = False
                self.transport.release()
        finally:
            self.state = SessionState.CLOSED
            if self._opened:
                self._opened = False
                self.transport.close()

    def __enter__(self) -> "PrintSession":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


__all__ = ["RECEIPT_TIMEOUT_MS", "TEST_PAGE_TIMEOUT_MS", "PrintSession", "SessionState"]
