"""
Error types for Receipt Printer.

Every failure raised by a discovery or print operation derives from
PrinterError so the service, the worker and the web layer can treat them
uniformly. Messages name the failing precondition or stage.
"""

from __future__ import annotations

from typing import Optional


class PrinterError(RuntimeError):
    """Base class for all printer operation failures."""

    kind = "printer_error"


class ContextUnavailableError(PrinterError):
    kind = "context_unavailable"

    def __init__(self, message: str = "Host context is unavailable") -> None:
        super().__init__(message)


class ManagerUnavailableError(PrinterError):
    kind = "manager_unavailable"

    def __init__(self, message: str = "USB manager is unavailable") -> None:
        super().__init__(message)


class DeviceNotFoundError(PrinterError):
    kind = "device_not_found"

    def __init__(self, device_id: int) -> None:
        self.device_id = device_id
        super().__init__(f"Device not found: {device_id}")


class PermissionDeniedError(PrinterError):
    kind = "permission_denied"

    def __init__(self, device_id: int) -> None:
        self.device_id = device_id
        super().__init__(f"No permission for device: {device_id}")


class ConnectionOpenFailedError(PrinterError, ConnectionError):
    kind = "connection_open_failed"

    def __init__(self, message: str = "Failed to open device connection") -> None:
        super().__init__(message)


class EndpointNotFoundError(PrinterError):
    kind = "endpoint_not_found"

    def __init__(self, message: str = "No OUT endpoint found") -> None:
        super().__init__(message)


class TransferFailedError(PrinterError):
    kind = "transfer_failed"

    def __init__(self, message: str = "Bulk transfer failed", *, written: Optional[int] = None) -> None:
        self.written = written
        super().__init__(message)


class ReceiptFormatError(PrinterError, ValueError):
    kind = "receipt_format"


# Shorter name used by the session API
TransferError = TransferFailedError

__all__ = [
    "ConnectionOpenFailedError",
    "ContextUnavailableError",
    "DeviceNotFoundError",
    "EndpointNotFoundError",
    "ManagerUnavailableError",
    "PermissionDeniedError",
    "PrinterError",
    "ReceiptFormatError",
    "TransferError",
    "TransferFailedError",
]
