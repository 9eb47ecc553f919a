"""
Core utilities for Receipt Printer.

This package groups non-Flask helpers used across the service:
- config: config path resolution, JSON load/save, runtime settings
- logging: Request ID aware logging filters/formatters and root logger config
- errors: the typed failures raised by discovery and print operations
"""

from .config import (
    DEFAULT_CONFIG,
    TRANSPORTS,
    default_config_path,
    get_config_path,
    load_config,
    parse_usb_id_pair,
    resolve_settings,
    save_config,
)
from .errors import (
    ConnectionOpenFailedError,
    ContextUnavailableError,
    DeviceNotFoundError,
    EndpointNotFoundError,
    ManagerUnavailableError,
    PermissionDeniedError,
    PrinterError,
    ReceiptFormatError,
    TransferError,
    TransferFailedError,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)

__all__ = [
    # config
    "DEFAULT_CONFIG",
    "TRANSPORTS",
    "default_config_path",
    "get_config_path",
    "load_config",
    "parse_usb_id_pair",
    "resolve_settings",
    "save_config",
    # errors
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
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
]
