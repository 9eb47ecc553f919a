"""
Config utilities for Receipt Printer.

Responsibilities:
- Resolve the config path with environment and XDG support
- Provide JSON load/save helpers for the service config
- Merge saved config, defaults and environment overrides into runtime settings
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

TRANSPORTS = ("usb", "escpos")

DEFAULT_CONFIG: Dict[str, Any] = {
    "transport": "usb",
    "escpos_profile": None,
    "permission_allowlist": [],
    "max_workers": 4,
    "print_logo": True,
    "logo_path": None,
}


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/receiptprinter/config.json
    2) ~/.config/receiptprinter/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "receiptprinter" / "config.json")
    return str(Path.home() / ".config" / "receiptprinter" / "config.json")


def get_config_path() -> str:
    """
    Return the config path honoring RECEIPTPRINTER_CONFIG_PATH override.
    """
    return os.environ.get("RECEIPTPRINTER_CONFIG_PATH", default_config_path())


def load_config(path: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: Mapping[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(dict(data), f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except Exception:
        return default


def resolve_settings(overrides: Optional[Mapping[str, Any]] = None, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Build runtime settings: defaults, then the saved config, then environment,
    then explicit overrides.

    Unknown transports raise ValueError so a typo fails at startup rather than
    on the first print.
    """
    settings: Dict[str, Any] = dict(DEFAULT_CONFIG)
    saved = load_config(path)
    if saved:
        settings.update(saved)

    env_transport = os.environ.get("RECEIPTPRINTER_TRANSPORT")
    if env_transport:
        settings["transport"] = env_transport
    settings["max_workers"] = _env_int("RECEIPTPRINTER_MAX_WORKERS", int(settings.get("max_workers") or 4))

    if overrides:
        settings.update(overrides)

    settings["transport"] = str(settings.get("transport") or "usb").lower()
    if settings["transport"] not in TRANSPORTS:
        raise ValueError(f"Unsupported transport: {settings['transport']}")
    settings["max_workers"] = max(1, int(settings["max_workers"]))
    return settings


def parse_usb_id_pair(value: str) -> tuple[int, int]:
    """
    Parse a "vvvv:pppp" hex pair (as printed by lsusb) into (vendor, product).
    """
    vendor, _, product = str(value).strip().partition(":")
    if not vendor or not product:
        raise ValueError(f"Expected 'vendor:product', got {value!r}")
    return int(vendor, 16), int(product, 16)


__all__ = [
    "DEFAULT_CONFIG",
    "TRANSPORTS",
    "default_config_path",
    "get_config_path",
    "load_config",
    "parse_usb_id_pair",
    "resolve_settings",
    "save_config",
]
