from __future__ import annotations

"""
Pydantic models for receipt print requests.

Field names are snake_case in Python and camelCase on the wire. Validation is
deliberately lenient: missing or null fields take their defaults, scalars are
coerced where they can be, and values that cannot be coerced fall back to the
default instead of rejecting the receipt.
"""

import json
from typing import Any, List, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from receipt_printer.core.errors import ReceiptFormatError

ITEM_NAME_WIDTH = 16


def _field_default(cls: type[BaseModel], info: ValidationInfo) -> Any:
    return cls.model_fields[info.field_name].default


def _lenient_str(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _lenient_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _lenient_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        # Numeric strings and fractional numbers truncate toward zero
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ReceiptItem(_WireModel):
    """One line of the receipt. `name` is truncated only when formatted."""

    name: str = "Item"
    qty: int = 1
    price: float = 0.0
    tax: float = 0.0

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, v: Any, info: ValidationInfo) -> str:
        return _lenient_str(v, _field_default(cls, info))

    @field_validator("qty", mode="before")
    @classmethod
    def _coerce_qty(cls, v: Any, info: ValidationInfo) -> int:
        return _lenient_int(v, _field_default(cls, info))

    @field_validator("price", "tax", mode="before")
    @classmethod
    def _coerce_amount(cls, v: Any, info: ValidationInfo) -> float:
        return _lenient_float(v, _field_default(cls, info))

    @property
    def display_name(self) -> str:
        return self.name[:ITEM_NAME_WIDTH]


class ReceiptTotals(NamedTuple):
    qty: int
    price: float
    tax: float


class Receipt(_WireModel):
    store_name: str = "Tijarah 360"
    store_address: str = "Saudi Arabia, Riyadh"
    receipt_number: str = "#123456"
    receipt_date: str = "2024-01-01 12:00"
    receipt_id: str = "RCP123456"
    items: List[ReceiptItem] = Field(default_factory=list)
    # Informational only; the printed TOTAL row is always computed from items
    total: float = 0.0

    @field_validator("store_name", "store_address", "receipt_number", "receipt_date", "receipt_id", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any, info: ValidationInfo) -> str:
        return _lenient_str(v, _field_default(cls, info))

    @field_validator("total", mode="before")
    @classmethod
    def _coerce_total(cls, v: Any, info: ValidationInfo) -> float:
        return _lenient_float(v, _field_default(cls, info))

    @field_validator("items", mode="before")
    @classmethod
    def _coerce_items(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, ReceiptItem))]

    def totals(self) -> ReceiptTotals:
        qty = 0
        price = 0.0
        tax = 0.0
        for item in self.items:
            qty += item.qty
            price += item.price * item.qty
            tax += item.tax
        return ReceiptTotals(qty, price, tax)

    @classmethod
    def from_json(cls, text: str | bytes) -> "Receipt":
        """
        Parse a receipt JSON document.

        Raises:
            ReceiptFormatError if text is not valid JSON or not a JSON object.
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise ReceiptFormatError(f"Receipt is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ReceiptFormatError("Receipt JSON must be an object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ReceiptFormatError(f"Invalid receipt: {e.errors()[0].get('msg', e)}") from e


__all__ = ["ITEM_NAME_WIDTH", "Receipt", "ReceiptItem", "ReceiptTotals"]
