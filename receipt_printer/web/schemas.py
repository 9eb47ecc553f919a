from __future__ import annotations

"""
Pydantic schemas for the Receipt Printer API (v1).
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator


class ValueRequest(BaseModel):
    """Body of POST /api/v1/events/value."""

    value: str = Field(max_length=1024)

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> str:
        if v is None:
            raise ValueError("value is required")
        return str(v)


class Links(BaseModel):
    self: str


class JobAcceptedResponse(BaseModel):
    id: str
    status: str = "queued"
    links: Links


class PrinterListResponse(BaseModel):
    printers: List[Dict[str, Any]]


class EventsResponse(BaseModel):
    events: List[Dict[str, Any]]
    last_seq: int


class JobListResponse(BaseModel):
    jobs: List[Dict[str, Any]]


__all__ = ["EventsResponse", "JobAcceptedResponse", "JobListResponse", "Links", "PrinterListResponse", "ValueRequest"]
