"""
The onChange event channel.

Carries either a passthrough {"value": str} signal or a permission result
{"usbPermissionGranted": bool, "deviceId"?: int}. Subscribers are called on
the publishing thread. A bounded history with sequence numbers lets the web
layer poll for events it has not seen yet.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

Event = Dict[str, Any]
Subscriber = Callable[[Event], None]


def value_event(value: str) -> Event:
    return {"value": value}


def permission_event(granted: bool, device_id: Optional[int] = None) -> Event:
    event: Event = {"usbPermissionGranted": bool(granted)}
    if device_id is not None:
        event["deviceId"] = int(device_id)
    return event


class EventChannel:
    def __init__(self, history: int = 100) -> None:
        self._subscribers: List[Subscriber] = []
        self._history: Deque[Event] = deque(maxlen=history)
        self._seq = 0
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

    def emit(self, event: Event) -> int:
        with self._lock:
            self._seq += 1
            seq = self._seq
            self._history.append({"seq": seq, **event})
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(dict(event))
            except Exception:
                logger.exception("onChange subscriber failed")
        return seq

    def since(self, seq: int = 0) -> List[Event]:
        with self._lock:
            return [dict(e) for e in self._history if e["seq"] > seq]

    @property
    def last_seq(self) -> int:
        with self._lock:
            return self._seq


__all__ = ["Event", "EventChannel", "Subscriber", "permission_event", "value_event"]
