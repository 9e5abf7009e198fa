"""Bounded in-memory feed of received webhook events"""

import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, List

logger = logging.getLogger(__name__)


class EventLog:
    """Newest-first ring buffer; the oldest entry is dropped once capacity is reached"""

    def __init__(self, capacity: int = 50):
        if capacity <= 0:
            raise ValueError("event log capacity must be positive")
        self.capacity = capacity
        self._events: Deque[Dict[str, Any]] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def add(self, event: Dict[str, Any]) -> None:
        with self._lock:
            self._events.appendleft(event)
            size = len(self._events)
        logger.debug("Stored webhook event", extra={"event_id": event.get("id"), "event_type": event.get("type"), "stored": size})

    def events(self, limit: int | None = None) -> List[Dict[str, Any]]:
        """Copy of stored events, newest first"""
        with self._lock:
            events = list(self._events)
        return events if limit is None else events[:limit]

    def clear(self) -> int:
        with self._lock:
            count = len(self._events)
            self._events.clear()
        logger.info("Cleared webhook events", extra={"cleared": count})
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
