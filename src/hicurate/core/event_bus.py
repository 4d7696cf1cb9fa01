"""Named-channel event bus with a bounded history of published events."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Tuple

LOGGER = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventBus:
    def __init__(self, capacity: int = 1024):
        self.capacity = capacity
        self._events: Deque[Tuple[str, Any]] = deque(maxlen=capacity)
        self._subscribers: Dict[str, List[Handler]] = {}

    def publish(self, channel: str, payload: Any = None) -> None:
        self._events.append((channel, payload))
        for callback in list(self._subscribers.get(channel, ())):
            try:
                callback(payload)
            except Exception:
                LOGGER.exception("Error in event handler for %r", channel)

    def subscribe(self, channel: str, callback: Handler) -> Callable[[], None]:
        self._subscribers.setdefault(channel, []).append(callback)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(channel, [])
            if callback in handlers:
                handlers.remove(callback)

        return unsubscribe

    def drain(self) -> List[Tuple[str, Any]]:
        events = list(self._events)
        self._events.clear()
        return events

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._events)
