"""Connection event stream.

Handlers subscribed to an EventStream are called synchronously in
subscription order. A handler that raises is logged and skipped; delivery to
the remaining handlers continues. ``listen()`` offers the same events as an
async iterator.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from tuya_lan.logging_abstraction import get_logger

logger = get_logger(__name__)


class EventType(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    DATA = "data"
    ERROR = "error"


@dataclass(frozen=True)
class DeviceEvent:
    """One connection event.

    DATA events carry payload, command and sequence; ERROR events carry error.
    """

    type: EventType
    payload: Any = None
    command: int | None = None
    sequence: int | None = None
    error: BaseException | None = None


EventHandler = Callable[[DeviceEvent], None]


class EventStream:
    """Fan-out of DeviceEvents to subscribed handlers."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, event: DeviceEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler failed for %s",
                    event.type.value,
                    extra={"event_type": event.type.value},
                )

    async def listen(self) -> AsyncIterator[DeviceEvent]:
        """Yield events as they are emitted until the consumer stops iterating."""
        queue: asyncio.Queue[DeviceEvent] = asyncio.Queue()
        unsubscribe = self.subscribe(queue.put_nowait)
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()

    def __len__(self) -> int:
        return len(self._handlers)
