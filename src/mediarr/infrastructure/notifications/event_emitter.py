"""In-process event emitter for import outcome events.

Hey future me - this is the ONLY thing importers know about notifications. They call
emit("import.completed", {...}) and move on. Whoever cares (webhook sender, in-app feed,
a test) subscribes a coroutine. Delivery is fire-and-forget: a broken subscriber gets
logged and ignored, it must NEVER turn a successful import into a failed one.

    emitter = EventEmitter()
    emitter.subscribe("import.completed", send_webhook)
    emitter.subscribe("*", audit_log)   # every event
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any

from mediarr.domain.ports import EventHandler, IEventSink

logger = logging.getLogger(__name__)

IMPORT_COMPLETED = "import.completed"
IMPORT_FAILED = "import.failed"
WILDCARD = "*"


class EventEmitter(IEventSink):
    """Dispatches events to async subscribers in parallel."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        """Register a handler for one event name, or "*" for all events."""
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        handlers = [*self._handlers.get(event, []), *self._handlers.get(WILDCARD, [])]
        if not handlers:
            logger.debug("No subscribers for %s", event)
            return

        # One slow subscriber doesn't hold up the others
        results = await asyncio.gather(
            *(handler(event, payload) for handler in handlers), return_exceptions=True
        )
        for handler, result in zip(handlers, results, strict=True):
            if isinstance(result, Exception):
                logger.warning(
                    "Event subscriber %s failed for %s: %s",
                    getattr(handler, "__name__", repr(handler)),
                    event,
                    result,
                )


class NullEventSink(IEventSink):
    """Sink that drops everything (default when nobody wires an emitter)."""

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        return None
