import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone

from fundgate.models.event import EventType

logger = logging.getLogger(__name__)

Handler = Callable[[dict], Awaitable[None]]


class EventBus:
    """In-process async event bus with SSE broadcast support.

    Delivery is best effort: a subscriber whose queue is full is dropped and
    handler errors are logged, never raised back into the ledger operation
    that published the event.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue] = []
        self._handlers: dict[str, list[Handler]] = {}

    def register_handler(self, event_type: EventType | str, handler: Handler) -> None:
        key = event_type.value if isinstance(event_type, EventType) else event_type
        self._handlers.setdefault(key, []).append(handler)

    async def publish(
        self,
        event_type: EventType | str,
        data: dict,
        campaign_id: int | None = None,
    ) -> dict:
        key = event_type.value if isinstance(event_type, EventType) else event_type
        message = {
            "event": key,
            "campaign_id": campaign_id,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        # Broadcast to SSE subscribers
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Dropping slow event subscriber")
                self._subscribers.remove(queue)

        # Dispatch to registered handlers
        for handler in self._handlers.get(key, []):
            try:
                await handler(message)
            except Exception:
                logger.exception("Event handler error for %s", key)

        return message

    async def subscribe(self) -> AsyncGenerator[str, None]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=256)
        self._subscribers.append(queue)
        try:
            while True:
                message = await queue.get()
                yield f"data: {json.dumps(message, default=str)}\n\n"
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)


# Global singleton
event_bus = EventBus()
