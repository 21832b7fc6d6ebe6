"""Real-time notifications for connected clients.

Routes publish through the ``EventPublisher`` interface after their database
work has committed. ``EventBroadcaster`` fans each event out to the asyncio
queues of subscribed WebSocket connections.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Protocol

from fastapi import Request
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EventMessage(BaseModel):
    event: str
    data: dict[str, Any]
    emitted_at: datetime = Field(default_factory=datetime.utcnow, serialization_alias="emittedAt")


class EventPublisher(Protocol):
    def publish(self, event: str, payload: dict[str, Any]) -> None: ...


class EventBroadcaster:
    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._subscribers: set[asyncio.Queue] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_open(self) -> bool:
        return self._loop is not None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def open(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def close(self) -> None:
        self._subscribers.clear()
        self._loop = None

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def _deliver(self, message: EventMessage) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Dropping %s event for a slow subscriber", message.event)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        if self._loop is None:
            logger.debug("Event %s published while broadcaster is closed", event)
            return
        message = EventMessage(event=event, data=payload)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._deliver(message)
        else:
            self._loop.call_soon_threadsafe(self._deliver, message)


def get_event_publisher(request: Request) -> EventPublisher:
    return request.app.state.events
