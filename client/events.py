"""In-process publish/subscribe for typed domain events."""
from __future__ import annotations

import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable, Union

from schemas.events import DomainEvent
from utils.logger import get_logger

log = get_logger("client.events")

Handler = Callable[[DomainEvent], Union[None, Awaitable[None]]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event_type``; returns a function that removes it."""
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return unsubscribe

    async def publish(self, event: DomainEvent) -> None:
        handlers = list(self._handlers.get(type(event), ()))
        log.debug("[EVENT] %s -> %d handler(s)", event.type, len(handlers))
        for handler in handlers:
            result: Any = handler(event)
            if inspect.isawaitable(result):
                await result

    async def publish_all(self, events: list[DomainEvent]) -> None:
        for event in events:
            await self.publish(event)
