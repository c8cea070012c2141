"""
Query cache driven by domain events.

Each entry names the event types that can change its data (optionally narrowed
by a predicate on the event). A matching event invalidates the entry and the
next ``get`` refetches from the server; cached values are never patched in place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional

from client.events import EventBus
from schemas.events import DomainEvent

Fetcher = Callable[[], Awaitable[Any]]
Matcher = Callable[[DomainEvent], bool]


@dataclass
class CacheEntry:
    fetch: Fetcher
    value: Any = None
    stale: bool = True
    fetch_count: int = 0
    unsubscribers: list[Callable[[], None]] = field(default_factory=list)


class QueryCache:
    def __init__(self, bus: EventBus):
        self.bus = bus
        self._entries: dict[str, CacheEntry] = {}

    def register(
        self,
        key: str,
        fetch: Fetcher,
        invalidated_by: Iterable[type[DomainEvent]],
        matches: Optional[Matcher] = None,
    ) -> CacheEntry:
        self.drop(key)
        entry = CacheEntry(fetch=fetch)

        def on_event(event: DomainEvent) -> None:
            if matches is None or matches(event):
                entry.stale = True

        entry.unsubscribers = [self.bus.subscribe(t, on_event) for t in invalidated_by]
        self._entries[key] = entry
        return entry

    def drop(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry:
            for unsubscribe in entry.unsubscribers:
                unsubscribe()

    def is_stale(self, key: str) -> bool:
        return self._entries[key].stale

    async def get(self, key: str) -> Any:
        entry = self._entries[key]
        if entry.stale:
            entry.value = await entry.fetch()
            entry.fetch_count += 1
            entry.stale = False
        return entry.value


def about_work_request(work_request_id: str) -> Matcher:
    """Matcher for events carrying the given ``work_request_id``."""
    return lambda event: getattr(event, "work_request_id", None) == work_request_id
