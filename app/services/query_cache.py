"""
Read cache keyed by query tuples, plus the bus that write operations publish
to when they change something.

Keys mirror the read operations:

    ("jobs", status)
    ("contacts", type)          free-text searches are not cached
    ("job-comments", job_id)
    ("job-activity", job_id, limit)
    ("job-activity-feed", job_id, types, limit)

Invalidation works on prefixes: dropping ("jobs",) drops every jobs listing,
dropping ("job-comments", "abc") only that job's thread.
"""
import threading
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Optional

import structlog

from app.core.config import settings

logger = structlog.get_logger(__name__)

QueryKey = tuple

JOBS = "jobs"
CONTACTS = "contacts"
JOB_COMMENTS = "job-comments"
JOB_ACTIVITY = "job-activity"
ACTIVITY_FEED = "job-activity-feed"


def jobs_key(status: Optional[str] = None) -> QueryKey:
    return (JOBS, status)


def contacts_key(contact_type: Optional[str] = None) -> QueryKey:
    return (CONTACTS, contact_type)


def job_comments_key(job_id: str) -> QueryKey:
    return (JOB_COMMENTS, job_id)


def job_activity_key(job_id: str, limit: Optional[int] = None) -> QueryKey:
    return (JOB_ACTIVITY, job_id) if limit is None else (JOB_ACTIVITY, job_id, limit)


def activity_feed_key(
    job_id: Optional[str] = None,
    types: Optional[tuple] = None,
    limit: Optional[int] = None,
) -> QueryKey:
    return (ACTIVITY_FEED, job_id, tuple(sorted(types)) if types else None, limit)


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


@dataclass(frozen=True)
class MutationEvent:
    entity: str
    action: str
    entity_id: Optional[str] = None
    keys: tuple = field(default_factory=tuple)


class InvalidationBus:
    def __init__(self) -> None:
        self._subscribers: list[Callable[[MutationEvent], None]] = []

    def subscribe(self, handler: Callable[[MutationEvent], None]) -> None:
        self._subscribers.append(handler)

    def publish(self, event: MutationEvent) -> None:
        logger.info(
            "mutation_published",
            entity=event.entity,
            action=event.action,
            entity_id=event.entity_id,
            keys=[list(k) for k in event.keys],
        )
        for handler in list(self._subscribers):
            handler(event)


class QueryCache:
    """
    Results are stored last-write-wins, except that a load which began before
    its key was invalidated is handed back to its caller without being stored.

    At most `max_entries` results are kept; the least recently read goes first.
    Invalidation marks are only kept while a load older than them is in flight.
    """

    def __init__(self, enabled: bool = True, max_entries: int = 500) -> None:
        self.enabled = enabled
        self.max_entries = max_entries
        self._entries: OrderedDict = OrderedDict()
        self._generation = 0
        self._invalidated_at: dict[Hashable, int] = {}
        self._loads_in_flight: Counter = Counter()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def fetch(self, key: QueryKey, loader: Callable[[], Any]) -> Any:
        if not self.enabled:
            return loader()

        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key]
            started = self._generation
            self._loads_in_flight[started] += 1

        try:
            value = loader()
            with self._lock:
                if not self._was_invalidated_since(key, started):
                    self._store(key, value)
        finally:
            with self._lock:
                self._loads_in_flight[started] -= 1
                if self._loads_in_flight[started] <= 0:
                    del self._loads_in_flight[started]
                self._forget_old_invalidations()
        return value

    def _store(self, key: QueryKey, value: Any) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("cache_evicted", key=list(evicted))

    def _was_invalidated_since(self, key: QueryKey, generation: int) -> bool:
        return any(
            _matches(key, prefix) and gen > generation
            for prefix, gen in self._invalidated_at.items()
        )

    def _forget_old_invalidations(self) -> None:
        # a mark matters only to loads that started before it
        oldest = min(self._loads_in_flight) if self._loads_in_flight else self._generation
        for prefix in [p for p, gen in self._invalidated_at.items() if gen <= oldest]:
            del self._invalidated_at[prefix]

    def invalidate(self, prefix: QueryKey) -> int:
        with self._lock:
            self._generation += 1
            self._invalidated_at[prefix] = self._generation
            stale = [k for k in self._entries if _matches(k, prefix)]
            for k in stale:
                del self._entries[k]
            self._forget_old_invalidations()
        if stale:
            logger.debug("cache_invalidated", prefix=list(prefix), dropped=len(stale))
        return len(stale)

    def handle_event(self, event: MutationEvent) -> None:
        for prefix in event.keys:
            self.invalidate(prefix)

    def peek(self, key: QueryKey) -> Any:
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._invalidated_at.clear()
            self._generation = 0


query_cache = QueryCache(enabled=settings.QUERY_CACHE_ENABLED, max_entries=settings.QUERY_CACHE_MAX_ENTRIES)
invalidation_bus = InvalidationBus()
invalidation_bus.subscribe(query_cache.handle_event)
