import pytest

from app.services.query_cache import (
    ACTIVITY_FEED,
    JOB_COMMENTS,
    JOBS,
    InvalidationBus,
    MutationEvent,
    QueryCache,
    activity_feed_key,
    job_comments_key,
    jobs_key,
)


def test_fetch_loads_once_until_invalidated():
    cache = QueryCache()
    calls = []

    def loader():
        calls.append(1)
        return ["row"]

    assert cache.fetch(jobs_key(), loader) == ["row"]
    assert cache.fetch(jobs_key(), loader) == ["row"]
    assert len(calls) == 1

    cache.invalidate((JOBS,))
    cache.fetch(jobs_key(), loader)
    assert len(calls) == 2


def test_prefix_invalidation_is_scoped():
    cache = QueryCache()
    cache.fetch(job_comments_key("a"), lambda: "a-thread")
    cache.fetch(job_comments_key("b"), lambda: "b-thread")
    cache.fetch(activity_feed_key(None, ("comment_created",), 50), lambda: "feed")

    assert cache.invalidate((JOB_COMMENTS, "a")) == 1
    assert cache.peek(job_comments_key("a")) is None
    assert cache.peek(job_comments_key("b")) == "b-thread"

    assert cache.invalidate((ACTIVITY_FEED,)) == 1
    assert cache.peek(activity_feed_key(None, ("comment_created",), 50)) is None


def test_bus_delivers_events_to_cache():
    cache = QueryCache()
    bus = InvalidationBus()
    bus.subscribe(cache.handle_event)
    seen = []
    bus.subscribe(seen.append)

    cache.fetch(jobs_key(), lambda: [1])
    cache.fetch(jobs_key("new"), lambda: [2])
    event = MutationEvent("comment", "created", "c1", keys=((JOBS,),))
    bus.publish(event)

    assert cache.peek(jobs_key()) is None
    assert cache.peek(jobs_key("new")) is None
    assert seen == [event]


def test_load_started_before_invalidation_is_not_stored():
    cache = QueryCache()

    def loader():
        # a write lands while this read is in flight
        cache.invalidate((JOBS,))
        return ["stale"]

    assert cache.fetch(jobs_key(), loader) == ["stale"]
    assert cache.peek(jobs_key()) is None

    assert cache.fetch(jobs_key(), lambda: ["fresh"]) == ["fresh"]
    assert cache.peek(jobs_key()) == ["fresh"]


def test_disabled_cache_always_loads():
    cache = QueryCache(enabled=False)
    calls = []
    cache.fetch(jobs_key(), lambda: calls.append(1))
    cache.fetch(jobs_key(), lambda: calls.append(1))
    assert len(calls) == 2


def test_least_recently_read_entry_is_evicted():
    cache = QueryCache(max_entries=2)
    cache.fetch(job_comments_key("a"), lambda: "a")
    cache.fetch(job_comments_key("b"), lambda: "b")
    # reading "a" again makes "b" the oldest
    cache.fetch(job_comments_key("a"), lambda: "reloaded")
    cache.fetch(job_comments_key("c"), lambda: "c")

    assert len(cache) == 2
    assert cache.peek(job_comments_key("a")) == "a"
    assert cache.peek(job_comments_key("b")) is None
    assert cache.peek(job_comments_key("c")) == "c"


def test_entry_count_stays_bounded():
    cache = QueryCache(max_entries=10)
    for i in range(100):
        cache.fetch(activity_feed_key(f"job-{i}", None, 50), lambda: [])
    assert len(cache) == 10


def test_invalidation_marks_are_dropped_when_no_load_is_running():
    cache = QueryCache()
    for i in range(50):
        cache.invalidate((JOB_COMMENTS, f"job-{i}"))
    assert cache._invalidated_at == {}

    def loader():
        cache.invalidate((JOBS,))
        assert (JOBS,) in cache._invalidated_at
        return ["stale"]

    cache.fetch(jobs_key(), loader)
    assert cache._invalidated_at == {}
    assert cache.peek(jobs_key()) is None


def test_failed_load_is_not_stored():
    cache = QueryCache()

    def loader():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.fetch(jobs_key(), loader)
    assert len(cache) == 0
    assert cache._loads_in_flight == {}
