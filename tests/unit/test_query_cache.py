import pytest

from harmony.client.cache import QueryCache
from harmony.client.http import HttpError, UnauthorizedError


class FakeApi:
    def __init__(self, values=None):
        self.values = dict(values or {})
        self.fetches = []
        self.closed = False
        self.during_fetch = None

    def get_json(self, key):
        self.fetches.append(key)
        value = self.values[key]
        if self.during_fetch is not None:
            hook, self.during_fetch = self.during_fetch, None
            hook()
        if isinstance(value, Exception):
            raise value
        return value

    def close(self):
        self.closed = True


def test_reads_are_served_from_cache_until_invalidated() -> None:
    api = FakeApi({"/api/jobs/5": {"id": 5, "title": "Old"}})
    cache = QueryCache(api)

    assert cache.read("/api/jobs/5")["title"] == "Old"
    api.values["/api/jobs/5"] = {"id": 5, "title": "New"}
    assert cache.read("/api/jobs/5")["title"] == "Old"
    assert api.fetches == ["/api/jobs/5"]

    assert cache.invalidate("/api/jobs/5", exact=True) == 1
    assert cache.is_stale("/api/jobs/5")
    assert cache.read("/api/jobs/5")["title"] == "New"
    assert len(api.fetches) == 2


def test_prefix_invalidation_marks_items_and_lists_but_not_neighbours() -> None:
    api = FakeApi({"/api/jobs": [], "/api/jobs/5": {}, "/api/jobsearch": []})
    cache = QueryCache(api)
    for key in api.values:
        cache.read(key)

    assert cache.invalidate("/api/jobs") == 2
    assert cache.is_stale("/api/jobs")
    assert cache.is_stale("/api/jobs/5")
    assert not cache.is_stale("/api/jobsearch")


def test_unauthorized_read_can_resolve_to_none() -> None:
    api = FakeApi({"/api/user": UnauthorizedError(401, "Unauthorized")})
    cache = QueryCache(api)

    assert cache.read("/api/user", on_unauthorized="return_null") is None
    with pytest.raises(UnauthorizedError):
        cache.read("/api/user")


def test_other_http_errors_propagate_and_are_not_cached() -> None:
    api = FakeApi({"/api/jobs/9": HttpError(404, "job 9 not found")})
    cache = QueryCache(api)
    with pytest.raises(HttpError):
        cache.read("/api/jobs/9", on_unauthorized="return_null")
    assert cache.peek("/api/jobs/9") is None
    assert cache.is_stale("/api/jobs/9")


def test_empty_body_is_cached_as_none_without_refetching() -> None:
    api = FakeApi({"/api/user": None})
    cache = QueryCache(api)
    assert cache.read("/api/user") is None
    assert cache.read("/api/user") is None
    assert api.fetches == ["/api/user"]


def test_invalidation_during_in_flight_fetch_wins() -> None:
    api = FakeApi({"/api/communities/1": {"memberCount": 1}})
    cache = QueryCache(api)

    def mutate_then_invalidate():
        api.values["/api/communities/1"] = {"memberCount": 2}
        cache.invalidate("/api/communities")

    api.during_fetch = mutate_then_invalidate
    assert cache.read("/api/communities/1") == {"memberCount": 1}
    assert cache.is_stale("/api/communities/1")

    assert cache.read("/api/communities/1") == {"memberCount": 2}
    assert len(api.fetches) == 2


def test_set_peek_clear_and_close() -> None:
    api = FakeApi()
    cache = QueryCache(api)
    cache.set("/api/user", {"id": 1})
    assert cache.peek("/api/user") == {"id": 1}
    assert not cache.is_stale("/api/user")
    assert cache.keys() == ["/api/user"]

    cache.close()
    assert cache.keys() == []
    assert api.closed


def test_callers_cannot_mutate_cached_values() -> None:
    api = FakeApi({"/api/jobs": [{"id": 1, "title": "Eng"}]})
    cache = QueryCache(api)

    first = cache.read("/api/jobs")
    first[0]["title"] = "scribbled"
    first.append({"id": 2})

    assert cache.read("/api/jobs") == [{"id": 1, "title": "Eng"}]
    assert cache.peek("/api/jobs") == [{"id": 1, "title": "Eng"}]
    assert len(api.fetches) == 1
