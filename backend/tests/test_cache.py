from dashboard.cache import ListingCache, path_tag


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def _counting_loader(values):
    calls = []

    def load():
        calls.append(1)
        return values[len(calls) - 1]
    return load, calls


def test_fresh_entry_is_served_from_cache():
    clock = FakeClock()
    cache = ListingCache(max_age=1.0, clock=clock)
    load, calls = _counting_loader(["a", "b"])
    assert cache.get_or_load("k", load) == "a"
    clock.now += 0.5
    assert cache.get_or_load("k", load) == "a"
    assert len(calls) == 1


def test_entry_expires_after_max_age():
    clock = FakeClock()
    cache = ListingCache(max_age=1.0, clock=clock)
    load, calls = _counting_loader(["a", "b"])
    cache.get_or_load("k", load)
    clock.now += 1.0
    assert cache.get_or_load("k", load) == "b"
    assert len(calls) == 2


def test_invalidate_by_tag_drops_all_tagged_entries():
    cache = ListingCache(max_age=60)
    cache.get_or_load("courses:page=1", lambda: 1, tags=("all-courses",))
    cache.get_or_load("courses:page=2", lambda: 2, tags=("all-courses",))
    cache.get_or_load("users:page=1", lambda: 3, tags=("users",))
    assert cache.invalidate("all-courses") == 2
    assert len(cache) == 1
    assert cache.get_or_load("courses:page=1", lambda: "fresh", tags=("all-courses",)) == "fresh"


def test_invalidate_path_and_exact_key():
    cache = ListingCache(max_age=60)
    cache.get_or_load("detail", lambda: 1, tags=(path_tag("/dashboard/courses/7/"),))
    cache.get_or_load("other", lambda: 2)
    assert cache.invalidate_path("/dashboard/courses/7") == 1
    assert cache.invalidate("other") == 1
    assert len(cache) == 0


def test_zero_max_age_disables_caching():
    cache = ListingCache(max_age=0)
    load, calls = _counting_loader(["a", "b"])
    cache.get_or_load("k", load)
    cache.get_or_load("k", load)
    assert len(calls) == 2
    assert len(cache) == 0


def test_expired_entries_are_purged_on_store():
    clock = FakeClock()
    cache = ListingCache(max_age=1.0, clock=clock)
    cache.get_or_load("old", lambda: 1)
    clock.now += 5
    cache.get_or_load("new", lambda: 2)
    assert len(cache) == 1


def test_load_invalidated_midway_is_not_stored():
    cache = ListingCache(max_age=60.0, clock=FakeClock())

    def load_then_mutate():
        cache.invalidate("courses")
        return "before-mutation"

    assert cache.get_or_load("k", load_then_mutate, tags=("courses",)) == "before-mutation"
    assert len(cache) == 0
    assert cache.get_or_load("k", lambda: "after-mutation", tags=("courses",)) == "after-mutation"
    assert cache.get_or_load("k", lambda: "unused", tags=("courses",)) == "after-mutation"


def test_unrelated_invalidation_during_load_still_stores():
    cache = ListingCache(max_age=60.0, clock=FakeClock())

    def load():
        cache.invalidate("users")
        return "courses-page"

    cache.get_or_load("k", load, tags=("courses",))
    assert cache.get_or_load("k", lambda: "unused", tags=("courses",)) == "courses-page"


def test_clear_during_load_skips_store():
    cache = ListingCache(max_age=60.0, clock=FakeClock())

    def load():
        cache.clear()
        return "v"

    cache.get_or_load("k", load)
    assert len(cache) == 0
