import pytest
from src.crawlstore.errors import DuplicateKeyError
from src.crawlstore.visited import StoreVisitedTracker

class CountingStore:
    """Stand-in store that counts round trips."""

    def __init__(self, existing=(), raise_duplicate=False):
        self.pages = set(existing)
        self.exists_calls = 0
        self.add_calls = 0
        self.raise_duplicate = raise_duplicate

    async def page_exists(self, url):
        self.exists_calls += 1
        return url in self.pages

    async def add_page(self, url):
        self.add_calls += 1
        if self.raise_duplicate:
            raise DuplicateKeyError("pages", url)
        self.pages.add(url)

class TestStoreVisitedTracker:
    @pytest.mark.asyncio
    async def test_mark_and_check(self, store):
        tracker = StoreVisitedTracker(store)
        assert await tracker.is_visited("https://example.com/a") is False
        await tracker.mark("https://example.com/a")
        assert await tracker.is_visited("https://EXAMPLE.com/a#frag") is True
        assert await store.page_exists("https://example.com/a")

    @pytest.mark.asyncio
    async def test_sees_pages_from_other_writers(self, store):
        await store.add_page("https://example.com/elsewhere")
        tracker = StoreVisitedTracker(store)
        assert await tracker.is_visited("https://example.com/elsewhere")

    @pytest.mark.asyncio
    async def test_positive_answers_cached(self):
        backend = CountingStore(existing={"https://example.com/a"})
        tracker = StoreVisitedTracker(backend)
        assert await tracker.is_visited("https://example.com/a")
        assert await tracker.is_visited("https://example.com/a")
        assert backend.exists_calls == 1

    @pytest.mark.asyncio
    async def test_negative_answers_not_cached(self):
        backend = CountingStore()
        tracker = StoreVisitedTracker(backend)
        assert not await tracker.is_visited("https://example.com/a")
        backend.pages.add("https://example.com/a")
        assert await tracker.is_visited("https://example.com/a")
        assert backend.exists_calls == 2

    @pytest.mark.asyncio
    async def test_mark_skips_store_when_cached(self):
        backend = CountingStore()
        tracker = StoreVisitedTracker(backend)
        await tracker.mark("https://example.com/a")
        await tracker.mark("https://example.com/a")
        assert backend.add_calls == 1

    @pytest.mark.asyncio
    async def test_mark_duplicate_is_visited(self):
        backend = CountingStore(raise_duplicate=True)
        tracker = StoreVisitedTracker(backend)
        await tracker.mark("https://example.com/a")
        assert await tracker.is_visited("https://example.com/a")
        assert backend.exists_calls == 0

    @pytest.mark.asyncio
    async def test_cache_is_bounded(self):
        backend = CountingStore()
        tracker = StoreVisitedTracker(backend, max_size=2)
        for i in range(5):
            await tracker.mark(f"https://example.com/{i}")
        assert len(tracker) == 2
        # Evicted from memory, still answered by the store
        assert await tracker.is_visited("https://example.com/0")
        assert backend.exists_calls == 1

    def test_unbounded(self):
        tracker = StoreVisitedTracker(CountingStore(), max_size=0)
        assert tracker._max_size is None
