from collections import OrderedDict
from typing import Optional

from .errors import DuplicateKeyError
from .store import CrawlStore
from .urls import canonical_url


class StoreVisitedTracker:
    """
    Tracks which URLs have been visited, persisted in a CrawlStore.

    Drop-in for an in-memory visited set: ``mark`` records the page and
    ``is_visited`` asks the store. URLs known to be visited are remembered in a
    bounded LRU so repeated checks skip the database. Only positive answers are
    cached; pages are never deleted, so they cannot go stale.
    """

    def __init__(self, store: CrawlStore, max_size: Optional[int] = 100_000):
        """Create a tracker over ``store``.

        `max_size` bounds memory usage by evicting least-recently-used URLs.
        If `max_size` is None or <= 0, the cache is unbounded.
        """
        self._store = store
        self._max_size = int(max_size) if max_size is not None else None
        if self._max_size is not None and self._max_size <= 0:
            self._max_size = None

        self._visited: "OrderedDict[str, None]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._visited)

    def _remember(self, url: str) -> None:
        self._visited[url] = None
        self._visited.move_to_end(url)
        if self._max_size is not None:
            while len(self._visited) > self._max_size:
                self._visited.popitem(last=False)

    async def mark(self, url: str) -> None:
        """Mark a URL as visited."""
        url = canonical_url(url)
        if url in self._visited:
            self._visited.move_to_end(url)
            return
        try:
            await self._store.add_page(url)
        except DuplicateKeyError:
            pass  # another worker recorded it first
        self._remember(url)

    async def is_visited(self, url: str) -> bool:
        """Check if a URL has been visited."""
        url = canonical_url(url)
        if url in self._visited:
            self._visited.move_to_end(url)
            return True
        if await self._store.page_exists(url):
            self._remember(url)
            return True
        return False
