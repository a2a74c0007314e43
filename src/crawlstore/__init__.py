"""Deduplicating page and link persistence for web crawlers."""

from .config import EndpointPolicy, StoreConfig, get_store_config
from .errors import DuplicateKeyError, EndpointPageError, StorageError, StoreNotInitializedError
from .hashing import link_key, page_key
from .models import Link, Page
from .store import CrawlStore
from .visited import StoreVisitedTracker

__all__ = [
    "CrawlStore",
    "DuplicateKeyError",
    "EndpointPageError",
    "EndpointPolicy",
    "Link",
    "Page",
    "StorageError",
    "StoreConfig",
    "StoreNotInitializedError",
    "StoreVisitedTracker",
    "get_store_config",
    "link_key",
    "page_key",
]
