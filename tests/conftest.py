import pytest
import pytest_asyncio
import os
import sys

# Add src to python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from src.crawlstore.config import StoreConfig, EndpointPolicy
from src.crawlstore.store import CrawlStore

@pytest.fixture
def store_config(tmp_path):
    return StoreConfig(
        sqlite_path=str(tmp_path / "crawl.db"),
        page_table="pages",
        link_table="links",
        endpoint_policy=EndpointPolicy.BEST_EFFORT
    )

@pytest_asyncio.fixture
async def store(store_config):
    crawl_store = CrawlStore(store_config)
    await crawl_store.init()
    yield crawl_store
    await crawl_store.close()

@pytest.fixture
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("CRAWLSTORE_"):
            monkeypatch.delenv(name)
    return monkeypatch
