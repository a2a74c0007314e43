"""
Deduplicating page and link store for a crawler.

Pages are keyed by the SHA256 of their canonical URL, links by the keys of
their two endpoints. Single-record writers check before inserting under
reader/writer locks; batch writers send one multi-row insert that skips
existing keys.

Known race: the batch writers take no locks and can run at the same time as
add_page/add_link on the same key. The primary key is the backstop; the single
writer that loses surfaces DuplicateKeyError.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Iterable, List, Optional, Sequence, Tuple, Union

from .config import EndpointPolicy, StoreConfig, get_store_config
from .database import Database, DatabaseFactory
from .errors import DuplicateKeyError, EndpointPageError, StoreNotInitializedError
from .hashing import page_key
from .locks import ReadWriteLock
from .models import Link, Page
from .schema import LINK_COLUMNS, PAGE_COLUMNS, ensure_schema
from .statements import build_existing_keys_query, build_insert_statements, dedupe_rows

logger = logging.getLogger(__name__)

_UNSET = object()


class CrawlStore:
    """Persistent record of visited pages and traversed links.

    Usage::

        async with CrawlStore(get_store_config()) as store:
            if not await store.page_exists(url):
                ...
            await store.add_link(url, href, anchor_text, "nav")

    Every operation takes an optional ``timeout`` in seconds; by default
    ``config.query_timeout`` applies. Passing ``timeout=None`` disables it for
    that call.
    """

    def __init__(self, config: Optional[StoreConfig] = None, database: Optional[Database] = None):
        self.config = config or get_store_config()
        self._db = database
        self._owns_database = database is None
        self._page_lock = ReadWriteLock()
        self._link_lock = ReadWriteLock()
        self._sql = {}

    async def init(self) -> None:
        """Open the database and create the tables when configured to."""
        if self._db is None:
            self._db = DatabaseFactory.create(self.config.to_database_config())
        await self._db.open()
        self._sql = self._prepare_statements()
        if self.config.create_schema:
            await ensure_schema(self._db, self.config.page_table, self.config.link_table)

    async def close(self) -> None:
        if self._db is not None and self._owns_database:
            await self._db.close()
            self._db = None
        self._sql = {}

    async def __aenter__(self) -> "CrawlStore":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def database(self) -> Database:
        if self._db is None or not self._db.is_open or not self._sql:
            raise StoreNotInitializedError("CrawlStore.init() has not been called")
        return self._db

    def _prepare_statements(self) -> dict:
        d = self._db.dialect
        pages, links = self.config.page_table, self.config.link_table
        return {
            "page_exists": f"SELECT EXISTS(SELECT 1 FROM {pages} WHERE page_id = {d.placeholder(1)})",
            "link_exists": (f"SELECT EXISTS(SELECT 1 FROM {links} "
                            f"WHERE from_page_id = {d.placeholder(1)} AND to_page_id = {d.placeholder(2)})"),
            "insert_page": (f"INSERT INTO {pages} ({', '.join(PAGE_COLUMNS)}) "
                            f"VALUES ({d.placeholders(1, len(PAGE_COLUMNS))})"),
            "insert_link": (f"INSERT INTO {links} ({', '.join(LINK_COLUMNS)}) "
                            f"VALUES ({d.placeholders(1, len(LINK_COLUMNS))})"),
            "count_pages": f"SELECT COUNT(*) FROM {pages}",
            "count_links": f"SELECT COUNT(*) FROM {links}",
        }

    async def _bounded(self, awaitable: Awaitable, timeout: Any):
        if timeout is _UNSET:
            timeout = self.config.query_timeout
        if timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout)

    # ------------------ existence checks ------------------

    async def page_exists(self, url: str, timeout: Optional[float] = _UNSET) -> bool:
        """Whether a page with the key of ``url`` has been recorded.

        An exception means the answer is unknown, not "no".
        """
        return await self._bounded(self._page_exists(page_key(url)), timeout)

    async def _page_exists(self, key: str) -> bool:
        db = self.database
        async with self._page_lock.reader():
            async with db.acquire() as conn:
                return bool(await conn.fetchval(self._sql["page_exists"], key))

    async def link_exists(self, from_url: str, to_url: str, timeout: Optional[float] = _UNSET) -> bool:
        """Whether the directed link ``from_url -> to_url`` has been recorded."""
        return await self._bounded(self._link_exists_locked(page_key(from_url), page_key(to_url)), timeout)

    async def _link_exists_locked(self, from_key: str, to_key: str) -> bool:
        async with self._link_lock.reader():
            return await self._link_exists(from_key, to_key)

    async def _link_exists(self, from_key: str, to_key: str) -> bool:
        # Caller holds the link lock.
        async with self.database.acquire() as conn:
            return bool(await conn.fetchval(self._sql["link_exists"], from_key, to_key))

    # ------------------ single-record writers ------------------

    async def add_page(self, url: str, timeout: Optional[float] = _UNSET) -> None:
        """Record ``url`` unless it is already there.

        Raises DuplicateKeyError if another writer inserted the same page
        between the existence check and the insert.
        """
        await self._bounded(self._add_page(Page(url)), timeout)

    async def _add_page(self, page: Page) -> None:
        if await self._page_exists(page.key):
            logger.debug("Page already recorded: %s", page.url)
            return
        db = self.database
        async with self._page_lock.writer():
            await self._insert_one(db, self.config.page_table, self._sql["insert_page"],
                                   page.as_row(), page.key)

    async def add_link(self, from_url: str, to_url: str, text: Optional[str], link_type: str,
                       timeout: Optional[float] = _UNSET) -> None:
        """Record the link ``from_url -> to_url`` and both of its pages.

        A link that already exists is left untouched, including its text and
        type. What happens when an endpoint page cannot be recorded depends on
        ``config.endpoint_policy``.
        """
        await self._bounded(self._add_link(Link(from_url, to_url, text, link_type)), timeout)

    async def _add_link(self, link: Link) -> None:
        db = self.database
        # Lock order is link then page; nothing takes them the other way round.
        async with self._link_lock.writer():
            if await self._link_exists(link.from_key, link.to_key):
                logger.debug("Link already recorded: %s -> %s", link.from_url, link.to_url)
                return

            endpoints = [link.source] if link.source == link.target else [link.source, link.target]
            for page in endpoints:
                await self._ensure_endpoint(page)

            await self._insert_one(db, self.config.link_table, self._sql["insert_link"],
                                   link.as_row(), link.key)

    async def _ensure_endpoint(self, page: Page) -> None:
        try:
            await self._add_page(page)
        except DuplicateKeyError:
            pass  # recorded by a concurrent writer
        except Exception as exc:
            if self.config.endpoint_policy is EndpointPolicy.FAIL_FAST:
                raise EndpointPageError(page.url) from exc
            logger.warning("Could not record endpoint page %s, inserting link anyway: %s", page.url, exc)

    async def _insert_one(self, db: Database, table: str, sql: str, row: Tuple, key: Any) -> None:
        try:
            async with db.acquire() as conn:
                await conn.execute(sql, *row)
        except Exception as exc:
            if db.is_unique_violation(exc):
                raise DuplicateKeyError(table, key) from exc
            raise

    # ------------------ batch writers ------------------

    async def add_pages_batch(self, pages: Iterable[Union[Page, str]],
                              timeout: Optional[float] = _UNSET) -> None:
        """Insert many pages in one statement, skipping those already recorded.

        Takes no locks and reports nothing per row: the whole batch is
        committed or, on error, none of it is.
        """
        rows = [(p if isinstance(p, Page) else Page(p)).as_row() for p in pages]
        await self._bounded(self._insert_batch(self.config.page_table, PAGE_COLUMNS, 1, rows), timeout)

    async def add_links_batch(self, links: Iterable[Link], timeout: Optional[float] = _UNSET) -> None:
        """Insert many links in one statement, skipping those already recorded.

        Endpoint pages are not created here. Record them first (for example
        with add_pages_batch) or the foreign keys reject the batch.
        """
        rows = [link.as_row() for link in links]
        await self._bounded(self._insert_batch(self.config.link_table, LINK_COLUMNS, 2, rows), timeout)

    async def _insert_batch(self, table: str, columns: Sequence[str], key_width: int,
                            rows: List[Tuple]) -> None:
        db = self.database
        if not rows:
            logger.debug("Empty batch for %s, nothing to insert", table)
            return
        rows = dedupe_rows(rows, key_width)
        dialect = db.dialect

        async with db.transaction() as conn:
            if not dialect.supports_upsert_skip:
                rows = await self._drop_existing(conn, table, columns[:key_width], rows)
                if not rows:
                    logger.debug("Every row of the %s batch already exists", table)
                    return
            statements = build_insert_statements(dialect, table, columns, rows,
                                                 skip_conflicts=dialect.supports_upsert_skip)
            for sql, params in statements:
                await conn.execute(sql, *params)
        logger.debug("Inserted batch of %d rows into %s (%d statements)", len(rows), table, len(statements))

    async def _drop_existing(self, conn, table: str, key_columns: Sequence[str], rows: List[Tuple]) -> List[Tuple]:
        width = len(key_columns)
        step = max(1, self.database.dialect.max_parameters // width)
        existing = set()
        for i in range(0, len(rows), step):
            keys = [row[:width] for row in rows[i:i + step]]
            sql, params = build_existing_keys_query(self.database.dialect, table, key_columns, keys)
            existing.update(tuple(found) for found in await conn.fetchall(sql, *params))
        return [row for row in rows if tuple(row[:width]) not in existing]

    # ------------------ statistics ------------------

    async def count_pages(self, timeout: Optional[float] = _UNSET) -> int:
        return await self._bounded(self._count("count_pages"), timeout)

    async def count_links(self, timeout: Optional[float] = _UNSET) -> int:
        return await self._bounded(self._count("count_links"), timeout)

    async def _count(self, name: str) -> int:
        async with self.database.acquire() as conn:
            return int(await conn.fetchval(self._sql[name]))
