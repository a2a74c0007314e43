"""
Database abstraction layer for supporting both SQLite and PostgreSQL backends.

This module provides a unified interface for the statements the crawl store
runs, working with SQLite (via aiosqlite) and PostgreSQL (via asyncpg). Each
backend also describes its SQL dialect so statements can be generated with the
right placeholders and conflict handling.
"""

from __future__ import annotations
import asyncio
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional, Sequence, Tuple

import aiosqlite
import asyncpg

logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """Configuration for database connections."""
    backend: str = "sqlite"  # "sqlite" or "postgresql"

    # SQLite configuration
    sqlite_path: str = ""

    # PostgreSQL configuration; a DSN takes precedence over the discrete fields
    postgres_dsn: str = ""
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "crawler_db"
    postgres_user: str = "crawler_user"
    postgres_password: str = ""
    postgres_schema: str = "public"
    postgres_pool_size: int = 10
    postgres_max_queries: int = 50000
    postgres_max_inactive_connection_lifetime: float = 300.0


@dataclass(frozen=True)
class Dialect:
    """SQL capabilities of a backend.

    ``supports_upsert_skip`` says whether ``INSERT ... ON CONFLICT DO NOTHING``
    is available; ``max_parameters`` is the number of bound parameters a single
    statement may carry.
    """
    name: str
    placeholder_prefix: str
    supports_upsert_skip: bool = True
    max_parameters: int = 999

    def placeholder(self, index: int) -> str:
        """Placeholder for the 1-based parameter ``index``."""
        if index < 1:
            raise ValueError("placeholder index starts at 1")
        return f"{self.placeholder_prefix}{index}"

    def placeholders(self, start: int, count: int) -> str:
        """Comma separated placeholders ``start`` .. ``start + count - 1``."""
        return ", ".join(self.placeholder(i) for i in range(start, start + count))

    def conflict_skip_clause(self) -> str:
        if not self.supports_upsert_skip:
            raise NotImplementedError(f"{self.name} cannot skip conflicting rows")
        return "ON CONFLICT DO NOTHING"


# SQLite binds "?NNN" to the NNNth parameter; 999 is the historical limit.
SQLITE_DIALECT = Dialect(name="sqlite", placeholder_prefix="?", max_parameters=999)
POSTGRES_DIALECT = Dialect(name="postgresql", placeholder_prefix="$", max_parameters=32767)


class DatabaseConnection(ABC):
    """Abstract base class for database connections."""

    @abstractmethod
    async def execute(self, query: str, *args) -> Any:
        """Execute a query and return the result."""
        pass

    @abstractmethod
    async def fetchone(self, query: str, *args) -> Optional[Tuple]:
        """Fetch one row from a query."""
        pass

    @abstractmethod
    async def fetchall(self, query: str, *args) -> List[Tuple]:
        """Fetch all rows from a query."""
        pass

    async def fetchval(self, query: str, *args) -> Any:
        """Fetch the first column of the first row, or None."""
        row = await self.fetchone(query, *args)
        return row[0] if row is not None else None


class SQLiteConnection(DatabaseConnection):
    """SQLite connection wrapper around a shared aiosqlite connection."""

    def __init__(self, conn: aiosqlite.Connection):
        self.conn = conn

    async def execute(self, query: str, *args) -> aiosqlite.Cursor:
        return await self.conn.execute(query, args)

    async def fetchone(self, query: str, *args) -> Optional[Tuple]:
        async with self.conn.execute(query, args) as cursor:
            return await cursor.fetchone()

    async def fetchall(self, query: str, *args) -> List[Tuple]:
        async with self.conn.execute(query, args) as cursor:
            return list(await cursor.fetchall())


class PostgreSQLConnection(DatabaseConnection):
    """Wrapper for a pooled asyncpg connection to match our interface."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def execute(self, query: str, *args) -> str:
        return await self.conn.execute(query, *args)

    async def fetchone(self, query: str, *args) -> Optional[Tuple]:
        row = await self.conn.fetchrow(query, *args)
        return tuple(row) if row is not None else None

    async def fetchall(self, query: str, *args) -> List[Tuple]:
        return [tuple(row) for row in await self.conn.fetch(query, *args)]

    async def fetchval(self, query: str, *args) -> Any:
        return await self.conn.fetchval(query, *args)


class Database(ABC):
    """A database shared by every caller of a store.

    ``acquire()`` hands out a connection for a few statements;
    ``transaction()`` does the same inside a transaction that commits on
    success and rolls back when the block raises.
    """

    dialect: Dialect

    @abstractmethod
    async def open(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass

    @abstractmethod
    def acquire(self) -> 'AsyncIterator[DatabaseConnection]':
        pass

    @abstractmethod
    def transaction(self) -> 'AsyncIterator[DatabaseConnection]':
        pass

    @abstractmethod
    def is_unique_violation(self, exc: BaseException) -> bool:
        """True if ``exc`` is the driver's unique/primary key violation."""
        pass


class SQLiteDatabase(Database):
    """One aiosqlite connection shared by all tasks, handed out one at a time."""

    def __init__(self, db_path: str, dialect: Dialect = SQLITE_DIALECT):
        self.db_path = db_path
        self.dialect = dialect
        self.conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self.conn is not None

    async def open(self) -> None:
        if self.conn is not None:
            return
        if self.db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        # Autocommit; transaction() issues BEGIN/COMMIT explicitly.
        self.conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        await self._optimize_connection()
        logger.info("Opened SQLite database at %s", self.db_path)

    async def _optimize_connection(self):
        """Apply SQLite performance optimizations and enforce foreign keys."""
        await self.conn.execute("PRAGMA journal_mode=WAL")
        await self.conn.execute("PRAGMA synchronous=NORMAL")
        await self.conn.execute("PRAGMA cache_size=10000")
        await self.conn.execute("PRAGMA temp_store=MEMORY")
        await self.conn.execute("PRAGMA foreign_keys=ON")

    async def close(self) -> None:
        if self.conn is not None:
            async with self._lock:
                await self.conn.close()
                self.conn = None
            logger.info("Closed SQLite database at %s", self.db_path)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[DatabaseConnection]:
        if self.conn is None:
            raise RuntimeError("Connection not established")
        async with self._lock:
            yield SQLiteConnection(self.conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[DatabaseConnection]:
        async with self.acquire() as conn:
            try:
                await conn.execute("BEGIN")
                yield conn
                await conn.execute("COMMIT")
            except BaseException:
                await self._settle()
                raise

    async def _settle(self) -> None:
        """Roll back any transaction left open before the connection is released.

        A cancelled await does not withdraw a statement already queued on the
        aiosqlite worker, so BEGIN or COMMIT may still run afterwards. The
        worker runs requests in order and sqlite3 skips a rollback when no
        transaction is open, so one queued rollback settles either case. It is
        shielded from further cancellation.
        """
        rollback = asyncio.ensure_future(self.conn.rollback())
        cancelled = False
        while not rollback.done():
            try:
                await asyncio.shield(rollback)
            except asyncio.CancelledError:
                cancelled = True
        rollback.result()
        if cancelled:
            raise asyncio.CancelledError()

    def is_unique_violation(self, exc: BaseException) -> bool:
        if not isinstance(exc, sqlite3.IntegrityError):
            return False
        errorname = getattr(exc, "sqlite_errorname", "")
        if errorname in ("SQLITE_CONSTRAINT_PRIMARYKEY", "SQLITE_CONSTRAINT_UNIQUE"):
            return True
        return "UNIQUE constraint failed" in str(exc)


class PostgreSQLDatabase(Database):
    """asyncpg pool; the pool size bounds concurrent I/O."""

    def __init__(self, config: DatabaseConfig, dialect: Dialect = POSTGRES_DIALECT):
        self.config = config
        self.dialect = dialect
        self.pool: Optional[asyncpg.Pool] = None

    @property
    def is_open(self) -> bool:
        return self.pool is not None

    async def open(self) -> None:
        if self.pool is not None:
            return
        connect_kwargs = dict(
            min_size=1,
            max_size=self.config.postgres_pool_size,
            max_queries=self.config.postgres_max_queries,
            max_inactive_connection_lifetime=self.config.postgres_max_inactive_connection_lifetime,
            server_settings={"search_path": self.config.postgres_schema},
        )
        if self.config.postgres_dsn:
            self.pool = await asyncpg.create_pool(dsn=self.config.postgres_dsn, **connect_kwargs)
        else:
            self.pool = await asyncpg.create_pool(
                host=self.config.postgres_host,
                port=self.config.postgres_port,
                database=self.config.postgres_database,
                user=self.config.postgres_user,
                password=self.config.postgres_password,
                **connect_kwargs,
            )
        logger.info("Opened PostgreSQL pool (max_size=%d, schema=%s)",
                    self.config.postgres_pool_size, self.config.postgres_schema)

    async def close(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            logger.info("Closed PostgreSQL pool")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[DatabaseConnection]:
        if self.pool is None:
            raise RuntimeError("PostgreSQL pool not initialized")
        async with self.pool.acquire() as conn:
            yield PostgreSQLConnection(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[DatabaseConnection]:
        async with self.acquire() as conn:
            async with conn.conn.transaction():
                yield conn

    def is_unique_violation(self, exc: BaseException) -> bool:
        return isinstance(exc, asyncpg.exceptions.UniqueViolationError)


class DatabaseFactory:
    """Factory for creating databases from configuration."""

    @staticmethod
    def create(config: DatabaseConfig) -> Database:
        if config.backend == "sqlite":
            return SQLiteDatabase(config.sqlite_path)
        elif config.backend == "postgresql":
            return PostgreSQLDatabase(config)
        else:
            raise ValueError(f"Unsupported database backend: {config.backend}")


async def execute_script(db: Database, statements: Sequence[str]) -> None:
    """Run ``statements`` in order inside one transaction."""
    async with db.transaction() as conn:
        for statement in statements:
            await conn.execute(statement)
