from __future__ import annotations
import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

DATA_DIR = os.getenv("CRAWLSTORE_DATA", os.path.abspath("./data"))

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _get_env_var(name: str, default: str = None):
    """Get a CRAWLSTORE_ environment variable, treating empty strings as unset."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _env_bool(name: str, default: str) -> bool:
    return _get_env_var(name, default).lower() in ("1", "true", "yes", "on")


def _env_timeout(name: str) -> Optional[float]:
    raw = _get_env_var(name, "0")
    value = float(raw)
    return value if value > 0 else None


class EndpointPolicy(Enum):
    """What add_link does when ensuring an endpoint page fails."""
    BEST_EFFORT = "best_effort"  # log and still insert the link
    FAIL_FAST = "fail_fast"      # abort the link insert


def validate_identifier(name: str) -> str:
    """Return ``name`` if it is a plain SQL identifier, else raise ValueError.

    Table names are interpolated into statements, so only letters, digits and
    underscores are accepted.
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


@dataclass
class StoreConfig:
    """Configuration for a CrawlStore.

    ``database_url`` wins over ``backend`` when set: ``postgres://`` and
    ``postgresql://`` select PostgreSQL, ``sqlite:///path`` selects SQLite.
    """
    database_url: str = ""
    backend: str = "sqlite"  # "sqlite" or "postgresql"

    # SQLite configuration
    sqlite_path: str = ""

    # PostgreSQL configuration
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "crawler_db"
    postgres_user: str = "crawler_user"
    postgres_password: str = ""
    postgres_schema: str = "public"
    postgres_pool_size: int = 10

    # Store layout and behaviour
    page_table: str = "pages"
    link_table: str = "links"
    endpoint_policy: EndpointPolicy = EndpointPolicy.BEST_EFFORT
    query_timeout: Optional[float] = None
    create_schema: bool = True

    def __post_init__(self):
        if self.database_url:
            self.backend, path = _backend_from_url(self.database_url)
            if self.backend == "sqlite":
                self.sqlite_path = path
        self.backend = (self.backend or "sqlite").lower()
        if self.backend not in ("sqlite", "postgresql"):
            raise ValueError(f"Unsupported database backend: {self.backend}")
        if self.backend == "sqlite" and not self.sqlite_path:
            self.sqlite_path = os.path.join(DATA_DIR, "crawlstore.db")
        if not isinstance(self.endpoint_policy, EndpointPolicy):
            self.endpoint_policy = EndpointPolicy(str(self.endpoint_policy).lower())
        validate_identifier(self.page_table)
        validate_identifier(self.link_table)
        if self.page_table.lower() == self.link_table.lower():
            raise ValueError("page_table and link_table must be different tables")
        if self.query_timeout is not None and self.query_timeout <= 0:
            self.query_timeout = None

    def to_database_config(self) -> 'DatabaseConfig':
        from .database import DatabaseConfig

        return DatabaseConfig(
            backend=self.backend,
            sqlite_path=self.sqlite_path,
            postgres_dsn=self.database_url if self.backend == "postgresql" else "",
            postgres_host=self.postgres_host,
            postgres_port=self.postgres_port,
            postgres_database=self.postgres_database,
            postgres_user=self.postgres_user,
            postgres_password=self.postgres_password,
            postgres_schema=self.postgres_schema,
            postgres_pool_size=self.postgres_pool_size,
        )


def _backend_from_url(url: str) -> tuple[str, str]:
    """Map a connection string to (backend, sqlite path)."""
    scheme = url.split("://", 1)[0].lower() if "://" in url else ""
    if scheme in ("postgres", "postgresql"):
        return "postgresql", ""
    if scheme == "sqlite":
        rest = url.split("://", 1)[1]
        if rest in (":memory:", "/:memory:"):
            return "sqlite", ":memory:"
        # sqlite:///relative.db -> relative.db, sqlite:////abs/path.db -> /abs/path.db
        path = urlparse(url).path
        return "sqlite", path[1:] if path.startswith("/") else path
    raise ValueError(f"Unsupported database URL scheme: {url.split('://', 1)[0]!r}")


def get_store_config(**overrides) -> StoreConfig:
    """Build a StoreConfig from the environment, then apply keyword overrides.

    Reads environment variables at call time so tests and embedding
    applications can change them before constructing a store.
    """
    values = dict(
        database_url=_get_env_var("CRAWLSTORE_DATABASE_URL", ""),
        backend=_get_env_var("CRAWLSTORE_DB_BACKEND", "sqlite"),
        sqlite_path=_get_env_var("CRAWLSTORE_SQLITE_PATH", ""),
        postgres_host=_get_env_var("CRAWLSTORE_POSTGRES_HOST", "localhost"),
        postgres_port=int(_get_env_var("CRAWLSTORE_POSTGRES_PORT", "5432")),
        postgres_database=_get_env_var("CRAWLSTORE_POSTGRES_DB", "crawler_db"),
        postgres_user=_get_env_var("CRAWLSTORE_POSTGRES_USER", "crawler_user"),
        postgres_password=_get_env_var("CRAWLSTORE_POSTGRES_PASSWORD", ""),
        postgres_schema=_get_env_var("CRAWLSTORE_POSTGRES_SCHEMA", "public"),
        postgres_pool_size=int(_get_env_var("CRAWLSTORE_POSTGRES_POOL_SIZE", "10")),
        page_table=_get_env_var("CRAWLSTORE_PAGE_TABLE", "pages"),
        link_table=_get_env_var("CRAWLSTORE_LINK_TABLE", "links"),
        endpoint_policy=_get_env_var("CRAWLSTORE_ENDPOINT_POLICY", "best_effort"),
        query_timeout=_env_timeout("CRAWLSTORE_QUERY_TIMEOUT"),
        create_schema=_env_bool("CRAWLSTORE_CREATE_SCHEMA", "1"),
    )
    values.update(overrides)
    return StoreConfig(**values)
