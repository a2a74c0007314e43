"""
Schema definitions for the page and link tables.

The same DDL works on SQLite and PostgreSQL. Table names are configurable, so
constraint and index names are derived from them to let several stores share
one database.
"""

import logging
from typing import List

from .config import validate_identifier
from .database import Database, execute_script

logger = logging.getLogger(__name__)

PAGE_COLUMNS = ("page_id", "host", "path", "url")
LINK_COLUMNS = ("from_page_id", "to_page_id", "text", "type")

PAGE_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS {page_table} (
    page_id TEXT NOT NULL PRIMARY KEY,
    host TEXT NOT NULL,
    path TEXT NOT NULL,
    url TEXT NOT NULL
)
"""

LINK_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS {link_table} (
    from_page_id TEXT NOT NULL,
    to_page_id TEXT NOT NULL,
    text TEXT,
    type TEXT NOT NULL,
    CONSTRAINT {link_table}_pkey PRIMARY KEY (from_page_id, to_page_id),
    CONSTRAINT {link_table}_from_fk FOREIGN KEY (from_page_id) REFERENCES {page_table} (page_id),
    CONSTRAINT {link_table}_to_fk FOREIGN KEY (to_page_id) REFERENCES {page_table} (page_id)
)
"""

# Reverse lookups ("who links here"); the primary key already covers from_page_id.
LINK_TARGET_INDEX = """
CREATE INDEX IF NOT EXISTS idx_{link_table}_to_page_id ON {link_table} (to_page_id)
"""


def get_schema_statements(page_table: str, link_table: str) -> List[str]:
    """Get the CREATE statements for both tables, pages first."""
    names = dict(page_table=validate_identifier(page_table),
                 link_table=validate_identifier(link_table))
    return [
        PAGE_TABLE_SCHEMA.format(**names).strip(),
        LINK_TABLE_SCHEMA.format(**names).strip(),
        LINK_TARGET_INDEX.format(**names).strip(),
    ]


async def ensure_schema(db: Database, page_table: str, link_table: str) -> None:
    """Create the tables if they do not exist yet. Safe to call on every start."""
    await execute_script(db, get_schema_statements(page_table, link_table))
    logger.info("Schema ready (pages=%s, links=%s)", page_table, link_table)
