"""
Errors raised by the crawl store.

Driver errors (connection failures, SQL errors, foreign key violations) are not
wrapped; they reach the caller unchanged.
"""


class StorageError(Exception):
    """Base class for errors raised by crawlstore itself."""


class StoreNotInitializedError(StorageError):
    """The store was used before init() or after close()."""


class DuplicateKeyError(StorageError):
    """An insert hit an existing primary key.

    Raised when two writers both saw a key as missing and the other one
    inserted first. The row exists, so callers can treat this like a no-op.
    """

    def __init__(self, table: str, key):
        self.table = table
        self.key = key
        super().__init__(f"{table}: key {key!r} already exists")


class EndpointPageError(StorageError):
    """An endpoint page could not be recorded while adding a link (fail-fast policy)."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"could not record endpoint page {url}")
