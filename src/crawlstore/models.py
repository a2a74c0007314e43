from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .hashing import page_key
from .urls import canonical_url, escaped_path, url_host


@dataclass(frozen=True)
class Page:
    """A crawled URL. Only ``url`` is given; everything else derives from it."""
    url: str
    key: str = field(init=False, compare=False)
    host: str = field(init=False, compare=False, repr=False)
    path: str = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        url = canonical_url(self.url)
        object.__setattr__(self, "url", url)
        object.__setattr__(self, "key", page_key(url))
        object.__setattr__(self, "host", url_host(url))
        object.__setattr__(self, "path", escaped_path(url))

    def as_row(self) -> Tuple[str, str, str, str]:
        return (self.key, self.host, self.path, self.url)


@dataclass(frozen=True)
class Link:
    """A directed, typed traversal between two pages.

    Two links with the same endpoints are the same link whatever their text
    or type.
    """
    from_url: str
    to_url: str
    text: Optional[str]
    link_type: str
    source: Page = field(init=False, repr=False, compare=False)
    target: Page = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.link_type is None:
            raise ValueError("link_type is required")
        source, target = Page(self.from_url), Page(self.to_url)
        object.__setattr__(self, "source", source)
        object.__setattr__(self, "target", target)
        object.__setattr__(self, "from_url", source.url)
        object.__setattr__(self, "to_url", target.url)

    @property
    def from_key(self) -> str:
        return self.source.key

    @property
    def to_key(self) -> str:
        return self.target.key

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source.key, self.target.key)

    def as_row(self) -> Tuple[str, str, Optional[str], str]:
        return (self.source.key, self.target.key, self.text, self.link_type)
