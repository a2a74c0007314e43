"""
Content addresses for pages and links.
"""

import hashlib
from typing import Tuple

from .urls import canonical_url

KEY_LENGTH = 64  # hex characters of a SHA-256 digest


def page_key(url: str) -> str:
    """
    Content address of a page: SHA256 of its canonical URL.

    Two spellings of the same canonical URL share a key, so the key is stable
    across calls and process restarts.

    Args:
        url: Absolute URL

    Returns:
        64 character lowercase hex digest
    """
    return hashlib.sha256(canonical_url(url).encode('utf-8')).hexdigest()


def link_key(from_url: str, to_url: str) -> Tuple[str, str]:
    """Identity of a directed link: the keys of its two endpoints."""
    return page_key(from_url), page_key(to_url)
