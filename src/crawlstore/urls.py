from __future__ import annotations
from urllib.parse import urlsplit, urlunsplit, quote
import idna
from functools import lru_cache

# ------------------ URL helpers ------------------

DEFAULT_PORTS = {'http': 80, 'https': 443, 'ftp': 21, 'ftps': 990}

# Characters left alone when escaping a path: RFC 3986 pchar plus "/" and "%",
# so already-escaped sequences survive unchanged.
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"


@lru_cache(maxsize=10000)
def canonical_url(url: str) -> str:
    """
    Canonical string form of an absolute URL, used for page identity:
    - Lowercase scheme and host (punycode for international hosts)
    - Default port stripping
    - Percent-escaped path, "/" when empty and a host is present
    - Fragment stripped (fragments don't change the page)

    The query string is kept as given. Schemes without an authority
    (mailto:, tel:, data:) and file:/// URLs have an empty host; web schemes
    still require one.

    Cached with LRU cache (10,000 entries) for performance.
    """
    parsed = urlsplit(url.strip())
    scheme = parsed.scheme.lower()
    host = parsed.hostname or ""
    if not scheme or (not host and scheme in DEFAULT_PORTS):
        raise ValueError(f"Absolute URL required: {url!r}")

    netloc = ""
    if host:
        if not host.isascii():
            try:
                host = idna.encode(host, uts46=True).decode('ascii')
            except (idna.IDNAError, UnicodeError):
                # Keep the lowercased unicode host if punycode conversion fails
                pass
        if ':' in host:
            host = f"[{host}]"  # IPv6 literal

        netloc = host
        port = parsed.port
        if port is not None and port != DEFAULT_PORTS.get(scheme):
            netloc = f"{host}:{port}"
        if parsed.username is not None:
            userinfo = parsed.username
            if parsed.password is not None:
                userinfo += f":{parsed.password}"
            netloc = f"{userinfo}@{netloc}"

    path = quote(parsed.path, safe=_PATH_SAFE)
    if host and not path:
        path = "/"

    return urlunsplit((scheme, netloc, path, parsed.query, ""))


def url_host(url: str) -> str:
    """Hostname of the canonical URL, without port or brackets."""
    return urlsplit(canonical_url(url)).hostname or ""


def escaped_path(url: str) -> str:
    """Escaped path component of the canonical URL."""
    return urlsplit(canonical_url(url)).path
