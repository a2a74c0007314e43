import pytest
from src.crawlstore.hashing import page_key, link_key, KEY_LENGTH

class TestHashing:
    def test_page_key_is_deterministic(self):
        url = "https://example.com/docs/index.html?lang=en"
        assert page_key(url) == page_key(url)
        # Known digest, stable across processes
        assert page_key("https://example.com/") == (
            "0f115db062b7c0dd030b16878c99dea5c354b49dc37b38eb8846179c7783e9d7"
        )

    def test_key_shape(self):
        key = page_key("https://example.com/")
        assert len(key) == KEY_LENGTH
        assert all(c in "0123456789abcdef" for c in key)

    def test_same_canonical_url_same_key(self):
        assert page_key("HTTPS://Example.COM") == page_key("https://example.com/")
        assert page_key("https://example.com:443/a#top") == page_key("https://example.com/a")

    def test_different_urls_different_keys(self):
        urls = [
            "https://example.com/",
            "https://example.com/a",
            "https://example.com/a?x=1",
            "http://example.com/",
            "https://example.org/",
        ]
        assert len({page_key(u) for u in urls}) == len(urls)

    def test_link_key(self):
        a, b = "https://example.com/a", "https://example.com/b"
        assert link_key(a, b) == (page_key(a), page_key(b))
        assert link_key(a, b) != link_key(b, a)

    def test_relative_url_rejected(self):
        with pytest.raises(ValueError):
            page_key("/just/a/path")
