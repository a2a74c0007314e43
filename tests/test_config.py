import pytest
from src.crawlstore.config import StoreConfig, EndpointPolicy, get_store_config, validate_identifier

class TestStoreConfig:
    def test_defaults(self, clean_env):
        config = get_store_config()
        assert config.backend == "sqlite"
        assert config.sqlite_path.endswith("crawlstore.db")
        assert config.page_table == "pages"
        assert config.link_table == "links"
        assert config.endpoint_policy is EndpointPolicy.BEST_EFFORT
        assert config.query_timeout is None
        assert config.create_schema is True

    def test_environment(self, clean_env):
        clean_env.setenv("CRAWLSTORE_PAGE_TABLE", "crawl_pages")
        clean_env.setenv("CRAWLSTORE_LINK_TABLE", "crawl_links")
        clean_env.setenv("CRAWLSTORE_ENDPOINT_POLICY", "FAIL_FAST")
        clean_env.setenv("CRAWLSTORE_QUERY_TIMEOUT", "2.5")
        clean_env.setenv("CRAWLSTORE_CREATE_SCHEMA", "0")
        config = get_store_config()
        assert config.page_table == "crawl_pages"
        assert config.link_table == "crawl_links"
        assert config.endpoint_policy is EndpointPolicy.FAIL_FAST
        assert config.query_timeout == 2.5
        assert config.create_schema is False

    def test_overrides_win(self, clean_env):
        clean_env.setenv("CRAWLSTORE_PAGE_TABLE", "from_env")
        assert get_store_config(page_table="explicit").page_table == "explicit"

    def test_postgres_url(self, clean_env):
        clean_env.setenv("CRAWLSTORE_DATABASE_URL", "postgresql://bot:secret@db:5432/crawl")
        config = get_store_config()
        assert config.backend == "postgresql"
        db_config = config.to_database_config()
        assert db_config.backend == "postgresql"
        assert db_config.postgres_dsn == "postgresql://bot:secret@db:5432/crawl"

    def test_postgres_parts(self, clean_env):
        clean_env.setenv("CRAWLSTORE_DB_BACKEND", "postgresql")
        clean_env.setenv("CRAWLSTORE_POSTGRES_HOST", "db.internal")
        clean_env.setenv("CRAWLSTORE_POSTGRES_PORT", "6543")
        db_config = get_store_config().to_database_config()
        assert db_config.postgres_dsn == ""
        assert db_config.postgres_host == "db.internal"
        assert db_config.postgres_port == 6543

    @pytest.mark.parametrize("url, path", [
        ("sqlite:///crawl.db", "crawl.db"),
        ("sqlite:////var/lib/crawl.db", "/var/lib/crawl.db"),
        ("sqlite://:memory:", ":memory:"),
    ])
    def test_sqlite_url(self, url, path):
        config = StoreConfig(database_url=url)
        assert config.backend == "sqlite"
        assert config.sqlite_path == path

    def test_unknown_url_scheme(self):
        with pytest.raises(ValueError):
            StoreConfig(database_url="mysql://localhost/crawl")

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            StoreConfig(backend="oracle")

    @pytest.mark.parametrize("name", ["pages; DROP TABLE x", "1pages", "crawl.pages", ""])
    def test_invalid_table_names(self, name):
        with pytest.raises(ValueError):
            StoreConfig(page_table=name)

    def test_tables_must_differ(self):
        with pytest.raises(ValueError):
            StoreConfig(page_table="nodes", link_table="NODES")

    def test_validate_identifier(self):
        assert validate_identifier("crawl_pages_2") == "crawl_pages_2"

    def test_non_positive_timeout_disabled(self):
        assert StoreConfig(query_timeout=0).query_timeout is None
