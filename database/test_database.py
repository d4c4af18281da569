"""Tests for database configuration and schema."""

import pytest
from sqlalchemy import inspect

from config.settings import Settings
from database import connection
from database.connection import create_engine_for_url, init_db


class TestDatabaseUrl:
    """Test URL normalization."""

    @pytest.mark.parametrize("url", ["postgres://bot:pw@db:5432/homework", "postgresql://bot:pw@db:5432/homework"])
    def test_postgres_uses_asyncpg(self, monkeypatch, url):
        """Test switching postgres URLs to asyncpg."""
        monkeypatch.setattr(connection, "get_settings", lambda: Settings(database_url=url))
        assert connection.get_database_url() == "postgresql+asyncpg://bot:pw@db:5432/homework"

    def test_sqlite_untouched(self, monkeypatch):
        """Test leaving sqlite URLs alone."""
        monkeypatch.setattr(connection, "get_settings", lambda: Settings(database_url="sqlite+aiosqlite:///./x.db"))
        assert connection.get_database_url() == "sqlite+aiosqlite:///./x.db"

    def test_store_timeout_must_be_positive(self):
        """Test rejecting a non-positive store timeout."""
        with pytest.raises(ValueError):
            Settings(store_timeout_seconds=0)

    def test_settings_hold_storage_only(self, monkeypatch):
        """Test that unrelated environment variables are ignored."""
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "true")
        settings = Settings(_env_file=None)
        assert set(Settings.model_fields) == {
            "database_url",
            "database_pool_size",
            "database_max_overflow",
            "sql_echo",
            "store_timeout_seconds",
        }
        assert not hasattr(settings, "environment")


class TestSchema:
    """Test table creation."""

    @pytest.mark.asyncio
    async def test_init_db_creates_tables(self, tmp_path):
        """Test creating the tables."""
        engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'schema.db'}")
        try:
            await init_db(engine)
            await init_db(engine)

            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
            assert set(tables) == {"users", "schedule_days", "subjects", "submissions", "contacts"}
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_check_db_connection(self, monkeypatch, engine):
        """Test the connection check."""
        monkeypatch.setattr(connection, "_engine", engine)
        assert await connection.check_db_connection() is True
