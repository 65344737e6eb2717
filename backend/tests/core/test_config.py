"""Settings — environment overrides and database URL normalization."""

from gateway.config import Settings


def test_plain_postgres_url_gets_asyncpg_driver():
    settings = Settings(database_url="postgresql://u:p@host:5432/db")
    assert settings.database_url == "postgresql+asyncpg://u:p@host:5432/db"


def test_non_postgres_url_untouched():
    settings = Settings(database_url="sqlite+aiosqlite:///:memory:")
    assert settings.database_url == "sqlite+aiosqlite:///:memory:"


def test_completion_timeout_from_env(monkeypatch):
    monkeypatch.setenv("COMPLETION_TIMEOUT_SECONDS", "2.5")
    assert Settings().completion_timeout_seconds == 2.5
