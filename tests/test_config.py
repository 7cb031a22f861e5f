from grocery.config import DatabaseSettings, Environment, Settings


def test_database_url_from_environment(monkeypatch):
    monkeypatch.setenv("DB_URL", "postgresql+asyncpg://shop:secret@db:5432/prices")

    assert Settings().db.url == "postgresql+asyncpg://shop:secret@db:5432/prices"


def test_nested_database_values_are_kept():
    config = Settings(db={"url": "postgresql+asyncpg://localhost/other", "pool_size": 2})

    assert isinstance(config.db, DatabaseSettings)
    assert config.db.url == "postgresql+asyncpg://localhost/other"
    assert config.db.pool_size == 2


def test_environment_from_env(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")

    assert Settings().environment is Environment.PRODUCTION
