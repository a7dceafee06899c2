import pytest

from task_api.config import Settings, normalize_database_url, parse_origins
from task_api.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DATABASE_URL", "PORT", "HOST", "ALLOWED_ORIGINS", "LOG_LEVEL",
                 "DB_CONNECT_RETRIES", "DB_RETRY_DELAY", "DB_ECHO"):
        # setenv first so the removal is undone after the test
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_missing_database_url_is_an_error():
    with pytest.raises(ConfigError):
        Settings.from_env()


def test_defaults(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///tasks.sqlite3")
    settings = Settings.from_env()
    assert settings.port == 5000
    assert settings.host == "0.0.0.0"
    assert settings.allowed_origins == ["*"]
    assert settings.log_level == "INFO"
    assert settings.db_connect_retries == 3
    assert settings.db_echo is False


def test_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/tasks")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://localhost:3000, https://example.com")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("DB_ECHO", "true")
    settings = Settings.from_env()
    assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/tasks"
    assert settings.port == 8080
    assert settings.allowed_origins == ["http://localhost:3000", "https://example.com"]
    assert settings.log_level == "DEBUG"
    assert settings.db_echo is True


def test_bad_port(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///tasks.sqlite3")
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ConfigError):
        Settings.from_env()


def test_dotenv_file_is_loaded(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("DATABASE_URL=sqlite+aiosqlite:///from-dotenv.sqlite3\n")
    settings = Settings.from_env(str(env_file))
    assert settings.database_url == "sqlite+aiosqlite:///from-dotenv.sqlite3"


def test_normalize_database_url():
    assert normalize_database_url("postgres://h/db") == "postgresql+asyncpg://h/db"
    assert normalize_database_url("postgresql+asyncpg://h/db") == "postgresql+asyncpg://h/db"
    assert normalize_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


def test_parse_origins():
    assert parse_origins("*") == ["*"]
    assert parse_origins("a, b,,c") == ["a", "b", "c"]
