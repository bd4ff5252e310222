"""Unit tests for environment-driven settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from melodia.config import DatabaseSettings, Settings, get_settings
from melodia.domain.exceptions import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> pytest.MonkeyPatch:
    """No stray DATABASE_*/API_* variables and no .env file in the working directory."""
    monkeypatch.chdir(tmp_path)
    for name in ("DATABASE_URL", "LOG_LEVEL", "API_PORT", "ENVIRONMENT", "LOG_JSON_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    return monkeypatch


class TestGetSettings:
    """get_settings() loads once and fails fast."""

    def test_missing_database_url_is_configuration_error(self, clean_env) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            get_settings()
        assert "url" in exc_info.value.message

    def test_reads_nested_groups_from_env(self, clean_env) -> None:
        clean_env.setenv("DATABASE_URL", "sqlite+aiosqlite:///./data/melodia.db")
        clean_env.setenv("API_PORT", "9000")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("LOG_JSON_FORMAT", "true")

        settings = get_settings()

        assert settings.database.url == "sqlite+aiosqlite:///./data/melodia.db"
        assert settings.api.port == 9000
        assert settings.log_level == "DEBUG"
        assert settings.observability.log_json_format is True

    def test_cached(self, clean_env) -> None:
        clean_env.setenv("DATABASE_URL", "sqlite+aiosqlite:///x.db")
        assert get_settings() is get_settings()

    def test_env_file_is_read(self, clean_env, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("DATABASE_URL=sqlite+aiosqlite:///from-env-file.db\n")
        assert get_settings().database.url == "sqlite+aiosqlite:///from-env-file.db"


class TestValidation:
    def test_unknown_log_level(self) -> None:
        with pytest.raises(ValidationError):
            Settings(database=DatabaseSettings(url="sqlite+aiosqlite:///x.db"), log_level="LOUD")

    def test_blank_database_url(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseSettings(url="   ")

    def test_pool_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseSettings(url="postgresql+asyncpg://db/melodia", pool_size=0)


class TestSqlitePath:
    """Settings._get_sqlite_db_path()."""

    def _settings(self, url: str) -> Settings:
        return Settings(database=DatabaseSettings(url=url))

    def test_file_path(self) -> None:
        path = self._settings("sqlite+aiosqlite:///./data/melodia.db")._get_sqlite_db_path()
        assert path == Path("./data/melodia.db")

    def test_memory_database(self) -> None:
        assert self._settings("sqlite+aiosqlite:///:memory:")._get_sqlite_db_path() is None

    def test_postgres(self) -> None:
        settings = self._settings("postgresql+asyncpg://user@db/melodia")
        assert settings.database.is_sqlite is False
        assert settings._get_sqlite_db_path() is None
