"""Shared pytest fixtures.

Hey future me - every test gets its OWN SQLite file under tmp_path. In-memory
SQLite gives each pooled connection a fresh empty database, which breaks as soon
as the engine opens a second connection. A file avoids that and is still fast.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from melodia.config import DatabaseSettings, Settings, get_settings
from melodia.infrastructure.persistence import Database
from melodia.infrastructure.persistence.models import (
    AlbumModel,
    ArtistModel,
    SongModel,
    UserModel,
)
from melodia.infrastructure.persistence.repositories import (
    AlbumRepository,
    ArtistRepository,
    SongRepository,
    UserRepository,
)
from melodia.main import create_app


def make_settings(db_path: Path, **overrides: Any) -> Settings:
    return Settings(
        environment="test",
        log_level="WARNING",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{db_path}"),
        **overrides,
    )


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path / "melodia-test.db")


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """One session per test, rolled back at the end.

    Tests that provoke a failed flush (duplicate isrc, dangling FK) leave the
    transaction unusable, so committing on teardown is not an option.
    """
    factory = async_sessionmaker(database.engine, expire_on_commit=False)
    async with factory() as s:
        yield s


# ------------------------------------------------------------------ factories


@pytest.fixture
def make_user(session: AsyncSession) -> Callable[..., Awaitable[UserModel]]:
    counter = {"n": 0}

    async def _make(**overrides: Any) -> UserModel:
        counter["n"] += 1
        n = counter["n"]
        data = {"username": f"listener{n}", "email": f"listener{n}@example.com", **overrides}
        return await UserRepository(session).create(data)

    return _make


@pytest.fixture
def make_album(session: AsyncSession) -> Callable[..., Awaitable[AlbumModel]]:
    async def _make(**overrides: Any) -> AlbumModel:
        data = {"title": "Test Album", "album_type": "album", **overrides}
        return await AlbumRepository(session).create(data)

    return _make


@pytest.fixture
def make_artist(session: AsyncSession) -> Callable[..., Awaitable[ArtistModel]]:
    counter = {"n": 0}

    async def _make(**overrides: Any) -> ArtistModel:
        counter["n"] += 1
        return await ArtistRepository(session).create(
            {"name": f"Artist {counter['n']}", **overrides}
        )

    return _make


@pytest.fixture
def make_song(
    session: AsyncSession, make_album: Callable[..., Awaitable[AlbumModel]]
) -> Callable[..., Awaitable[SongModel]]:
    async def _make(album_id: str | None = None, **overrides: Any) -> SongModel:
        if album_id is None:
            album_id = (await make_album()).id
        data = {"title": "Test Song", "album_id": album_id, "duration_seconds": 180, **overrides}
        return await SongRepository(session).create(data)

    return _make


# ------------------------------------------------------------------ API


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    """TestClient running the real lifespan against a fresh SQLite file."""
    app = create_app(make_settings(tmp_path / "api-test.db", create_tables_on_startup=True))
    with TestClient(app) as test_client:
        yield test_client
