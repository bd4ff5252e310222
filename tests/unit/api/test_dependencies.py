"""Tests for the request-scoped API dependencies."""

from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from melodia.api.dependencies import (
    get_album_service,
    get_app_settings,
    get_current_user_id,
    get_database,
    get_db_session,
    get_likes_repository,
    get_song_service,
)
from melodia.application.services import AlbumService, SongService
from melodia.domain.exceptions import AuthenticationError
from melodia.infrastructure.persistence.repositories import UserLikesRepository


def _request(**state: object) -> MagicMock:
    request = MagicMock()
    request.app.state = SimpleNamespace(**state)
    return request


class TestGetDatabase:
    def test_returns_database_from_state(self) -> None:
        db = object()
        assert get_database(_request(db=db)) is db

    def test_missing_database_is_503(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            get_database(_request())
        assert exc_info.value.status_code == 503


class TestGetDbSession:
    """get_db_session yields the session of one session_scope."""

    @pytest.mark.asyncio
    async def test_yields_scope_session(self) -> None:
        session = AsyncMock()
        db = MagicMock()

        @asynccontextmanager
        async def scope():
            yield session

        db.session_scope = scope

        generator = get_db_session(db)
        assert await generator.__anext__() is session
        with pytest.raises(StopAsyncIteration):
            await generator.__anext__()


class TestGetCurrentUserId:
    def test_header_value_is_stripped(self) -> None:
        assert get_current_user_id("  user-1 ") == "user-1"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_header(self, value) -> None:
        with pytest.raises(AuthenticationError) as exc_info:
            get_current_user_id(value)
        assert exc_info.value.status_code == 401
        assert "X-User-ID" in exc_info.value.message


class TestProviders:
    """Service and repository providers wrap the injected session."""

    def test_services(self) -> None:
        session = AsyncMock()
        assert isinstance(get_song_service(session), SongService)
        assert isinstance(get_album_service(session), AlbumService)

    def test_repository(self) -> None:
        session = AsyncMock()
        repo = get_likes_repository(session)
        assert isinstance(repo, UserLikesRepository)
        assert repo.session is session

    def test_app_settings_from_state(self) -> None:
        settings = object()
        assert get_app_settings(_request(settings=settings)) is settings
