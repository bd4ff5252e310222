"""Dependency injection for API endpoints."""

import logging
from collections.abc import AsyncGenerator
from typing import cast

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from melodia.application.services import AlbumService, ArtistService, SongService
from melodia.config import Settings, get_settings
from melodia.domain.exceptions import AuthenticationError
from melodia.infrastructure.persistence.database import Database
from melodia.infrastructure.persistence.repositories import (
    ListeningHistoryRepository,
    PlaylistRepository,
    UserFollowsRepository,
    UserLibraryRepository,
    UserLikesRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-ID"


def get_database(request: Request) -> Database:
    """Database created by the lifespan; 503 when startup has not finished."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return cast(Database, db)


# Hey future me - ONE session per request, and it IS the unit of work. session_scope()
# commits when the endpoint returns and rolls back when it raises, so a like row and the
# song's like_count either both land or neither does. Repositories never commit themselves.
async def get_db_session(
    db: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a transactional session for the current request."""
    async with db.session_scope() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    """Settings the app was built with (falls back to the environment)."""
    return cast(Settings, getattr(request.app.state, "settings", None) or get_settings())


def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
) -> str:
    """Caller identity from the ``X-User-ID`` header.

    Raises:
        AuthenticationError: If the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError(f"Missing {USER_ID_HEADER} header")
    return x_user_id.strip()


def get_song_service(session: AsyncSession = Depends(get_db_session)) -> SongService:
    return SongService(session)


def get_album_service(session: AsyncSession = Depends(get_db_session)) -> AlbumService:
    return AlbumService(session)


def get_artist_service(session: AsyncSession = Depends(get_db_session)) -> ArtistService:
    return ArtistService(session)


def get_playlist_repository(
    session: AsyncSession = Depends(get_db_session),
) -> PlaylistRepository:
    """Get playlist repository instance."""
    return PlaylistRepository(session)


def get_user_repository(session: AsyncSession = Depends(get_db_session)) -> UserRepository:
    return UserRepository(session)


def get_likes_repository(
    session: AsyncSession = Depends(get_db_session),
) -> UserLikesRepository:
    return UserLikesRepository(session)


def get_follows_repository(
    session: AsyncSession = Depends(get_db_session),
) -> UserFollowsRepository:
    return UserFollowsRepository(session)


def get_library_repository(
    session: AsyncSession = Depends(get_db_session),
) -> UserLibraryRepository:
    return UserLibraryRepository(session)


def get_history_repository(
    session: AsyncSession = Depends(get_db_session),
) -> ListeningHistoryRepository:
    return ListeningHistoryRepository(session)
