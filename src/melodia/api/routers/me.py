"""Endpoints acting on the caller's own data.

Everything here is keyed by the ``X-User-ID`` header: likes, follows, saved
library items, listening history and preferences.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query

from melodia.api.dependencies import (
    get_current_user_id,
    get_follows_repository,
    get_history_repository,
    get_library_repository,
    get_likes_repository,
    get_user_repository,
)
from melodia.api.schemas import (
    AlbumResponse,
    ArtistResponse,
    AssociationResponse,
    HistoryEntryResponse,
    HistoryEventResponse,
    ListeningStatsResponse,
    PlaylistResponse,
    PreferencesResponse,
    PreferencesUpdate,
    SongResponse,
    StreaksResponse,
    ToggleResponse,
    TopSongResponse,
    UserResponse,
)
from melodia.domain.exceptions import EntityNotFoundException
from melodia.domain.value_objects import EntityKind
from melodia.infrastructure.persistence.repositories import (
    ListeningHistoryRepository,
    UserFollowsRepository,
    UserLibraryRepository,
    UserLikesRepository,
    UserRepository,
)
from melodia.infrastructure.persistence.repositories.associations import AssociationRepository

logger = logging.getLogger(__name__)

router = APIRouter()

_TARGET_SCHEMAS: dict[EntityKind, Any] = {
    EntityKind.SONG: SongResponse,
    EntityKind.ALBUM: AlbumResponse,
    EntityKind.ARTIST: ArtistResponse,
    EntityKind.PLAYLIST: PlaylistResponse,
    EntityKind.USER: UserResponse,
}


def _association(repo: AssociationRepository[Any], row: Any) -> AssociationResponse:
    # like/follow/library rows name their columns differently; the repo knows the prefix
    return AssociationResponse(
        id=row.id,
        kind=getattr(row, f"{repo.target_prefix}_type"),
        target_id=getattr(row, f"{repo.target_prefix}_id"),
        created_at=getattr(row, repo.created_column),
    )


async def _resolved(
    repo: AssociationRepository[Any], user_id: str, kind: str, limit: int
) -> list[Any]:
    parsed = EntityKind.parse(kind, f"{repo.target_prefix}_type", repo.allowed_kinds)
    schema = _TARGET_SCHEMAS[parsed]
    rows = await repo.resolve_targets(user_id, parsed, limit)
    return [schema.model_validate(row).model_dump(mode="json") for row in rows]


# ------------------------------------------------------------------ profile


@router.get("", response_model=UserResponse)
async def whoami(
    user_id: str = Depends(get_current_user_id),
    users: UserRepository = Depends(get_user_repository),
) -> Any:
    """The caller's account; also stamps ``last_active_at``."""
    return await users.update_last_active(user_id)


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
    user_id: str = Depends(get_current_user_id),
    users: UserRepository = Depends(get_user_repository),
) -> Any:
    prefs = await users.get_preferences(user_id)
    if prefs is None:
        # no row until the first write; answer with the column defaults
        return await users.upsert_preferences(user_id, {})
    return prefs


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    body: PreferencesUpdate,
    user_id: str = Depends(get_current_user_id),
    users: UserRepository = Depends(get_user_repository),
) -> Any:
    return await users.upsert_preferences(user_id, body.model_dump(exclude_none=True))


# ------------------------------------------------------------------ likes


@router.post("/likes/{kind}/{target_id}", response_model=ToggleResponse)
async def toggle_like(
    kind: str,
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    likes: UserLikesRepository = Depends(get_likes_repository),
) -> ToggleResponse:
    """Like the item if it is not liked yet, unlike it otherwise."""
    active, _ = await likes.toggle_like(user_id, kind, target_id)
    return ToggleResponse(kind=kind, id=target_id, active=active)


@router.get("/likes", response_model=list[AssociationResponse])
async def list_likes(
    kind: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    likes: UserLikesRepository = Depends(get_likes_repository),
) -> list[AssociationResponse]:
    rows = await likes.find_user_likes(user_id, kind, limit)
    return [_association(likes, row) for row in rows]


@router.get("/likes/stats")
async def like_stats(
    user_id: str = Depends(get_current_user_id),
    likes: UserLikesRepository = Depends(get_likes_repository),
) -> dict[str, int]:
    return await likes.get_user_like_stats(user_id)


@router.get("/likes/{kind}")
async def liked_items(
    kind: str,
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    likes: UserLikesRepository = Depends(get_likes_repository),
) -> list[Any]:
    return await _resolved(likes, user_id, kind, limit)


# ------------------------------------------------------------------ follows


@router.post("/follows/{kind}/{target_id}", response_model=ToggleResponse)
async def toggle_follow(
    kind: str,
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    follows: UserFollowsRepository = Depends(get_follows_repository),
) -> ToggleResponse:
    active, _ = await follows.toggle_follow(user_id, kind, target_id)
    return ToggleResponse(kind=kind, id=target_id, active=active)


@router.get("/follows", response_model=list[AssociationResponse])
async def list_follows(
    kind: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    follows: UserFollowsRepository = Depends(get_follows_repository),
) -> list[AssociationResponse]:
    rows = await follows.find_user_follows(user_id, kind, limit)
    return [_association(follows, row) for row in rows]


@router.get("/follows/mutual/{other_user_id}")
async def mutual_follows(
    other_user_id: str,
    user_id: str = Depends(get_current_user_id),
    follows: UserFollowsRepository = Depends(get_follows_repository),
) -> dict[str, list[Any]]:
    mutual = await follows.get_mutual_follows(user_id, other_user_id)
    artists = [ArtistResponse.model_validate(a) for a in mutual["artists"]]
    users = [UserResponse.model_validate(u) for u in mutual["users"]]
    return {
        "artists": [a.model_dump(mode="json") for a in artists],
        "users": [u.model_dump(mode="json") for u in users],
    }


@router.get("/follows/{kind}")
async def followed_items(
    kind: str,
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    follows: UserFollowsRepository = Depends(get_follows_repository),
) -> list[Any]:
    return await _resolved(follows, user_id, kind, limit)


# ------------------------------------------------------------------ library


@router.post("/library/{kind}/{target_id}", response_model=ToggleResponse)
async def toggle_save(
    kind: str,
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    library: UserLibraryRepository = Depends(get_library_repository),
) -> ToggleResponse:
    active, _ = await library.toggle_save(user_id, kind, target_id)
    return ToggleResponse(kind=kind, id=target_id, active=active)


@router.get("/library", response_model=list[AssociationResponse])
async def list_library(
    kind: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    library: UserLibraryRepository = Depends(get_library_repository),
) -> list[AssociationResponse]:
    rows = await library.find_user_library(user_id, kind, limit)
    return [_association(library, row) for row in rows]


@router.get("/library/stats")
async def library_stats(
    user_id: str = Depends(get_current_user_id),
    library: UserLibraryRepository = Depends(get_library_repository),
) -> dict[str, int]:
    return await library.get_user_library_stats(user_id)


@router.get("/library/{kind}")
async def saved_items(
    kind: str,
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    library: UserLibraryRepository = Depends(get_library_repository),
) -> list[Any]:
    return await _resolved(library, user_id, kind, limit)


# ------------------------------------------------------------------ history


@router.get("/history", response_model=list[HistoryEntryResponse])
async def recent_history(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    history: ListeningHistoryRepository = Depends(get_history_repository),
) -> Any:
    return await history.find_recent(user_id, limit)


@router.get("/history/range", response_model=list[HistoryEventResponse])
async def history_range(
    start: datetime = Query(...),
    end: datetime = Query(...),
    user_id: str = Depends(get_current_user_id),
    history: ListeningHistoryRepository = Depends(get_history_repository),
) -> Any:
    return await history.find_by_date_range(user_id, start, end)


@router.get("/history/stats", response_model=ListeningStatsResponse)
async def listening_stats(
    days: int | None = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    history: ListeningHistoryRepository = Depends(get_history_repository),
) -> Any:
    return await history.get_user_listening_stats(user_id, days)


@router.get("/history/streaks", response_model=StreaksResponse)
async def play_streaks(
    user_id: str = Depends(get_current_user_id),
    history: ListeningHistoryRepository = Depends(get_history_repository),
) -> Any:
    return await history.get_play_streaks(user_id)


@router.get("/history/top-songs", response_model=list[TopSongResponse])
async def top_songs(
    limit: int = Query(20, ge=1, le=100),
    days: int | None = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    history: ListeningHistoryRepository = Depends(get_history_repository),
) -> list[TopSongResponse]:
    rows = await history.get_user_top_songs(user_id, limit, days)
    return [
        TopSongResponse(song=SongResponse.model_validate(song), play_count=plays)
        for song, plays in rows
    ]


@router.delete("/history")
async def clear_history(
    user_id: str = Depends(get_current_user_id),
    users: UserRepository = Depends(get_user_repository),
    history: ListeningHistoryRepository = Depends(get_history_repository),
) -> dict[str, int]:
    if not await users.exists(user_id):
        raise EntityNotFoundException("User", user_id)
    return {"deleted": await history.delete_user_history(user_id)}
