"""Playlist endpoints.

Reads are open for public playlists; anything that changes a playlist needs the
caller's ``X-User-ID`` to match the owner (collaborative playlists also accept
song additions and removals from other users).
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, status

from melodia.api.dependencies import (
    USER_ID_HEADER,
    get_current_user_id,
    get_playlist_repository,
)
from melodia.api.schemas import (
    AddSongRequest,
    DuplicatePlaylistRequest,
    PlaylistCreate,
    PlaylistResponse,
    PlaylistSongResponse,
    PlaylistUpdate,
    ReorderRequest,
)
from melodia.domain.exceptions import AuthorizationError
from melodia.infrastructure.persistence.models import PlaylistModel
from melodia.infrastructure.persistence.repositories import PlaylistRepository

logger = logging.getLogger(__name__)

router = APIRouter()


async def _editable_playlist(
    repo: PlaylistRepository,
    playlist_id: str,
    user_id: str,
    allow_collaborators: bool = False,
) -> PlaylistModel:
    playlist = await repo.get(playlist_id)
    if playlist.user_id == user_id:
        return playlist
    # collaborators are anyone who can see the playlist, so a private one stays owner-only
    if allow_collaborators and playlist.is_collaborative and playlist.is_public:
        return playlist
    raise AuthorizationError("Only the owner can change this playlist")


async def _visible_playlist(
    repo: PlaylistRepository, playlist_id: str, user_id: str | None
) -> PlaylistModel:
    playlist = await repo.get(playlist_id)
    if playlist.is_public or playlist.user_id == user_id:
        return playlist
    raise AuthorizationError("This playlist is private")


@router.get("/public", response_model=list[PlaylistResponse])
async def public_playlists(
    limit: int = Query(50, ge=1, le=100),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    return await repo.find_public(limit)


@router.get("/popular", response_model=list[PlaylistResponse])
async def popular_playlists(
    limit: int = Query(20, ge=1, le=100),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    return await repo.find_popular(limit)


@router.get("/search", response_model=list[PlaylistResponse])
async def search_playlists(
    q: str = Query(""),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    if not q.strip():
        return []
    return await repo.search(q.strip())


@router.get("/mine", response_model=list[PlaylistResponse])
async def my_playlists(
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    return await repo.find_by_user(user_id)


@router.post("", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
async def create_playlist(
    body: PlaylistCreate,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    return await repo.create({**body.model_dump(), "user_id": user_id})


@router.get("/{playlist_id}", response_model=PlaylistResponse)
async def get_playlist(
    playlist_id: str,
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    return await _visible_playlist(repo, playlist_id, x_user_id)


@router.get("/{playlist_id}/songs", response_model=list[PlaylistSongResponse])
async def playlist_songs(
    playlist_id: str,
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    await _visible_playlist(repo, playlist_id, x_user_id)
    return await repo.get_playlist_songs(playlist_id)


@router.patch("/{playlist_id}", response_model=PlaylistResponse)
async def update_playlist(
    playlist_id: str,
    body: PlaylistUpdate,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    playlist = await _editable_playlist(repo, playlist_id, user_id)
    changes = body.model_dump(exclude_unset=True)
    is_public = changes.pop("is_public", None)
    is_collaborative = changes.pop("is_collaborative", None)
    if changes:
        playlist = await repo.update_details(playlist_id, changes)
    if is_public is not None:
        playlist = await repo.update_visibility(playlist_id, is_public)
    if is_collaborative is not None:
        playlist = await repo.update_collaborative(playlist_id, is_collaborative)
    return playlist


@router.delete("/{playlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_playlist(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> None:
    await _editable_playlist(repo, playlist_id, user_id)
    await repo.delete(playlist_id)


@router.post(
    "/{playlist_id}/songs",
    response_model=PlaylistSongResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_song(
    playlist_id: str,
    body: AddSongRequest,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    await _editable_playlist(repo, playlist_id, user_id, allow_collaborators=True)
    await repo.add_song_to_playlist(playlist_id, body.song_id, added_by=user_id)
    entries = await repo.get_playlist_songs(playlist_id)
    return next(entry for entry in entries if entry.song_id == body.song_id)


@router.delete("/{playlist_id}/songs/{song_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_song(
    playlist_id: str,
    song_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> None:
    await _editable_playlist(repo, playlist_id, user_id, allow_collaborators=True)
    await repo.remove_song_from_playlist(playlist_id, song_id)


@router.put("/{playlist_id}/order", response_model=list[PlaylistSongResponse])
async def reorder_playlist(
    playlist_id: str,
    body: ReorderRequest,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    await _editable_playlist(repo, playlist_id, user_id)
    return await repo.reorder_playlist_songs(
        playlist_id, [(entry.song_id, entry.position) for entry in body.songs]
    )


@router.post("/{playlist_id}/shuffle", response_model=list[PlaylistSongResponse])
async def shuffle_playlist(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    await _editable_playlist(repo, playlist_id, user_id)
    return await repo.shuffle_playlist(playlist_id)


@router.post("/{playlist_id}/clear", status_code=status.HTTP_200_OK)
async def clear_playlist(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> dict[str, int]:
    await _editable_playlist(repo, playlist_id, user_id)
    return {"removed": await repo.clear_playlist(playlist_id)}


@router.post(
    "/{playlist_id}/duplicate",
    response_model=PlaylistResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_playlist(
    playlist_id: str,
    body: DuplicatePlaylistRequest,
    user_id: str = Depends(get_current_user_id),
    repo: PlaylistRepository = Depends(get_playlist_repository),
) -> Any:
    """Copy a visible playlist into the caller's account (always private)."""
    await _visible_playlist(repo, playlist_id, user_id)
    return await repo.duplicate_playlist(playlist_id, body.name, new_user_id=user_id)
