"""Song endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, status

from melodia.api.dependencies import USER_ID_HEADER, get_song_service
from melodia.api.schemas import (
    Page,
    PlayRequest,
    SongCreate,
    SongResponse,
    SongUpdate,
)
from melodia.application.services import SongService

logger = logging.getLogger(__name__)

router = APIRouter()


# Static paths (/popular, /search, /stats) are declared BEFORE /{song_id}, otherwise
# "popular" is taken for an id and the request 404s.
@router.get("", response_model=Page[SongResponse])
async def list_songs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: SongService = Depends(get_song_service),
) -> Any:
    """Songs ordered by title, one page at a time."""
    return Page[SongResponse].model_validate(await service.list_songs(page, limit))


@router.get("/popular", response_model=list[SongResponse])
async def popular_songs(
    limit: int = Query(20, description="Clamped to 1..100"),
    service: SongService = Depends(get_song_service),
) -> Any:
    return await service.get_popular_songs(limit)


@router.get("/search", response_model=list[SongResponse])
async def search_songs(
    q: str = Query("", description="Title substring; blank returns nothing"),
    service: SongService = Depends(get_song_service),
) -> Any:
    return await service.search_songs(q)


@router.get("/genre/{genre}", response_model=list[SongResponse])
async def songs_by_genre(genre: str, service: SongService = Depends(get_song_service)) -> Any:
    return await service.get_songs_by_genre(genre)


@router.get("/stats")
async def song_stats(service: SongService = Depends(get_song_service)) -> dict[str, Any]:
    stats = await service.get_song_stats()
    return {
        "total": stats["total"],
        "popular": [SongResponse.model_validate(song) for song in stats["popular"]],
    }


@router.post("", response_model=SongResponse, status_code=status.HTTP_201_CREATED)
async def create_song(
    body: SongCreate, service: SongService = Depends(get_song_service)
) -> Any:
    return await service.create_song(body.model_dump())


@router.get("/{song_id}", response_model=SongResponse)
async def get_song(song_id: str, service: SongService = Depends(get_song_service)) -> Any:
    return await service.get_song(song_id)


@router.patch("/{song_id}", response_model=SongResponse)
async def update_song(
    song_id: str, body: SongUpdate, service: SongService = Depends(get_song_service)
) -> Any:
    return await service.update_song(song_id, body.model_dump(exclude_unset=True))


@router.delete("/{song_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_song(song_id: str, service: SongService = Depends(get_song_service)) -> None:
    await service.delete_song(song_id)


# Hey future me - the user header is OPTIONAL here (anonymous plays still count).
# With a user the play also lands in listening history, same transaction.
@router.post("/{song_id}/play", response_model=SongResponse)
async def play_song(
    song_id: str,
    body: PlayRequest | None = None,
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
    service: SongService = Depends(get_song_service),
) -> Any:
    details = body or PlayRequest()
    return await service.play_song(
        song_id,
        user_id=x_user_id.strip() if x_user_id and x_user_id.strip() else None,
        **details.model_dump(),
    )
