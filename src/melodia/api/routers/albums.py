"""Album endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from melodia.api.dependencies import get_album_service, get_song_service
from melodia.api.schemas import (
    AlbumCreate,
    AlbumResponse,
    AlbumUpdate,
    AlbumWithSongsResponse,
    Page,
    SongResponse,
)
from melodia.application.services import AlbumService, SongService

router = APIRouter()


@router.get("", response_model=Page[AlbumResponse])
async def list_albums(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: AlbumService = Depends(get_album_service),
) -> Any:
    return Page[AlbumResponse].model_validate(await service.list_albums(page, limit))


@router.get("/recent", response_model=list[AlbumResponse])
async def recent_albums(
    limit: int = Query(10, description="Clamped to 1..50"),
    service: AlbumService = Depends(get_album_service),
) -> Any:
    return await service.get_recent_albums(limit)


@router.get("/search", response_model=list[AlbumResponse])
async def search_albums(
    q: str = Query(""), service: AlbumService = Depends(get_album_service)
) -> Any:
    return await service.search_albums(q)


@router.get("/genre/{genre}", response_model=list[AlbumResponse])
async def albums_by_genre(genre: str, service: AlbumService = Depends(get_album_service)) -> Any:
    return await service.get_albums_by_genre(genre)


@router.get("/stats")
async def album_stats(service: AlbumService = Depends(get_album_service)) -> dict[str, Any]:
    stats = await service.get_album_stats()
    return {
        "total": stats["total"],
        "recent": [AlbumResponse.model_validate(album) for album in stats["recent"]],
    }


@router.post("", response_model=AlbumResponse, status_code=status.HTTP_201_CREATED)
async def create_album(
    body: AlbumCreate, service: AlbumService = Depends(get_album_service)
) -> Any:
    return await service.create_album(body.model_dump())


@router.get("/{album_id}", response_model=AlbumWithSongsResponse)
async def get_album(album_id: str, service: AlbumService = Depends(get_album_service)) -> Any:
    """Album with its songs in disc/track order."""
    return await service.get_album_with_songs(album_id)


@router.get("/{album_id}/songs", response_model=list[SongResponse])
async def album_songs(album_id: str, service: SongService = Depends(get_song_service)) -> Any:
    return await service.get_songs_by_album(album_id)


@router.patch("/{album_id}", response_model=AlbumResponse)
async def update_album(
    album_id: str, body: AlbumUpdate, service: AlbumService = Depends(get_album_service)
) -> Any:
    return await service.update_album(album_id, body.model_dump(exclude_unset=True))


@router.delete("/{album_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_album(album_id: str, service: AlbumService = Depends(get_album_service)) -> None:
    await service.delete_album(album_id)
