"""Artist endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from melodia.api.dependencies import get_artist_service, get_follows_repository
from melodia.api.schemas import (
    AlbumResponse,
    ArtistCreate,
    ArtistResponse,
    ArtistUpdate,
    DiscographyResponse,
    Page,
    SongResponse,
)
from melodia.application.services import ArtistService
from melodia.infrastructure.persistence.repositories import UserFollowsRepository

router = APIRouter()


@router.get("", response_model=Page[ArtistResponse])
async def list_artists(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: ArtistService = Depends(get_artist_service),
) -> Any:
    return Page[ArtistResponse].model_validate(await service.list_artists(page, limit))


@router.get("/popular", response_model=list[ArtistResponse])
async def popular_artists(
    limit: int = Query(10, description="Clamped to 1..50"),
    service: ArtistService = Depends(get_artist_service),
) -> Any:
    return await service.get_popular_artists(limit)


@router.get("/verified", response_model=list[ArtistResponse])
async def verified_artists(
    limit: int = Query(20, description="Clamped to 1..50"),
    service: ArtistService = Depends(get_artist_service),
) -> Any:
    return await service.get_verified_artists(limit)


@router.get("/search", response_model=list[ArtistResponse])
async def search_artists(
    q: str = Query(""), service: ArtistService = Depends(get_artist_service)
) -> Any:
    return await service.search_artists(q)


@router.get("/stats")
async def artist_stats(service: ArtistService = Depends(get_artist_service)) -> dict[str, Any]:
    stats = await service.get_artist_stats()
    return {
        "total": stats["total"],
        "verified": stats["verified"],
        "popular": [ArtistResponse.model_validate(artist) for artist in stats["popular"]],
    }


@router.post("", response_model=ArtistResponse, status_code=status.HTTP_201_CREATED)
async def create_artist(
    body: ArtistCreate, service: ArtistService = Depends(get_artist_service)
) -> Any:
    return await service.create_artist(body.model_dump())


@router.get("/{artist_id}", response_model=ArtistResponse)
async def get_artist(artist_id: str, service: ArtistService = Depends(get_artist_service)) -> Any:
    return await service.get_artist(artist_id)


@router.get("/{artist_id}/albums", response_model=list[AlbumResponse])
async def artist_albums(
    artist_id: str, service: ArtistService = Depends(get_artist_service)
) -> Any:
    return await service.get_artist_albums(artist_id)


@router.get("/{artist_id}/songs", response_model=list[SongResponse])
async def artist_top_songs(
    artist_id: str,
    limit: int = Query(10, description="Clamped to 1..50"),
    service: ArtistService = Depends(get_artist_service),
) -> Any:
    return await service.get_artist_songs(artist_id, limit)


@router.get("/{artist_id}/discography", response_model=DiscographyResponse)
async def artist_discography(
    artist_id: str, service: ArtistService = Depends(get_artist_service)
) -> Any:
    return {"groups": await service.get_discography(artist_id)}


@router.get("/{artist_id}/followers/count")
async def artist_follower_count(
    artist_id: str,
    follows: UserFollowsRepository = Depends(get_follows_repository),
) -> dict[str, int]:
    return {"followers": await follows.count_followers("artist", artist_id)}


@router.patch("/{artist_id}", response_model=ArtistResponse)
async def update_artist(
    artist_id: str, body: ArtistUpdate, service: ArtistService = Depends(get_artist_service)
) -> Any:
    return await service.update_artist(artist_id, body.model_dump(exclude_unset=True))


@router.delete("/{artist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_artist(
    artist_id: str, service: ArtistService = Depends(get_artist_service)
) -> None:
    await service.delete_artist(artist_id)
