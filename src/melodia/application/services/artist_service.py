"""Artist Service - validation wrapper around ArtistRepository."""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from melodia.application.services.common import clamp, require_id
from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.infrastructure.persistence.models import AlbumModel, ArtistModel, SongModel
from melodia.infrastructure.persistence.repositories import ArtistRepository, QueryOptions

logger = logging.getLogger(__name__)

ARTIST_LIMIT_MAX = 50

_UPDATABLE = ("name", "bio", "image_url", "banner_url", "verified", "genres", "country")


class ArtistService:
    """Artist use cases for the API layer."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._artists = ArtistRepository(session)

    async def create_artist(self, data: Mapping[str, Any]) -> ArtistModel:
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValidationException("Artist name is required", field="name")
        bio = data.get("bio")
        return await self._artists.create(
            {
                "name": name,
                "bio": bio.strip() if bio else None,
                "image_url": data.get("image_url"),
                "banner_url": data.get("banner_url"),
                "verified": bool(data.get("verified", False)),
                "genres": list(data.get("genres") or []),
                "country": data.get("country"),
                "monthly_listeners": 0,
            }
        )

    async def get_artist(self, artist_id: str) -> ArtistModel:
        return await self._artists.get(require_id(artist_id, "artist_id", "Artist ID"))

    async def list_artists(self, page: int = 1, limit: int = 10) -> Any:
        return await self._artists.find_many_paginated(
            QueryOptions(order_by=[ArtistModel.name], page=page, limit=limit)
        )

    async def get_artist_albums(self, artist_id: str) -> list[AlbumModel]:
        artist = await self.get_artist(artist_id)
        return await self._artists.get_albums(artist.id)

    async def get_artist_songs(self, artist_id: str, limit: int = 10) -> list[SongModel]:
        artist = await self.get_artist(artist_id)
        return await self._artists.get_top_songs(artist.id, clamp(limit, ARTIST_LIMIT_MAX))

    async def get_discography(self, artist_id: str) -> dict[str, list[AlbumModel]]:
        return await self._artists.get_discography(
            require_id(artist_id, "artist_id", "Artist ID")
        )

    async def search_artists(self, query: str | None) -> list[ArtistModel]:
        if not query or not query.strip():
            return []
        return await self._artists.search(query.strip())

    async def get_popular_artists(self, limit: int = 10) -> list[ArtistModel]:
        return await self._artists.find_popular(clamp(limit, ARTIST_LIMIT_MAX))

    async def get_verified_artists(self, limit: int = 20) -> list[ArtistModel]:
        return await self._artists.find_verified(clamp(limit, ARTIST_LIMIT_MAX))

    async def update_artist(self, artist_id: str, data: Mapping[str, Any]) -> ArtistModel:
        artist_id = require_id(artist_id, "artist_id", "Artist ID")
        if not await self._artists.exists(artist_id):
            raise EntityNotFoundException("Artist", artist_id)

        changes = {key: data[key] for key in _UPDATABLE if key in data}
        if "name" in changes:
            if not str(changes["name"] or "").strip():
                raise ValidationException("Artist name cannot be empty", field="name")
            changes["name"] = changes["name"].strip()
        if "genres" in changes:
            await self._artists.update_genres(artist_id, changes.pop("genres") or [])
        return await self._artists.update(artist_id, changes)

    async def delete_artist(self, artist_id: str) -> ArtistModel:
        return await self._artists.delete(require_id(artist_id, "artist_id", "Artist ID"))

    async def get_artist_stats(self) -> dict[str, Any]:
        return {
            "total": await self._artists.count(),
            "verified": await self._artists.count(ArtistModel.verified.is_(True)),
            "popular": await self._artists.find_popular(5),
        }
