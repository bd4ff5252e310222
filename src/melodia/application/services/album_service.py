"""Album Service - validation wrapper around AlbumRepository."""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from melodia.application.services.common import clamp, require_id
from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.domain.value_objects import AlbumType
from melodia.infrastructure.persistence.models import AlbumModel
from melodia.infrastructure.persistence.repositories import (
    AlbumRepository,
    PlaylistRepository,
    QueryOptions,
)

logger = logging.getLogger(__name__)

RECENT_LIMIT_MAX = 50

_UPDATABLE = (
    "title",
    "description",
    "release_date",
    "album_type",
    "genres",
    "cover_image_url",
    "record_label",
    "copyright_info",
)


class AlbumService:
    """Album use cases for the API layer."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._albums = AlbumRepository(session)
        self._playlists = PlaylistRepository(session)

    async def create_album(self, data: Mapping[str, Any]) -> AlbumModel:
        title = str(data.get("title") or "").strip()
        if not title:
            raise ValidationException("Album title is required", field="title")
        description = data.get("description")
        return await self._albums.create(
            {
                "title": title,
                "description": description.strip() if description else None,
                "release_date": data.get("release_date"),
                "album_type": data.get("album_type") or AlbumType.ALBUM.value,
                "genres": list(data.get("genres") or []),
                "cover_image_url": data.get("cover_image_url"),
                "record_label": data.get("record_label"),
                "copyright_info": data.get("copyright_info"),
            }
        )

    async def get_album(self, album_id: str) -> AlbumModel:
        return await self._albums.get(require_id(album_id, "album_id", "Album ID"))

    async def get_album_with_songs(self, album_id: str) -> AlbumModel:
        return await self._albums.get(
            require_id(album_id, "album_id", "Album ID"),
            QueryOptions(include=[selectinload(AlbumModel.songs)]),
        )

    async def list_albums(self, page: int = 1, limit: int = 10) -> Any:
        return await self._albums.find_many_paginated(
            QueryOptions(order_by=[AlbumModel.title], page=page, limit=limit)
        )

    async def search_albums(self, query: str | None) -> list[AlbumModel]:
        if not query or not query.strip():
            return []
        return await self._albums.search(query.strip())

    async def get_albums_by_genre(self, genre: str | None) -> list[AlbumModel]:
        if not genre or not genre.strip():
            raise ValidationException("Genre is required", field="genre")
        return await self._albums.find_by_genres([genre.strip()])

    async def get_recent_albums(self, limit: int = 10) -> list[AlbumModel]:
        """Newest releases first, ``limit`` clamped to 1..50."""
        return await self._albums.find_many(
            QueryOptions(
                order_by=[AlbumModel.release_date.desc().nulls_last(), AlbumModel.title],
                take=clamp(limit, RECENT_LIMIT_MAX),
            )
        )

    async def update_album(self, album_id: str, data: Mapping[str, Any]) -> AlbumModel:
        album_id = require_id(album_id, "album_id", "Album ID")
        if not await self._albums.exists(album_id):
            raise EntityNotFoundException("Album", album_id)

        changes = {key: data[key] for key in _UPDATABLE if key in data}
        if "title" in changes:
            if not str(changes["title"] or "").strip():
                raise ValidationException("Album title cannot be empty", field="title")
            changes["title"] = changes["title"].strip()
        if "album_type" in changes:
            changes["album_type"] = AlbumType.parse(changes["album_type"], "album_type").value
        if "genres" in changes:
            await self._albums.update_genres(album_id, changes.pop("genres") or [])
        return await self._albums.update(album_id, changes)

    async def delete_album(self, album_id: str) -> AlbumModel:
        """Delete an album and its songs; playlists holding those songs are renumbered."""
        album_id = require_id(album_id, "album_id", "Album ID")
        await self._albums.get(album_id)
        songs = await self._albums.get_album_songs(album_id)
        await self._playlists.detach_songs([song.id for song in songs])
        return await self._albums.delete(album_id)

    async def get_album_stats(self) -> dict[str, Any]:
        return {
            "total": await self._albums.count(),
            "recent": await self.get_recent_albums(5),
        }
