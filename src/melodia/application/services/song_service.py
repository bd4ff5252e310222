"""Song Service - validation wrapper around SongRepository.

Hey future me - routers talk to THIS, not to the repository. The service owns
the "is the input sane" checks (blank ids, positive durations, limit clamping)
and the cross-aggregate rule that a song needs an existing album. Everything
runs on the request's session, so play_song's counter bump and history row
commit together.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from melodia.application.services.common import clamp, require_id
from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.infrastructure.persistence.models import SongModel
from melodia.infrastructure.persistence.repositories import (
    AlbumRepository,
    ListeningHistoryRepository,
    PlaylistRepository,
    QueryOptions,
    SongRepository,
)

logger = logging.getLogger(__name__)

POPULAR_LIMIT_MAX = 100

_UPDATABLE = (
    "title",
    "duration_seconds",
    "song_number",
    "disc_number",
    "genres",
    "audio_url",
    "preview_url",
    "lyrics",
    "explicit",
    "isrc",
)


class SongService:
    """Song use cases for the API layer."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._songs = SongRepository(session)
        self._albums = AlbumRepository(session)
        self._history = ListeningHistoryRepository(session)
        self._playlists = PlaylistRepository(session)

    async def create_song(self, data: Mapping[str, Any]) -> SongModel:
        """Create a song on an existing album.

        Raises:
            ValidationException: Blank title/album id or non-positive duration
            EntityNotFoundException: The album does not exist
        """
        title = str(data.get("title") or "").strip()
        if not title:
            raise ValidationException("Song title is required", field="title")
        album_id = require_id(data.get("album_id"), "album_id", "Album ID")
        duration = data.get("duration_seconds")
        if not duration or duration <= 0:
            raise ValidationException("Valid duration is required", field="duration_seconds")
        if not await self._albums.exists(album_id):
            raise EntityNotFoundException("Album", album_id)

        song = await self._songs.create(
            {
                "title": title,
                "album_id": album_id,
                "duration_seconds": duration,
                "song_number": data.get("song_number") or 1,
                "disc_number": data.get("disc_number") or 1,
                "genres": list(data.get("genres") or []),
                "audio_url": data.get("audio_url"),
                "preview_url": data.get("preview_url"),
                "lyrics": data.get("lyrics"),
                "explicit": bool(data.get("explicit", False)),
                "isrc": data.get("isrc"),
                "play_count": 0,
            }
        )
        await self._albums.sync_album_stats(album_id)
        logger.info("Created song %s on album %s", song.id, album_id)
        return song

    async def get_song(self, song_id: str) -> SongModel:
        return await self._songs.get(require_id(song_id, "song_id", "Song ID"))

    async def list_songs(self, page: int = 1, limit: int = 10) -> Any:
        return await self._songs.find_many_paginated(
            QueryOptions(order_by=[SongModel.title], page=page, limit=limit)
        )

    async def get_songs_by_album(self, album_id: str) -> list[SongModel]:
        return await self._songs.find_by_album(require_id(album_id, "album_id", "Album ID"))

    async def search_songs(self, query: str | None) -> list[SongModel]:
        if not query or not query.strip():
            return []
        return await self._songs.search(query.strip())

    async def get_popular_songs(self, limit: int = 20) -> list[SongModel]:
        return await self._songs.find_popular(clamp(limit, POPULAR_LIMIT_MAX))

    async def get_songs_by_genre(self, genre: str | None) -> list[SongModel]:
        if not genre or not genre.strip():
            raise ValidationException("Genre is required", field="genre")
        return await self._songs.find_by_genres([genre.strip()])

    async def update_song(self, song_id: str, data: Mapping[str, Any]) -> SongModel:
        """Apply the provided fields; unknown keys are ignored.

        Raises:
            ValidationException: Blank title or non-positive duration
            EntityNotFoundException: The song does not exist
        """
        song_id = require_id(song_id, "song_id", "Song ID")
        if not await self._songs.exists(song_id):
            raise EntityNotFoundException("Song", song_id)

        changes = {key: data[key] for key in _UPDATABLE if key in data}
        if "title" in changes:
            if not str(changes["title"] or "").strip():
                raise ValidationException("Song title cannot be empty", field="title")
            changes["title"] = changes["title"].strip()
        if "duration_seconds" in changes and (changes["duration_seconds"] or 0) <= 0:
            raise ValidationException(
                "Duration must be greater than 0", field="duration_seconds"
            )
        for field in ("song_number", "disc_number"):
            if field in changes and (changes[field] or 0) <= 0:
                raise ValidationException(
                    f"{field.replace('_', ' ').capitalize()} must be positive", field=field
                )
        # genre lists go through update_genres so an explicit empty list is rejected
        if "genres" in changes:
            await self._songs.update_genres(song_id, changes.pop("genres") or [])
        song = await self._songs.update(song_id, changes)

        if "duration_seconds" in changes:
            await self._albums.sync_album_stats(song.album_id)
            for playlist in await self._playlists.get_playlists_by_song(song_id):
                await self._playlists.sync_playlist_stats(playlist.id)
        return song

    async def play_song(
        self,
        song_id: str,
        user_id: str | None = None,
        play_duration_seconds: int = 0,
        completed: bool = False,
        device_type: str | None = None,
        source: str | None = None,
        source_id: str | None = None,
    ) -> SongModel:
        """Count a play and, when a user is given, append a listening-history row.

        The counter bump is best-effort (see SongRepository.increment_song_play_count);
        the history row is not.
        """
        song_id = require_id(song_id, "song_id", "Song ID")
        if not await self._songs.exists(song_id):
            raise EntityNotFoundException("Song", song_id)

        await self._songs.increment_song_play_count(song_id)
        if user_id:
            await self._history.record_play(
                user_id,
                song_id,
                play_duration_seconds=play_duration_seconds,
                completed=completed,
                device_type=device_type,
                source=source,
                source_id=source_id,
            )
        return await self._songs.get(song_id)

    async def delete_song(self, song_id: str) -> SongModel:
        """Delete a song, closing its gap in every playlist and resyncing its album."""
        song_id = require_id(song_id, "song_id", "Song ID")
        await self._songs.get(song_id)
        await self._playlists.detach_songs([song_id])
        song = await self._songs.delete(song_id)
        await self._albums.sync_album_stats(song.album_id)
        return song

    async def get_song_stats(self) -> dict[str, Any]:
        return {
            "total": await self._songs.count(),
            "popular": await self._songs.find_popular(5),
        }
