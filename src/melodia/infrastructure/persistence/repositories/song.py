"""Song repository."""

import logging
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any

from sqlalchemy import extract, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from melodia.domain.exceptions import (
    EntityNotFoundException,
    RepositoryError,
    ValidationException,
)
from melodia.domain.value_objects import ArtistRole
from melodia.infrastructure.persistence.errors import translate_store_errors
from melodia.infrastructure.persistence.models import (
    AlbumModel,
    ListeningHistoryModel,
    PlaylistModel,
    PlaylistSongModel,
    SongArtistModel,
    SongModel,
    utc_now,
)
from melodia.infrastructure.persistence.repositories.album import AlbumRepository
from melodia.infrastructure.persistence.repositories.base import (
    BaseRepository,
    GenreOperationsMixin,
    QueryOptions,
)
from melodia.infrastructure.persistence.repositories.playlist import PlaylistRepository

logger = logging.getLogger(__name__)

_DETAIL_FIELDS = frozenset(
    {"title", "duration_seconds", "audio_url", "preview_url", "lyrics", "explicit", "isrc"}
)


def _require_positive(name: str, value: int | None) -> None:
    if value is not None and value <= 0:
        raise ValidationException(
            f"{name.replace('_', ' ').capitalize()} must be positive", field=name
        )


class SongRepository(GenreOperationsMixin, BaseRepository[SongModel]):
    """Songs, their credits and play/like counters."""

    model = SongModel
    entity_name = "Song"
    json_columns = ("genres",)

    async def create(self, data: Mapping[str, Any]) -> SongModel:
        if not str(data.get("title") or "").strip():
            raise ValidationException("Song title is required", field="title")
        if not data.get("album_id"):
            raise ValidationException("Album is required", field="album_id")
        _require_positive("duration_seconds", data.get("duration_seconds") or 0)
        _require_positive("song_number", data.get("song_number"))
        _require_positive("disc_number", data.get("disc_number"))
        return await super().create(data)

    # ------------------------------------------------------------------ finders

    async def find_by_title(self, title: str, limit: int = 50) -> list[SongModel]:
        return await self.find_many(
            QueryOptions(
                where=[SongModel.title.icontains(title.strip(), autoescape=True)],
                order_by=[SongModel.play_count.desc(), SongModel.title],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_album(self, album_id: str) -> list[SongModel]:
        return await self.find_many(
            QueryOptions(
                where=[SongModel.album_id == album_id],
                order_by=[SongModel.disc_number, SongModel.song_number],
            )
        )

    async def find_by_genres(self, genres: Sequence[str], limit: int = 50) -> list[SongModel]:
        if not genres:
            return []
        return await self.find_many(
            QueryOptions(
                where=[self.genre_filter(SongModel.genres, genres)],
                order_by=[SongModel.play_count.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_duration_range(self, min_seconds: int, max_seconds: int) -> list[SongModel]:
        if min_seconds > max_seconds:
            raise ValidationException(
                "Minimum duration must not exceed maximum duration", field="min_seconds"
            )
        return await self.find_many(
            QueryOptions(
                where=[
                    SongModel.duration_seconds >= min_seconds,
                    SongModel.duration_seconds <= max_seconds,
                ],
                order_by=[SongModel.duration_seconds],
            )
        )

    async def find_popular(self, limit: int = 50) -> list[SongModel]:
        return await self.find_many(
            QueryOptions(
                order_by=[SongModel.play_count.desc(), SongModel.title],
                take=self.validate_limit(limit),
            )
        )

    async def find_recent(self, days: int = 30, limit: int = 50) -> list[SongModel]:
        since = utc_now() - timedelta(days=days)
        return await self.find_many(
            QueryOptions(
                where=[SongModel.created_at >= since],
                order_by=[SongModel.created_at.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_explicit(self, explicit: bool = True, limit: int = 50) -> list[SongModel]:
        return await self.find_many(
            QueryOptions(
                where=[SongModel.explicit.is_(explicit)],
                order_by=[SongModel.title],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_release_year(self, year: int) -> list[SongModel]:
        stmt = (
            select(SongModel)
            .join(AlbumModel, AlbumModel.id == SongModel.album_id)
            .where(extract("year", AlbumModel.release_date) == year)
            .order_by(AlbumModel.release_date, SongModel.disc_number, SongModel.song_number)
        )
        with translate_store_errors(self.entity_name, "find_by_release_year"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def search(self, query: str, limit: int = 20) -> list[SongModel]:
        """Title, lyrics or genre contains ``query``."""
        q = query.strip()
        return await self.find_many(
            QueryOptions(
                where=[
                    or_(
                        SongModel.title.icontains(q, autoescape=True),
                        SongModel.lyrics.icontains(q, autoescape=True),
                        SongModel.genres.icontains(q, autoescape=True),
                    )
                ],
                order_by=[SongModel.play_count.desc(), SongModel.title],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_artist(self, artist_id: str, role: str | None = None) -> list[SongModel]:
        stmt = (
            select(SongModel)
            .join(SongArtistModel, SongArtistModel.song_id == SongModel.id)
            .where(SongArtistModel.artist_id == artist_id)
            .order_by(SongModel.play_count.desc())
        )
        if role is not None:
            stmt = stmt.where(SongArtistModel.role == ArtistRole.parse(role, "role").value)
        with translate_store_errors(self.entity_name, "find_by_artist"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_similar(self, song_id: str, limit: int = 10) -> list[SongModel]:
        song = await self.get(song_id)
        genres = song.genre_list
        if not genres:
            return []
        return await self.find_many(
            QueryOptions(
                where=[SongModel.id != song_id, self.genre_filter(SongModel.genres, genres)],
                order_by=[SongModel.play_count.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_trending(self, days: int = 7, limit: int = 20) -> list[tuple[SongModel, int]]:
        """Songs with the most listening-history plays in the last ``days``."""
        self.validate_limit(limit)
        since = utc_now() - timedelta(days=days)
        plays = func.count(ListeningHistoryModel.id).label("plays")
        stmt = (
            select(SongModel, plays)
            .join(ListeningHistoryModel, ListeningHistoryModel.song_id == SongModel.id)
            .where(ListeningHistoryModel.played_at >= since)
            .group_by(SongModel.id)
            .order_by(plays.desc(), SongModel.title)
            .limit(limit)
        )
        with translate_store_errors(self.entity_name, "find_trending"):
            result = await self.session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]

    async def find_random(self, limit: int = 10) -> list[SongModel]:
        return await self.find_many(
            QueryOptions(order_by=[func.random()], take=self.validate_limit(limit))
        )

    async def find_playlists_containing(self, song_id: str) -> list[PlaylistModel]:
        stmt = (
            select(PlaylistModel)
            .join(PlaylistSongModel, PlaylistSongModel.playlist_id == PlaylistModel.id)
            .where(PlaylistSongModel.song_id == song_id)
            .order_by(PlaylistModel.name)
        )
        with translate_store_errors(self.entity_name, "find_playlists_containing"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_album(self, album_id: str) -> int:
        return await self.count(SongModel.album_id == album_id)

    # ------------------------------------------------------------------ updates

    async def update_details(self, song_id: str, data: Mapping[str, Any]) -> SongModel:
        unknown = set(data) - _DETAIL_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationException(f"Field '{field}' cannot be updated here", field=field)
        if "title" in data and not str(data["title"] or "").strip():
            raise ValidationException("Song title is required", field="title")
        if "duration_seconds" in data:
            _require_positive("duration_seconds", data["duration_seconds"] or 0)
        return await self.update(song_id, data)

    async def update_position(
        self, song_id: str, song_number: int, disc_number: int = 1
    ) -> SongModel:
        _require_positive("song_number", song_number)
        _require_positive("disc_number", disc_number)
        return await self.update(
            song_id, {"song_number": song_number, "disc_number": disc_number}
        )

    async def update_play_count(self, song_id: str, increment: int = 1) -> SongModel:
        """Add ``increment`` plays with a single SQL expression (no read-modify-write)."""
        if increment < 0:
            raise ValidationException("Increment cannot be negative", field="increment")
        return await self.update(song_id, {"play_count": SongModel.play_count + increment})

    async def update_like_count(self, song_id: str, like_count: int) -> SongModel:
        self.validate_non_negative({"like_count": like_count})
        return await self.update(song_id, {"like_count": like_count})

    async def adjust_like_count(self, song_id: str, delta: int) -> int:
        """Shift like_count by ``delta`` without going below zero; returns rows touched."""
        where = [SongModel.id == song_id]
        if delta < 0:
            where.append(SongModel.like_count >= -delta)
        return await self.update_many(where, {"like_count": SongModel.like_count + delta})

    # Hey future me - this one NEVER raises on store errors! It runs on every play and a
    # failed analytics counter must not stop the music. Validation errors still raise.
    async def increment_song_play_count(self, song_id: str) -> bool:
        """Best-effort play counter bump; returns False when the store write failed."""
        try:
            await self.update_play_count(song_id, 1)
            return True
        except (RepositoryError, EntityNotFoundException, SQLAlchemyError) as e:
            logger.warning(
                "Failed to increment play count for song %s: %s",
                song_id,
                e,
                extra={"song_id": song_id, "error_type": type(e).__name__},
            )
            return False

    async def add_artist(
        self, song_id: str, artist_id: str, role: str = ArtistRole.PRIMARY.value
    ) -> SongArtistModel:
        """Credit an artist on a song."""
        credit = SongArtistModel(
            song_id=song_id, artist_id=artist_id, role=ArtistRole.parse(role, "role").value
        )
        self.session.add(credit)
        with translate_store_errors("Song artist", "create", song_id=song_id):
            await self.session.flush()
        return credit

    # ------------------------------------------------------------------ aggregates

    async def get_total_play_count(self) -> int:
        stmt = select(func.coalesce(func.sum(SongModel.play_count), 0))
        with translate_store_errors(self.entity_name, "get_total_play_count"):
            result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def get_average_duration(self) -> float:
        stmt = select(func.avg(SongModel.duration_seconds))
        with translate_store_errors(self.entity_name, "get_average_duration"):
            result = await self.session.execute(stmt)
        value = result.scalar_one()
        return round(float(value), 2) if value is not None else 0.0

    async def get_song_stats(self, song_id: str) -> dict[str, int]:
        """Counters plus how many playlists hold the song and how many users played it."""
        song = await self.get(song_id)
        playlist_stmt = select(func.count()).select_from(PlaylistSongModel).where(
            PlaylistSongModel.song_id == song_id
        )
        listeners_stmt = select(func.count(func.distinct(ListeningHistoryModel.user_id))).where(
            ListeningHistoryModel.song_id == song_id
        )
        # One AsyncSession = one connection, so these run one after another.
        with translate_store_errors(self.entity_name, "get_song_stats", entity_id=song_id):
            playlist_count = (await self.session.execute(playlist_stmt)).scalar_one()
            listener_count = (await self.session.execute(listeners_stmt)).scalar_one()
        return {
            "play_count": song.play_count,
            "like_count": song.like_count,
            "playlist_count": int(playlist_count),
            "listener_count": int(listener_count),
        }

    async def delete_songs_with_zero_plays(self, older_than_days: int = 365) -> int:
        """Remove never-played songs older than the cutoff.

        Playlists holding them are renumbered and their albums resynced, the same
        as for a single delete.
        """
        cutoff = utc_now() - timedelta(days=older_than_days)
        stmt = select(SongModel.id, SongModel.album_id).where(
            SongModel.play_count == 0, SongModel.created_at < cutoff
        )
        with translate_store_errors(self.entity_name, "delete_songs_with_zero_plays"):
            rows = (await self.session.execute(stmt)).all()
        if not rows:
            return 0

        song_ids = [song_id for song_id, _ in rows]
        await PlaylistRepository(self.session).detach_songs(song_ids)
        count = await self.delete_many([SongModel.id.in_(song_ids)])
        albums = AlbumRepository(self.session)
        for album_id in sorted({album_id for _, album_id in rows}):
            await albums.sync_album_stats(album_id)
        return count
