"""Album repository."""

import logging
from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from typing import Any

from sqlalchemy import extract, func, or_, select

from melodia.domain.exceptions import ValidationException
from melodia.domain.value_objects import AlbumType, ArtistRole
from melodia.infrastructure.persistence.errors import translate_store_errors
from melodia.infrastructure.persistence.models import (
    AlbumArtistModel,
    AlbumModel,
    SongModel,
)
from melodia.infrastructure.persistence.repositories.base import (
    BaseRepository,
    GenreOperationsMixin,
    QueryOptions,
)

logger = logging.getLogger(__name__)

_DETAIL_FIELDS = frozenset(
    {"title", "description", "cover_image_url", "record_label", "copyright_info"}
)


class AlbumRepository(GenreOperationsMixin, BaseRepository[AlbumModel]):
    """Albums, their artist credits and cached song statistics."""

    model = AlbumModel
    entity_name = "Album"
    json_columns = ("genres",)

    async def create(self, data: Mapping[str, Any]) -> AlbumModel:
        values = dict(data)
        if not str(values.get("title") or "").strip():
            raise ValidationException("Album title is required", field="title")
        values["album_type"] = AlbumType.parse(
            values.get("album_type") or AlbumType.ALBUM, "album_type"
        ).value
        self.validate_non_negative(
            {
                "total_songs": values.get("total_songs"),
                "duration_seconds": values.get("duration_seconds"),
            }
        )
        return await super().create(values)

    # ------------------------------------------------------------------ finders

    async def find_by_title(self, title: str, limit: int = 50) -> list[AlbumModel]:
        """Title contains ``title``, ignoring case."""
        return await self.find_many(
            QueryOptions(
                where=[AlbumModel.title.icontains(title.strip(), autoescape=True)],
                order_by=[AlbumModel.title],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_type(self, album_type: str, limit: int = 50) -> list[AlbumModel]:
        parsed = AlbumType.parse(album_type, "album_type")
        return await self.find_many(
            QueryOptions(
                where=[AlbumModel.album_type == parsed.value],
                order_by=[AlbumModel.release_date.desc().nulls_last()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_genres(self, genres: Sequence[str], limit: int = 50) -> list[AlbumModel]:
        if not genres:
            return []
        return await self.find_many(
            QueryOptions(
                where=[self.genre_filter(AlbumModel.genres, genres)],
                order_by=[AlbumModel.release_date.desc().nulls_last()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_release_year(self, year: int) -> list[AlbumModel]:
        return await self.find_many(
            QueryOptions(
                where=[extract("year", AlbumModel.release_date) == year],
                order_by=[AlbumModel.release_date, AlbumModel.title],
            )
        )

    async def find_by_date_range(self, start: date, end: date) -> list[AlbumModel]:
        if start > end:
            raise ValidationException("Start date must not be after end date", field="start_date")
        return await self.find_many(
            QueryOptions(
                where=[AlbumModel.release_date >= start, AlbumModel.release_date <= end],
                order_by=[AlbumModel.release_date],
            )
        )

    async def find_by_decade(self, decade: int) -> list[AlbumModel]:
        """Albums released in the decade containing ``decade`` (1994 -> 1990s)."""
        first_year = decade - decade % 10
        return await self.find_by_date_range(date(first_year, 1, 1), date(first_year + 9, 12, 31))

    async def find_recent(self, days: int = 30, limit: int = 50) -> list[AlbumModel]:
        """Released within the last ``days`` days (future releases excluded)."""
        today = date.today()
        return await self.find_many(
            QueryOptions(
                where=[
                    AlbumModel.release_date >= today - timedelta(days=days),
                    AlbumModel.release_date <= today,
                ],
                order_by=[AlbumModel.release_date.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_record_label(self, label: str) -> list[AlbumModel]:
        return await self.find_many(
            QueryOptions(
                where=[AlbumModel.record_label.icontains(label.strip(), autoescape=True)],
                order_by=[AlbumModel.release_date.desc().nulls_last()],
            )
        )

    async def search(self, query: str, limit: int = 20) -> list[AlbumModel]:
        """Title, description, label or genre contains ``query``."""
        q = query.strip()
        return await self.find_many(
            QueryOptions(
                where=[
                    or_(
                        AlbumModel.title.icontains(q, autoescape=True),
                        AlbumModel.description.icontains(q, autoescape=True),
                        AlbumModel.record_label.icontains(q, autoescape=True),
                        AlbumModel.genres.icontains(q, autoescape=True),
                    )
                ],
                order_by=[AlbumModel.title],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_artist(self, artist_id: str) -> list[AlbumModel]:
        stmt = (
            select(AlbumModel)
            .join(AlbumArtistModel, AlbumArtistModel.album_id == AlbumModel.id)
            .where(AlbumArtistModel.artist_id == artist_id)
            .order_by(AlbumModel.release_date.desc().nulls_last())
        )
        with translate_store_errors(self.entity_name, "find_by_artist"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_similar(self, album_id: str, limit: int = 10) -> list[AlbumModel]:
        album = await self.get(album_id)
        genres = album.genre_list
        if not genres:
            return []
        return await self.find_many(
            QueryOptions(
                where=[AlbumModel.id != album_id, self.genre_filter(AlbumModel.genres, genres)],
                order_by=[AlbumModel.release_date.desc().nulls_last()],
                take=self.validate_limit(limit),
            )
        )

    async def find_top_by_genre(self, genre: str, limit: int = 10) -> list[tuple[AlbumModel, int]]:
        """Albums of a genre ranked by the summed play count of their songs."""
        self.validate_limit(limit)
        plays = func.coalesce(func.sum(SongModel.play_count), 0).label("plays")
        stmt = (
            select(AlbumModel, plays)
            .outerjoin(SongModel, SongModel.album_id == AlbumModel.id)
            .where(self.genre_filter(AlbumModel.genres, [genre]))
            .group_by(AlbumModel.id)
            .order_by(plays.desc(), AlbumModel.title)
            .limit(limit)
        )
        with translate_store_errors(self.entity_name, "find_top_by_genre"):
            result = await self.session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]

    async def get_album_songs(self, album_id: str) -> list[SongModel]:
        """Songs of an album in disc, then track order."""
        stmt = (
            select(SongModel)
            .where(SongModel.album_id == album_id)
            .order_by(SongModel.disc_number, SongModel.song_number)
        )
        with translate_store_errors(self.entity_name, "get_album_songs"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def calculate_album_duration(self, album_id: str) -> int:
        stmt = select(func.coalesce(func.sum(SongModel.duration_seconds), 0)).where(
            SongModel.album_id == album_id
        )
        with translate_store_errors(self.entity_name, "calculate_album_duration"):
            result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def count_by_type(self, album_type: str) -> int:
        parsed = AlbumType.parse(album_type, "album_type")
        return await self.count(AlbumModel.album_type == parsed.value)

    async def count_by_genre(self, genre: str) -> int:
        return await self.count(self.genre_filter(AlbumModel.genres, [genre]))

    async def count_by_year(self, year: int) -> int:
        return await self.count(extract("year", AlbumModel.release_date) == year)

    # ------------------------------------------------------------------ updates

    async def update_details(self, album_id: str, data: Mapping[str, Any]) -> AlbumModel:
        unknown = set(data) - _DETAIL_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationException(f"Field '{field}' cannot be updated here", field=field)
        if "title" in data and not str(data["title"] or "").strip():
            raise ValidationException("Album title is required", field="title")
        return await self.update(album_id, data)

    async def update_release_date(self, album_id: str, release_date: date | None) -> AlbumModel:
        return await self.update(album_id, {"release_date": release_date})

    # Hey future me - parse() raises BEFORE update() runs, so an invalid type never
    # touches the row. Tests rely on the stored album_type being unchanged afterwards.
    async def update_album_type(self, album_id: str, album_type: str) -> AlbumModel:
        parsed = AlbumType.parse(album_type, "album_type")
        return await self.update(album_id, {"album_type": parsed.value})

    async def update_album_stats(
        self, album_id: str, total_songs: int, duration_seconds: int
    ) -> AlbumModel:
        self.validate_non_negative(
            {"total_songs": total_songs, "duration_seconds": duration_seconds}
        )
        return await self.update(
            album_id, {"total_songs": total_songs, "duration_seconds": duration_seconds}
        )

    async def sync_album_stats(self, album_id: str) -> AlbumModel:
        """Recompute total_songs and duration_seconds from the songs table."""
        await self.get(album_id)
        stmt = select(
            func.count(SongModel.id),
            func.coalesce(func.sum(SongModel.duration_seconds), 0),
        ).where(SongModel.album_id == album_id)
        with translate_store_errors(self.entity_name, "sync_album_stats", entity_id=album_id):
            result = await self.session.execute(stmt)
        total_songs, duration = result.one()
        return await self.update(
            album_id, {"total_songs": int(total_songs), "duration_seconds": int(duration)}
        )

    async def add_artist(
        self, album_id: str, artist_id: str, role: str = ArtistRole.PRIMARY.value
    ) -> AlbumArtistModel:
        """Credit an artist on an album."""
        credit = AlbumArtistModel(
            album_id=album_id,
            artist_id=artist_id,
            role=ArtistRole.parse(role, "role").value,
        )
        self.session.add(credit)
        with translate_store_errors("Album artist", "create", album_id=album_id):
            await self.session.flush()
        return credit

    async def delete_empty_albums_older_than(self, years: int = 50) -> int:
        """Remove song-less albums released more than ``years`` years ago."""
        today = date.today()
        # day clamped to 28 so Feb 29 never lands on a non-leap year
        cutoff = date(today.year - years, today.month, min(today.day, 28))
        return await self.delete_many(
            [AlbumModel.total_songs == 0, AlbumModel.release_date < cutoff]
        )
