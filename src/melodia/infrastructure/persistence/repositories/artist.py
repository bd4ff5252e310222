"""Artist repository."""

import logging
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from melodia.domain.exceptions import ValidationException
from melodia.domain.value_objects import ArtistRole, EntityKind
from melodia.infrastructure.persistence.errors import translate_store_errors
from melodia.infrastructure.persistence.models import (
    AlbumArtistModel,
    AlbumModel,
    ArtistModel,
    ListeningHistoryModel,
    SongArtistModel,
    SongModel,
    UserFollowModel,
    utc_now,
)
from melodia.infrastructure.persistence.repositories.base import (
    BaseRepository,
    GenreOperationsMixin,
    QueryOptions,
)

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = frozenset({"name", "bio", "image_url", "banner_url", "country"})


class ArtistRepository(GenreOperationsMixin, BaseRepository[ArtistModel]):
    """Artists, their credits and listener counts."""

    model = ArtistModel
    entity_name = "Artist"
    json_columns = ("genres",)

    async def create(self, data: Mapping[str, Any]) -> ArtistModel:
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValidationException("Artist name is required", field="name")
        return await super().create({**data, "name": name})

    async def find_by_name(self, name: str) -> ArtistModel | None:
        """Exact name match, ignoring case."""
        return await self.find_first(
            QueryOptions(where=[func.lower(ArtistModel.name) == name.strip().lower()])
        )

    async def exists_by_name(self, name: str) -> bool:
        return await self.count(func.lower(ArtistModel.name) == name.strip().lower()) > 0

    async def search(self, query: str, limit: int = 20) -> list[ArtistModel]:
        """Name or bio contains ``query`` (case-insensitive)."""
        self.validate_limit(limit)
        q = query.strip()
        return await self.find_many(
            QueryOptions(
                where=[
                    or_(
                        ArtistModel.name.icontains(q, autoescape=True),
                        ArtistModel.bio.icontains(q, autoescape=True),
                    )
                ],
                order_by=[ArtistModel.monthly_listeners.desc(), ArtistModel.name],
                take=limit,
            )
        )

    async def find_verified(self, limit: int = 50) -> list[ArtistModel]:
        return await self.find_many(
            QueryOptions(
                where=[ArtistModel.verified.is_(True)],
                order_by=[ArtistModel.monthly_listeners.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_genres(self, genres: Sequence[str], limit: int = 50) -> list[ArtistModel]:
        if not genres:
            return []
        return await self.find_many(
            QueryOptions(
                where=[self.genre_filter(ArtistModel.genres, genres)],
                order_by=[ArtistModel.monthly_listeners.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_country(self, country: str, limit: int = 50) -> list[ArtistModel]:
        return await self.find_many(
            QueryOptions(
                where=[func.upper(ArtistModel.country) == country.strip().upper()],
                order_by=[ArtistModel.name],
                take=self.validate_limit(limit),
            )
        )

    async def find_popular(self, limit: int = 20) -> list[ArtistModel]:
        return await self.find_many(
            QueryOptions(
                order_by=[ArtistModel.monthly_listeners.desc(), ArtistModel.name],
                take=self.validate_limit(limit),
            )
        )

    async def find_trending(self, days: int = 7, limit: int = 20) -> list[tuple[ArtistModel, int]]:
        """Artists whose songs (primary credit) were played most in the last ``days``."""
        self.validate_limit(limit)
        since = utc_now() - timedelta(days=days)
        plays = func.count(ListeningHistoryModel.id).label("plays")
        stmt = (
            select(ArtistModel, plays)
            .join(SongArtistModel, SongArtistModel.artist_id == ArtistModel.id)
            .join(ListeningHistoryModel, ListeningHistoryModel.song_id == SongArtistModel.song_id)
            .where(
                SongArtistModel.role == ArtistRole.PRIMARY.value,
                ListeningHistoryModel.played_at >= since,
            )
            .group_by(ArtistModel.id)
            .order_by(plays.desc())
            .limit(limit)
        )
        with translate_store_errors(self.entity_name, "find_trending"):
            result = await self.session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]

    async def find_similar(self, artist_id: str, limit: int = 10) -> list[ArtistModel]:
        """Other artists sharing at least one genre, most listened first."""
        artist = await self.get(artist_id)
        genres = artist.genre_list
        if not genres:
            return []
        return await self.find_many(
            QueryOptions(
                where=[ArtistModel.id != artist_id, self.genre_filter(ArtistModel.genres, genres)],
                order_by=[ArtistModel.monthly_listeners.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def update_profile(self, artist_id: str, data: Mapping[str, Any]) -> ArtistModel:
        unknown = set(data) - _PROFILE_FIELDS
        if unknown:
            raise ValidationException(
                f"Unknown profile fields: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )
        if "name" in data and not str(data["name"] or "").strip():
            raise ValidationException("Artist name is required", field="name")
        return await self.update(artist_id, data)

    async def update_verification_status(self, artist_id: str, verified: bool) -> ArtistModel:
        return await self.update(artist_id, {"verified": verified})

    async def update_monthly_listeners(self, artist_id: str, listeners: int) -> ArtistModel:
        self.validate_non_negative({"monthly_listeners": listeners})
        return await self.update(artist_id, {"monthly_listeners": listeners})

    async def increment_monthly_listeners(self, artist_id: str, increment: int = 1) -> ArtistModel:
        if increment < 0:
            raise ValidationException("Increment cannot be negative", field="increment")
        return await self.update(
            artist_id, {"monthly_listeners": ArtistModel.monthly_listeners + increment}
        )

    async def get_top_songs(self, artist_id: str, limit: int = 10) -> list[SongModel]:
        self.validate_limit(limit)
        stmt = (
            select(SongModel)
            .join(SongArtistModel, SongArtistModel.song_id == SongModel.id)
            .where(SongArtistModel.artist_id == artist_id)
            .order_by(SongModel.play_count.desc(), SongModel.title)
            .limit(limit)
        )
        with translate_store_errors(self.entity_name, "get_top_songs"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_followers(self, artist_id: str) -> int:
        stmt = select(func.count()).select_from(UserFollowModel).where(
            UserFollowModel.followable_type == EntityKind.ARTIST.value,
            UserFollowModel.followable_id == artist_id,
        )
        with translate_store_errors(self.entity_name, "count_followers"):
            result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def get_albums(self, artist_id: str) -> list[AlbumModel]:
        """Albums the artist is credited on, newest release first."""
        stmt = (
            select(AlbumModel)
            .join(AlbumArtistModel, AlbumArtistModel.album_id == AlbumModel.id)
            .where(AlbumArtistModel.artist_id == artist_id)
            .order_by(AlbumModel.release_date.desc().nulls_last(), AlbumModel.title)
        )
        with translate_store_errors(self.entity_name, "get_albums"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_discography(self, artist_id: str) -> dict[str, list[AlbumModel]]:
        """Albums grouped by album type, with their songs loaded."""
        await self.get(artist_id)
        stmt = (
            select(AlbumModel)
            .join(AlbumArtistModel, AlbumArtistModel.album_id == AlbumModel.id)
            .where(AlbumArtistModel.artist_id == artist_id)
            .options(selectinload(AlbumModel.songs))
            .order_by(AlbumModel.release_date.desc().nulls_last(), AlbumModel.title)
        )
        with translate_store_errors(self.entity_name, "get_discography"):
            result = await self.session.execute(stmt)
        grouped: dict[str, list[AlbumModel]] = {}
        for album in result.scalars().all():
            grouped.setdefault(album.album_type, []).append(album)
        return grouped

    async def delete_unverified_older_than(self, days: int) -> int:
        cutoff = utc_now() - timedelta(days=days)
        return await self.delete_many(
            [ArtistModel.verified.is_(False), ArtistModel.created_at < cutoff]
        )
