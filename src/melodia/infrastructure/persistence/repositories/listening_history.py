"""Listening history repository (append-only play events and their aggregates)."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.domain.value_objects import ArtistRole
from melodia.infrastructure.persistence.errors import translate_store_errors
from melodia.infrastructure.persistence.models import (
    ArtistModel,
    ListeningHistoryModel,
    SongArtistModel,
    SongModel,
    UserModel,
    ensure_utc_aware,
    utc_now,
)
from melodia.infrastructure.persistence.repositories.base import BaseRepository, QueryOptions

logger = logging.getLogger(__name__)


@dataclass
class ListeningStats:
    total_plays: int
    total_play_time: int
    average_play_time: float
    completion_rate: float
    unique_songs: int
    unique_artists: int


@dataclass
class PlayStreaks:
    current_streak: int
    longest_streak: int
    last_play_date: date | None


def longest_run(days: list[date]) -> int:
    """Longest run of consecutive calendar days in an ascending, de-duplicated list."""
    if not days:
        return 0
    best = run = 1
    for previous, current in zip(days, days[1:]):
        run = run + 1 if current - previous == timedelta(days=1) else 1
        best = max(best, run)
    return best


def current_run(days: set[date], today: date) -> int:
    """Consecutive days ending today, or ending yesterday if nothing was played today."""
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


class ListeningHistoryRepository(BaseRepository[ListeningHistoryModel]):
    """Play events per user and song."""

    model = ListeningHistoryModel
    entity_name = "Listening history"

    def _since(self, days: int | None) -> list[Any]:
        if days is None:
            return []
        return [ListeningHistoryModel.played_at >= utc_now() - timedelta(days=days)]

    async def record_play(
        self,
        user_id: str,
        song_id: str,
        play_duration_seconds: int = 0,
        completed: bool = False,
        device_type: str | None = None,
        source: str | None = None,
        source_id: str | None = None,
        played_at: datetime | None = None,
    ) -> ListeningHistoryModel:
        """Append one play event.

        Raises:
            EntityNotFoundException: If the user or song does not exist
            ValidationException: If the play duration is negative
        """
        self.validate_non_negative({"play_duration_seconds": play_duration_seconds})
        if await self.session.get(UserModel, user_id) is None:
            raise EntityNotFoundException("User", user_id)
        if await self.session.get(SongModel, song_id) is None:
            raise EntityNotFoundException("Song", song_id)

        data: dict[str, Any] = {
            "user_id": user_id,
            "song_id": song_id,
            "play_duration_seconds": play_duration_seconds,
            "completed": completed,
            "device_type": device_type,
            "source": source,
            "source_id": source_id,
        }
        if played_at is not None:
            data["played_at"] = played_at
        return await self.create(data)

    # ------------------------------------------------------------------ readers

    async def find_by_user(
        self, user_id: str, skip: int = 0, limit: int = 50
    ) -> list[ListeningHistoryModel]:
        return await self.find_many(
            QueryOptions(
                where=[ListeningHistoryModel.user_id == user_id],
                order_by=[ListeningHistoryModel.played_at.desc()],
                skip=skip,
                take=self.validate_limit(limit),
            )
        )

    async def find_by_song(self, song_id: str, limit: int = 50) -> list[ListeningHistoryModel]:
        return await self.find_many(
            QueryOptions(
                where=[ListeningHistoryModel.song_id == song_id],
                order_by=[ListeningHistoryModel.played_at.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_recent(self, user_id: str, limit: int = 50) -> list[ListeningHistoryModel]:
        """Latest plays of a user with their songs loaded."""
        return await self.find_many(
            QueryOptions(
                where=[ListeningHistoryModel.user_id == user_id],
                order_by=[ListeningHistoryModel.played_at.desc()],
                include=[selectinload(ListeningHistoryModel.song)],
                take=self.validate_limit(limit),
            )
        )

    async def find_completed(self, user_id: str, limit: int = 50) -> list[ListeningHistoryModel]:
        return await self.find_many(
            QueryOptions(
                where=[
                    ListeningHistoryModel.user_id == user_id,
                    ListeningHistoryModel.completed.is_(True),
                ],
                order_by=[ListeningHistoryModel.played_at.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_date_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[ListeningHistoryModel]:
        if start > end:
            raise ValidationException("Start date must not be after end date", field="start_date")
        return await self.find_many(
            QueryOptions(
                where=[
                    ListeningHistoryModel.user_id == user_id,
                    ListeningHistoryModel.played_at >= start,
                    ListeningHistoryModel.played_at <= end,
                ],
                order_by=[ListeningHistoryModel.played_at.desc()],
            )
        )

    async def find_by_device(self, user_id: str, device_type: str) -> list[ListeningHistoryModel]:
        return await self.find_many(
            QueryOptions(
                where=[
                    ListeningHistoryModel.user_id == user_id,
                    ListeningHistoryModel.device_type == device_type,
                ],
                order_by=[ListeningHistoryModel.played_at.desc()],
            )
        )

    async def find_by_source(
        self, user_id: str, source: str, source_id: str | None = None
    ) -> list[ListeningHistoryModel]:
        where = [ListeningHistoryModel.user_id == user_id, ListeningHistoryModel.source == source]
        if source_id is not None:
            where.append(ListeningHistoryModel.source_id == source_id)
        return await self.find_many(
            QueryOptions(where=where, order_by=[ListeningHistoryModel.played_at.desc()])
        )

    # ------------------------------------------------------------------ counts

    async def count_user_plays(self, user_id: str) -> int:
        return await self.count(ListeningHistoryModel.user_id == user_id)

    async def count_song_plays(self, song_id: str) -> int:
        return await self.count(ListeningHistoryModel.song_id == song_id)

    async def count_completed_plays(self, song_id: str) -> int:
        return await self.count(
            ListeningHistoryModel.song_id == song_id,
            ListeningHistoryModel.completed.is_(True),
        )

    # ------------------------------------------------------------------ aggregates

    async def get_user_top_songs(
        self, user_id: str, limit: int = 20, days: int | None = None
    ) -> list[tuple[SongModel, int]]:
        """Most completed plays per song for a user, optionally within the last ``days``."""
        self.validate_limit(limit)
        plays = func.count(ListeningHistoryModel.id).label("plays")
        stmt = (
            select(SongModel, plays)
            .join(ListeningHistoryModel, ListeningHistoryModel.song_id == SongModel.id)
            .where(
                ListeningHistoryModel.user_id == user_id,
                ListeningHistoryModel.completed.is_(True),
                *self._since(days),
            )
            .group_by(SongModel.id)
            .order_by(plays.desc(), SongModel.title)
            .limit(limit)
        )
        with translate_store_errors(self.entity_name, "get_user_top_songs", user_id=user_id):
            result = await self.session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]

    async def get_user_top_artists(
        self, user_id: str, limit: int = 20, days: int | None = None
    ) -> list[tuple[ArtistModel, int]]:
        """Most completed plays per primary artist for a user."""
        self.validate_limit(limit)
        plays = func.count(ListeningHistoryModel.id).label("plays")
        stmt = (
            select(ArtistModel, plays)
            .join(SongArtistModel, SongArtistModel.artist_id == ArtistModel.id)
            .join(ListeningHistoryModel, ListeningHistoryModel.song_id == SongArtistModel.song_id)
            .where(
                SongArtistModel.role == ArtistRole.PRIMARY.value,
                ListeningHistoryModel.user_id == user_id,
                ListeningHistoryModel.completed.is_(True),
                *self._since(days),
            )
            .group_by(ArtistModel.id)
            .order_by(plays.desc(), ArtistModel.name)
            .limit(limit)
        )
        with translate_store_errors(self.entity_name, "get_user_top_artists", user_id=user_id):
            result = await self.session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]

    async def get_user_listening_stats(
        self, user_id: str, days: int | None = None
    ) -> ListeningStats:
        """Totals for a user; ``completion_rate`` is a percentage."""
        where = [ListeningHistoryModel.user_id == user_id, *self._since(days)]
        totals_stmt = select(
            func.count(ListeningHistoryModel.id),
            func.coalesce(func.sum(ListeningHistoryModel.play_duration_seconds), 0),
            func.avg(ListeningHistoryModel.play_duration_seconds),
            func.count(func.distinct(ListeningHistoryModel.song_id)),
        ).where(*where)
        artists_stmt = (
            select(func.count(func.distinct(SongArtistModel.artist_id)))
            .select_from(ListeningHistoryModel)
            .join(SongArtistModel, SongArtistModel.song_id == ListeningHistoryModel.song_id)
            .where(SongArtistModel.role == ArtistRole.PRIMARY.value, *where)
        )

        # One AsyncSession = one connection, so these run one after another.
        with translate_store_errors(self.entity_name, "get_user_listening_stats", user_id=user_id):
            totals = (await self.session.execute(totals_stmt)).one()
            unique_artists = (await self.session.execute(artists_stmt)).scalar_one()
        completed = await self.count(ListeningHistoryModel.completed.is_(True), *where)

        total, play_time, average, unique_songs = totals
        total = int(total)
        return ListeningStats(
            total_plays=total,
            total_play_time=int(play_time),
            average_play_time=round(float(average), 2) if average is not None else 0.0,
            completion_rate=round(completed / total * 100, 2) if total else 0.0,
            unique_songs=int(unique_songs),
            unique_artists=int(unique_artists),
        )

    # Hey future me - a streak counts calendar days (UTC) with at least one COMPLETED play.
    # If the latest play was yesterday the streak is still alive and counts back from
    # yesterday; counting back from today would report 0 until the user plays again.
    async def get_play_streaks(self, user_id: str, today: date | None = None) -> PlayStreaks:
        stmt = (
            select(ListeningHistoryModel.played_at)
            .where(
                ListeningHistoryModel.user_id == user_id,
                ListeningHistoryModel.completed.is_(True),
            )
            .order_by(ListeningHistoryModel.played_at.desc())
        )
        with translate_store_errors(self.entity_name, "get_play_streaks", user_id=user_id):
            result = await self.session.execute(stmt)
        played = [ensure_utc_aware(value) for value in result.scalars().all()]
        if not played:
            return PlayStreaks(current_streak=0, longest_streak=0, last_play_date=None)

        days = sorted({value.date() for value in played})
        return PlayStreaks(
            current_streak=current_run(set(days), today or utc_now().date()),
            longest_streak=longest_run(days),
            last_play_date=played[0].date(),
        )

    # ------------------------------------------------------------------ cleanup

    async def delete_older_than(self, days: int = 365) -> int:
        cutoff = utc_now() - timedelta(days=days)
        return await self.delete_many([ListeningHistoryModel.played_at < cutoff])

    async def delete_user_history(self, user_id: str) -> int:
        return await self.delete_many([ListeningHistoryModel.user_id == user_id])
