"""Playlist repository with song ordering.

Hey future me - the ONE invariant this module owns: for every playlist, the
positions of its playlist_songs rows are exactly 1..N with N = number of rows.

- add:     new row goes to position N + 1
- remove:  delete the row, then shift every trailing row down by one
- reorder: caller supplies a position for every song; must be a permutation of 1..N,
           applied as ONE UPDATE ... CASE statement
- shuffle / duplicate: always write 1..N

Bulk UPDATEs bypass the identity map, so every read of playlist_songs here uses
populate_existing to avoid stale positions.
"""

import logging
import random
from collections.abc import Iterable, Mapping, Sequence
from datetime import timedelta
from typing import Any

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.orm import selectinload

from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.infrastructure.persistence.errors import translate_store_errors
from melodia.infrastructure.persistence.models import (
    PlaylistModel,
    PlaylistSongModel,
    SongModel,
    utc_now,
)
from melodia.infrastructure.persistence.repositories.base import BaseRepository, QueryOptions

logger = logging.getLogger(__name__)

_DETAIL_FIELDS = frozenset({"name", "description", "cover_image_url"})


class PlaylistRepository(BaseRepository[PlaylistModel]):
    """Playlists and their ordered songs."""

    model = PlaylistModel
    entity_name = "Playlist"

    async def create(self, data: Mapping[str, Any]) -> PlaylistModel:
        if not str(data.get("name") or "").strip():
            raise ValidationException("Playlist name is required", field="name")
        if not data.get("user_id"):
            raise ValidationException("Playlist owner is required", field="user_id")
        return await super().create({**data, "total_songs": 0, "total_duration_seconds": 0})

    # ------------------------------------------------------------------ finders

    async def find_by_user(self, user_id: str) -> list[PlaylistModel]:
        return await self.find_many(
            QueryOptions(
                where=[PlaylistModel.user_id == user_id],
                order_by=[PlaylistModel.updated_at.desc()],
            )
        )

    async def find_public(self, limit: int = 50) -> list[PlaylistModel]:
        return await self.find_many(
            QueryOptions(
                where=[PlaylistModel.is_public.is_(True)],
                order_by=[PlaylistModel.updated_at.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_collaborative(self, limit: int = 50) -> list[PlaylistModel]:
        return await self.find_many(
            QueryOptions(
                where=[PlaylistModel.is_collaborative.is_(True)],
                order_by=[PlaylistModel.updated_at.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_by_name(self, name: str, user_id: str | None = None) -> list[PlaylistModel]:
        where = [PlaylistModel.name.icontains(name.strip(), autoescape=True)]
        if user_id is not None:
            where.append(PlaylistModel.user_id == user_id)
        return await self.find_many(QueryOptions(where=where, order_by=[PlaylistModel.name]))

    async def find_recent(self, days: int = 30, limit: int = 50) -> list[PlaylistModel]:
        since = utc_now() - timedelta(days=days)
        return await self.find_many(
            QueryOptions(
                where=[PlaylistModel.is_public.is_(True), PlaylistModel.created_at >= since],
                order_by=[PlaylistModel.created_at.desc()],
                take=self.validate_limit(limit),
            )
        )

    async def find_popular(self, limit: int = 20) -> list[PlaylistModel]:
        """Public playlists with the most songs."""
        return await self.find_many(
            QueryOptions(
                where=[PlaylistModel.is_public.is_(True)],
                order_by=[PlaylistModel.total_songs.desc(), PlaylistModel.name],
                take=self.validate_limit(limit),
            )
        )

    async def search(self, query: str, limit: int = 20) -> list[PlaylistModel]:
        """Public playlists whose name or description contains ``query``."""
        q = query.strip()
        return await self.find_many(
            QueryOptions(
                where=[
                    PlaylistModel.is_public.is_(True),
                    or_(
                        PlaylistModel.name.icontains(q, autoescape=True),
                        PlaylistModel.description.icontains(q, autoescape=True),
                    ),
                ],
                order_by=[PlaylistModel.name],
                take=self.validate_limit(limit),
            )
        )

    async def get_playlists_by_song(self, song_id: str) -> list[PlaylistModel]:
        stmt = (
            select(PlaylistModel)
            .join(PlaylistSongModel, PlaylistSongModel.playlist_id == PlaylistModel.id)
            .where(PlaylistSongModel.song_id == song_id)
            .order_by(PlaylistModel.name)
        )
        with translate_store_errors(self.entity_name, "get_playlists_by_song"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_user(self, user_id: str) -> int:
        return await self.count(PlaylistModel.user_id == user_id)

    async def count_public(self) -> int:
        return await self.count(PlaylistModel.is_public.is_(True))

    # ------------------------------------------------------------------ updates

    async def update_details(self, playlist_id: str, data: Mapping[str, Any]) -> PlaylistModel:
        unknown = set(data) - _DETAIL_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise ValidationException(f"Field '{field}' cannot be updated here", field=field)
        if "name" in data and not str(data["name"] or "").strip():
            raise ValidationException("Playlist name is required", field="name")
        return await self.update(playlist_id, data)

    async def update_visibility(self, playlist_id: str, is_public: bool) -> PlaylistModel:
        return await self.update(playlist_id, {"is_public": is_public})

    async def update_collaborative(self, playlist_id: str, is_collaborative: bool) -> PlaylistModel:
        return await self.update(playlist_id, {"is_collaborative": is_collaborative})

    async def update_playlist_stats(
        self, playlist_id: str, total_songs: int, total_duration_seconds: int
    ) -> PlaylistModel:
        self.validate_non_negative(
            {"total_songs": total_songs, "total_duration_seconds": total_duration_seconds}
        )
        return await self.update(
            playlist_id,
            {"total_songs": total_songs, "total_duration_seconds": total_duration_seconds},
        )

    async def sync_playlist_stats(self, playlist_id: str) -> PlaylistModel:
        """Recompute total_songs / total_duration_seconds from playlist_songs."""
        stmt = (
            select(
                func.count(PlaylistSongModel.song_id),
                func.coalesce(func.sum(SongModel.duration_seconds), 0),
            )
            .select_from(PlaylistSongModel)
            .join(SongModel, SongModel.id == PlaylistSongModel.song_id)
            .where(PlaylistSongModel.playlist_id == playlist_id)
        )
        with translate_store_errors(self.entity_name, "sync_playlist_stats", entity_id=playlist_id):
            result = await self.session.execute(stmt)
        total_songs, duration = result.one()
        return await self.update(
            playlist_id,
            {"total_songs": int(total_songs), "total_duration_seconds": int(duration)},
        )

    # ------------------------------------------------------------------ ordering

    async def _entry(self, playlist_id: str, song_id: str) -> PlaylistSongModel | None:
        stmt = (
            select(PlaylistSongModel)
            .where(
                PlaylistSongModel.playlist_id == playlist_id,
                PlaylistSongModel.song_id == song_id,
            )
            .execution_options(populate_existing=True)
        )
        with translate_store_errors("Playlist song", "find"):
            result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _song_ids_in_order(self, playlist_id: str) -> list[str]:
        stmt = (
            select(PlaylistSongModel.song_id)
            .where(PlaylistSongModel.playlist_id == playlist_id)
            .order_by(PlaylistSongModel.position)
        )
        with translate_store_errors("Playlist song", "find"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _write_positions(self, playlist_id: str, positions: Mapping[str, int]) -> None:
        """Set every row's position in one statement."""
        if not positions:
            return
        stmt = (
            update(PlaylistSongModel)
            .where(PlaylistSongModel.playlist_id == playlist_id)
            .values(position=case(dict(positions), value=PlaylistSongModel.song_id))
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors("Playlist song", "reorder", playlist_id=playlist_id):
            await self.session.execute(stmt)
        await self.update(playlist_id, {"updated_at": utc_now()})

    async def get_playlist_songs(self, playlist_id: str) -> list[PlaylistSongModel]:
        """Entries in position order, each with its song loaded."""
        stmt = (
            select(PlaylistSongModel)
            .where(PlaylistSongModel.playlist_id == playlist_id)
            .options(selectinload(PlaylistSongModel.song))
            .order_by(PlaylistSongModel.position)
            .execution_options(populate_existing=True)
        )
        with translate_store_errors("Playlist song", "find", playlist_id=playlist_id):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_playlist_duration(self, playlist_id: str) -> int:
        stmt = (
            select(func.coalesce(func.sum(SongModel.duration_seconds), 0))
            .select_from(PlaylistSongModel)
            .join(SongModel, SongModel.id == PlaylistSongModel.song_id)
            .where(PlaylistSongModel.playlist_id == playlist_id)
        )
        with translate_store_errors(self.entity_name, "get_playlist_duration"):
            result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def add_song_to_playlist(
        self, playlist_id: str, song_id: str, added_by: str | None = None
    ) -> PlaylistSongModel:
        """Append a song at position N + 1.

        Raises:
            EntityNotFoundException: If the playlist or song does not exist
            ValidationException: If the song is already in the playlist (field ``song_id``)
        """
        await self.get(playlist_id)
        if await self.session.get(SongModel, song_id) is None:
            raise EntityNotFoundException("Song", song_id)
        if await self._entry(playlist_id, song_id) is not None:
            raise ValidationException("Song already exists in playlist", field="song_id")

        count = await self.session.scalar(
            select(func.count())
            .select_from(PlaylistSongModel)
            .where(PlaylistSongModel.playlist_id == playlist_id)
        )
        entry = PlaylistSongModel(
            playlist_id=playlist_id,
            song_id=song_id,
            position=int(count or 0) + 1,
            added_by=added_by,
        )
        self.session.add(entry)
        with translate_store_errors("Playlist song", "create", playlist_id=playlist_id):
            await self.session.flush()

        logger.info(
            "Added song to playlist",
            extra={"playlist_id": playlist_id, "song_id": song_id, "position": entry.position},
        )
        await self.sync_playlist_stats(playlist_id)
        return entry

    async def remove_song_from_playlist(self, playlist_id: str, song_id: str) -> None:
        """Remove a song and close the gap it leaves.

        Raises:
            EntityNotFoundException: If the song is not in the playlist
        """
        entry = await self._entry(playlist_id, song_id)
        if entry is None:
            raise EntityNotFoundException("Song in playlist", f"{playlist_id}:{song_id}")
        removed_position = entry.position

        with translate_store_errors("Playlist song", "delete", playlist_id=playlist_id):
            await self.session.delete(entry)
            await self.session.flush()
            await self.session.execute(
                update(PlaylistSongModel)
                .where(
                    PlaylistSongModel.playlist_id == playlist_id,
                    PlaylistSongModel.position > removed_position,
                )
                .values(position=PlaylistSongModel.position - 1)
                .execution_options(synchronize_session=False)
            )

        logger.info(
            "Removed song from playlist",
            extra={"playlist_id": playlist_id, "song_id": song_id, "position": removed_position},
        )
        await self.sync_playlist_stats(playlist_id)

    async def reorder_playlist_songs(
        self, playlist_id: str, order: Mapping[str, int] | Iterable[tuple[str, int]]
    ) -> list[PlaylistSongModel]:
        """Apply a complete new ordering.

        Args:
            playlist_id: Playlist to reorder
            order: ``{song_id: position}`` (or pairs) covering EVERY song in the playlist

        Raises:
            ValidationException: If songs are missing/unknown/repeated (field ``song_id``)
                or positions are not exactly 1..N (field ``positions``)
        """
        await self.get(playlist_id)
        pairs = list(order.items()) if isinstance(order, Mapping) else list(order)
        song_ids = [song_id for song_id, _ in pairs]
        current = await self._song_ids_in_order(playlist_id)

        if len(set(song_ids)) != len(song_ids) or set(song_ids) != set(current):
            raise ValidationException(
                "Reorder must list every song of the playlist exactly once", field="song_id"
            )
        positions = sorted(position for _, position in pairs)
        if positions != list(range(1, len(pairs) + 1)):
            raise ValidationException(
                "Positions must be sequential starting from 1", field="positions"
            )

        await self._write_positions(playlist_id, dict(pairs))
        logger.info(
            "Reordered playlist", extra={"playlist_id": playlist_id, "song_count": len(pairs)}
        )
        return await self.get_playlist_songs(playlist_id)

    async def shuffle_playlist(
        self, playlist_id: str, rng: random.Random | None = None
    ) -> list[PlaylistSongModel]:
        await self.get(playlist_id)
        song_ids = await self._song_ids_in_order(playlist_id)
        (rng or random).shuffle(song_ids)
        await self._write_positions(
            playlist_id, {song_id: index for index, song_id in enumerate(song_ids, start=1)}
        )
        return await self.get_playlist_songs(playlist_id)

    async def duplicate_playlist(
        self, playlist_id: str, new_name: str, new_user_id: str | None = None
    ) -> PlaylistModel:
        """Copy a playlist (private, non-collaborative) with the same song order."""
        source = await self.get(playlist_id)
        copy = await self.create(
            {
                "user_id": new_user_id or source.user_id,
                "name": new_name,
                "description": source.description,
                "cover_image_url": source.cover_image_url,
                "is_public": False,
                "is_collaborative": False,
            }
        )
        song_ids = await self._song_ids_in_order(playlist_id)
        self.session.add_all(
            PlaylistSongModel(
                playlist_id=copy.id,
                song_id=song_id,
                position=index,
                added_by=new_user_id or source.user_id,
            )
            for index, song_id in enumerate(song_ids, start=1)
        )
        with translate_store_errors("Playlist song", "create", playlist_id=copy.id):
            await self.session.flush()
        return await self.sync_playlist_stats(copy.id)

    async def clear_playlist(self, playlist_id: str) -> int:
        """Remove every song; returns how many were removed."""
        await self.get(playlist_id)
        with translate_store_errors("Playlist song", "delete_many", playlist_id=playlist_id):
            result = await self.session.execute(
                delete(PlaylistSongModel)
                .where(PlaylistSongModel.playlist_id == playlist_id)
                .execution_options(synchronize_session=False)
            )
        await self.sync_playlist_stats(playlist_id)
        return int(result.rowcount)  # type: ignore[attr-defined]

    async def renumber_playlist(self, playlist_id: str) -> PlaylistModel:
        """Rewrite positions as 1..N in their current order, then resync the totals."""
        song_ids = await self._song_ids_in_order(playlist_id)
        await self._write_positions(
            playlist_id, {song_id: index for index, song_id in enumerate(song_ids, start=1)}
        )
        return await self.sync_playlist_stats(playlist_id)

    # Hey future me - playlist_songs.song_id cascades in the database, but a cascade
    # cannot close the gap it leaves. Anything that hard-deletes songs (one, an album's
    # worth, or a cleanup batch) calls this FIRST so the survivors stay at 1..N.
    async def detach_songs(self, song_ids: Sequence[str]) -> list[str]:
        """Take songs out of every playlist holding them and renumber those playlists.

        Returns:
            Ids of the playlists that changed
        """
        if not song_ids:
            return []
        stmt = (
            select(PlaylistSongModel.playlist_id)
            .where(PlaylistSongModel.song_id.in_(song_ids))
            .distinct()
        )
        with translate_store_errors("Playlist song", "detach", song_count=len(song_ids)):
            playlist_ids = list((await self.session.execute(stmt)).scalars().all())
            if not playlist_ids:
                return []
            await self.session.execute(
                delete(PlaylistSongModel)
                .where(PlaylistSongModel.song_id.in_(song_ids))
                .execution_options(synchronize_session="fetch")
            )

        for playlist_id in playlist_ids:
            await self.renumber_playlist(playlist_id)
        logger.info(
            "Detached songs from playlists",
            extra={"song_count": len(song_ids), "playlist_count": len(playlist_ids)},
        )
        return playlist_ids

    # ------------------------------------------------------------------ cleanup

    async def delete_empty_playlists(self, older_than_days: int = 0) -> int:
        cutoff = utc_now() - timedelta(days=older_than_days)
        return await self.delete_many(
            [PlaylistModel.total_songs == 0, PlaylistModel.created_at <= cutoff]
        )

    async def delete_user_playlists(self, user_id: str) -> int:
        return await self.delete_many([PlaylistModel.user_id == user_id])

    async def positions(self, playlist_id: str) -> list[int]:
        """Current positions in order (diagnostics and tests)."""
        stmt = (
            select(PlaylistSongModel.position)
            .where(PlaylistSongModel.playlist_id == playlist_id)
            .order_by(PlaylistSongModel.position)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def song_ids(self, playlist_id: str) -> Sequence[str]:
        return await self._song_ids_in_order(playlist_id)
