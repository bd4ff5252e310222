"""Likes, follows and library saves.

All three tables store ``(owner, kind, id)`` rows pointing at different target
tables, so they share one implementation: ``AssociationRepository`` validates
the kind against the table's allowed set, checks that the target exists and
enforces one row per triple. Subclasses only name their columns and add the
domain-specific reads.

Hey future me - there is no FK on the target id column (it points at four
different tables), so the existence check in ``_require_target`` is the only
thing keeping dangling likes out. Deleting a song does NOT delete its likes.
"""

import logging
from datetime import timedelta
from typing import Any, ClassVar

from sqlalchemy import and_, func, or_, select

from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.domain.value_objects import (
    FOLLOWABLE_KINDS,
    LIBRARY_ITEM_KINDS,
    LIKEABLE_KINDS,
    EntityKind,
)
from melodia.infrastructure.persistence.errors import translate_store_errors
from melodia.infrastructure.persistence.models import (
    AlbumModel,
    ArtistModel,
    Base,
    PlaylistModel,
    SongModel,
    UserFollowModel,
    UserLibraryModel,
    UserLikeModel,
    UserModel,
    utc_now,
)
from melodia.infrastructure.persistence.repositories.base import BaseRepository, ModelT
from melodia.infrastructure.persistence.repositories.song import SongRepository

logger = logging.getLogger(__name__)

TARGET_MODELS: dict[EntityKind, type[Base]] = {
    EntityKind.SONG: SongModel,
    EntityKind.ALBUM: AlbumModel,
    EntityKind.PLAYLIST: PlaylistModel,
    EntityKind.ARTIST: ArtistModel,
    EntityKind.USER: UserModel,
}


class AssociationRepository(BaseRepository[ModelT]):
    """Generic ``(owner, kind, id)`` association with uniqueness and toggle."""

    owner_column: ClassVar[str]
    # "likeable" -> likeable_type / likeable_id, also used as ValidationException field prefix
    target_prefix: ClassVar[str]
    created_column: ClassVar[str] = "created_at"
    allowed_kinds: ClassVar[frozenset[EntityKind]]
    duplicate_message: ClassVar[str] = "Item already exists"

    # ------------------------------------------------------------------ columns

    @property
    def _owner(self) -> Any:
        return getattr(self.model, self.owner_column)

    @property
    def _type(self) -> Any:
        return getattr(self.model, f"{self.target_prefix}_type")

    @property
    def _target_id(self) -> Any:
        return getattr(self.model, f"{self.target_prefix}_id")

    @property
    def _created(self) -> Any:
        return getattr(self.model, self.created_column)

    def _parse_kind(self, kind: "str | EntityKind") -> EntityKind:
        return EntityKind.parse(kind, f"{self.target_prefix}_type", self.allowed_kinds)

    async def _require_target(self, kind: EntityKind, target_id: str) -> None:
        if not target_id or not str(target_id).strip():
            raise ValidationException(
                "Target id is required", field=f"{self.target_prefix}_id"
            )
        if await self.session.get(TARGET_MODELS[kind], target_id) is None:
            raise EntityNotFoundException(kind.value.title(), target_id)

    async def _find(self, owner_id: str, kind: EntityKind, target_id: str) -> ModelT | None:
        stmt = select(self.model).where(
            self._owner == owner_id, self._type == kind.value, self._target_id == target_id
        )
        with translate_store_errors(self.entity_name, "find", owner_id=owner_id):
            result = await self.session.execute(stmt)
        return result.scalar_one_or_none()  # type: ignore[no-any-return]

    # ------------------------------------------------------------------ hooks

    async def _validate_associate(
        self, owner_id: str, kind: EntityKind, target_id: str
    ) -> None:
        """Extra rules for a subclass; runs before the duplicate check."""

    async def _after_associate(self, kind: EntityKind, target_id: str) -> None:
        pass

    async def _after_dissociate(self, kind: EntityKind, target_id: str) -> None:
        pass

    # ------------------------------------------------------------------ core

    async def is_associated(
        self, owner_id: str, kind: "str | EntityKind", target_id: str
    ) -> bool:
        return await self._find(owner_id, self._parse_kind(kind), target_id) is not None

    async def associate(
        self, owner_id: str, kind: "str | EntityKind", target_id: str
    ) -> ModelT:
        """Create the row.

        Raises:
            ValidationException: Kind not allowed (``<prefix>_type``) or row already
                present (``<prefix>_id``)
            EntityNotFoundException: Owner or target does not exist
        """
        parsed = self._parse_kind(kind)
        await self._validate_associate(owner_id, parsed, target_id)
        if await self.session.get(UserModel, owner_id) is None:
            raise EntityNotFoundException("User", owner_id)
        await self._require_target(parsed, target_id)
        if await self._find(owner_id, parsed, target_id) is not None:
            raise ValidationException(self.duplicate_message, field=f"{self.target_prefix}_id")

        row = await self.create(
            {
                self.owner_column: owner_id,
                f"{self.target_prefix}_type": parsed.value,
                f"{self.target_prefix}_id": target_id,
            }
        )
        await self._after_associate(parsed, target_id)
        return row

    async def dissociate(self, owner_id: str, kind: "str | EntityKind", target_id: str) -> None:
        """Delete the row.

        Raises:
            EntityNotFoundException: If there is no such row
        """
        parsed = self._parse_kind(kind)
        row = await self._find(owner_id, parsed, target_id)
        if row is None:
            raise EntityNotFoundException(self.entity_name, f"{parsed.value}:{target_id}")
        with translate_store_errors(self.entity_name, "delete", owner_id=owner_id):
            await self.session.delete(row)
            await self.session.flush()
        await self._after_dissociate(parsed, target_id)

    async def toggle(
        self, owner_id: str, kind: "str | EntityKind", target_id: str
    ) -> tuple[bool, ModelT | None]:
        """Flip the association; returns ``(now_associated, row or None)``."""
        parsed = self._parse_kind(kind)
        if await self._find(owner_id, parsed, target_id) is not None:
            await self.dissociate(owner_id, parsed, target_id)
            return False, None
        return True, await self.associate(owner_id, parsed, target_id)

    # ------------------------------------------------------------------ reads

    async def find_by_owner(
        self, owner_id: str, kind: "str | EntityKind | None" = None, limit: int = 50
    ) -> list[ModelT]:
        where = [self._owner == owner_id]
        if kind is not None:
            where.append(self._type == self._parse_kind(kind).value)
        stmt = (
            select(self.model)
            .where(*where)
            .order_by(self._created.desc())
            .limit(self.validate_limit(limit))
        )
        with translate_store_errors(self.entity_name, "find_by_owner", owner_id=owner_id):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def resolve_targets(
        self, owner_id: str, kind: EntityKind, limit: int = 50
    ) -> list[Any]:
        """Target rows (songs, albums, ...) of one kind, most recently associated first."""
        target = TARGET_MODELS[kind]
        stmt = (
            select(target)
            .join(
                self.model,
                and_(
                    self._target_id == target.id,  # type: ignore[attr-defined]
                    self._type == kind.value,
                    self._owner == owner_id,
                ),
            )
            .order_by(self._created.desc())
            .limit(self.validate_limit(limit))
        )
        with translate_store_errors(self.entity_name, "resolve_targets", owner_id=owner_id):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_target(self, kind: "str | EntityKind", target_id: str) -> int:
        parsed = self._parse_kind(kind)
        return await self.count(self._type == parsed.value, self._target_id == target_id)

    async def count_by_kind(self, owner_id: str) -> dict[str, int]:
        """Rows per allowed kind for one owner (missing kinds report 0)."""
        stmt = (
            select(self._type, func.count())
            .where(self._owner == owner_id)
            .group_by(self._type)
        )
        with translate_store_errors(self.entity_name, "count_by_kind", owner_id=owner_id):
            result = await self.session.execute(stmt)
        counts = {kind.value: 0 for kind in sorted(self.allowed_kinds, key=lambda k: k.value)}
        counts.update({kind: int(n) for kind, n in result.all()})
        return counts

    async def delete_by_owner(self, owner_id: str) -> int:
        return await self.delete_many([self._owner == owner_id])


class UserLikesRepository(AssociationRepository[UserLikeModel]):
    """Likes on songs, albums, playlists and artists.

    Liking a song also bumps ``songs.like_count`` in the same unit of work.
    """

    model = UserLikeModel
    entity_name = "Like"
    owner_column = "user_id"
    target_prefix = "likeable"
    allowed_kinds = LIKEABLE_KINDS
    duplicate_message = "Item already liked"

    async def _after_associate(self, kind: EntityKind, target_id: str) -> None:
        if kind is EntityKind.SONG:
            await SongRepository(self.session).adjust_like_count(target_id, 1)

    async def _after_dissociate(self, kind: EntityKind, target_id: str) -> None:
        if kind is EntityKind.SONG:
            await SongRepository(self.session).adjust_like_count(target_id, -1)

    async def is_liked(self, user_id: str, likeable_type: str, likeable_id: str) -> bool:
        return await self.is_associated(user_id, likeable_type, likeable_id)

    async def like_item(self, user_id: str, likeable_type: str, likeable_id: str) -> UserLikeModel:
        return await self.associate(user_id, likeable_type, likeable_id)

    async def unlike_item(self, user_id: str, likeable_type: str, likeable_id: str) -> None:
        await self.dissociate(user_id, likeable_type, likeable_id)

    async def toggle_like(
        self, user_id: str, likeable_type: str, likeable_id: str
    ) -> tuple[bool, UserLikeModel | None]:
        return await self.toggle(user_id, likeable_type, likeable_id)

    async def find_user_likes(
        self, user_id: str, likeable_type: str | None = None, limit: int = 50
    ) -> list[UserLikeModel]:
        return await self.find_by_owner(user_id, likeable_type, limit)

    async def get_liked_songs(self, user_id: str, limit: int = 50) -> list[SongModel]:
        return await self.resolve_targets(user_id, EntityKind.SONG, limit)

    async def get_liked_albums(self, user_id: str, limit: int = 50) -> list[AlbumModel]:
        return await self.resolve_targets(user_id, EntityKind.ALBUM, limit)

    async def get_liked_artists(self, user_id: str, limit: int = 50) -> list[ArtistModel]:
        return await self.resolve_targets(user_id, EntityKind.ARTIST, limit)

    async def get_liked_playlists(self, user_id: str, limit: int = 50) -> list[PlaylistModel]:
        return await self.resolve_targets(user_id, EntityKind.PLAYLIST, limit)

    async def count_likes_for_item(self, likeable_type: str, likeable_id: str) -> int:
        return await self.count_for_target(likeable_type, likeable_id)

    async def get_user_like_stats(self, user_id: str) -> dict[str, int]:
        by_kind = await self.count_by_kind(user_id)
        return {"total_likes": sum(by_kind.values()), **by_kind}

    async def get_popular_items(
        self, likeable_type: str, limit: int = 20, days: int | None = None
    ) -> list[tuple[str, int]]:
        """Most liked ids of one kind as ``(likeable_id, like_count)``."""
        kind = self._parse_kind(likeable_type)
        likes = func.count(UserLikeModel.id).label("likes")
        stmt = (
            select(UserLikeModel.likeable_id, likes)
            .where(UserLikeModel.likeable_type == kind.value)
            .group_by(UserLikeModel.likeable_id)
            .order_by(likes.desc(), UserLikeModel.likeable_id)
            .limit(self.validate_limit(limit))
        )
        if days is not None:
            stmt = stmt.where(UserLikeModel.created_at >= utc_now() - timedelta(days=days))
        with translate_store_errors(self.entity_name, "get_popular_items"):
            result = await self.session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]


class UserFollowsRepository(AssociationRepository[UserFollowModel]):
    """Users following users or artists."""

    model = UserFollowModel
    entity_name = "Follow"
    owner_column = "follower_id"
    target_prefix = "followable"
    allowed_kinds = FOLLOWABLE_KINDS
    duplicate_message = "Already following this item"

    async def _validate_associate(
        self, owner_id: str, kind: EntityKind, target_id: str
    ) -> None:
        if kind is EntityKind.USER and owner_id == target_id:
            raise ValidationException("Cannot follow yourself", field="followable_id")

    async def is_following(
        self, follower_id: str, followable_type: str, followable_id: str
    ) -> bool:
        return await self.is_associated(follower_id, followable_type, followable_id)

    async def follow_item(
        self, follower_id: str, followable_type: str, followable_id: str
    ) -> UserFollowModel:
        return await self.associate(follower_id, followable_type, followable_id)

    async def unfollow_item(
        self, follower_id: str, followable_type: str, followable_id: str
    ) -> None:
        await self.dissociate(follower_id, followable_type, followable_id)

    async def toggle_follow(
        self, follower_id: str, followable_type: str, followable_id: str
    ) -> tuple[bool, UserFollowModel | None]:
        return await self.toggle(follower_id, followable_type, followable_id)

    async def find_user_follows(
        self, follower_id: str, followable_type: str | None = None, limit: int = 50
    ) -> list[UserFollowModel]:
        return await self.find_by_owner(follower_id, followable_type, limit)

    async def get_followed_artists(self, follower_id: str, limit: int = 50) -> list[ArtistModel]:
        return await self.resolve_targets(follower_id, EntityKind.ARTIST, limit)

    async def get_followed_users(self, follower_id: str, limit: int = 50) -> list[UserModel]:
        return await self.resolve_targets(follower_id, EntityKind.USER, limit)

    async def get_followers(
        self, followable_type: str, followable_id: str, limit: int = 50
    ) -> list[UserModel]:
        """Users following a user or an artist, newest follower first."""
        kind = self._parse_kind(followable_type)
        stmt = (
            select(UserModel)
            .join(UserFollowModel, UserFollowModel.follower_id == UserModel.id)
            .where(
                UserFollowModel.followable_type == kind.value,
                UserFollowModel.followable_id == followable_id,
            )
            .order_by(UserFollowModel.created_at.desc())
            .limit(self.validate_limit(limit))
        )
        with translate_store_errors(self.entity_name, "get_followers"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_followers(self, followable_type: str, followable_id: str) -> int:
        return await self.count_for_target(followable_type, followable_id)

    async def get_user_follow_stats(self, user_id: str) -> dict[str, int]:
        by_kind = await self.count_by_kind(user_id)
        return {
            "total_following": sum(by_kind.values()),
            "following_artists": by_kind[EntityKind.ARTIST.value],
            "following_users": by_kind[EntityKind.USER.value],
            "total_followers": await self.count_followers(EntityKind.USER.value, user_id),
        }

    async def get_mutual_follows(self, user_id: str, other_user_id: str) -> dict[str, list[Any]]:
        """Artists and users followed by both users."""
        mutual: dict[str, list[Any]] = {}
        for kind, key in ((EntityKind.ARTIST, "artists"), (EntityKind.USER, "users")):
            theirs = (
                select(UserFollowModel.followable_id)
                .where(
                    UserFollowModel.follower_id == other_user_id,
                    UserFollowModel.followable_type == kind.value,
                )
            )
            target = TARGET_MODELS[kind]
            stmt = (
                select(target)
                .join(
                    UserFollowModel,
                    and_(
                        UserFollowModel.followable_id == target.id,  # type: ignore[attr-defined]
                        UserFollowModel.followable_type == kind.value,
                        UserFollowModel.follower_id == user_id,
                    ),
                )
                .where(target.id.in_(theirs))  # type: ignore[attr-defined]
            )
            with translate_store_errors(self.entity_name, "get_mutual_follows"):
                result = await self.session.execute(stmt)
            mutual[key] = list(result.scalars().all())
        return mutual

    async def get_follow_activity(self, user_id: str, limit: int = 20) -> list[UserFollowModel]:
        """Follows made by the user or targeting the user, newest first."""
        stmt = (
            select(UserFollowModel)
            .where(
                or_(
                    UserFollowModel.follower_id == user_id,
                    and_(
                        UserFollowModel.followable_type == EntityKind.USER.value,
                        UserFollowModel.followable_id == user_id,
                    ),
                )
            )
            .order_by(UserFollowModel.created_at.desc())
            .limit(self.validate_limit(limit))
        )
        with translate_store_errors(self.entity_name, "get_follow_activity", user_id=user_id):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())


class UserLibraryRepository(AssociationRepository[UserLibraryModel]):
    """Items saved to a user's library."""

    model = UserLibraryModel
    entity_name = "Library item"
    owner_column = "user_id"
    target_prefix = "item"
    created_column = "added_at"
    allowed_kinds = LIBRARY_ITEM_KINDS
    duplicate_message = "Item already saved"

    async def is_saved(self, user_id: str, item_type: str, item_id: str) -> bool:
        return await self.is_associated(user_id, item_type, item_id)

    async def save_item(self, user_id: str, item_type: str, item_id: str) -> UserLibraryModel:
        return await self.associate(user_id, item_type, item_id)

    async def unsave_item(self, user_id: str, item_type: str, item_id: str) -> None:
        await self.dissociate(user_id, item_type, item_id)

    async def toggle_save(
        self, user_id: str, item_type: str, item_id: str
    ) -> tuple[bool, UserLibraryModel | None]:
        return await self.toggle(user_id, item_type, item_id)

    async def find_user_library(
        self, user_id: str, item_type: str | None = None, limit: int = 50
    ) -> list[UserLibraryModel]:
        return await self.find_by_owner(user_id, item_type, limit)

    async def get_saved_songs(self, user_id: str, limit: int = 50) -> list[SongModel]:
        return await self.resolve_targets(user_id, EntityKind.SONG, limit)

    async def get_saved_albums(self, user_id: str, limit: int = 50) -> list[AlbumModel]:
        return await self.resolve_targets(user_id, EntityKind.ALBUM, limit)

    async def get_saved_artists(self, user_id: str, limit: int = 50) -> list[ArtistModel]:
        return await self.resolve_targets(user_id, EntityKind.ARTIST, limit)

    async def get_saved_playlists(self, user_id: str, limit: int = 50) -> list[PlaylistModel]:
        return await self.resolve_targets(user_id, EntityKind.PLAYLIST, limit)

    async def get_user_library_stats(self, user_id: str) -> dict[str, int]:
        by_kind = await self.count_by_kind(user_id)
        return {"total_saved": sum(by_kind.values()), **by_kind}

    async def clear_user_library(self, user_id: str) -> int:
        return await self.delete_by_owner(user_id)
