"""Generic async repository over one ORM model.

Every per-entity repository subclasses ``BaseRepository[Model]`` and gets the
CRUD surface for free: create / create_many / find_unique / find_first /
find_many / find_many_paginated / count / exists / update / update_many /
delete / delete_many.

Repositories never commit. They stage work on the injected AsyncSession and
``flush()`` so database errors surface inside the call that caused them; the
caller's ``Database.session_scope()`` decides commit vs rollback.
"""

import json
import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.infrastructure.persistence.errors import translate_store_errors
from melodia.infrastructure.persistence.models import Base, encode_genres

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)
T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


@dataclass
class QueryOptions:
    """Filter / ordering / eager-loading / paging knobs for the find_* methods.

    ``where`` holds SQLAlchemy boolean expressions (ANDed together), ``include``
    holds loader options such as ``selectinload(AlbumModel.songs)``. ``skip`` and
    ``take`` are raw offset/limit for find_many; ``page``/``limit`` are only read
    by find_many_paginated.
    """

    where: Sequence[ColumnElement[bool]] = ()
    order_by: Sequence[Any] = ()
    include: Sequence[Any] = ()
    skip: int | None = None
    take: int | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT


@dataclass
class PaginatedResult(Generic[T]):
    """One page of rows plus the numbers a pager needs."""

    data: list[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, data: list[T], total: int, page: int, limit: int) -> "PaginatedResult[T]":
        total_pages = math.ceil(total / limit) if total else 0
        return cls(
            data=data,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class BaseRepository(Generic[ModelT]):
    """CRUD over ``model`` with store errors translated to domain exceptions."""

    model: ClassVar[type[Base]]
    entity_name: ClassVar[str] = "Entity"
    # Columns holding JSON-encoded lists; list values passed in are encoded on write.
    json_columns: ClassVar[tuple[str, ...]] = ()

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------------------------------------------------------ helpers

    def _prepare(self, data: Mapping[str, Any]) -> dict[str, Any]:
        values = dict(data)
        for column in self.json_columns:
            if column in values and isinstance(values[column], (list, tuple)):
                values[column] = encode_genres(values[column])
        return values

    def _apply(self, stmt: Select[Any], options: QueryOptions | None) -> Select[Any]:
        if options is None:
            return stmt
        if options.where:
            stmt = stmt.where(*options.where)
        if options.order_by:
            stmt = stmt.order_by(*options.order_by)
        if options.include:
            stmt = stmt.options(*options.include)
        if options.skip is not None:
            stmt = stmt.offset(options.skip)
        if options.take is not None:
            stmt = stmt.limit(options.take)
        return stmt

    @staticmethod
    def genre_filter(column: Any, genres: Sequence[str]) -> ColumnElement[bool]:
        """Row has ANY of ``genres`` in its JSON-encoded genre column."""
        return or_(*(column.contains(json.dumps(g), autoescape=True) for g in genres))

    @staticmethod
    def validate_limit(limit: int, field_name: str = "limit") -> int:
        if limit < 1:
            raise ValidationException("Limit must be at least 1", field=field_name)
        return limit

    @staticmethod
    def validate_non_negative(values: Mapping[str, int | None]) -> None:
        """Reject negative counters/durations before they reach the store."""
        for name, value in values.items():
            if value is not None and value < 0:
                raise ValidationException(
                    f"{name.replace('_', ' ').capitalize()} cannot be negative", field=name
                )

    # ------------------------------------------------------------------ create

    async def create(self, data: Mapping[str, Any]) -> ModelT:
        """Insert one row and return it (defaults populated)."""
        row = self.model(**self._prepare(data))
        self.session.add(row)
        with translate_store_errors(self.entity_name, "create"):
            await self.session.flush()
        logger.info(
            "Created %s",
            self.entity_name,
            extra={"entity_type": self.entity_name, "entity_id": getattr(row, "id", None)},
        )
        return row  # type: ignore[return-value]

    async def create_many(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert many rows in one flush; returns how many were staged."""
        if not rows:
            return 0
        models = [self.model(**self._prepare(data)) for data in rows]
        self.session.add_all(models)
        with translate_store_errors(self.entity_name, "create_many", count=len(models)):
            await self.session.flush()
        logger.info(
            "Created %d %s rows",
            len(models),
            self.entity_name,
            extra={"entity_type": self.entity_name, "count": len(models)},
        )
        return len(models)

    # ------------------------------------------------------------------ read

    async def find_unique(
        self, entity_id: str, options: QueryOptions | None = None
    ) -> ModelT | None:
        # populate_existing: counters may have moved through a bulk UPDATE since the last load
        stmt = (
            select(self.model)
            .where(self.model.id == entity_id)  # type: ignore[attr-defined]
            .execution_options(populate_existing=True)
        )
        if options is not None and options.include:
            stmt = stmt.options(*options.include)
        with translate_store_errors(self.entity_name, "find_unique"):
            result = await self.session.execute(stmt)
        return result.scalar_one_or_none()  # type: ignore[no-any-return]

    async def get(self, entity_id: str, options: QueryOptions | None = None) -> ModelT:
        """Like find_unique, but a missing row is an EntityNotFoundException."""
        row = await self.find_unique(entity_id, options)
        if row is None:
            raise EntityNotFoundException(self.entity_name, entity_id)
        return row

    async def find_first(self, options: QueryOptions | None = None) -> ModelT | None:
        stmt = self._apply(select(self.model), options).limit(1)
        with translate_store_errors(self.entity_name, "find_first"):
            result = await self.session.execute(stmt)
        return result.scalars().first()  # type: ignore[no-any-return]

    async def find_many(self, options: QueryOptions | None = None) -> list[ModelT]:
        stmt = self._apply(select(self.model), options)
        with translate_store_errors(self.entity_name, "find_many"):
            result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_many_paginated(
        self, options: QueryOptions | None = None
    ) -> PaginatedResult[ModelT]:
        """Return one page; ``total_pages = ceil(total / limit)``.

        Raises:
            ValidationException: If page or limit is below 1
        """
        options = options or QueryOptions()
        if options.page < 1:
            raise ValidationException("Page must be at least 1", field="page")
        self.validate_limit(options.limit)

        total = await self.count(*options.where)
        page_options = QueryOptions(
            where=options.where,
            order_by=options.order_by,
            include=options.include,
            skip=(options.page - 1) * options.limit,
            take=options.limit,
        )
        data = await self.find_many(page_options)
        return PaginatedResult.build(data, total, options.page, options.limit)

    async def count(self, *where: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(self.model)
        if where:
            stmt = stmt.where(*where)
        with translate_store_errors(self.entity_name, "count"):
            result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def exists(self, entity_id: str) -> bool:
        id_column = self.model.id  # type: ignore[attr-defined]
        stmt = select(id_column).where(id_column == entity_id).limit(1)
        with translate_store_errors(self.entity_name, "exists"):
            result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    # ------------------------------------------------------------------ update

    async def update(self, entity_id: str, data: Mapping[str, Any]) -> ModelT:
        """Update one row by id and return the fresh row.

        Raises:
            EntityNotFoundException: If no row has this id
        """
        values = self._prepare(data)
        if not values:
            return await self.get(entity_id)

        stmt = (
            update(self.model)
            .where(self.model.id == entity_id)  # type: ignore[attr-defined]
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors(self.entity_name, "update", entity_id=entity_id):
            result = await self.session.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise EntityNotFoundException(self.entity_name, entity_id)

        logger.info(
            "Updated %s",
            self.entity_name,
            extra={
                "entity_type": self.entity_name,
                "entity_id": entity_id,
                "fields": sorted(values),
            },
        )
        return await self._reload(entity_id)

    async def update_many(
        self, where: Sequence[ColumnElement[bool]], data: Mapping[str, Any]
    ) -> int:
        """Update every row matching ``where``; returns the affected row count."""
        stmt = (
            update(self.model)
            .where(*where)
            .values(**self._prepare(data))
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors(self.entity_name, "update_many"):
            result = await self.session.execute(stmt)
        count = int(result.rowcount)  # type: ignore[attr-defined]
        logger.info(
            "Updated %d %s rows",
            count,
            self.entity_name,
            extra={"entity_type": self.entity_name, "count": count},
        )
        return count

    async def _reload(self, entity_id: str) -> ModelT:
        # populate_existing: the identity map may hold a stale copy from before a bulk UPDATE
        row = await self.session.get(self.model, entity_id, populate_existing=True)
        if row is None:
            raise EntityNotFoundException(self.entity_name, entity_id)
        return row  # type: ignore[return-value]

    # ------------------------------------------------------------------ delete

    async def delete(self, entity_id: str) -> ModelT:
        """Delete one row by id; returns the row as it was before deletion.

        Raises:
            EntityNotFoundException: If no row has this id
        """
        row = await self.get(entity_id)
        with translate_store_errors(self.entity_name, "delete", entity_id=entity_id):
            await self.session.delete(row)
            await self.session.flush()
        logger.info(
            "Deleted %s",
            self.entity_name,
            extra={"entity_type": self.entity_name, "entity_id": entity_id},
        )
        return row

    async def delete_many(self, where: Sequence[ColumnElement[bool]]) -> int:
        """Delete every row matching ``where``; returns the affected row count."""
        stmt = delete(self.model).where(*where).execution_options(synchronize_session=False)
        with translate_store_errors(self.entity_name, "delete_many"):
            result = await self.session.execute(stmt)
        count = int(result.rowcount)  # type: ignore[attr-defined]
        logger.info(
            "Deleted %d %s rows",
            count,
            self.entity_name,
            extra={"entity_type": self.entity_name, "count": count},
        )
        return count


class GenreOperationsMixin:
    """Genre list maintenance shared by artists, albums and songs.

    Needs ``get()`` and ``update()`` from BaseRepository.
    """

    async def update_genres(self, entity_id: str, genres: Sequence[str]) -> Any:
        """Replace the genre list.

        Raises:
            ValidationException: If the list is empty (field ``genres``)
        """
        cleaned = [g.strip() for g in genres if g and g.strip()]
        if not cleaned:
            raise ValidationException("At least one genre is required", field="genres")
        # keep first occurrence order, drop duplicates
        unique = list(dict.fromkeys(cleaned))
        return await self.update(entity_id, {"genres": unique})  # type: ignore[attr-defined]

    async def add_genre(self, entity_id: str, genre: str) -> Any:
        """Append a genre; adding one that is already present is a no-op."""
        if not genre or not genre.strip():
            raise ValidationException("Genre cannot be empty", field="genre")
        row = await self.get(entity_id)  # type: ignore[attr-defined]
        current = row.genre_list
        if genre.strip() in current:
            return row
        updated = [*current, genre.strip()]
        return await self.update(entity_id, {"genres": updated})  # type: ignore[attr-defined]

    async def remove_genre(self, entity_id: str, genre: str) -> Any:
        """Remove a genre, refusing to leave the list empty."""
        row = await self.get(entity_id)  # type: ignore[attr-defined]
        current = row.genre_list
        if genre not in current:
            return row
        remaining = [g for g in current if g != genre]
        if not remaining:
            raise ValidationException("Cannot remove the last genre", field="genres")
        return await self.update(entity_id, {"genres": remaining})  # type: ignore[attr-defined]
