"""Translate SQLAlchemy/driver errors into domain exceptions.

Hey future me - drivers don't give us structured "which column" info, so we
pattern-match the messages. Both SQLite and PostgreSQL are covered:

- SQLite:     "UNIQUE constraint failed: songs.isrc"
              "NOT NULL constraint failed: songs.title"
              "FOREIGN KEY constraint failed"
- PostgreSQL: SQLSTATE 23505 + "Key (isrc)=(USRC17607839) already exists."
              SQLSTATE 23502 + 'null value in column "title"'
              SQLSTATE 23503 + "Key (album_id)=(...) is not present"

Anything we cannot classify becomes RepositoryError with the original chained.
"""

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError

from melodia.domain.exceptions import (
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    RepositoryError,
    ValidationException,
)

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
NOT_NULL_VIOLATION = "23502"
FOREIGN_KEY_VIOLATION = "23503"

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w., ]+)")
_SQLITE_NOT_NULL = re.compile(r"NOT NULL constraint failed: (?P<column>[\w.]+)")
_PG_KEY = re.compile(r"Key \((?P<columns>[^)]+)\)=\((?P<values>.*?)\)")
_PG_NOT_NULL = re.compile(r'null value in column "(?P<column>\w+)"')


def _sqlstate(exc: SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    # asyncpg exposes sqlstate, psycopg exposes pgcode
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def _last_column(columns: str) -> str:
    """'songs.isrc' -> 'isrc'; for composite keys the last column is the discriminating one."""
    last = columns.split(",")[-1].strip()
    return last.rsplit(".", 1)[-1]


def translate_store_error(exc: SQLAlchemyError, entity_type: str) -> DomainException:
    """Map a store exception to the domain taxonomy (does not raise)."""
    message = str(getattr(exc, "orig", None) or exc)
    state = _sqlstate(exc)

    if isinstance(exc, NoResultFound):
        return EntityNotFoundException(entity_type, "unknown")

    if isinstance(exc, IntegrityError):
        if state == UNIQUE_VIOLATION or "UNIQUE constraint failed" in message:
            match = _PG_KEY.search(message)
            if match:
                return DuplicateEntityException(
                    entity_type,
                    field=_last_column(match.group("columns")),
                    value=match.group("values").split(",")[-1].strip(),
                )
            match = _SQLITE_UNIQUE.search(message)
            field = _last_column(match.group("columns")) if match else None
            return DuplicateEntityException(entity_type, field=field)

        if state == NOT_NULL_VIOLATION or "NOT NULL constraint failed" in message:
            match = _SQLITE_NOT_NULL.search(message) or _PG_NOT_NULL.search(message)
            field = _last_column(match.group("column")) if match else None
            return ValidationException(f"{field or 'A required field'} is required", field=field)

        if state == FOREIGN_KEY_VIOLATION or "FOREIGN KEY constraint failed" in message:
            match = _PG_KEY.search(message)
            field = _last_column(match.group("columns")) if match else None
            return ValidationException(
                f"{entity_type} references a row that does not exist", field=field
            )

    return RepositoryError(
        f"Database error while handling {entity_type}: {message}",
        code=state or getattr(exc, "code", None),
        cause=exc,
    )


@contextmanager
def translate_store_errors(
    entity_type: str, operation: str, **context: Any
) -> Iterator[None]:
    """Re-raise store errors raised inside the block as domain exceptions.

    Usage::

        with translate_store_errors("Song", "create"):
            await self.session.flush()
    """
    try:
        yield
    except DomainException:
        raise
    except SQLAlchemyError as e:
        translated = translate_store_error(e, entity_type)
        logger.error(
            "Failed to %s %s: %s",
            operation,
            entity_type,
            translated.message,
            extra={
                "entity_type": entity_type,
                "operation": operation,
                "error_type": type(e).__name__,
                "code": getattr(translated, "code", None) or _sqlstate(e),
                **context,
            },
        )
        raise translated from e
