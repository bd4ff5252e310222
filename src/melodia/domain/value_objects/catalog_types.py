"""Closed value sets for catalog and user columns.

Hey future me - the store keeps these as plain strings (SQLite has no enum type), so
every write path goes through ``parse()`` first. That is the only place an invalid
album type / tier / role gets rejected, and it happens BEFORE any query runs.
"""

from enum import Enum
from typing import TypeVar

from melodia.domain.exceptions import ValidationException

_E = TypeVar("_E", bound="_ParsableEnum")


class _ParsableEnum(str, Enum):
    """String enum with a validating ``parse`` classmethod."""

    @classmethod
    def parse(cls: type[_E], value: "str | _E", field: str) -> _E:
        """Parse a user-supplied string, case-insensitively.

        Args:
            value: Raw value (or an enum member, returned as-is)
            field: Name reported in the ValidationException

        Raises:
            ValidationException: If the value is not one of the members
        """
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationException(
                f"Invalid {field.replace('_', ' ')} '{value}' (allowed: {allowed})",
                field=field,
            ) from None


class AlbumType(_ParsableEnum):
    """Release category of an album."""

    ALBUM = "album"
    SINGLE = "single"
    EP = "ep"
    COMPILATION = "compilation"


class SubscriptionTier(_ParsableEnum):
    """Paid plan of a user."""

    FREE = "free"
    PREMIUM = "premium"
    FAMILY = "family"


class ArtistRole(_ParsableEnum):
    """Role of an artist on an album or song credit."""

    PRIMARY = "primary"
    FEATURED = "featured"
    PRODUCER = "producer"
    COMPOSER = "composer"
