"""Tagged references used by likes, follows and library saves.

The association tables store ``(kind, id)`` pairs pointing at different tables.
``EntityKind`` is the closed set of kinds; each association accepts a subset of it.
"""

from dataclasses import dataclass
from enum import Enum

from melodia.domain.exceptions import ValidationException


class EntityKind(str, Enum):
    """Kind of entity a polymorphic association row points at."""

    SONG = "song"
    ALBUM = "album"
    PLAYLIST = "playlist"
    ARTIST = "artist"
    USER = "user"

    @classmethod
    def parse(
        cls,
        value: "str | EntityKind",
        field: str,
        allowed: frozenset["EntityKind"] | None = None,
    ) -> "EntityKind":
        """Parse and check a kind against an association's allowed set.

        Raises:
            ValidationException: If the value is unknown or not allowed here
        """
        try:
            kind = value if isinstance(value, cls) else cls(str(value or "").strip().lower())
        except ValueError:
            kind = None
        if kind is None or (allowed is not None and kind not in allowed):
            names = sorted(k.value for k in (allowed or frozenset(cls)))
            raise ValidationException(
                f"Invalid {field.replace('_', ' ')} '{value}' (allowed: {', '.join(names)})",
                field=field,
            )
        return kind


LIKEABLE_KINDS = frozenset(
    {EntityKind.SONG, EntityKind.ALBUM, EntityKind.PLAYLIST, EntityKind.ARTIST}
)
FOLLOWABLE_KINDS = frozenset({EntityKind.USER, EntityKind.ARTIST})
LIBRARY_ITEM_KINDS = frozenset(
    {EntityKind.SONG, EntityKind.ALBUM, EntityKind.PLAYLIST, EntityKind.ARTIST}
)


@dataclass(frozen=True)
class EntityRef:
    """Immutable ``(kind, id)`` pointer to a catalog or user row."""

    kind: EntityKind
    id: str

    def __post_init__(self) -> None:
        if not self.id or not str(self.id).strip():
            raise ValidationException("Entity id must not be empty", field="id")

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"
