"""Domain value objects."""

from melodia.domain.value_objects.catalog_types import (
    AlbumType,
    ArtistRole,
    SubscriptionTier,
)
from melodia.domain.value_objects.entity_refs import (
    FOLLOWABLE_KINDS,
    LIBRARY_ITEM_KINDS,
    LIKEABLE_KINDS,
    EntityKind,
    EntityRef,
)

__all__ = [
    "FOLLOWABLE_KINDS",
    "LIBRARY_ITEM_KINDS",
    "LIKEABLE_KINDS",
    "AlbumType",
    "ArtistRole",
    "EntityKind",
    "EntityRef",
    "SubscriptionTier",
]
