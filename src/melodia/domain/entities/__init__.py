"""Domain entities."""

from melodia.domain.entities.collection import LIKED_SONGS_ID, Collection, LibrarySong
from melodia.domain.entities.player import PlayerState, RepeatMode

__all__ = [
    "LIKED_SONGS_ID",
    "Collection",
    "LibrarySong",
    "PlayerState",
    "RepeatMode",
]
