"""Repository implementations (one per aggregate, all on a shared AsyncSession)."""

from melodia.infrastructure.persistence.repositories.album import AlbumRepository
from melodia.infrastructure.persistence.repositories.artist import ArtistRepository
from melodia.infrastructure.persistence.repositories.associations import (
    UserFollowsRepository,
    UserLibraryRepository,
    UserLikesRepository,
)
from melodia.infrastructure.persistence.repositories.base import (
    BaseRepository,
    PaginatedResult,
    QueryOptions,
)
from melodia.infrastructure.persistence.repositories.listening_history import (
    ListeningHistoryRepository,
    ListeningStats,
    PlayStreaks,
)
from melodia.infrastructure.persistence.repositories.playlist import PlaylistRepository
from melodia.infrastructure.persistence.repositories.song import SongRepository
from melodia.infrastructure.persistence.repositories.user import UserRepository

__all__ = [
    "AlbumRepository",
    "ArtistRepository",
    "BaseRepository",
    "ListeningHistoryRepository",
    "ListeningStats",
    "PaginatedResult",
    "PlayStreaks",
    "PlaylistRepository",
    "QueryOptions",
    "SongRepository",
    "UserFollowsRepository",
    "UserLibraryRepository",
    "UserLikesRepository",
    "UserRepository",
]
