"""Pydantic request/response schemas for the JSON API."""

from melodia.api.schemas.catalog import (
    AlbumCreate,
    AlbumResponse,
    AlbumUpdate,
    AlbumWithSongsResponse,
    ArtistCreate,
    ArtistResponse,
    ArtistUpdate,
    DiscographyResponse,
    Page,
    PlayRequest,
    SongCreate,
    SongResponse,
    SongUpdate,
)
from melodia.api.schemas.library import (
    AddSongRequest,
    AssociationResponse,
    DuplicatePlaylistRequest,
    HistoryEntryResponse,
    HistoryEventResponse,
    ListeningStatsResponse,
    PlaylistCreate,
    PlaylistResponse,
    PlaylistSongResponse,
    PlaylistUpdate,
    PreferencesResponse,
    PreferencesUpdate,
    ReorderRequest,
    StreaksResponse,
    SubscriptionUpdate,
    ToggleResponse,
    TopSongResponse,
    UserCreate,
    UserProfileUpdate,
    UserResponse,
)

__all__ = [
    "AddSongRequest",
    "AlbumCreate",
    "AlbumResponse",
    "AlbumUpdate",
    "AlbumWithSongsResponse",
    "ArtistCreate",
    "ArtistResponse",
    "ArtistUpdate",
    "AssociationResponse",
    "DiscographyResponse",
    "DuplicatePlaylistRequest",
    "HistoryEntryResponse",
    "HistoryEventResponse",
    "ListeningStatsResponse",
    "Page",
    "PlayRequest",
    "PlaylistCreate",
    "PlaylistResponse",
    "PlaylistSongResponse",
    "PlaylistUpdate",
    "PreferencesResponse",
    "PreferencesUpdate",
    "ReorderRequest",
    "SongCreate",
    "SongResponse",
    "SongUpdate",
    "StreaksResponse",
    "SubscriptionUpdate",
    "ToggleResponse",
    "TopSongResponse",
    "UserCreate",
    "UserProfileUpdate",
    "UserResponse",
]
