"""API schemas for playlists, users and per-user library actions."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from melodia.api.schemas.catalog import ORMSchema, SongResponse

# ------------------------------------------------------------------ playlists


class PlaylistCreate(BaseModel):
    name: str
    description: str | None = None
    cover_image_url: str | None = None
    is_public: bool = False
    is_collaborative: bool = False


class PlaylistUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    cover_image_url: str | None = None
    is_public: bool | None = None
    is_collaborative: bool | None = None


class PlaylistResponse(ORMSchema):
    id: str
    user_id: str
    name: str
    description: str | None = None
    cover_image_url: str | None = None
    is_public: bool
    is_collaborative: bool
    total_songs: int
    total_duration_seconds: int
    created_at: datetime
    updated_at: datetime


class PlaylistSongResponse(ORMSchema):
    song_id: str
    position: int
    added_by: str | None = None
    added_at: datetime
    song: SongResponse


class AddSongRequest(BaseModel):
    song_id: str


class ReorderEntry(BaseModel):
    song_id: str
    position: int


class ReorderRequest(BaseModel):
    """Complete new order: every song of the playlist exactly once."""

    songs: list[ReorderEntry]


class DuplicatePlaylistRequest(BaseModel):
    name: str


# ------------------------------------------------------------------ users


class UserCreate(BaseModel):
    username: str
    email: str
    display_name: str | None = None
    profile_image_url: str | None = None
    subscription_tier: str | None = Field(default=None, description="free, premium, family")
    country: str | None = Field(default=None, max_length=2)
    preferred_language: str = "en"


class UserProfileUpdate(BaseModel):
    display_name: str | None = None
    profile_image_url: str | None = None
    country: str | None = Field(default=None, max_length=2)
    preferred_language: str | None = None


class SubscriptionUpdate(BaseModel):
    subscription_tier: str


class UserResponse(ORMSchema):
    id: str
    username: str
    email: str
    display_name: str | None = None
    profile_image_url: str | None = None
    subscription_tier: str
    country: str | None = None
    preferred_language: str
    is_active: bool
    last_active_at: datetime | None = None
    created_at: datetime


class PreferencesUpdate(BaseModel):
    audio_quality: Literal["low", "normal", "high", "lossless"] | None = None
    autoplay: bool | None = None
    explicit_content: bool | None = None
    crossfade_seconds: int | None = None
    theme: Literal["dark", "light", "system"] | None = None


class PreferencesResponse(ORMSchema):
    user_id: str
    audio_quality: str
    autoplay: bool
    explicit_content: bool
    crossfade_seconds: int
    theme: str


# ------------------------------------------------------------------ likes / follows / library


class ToggleResponse(BaseModel):
    """Result of a like/follow/save toggle: the state AFTER the call."""

    kind: str
    id: str
    active: bool


class AssociationResponse(ORMSchema):
    id: str
    kind: str
    target_id: str
    created_at: datetime


class HistoryEventResponse(ORMSchema):
    id: str
    song_id: str
    played_at: datetime
    play_duration_seconds: int
    completed: bool
    device_type: str | None = None
    source: str | None = None
    source_id: str | None = None


class HistoryEntryResponse(HistoryEventResponse):
    """History row with its song (only where the song is eagerly loaded)."""

    song: SongResponse | None = None


class TopSongResponse(BaseModel):
    song: SongResponse
    play_count: int


class ListeningStatsResponse(ORMSchema):
    total_plays: int
    total_play_time: int
    average_play_time: float
    completion_rate: float
    unique_songs: int
    unique_artists: int


class StreaksResponse(ORMSchema):
    current_streak: int
    longest_streak: int
    last_play_date: date | None = None
