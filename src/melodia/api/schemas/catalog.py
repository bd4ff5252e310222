"""API schemas for songs, albums and artists."""

from datetime import date, datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ORMSchema(BaseModel):
    """Base for responses built straight from ORM rows."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# Hey future me - the ORM keeps genres as a JSON string column; genre_list is the
# decoded property. validation_alias reads the property, serialization stays "genres".
class GenresField(ORMSchema):
    genres: list[str] = Field(default_factory=list, validation_alias="genre_list")


class Page(ORMSchema, Generic[T]):
    """One page of a paginated listing."""

    data: list[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


# ------------------------------------------------------------------ songs


class SongCreate(BaseModel):
    """Request body for creating a song."""

    title: str = Field(..., description="Song title")
    album_id: str = Field(..., description="Album the song belongs to")
    duration_seconds: int = Field(..., description="Length in seconds (> 0)")
    song_number: int | None = None
    disc_number: int | None = None
    genres: list[str] = Field(default_factory=list)
    audio_url: str | None = None
    preview_url: str | None = None
    lyrics: str | None = None
    explicit: bool = False
    isrc: str | None = Field(default=None, max_length=12)


class SongUpdate(BaseModel):
    """Partial update; only fields present in the body are applied."""

    title: str | None = None
    duration_seconds: int | None = None
    song_number: int | None = None
    disc_number: int | None = None
    genres: list[str] | None = None
    audio_url: str | None = None
    preview_url: str | None = None
    lyrics: str | None = None
    explicit: bool | None = None
    isrc: str | None = Field(default=None, max_length=12)


class SongResponse(GenresField):
    id: str
    album_id: str
    title: str
    duration_seconds: int
    song_number: int
    disc_number: int
    audio_url: str | None = None
    preview_url: str | None = None
    explicit: bool
    play_count: int
    like_count: int
    isrc: str | None = None
    created_at: datetime


class PlayRequest(BaseModel):
    """Optional details of a play event (history is recorded only with a user)."""

    play_duration_seconds: int = Field(default=0, ge=0)
    completed: bool = False
    device_type: str | None = None
    source: str | None = None
    source_id: str | None = None


# ------------------------------------------------------------------ albums


class AlbumCreate(BaseModel):
    title: str
    description: str | None = None
    release_date: date | None = None
    album_type: str | None = Field(default=None, description="album, single, ep, compilation")
    genres: list[str] = Field(default_factory=list)
    cover_image_url: str | None = None
    record_label: str | None = None
    copyright_info: str | None = None


class AlbumUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    release_date: date | None = None
    album_type: str | None = None
    genres: list[str] | None = None
    cover_image_url: str | None = None
    record_label: str | None = None
    copyright_info: str | None = None


class AlbumResponse(GenresField):
    id: str
    title: str
    description: str | None = None
    release_date: date | None = None
    album_type: str
    cover_image_url: str | None = None
    record_label: str | None = None
    total_songs: int
    duration_seconds: int
    created_at: datetime


class AlbumWithSongsResponse(AlbumResponse):
    songs: list[SongResponse] = Field(default_factory=list)


# ------------------------------------------------------------------ artists


class ArtistCreate(BaseModel):
    name: str
    bio: str | None = None
    image_url: str | None = None
    banner_url: str | None = None
    verified: bool = False
    genres: list[str] = Field(default_factory=list)
    country: str | None = Field(default=None, max_length=2)


class ArtistUpdate(BaseModel):
    name: str | None = None
    bio: str | None = None
    image_url: str | None = None
    banner_url: str | None = None
    verified: bool | None = None
    genres: list[str] | None = None
    country: str | None = Field(default=None, max_length=2)


class ArtistResponse(GenresField):
    id: str
    name: str
    bio: str | None = None
    image_url: str | None = None
    banner_url: str | None = None
    verified: bool
    country: str | None = None
    monthly_listeners: int
    created_at: datetime


class DiscographyResponse(BaseModel):
    """Albums of an artist keyed by album type (album, single, ep, compilation)."""

    groups: dict[str, list[AlbumWithSongsResponse]] = Field(default_factory=dict)
