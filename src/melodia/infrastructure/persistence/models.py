"""SQLAlchemy ORM models for Melodia."""

import json
import uuid
from datetime import UTC, date, datetime

import sqlalchemy as sa
from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite hands datetimes back WITHOUT tzinfo even though we store UTC.
# Run values through this before comparing them with utc_now() or you get
# "can't compare offset-naive and offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def new_id() -> str:
    return str(uuid.uuid4())


def encode_genres(genres: list[str] | tuple[str, ...] | None) -> str | None:
    """Serialize a genre list for a Text column (None stays None)."""
    if genres is None:
        return None
    return json.dumps(list(genres))


def decode_genres(raw: str | None) -> list[str]:
    return json.loads(raw) if raw else []


class Base(DeclarativeBase):
    """Base class for all ORM models (one shared metadata registry)."""

    pass


class GenresMixin:
    """Genre list stored as JSON text.

    SQLite has no array type, so ``genres`` is ``'["rock", "indie"]'`` in the
    column. Membership queries match the quoted JSON string with LIKE; see
    ``BaseRepository.genre_filter``.
    """

    genres: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def genre_list(self) -> list[str]:
        return decode_genres(self.genres)

    @genre_list.setter
    def genre_list(self, value: list[str]) -> None:
        self.genres = encode_genres(value)


class UserModel(Base):
    """Account of a listener (and playlist owner)."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    # free / premium / family (SubscriptionTier) - plain string for SQLite
    subscription_tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default="free", server_default="free"
    )
    country: Mapped[str | None] = mapped_column(String(2), nullable=True, index=True)
    preferred_language: Mapped[str] = mapped_column(
        String(10), nullable=False, default="en", server_default="en"
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=True, server_default="1"
    )
    last_active_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    playlists: Mapped[list["PlaylistModel"]] = relationship(
        "PlaylistModel",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    preferences: Mapped["UserPreferencesModel | None"] = relationship(
        "UserPreferencesModel",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class UserPreferencesModel(Base):
    """Per-user playback and display preferences (one row per user)."""

    __tablename__ = "user_preferences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    audio_quality: Mapped[str] = mapped_column(String(20), nullable=False, default="high")
    autoplay: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True)
    explicit_content: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=True)
    crossfade_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    theme: Mapped[str] = mapped_column(String(20), nullable=False, default="dark")
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    user: Mapped["UserModel"] = relationship("UserModel", back_populates="preferences")


class ArtistModel(GenresMixin, Base):
    """Performing artist. Linked to albums and songs through credit rows."""

    __tablename__ = "artists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    banner_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    verified: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default="0"
    )
    country: Mapped[str | None] = mapped_column(String(2), nullable=True, index=True)
    monthly_listeners: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0", index=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    album_credits: Mapped[list["AlbumArtistModel"]] = relationship(
        "AlbumArtistModel",
        back_populates="artist",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    song_credits: Mapped[list["SongArtistModel"]] = relationship(
        "SongArtistModel",
        back_populates="artist",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class AlbumModel(GenresMixin, Base):
    """Album with denormalized song count and total duration.

    total_songs / duration_seconds are caches; AlbumRepository.sync_album_stats
    recomputes them from the songs table.
    """

    __tablename__ = "albums"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    release_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    # album / single / ep / compilation (AlbumType)
    album_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="album", server_default="album"
    )
    cover_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    record_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    copyright_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_songs: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    duration_seconds: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    songs: Mapped[list["SongModel"]] = relationship(
        "SongModel",
        back_populates="album",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: [SongModel.disc_number, SongModel.song_number],
    )
    album_artists: Mapped[list["AlbumArtistModel"]] = relationship(
        "AlbumArtistModel",
        back_populates="album",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class AlbumArtistModel(Base):
    """Credit row linking an artist to an album with a role."""

    __tablename__ = "album_artists"

    album_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("albums.id", ondelete="CASCADE"), primary_key=True
    )
    artist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("artists.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="primary", server_default="primary"
    )

    album: Mapped["AlbumModel"] = relationship("AlbumModel", back_populates="album_artists")
    artist: Mapped["ArtistModel"] = relationship("ArtistModel", back_populates="album_credits")


class SongModel(GenresMixin, Base):
    """A song on an album."""

    __tablename__ = "songs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    album_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    song_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    disc_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    audio_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    preview_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    lyrics: Mapped[str | None] = mapped_column(Text, nullable=True)
    explicit: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default="0"
    )
    play_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0", index=True
    )
    like_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    isrc: Mapped[str | None] = mapped_column(String(12), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    album: Mapped["AlbumModel"] = relationship("AlbumModel", back_populates="songs")
    song_artists: Mapped[list["SongArtistModel"]] = relationship(
        "SongArtistModel",
        back_populates="song",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class SongArtistModel(Base):
    """Credit row linking an artist to a song with a role."""

    __tablename__ = "song_artists"

    song_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("songs.id", ondelete="CASCADE"), primary_key=True
    )
    artist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("artists.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="primary", server_default="primary"
    )

    song: Mapped["SongModel"] = relationship("SongModel", back_populates="song_artists")
    artist: Mapped["ArtistModel"] = relationship("ArtistModel", back_populates="song_credits")


class PlaylistModel(Base):
    """User playlist with denormalized song count and duration."""

    __tablename__ = "playlists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_public: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default="0"
    )
    is_collaborative: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default="0"
    )
    total_songs: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    total_duration_seconds: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    owner: Mapped["UserModel"] = relationship("UserModel", back_populates="playlists")
    playlist_songs: Mapped[list["PlaylistSongModel"]] = relationship(
        "PlaylistSongModel",
        back_populates="playlist",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PlaylistSongModel.position",
    )


# Hey future me - position is NOT unique in the schema, only indexed! Removing a song
# shifts every trailing row down by one in a single UPDATE, and reorder rewrites all
# positions in one batch; a unique constraint would trip halfway through either.
# PlaylistRepository keeps positions at exactly 1..N.
class PlaylistSongModel(Base):
    """Ordered playlist entry (1-based position)."""

    __tablename__ = "playlist_songs"

    playlist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("playlists.id", ondelete="CASCADE"), primary_key=True
    )
    song_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("songs.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    added_by: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    added_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    playlist: Mapped["PlaylistModel"] = relationship(
        "PlaylistModel", back_populates="playlist_songs"
    )
    song: Mapped["SongModel"] = relationship("SongModel")

    __table_args__ = (Index("ix_playlist_songs_position", "playlist_id", "position"),)


# The three association tables below point at different tables through (type, id);
# there is no FK on the id column. EntityKind validation happens in the repositories.
class UserLikeModel(Base):
    """A user liking a song, album, playlist or artist."""

    __tablename__ = "user_likes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    likeable_type: Mapped[str] = mapped_column(String(20), nullable=False)
    likeable_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "likeable_type", "likeable_id", name="uq_user_likes_target"
        ),
        Index("ix_user_likes_target", "likeable_type", "likeable_id"),
    )


class UserFollowModel(Base):
    """A user following another user or an artist."""

    __tablename__ = "user_follows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    followable_type: Mapped[str] = mapped_column(String(20), nullable=False)
    followable_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint(
            "follower_id", "followable_type", "followable_id", name="uq_user_follows_target"
        ),
        Index("ix_user_follows_target", "followable_type", "followable_id"),
    )


class UserLibraryModel(Base):
    """An item saved to a user's library."""

    __tablename__ = "user_library"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[str] = mapped_column(String(36), nullable=False)
    added_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("user_id", "item_type", "item_id", name="uq_user_library_item"),
    )


class ListeningHistoryModel(Base):
    """Append-only play event."""

    __tablename__ = "listening_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    song_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("songs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    played_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)
    play_duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default="0"
    )
    # mobile / desktop / web / smart_speaker
    device_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # album / playlist / artist / search / radio
    source: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    song: Mapped["SongModel"] = relationship("SongModel")

    __table_args__ = (Index("ix_listening_history_user_played", "user_id", "played_at"),)
