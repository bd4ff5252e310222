"""initial schema: catalog, users, playlists, associations, history

Revision ID: 20260101_0001
Revises:
Create Date: 2026-01-01 00:00:00.000000

Hey future me - this is the whole schema in one revision. Things that look odd
but are intentional:
- genres columns are TEXT holding a JSON list (SQLite has no array type)
- playlist_songs.position is indexed, NOT unique; reorders rewrite all rows at once
- user_likes / user_follows / user_library point at different tables through
  (type, id) pairs, so the id column has no foreign key
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260101_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("profile_image_url", sa.String(512), nullable=True),
        sa.Column("subscription_tier", sa.String(20), nullable=False, server_default="free"),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("preferred_language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("last_active_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_country", "users", ["country"])

    op.create_table(
        "user_preferences",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("audio_quality", sa.String(20), nullable=False),
        sa.Column("autoplay", sa.Boolean(), nullable=False),
        sa.Column("explicit_content", sa.Boolean(), nullable=False),
        sa.Column("crossfade_seconds", sa.Integer(), nullable=False),
        sa.Column("theme", sa.String(20), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "artists",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(512), nullable=True),
        sa.Column("banner_url", sa.String(512), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("genres", sa.Text(), nullable=True),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("monthly_listeners", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_artists_name", "artists", ["name"], unique=True)
    op.create_index("ix_artists_country", "artists", ["country"])
    op.create_index("ix_artists_monthly_listeners", "artists", ["monthly_listeners"])

    op.create_table(
        "albums",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("release_date", sa.Date(), nullable=True),
        sa.Column("album_type", sa.String(20), nullable=False, server_default="album"),
        sa.Column("genres", sa.Text(), nullable=True),
        sa.Column("cover_image_url", sa.String(512), nullable=True),
        sa.Column("record_label", sa.String(255), nullable=True),
        sa.Column("copyright_info", sa.Text(), nullable=True),
        sa.Column("total_songs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_albums_title", "albums", ["title"])
    op.create_index("ix_albums_release_date", "albums", ["release_date"])
    op.create_index("ix_albums_created_at", "albums", ["created_at"])

    op.create_table(
        "album_artists",
        sa.Column(
            "album_id",
            sa.String(36),
            sa.ForeignKey("albums.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "artist_id",
            sa.String(36),
            sa.ForeignKey("artists.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("role", sa.String(20), nullable=False, server_default="primary"),
    )

    op.create_table(
        "songs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "album_id",
            sa.String(36),
            sa.ForeignKey("albums.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("song_number", sa.Integer(), nullable=False),
        sa.Column("disc_number", sa.Integer(), nullable=False),
        sa.Column("genres", sa.Text(), nullable=True),
        sa.Column("audio_url", sa.String(512), nullable=True),
        sa.Column("preview_url", sa.String(512), nullable=True),
        sa.Column("lyrics", sa.Text(), nullable=True),
        sa.Column("explicit", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("play_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("isrc", sa.String(12), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_songs_album_id", "songs", ["album_id"])
    op.create_index("ix_songs_title", "songs", ["title"])
    op.create_index("ix_songs_play_count", "songs", ["play_count"])
    op.create_index("ix_songs_created_at", "songs", ["created_at"])

    op.create_table(
        "song_artists",
        sa.Column(
            "song_id",
            sa.String(36),
            sa.ForeignKey("songs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "artist_id",
            sa.String(36),
            sa.ForeignKey("artists.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("role", sa.String(20), nullable=False, server_default="primary"),
    )

    op.create_table(
        "playlists",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cover_image_url", sa.String(512), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("is_collaborative", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("total_songs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_duration_seconds", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_playlists_user_id", "playlists", ["user_id"])
    op.create_index("ix_playlists_name", "playlists", ["name"])
    op.create_index("ix_playlists_created_at", "playlists", ["created_at"])

    op.create_table(
        "playlist_songs",
        sa.Column(
            "playlist_id",
            sa.String(36),
            sa.ForeignKey("playlists.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "song_id",
            sa.String(36),
            sa.ForeignKey("songs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column(
            "added_by",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("added_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_playlist_songs_position", "playlist_songs", ["playlist_id", "position"]
    )

    op.create_table(
        "user_likes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("likeable_type", sa.String(20), nullable=False),
        sa.Column("likeable_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "likeable_type", "likeable_id", name="uq_user_likes_target"
        ),
    )
    op.create_index("ix_user_likes_user_id", "user_likes", ["user_id"])
    op.create_index("ix_user_likes_created_at", "user_likes", ["created_at"])
    op.create_index("ix_user_likes_target", "user_likes", ["likeable_type", "likeable_id"])

    op.create_table(
        "user_follows",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "follower_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("followable_type", sa.String(20), nullable=False),
        sa.Column("followable_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "follower_id",
            "followable_type",
            "followable_id",
            name="uq_user_follows_target",
        ),
    )
    op.create_index("ix_user_follows_follower_id", "user_follows", ["follower_id"])
    op.create_index("ix_user_follows_created_at", "user_follows", ["created_at"])
    op.create_index(
        "ix_user_follows_target", "user_follows", ["followable_type", "followable_id"]
    )

    op.create_table(
        "user_library",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_type", sa.String(20), nullable=False),
        sa.Column("item_id", sa.String(36), nullable=False),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "item_type", "item_id", name="uq_user_library_item"),
    )
    op.create_index("ix_user_library_user_id", "user_library", ["user_id"])
    op.create_index("ix_user_library_added_at", "user_library", ["added_at"])

    op.create_table(
        "listening_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "song_id",
            sa.String(36),
            sa.ForeignKey("songs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("played_at", sa.DateTime(), nullable=False),
        sa.Column("play_duration_seconds", sa.Integer(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("device_type", sa.String(50), nullable=True),
        sa.Column("source", sa.String(50), nullable=True),
        sa.Column("source_id", sa.String(36), nullable=True),
    )
    op.create_index("ix_listening_history_user_id", "listening_history", ["user_id"])
    op.create_index("ix_listening_history_song_id", "listening_history", ["song_id"])
    op.create_index("ix_listening_history_played_at", "listening_history", ["played_at"])
    op.create_index(
        "ix_listening_history_user_played", "listening_history", ["user_id", "played_at"]
    )


def downgrade() -> None:
    # children first; FKs would block the parents otherwise
    for table in (
        "listening_history",
        "user_library",
        "user_follows",
        "user_likes",
        "playlist_songs",
        "playlists",
        "song_artists",
        "songs",
        "album_artists",
        "albums",
        "artists",
        "user_preferences",
        "users",
    ):
        op.drop_table(table)
