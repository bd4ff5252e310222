"""In-memory song and collection entities used by the library view."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from melodia.domain.exceptions import ValidationException

LIKED_SONGS_ID = "liked-songs"


@dataclass(frozen=True)
class LibrarySong:
    """A song as the UI sees it, with the viewer's like/dislike flags.

    Frozen on purpose: every change produces a new object (``with_changes``) and the
    library view swaps that object into each collection holding the old one.
    """

    id: str
    title: str
    artist: str
    duration: int
    album: str | None = None
    genres: tuple[str, ...] = ()
    audio_url: str = ""
    cover_url: str | None = None
    play_count: int = 0
    likes: int = 0
    dislikes: int = 0
    liked: bool = False
    disliked: bool = False
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationException("Song title cannot be empty", field="title")
        if self.duration < 0:
            raise ValidationException("Duration cannot be negative", field="duration")

    def with_changes(self, **changes: object) -> "LibrarySong":
        return replace(self, **changes)  # type: ignore[arg-type]


@dataclass
class Collection:
    """User-curated list of songs (a playlist in the UI)."""

    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    description: str | None = None
    songs: list[LibrarySong] = field(default_factory=list)
    cover_url: str | None = None
    is_public: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationException("Collection name cannot be empty", field="name")

    @property
    def is_liked_songs(self) -> bool:
        return self.id == LIKED_SONGS_ID

    @property
    def total_duration(self) -> int:
        return sum(song.duration for song in self.songs)

    def contains(self, song_id: str) -> bool:
        return any(song.id == song_id for song in self.songs)

    def replace_song(self, song: LibrarySong) -> None:
        """Swap in the new version of a song wherever this collection holds it."""
        self.songs = [song if s.id == song.id else s for s in self.songs]

    def remove_song(self, song_id: str) -> None:
        self.songs = [s for s in self.songs if s.id != song_id]
