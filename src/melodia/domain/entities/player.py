"""Playback state machine for the page-level player.

Hey future me - this is a plain state record with transition methods, nothing async.
The actual audio element lives in the browser; the backend only mirrors state so the
API can report "now playing" and so next/previous can be decided in one place.
"""

import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from melodia.domain.entities.collection import LibrarySong

MIN_VOLUME = 0
MAX_VOLUME = 100
DEFAULT_VOLUME = 75


class RepeatMode(str, Enum):
    """Repeat setting of the player."""

    NONE = "none"
    ONE = "one"
    ALL = "all"

    def cycle(self) -> "RepeatMode":
        """none -> all -> one -> none."""
        return {
            RepeatMode.NONE: RepeatMode.ALL,
            RepeatMode.ALL: RepeatMode.ONE,
            RepeatMode.ONE: RepeatMode.NONE,
        }[self]


@dataclass
class PlayerState:
    """Current song, transport flags and position."""

    current_song: LibrarySong | None = None
    is_playing: bool = False
    volume: int = DEFAULT_VOLUME
    current_time: float = 0.0
    duration: float = 0.0
    shuffle: bool = False
    repeat: RepeatMode = RepeatMode.NONE

    def play(self, song: LibrarySong) -> None:
        if self.current_song is None or self.current_song.id != song.id:
            self.current_time = 0.0
        self.current_song = song
        self.is_playing = True
        self.duration = float(song.duration)

    def pause(self) -> None:
        self.is_playing = False

    def resume(self) -> None:
        # Nothing loaded means nothing to resume.
        if self.current_song is not None:
            self.is_playing = True

    def seek(self, seconds: float) -> None:
        self.current_time = min(max(0.0, float(seconds)), self.duration)

    def set_volume(self, volume: int) -> None:
        self.volume = min(max(MIN_VOLUME, int(volume)), MAX_VOLUME)

    def toggle_shuffle(self) -> bool:
        self.shuffle = not self.shuffle
        return self.shuffle

    def toggle_repeat(self) -> RepeatMode:
        self.repeat = self.repeat.cycle()
        return self.repeat

    def stop(self) -> None:
        self.is_playing = False
        self.current_time = 0.0

    def next_song(
        self, queue: Sequence[LibrarySong], rng: random.Random | None = None
    ) -> LibrarySong | None:
        """Advance within ``queue`` and start playing the chosen song.

        Repeat ONE replays the current song, shuffle picks any other song, and at the
        end of the queue repeat ALL wraps while repeat NONE stops playback.

        Returns:
            The song now playing, or None when playback stopped
        """
        if not queue:
            self.stop()
            return None

        if self.repeat is RepeatMode.ONE and self.current_song is not None:
            self.current_time = 0.0
            self.play(self.current_song)
            return self.current_song

        if self.shuffle:
            current_id = self.current_song.id if self.current_song else None
            candidates = [s for s in queue if s.id != current_id]
            choice = (rng or random).choice(candidates or list(queue))
            self.play(choice)
            return choice

        index = self._index_in(queue)
        if index is None:
            target: LibrarySong | None = queue[0]
        elif index + 1 < len(queue):
            target = queue[index + 1]
        elif self.repeat is RepeatMode.ALL:
            target = queue[0]
        else:
            target = None

        if target is None:
            self.stop()
            return None
        self.play(target)
        return target

    def previous_song(self, queue: Sequence[LibrarySong]) -> LibrarySong | None:
        """Step back within ``queue``; at the start, wrap on repeat ALL or rewind."""
        if not queue:
            self.stop()
            return None

        index = self._index_in(queue)
        if index is None:
            target = queue[0]
        elif index > 0:
            target = queue[index - 1]
        elif self.repeat is RepeatMode.ALL:
            target = queue[-1]
        else:
            target = queue[0]
            self.current_time = 0.0

        self.play(target)
        return target

    def _index_in(self, queue: Sequence[LibrarySong]) -> int | None:
        if self.current_song is None:
            return None
        for i, song in enumerate(queue):
            if song.id == self.current_song.id:
                return i
        return None
