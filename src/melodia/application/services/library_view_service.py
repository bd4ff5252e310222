"""Library View Service - the in-memory library a single listener works with.

Hey future me - this mirrors what the SPA keeps in page state: the song list,
the user's collections (with the reserved "Liked Songs" one) and the player.
Nothing here touches the database. LibrarySong is frozen, so every like /
dislike / play builds a new song object and ``_replace`` swaps it into the
song list, every collection holding it and the player. Skip one of those
and the UI shows a stale like count somewhere.
"""

import logging
import random
import uuid
from collections.abc import Iterable, Sequence
from pathlib import PurePath

from melodia.domain.entities import (
    LIKED_SONGS_ID,
    Collection,
    LibrarySong,
    PlayerState,
    RepeatMode,
)
from melodia.domain.exceptions import DuplicateEntityException, EntityNotFoundException

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_GENRE = "Unknown"


class LibraryViewService:
    """Songs, collections and playback for one listener."""

    def __init__(
        self,
        songs: Iterable[LibrarySong] = (),
        rng: random.Random | None = None,
    ) -> None:
        self._songs: list[LibrarySong] = list(songs)
        self._collections: list[Collection] = [
            Collection(
                id=LIKED_SONGS_ID,
                name="Liked Songs",
                description="Your favorite tracks",
                songs=[s for s in self._songs if s.liked],
            )
        ]
        self.player = PlayerState()
        self._rng = rng

    # ------------------------------------------------------------------ reads

    @property
    def songs(self) -> list[LibrarySong]:
        return list(self._songs)

    @property
    def collections(self) -> list[Collection]:
        return list(self._collections)

    @property
    def liked_songs(self) -> Collection:
        return self.get_collection(LIKED_SONGS_ID)

    def get_song(self, song_id: str) -> LibrarySong:
        for song in self._songs:
            if song.id == song_id:
                return song
        raise EntityNotFoundException("Song", song_id)

    def get_collection(self, collection_id: str) -> Collection:
        for collection in self._collections:
            if collection.id == collection_id:
                return collection
        raise EntityNotFoundException("Collection", collection_id)

    # ------------------------------------------------------------------ helpers

    def _replace(self, updated: LibrarySong) -> None:
        self._songs = [updated if s.id == updated.id else s for s in self._songs]
        for collection in self._collections:
            collection.replace_song(updated)
        if self.player.current_song is not None and self.player.current_song.id == updated.id:
            self.player.current_song = updated

    # ------------------------------------------------------------------ reactions

    def like(self, song_id: str) -> LibrarySong:
        """Toggle the like on a song; liking clears a dislike.

        The song joins "Liked Songs" when liked and leaves it when unliked.
        """
        song = self.get_song(song_id)
        now_liked = not song.liked
        updated = song.with_changes(
            liked=now_liked,
            disliked=False,
            likes=max(song.likes + (1 if now_liked else -1), 0),
            dislikes=max(song.dislikes - 1, 0) if song.disliked else song.dislikes,
        )
        self._replace(updated)

        liked = self.liked_songs
        if now_liked and not liked.contains(song_id):
            liked.songs.append(updated)
        elif not now_liked:
            liked.remove_song(song_id)
        return updated

    def dislike(self, song_id: str) -> LibrarySong:
        """Toggle the dislike on a song; disliking clears a like and leaves "Liked Songs"."""
        song = self.get_song(song_id)
        now_disliked = not song.disliked
        updated = song.with_changes(
            liked=False,
            disliked=now_disliked,
            likes=max(song.likes - 1, 0) if song.liked else song.likes,
            dislikes=max(song.dislikes + (1 if now_disliked else -1), 0),
        )
        self._replace(updated)
        if now_disliked:
            self.liked_songs.remove_song(song_id)
        return updated

    # ------------------------------------------------------------------ collections

    def create_collection(self, name: str, description: str | None = None) -> Collection:
        collection = Collection(name=name.strip() if name else name, description=description)
        self._collections.append(collection)
        logger.debug("Created collection %s (%s)", collection.name, collection.id)
        return collection

    def add_to_collection(self, collection_id: str, song_id: str) -> Collection:
        """Append the latest version of a song to a collection.

        Raises:
            EntityNotFoundException: Unknown collection or song
            DuplicateEntityException: The song is already in the collection
        """
        collection = self.get_collection(collection_id)
        song = self.get_song(song_id)
        if collection.contains(song_id):
            raise DuplicateEntityException("Song in collection", field="song_id", value=song_id)
        collection.songs.append(song)
        return collection

    def remove_from_collection(self, collection_id: str, song_id: str) -> Collection:
        collection = self.get_collection(collection_id)
        if not collection.contains(song_id):
            raise EntityNotFoundException("Song in collection", f"{collection_id}:{song_id}")
        collection.remove_song(song_id)
        return collection

    def import_songs(self, filenames: Sequence[str]) -> list[LibrarySong]:
        """Add one song per file, titled after the file name without its extension."""
        imported = [
            LibrarySong(
                id=str(uuid.uuid4()),
                title=PurePath(name).stem or name,
                artist=UNKNOWN_ARTIST,
                duration=0,
                genres=(UNKNOWN_GENRE,),
                audio_url=name,
            )
            for name in filenames
        ]
        self._songs.extend(imported)
        logger.info("Imported %d songs", len(imported))
        return imported

    # ------------------------------------------------------------------ playback

    def _queue(self, collection_id: str | None) -> list[LibrarySong]:
        if collection_id is None:
            return list(self._songs)
        return list(self.get_collection(collection_id).songs)

    def play(self, song_id: str) -> LibrarySong:
        """Start a song and count the play."""
        song = self.get_song(song_id)
        updated = song.with_changes(play_count=song.play_count + 1)
        self._replace(updated)
        self.player.play(updated)
        return updated

    def pause(self) -> None:
        self.player.pause()

    def resume(self) -> None:
        self.player.resume()

    def seek(self, seconds: float) -> None:
        self.player.seek(seconds)

    def set_volume(self, volume: int) -> None:
        self.player.set_volume(volume)

    def toggle_shuffle(self) -> bool:
        return self.player.toggle_shuffle()

    def toggle_repeat(self) -> RepeatMode:
        return self.player.toggle_repeat()

    def next(self, collection_id: str | None = None) -> LibrarySong | None:
        """Advance in the library (or a collection); a newly started song counts as a play."""
        previous = self.player.current_song
        chosen = self.player.next_song(self._queue(collection_id), self._rng)
        if chosen is not None and (previous is None or chosen.id != previous.id):
            return self.play(chosen.id)
        return chosen

    def previous(self, collection_id: str | None = None) -> LibrarySong | None:
        previous = self.player.current_song
        chosen = self.player.previous_song(self._queue(collection_id))
        if chosen is not None and (previous is None or chosen.id != previous.id):
            return self.play(chosen.id)
        return chosen
