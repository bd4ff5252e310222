"""Unit tests for LibraryViewService (in-memory songs, collections and player).

Hey future me - the trap these tests guard: LibrarySong is frozen, so a like has to
be swapped into the song list, every collection AND the player. A test that only
checks one of those misses the stale-copy bug.
"""

import random

import pytest

from melodia.application.services import LibraryViewService
from melodia.application.services.library_view_service import UNKNOWN_ARTIST, UNKNOWN_GENRE
from melodia.domain.entities import LIKED_SONGS_ID, Collection, LibrarySong, RepeatMode
from melodia.domain.exceptions import (
    DuplicateEntityException,
    EntityNotFoundException,
    ValidationException,
)


def _song(song_id: str, **overrides) -> LibrarySong:
    data = {"id": song_id, "title": f"Song {song_id}", "artist": "Band", "duration": 180}
    return LibrarySong(**{**data, **overrides})


@pytest.fixture
def service() -> LibraryViewService:
    return LibraryViewService(
        [_song("1", likes=3), _song("2", liked=True, likes=1), _song("3")],
        rng=random.Random(3),
    )


class TestEntities:
    """Validation on the entities themselves."""

    def test_song_title_required(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            LibrarySong(id="x", title="  ", artist="A", duration=10)
        assert exc_info.value.field == "title"

    def test_song_duration_not_negative(self) -> None:
        with pytest.raises(ValidationException):
            LibrarySong(id="x", title="T", artist="A", duration=-1)

    def test_collection_name_required(self) -> None:
        with pytest.raises(ValidationException):
            Collection(name="")

    def test_collection_total_duration(self) -> None:
        collection = Collection(name="Mix", songs=[_song("a"), _song("b", duration=20)])
        assert collection.total_duration == 200


class TestLikedSongsCollection:
    """The reserved "Liked Songs" collection."""

    def test_seeded_from_liked_flags(self, service: LibraryViewService) -> None:
        liked = service.liked_songs
        assert liked.id == LIKED_SONGS_ID
        assert liked.is_liked_songs is True
        assert [s.id for s in liked.songs] == ["2"]

    def test_like_adds_and_counts(self, service: LibraryViewService) -> None:
        updated = service.like("1")

        assert updated.liked is True
        assert updated.likes == 4
        assert service.get_song("1").likes == 4
        assert service.liked_songs.contains("1")

    def test_like_twice_restores_state(self, service: LibraryViewService) -> None:
        service.like("1")
        restored = service.like("1")

        assert restored.liked is False
        assert restored.likes == 3
        assert not service.liked_songs.contains("1")

    def test_dislike_clears_like(self, service: LibraryViewService) -> None:
        updated = service.dislike("2")

        assert updated.liked is False
        assert updated.disliked is True
        assert updated.likes == 0
        assert updated.dislikes == 1
        assert not service.liked_songs.contains("2")

    def test_like_clears_dislike(self, service: LibraryViewService) -> None:
        service.dislike("3")
        updated = service.like("3")

        assert updated.disliked is False
        assert updated.dislikes == 0
        assert updated.liked is True

    def test_like_updates_every_copy(self, service: LibraryViewService) -> None:
        mix = service.create_collection("Mix")
        service.add_to_collection(mix.id, "1")
        service.play("1")

        service.like("1")

        assert service.get_collection(mix.id).songs[0].liked is True
        assert service.player.current_song is not None
        assert service.player.current_song.liked is True

    def test_unknown_song(self, service: LibraryViewService) -> None:
        with pytest.raises(EntityNotFoundException):
            service.like("nope")


class TestCollections:
    """Collection management."""

    def test_create_collection(self, service: LibraryViewService) -> None:
        collection = service.create_collection("  Road Trip ", "Long drives")
        assert collection.name == "Road Trip"
        assert collection in service.collections

    def test_add_duplicate_raises(self, service: LibraryViewService) -> None:
        mix = service.create_collection("Mix")
        service.add_to_collection(mix.id, "1")

        with pytest.raises(DuplicateEntityException) as exc_info:
            service.add_to_collection(mix.id, "1")
        assert exc_info.value.field == "song_id"

    def test_remove_missing_raises(self, service: LibraryViewService) -> None:
        mix = service.create_collection("Mix")
        with pytest.raises(EntityNotFoundException):
            service.remove_from_collection(mix.id, "1")

    def test_remove(self, service: LibraryViewService) -> None:
        mix = service.create_collection("Mix")
        service.add_to_collection(mix.id, "1")
        service.remove_from_collection(mix.id, "1")
        assert mix.songs == []

    def test_unknown_collection(self, service: LibraryViewService) -> None:
        with pytest.raises(EntityNotFoundException):
            service.get_collection("missing")


class TestImport:
    def test_import_songs_uses_file_stem(self, service: LibraryViewService) -> None:
        imported = service.import_songs(["music/Blue Monday.mp3", "track.flac"])

        assert [s.title for s in imported] == ["Blue Monday", "track"]
        assert all(s.artist == UNKNOWN_ARTIST for s in imported)
        assert all(s.genres == (UNKNOWN_GENRE,) for s in imported)
        assert imported[0].audio_url == "music/Blue Monday.mp3"
        assert len(service.songs) == 5


class TestPlayback:
    """Playback through the service counts plays."""

    def test_play_counts(self, service: LibraryViewService) -> None:
        song = service.play("1")
        assert song.play_count == 1
        assert service.player.is_playing is True

    def test_next_counts_new_song(self, service: LibraryViewService) -> None:
        service.play("1")
        nxt = service.next()

        assert nxt is not None
        assert nxt.id == "2"
        assert nxt.play_count == 1

    def test_next_within_collection(self, service: LibraryViewService) -> None:
        service.play("2")
        assert service.next(LIKED_SONGS_ID) is None
        assert service.player.is_playing is False

    def test_repeat_one_does_not_count_again(self, service: LibraryViewService) -> None:
        service.play("1")
        service.toggle_repeat()
        service.toggle_repeat()
        assert service.player.repeat is RepeatMode.ONE

        again = service.next()
        assert again is not None
        assert again.play_count == 1

    def test_previous(self, service: LibraryViewService) -> None:
        service.play("3")
        prev = service.previous()
        assert prev is not None
        assert prev.id == "2"

    def test_volume_and_seek_delegate(self, service: LibraryViewService) -> None:
        service.play("1")
        service.set_volume(500)
        service.seek(10)
        service.pause()

        assert service.player.volume == 100
        assert service.player.current_time == 10.0
        assert service.player.is_playing is False
