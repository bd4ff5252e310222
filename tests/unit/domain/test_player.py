"""Unit tests for the PlayerState machine."""

import random

import pytest

from melodia.domain.entities import LibrarySong, PlayerState, RepeatMode
from melodia.domain.entities.player import DEFAULT_VOLUME


def _song(song_id: str, duration: int = 200) -> LibrarySong:
    return LibrarySong(id=song_id, title=f"Song {song_id}", artist="Band", duration=duration)


@pytest.fixture
def queue() -> list[LibrarySong]:
    return [_song("a"), _song("b"), _song("c")]


class TestRepeatMode:
    def test_cycle_order(self) -> None:
        """none -> all -> one -> none."""
        assert RepeatMode.NONE.cycle() is RepeatMode.ALL
        assert RepeatMode.ALL.cycle() is RepeatMode.ONE
        assert RepeatMode.ONE.cycle() is RepeatMode.NONE


class TestTransport:
    """play / pause / resume / seek / volume."""

    def test_initial_state(self) -> None:
        player = PlayerState()
        assert player.current_song is None
        assert player.is_playing is False
        assert player.volume == DEFAULT_VOLUME

    def test_play_sets_song_and_duration(self, queue) -> None:
        player = PlayerState()
        player.play(queue[0])

        assert player.current_song == queue[0]
        assert player.is_playing is True
        assert player.duration == 200.0

    def test_play_other_song_rewinds(self, queue) -> None:
        player = PlayerState()
        player.play(queue[0])
        player.seek(50)
        player.play(queue[1])
        assert player.current_time == 0.0

    def test_play_same_song_keeps_position(self, queue) -> None:
        player = PlayerState()
        player.play(queue[0])
        player.seek(50)
        player.pause()
        player.play(queue[0])
        assert player.current_time == 50.0

    def test_resume_without_song_is_noop(self) -> None:
        player = PlayerState()
        player.resume()
        assert player.is_playing is False

    def test_pause_and_resume(self, queue) -> None:
        player = PlayerState()
        player.play(queue[0])
        player.pause()
        assert player.is_playing is False
        player.resume()
        assert player.is_playing is True

    @pytest.mark.parametrize(("target", "expected"), [(-5, 0.0), (90, 90.0), (999, 200.0)])
    def test_seek_is_clamped_to_duration(self, queue, target, expected) -> None:
        player = PlayerState()
        player.play(queue[0])
        player.seek(target)
        assert player.current_time == expected

    @pytest.mark.parametrize(("target", "expected"), [(-1, 0), (40, 40), (150, 100)])
    def test_volume_is_clamped(self, target, expected) -> None:
        player = PlayerState()
        player.set_volume(target)
        assert player.volume == expected

    def test_toggles(self) -> None:
        player = PlayerState()
        assert player.toggle_shuffle() is True
        assert player.toggle_shuffle() is False
        assert player.toggle_repeat() is RepeatMode.ALL


class TestNextSong:
    """next_song decisions."""

    def test_empty_queue_stops(self) -> None:
        player = PlayerState(is_playing=True)
        assert player.next_song([]) is None
        assert player.is_playing is False

    def test_nothing_playing_starts_first(self, queue) -> None:
        player = PlayerState()
        assert player.next_song(queue) == queue[0]

    def test_advances_in_order(self, queue) -> None:
        player = PlayerState()
        player.play(queue[0])
        assert player.next_song(queue) == queue[1]
        assert player.current_song == queue[1]

    def test_end_of_queue_without_repeat_stops(self, queue) -> None:
        player = PlayerState()
        player.play(queue[2])
        assert player.next_song(queue) is None
        assert player.is_playing is False
        assert player.current_time == 0.0

    def test_end_of_queue_with_repeat_all_wraps(self, queue) -> None:
        player = PlayerState(repeat=RepeatMode.ALL)
        player.play(queue[2])
        assert player.next_song(queue) == queue[0]

    def test_repeat_one_replays_current(self, queue) -> None:
        player = PlayerState(repeat=RepeatMode.ONE)
        player.play(queue[1])
        player.seek(120)
        assert player.next_song(queue) == queue[1]
        assert player.current_time == 0.0

    def test_shuffle_never_picks_current_song(self, queue) -> None:
        player = PlayerState(shuffle=True)
        player.play(queue[0])
        rng = random.Random(7)
        for _ in range(20):
            previous = player.current_song
            chosen = player.next_song(queue, rng)
            assert chosen is not None
            assert chosen.id != previous.id

    def test_shuffle_with_single_song_replays_it(self) -> None:
        only = _song("solo")
        player = PlayerState(shuffle=True)
        player.play(only)
        assert player.next_song([only], random.Random(1)) == only


class TestPreviousSong:
    """previous_song decisions."""

    def test_steps_back(self, queue) -> None:
        player = PlayerState()
        player.play(queue[2])
        assert player.previous_song(queue) == queue[1]

    def test_at_start_rewinds_first_song(self, queue) -> None:
        player = PlayerState()
        player.play(queue[0])
        player.seek(30)
        assert player.previous_song(queue) == queue[0]
        assert player.current_time == 0.0

    def test_at_start_with_repeat_all_wraps_to_last(self, queue) -> None:
        player = PlayerState(repeat=RepeatMode.ALL)
        player.play(queue[0])
        assert player.previous_song(queue) == queue[-1]

    def test_empty_queue_stops(self) -> None:
        player = PlayerState(is_playing=True)
        assert player.previous_song([]) is None
        assert player.is_playing is False
