"""Integration tests for playlist song ordering against a real SQLite file.

Hey future me - every test here ends by checking positions() == 1..N. That is the
one invariant PlaylistRepository owns, so a failure anywhere else usually shows up
there first.
"""

import random

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from melodia.application.services import AlbumService, SongService
from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.infrastructure.persistence.repositories import (
    AlbumRepository,
    PlaylistRepository,
    SongRepository,
)


@pytest.fixture
def repo(session: AsyncSession) -> PlaylistRepository:
    return PlaylistRepository(session)


@pytest.fixture
async def owner(make_user):
    return await make_user()


@pytest.fixture
async def playlist(repo: PlaylistRepository, owner):
    return await repo.create({"user_id": owner.id, "name": "Road Trip"})


@pytest.fixture
async def songs(make_album, make_song):
    album = await make_album()
    return [
        await make_song(album_id=album.id, title=f"Track {n}", duration_seconds=100 + n)
        for n in range(1, 5)
    ]


async def _fill(repo: PlaylistRepository, playlist_id: str, songs) -> None:
    for song in songs:
        await repo.add_song_to_playlist(playlist_id, song.id)


class TestCreate:
    async def test_defaults(self, repo: PlaylistRepository, playlist) -> None:
        assert playlist.is_public is False
        assert playlist.is_collaborative is False
        assert playlist.total_songs == 0

    async def test_requires_name(self, repo: PlaylistRepository, owner) -> None:
        with pytest.raises(ValidationException) as exc_info:
            await repo.create({"user_id": owner.id, "name": "  "})
        assert exc_info.value.field == "name"


class TestAddSong:
    async def test_appends_positions(self, repo: PlaylistRepository, playlist, songs) -> None:
        await _fill(repo, playlist.id, songs)

        assert await repo.positions(playlist.id) == [1, 2, 3, 4]
        assert list(await repo.song_ids(playlist.id)) == [s.id for s in songs]

    async def test_updates_stats(self, repo: PlaylistRepository, playlist, songs) -> None:
        await _fill(repo, playlist.id, songs[:2])

        refreshed = await repo.get(playlist.id)
        assert refreshed.total_songs == 2
        assert refreshed.total_duration_seconds == 101 + 102

    async def test_duplicate_song_rejected(
        self, repo: PlaylistRepository, playlist, songs
    ) -> None:
        await repo.add_song_to_playlist(playlist.id, songs[0].id)

        with pytest.raises(ValidationException) as exc_info:
            await repo.add_song_to_playlist(playlist.id, songs[0].id)
        assert exc_info.value.field == "song_id"
        assert await repo.positions(playlist.id) == [1]

    async def test_unknown_song(self, repo: PlaylistRepository, playlist) -> None:
        with pytest.raises(EntityNotFoundException):
            await repo.add_song_to_playlist(playlist.id, "missing-song")

    async def test_unknown_playlist(self, repo: PlaylistRepository, songs) -> None:
        with pytest.raises(EntityNotFoundException):
            await repo.add_song_to_playlist("missing-playlist", songs[0].id)


class TestRemoveSong:
    async def test_closes_gap(self, repo: PlaylistRepository, playlist, songs) -> None:
        await _fill(repo, playlist.id, songs)

        await repo.remove_song_from_playlist(playlist.id, songs[1].id)

        assert await repo.positions(playlist.id) == [1, 2, 3]
        assert list(await repo.song_ids(playlist.id)) == [songs[0].id, songs[2].id, songs[3].id]
        assert (await repo.get(playlist.id)).total_songs == 3

    async def test_add_after_remove_goes_last(
        self, repo: PlaylistRepository, playlist, songs
    ) -> None:
        await _fill(repo, playlist.id, songs[:3])
        await repo.remove_song_from_playlist(playlist.id, songs[0].id)

        entry = await repo.add_song_to_playlist(playlist.id, songs[3].id)

        assert entry.position == 3
        assert await repo.positions(playlist.id) == [1, 2, 3]

    async def test_missing_entry(self, repo: PlaylistRepository, playlist, songs) -> None:
        with pytest.raises(EntityNotFoundException):
            await repo.remove_song_from_playlist(playlist.id, songs[0].id)


class TestReorder:
    async def test_applies_full_ordering(
        self, repo: PlaylistRepository, playlist, songs
    ) -> None:
        await _fill(repo, playlist.id, songs)
        a, b, c, d = (s.id for s in songs)

        entries = await repo.reorder_playlist_songs(playlist.id, {a: 4, b: 3, c: 2, d: 1})

        assert [e.song_id for e in entries] == [d, c, b, a]
        assert [e.position for e in entries] == [1, 2, 3, 4]

    async def test_missing_song_rejected(
        self, repo: PlaylistRepository, playlist, songs
    ) -> None:
        await _fill(repo, playlist.id, songs[:3])

        with pytest.raises(ValidationException) as exc_info:
            await repo.reorder_playlist_songs(playlist.id, {songs[0].id: 1, songs[1].id: 2})
        assert exc_info.value.field == "song_id"

    async def test_unknown_song_rejected(
        self, repo: PlaylistRepository, playlist, songs
    ) -> None:
        await _fill(repo, playlist.id, songs[:2])

        with pytest.raises(ValidationException) as exc_info:
            await repo.reorder_playlist_songs(
                playlist.id, {songs[0].id: 1, songs[3].id: 2}
            )
        assert exc_info.value.field == "song_id"

    @pytest.mark.parametrize("bad", [(1, 1, 2), (0, 1, 2), (1, 2, 4)])
    async def test_positions_must_be_permutation(
        self, repo: PlaylistRepository, playlist, songs, bad
    ) -> None:
        await _fill(repo, playlist.id, songs[:3])
        order = [(song.id, position) for song, position in zip(songs[:3], bad)]

        with pytest.raises(ValidationException) as exc_info:
            await repo.reorder_playlist_songs(playlist.id, order)
        assert exc_info.value.field == "positions"
        # nothing written
        assert list(await repo.song_ids(playlist.id)) == [s.id for s in songs[:3]]


class TestShuffleDuplicateClear:
    async def test_shuffle_keeps_positions_dense(
        self, repo: PlaylistRepository, playlist, songs
    ) -> None:
        await _fill(repo, playlist.id, songs)

        entries = await repo.shuffle_playlist(playlist.id, rng=random.Random(7))

        assert [e.position for e in entries] == [1, 2, 3, 4]
        assert {e.song_id for e in entries} == {s.id for s in songs}

    async def test_duplicate_copies_order(
        self, repo: PlaylistRepository, playlist, songs, make_user
    ) -> None:
        await repo.update_visibility(playlist.id, True)
        await _fill(repo, playlist.id, songs[:3])
        other = await make_user()

        copy = await repo.duplicate_playlist(playlist.id, "Road Trip (copy)", other.id)

        assert copy.id != playlist.id
        assert copy.user_id == other.id
        assert copy.is_public is False
        assert copy.total_songs == 3
        assert list(await repo.song_ids(copy.id)) == [s.id for s in songs[:3]]
        assert await repo.positions(copy.id) == [1, 2, 3]

    async def test_clear(self, repo: PlaylistRepository, playlist, songs) -> None:
        await _fill(repo, playlist.id, songs)

        removed = await repo.clear_playlist(playlist.id)

        assert removed == 4
        assert await repo.positions(playlist.id) == []
        refreshed = await repo.get(playlist.id)
        assert refreshed.total_songs == 0
        assert refreshed.total_duration_seconds == 0


class TestDetails:
    async def test_update_details_rejects_unknown_field(
        self, repo: PlaylistRepository, playlist
    ) -> None:
        with pytest.raises(ValidationException) as exc_info:
            await repo.update_details(playlist.id, {"total_songs": 10})
        assert exc_info.value.field == "total_songs"

    async def test_negative_stats_rejected(self, repo: PlaylistRepository, playlist) -> None:
        with pytest.raises(ValidationException) as exc_info:
            await repo.update_playlist_stats(playlist.id, -1, 0)
        assert exc_info.value.field == "total_songs"

    async def test_search_only_public(self, repo: PlaylistRepository, playlist, owner) -> None:
        public = await repo.create({"user_id": owner.id, "name": "Road Songs", "is_public": True})

        found = await repo.search("road")

        assert [p.id for p in found] == [public.id]


class TestCatalogDeletes:
    """Hard-deleting songs must leave every playlist that held them at 1..N."""

    async def test_detach_songs_renumbers_every_playlist(
        self, repo: PlaylistRepository, playlist, owner, songs
    ) -> None:
        other = await repo.create({"user_id": owner.id, "name": "Second"})
        await _fill(repo, playlist.id, songs)
        await _fill(repo, other.id, [songs[2], songs[0]])

        changed = await repo.detach_songs([songs[0].id, songs[1].id])

        assert sorted(changed) == sorted([playlist.id, other.id])
        assert list(await repo.song_ids(playlist.id)) == [songs[2].id, songs[3].id]
        assert await repo.positions(playlist.id) == [1, 2]
        assert list(await repo.song_ids(other.id)) == [songs[2].id]
        assert await repo.positions(other.id) == [1]
        assert (await repo.get(playlist.id)).total_duration_seconds == 103 + 104

    async def test_detach_untouched_song(self, repo: PlaylistRepository, playlist, songs) -> None:
        await _fill(repo, playlist.id, songs[:2])
        assert await repo.detach_songs([songs[3].id]) == []
        assert await repo.detach_songs([]) == []
        assert await repo.positions(playlist.id) == [1, 2]

    async def test_song_delete_then_add(
        self, session: AsyncSession, repo: PlaylistRepository, playlist, songs
    ) -> None:
        await _fill(repo, playlist.id, songs[:3])

        await SongService(session).delete_song(songs[0].id)
        entry = await repo.add_song_to_playlist(playlist.id, songs[3].id)

        assert entry.position == 3
        assert await repo.positions(playlist.id) == [1, 2, 3]
        assert (await repo.get(playlist.id)).total_songs == 3

    async def test_zero_play_cleanup_renumbers(
        self, session: AsyncSession, repo: PlaylistRepository, playlist, songs
    ) -> None:
        await _fill(repo, playlist.id, songs)
        song_repo = SongRepository(session)
        await song_repo.update_play_count(songs[0].id, 5)
        await song_repo.update_play_count(songs[3].id, 1)

        # a negative age puts the cutoff in the future, so every unplayed song qualifies
        deleted = await song_repo.delete_songs_with_zero_plays(older_than_days=-1)

        assert deleted == 2
        assert list(await repo.song_ids(playlist.id)) == [songs[0].id, songs[3].id]
        assert await repo.positions(playlist.id) == [1, 2]
        refreshed = await repo.get(playlist.id)
        assert refreshed.total_songs == 2
        assert refreshed.total_duration_seconds == 101 + 104
        album = await AlbumRepository(session).get(songs[0].album_id)
        assert (album.total_songs, album.duration_seconds) == (2, 101 + 104)


class TestPositionsStayDense:
    """Seeded random mixes of every operation that touches playlist_songs."""

    async def _assert_dense(
        self, repo: PlaylistRepository, expected: dict[str, list[str]]
    ) -> None:
        for playlist_id, song_ids in expected.items():
            assert list(await repo.song_ids(playlist_id)) == song_ids
            assert await repo.positions(playlist_id) == list(range(1, len(song_ids) + 1))
            assert (await repo.get(playlist_id)).total_songs == len(song_ids)

    @pytest.mark.parametrize("seed", [3, 11, 42])
    async def test_random_sequence(
        self, session: AsyncSession, repo: PlaylistRepository, owner, make_album, make_song, seed
    ) -> None:
        rng = random.Random(seed)
        albums = [await make_album(title="Side A"), await make_album(title="Side B")]
        pool = [
            (await make_song(album_id=albums[n % 2].id, title=f"Cut {n}")).id for n in range(10)
        ]
        playlist_ids = [
            (await repo.create({"user_id": owner.id, "name": f"Mix {n}"})).id for n in range(2)
        ]
        expected: dict[str, list[str]] = {playlist_id: [] for playlist_id in playlist_ids}
        song_service = SongService(session)

        for _ in range(40):
            playlist_id = rng.choice(playlist_ids)
            current = expected[playlist_id]
            op = rng.choice(["add", "add", "add", "remove", "reorder", "shuffle", "delete_song"])

            if op == "add":
                candidates = [song_id for song_id in pool if song_id not in current]
                if candidates:
                    song_id = rng.choice(candidates)
                    await repo.add_song_to_playlist(playlist_id, song_id)
                    current.append(song_id)
            elif op == "remove" and current:
                song_id = rng.choice(current)
                await repo.remove_song_from_playlist(playlist_id, song_id)
                current.remove(song_id)
            elif op == "reorder" and current:
                new_order = rng.sample(current, len(current))
                await repo.reorder_playlist_songs(
                    playlist_id, {song_id: n for n, song_id in enumerate(new_order, start=1)}
                )
                expected[playlist_id] = new_order
            elif op == "shuffle":
                await repo.shuffle_playlist(playlist_id, rng=rng)
                shuffled = list(await repo.song_ids(playlist_id))
                assert sorted(shuffled) == sorted(current)
                expected[playlist_id] = shuffled
            elif op == "delete_song" and len(pool) > 2:
                song_id = rng.choice(pool)
                await song_service.delete_song(song_id)
                pool.remove(song_id)
                for song_ids in expected.values():
                    if song_id in song_ids:
                        song_ids.remove(song_id)

            await self._assert_dense(repo, expected)

        doomed = {song.id for song in await AlbumRepository(session).get_album_songs(albums[0].id)}
        await AlbumService(session).delete_album(albums[0].id)
        for playlist_id in playlist_ids:
            expected[playlist_id] = [s for s in expected[playlist_id] if s not in doomed]

        await self._assert_dense(repo, expected)
