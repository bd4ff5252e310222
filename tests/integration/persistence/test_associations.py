"""Integration tests for likes, follows and library saves."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from melodia.domain.exceptions import EntityNotFoundException, ValidationException
from melodia.infrastructure.persistence.repositories import (
    SongRepository,
    UserFollowsRepository,
    UserLibraryRepository,
    UserLikesRepository,
)


@pytest.fixture
def likes(session: AsyncSession) -> UserLikesRepository:
    return UserLikesRepository(session)


@pytest.fixture
def follows(session: AsyncSession) -> UserFollowsRepository:
    return UserFollowsRepository(session)


@pytest.fixture
def library(session: AsyncSession) -> UserLibraryRepository:
    return UserLibraryRepository(session)


class TestLikes:
    """Liking a song moves songs.like_count in the same unit of work."""

    async def test_like_bumps_counter(self, session, likes, make_user, make_song) -> None:
        user = await make_user()
        song = await make_song()

        await likes.like_item(user.id, "song", song.id)

        assert (await SongRepository(session).get(song.id)).like_count == 1
        assert await likes.is_liked(user.id, "SONG", song.id) is True

    async def test_toggle_twice_restores_counter(
        self, session, likes, make_user, make_song
    ) -> None:
        user = await make_user()
        song = await make_song()

        liked, row = await likes.toggle_like(user.id, "song", song.id)
        assert liked is True
        assert row is not None

        liked, row = await likes.toggle_like(user.id, "song", song.id)
        assert liked is False
        assert row is None
        assert (await SongRepository(session).get(song.id)).like_count == 0

    async def test_duplicate_like(self, likes, make_user, make_song) -> None:
        user = await make_user()
        song = await make_song()
        await likes.like_item(user.id, "song", song.id)

        with pytest.raises(ValidationException) as exc_info:
            await likes.like_item(user.id, "song", song.id)
        assert exc_info.value.field == "likeable_id"

    async def test_unknown_kind(self, likes, make_user) -> None:
        user = await make_user()
        with pytest.raises(ValidationException) as exc_info:
            await likes.like_item(user.id, "user", user.id)
        assert exc_info.value.field == "likeable_type"

    async def test_missing_target(self, likes, make_user) -> None:
        user = await make_user()
        with pytest.raises(EntityNotFoundException):
            await likes.like_item(user.id, "album", "no-such-album")

    async def test_unlike_without_like(self, likes, make_user, make_song) -> None:
        user = await make_user()
        song = await make_song()
        with pytest.raises(EntityNotFoundException):
            await likes.unlike_item(user.id, "song", song.id)

    async def test_liked_songs_and_stats(
        self, likes, make_user, make_song, make_album
    ) -> None:
        user = await make_user()
        first = await make_song(title="First")
        second = await make_song(title="Second")
        album = await make_album(title="Liked Album")
        for song in (first, second):
            await likes.like_item(user.id, "song", song.id)
        await likes.like_item(user.id, "album", album.id)

        liked = await likes.get_liked_songs(user.id)
        stats = await likes.get_user_like_stats(user.id)

        assert {s.id for s in liked} == {first.id, second.id}
        assert stats == {
            "total_likes": 3,
            "album": 1,
            "artist": 0,
            "playlist": 0,
            "song": 2,
        }
        assert await likes.count_likes_for_item("song", first.id) == 1

    async def test_popular_items(self, likes, make_user, make_song) -> None:
        hit = await make_song(title="Hit")
        miss = await make_song(title="Miss")
        for _ in range(3):
            user = await make_user()
            await likes.like_item(user.id, "song", hit.id)
        await likes.like_item(user.id, "song", miss.id)

        assert await likes.get_popular_items("song", limit=2) == [(hit.id, 3), (miss.id, 1)]


class TestFollows:
    async def test_self_follow_rejected(self, follows, make_user) -> None:
        user = await make_user()
        with pytest.raises(ValidationException) as exc_info:
            await follows.follow_item(user.id, "user", user.id)
        assert exc_info.value.field == "followable_id"

    async def test_song_is_not_followable(self, follows, make_user, make_song) -> None:
        user = await make_user()
        song = await make_song()
        with pytest.raises(ValidationException) as exc_info:
            await follows.follow_item(user.id, "song", song.id)
        assert exc_info.value.field == "followable_type"

    async def test_follow_stats(self, follows, make_user, make_artist) -> None:
        alice = await make_user()
        bob = await make_user()
        artist = await make_artist()

        await follows.follow_item(alice.id, "artist", artist.id)
        await follows.follow_item(alice.id, "user", bob.id)
        await follows.follow_item(bob.id, "user", alice.id)

        stats = await follows.get_user_follow_stats(alice.id)
        assert stats == {
            "total_following": 2,
            "following_artists": 1,
            "following_users": 1,
            "total_followers": 1,
        }
        followers = await follows.get_followers("user", alice.id)
        assert [u.id for u in followers] == [bob.id]

    async def test_mutual_follows(self, follows, make_user, make_artist) -> None:
        alice = await make_user()
        bob = await make_user()
        shared = await make_artist()
        only_alice = await make_artist()
        await follows.follow_item(alice.id, "artist", shared.id)
        await follows.follow_item(alice.id, "artist", only_alice.id)
        await follows.follow_item(bob.id, "artist", shared.id)

        mutual = await follows.get_mutual_follows(alice.id, bob.id)

        assert [a.id for a in mutual["artists"]] == [shared.id]
        assert mutual["users"] == []


class TestLibrary:
    async def test_save_and_toggle(self, library, make_user, make_album) -> None:
        user = await make_user()
        album = await make_album()

        saved, _ = await library.toggle_save(user.id, "album", album.id)
        assert saved is True
        assert [a.id for a in await library.get_saved_albums(user.id)] == [album.id]

        saved, _ = await library.toggle_save(user.id, "album", album.id)
        assert saved is False
        assert await library.get_saved_albums(user.id) == []

    async def test_clear_library(self, library, make_user, make_song) -> None:
        user = await make_user()
        for _ in range(2):
            await library.save_item(user.id, "song", (await make_song()).id)

        assert await library.clear_user_library(user.id) == 2
        assert (await library.get_user_library_stats(user.id))["total_saved"] == 0
