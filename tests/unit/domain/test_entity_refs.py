"""Unit tests for EntityKind and EntityRef."""

import dataclasses

import pytest

from melodia.domain.exceptions import ValidationException
from melodia.domain.value_objects import (
    FOLLOWABLE_KINDS,
    LIBRARY_ITEM_KINDS,
    LIKEABLE_KINDS,
    EntityKind,
    EntityRef,
)


class TestEntityKindParse:
    """Tests for EntityKind.parse with and without an allowed set."""

    def test_parse_without_allowed_set(self) -> None:
        assert EntityKind.parse("user", "kind") is EntityKind.USER

    def test_parse_is_case_insensitive(self) -> None:
        assert EntityKind.parse(" Song ", "likeable_type", LIKEABLE_KINDS) is EntityKind.SONG

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            EntityKind.parse("podcast", "likeable_type", LIKEABLE_KINDS)

        assert exc_info.value.field == "likeable_type"
        assert "album, artist, playlist, song" in exc_info.value.message

    def test_known_kind_outside_allowed_set(self) -> None:
        """Users cannot be liked, only followed."""
        with pytest.raises(ValidationException) as exc_info:
            EntityKind.parse("user", "likeable_type", LIKEABLE_KINDS)

        assert exc_info.value.field == "likeable_type"

    def test_follow_kinds(self) -> None:
        assert EntityKind.parse("artist", "followable_type", FOLLOWABLE_KINDS) is EntityKind.ARTIST
        with pytest.raises(ValidationException):
            EntityKind.parse("song", "followable_type", FOLLOWABLE_KINDS)


class TestKindSets:
    """The per-association allowed sets."""

    def test_likeable(self) -> None:
        assert {k.value for k in LIKEABLE_KINDS} == {"song", "album", "playlist", "artist"}

    def test_followable(self) -> None:
        assert {k.value for k in FOLLOWABLE_KINDS} == {"user", "artist"}

    def test_library_items(self) -> None:
        assert EntityKind.USER not in LIBRARY_ITEM_KINDS
        assert len(LIBRARY_ITEM_KINDS) == 4


class TestEntityRef:
    """Tests for the immutable (kind, id) pointer."""

    def test_str(self) -> None:
        assert str(EntityRef(EntityKind.SONG, "abc")) == "song:abc"

    def test_equality_and_hash(self) -> None:
        a = EntityRef(EntityKind.ALBUM, "1")
        b = EntityRef(EntityKind.ALBUM, "1")
        assert a == b
        assert len({a, b}) == 1

    def test_frozen(self) -> None:
        ref = EntityRef(EntityKind.ARTIST, "x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            ref.id = "y"  # type: ignore[misc]

    @pytest.mark.parametrize("bad_id", ["", "   "])
    def test_blank_id_rejected(self, bad_id: str) -> None:
        with pytest.raises(ValidationException) as exc_info:
            EntityRef(EntityKind.SONG, bad_id)
        assert exc_info.value.field == "id"
