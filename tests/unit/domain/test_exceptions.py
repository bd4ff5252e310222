"""Unit tests for the domain exception taxonomy."""

import pytest

from melodia.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ControllerError,
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    RepositoryError,
    ServiceError,
    ValidationException,
)


class TestMessages:
    """Each exception builds a readable message and keeps its attributes."""

    def test_entity_not_found(self) -> None:
        exc = EntityNotFoundException("Song", "abc")
        assert exc.message == "Song with id abc not found"
        assert str(exc) == exc.message
        assert exc.entity_type == "Song"
        assert exc.entity_id == "abc"

    def test_validation_field(self) -> None:
        exc = ValidationException("Positions must be sequential", field="positions")
        assert exc.field == "positions"
        assert ValidationException("x").field is None

    @pytest.mark.parametrize(
        ("field", "value", "expected"),
        [
            ("isrc", "USRC1", "Song with isrc 'USRC1' already exists"),
            ("isrc", None, "Song with this isrc already exists"),
            (None, None, "Song already exists"),
        ],
    )
    def test_duplicate_entity(self, field, value, expected) -> None:
        assert DuplicateEntityException("Song", field=field, value=value).message == expected

    def test_repository_error_keeps_cause(self) -> None:
        cause = RuntimeError("disk I/O error")
        exc = RepositoryError("Database error", code="5", cause=cause)
        assert exc.code == "5"
        assert exc.cause is cause


class TestServiceErrors:
    """Status codes travel with the service-layer exceptions."""

    def test_default_status(self) -> None:
        assert ServiceError("boom").status_code == 500

    def test_explicit_status(self) -> None:
        assert ServiceError("gone", status_code=410).status_code == 410

    def test_subclass_statuses(self) -> None:
        assert ControllerError("bad").status_code == 400
        assert AuthenticationError().status_code == 401
        assert AuthenticationError().message == "Authentication required"
        assert AuthorizationError().status_code == 403

    def test_hierarchy(self) -> None:
        for exc in (
            EntityNotFoundException("Album", 1),
            ValidationException("x"),
            DuplicateEntityException("User"),
            RepositoryError("x"),
            AuthorizationError(),
            ConfigurationError("x"),
        ):
            assert isinstance(exc, DomainException)
        assert isinstance(AuthorizationError(), ServiceError)
