"""Domain exceptions.

Layering:
- Repositories raise EntityNotFoundException, DuplicateEntityException,
  ValidationException and RepositoryError.
- Services add ServiceError (and its auth subclasses) with an HTTP-ish status.
- API handlers may wrap anything into ControllerError.

The API maps every class here to a status code in api/exception_handlers.py.
"""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is kept as an attribute so handlers can read it without str(exc).
    # Never raise this directly - pick a subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    # entity_id may be a composite like "playlist_id:song_id" for join rows.
    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input fails validation before any store call.

    ``field`` names the offending input (e.g. ``album_type``, ``song_id``,
    ``positions``) so clients can highlight it.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class DuplicateEntityException(DomainException):
    """Raised when a uniqueness rule is violated.

    Comes from two places: the store's unique constraints (translated in
    persistence/errors.py, ``field`` parsed from the driver message) and
    in-memory rules such as adding a song to a collection twice.
    """

    def __init__(
        self,
        entity_type: str,
        field: str | None = None,
        value: Any = None,
    ) -> None:
        if field and value is not None:
            message = f"{entity_type} with {field} {value!r} already exists"
        elif field:
            message = f"{entity_type} with this {field} already exists"
        else:
            message = f"{entity_type} already exists"
        super().__init__(message)
        self.entity_type = entity_type
        self.field = field
        self.value = value


class RepositoryError(DomainException):
    """Unknown store failure, wrapped with its driver code and original cause."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.cause = cause


class ServiceError(DomainException):
    """Service-layer failure carrying an HTTP-style status code."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.cause = cause


class ControllerError(ServiceError):
    """Request-handling failure (bad request shape, unsupported operation)."""

    status_code = 400


class AuthenticationError(ServiceError):
    """Authentication failed or is missing.

    HTTP Status: 401
    """

    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class AuthorizationError(ServiceError):
    """Authenticated caller may not touch the resource.

    HTTP Status: 403

    Example:
        raise AuthorizationError("Only the owner can edit this playlist")
    """

    status_code = 403

    def __init__(self, message: str = "Not allowed") -> None:
        super().__init__(message)


class ConfigurationError(DomainException):
    """Configuration is missing or invalid.

    HTTP Status: 503
    """

    pass


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "ControllerError",
    "DomainException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "RepositoryError",
    "ServiceError",
    "ValidationException",
]
