"""Exception handlers for the FastAPI application.

Every class of the domain exception taxonomy maps to one status code here, so
services and repositories raise domain errors and never think about HTTP.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from melodia.domain.exceptions import (
    ConfigurationError,
    DuplicateEntityException,
    EntityNotFoundException,
    RepositoryError,
    ServiceError,
    ValidationException,
)

logger = logging.getLogger(__name__)


# Hey future me - exc.errors() can carry the raw request body as bytes in "input",
# and JSONResponse chokes on bytes. Walk the structure and decode before returning.
def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        if isinstance(value, dict):
            return {k: _sanitize(v) for k, v in value.items()}
        if isinstance(value, list | tuple):
            return [_sanitize(item) for item in value]
        if isinstance(value, BaseException):
            return str(value)
        return value

    return [_sanitize(error) for error in errors]


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers mapping domain exceptions to JSON error responses.

    Status codes:
    - EntityNotFoundException -> 404
    - DuplicateEntityException -> 409
    - ValidationException / RequestValidationError -> 422
    - ServiceError and subclasses -> their ``status_code``
    - RepositoryError -> 500
    - ConfigurationError -> 503

    Must run during app setup, before the first request.
    """

    @app.exception_handler(ValidationException)
    async def validation_exception_handler(
        request: Request, exc: ValidationException
    ) -> JSONResponse:
        logger.warning(
            "Validation error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "field": exc.field},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.message, "field": exc.field},
        )

    @app.exception_handler(EntityNotFoundException)
    async def entity_not_found_exception_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        logger.info(
            "Entity not found at %s: %s %s",
            request.url.path,
            exc.entity_type,
            exc.entity_id,
            extra={
                "path": request.url.path,
                "entity_type": exc.entity_type,
                "entity_id": str(exc.entity_id),
            },
        )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": exc.message},
        )

    @app.exception_handler(DuplicateEntityException)
    async def duplicate_entity_exception_handler(
        request: Request, exc: DuplicateEntityException
    ) -> JSONResponse:
        logger.warning(
            "Duplicate entity at %s: %s",
            request.url.path,
            exc.entity_type,
            extra={"path": request.url.path, "entity_type": exc.entity_type, "field": exc.field},
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": exc.message, "field": exc.field},
        )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        # Covers ControllerError, AuthenticationError and AuthorizationError too.
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "%s at %s: %s",
            type(exc).__name__,
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RepositoryError)
    async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
        logger.error(
            "Store failure at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "code": exc.code},
            exc_info=exc.cause,
        )
        # Driver text stays in the log; clients get a generic message.
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal storage error"},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error(
            "Configuration error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = _sanitize_validation_errors(list(exc.errors()))
        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            errors,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": errors},
        )
