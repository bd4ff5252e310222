"""Middleware for observability: request/response logging."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from melodia.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


# Hey future me, create_app() puts this inside CORS but outside every router, so every
# log line of a request (repositories included) carries the same correlation_id. Health
# probes are not logged, they fire every few seconds and bury real traffic.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses."""

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        quiet_paths: tuple[str, ...] = ("/health",),
    ) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application
            log_request_body: Whether to log request body (can be verbose)
            quiet_paths: Path prefixes that are not logged
        """
        super().__init__(app)
        self.log_request_body = log_request_body
        self.quiet_paths = quiet_paths

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Tag the request with a correlation ID, then log it and its response."""
        set_correlation_id(request.headers.get(CORRELATION_HEADER))

        method = request.method
        path = request.url.path
        quiet = path.startswith(self.quiet_paths)

        if not quiet:
            extra: dict[str, object] = {
                "method": method,
                "path": path,
                "query_params": str(request.query_params),
                "client_ip": request.client.host if request.client else "unknown",
            }
            if self.log_request_body and method in {"POST", "PUT", "PATCH"}:
                extra["body"] = (await request.body()).decode("utf-8", errors="replace")[:2000]
            logger.info(f"→ {method} {path}", extra=extra)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"Request failed: {method} {path}",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        if not quiet:
            marker = "✓" if response.status_code < 400 else "✗"
            logger.info(
                f"{marker} {method} {path} → {response.status_code} ({duration_ms}ms)",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )

        response.headers[CORRELATION_HEADER] = get_correlation_id()
        return response
