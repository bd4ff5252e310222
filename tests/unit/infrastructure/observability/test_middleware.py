"""Unit tests for RequestLoggingMiddleware."""

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI, Request, Response
from fastapi.testclient import TestClient
from starlette.middleware.base import BaseHTTPMiddleware

from melodia.infrastructure.observability.middleware import (
    CORRELATION_HEADER,
    RequestLoggingMiddleware,
)

MIDDLEWARE = "melodia.infrastructure.observability.middleware"


class TestRequestLoggingMiddleware:
    """Test suite for RequestLoggingMiddleware."""

    @pytest.fixture
    def app(self) -> FastAPI:
        """Create a FastAPI app with middleware for testing."""
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware, log_request_body=False)

        @app.get("/test")
        async def test_endpoint():
            return {"message": "test"}

        @app.post("/test")
        async def test_post_endpoint():
            return {"message": "post test"}

        @app.get("/missing")
        async def missing_endpoint():
            return Response(status_code=404)

        @app.get("/error")
        async def error_endpoint():
            raise ValueError("Test error")

        @app.get("/health/live")
        async def health_endpoint():
            return {"status": "alive"}

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        return TestClient(app)

    def test_middleware_initialization_default(self):
        """Default construction keeps bodies out of the log and silences /health."""
        middleware = RequestLoggingMiddleware(app=FastAPI())

        assert middleware.log_request_body is False
        assert middleware.quiet_paths == ("/health",)
        assert isinstance(middleware, BaseHTTPMiddleware)

    def test_successful_request_logs_start_and_completion(self, client: TestClient):
        """A request logs '→ GET /test' and then '✓ GET /test → 200 (Xms)'."""
        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            response = client.get("/test")

        assert response.status_code == 200
        assert mock_logger.info.call_count == 2

        start_message = mock_logger.info.call_args_list[0][0][0]
        done_message = mock_logger.info.call_args_list[1][0][0]
        assert start_message == "→ GET /test"
        assert done_message.startswith("✓ GET /test → 200")
        assert done_message.endswith("ms)")

    def test_client_error_uses_failure_marker(self, client: TestClient):
        """4xx/5xx responses are marked with ✗."""
        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            response = client.get("/missing")

        assert response.status_code == 404
        done_message = mock_logger.info.call_args_list[-1][0][0]
        assert done_message.startswith("✗ GET /missing → 404")

    def test_completion_log_carries_structured_fields(self, client: TestClient):
        """status_code and duration_ms go into extra, not only the message."""
        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            client.get("/test?param1=value1")

        start_extra = mock_logger.info.call_args_list[0][1]["extra"]
        done_extra = mock_logger.info.call_args_list[1][1]["extra"]
        assert start_extra["query_params"] == "param1=value1"
        assert done_extra["status_code"] == 200
        assert done_extra["duration_ms"] >= 0

    def test_health_paths_are_not_logged(self, client: TestClient):
        """Probe traffic stays out of the log."""
        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            response = client.get("/health/live")

        assert response.status_code == 200
        mock_logger.info.assert_not_called()

    def test_request_with_correlation_id_header(self, client: TestClient):
        """An incoming X-Correlation-ID is reused and echoed back."""
        with (
            patch(f"{MIDDLEWARE}.set_correlation_id") as mock_set_correlation_id,
            patch(f"{MIDDLEWARE}.get_correlation_id", return_value="test-correlation-id"),
        ):
            response = client.get("/test", headers={CORRELATION_HEADER: "custom-id"})

        mock_set_correlation_id.assert_called_once_with("custom-id")
        assert response.headers[CORRELATION_HEADER] == "test-correlation-id"

    def test_request_without_correlation_id_header(self, client: TestClient):
        """Without the header the middleware asks for a fresh id (None)."""
        with patch(f"{MIDDLEWARE}.set_correlation_id") as mock_set_correlation_id:
            response = client.get("/test")

        mock_set_correlation_id.assert_called_once_with(None)
        assert CORRELATION_HEADER in response.headers

    def test_real_correlation_id_round_trip(self, client: TestClient):
        """Unpatched, the echoed header equals the one sent."""
        response = client.get("/test", headers={CORRELATION_HEADER: "abc-123"})

        assert response.headers[CORRELATION_HEADER] == "abc-123"

    def test_error_request_logs_exception(self, client: TestClient):
        """Unhandled errors are logged with logger.exception and re-raised."""
        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            with pytest.raises(ValueError):
                client.get("/error")

        assert mock_logger.exception.call_count == 1
        message = mock_logger.exception.call_args[0][0]
        extra = mock_logger.exception.call_args[1]["extra"]
        assert message == "Request failed: GET /error"
        assert extra["error_type"] == "ValueError"
        assert extra["error_message"] == "Test error"

    def test_multiple_requests_independent_logging(self, client: TestClient):
        """Each request logs its own start and completion line."""
        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            client.get("/test")
            client.post("/test")
            client.get("/test?param=value")

        assert mock_logger.info.call_count == 6

    def test_request_without_client(self):
        """A request without client info is logged with client_ip 'unknown'."""
        mock_request = MagicMock(spec=Request)
        mock_request.method = "GET"
        mock_request.url.path = "/test"
        mock_request.client = None
        mock_request.headers.get = MagicMock(return_value=None)
        mock_request.query_params = {}

        middleware = RequestLoggingMiddleware(app=FastAPI())

        async def mock_call_next(request):
            return Response(status_code=200)

        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            response = asyncio.run(middleware.dispatch(mock_request, mock_call_next))

        assert response.status_code == 200
        assert mock_logger.info.call_args_list[0][1]["extra"]["client_ip"] == "unknown"


class TestRequestBodyLogging:
    """log_request_body only applies to write methods."""

    @pytest.fixture
    def client(self) -> TestClient:
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware, log_request_body=True)

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        @app.get("/echo")
        async def echo_get():
            return {}

        return TestClient(app)

    def test_post_body_is_logged(self, client: TestClient):
        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            response = client.post("/echo", json={"title": "Song"})

        assert response.json() == {"title": "Song"}
        logged_body = mock_logger.info.call_args_list[0][1]["extra"]["body"]
        assert json.loads(logged_body) == {"title": "Song"}

    def test_get_body_is_not_logged(self, client: TestClient):
        with patch(f"{MIDDLEWARE}.logger") as mock_logger:
            client.get("/echo")

        assert "body" not in mock_logger.info.call_args_list[0][1]["extra"]
