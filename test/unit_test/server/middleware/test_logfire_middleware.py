"""
Unit tests for the request middleware.

This test suite covers:
- Request/response processing and performance metrics
- Error handling and exception tracking
- Slow request detection
- Request correlation ids
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from starlette.responses import Response

from omnicrm.server.middleware import LogfireMiddleware, RequestContextMiddleware

MIDDLEWARE_MODULE = "omnicrm.server.middleware.logfire_middleware"


def _mock_request(method: str = "GET", path: str = "/api/v1/contacts"):
    mock_request = AsyncMock(spec=Request)
    mock_request.method = method
    mock_request.url.path = path
    mock_request.url.query = ""
    mock_request.state = MagicMock()
    return mock_request


class TestLogfireMiddlewareDispatch:
    """Test LogfireMiddleware.dispatch method."""

    @pytest.mark.asyncio
    async def test_middleware_processes_successful_request(self):
        """Test that middleware processes successful requests."""
        mock_response = Response(content="test", status_code=200)

        async def mock_call_next(request):
            return mock_response

        middleware = LogfireMiddleware(app=AsyncMock())

        with patch(f"{MIDDLEWARE_MODULE}.log_api_request") as mock_log:
            response = await middleware.dispatch(_mock_request(), mock_call_next)

            assert response.status_code == 200
            mock_log.assert_called_once()
            call_args = mock_log.call_args
            assert call_args[1]["method"] == "GET"
            assert call_args[1]["path"] == "/api/v1/contacts"
            assert call_args[1]["status_code"] == 200
            assert call_args[1]["duration_ms"] >= 0

    @pytest.mark.asyncio
    async def test_middleware_adds_process_time_header(self):
        async def mock_call_next(request):
            return Response(content="test", status_code=201)

        middleware = LogfireMiddleware(app=AsyncMock())

        with patch(f"{MIDDLEWARE_MODULE}.log_api_request"):
            response = await middleware.dispatch(_mock_request("POST"), mock_call_next)

        assert float(response.headers["X-Process-Time"]) >= 0

    @pytest.mark.asyncio
    async def test_middleware_detects_slow_requests(self):
        """Test that middleware detects and logs slow requests."""

        async def mock_call_next(request):
            return Response(content="test", status_code=200)

        middleware = LogfireMiddleware(app=AsyncMock())

        with patch(f"{MIDDLEWARE_MODULE}.log_api_request"):
            with patch(f"{MIDDLEWARE_MODULE}.logger") as mock_logger:
                with patch(f"{MIDDLEWARE_MODULE}.time.time") as mock_time:
                    mock_time.side_effect = [0, 1.5]

                    await middleware.dispatch(_mock_request(path="/api/v1/google/gmail/sync"), mock_call_next)

                    mock_logger.warning.assert_called_once()
                    assert "Slow API request" in mock_logger.warning.call_args[0][0]

    @pytest.mark.asyncio
    async def test_middleware_does_not_warn_on_fast_requests(self):
        async def mock_call_next(request):
            return Response(content="test", status_code=200)

        middleware = LogfireMiddleware(app=AsyncMock())

        with patch(f"{MIDDLEWARE_MODULE}.log_api_request"):
            with patch(f"{MIDDLEWARE_MODULE}.logger") as mock_logger:
                with patch(f"{MIDDLEWARE_MODULE}.time.time") as mock_time:
                    mock_time.side_effect = [0, 0.01]

                    await middleware.dispatch(_mock_request(), mock_call_next)

                    mock_logger.warning.assert_not_called()

    @pytest.mark.asyncio
    async def test_middleware_handles_request_exception(self):
        """Test that middleware handles exceptions during request processing."""

        async def mock_call_next(request):
            raise ValueError("Test error")

        middleware = LogfireMiddleware(app=AsyncMock())

        with patch(f"{MIDDLEWARE_MODULE}.log_api_request") as mock_log:
            with patch(f"{MIDDLEWARE_MODULE}.logger") as mock_logger:
                with pytest.raises(ValueError):
                    await middleware.dispatch(_mock_request(path="/api/v1/error"), mock_call_next)

                mock_logger.error.assert_called_once()
                mock_log.assert_called_once()
                assert mock_log.call_args[1]["status_code"] == 500

    @pytest.mark.asyncio
    async def test_middleware_stores_request_context(self):
        """Test that middleware stores the start time in request.state."""
        mock_request = _mock_request()

        async def mock_call_next(request):
            return Response(content="test", status_code=200)

        middleware = LogfireMiddleware(app=AsyncMock())

        with patch(f"{MIDDLEWARE_MODULE}.log_api_request"):
            await middleware.dispatch(mock_request, mock_call_next)

        assert isinstance(mock_request.state.start_time, float)

    @pytest.mark.asyncio
    async def test_middleware_logs_different_status_codes(self):
        middleware = LogfireMiddleware(app=AsyncMock())

        for status_code in (200, 201, 400, 404, 409, 429, 502):

            async def mock_call_next(request, status_code=status_code):
                return Response(content="", status_code=status_code)

            with patch(f"{MIDDLEWARE_MODULE}.log_api_request") as mock_log:
                response = await middleware.dispatch(_mock_request(), mock_call_next)

                assert response.status_code == status_code
                assert mock_log.call_args[1]["status_code"] == status_code


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/ping")
    async def ping(request: Request):
        return {"request_id": request.state.request_id}

    return app


class TestRequestContextMiddleware:
    """Correlation ids are taken from the caller or generated."""

    @pytest.mark.asyncio
    async def test_generates_request_id(self):
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
            response = await client.get("/ping")

        request_id = response.json()["request_id"]
        assert len(request_id) == 36
        assert response.headers["x-request-id"] == request_id

    @pytest.mark.asyncio
    async def test_uses_correlation_id_header(self):
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
            response = await client.get(
                "/ping", headers={"x-correlation-id": "corr-1", "x-request-id": "req-1"}
            )

        assert response.json()["request_id"] == "corr-1"
        assert response.headers["x-request-id"] == "corr-1"

    @pytest.mark.asyncio
    async def test_uses_request_id_header(self):
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
            response = await client.get("/ping", headers={"x-request-id": "req-1"})

        assert response.headers["x-request-id"] == "req-1"
