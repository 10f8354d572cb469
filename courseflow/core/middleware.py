"""Request middleware binding log context for every HTTP call."""

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from courseflow.core.context import (
    clear_context,
    set_learner_id,
    set_request_id,
    set_trace_id,
)


logger = structlog.get_logger(__name__)

DEFAULT_EXCLUDED_PATHS = ("/health", "/health/live", "/health/ready")


def trace_id_from_traceparent(traceparent: str | None) -> str | None:
    """Trace ID of a W3C `traceparent` ({version}-{trace-id}-{parent-id}-{flags})."""
    if not traceparent:
        return None
    parts = traceparent.split("-")
    return parts[1] if len(parts) >= 2 else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request, trace and learner IDs to the log context.

    The request ID is taken from X-Request-ID (or generated) and echoed on
    the response. Context is cleared when the request ends.
    """

    REQUEST_ID_HEADER = "X-Request-ID"
    TRACE_ID_HEADER = "X-Trace-ID"
    LEARNER_ID_HEADER = "X-Learner-Id"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = tuple(
            DEFAULT_EXCLUDED_PATHS if exclude_paths is None else exclude_paths
        )

    def _bind_context(self, request: Request) -> str:
        headers = request.headers
        request_id = set_request_id(headers.get(self.REQUEST_ID_HEADER))
        trace_id = headers.get(self.TRACE_ID_HEADER) or trace_id_from_traceparent(
            headers.get("traceparent")
        )
        if trace_id:
            set_trace_id(trace_id)
        if learner_id := headers.get(self.LEARNER_ID_HEADER):
            set_learner_id(learner_id)
        request.state.request_id = request_id
        return request_id

    def _is_logged(self, path: str) -> bool:
        return self.log_requests and not path.startswith(self.exclude_paths)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        request_id = self._bind_context(request)
        path = request.url.path
        logged = self._is_logged(path)

        if logged:
            logger.info("request_started", method=request.method, path=path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=path,
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            raise
        finally:
            clear_context()

        if logged:
            level = logger.warning if response.status_code >= 400 else logger.info
            level(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        response.headers[self.REQUEST_ID_HEADER] = request_id
        return response


__all__ = ["RequestContextMiddleware", "trace_id_from_traceparent"]
