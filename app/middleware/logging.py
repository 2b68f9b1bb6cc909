"""
Request logging middleware.

Every request gets an id, taken from an upstream `X-Request-ID` header or
generated, that is attached to all records logged while serving it and
echoed back in the response.
"""

import logging
import time
import uuid
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from socialpublish.utils.logging import get_request_id, request_context

logger = logging.getLogger(__name__)

# Only logged when they fail
QUIET_PATHS = ("/health", "/favicon.ico")


def _status_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one line per request with its status and duration, and sets the
    `X-Request-ID` and `X-Response-Time` response headers.
    """

    def __init__(self, app, quiet_paths: Iterable[str] = QUIET_PATHS):
        super().__init__(app)
        self.quiet_paths = frozenset(quiet_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        with request_context(request_id):
            try:
                response = await call_next(request)
            except Exception:
                logger.error(
                    f"{request.method} {request.url.path} failed",
                    extra={"duration_ms": self._elapsed_ms(start)},
                    exc_info=True,
                )
                raise

            duration_ms = self._elapsed_ms(start)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            status = response.status_code
            if request.url.path not in self.quiet_paths or status >= 400:
                logger.log(
                    _status_level(status),
                    f"{request.method} {request.url.path} {status} ({duration_ms:.2f}ms)",
                    extra={"http_status": status, "duration_ms": duration_ms},
                )
            return response

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return round((time.perf_counter() - start) * 1000, 2)


def get_request_id_from_request(request: Request) -> Optional[str]:
    """Request id assigned by the middleware, for use in handlers."""
    return getattr(request.state, "request_id", None) or get_request_id()
