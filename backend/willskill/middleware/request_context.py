"""
Request Context Middleware Module
=================================

Starlette middleware for request processing:
- Request ID generation for tracing
- Request timing
- Security headers on every response

Authentication is not done here; it happens in the dependency layer.
"""

import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from willskill.core.config import settings
from willskill.core.logging import LogContext, get_logger

# Initialize logger
logger = get_logger(__name__)

_QUIET_PATHS = {"/", "/health"}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ID and logs its outcome and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        # Filled in by get_current_user; stays None if the request fails before auth
        request.state.user_id = None

        start_time = time.perf_counter()
        try:
            with LogContext(request_id=request_id):
                response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request processing error",
                extra={
                    "error": str(e),
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            raise

        process_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        self._log_request(request, response, process_time)
        return response

    @staticmethod
    def _log_request(request: Request, response: Response, process_time: float) -> None:
        if request.url.path in _QUIET_PATHS:
            return

        log_data = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "process_time_ms": round(process_time * 1000, 2),
            "user_id": getattr(request.state, "user_id", None),
            "ip_address": request.client.host if request.client else None,
        }

        if response.status_code >= 500:
            logger.error("Request completed with error", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request completed with client error", extra=log_data)
        else:
            logger.info("Request completed", extra=log_data)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.

    HSTS is only sent in production.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "frame-ancestors 'none';"
        )

        if settings.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response
