"""
FRA Patta - HTTP Middleware
Correlation IDs, access logging and response security headers
"""

import time
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from fra_patta.core.logging_config import logger, set_request_id, set_user_id, generate_request_id


QUIET_PATHS = frozenset({"/", "/health", "/api/v1/health", "/docs", "/redoc", "/openapi.json"})

# Document uploads run text extraction inline, so they get a wider budget
SLOW_REQUEST_MS = 1000
SLOW_UPLOAD_MS = 10000
UPLOAD_SUFFIXES = ("/upload", "/upload-multiple", "/report")

# Only the policy viewer is meant to be embedded (in the portal's own pages)
EMBEDDABLE_PREFIX = "/api/v1/policy/view/"


def slow_threshold_ms(path: str) -> float:
    return SLOW_UPLOAD_MS if path.endswith(UPLOAD_SUFFIXES) else SLOW_REQUEST_MS


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with X-Request-ID and log it with its duration"""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.error(f"[HTTP] {request.method} {request.url.path} raised", exc_info=True)
            raise
        else:
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"
            self.log_completed(request, response, elapsed_ms)
            return response
        finally:
            set_request_id("")
            set_user_id("")

    @staticmethod
    def log_completed(request: Request, response: Response, elapsed_ms: float) -> None:
        path = request.url.path
        if path in QUIET_PATHS:
            return
        logger.log_request(
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            client_ip=request.client.host if request.client else "unknown",
        )
        if elapsed_ms > slow_threshold_ms(path):
            logger.warning(f"[HTTP] Slow request: {request.method} {path} took {elapsed_ms:.0f}ms")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith(EMBEDDABLE_PREFIX):
            response.headers["X-Frame-Options"] = "SAMEORIGIN"
        else:
            response.headers["X-Frame-Options"] = "DENY"
        return response
