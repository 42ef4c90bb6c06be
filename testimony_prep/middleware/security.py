"""
Security Middleware
====================

Response hardening headers and optional HTTPS redirect.
"""

from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.types import ASGIApp

from ..config import get_settings

# /docs loads the Swagger UI bundle from jsDelivr
CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "img-src 'self' data: https:; "
    "frame-ancestors 'none';"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Headers added to every response:
    - X-Content-Type-Options, X-Frame-Options, Referrer-Policy
    - Content-Security-Policy
    - Strict-Transport-Security when the request arrived over HTTPS
    """

    def __init__(self, app: ASGIApp, enforce_https: Optional[bool] = None, hsts_max_age: Optional[int] = None):
        super().__init__(app)
        settings = get_settings()
        self.enforce_https = settings.enforce_https if enforce_https is None else enforce_https
        self.hsts_max_age = settings.hsts_max_age if hsts_max_age is None else hsts_max_age

    @staticmethod
    def _is_https(request: Request) -> bool:
        return request.url.scheme == "https" or request.headers.get("x-forwarded-proto") == "https"

    async def dispatch(self, request: Request, call_next) -> Response:
        if self.enforce_https and not self._is_https(request):
            url = str(request.url).replace("http://", "https://", 1)
            return RedirectResponse(url, status_code=301)

        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)

        if self._is_https(request):
            response.headers["Strict-Transport-Security"] = f"max-age={self.hsts_max_age}; includeSubDomains"

        return response
