from typing import Callable, Dict, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# The API only serves JSON; the interactive docs are the one HTML surface
PRODUCTION_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Cache-Control": "no-store",
}

DEVELOPMENT_HEADERS = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    # Swagger UI loads its assets from a CDN
    "Content-Security-Policy": "default-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; img-src 'self' data: https:;",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers; the header set depends on the environment"""

    def __init__(
        self,
        app,
        environment: str = "development",
        custom_headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(app)
        base = DEVELOPMENT_HEADERS if environment == "development" else PRODUCTION_HEADERS
        self.headers = {**base, **(custom_headers or {})}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for header_name, header_value in self.headers.items():
            response.headers.setdefault(header_name, header_value)

        return response
