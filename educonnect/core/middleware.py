"""Custom security middleware."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from educonnect.core.config import settings

UPLOADS_PATH_PREFIX = "/uploads/"

_API_CSP = "default-src 'none'; frame-ancestors 'none'"
# Uploaded files are user content: allow viewing, never script execution
_UPLOAD_CSP = "default-src 'none'; img-src 'self'; media-src 'self'; style-src 'unsafe-inline'; sandbox"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add standard security headers to every HTTP response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=()"
        )

        if request.url.path.startswith(UPLOADS_PATH_PREFIX):
            response.headers["Content-Security-Policy"] = _UPLOAD_CSP
            response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"
        else:
            response.headers["X-Frame-Options"] = "DENY"
            # Swagger UI pulls its assets from a CDN
            if not request.url.path.startswith(("/docs", "/redoc")):
                response.headers["Content-Security-Policy"] = _API_CSP

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response
