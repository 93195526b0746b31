"""
HTTP middlewares for the FastAPI application.
Security headers and content-type validation for a JSON-only API.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    The API only serves JSON, so framing and sniffing are disabled outright
    and HSTS is sent in production.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        if "server" in response.headers:
            del response.headers["server"]

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class ContentTypeValidationMiddleware(BaseHTTPMiddleware):
    """
    Reject request bodies that are not JSON with 415.

    Requests without a Content-Type header pass through; FastAPI then
    reports the missing body itself.
    """

    METHODS_WITH_BODY = {"POST", "PUT", "PATCH"}

    async def dispatch(self, request: Request, call_next):
        if request.method in self.METHODS_WITH_BODY:
            content_type = request.headers.get("content-type", "")
            if content_type and not content_type.startswith("application/json"):
                return JSONResponse(
                    status_code=415,
                    content={
                        "detail": "Unsupported Media Type. Use application/json",
                        "code": "UNSUPPORTED_MEDIA_TYPE",
                    },
                )
        return await call_next(request)


def register_middlewares(app: FastAPI) -> None:
    """
    Register the HTTP middlewares on the FastAPI application.

    Middlewares run in reverse order of registration: correlation IDs are
    assigned first so every later log line carries one.
    """
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ContentTypeValidationMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
