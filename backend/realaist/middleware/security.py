"""
HTTP middleware for the Realaist campaigns API.

Implements:
- Request IDs bound into the structlog context
- Secure response headers (Paystack checkout allowed by the CSP)
- Per-client rate limiting with slowapi
- Access logging
- CORS for the marketplace frontend
"""

import time
import uuid
from typing import Callable

import secure
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from realaist.config import settings

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# Paths excluded from access logs
QUIET_PATHS = frozenset({"/health", "/health/ready", "/health/live", "/metrics"})

PAYSTACK_ORIGINS = ("https://api.paystack.co", "https://checkout.paystack.com", "https://js.paystack.co")


def get_client_ip(request: Request) -> str:
    """Client address, preferring the first X-Forwarded-For hop."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.rate_limit_api],
    storage_uri=settings.rate_limit_storage_uri,
    strategy="fixed-window",
)


secure_headers = secure.Secure(
    hsts=secure.StrictTransportSecurity().max_age(31536000).include_subdomains(),
    xfo=secure.XFrameOptions().deny(),
    xcto=secure.XContentTypeOptions(),
    csp=secure.ContentSecurityPolicy()
    .default_src("'self'")
    .script_src("'self'", "https://js.paystack.co")
    .frame_src("'self'", "https://checkout.paystack.com")
    .connect_src("'self'", *PAYSTACK_ORIGINS)
    .img_src("'self'", "data:", "https:")
    .frame_ancestors("'none'"),
    referrer=secure.ReferrerPolicy().strict_origin_when_cross_origin(),
    cache=secure.CacheControl().no_store(),
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an ID and writes one access log line.

    An incoming X-Request-ID is reused so IDs can be traced across the
    frontend and Paystack callbacks.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        response.headers[REQUEST_ID_HEADER] = request_id

        path = request.url.path
        if path not in QUIET_PATHS:
            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                "request",
                method=request.method,
                path=path,
                status=response.status_code,
                duration_ms=duration_ms,
                client_ip=get_client_ip(request),
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the secure header set to every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        secure_headers.set_headers(response)
        return response


def setup_security_middleware(app: FastAPI) -> None:
    """
    Attach rate limiting, CORS, secure headers and request logging.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    if settings.is_production:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

    logger.info(
        "security_middleware_configured",
        cors_origins=settings.cors_origins,
        rate_limit_api=settings.rate_limit_api,
        rate_limit_payments=settings.rate_limit_payments,
    )
