"""
Realaist Campaigns - FastAPI Application Entry Point

Campaign submission, Paystack payments, admin review with Google Ads
activation, analytics and the ROI preview.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy import text

from realaist.adapters.base import (
    AdapterError,
    AuthenticationError,
    ConfigurationError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from realaist.adapters.paystack import PaymentError
from realaist.api.v1 import router as api_v1_router
from realaist.config import settings
from realaist.core.database import close_db, engine
from realaist.core.exceptions import CampaignError
from realaist.core.logging_config import configure_logging, init_sentry
from realaist.middleware.security import setup_security_middleware
from realaist.services.cache_service import close_redis, get_redis_client, init_redis

configure_logging()
init_sentry()

logger = structlog.get_logger()

# Most specific class first
ADAPTER_ERROR_STATUS = (
    (AuthenticationError, 401),
    (NotFoundError, 404),
    (ValidationError, 400),
    (RateLimitError, 429),
    (ConfigurationError, 503),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        google_ads_configured=settings.google_ads_configured,
        paystack_configured=settings.paystack_configured,
    )

    # Analytics run uncached if Redis is down
    try:
        await init_redis()
    except Exception as e:
        logger.warning("analytics_cache_disabled", error=str(e))

    yield

    logger.info("application_stopping")
    await close_redis()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Campaign budgeting, Paystack payments and Google Ads activation for property listings",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    openapi_url="/api/openapi.json" if settings.debug else None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

setup_security_middleware(app)
app.mount("/metrics", make_asgi_app())
app.include_router(api_v1_router, prefix="/api/v1")


# =============================================================================
# Health
# =============================================================================

@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get("/health/ready", tags=["Health"])
async def readiness_check():
    """
    Readiness check.

    The database is required; Redis only backs the analytics cache, so a
    missing cache reports degraded without failing readiness.
    """
    checks = {
        "database": False,
        "cache": False,
        "paystack": settings.paystack_configured,
        "google_ads": settings.google_ads_configured,
    }

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.error("readiness_database_failed", error=str(e))

    redis_client = get_redis_client()
    if redis_client is not None:
        try:
            await redis_client.ping()
            checks["cache"] = True
        except Exception as e:
            logger.warning("readiness_cache_failed", error=str(e))

    if not checks["database"]:
        return ORJSONResponse(status_code=503, content={"status": "unavailable", "checks": checks})
    return {"status": "ready" if all(checks.values()) else "degraded", "checks": checks}


@app.get("/health/live", tags=["Health"])
async def liveness_check():
    return {"status": "alive"}


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(CampaignError)
async def campaign_error_handler(request: Request, exc: CampaignError):
    """Typed domain errors keep their code in the body."""
    logger.info(
        "campaign_request_refused",
        path=request.url.path,
        code=exc.code,
        message=exc.message,
    )
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError):
    """Paystack messages are passed through unchanged."""
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"error": "payment_provider_error", "message": exc.message},
    )


@app.exception_handler(AdapterError)
async def adapter_error_handler(request: Request, exc: AdapterError):
    status_code = next(
        (code for error_class, code in ADAPTER_ERROR_STATUS if isinstance(exc, error_class)),
        502,
    )
    logger.error(
        "ad_platform_error",
        path=request.url.path,
        platform=exc.platform,
        error=exc.message,
        status_code=status_code,
    )
    return ORJSONResponse(
        status_code=status_code,
        content={"error": "ad_platform_error", "message": exc.message},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log the failure; clients only get a generic message."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return ORJSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "realaist.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
