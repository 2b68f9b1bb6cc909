"""
Backend server for Social Publish.

Accepts a single "create a post" request and broadcasts it to Bluesky,
Mastodon, Twitter, LinkedIn, Threads and the local RSS feed.

This is the main entry point that assembles the modular components
from the app package.
"""

import logging
import os
import re
import sys
from contextlib import asynccontextmanager

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Configure structured logging FIRST, before other imports that use logging
from socialpublish.utils.logging import setup_logging

logger = setup_logging(service_name="socialpublish-api")

from socialpublish import __version__
from socialpublish.config import Settings, get_settings

# =============================================================================
# Configuration
# =============================================================================

try:
    settings: Settings = get_settings()
except Exception as e:
    logger.critical(f"Unexpected error loading configuration: {e}")
    sys.exit(1)

logger = setup_logging(
    service_name="socialpublish-api",
    level=settings.logging.log_level,
    json_format=settings.logging.log_format_json or settings.is_production,
)
logger.info("Configuration loaded", extra={"config": settings.get_config_summary()})

from app.dependencies import get_services
from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import (
    files_router,
    health_router,
    linkedin_router,
    publish_router,
    rss_router,
    threads_router,
    twitter_router,
)

# =============================================================================
# Sentry Error Tracking Configuration
# =============================================================================

SENSITIVE_KEYS = (
    "password", "secret", "token", "authorization", "bearer",
    "oauth_verifier", "oauth_signature", "accessjwt",
)


def filter_sensitive_breadcrumbs(crumb, hint):
    """
    Filter credentials from Sentry breadcrumbs.

    Platform calls carry bearer tokens, OAuth signatures and app passwords
    in headers and query strings.
    """
    if crumb.get("category") == "httplib":
        data = crumb.get("data")
        if isinstance(data, dict) and "url" in data:
            for key in SENSITIVE_KEYS:
                pattern = re.compile(f"({key}=)[^&]*", re.IGNORECASE)
                data["url"] = pattern.sub(r"\1[FILTERED]", data["url"])

    if crumb.get("category") in ("console", "log") and "message" in crumb:
        message = str(crumb["message"]).lower()
        if any(key in message for key in SENSITIVE_KEYS):
            crumb["message"] = "[FILTERED - may contain sensitive data]"

    return crumb


if settings.is_sentry_configured:
    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        send_default_pii=False,
        attach_stacktrace=True,
        release=sentry_settings.sentry_release or f"socialpublish@{__version__}",
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")
else:
    logger.info("Sentry DSN not configured, error tracking disabled")


# =============================================================================
# Initialize FastAPI App
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the services (and migrate the database) before serving."""
    services = app.dependency_overrides.get(get_services, get_services)()
    logger.info(
        "Services ready",
        extra={"platforms": services.settings.configured_platforms},
    )
    yield
    get_services.cache_clear()


app = FastAPI(
    title="Social Publish API",
    description="Publish one post to Bluesky, Mastodon, Twitter, LinkedIn, Threads and RSS.",
    version=__version__,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Health checks and system status"},
        {"name": "publish", "description": "Create posts on one or several platforms"},
        {"name": "files", "description": "Image uploads"},
        {"name": "twitter", "description": "Twitter authorization"},
        {"name": "linkedin", "description": "LinkedIn authorization"},
        {"name": "threads", "description": "Threads token maintenance"},
        {"name": "rss", "description": "RSS feed of published posts"},
        {"name": "debug", "description": "Debug and development endpoints"},
    ],
)

# =============================================================================
# Exception Handlers
# =============================================================================

register_exception_handlers(app)

# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "X-Request-ID",
        "Accept",
        "Origin",
    ],
    expose_headers=["X-Request-ID", "X-Response-Time"],
    max_age=600,
)

# Added last so it wraps every other middleware
if settings.logging.request_logging_enabled:
    app.add_middleware(RequestLoggingMiddleware)
    logger.info("Request logging middleware enabled")

# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(publish_router)
app.include_router(files_router)
app.include_router(twitter_router)
app.include_router(linkedin_router)
app.include_router(threads_router)
app.include_router(rss_router)


@app.get("/config-status", tags=["debug"])
async def get_config_status():
    """
    Get current configuration status (without secrets).

    This endpoint returns the configuration summary for debugging
    and operational visibility.
    """
    if settings.is_production and not settings.is_dev_mode:
        return {
            "error": "Config status endpoint disabled in production",
            "environment": settings.security.environment,
        }

    return {
        "success": True,
        "config": settings.get_config_summary(),
    }


if __name__ == "__main__":
    reload_enabled = os.environ.get("UVICORN_RELOAD", "false").lower() == "true"
    port = int(os.environ.get("PORT") or settings.server.http_port)
    uvicorn.run("server:app", host="0.0.0.0", port=port, reload=reload_enabled)
