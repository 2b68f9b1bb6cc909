"""API routes for the Social Publish application."""

from .files import router as files_router
from .health import router as health_router
from .linkedin import router as linkedin_router
from .publish import router as publish_router
from .rss import router as rss_router
from .threads import router as threads_router
from .twitter import router as twitter_router

__all__ = [
    "files_router",
    "health_router",
    "linkedin_router",
    "publish_router",
    "rss_router",
    "threads_router",
    "twitter_router",
]
