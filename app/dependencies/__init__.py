"""
FastAPI dependencies for the Social Publish API.

Usage:
    from app.dependencies import Services, get_services
"""

from app.dependencies.services import (
    Services,
    build_services,
    get_files_store,
    get_publisher,
    get_services,
)

__all__ = [
    "Services",
    "build_services",
    "get_services",
    "get_publisher",
    "get_files_store",
]
