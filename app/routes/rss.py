"""
RSS feed endpoints.
"""

from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from app.dependencies import Services, get_services
from socialpublish.exceptions import ValidationError

router = APIRouter(prefix="/rss", tags=["rss"])

RSS_MEDIA_TYPE = "application/rss+xml; charset=utf-8"

FilterQuery = Optional[Literal["include", "exclude"]]


async def _feed(
    services: Services,
    filter_by_links: FilterQuery,
    filter_by_images: FilterQuery,
    target: Optional[str] = None,
) -> Response:
    xml = await services.rss.generate_rss(
        filter_by_links=filter_by_links,
        filter_by_images=filter_by_images,
        target=target,
    )
    return Response(content=xml, media_type=RSS_MEDIA_TYPE)


@router.get("")
async def get_feed(
    filter_by_links: FilterQuery = Query(None, alias="filterByLinks"),
    filter_by_images: FilterQuery = Query(None, alias="filterByImages"),
    services: Services = Depends(get_services),
) -> Response:
    """Every stored post, newest first."""
    return await _feed(services, filter_by_links, filter_by_images)


@router.get("/target/{target}")
async def get_feed_for_target(
    target: str,
    filter_by_links: FilterQuery = Query(None, alias="filterByLinks"),
    filter_by_images: FilterQuery = Query(None, alias="filterByImages"),
    services: Services = Depends(get_services),
) -> Response:
    """Stored posts that were broadcast to `target`."""
    return await _feed(services, filter_by_links, filter_by_images, target=target)


@router.get("/{post_uuid}")
async def get_item(post_uuid: str, services: Services = Depends(get_services)) -> Dict[str, Any]:
    post = await services.rss.get_rss_item(post_uuid)
    if post is None:
        raise ValidationError("Post not found", status=404, module="rss")
    return post.model_dump(mode="json")
