"""
Create-post endpoints: the multi-target broadcast and one route per target.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.dependencies import get_publisher
from app.models import parse_new_post_request
from socialpublish.social.publisher import PublisherService
from socialpublish.types import NewPostRequest, Target

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["publish"])


@router.post("/multiple/post", summary="Broadcast a post to several targets")
async def broadcast_post(
    request: NewPostRequest = Depends(parse_new_post_request),
    publisher: PublisherService = Depends(get_publisher),
) -> Dict[str, Any]:
    """
    Publish one post to every target listed in the request.

    Answers with each platform's response keyed by module. If any target
    fails, the composite error handler answers with the worst status and the
    outcome of every target.
    """
    return await publisher.broadcast_post(request)


@router.post("/{target}/post", summary="Create a post on a single target")
async def create_post(
    target: Target,
    request: NewPostRequest = Depends(parse_new_post_request),
    publisher: PublisherService = Depends(get_publisher),
) -> Dict[str, Any]:
    platform = publisher.get_platform(target)
    response = await platform.create_post(request)
    return response.to_dict()
