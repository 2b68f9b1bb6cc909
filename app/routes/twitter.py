"""
Twitter OAuth 1.0a endpoints.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from app.dependencies import Services, get_services
from socialpublish.exceptions import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/twitter", tags=["twitter"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.get("/authorize")
async def authorize(services: Services = Depends(get_services)) -> RedirectResponse:
    """Redirect the user to Twitter to authorize this app."""
    url = await services.twitter.build_authorize_url()
    return RedirectResponse(url, status_code=302)


@router.get("/callback")
async def callback(
    oauth_token: Optional[str] = None,
    oauth_verifier: Optional[str] = None,
    services: Services = Depends(get_services),
) -> RedirectResponse:
    """Store the access token granted by Twitter, then return to the account page."""
    if not oauth_token or not oauth_verifier:
        raise ValidationError("Invalid request", status=400, module="twitter")

    logger.info("Twitter auth callback received")
    await services.twitter.save_oauth_token(oauth_token, oauth_verifier)
    return RedirectResponse("/account", status_code=302, headers=NO_CACHE_HEADERS)


@router.get("/status")
async def status(services: Services = Depends(get_services)) -> Dict[str, Any]:
    document = await services.twitter.get_authorization()
    return {
        "hasAuthorization": document is not None,
        "createdAt": int(document.created_at.timestamp() * 1000) if document else None,
    }
