"""
LinkedIn OAuth 2.0 endpoints.

Callback failures send the user back to the account page with an `error`
query parameter instead of answering with JSON.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from app.dependencies import Services, get_services
from socialpublish.exceptions import SocialPublishError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/linkedin", tags=["linkedin"])

ACCOUNT_PAGE = "/account"


def _account_redirect(error: Optional[str] = None) -> RedirectResponse:
    url = ACCOUNT_PAGE
    if error:
        url = f"{ACCOUNT_PAGE}?{urlencode({'error': error})}"
    return RedirectResponse(url, status_code=302)


@router.get("/authorize")
async def authorize(services: Services = Depends(get_services)) -> RedirectResponse:
    """Redirect the user to LinkedIn to authorize this app."""
    url = await services.linkedin.build_authorize_url()
    return RedirectResponse(url, status_code=302)


@router.get("/callback")
async def callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    services: Services = Depends(get_services),
) -> RedirectResponse:
    """Exchange the authorization code for a token, then return to the account page."""
    if error:
        logger.warning(f"LinkedIn authorization denied: {error} {error_description or ''}")
        return _account_redirect(error_description or error)

    if not await services.linkedin.verify_oauth_state(state):
        logger.warning("LinkedIn callback with invalid state")
        return _account_redirect("Invalid OAuth state")

    if not code:
        return _account_redirect("Missing authorization code")

    try:
        await services.linkedin.exchange_code_for_token(code)
    except SocialPublishError as e:
        return _account_redirect(e.message)

    logger.info("LinkedIn authorization saved")
    return _account_redirect()


@router.get("/status")
async def status(services: Services = Depends(get_services)) -> Dict[str, Any]:
    document = await services.linkedin.get_authorization()
    return {
        "hasAuthorization": document is not None,
        "createdAt": int(document.created_at.timestamp() * 1000) if document else None,
    }
