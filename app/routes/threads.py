"""
Threads token maintenance endpoint.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.dependencies import Services, get_services

router = APIRouter(prefix="/api/threads", tags=["threads"])


@router.post("/refresh-token")
async def refresh_token(services: Services = Depends(get_services)) -> Dict[str, Any]:
    """Extend the long-lived Threads access token."""
    result = await services.threads.refresh_access_token()
    return {"success": True, **result}
