"""
Meta Threads integration.

Publishing is a two-step container flow: create a container (with image
containers as children for carousels), then publish it. Threads fetches
images itself, so they are passed as public file URLs.
"""

import json
import time
from typing import Any, Dict, List, Optional

import httpx

from ...config import Settings
from ...files import FilesStore
from ...storage.documents import DocumentsDatabase
from ...types.posts import NewPostRequest, ThreadsPostResponse
from .base import BasePlatform

ACCESS_TOKEN_KEY = "threads-access-token"
API_VERSION = "v1.0"


class ThreadsPlatform(BasePlatform):
    """Posts to the configured Threads account."""

    name = "threads"
    display_name = "Threads"

    def __init__(
        self,
        settings: Settings,
        files: Optional[FilesStore],
        documents: DocumentsDatabase,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(settings, files=files, transport=transport)
        self.documents = documents

    @property
    def is_configured(self) -> bool:
        return self.settings.threads.is_configured

    @property
    def _api_base(self) -> str:
        return self.settings.threads.threads_api_base.rstrip("/")

    @property
    def _user_url(self) -> str:
        return f"{self._api_base}/{API_VERSION}/{self.settings.threads.threads_user_id}"

    async def _access_token(self) -> str:
        """The most recently refreshed token, or the configured one."""
        document = await self.documents.search_by_key(ACCESS_TOKEN_KEY)
        if document is not None:
            return json.loads(document.payload)["access_token"]
        return self.settings.threads.threads_access_token.get_secret_value()

    # -------------------------------------------------------------------------
    # Token Refresh
    # -------------------------------------------------------------------------

    async def refresh_access_token(self) -> Dict[str, Any]:
        """
        Extend the long-lived access token.

        Returns:
            The refreshed token's expiry information.
        """
        self._ensure_configured()
        async with self._client() as client:
            response = await client.get(
                f"{self._api_base}/refresh_access_token",
                params={
                    "grant_type": "th_refresh_token",
                    "access_token": await self._access_token(),
                },
            )
        if response.status_code != 200:
            raise self._request_error(response, "Failed to refresh access token")

        data = response.json()
        await self.documents.create_or_update(
            kind=ACCESS_TOKEN_KEY,
            payload=json.dumps(
                {
                    "access_token": data["access_token"],
                    "expires_in": data.get("expires_in"),
                    "obtained_at": time.time(),
                }
            ),
            search_key=ACCESS_TOKEN_KEY,
        )
        self._logger.info("Threads access token refreshed")
        return {"expiresIn": data.get("expires_in")}

    # -------------------------------------------------------------------------
    # Content Publishing Methods
    # -------------------------------------------------------------------------

    async def _create_post(self, request: NewPostRequest) -> ThreadsPostResponse:
        image_urls: List[str] = []
        for image in await self._read_images(request):
            image_urls.append(self.files.get_file_url(image.uuid))

        text = self._post_text(request)
        access_token = await self._access_token()

        async with self._client() as client:
            params: Dict[str, Any] = {"text": text, "access_token": access_token}
            if len(image_urls) == 1:
                params.update(media_type="IMAGE", image_url=image_urls[0])
            elif image_urls:
                children = [
                    await self._create_image_container(client, url, access_token)
                    for url in image_urls
                ]
                params.update(media_type="CAROUSEL", children=",".join(children))
            else:
                params["media_type"] = "TEXT"

            self._logger.info(f"Posting to Threads ({params['media_type']})")
            container = await client.post(f"{self._user_url}/threads", params=params)
            if container.status_code != 200:
                raise self._request_error(container, "Failed to create media container")

            published = await client.post(
                f"{self._user_url}/threads_publish",
                params={"creation_id": container.json()["id"], "access_token": access_token},
            )

        if published.status_code != 200:
            raise self._request_error(published, "Failed to publish post")

        return ThreadsPostResponse(id=str(published.json()["id"]))

    async def _create_image_container(
        self,
        client: httpx.AsyncClient,
        image_url: str,
        access_token: str,
    ) -> str:
        response = await client.post(
            f"{self._user_url}/threads",
            params={
                "media_type": "IMAGE",
                "image_url": image_url,
                "is_carousel_item": "true",
                "access_token": access_token,
            },
        )
        if response.status_code != 200:
            raise self._request_error(response, "Failed to create media container")
        return str(response.json()["id"])
