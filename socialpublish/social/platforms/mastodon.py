"""
Mastodon integration.

Uploads media through the v2 media API, waiting for asynchronous processing
when the server answers 202, then publishes a status.
"""

import asyncio
from typing import List

import httpx

from ...exceptions import CaughtException
from ...types.files import StoredImage
from ...types.posts import MastodonPostResponse, NewPostRequest
from .base import BasePlatform


class MastodonPlatform(BasePlatform):
    """Posts statuses to a single Mastodon instance with an app token."""

    name = "mastodon"
    display_name = "Mastodon"

    # Media processing is polled for up to ~6 seconds
    MEDIA_POLL_ATTEMPTS = 30
    MEDIA_POLL_INTERVAL_SECONDS = 0.2

    @property
    def is_configured(self) -> bool:
        return self.settings.mastodon.is_configured

    @property
    def _host(self) -> str:
        return self.settings.mastodon.mastodon_host.rstrip("/")

    @property
    def _auth_headers(self) -> dict:
        token = self.settings.mastodon.mastodon_access_token.get_secret_value()
        return {"Authorization": f"Bearer {token}"}

    async def _create_post(self, request: NewPostRequest) -> MastodonPostResponse:
        images = await self._read_images(request)

        async with self._client() as client:
            media_ids: List[str] = []
            for image in images:
                media_ids.append(await self._upload_media(client, image))

            status = self._post_text(request)
            self._logger.info(f"Posting to Mastodon ({len(media_ids)} media)")

            form = {"status": status}
            if media_ids:
                form["media_ids[]"] = media_ids
            if request.language:
                form["language"] = request.language

            response = await client.post(
                f"{self._host}/api/v1/statuses",
                headers=self._auth_headers,
                data=form,
            )

        if response.status_code != 200:
            raise self._request_error(response, "Failed to create status")

        data = response.json()
        return MastodonPostResponse(uri=data["url"], id=str(data["id"]))

    async def _upload_media(self, client: httpx.AsyncClient, image: StoredImage) -> str:
        """
        Upload one image and return its media id once it is processed.

        Raises:
            RequestError: If the upload or a status check fails.
            CaughtException: If processing does not finish in time.
        """
        data = {"description": image.alt_text} if image.alt_text else None
        response = await client.post(
            f"{self._host}/api/v2/media",
            headers=self._auth_headers,
            files={"file": (image.file_name, image.data, image.mimetype)},
            data=data,
        )

        if response.status_code == 200:
            return str(response.json()["id"])
        if response.status_code == 202:
            return await self._wait_for_media_processing(client, str(response.json()["id"]))
        raise self._request_error(response, "Failed to upload media")

    async def _wait_for_media_processing(self, client: httpx.AsyncClient, media_id: str) -> str:
        for _ in range(self.MEDIA_POLL_ATTEMPTS):
            await asyncio.sleep(self.MEDIA_POLL_INTERVAL_SECONDS)

            response = await client.get(
                f"{self._host}/api/v1/media/{media_id}",
                headers=self._auth_headers,
            )
            if response.status_code == 200:
                return str(response.json()["id"])
            # 206 Partial Content while the media is still being processed
            if response.status_code in (202, 206):
                continue
            raise self._request_error(response, "Failed to get media status")

        raise CaughtException("Media processing timeout", module=self.name)
