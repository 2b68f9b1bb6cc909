"""
Bluesky (AT Protocol) integration.

Authenticates with an app password, uploads images as blobs and creates an
`app.bsky.feed.post` record with rich-text facets for links, mentions and
hashtags. Posts with a link and no images get an external link card.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ...config import Settings
from ...exceptions import CaughtException
from ...files import FilesStore
from ...linkpreview import LinkPreviewFetcher
from ...types.files import StoredImage
from ...types.posts import BlueskyPostResponse, NewPostRequest
from .base import BasePlatform

LINK_DISPLAY_LENGTH = 24

URL_PATTERN = re.compile(r"(?:(?<=\s)|^)(https?://[^\s]+)")
MENTION_PATTERN = re.compile(r"(?:(?<=\s)|^)(@[a-zA-Z0-9.-]+)")
TAG_PATTERN = re.compile(r"(?:(?<=\s)|^)(#[a-zA-Z0-9]+)")


@dataclass
class BlueskySession:
    access_jwt: str
    did: str
    handle: Optional[str] = None


@dataclass
class RichText:
    text: str
    facets: List[Dict[str, Any]]


def utf8_length(value: str) -> int:
    return len(value.encode("utf-8"))


def shorten_link_for_display(url: str, max_length: int = LINK_DISPLAY_LENGTH) -> str:
    """Strip the scheme and truncate long URLs, as Bluesky clients do."""
    clean = re.sub(r"^https?://", "", url)
    if len(clean) <= max_length:
        return clean
    return clean[: max_length - 3] + "..."


def _facet(byte_start: int, byte_end: int, feature: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "index": {"byteStart": byte_start, "byteEnd": byte_end},
        "features": [feature],
    }


class BlueskyPlatform(BasePlatform):
    """Posts to Bluesky through the XRPC endpoints of the configured PDS."""

    name = "bluesky"
    display_name = "Bluesky"

    def __init__(
        self,
        settings: Settings,
        files: Optional[FilesStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        link_previews: Optional[LinkPreviewFetcher] = None,
    ) -> None:
        super().__init__(settings, files=files, transport=transport)
        self.link_previews = link_previews or LinkPreviewFetcher(
            transport=transport,
            timeout=settings.http.http_client_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return self.settings.bluesky.is_configured

    @property
    def _service(self) -> str:
        return self.settings.bluesky.bsky_service.rstrip("/")

    async def _create_post(self, request: NewPostRequest) -> BlueskyPostResponse:
        images = await self._read_images(request)

        async with self._client() as client:
            session = await self._create_session(client)
            embeds = [await self._upload_blob(client, session, image) for image in images]

            # Only one embed per post; images win over the link card
            external = None
            if request.link and not embeds:
                external = await self._link_card(client, session, request.link)

            rich_text = await self.build_rich_text(client, self._post_text(request))

            record: Dict[str, Any] = {
                "$type": "app.bsky.feed.post",
                "text": rich_text.text,
                "createdAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            }
            if rich_text.facets:
                record["facets"] = rich_text.facets
            if request.language:
                record["langs"] = [request.language]
            if embeds:
                record["embed"] = {"$type": "app.bsky.embed.images", "images": embeds}
            elif external:
                record["embed"] = {"$type": "app.bsky.embed.external", "external": external}

            self._logger.info(f"Posting to Bluesky as {session.handle or session.did}")
            response = await client.post(
                f"{self._service}/xrpc/com.atproto.repo.createRecord",
                headers={"Authorization": f"Bearer {session.access_jwt}"},
                json={
                    "repo": session.did,
                    "collection": "app.bsky.feed.post",
                    "record": record,
                },
            )

        if response.status_code != 200:
            raise self._request_error(response, "Failed to create post")

        data = response.json()
        return BlueskyPostResponse(uri=data["uri"], cid=data.get("cid"))

    # -------------------------------------------------------------------------
    # AT Protocol Calls
    # -------------------------------------------------------------------------

    async def _create_session(self, client: httpx.AsyncClient) -> BlueskySession:
        bluesky = self.settings.bluesky
        response = await client.post(
            f"{self._service}/xrpc/com.atproto.server.createSession",
            json={
                "identifier": bluesky.bsky_username,
                "password": bluesky.bsky_password.get_secret_value(),
            },
        )
        if response.status_code != 200:
            raise self._request_error(response, "Failed to authenticate to Bluesky")

        data = response.json()
        self._logger.info(f"Authenticated to Bluesky as {data.get('handle')}")
        return BlueskySession(
            access_jwt=data["accessJwt"],
            did=data["did"],
            handle=data.get("handle"),
        )

    async def _send_blob(
        self,
        client: httpx.AsyncClient,
        session: BlueskySession,
        data: bytes,
        mimetype: str,
    ) -> httpx.Response:
        return await client.post(
            f"{self._service}/xrpc/com.atproto.repo.uploadBlob",
            headers={
                "Authorization": f"Bearer {session.access_jwt}",
                "Content-Type": mimetype,
            },
            content=data,
        )

    async def _upload_blob(
        self,
        client: httpx.AsyncClient,
        session: BlueskySession,
        image: StoredImage,
    ) -> Dict[str, Any]:
        """Upload an image and return its `app.bsky.embed.images` entry."""
        response = await self._send_blob(client, session, image.data, image.mimetype)
        if response.status_code != 200:
            raise self._request_error(response, "Failed to upload blob")

        blob = response.json().get("blob")
        if not isinstance(blob, dict):
            raise CaughtException("Invalid blob response", module=self.name)

        embed: Dict[str, Any] = {"alt": image.alt_text or "", "image": blob}
        if image.width and image.height:
            embed["aspectRatio"] = {"width": image.width, "height": image.height}
        return embed

    async def _link_card(
        self,
        client: httpx.AsyncClient,
        session: BlueskySession,
        link: str,
    ) -> Optional[Dict[str, Any]]:
        """
        Build the `app.bsky.embed.external` payload for a link.

        Returns None when the page has no preview. A thumbnail that cannot
        be fetched or uploaded is left out.
        """
        preview = await self.link_previews.fetch_preview(link)
        if preview is None:
            return None

        external: Dict[str, Any] = {
            "uri": link,
            "title": preview.title,
            "description": preview.description or "",
        }
        if preview.image:
            thumbnail = await self.link_previews.fetch_image(preview.image)
            if thumbnail is not None:
                response = await self._send_blob(client, session, thumbnail.data, thumbnail.mimetype)
                blob = response.json().get("blob") if response.status_code == 200 else None
                if isinstance(blob, dict):
                    external["thumb"] = blob
                else:
                    self._logger.warning(
                        f"Failed to upload link preview thumbnail: {response.status_code}"
                    )
        return external

    async def _resolve_handle(self, client: httpx.AsyncClient, handle: str) -> Optional[str]:
        try:
            response = await client.get(
                f"{self._service}/xrpc/com.atproto.identity.resolveHandle",
                params={"handle": handle},
            )
        except httpx.HTTPError as e:
            self._logger.warning(f"Error resolving handle {handle}: {e}")
            return None

        if response.status_code != 200:
            self._logger.warning(f"Failed to resolve handle {handle}: {response.status_code}")
            return None
        return response.json().get("did")

    # -------------------------------------------------------------------------
    # Rich Text
    # -------------------------------------------------------------------------

    async def build_rich_text(self, client: httpx.AsyncClient, text: str) -> RichText:
        """
        Shorten link display text and compute facets.

        Facet offsets are UTF-8 byte offsets into the final text.
        """
        parts: List[str] = []
        facets: List[Dict[str, Any]] = []
        byte_offset = 0
        last_index = 0

        for match in URL_PATTERN.finditer(text):
            prefix = text[last_index:match.start()]
            parts.append(prefix)
            byte_offset += utf8_length(prefix)

            url = match.group(1)
            display = shorten_link_for_display(url)
            byte_start = byte_offset
            byte_offset += utf8_length(display)
            parts.append(display)
            facets.append(
                _facet(byte_start, byte_offset, {"$type": "app.bsky.richtext.facet#link", "uri": url})
            )
            last_index = match.end()

        parts.append(text[last_index:])
        final_text = "".join(parts)

        for match in MENTION_PATTERN.finditer(final_text):
            handle = match.group(1)[1:]
            # Only handles with a domain can be resolved
            if "." not in handle:
                continue
            did = await self._resolve_handle(client, handle)
            if did is None:
                continue
            byte_start = utf8_length(final_text[:match.start()])
            facets.append(
                _facet(
                    byte_start,
                    byte_start + utf8_length(match.group(1)),
                    {"$type": "app.bsky.richtext.facet#mention", "did": did},
                )
            )

        for match in TAG_PATTERN.finditer(final_text):
            byte_start = utf8_length(final_text[:match.start()])
            facets.append(
                _facet(
                    byte_start,
                    byte_start + utf8_length(match.group(1)),
                    {"$type": "app.bsky.richtext.facet#tag", "tag": match.group(1)[1:]},
                )
            )

        return RichText(text=final_text, facets=facets)
