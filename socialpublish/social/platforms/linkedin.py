"""
LinkedIn integration.

Uses the OAuth 2.0 authorization code flow (with refresh tokens) through
authlib, registers image uploads with the assets API and publishes through
the UGC posts API.
"""

import json
import secrets
import time
from typing import Any, Dict, List, Optional

import httpx
from authlib.integrations.httpx_client import AsyncOAuth2Client

from ...config import Settings
from ...exceptions import CaughtException, ValidationError
from ...files import FilesStore
from ...linkpreview import LinkPreviewFetcher
from ...storage.documents import Document, DocumentsDatabase
from ...types.files import LinkedInOAuthToken, StoredImage
from ...types.posts import LinkedInPostResponse, NewPostRequest
from .base import BasePlatform

OAUTH_TOKEN_KEY = "linkedin-oauth-token"
OAUTH_STATE_KIND = "linkedin-oauth-state"
OAUTH_SCOPES = "openid profile w_member_social"

# Unused state nonces are rejected after this many seconds
OAUTH_STATE_TTL_SECONDS = 600

PERSON_URN_PREFIX = "urn:li:person:"
UPLOAD_MECHANISM = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"
ARTICLE_DESCRIPTION_LIMIT = 256


class LinkedInPlatform(BasePlatform):
    """Posts to the authorized member's LinkedIn feed."""

    name = "linkedin"
    display_name = "LinkedIn"

    def __init__(
        self,
        settings: Settings,
        files: Optional[FilesStore],
        documents: DocumentsDatabase,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        link_previews: Optional[LinkPreviewFetcher] = None,
    ) -> None:
        super().__init__(settings, files=files, transport=transport)
        self.documents = documents
        self.link_previews = link_previews or LinkPreviewFetcher(
            transport=transport,
            timeout=settings.http.http_client_timeout,
        )

        if self.is_configured:
            self._logger.info("LinkedIn platform initialized successfully")
        else:
            self._logger.warning("LinkedIn credentials not configured")

    @property
    def is_configured(self) -> bool:
        return self.settings.linkedin.is_configured

    @property
    def callback_url(self) -> str:
        return f"{self.settings.server.base_url}/api/linkedin/callback"

    @property
    def _api_base(self) -> str:
        return self.settings.linkedin.linkedin_api_base.rstrip("/")

    def _oauth_client(self) -> AsyncOAuth2Client:
        linkedin = self.settings.linkedin
        return AsyncOAuth2Client(
            client_id=linkedin.linkedin_client_id,
            client_secret=linkedin.linkedin_client_secret.get_secret_value(),
            token_endpoint_auth_method="client_secret_post",
            redirect_uri=self.callback_url,
            scope=OAUTH_SCOPES,
            transport=self._transport,
            timeout=self.settings.http.http_client_timeout,
        )

    # -------------------------------------------------------------------------
    # OAuth Methods
    # -------------------------------------------------------------------------

    async def build_authorize_url(self) -> str:
        """Create a state nonce and return LinkedIn's authorization URL."""
        self._ensure_configured()
        state = secrets.token_urlsafe(32)
        await self.documents.create_or_update(
            kind=OAUTH_STATE_KIND,
            payload=json.dumps({"state": state}),
            search_key=f"{OAUTH_STATE_KIND}:{state}",
        )

        async with self._oauth_client() as client:
            url, _ = client.create_authorization_url(
                self.settings.linkedin.linkedin_authorization_url,
                state=state,
            )
        return url

    async def verify_oauth_state(self, state: Optional[str]) -> bool:
        """
        Consume a state nonce created by `build_authorize_url`.

        Returns:
            True if the nonce existed and had not expired.
        """
        if not state:
            return False

        key = f"{OAUTH_STATE_KIND}:{state}"
        document = await self.documents.search_by_key(key)
        if document is None:
            return False

        await self.documents.delete_by_key(key)
        age = time.time() - document.created_at.timestamp()
        return age <= OAUTH_STATE_TTL_SECONDS

    async def exchange_code_for_token(self, code: str) -> LinkedInOAuthToken:
        """Exchange an authorization code and store the resulting token."""
        self._ensure_configured()
        try:
            async with self._oauth_client() as client:
                token = await client.fetch_token(
                    self.settings.linkedin.linkedin_access_token_url,
                    code=code,
                )
        except Exception as e:
            self._logger.error("Failed to exchange LinkedIn code for token", exc_info=True)
            raise CaughtException(
                f"Failed to exchange code for token: {e}", module=self.name, cause=e
            ) from e

        return await self._save_token(token)

    async def refresh_access_token(self, refresh_token: str) -> LinkedInOAuthToken:
        """Obtain a new access token and store it."""
        try:
            async with self._oauth_client() as client:
                token = await client.refresh_token(
                    self.settings.linkedin.linkedin_access_token_url,
                    refresh_token=refresh_token,
                )
        except Exception as e:
            self._logger.error("Failed to refresh LinkedIn token", exc_info=True)
            raise CaughtException(
                f"Failed to refresh LinkedIn token: {e}", module=self.name, cause=e
            ) from e

        # LinkedIn only returns a new refresh token when the old one rotates
        if not token.get("refresh_token"):
            token["refresh_token"] = refresh_token
        self._logger.info("LinkedIn access token refreshed")
        return await self._save_token(token)

    async def _save_token(self, token: Dict[str, Any]) -> LinkedInOAuthToken:
        stored = LinkedInOAuthToken(
            access_token=token["access_token"],
            expires_in=int(token.get("expires_in") or 0),
            refresh_token=token.get("refresh_token"),
            refresh_token_expires_in=token.get("refresh_token_expires_in"),
            obtained_at=time.time(),
        )
        await self.documents.create_or_update(
            kind=OAUTH_TOKEN_KEY,
            payload=stored.model_dump_json(),
            search_key=OAUTH_TOKEN_KEY,
        )
        return stored

    async def get_authorization(self) -> Optional[Document]:
        return await self.documents.search_by_key(OAUTH_TOKEN_KEY)

    async def get_valid_token(self) -> LinkedInOAuthToken:
        """
        Return a usable access token, refreshing it when it has expired.

        Raises:
            ValidationError: 401 if there is no token, or it expired and
                cannot be refreshed.
        """
        document = await self.get_authorization()
        token = None
        if document is not None:
            try:
                token = LinkedInOAuthToken.model_validate_json(document.payload)
            except ValueError:
                self._logger.warning("Failed to parse LinkedIn OAuth token from DB")

        if token is None:
            raise ValidationError(
                "Unauthorized: Missing LinkedIn OAuth token!",
                status=401,
                module=self.name,
            )

        if not token.is_expired():
            return token

        if not token.refresh_token:
            raise ValidationError(
                "LinkedIn token expired and no refresh token available. Please re-authorize.",
                status=401,
                module=self.name,
            )
        return await self.refresh_access_token(token.refresh_token)

    # -------------------------------------------------------------------------
    # Content Publishing Methods
    # -------------------------------------------------------------------------

    async def _create_post(self, request: NewPostRequest) -> LinkedInPostResponse:
        token = await self.get_valid_token()
        images = await self._read_images(request)
        headers = {"Authorization": f"Bearer {token.access_token}"}

        async with self._client() as client:
            person_urn = await self._get_person_urn(client, headers)

            assets: List[Dict[str, Any]] = []
            for image in images:
                assets.append(await self._upload_image(client, headers, person_urn, image))

            content = self._content_text(request)
            share: Dict[str, Any]
            if assets:
                text = f"{content}\n\n{request.link}" if request.link else content
                share = {
                    "shareCommentary": {"text": text},
                    "shareMediaCategory": "IMAGE",
                    "media": assets,
                }
            elif request.link:
                share = {
                    "shareCommentary": {"text": content},
                    "shareMediaCategory": "ARTICLE",
                    "media": [await self._article(request.link, content)],
                }
            else:
                share = {
                    "shareCommentary": {"text": content},
                    "shareMediaCategory": "NONE",
                }

            self._logger.info(f"Posting to LinkedIn ({share['shareMediaCategory']})")
            response = await client.post(
                f"{self._api_base}/ugcPosts",
                headers={**headers, "X-Restli-Protocol-Version": "2.0.0"},
                json={
                    "author": person_urn,
                    "lifecycleState": "PUBLISHED",
                    "specificContent": {"com.linkedin.ugc.ShareContent": share},
                    "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
                },
            )

        if response.status_code != 201:
            raise self._request_error(response, "Failed to create post")

        post_id = response.headers.get("x-restli-id")
        if not post_id:
            try:
                post_id = response.json().get("id")
            except ValueError:
                post_id = None
        return LinkedInPostResponse(post_id=post_id or "unknown")

    async def _article(self, link: str, content: str) -> Dict[str, Any]:
        """Article media for a link, with the page's title and thumbnail when available."""
        article: Dict[str, Any] = {
            "status": "READY",
            "originalUrl": link,
            "description": {"text": content[:ARTICLE_DESCRIPTION_LIMIT]},
        }
        preview = await self.link_previews.fetch_preview(link)
        if preview is not None:
            article["title"] = {"text": preview.title}
            if preview.image:
                article["thumbnails"] = [{"url": preview.image}]
        return article

    async def _get_person_urn(self, client: httpx.AsyncClient, headers: Dict[str, str]) -> str:
        response = await client.get(f"{self._api_base}/userinfo", headers=headers)
        if response.status_code != 200:
            raise self._request_error(response, "Failed to get user profile")

        sub = response.json()["sub"]
        if sub.startswith(PERSON_URN_PREFIX):
            return sub
        return f"{PERSON_URN_PREFIX}{sub}"

    async def _upload_image(
        self,
        client: httpx.AsyncClient,
        headers: Dict[str, str],
        person_urn: str,
        image: StoredImage,
    ) -> Dict[str, Any]:
        """Register an upload, send the bytes and return the media entry."""
        register = await client.post(
            f"{self._api_base}/assets?action=registerUpload",
            headers={**headers, "X-Restli-Protocol-Version": "2.0.0"},
            json={
                "registerUploadRequest": {
                    "recipes": ["urn:li:digitalmediaRecipe:feedshare-image"],
                    "owner": person_urn,
                    "serviceRelationships": [
                        {
                            "relationshipType": "OWNER",
                            "identifier": "urn:li:userGeneratedContent",
                        }
                    ],
                }
            },
        )
        if register.status_code != 200:
            raise self._request_error(register, "Failed to register upload")

        value = register.json()["value"]
        upload_url = value["uploadMechanism"][UPLOAD_MECHANISM]["uploadUrl"]
        asset = value["asset"]

        upload = await client.put(
            upload_url,
            headers={**headers, "Content-Type": image.mimetype},
            content=image.data,
        )
        if upload.status_code not in (200, 201):
            raise self._request_error(upload, "Failed to upload image")

        media: Dict[str, Any] = {"status": "READY", "media": asset}
        if image.alt_text:
            media["description"] = {"text": image.alt_text}
        return media
