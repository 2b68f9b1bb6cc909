"""
Twitter/X integration.

Implements the OAuth 1.0a three-legged flow with authlib, uploads media
through the v1.1 upload endpoint and creates tweets with the v2 API.
"""

import json
from typing import Dict, List, Optional

import httpx
from authlib.common.urls import add_params_to_uri
from authlib.integrations.httpx_client import AsyncOAuth1Client
from authlib.oauth1 import ClientAuth

from ...config import Settings
from ...exceptions import CaughtException, ValidationError
from ...files import FilesStore
from ...storage.documents import Document, DocumentsDatabase
from ...types.files import StoredImage, TwitterOAuthToken
from ...types.posts import NewPostRequest, TwitterPostResponse
from .base import BasePlatform

OAUTH_TOKEN_KEY = "twitter-oauth-token"
REQUEST_TOKEN_KIND = "twitter-oauth-request-token"

# Twitter rejects larger images
MAX_IMAGE_WIDTH = 1920
MAX_IMAGE_HEIGHT = 1080


class TwitterPlatform(BasePlatform):
    """
    Posts tweets on behalf of the single authorized account.

    The access token obtained through the OAuth callback is stored in the
    documents table under the "twitter-oauth-token" key.
    """

    name = "twitter"
    display_name = "Twitter"

    def __init__(
        self,
        settings: Settings,
        files: Optional[FilesStore],
        documents: DocumentsDatabase,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(settings, files=files, transport=transport)
        self.documents = documents

        if self.is_configured:
            self._logger.info("Twitter platform initialized successfully")
        else:
            self._logger.warning("Twitter credentials not configured")

    @property
    def is_configured(self) -> bool:
        return self.settings.twitter.is_configured

    @property
    def callback_url(self) -> str:
        return f"{self.settings.server.base_url}/api/twitter/callback"

    def _consumer(self) -> Dict[str, str]:
        twitter = self.settings.twitter
        return {
            "client_id": twitter.twitter_oauth1_consumer_key,
            "client_secret": twitter.twitter_oauth1_consumer_secret.get_secret_value(),
        }

    def _oauth_client(self, **kwargs) -> AsyncOAuth1Client:
        return AsyncOAuth1Client(
            **self._consumer(),
            transport=self._transport,
            timeout=self.settings.http.http_client_timeout,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # OAuth Methods
    # -------------------------------------------------------------------------

    async def build_authorize_url(self) -> str:
        """
        Start the OAuth flow.

        Fetches a request token, remembers its secret for the callback and
        returns the URL the user must visit.
        """
        self._ensure_configured()
        twitter = self.settings.twitter
        try:
            async with self._oauth_client(redirect_uri=self.callback_url) as client:
                request_token = await client.fetch_request_token(
                    twitter.twitter_oauth_request_token_url
                )
        except Exception as e:
            self._logger.error("Failed to get Twitter request token", exc_info=True)
            raise CaughtException(
                f"Failed to get request token: {e}", module=self.name, cause=e
            ) from e

        # The callback was already registered with the request token
        authorize_url = add_params_to_uri(
            twitter.twitter_oauth_authorize_url,
            [("oauth_token", request_token["oauth_token"])],
        )

        await self.documents.create_or_update(
            kind=REQUEST_TOKEN_KIND,
            payload=json.dumps({"secret": request_token.get("oauth_token_secret", "")}),
            search_key=f"{REQUEST_TOKEN_KIND}:{request_token['oauth_token']}",
        )
        return authorize_url

    async def save_oauth_token(self, token: str, verifier: str) -> TwitterOAuthToken:
        """
        Exchange the callback's request token and verifier for an access token.

        Args:
            token: The oauth_token query parameter.
            verifier: The oauth_verifier query parameter.

        Returns:
            The stored access token.
        """
        self._ensure_configured()
        request_key = f"{REQUEST_TOKEN_KIND}:{token}"
        pending = await self.documents.search_by_key(request_key)
        token_secret = json.loads(pending.payload).get("secret", "") if pending else ""

        try:
            async with self._oauth_client(token=token, token_secret=token_secret) as client:
                access_token = await client.fetch_access_token(
                    self.settings.twitter.twitter_oauth_access_token_url,
                    verifier=verifier,
                )
        except Exception as e:
            self._logger.error("Failed to save Twitter OAuth token", exc_info=True)
            raise CaughtException(
                f"Failed to save OAuth token: {e}", module=self.name, cause=e
            ) from e

        authorized = TwitterOAuthToken(
            key=access_token["oauth_token"],
            secret=access_token["oauth_token_secret"],
        )
        await self.documents.create_or_update(
            kind=OAUTH_TOKEN_KEY,
            payload=authorized.model_dump_json(),
            search_key=OAUTH_TOKEN_KEY,
        )
        if pending is not None:
            await self.documents.delete_by_key(request_key)

        self._logger.info("Twitter authorization saved")
        return authorized

    async def get_authorization(self) -> Optional[Document]:
        """The stored access token document, if the account is authorized."""
        return await self.documents.search_by_key(OAUTH_TOKEN_KEY)

    async def _restore_oauth_token(self) -> Optional[TwitterOAuthToken]:
        document = await self.get_authorization()
        if document is None:
            return None
        try:
            return TwitterOAuthToken.model_validate_json(document.payload)
        except ValueError:
            self._logger.warning("Failed to parse Twitter OAuth token from DB")
            return None

    def _sign(self, url: str, token: TwitterOAuthToken, method: str = "POST") -> str:
        """Return the OAuth1 Authorization header for a request."""
        auth = ClientAuth(
            **self._consumer(),
            token=token.key,
            token_secret=token.secret,
        )
        _, headers, _ = auth.prepare(method, url, {}, b"")
        return headers["Authorization"]

    # -------------------------------------------------------------------------
    # Content Publishing Methods
    # -------------------------------------------------------------------------

    async def _create_post(self, request: NewPostRequest) -> TwitterPostResponse:
        token = await self._restore_oauth_token()
        if token is None:
            raise ValidationError(
                "Unauthorized: Missing Twitter OAuth token!",
                status=401,
                module=self.name,
            )

        images = await self._read_images(request, MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT)

        async with self._client() as client:
            media_ids: List[str] = []
            for image in images:
                media_ids.append(await self._upload_media(client, token, image))

            text = self._post_text(request)
            self._logger.info(f"Posting to Twitter ({len(media_ids)} media)")

            body: Dict[str, object] = {"text": text}
            if media_ids:
                body["media"] = {"media_ids": media_ids}

            url = f"{self.settings.twitter.twitter_api_base}/2/tweets"
            response = await client.post(
                url,
                headers={
                    "Authorization": self._sign(url, token),
                    "Accept": "application/json",
                },
                json=body,
            )

        if response.status_code != 201:
            raise self._request_error(response, "Failed to create post")

        return TwitterPostResponse(id=response.json()["data"]["id"])

    def _content_text(self, request: NewPostRequest) -> str:
        text = super()._content_text(request)
        if request.cleanup_html:
            # Tweets are single-paragraph
            text = " ".join(text.split())
        return text

    async def _upload_media(
        self,
        client: httpx.AsyncClient,
        token: TwitterOAuthToken,
        image: StoredImage,
    ) -> str:
        url = f"{self.settings.twitter.twitter_upload_base}/1.1/media/upload.json"
        response = await client.post(
            url,
            headers={"Authorization": self._sign(url, token)},
            files={"media": (image.file_name, image.data, image.mimetype)},
            data={"media_category": "tweet_image"},
        )
        if response.status_code != 200:
            raise self._request_error(response, "Failed to upload media")

        media_id = response.json()["media_id_string"]

        if image.alt_text:
            alt_url = f"{self.settings.twitter.twitter_api_base}/1.1/media/metadata/create.json"
            alt_response = await client.post(
                alt_url,
                headers={"Authorization": self._sign(alt_url, token)},
                json={"media_id": media_id, "alt_text": {"text": image.alt_text}},
            )
            if alt_response.status_code >= 400:
                self._logger.warning(
                    f"Failed to set alt text on media {media_id}: {alt_response.status_code}"
                )

        return media_id
