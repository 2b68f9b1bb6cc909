"""
Tests for the Twitter integration.

Tests the OAuth 1.0a flow, token storage and tweet creation against mocked
Twitter endpoints.
"""

import json
from urllib.parse import parse_qs, urlsplit

import pytest

from socialpublish.exceptions import RequestError, ValidationError
from socialpublish.social.platforms.twitter import OAUTH_TOKEN_KEY, REQUEST_TOKEN_KIND
from socialpublish.types import NewPostRequest, TwitterOAuthToken

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


@pytest.fixture
def twitter_services(services_factory, all_platforms_configured):
    return services_factory(twitter=all_platforms_configured["twitter"])


async def _authorize(services):
    await services.documents.create_or_update(
        kind=OAUTH_TOKEN_KEY,
        payload=TwitterOAuthToken(key="access-key", secret="access-secret").model_dump_json(),
        search_key=OAUTH_TOKEN_KEY,
    )


class TestOAuthFlow:
    """Tests for the three-legged OAuth flow."""

    @pytest.mark.asyncio
    async def test_authorize_url_and_callback(self, twitter_services, mock_api):
        """The request token secret is kept until the callback exchanges it."""
        mock_api.add(
            "POST",
            "/oauth/request_token",
            text="oauth_token=req-token&oauth_token_secret=req-secret&oauth_callback_confirmed=true",
            headers=FORM_HEADERS,
        )
        mock_api.add(
            "POST",
            "/oauth/access_token",
            text="oauth_token=acc-token&oauth_token_secret=acc-secret&user_id=1&screen_name=alice",
            headers=FORM_HEADERS,
        )
        twitter = twitter_services.twitter

        url = await twitter.build_authorize_url()

        assert url.startswith("https://api.twitter.test/oauth/authorize?")
        parsed = urlsplit(url)
        assert parse_qs(parsed.query) == {"oauth_token": ["req-token"]}
        request_auth = mock_api.calls("POST", "/oauth/request_token")[0].headers["Authorization"]
        assert 'oauth_consumer_key="consumer-key"' in request_auth
        assert "oauth_callback=" in request_auth
        pending = await twitter_services.documents.search_by_key(f"{REQUEST_TOKEN_KIND}:req-token")
        assert json.loads(pending.payload) == {"secret": "req-secret"}

        token = await twitter.save_oauth_token("req-token", "verifier-1")

        assert token == TwitterOAuthToken(key="acc-token", secret="acc-secret")
        access_auth = mock_api.calls("POST", "/oauth/access_token")[0].headers["Authorization"]
        assert 'oauth_token="req-token"' in access_auth
        assert 'oauth_verifier="verifier-1"' in access_auth
        assert await twitter.get_authorization() is not None
        assert await twitter_services.documents.search_by_key(f"{REQUEST_TOKEN_KIND}:req-token") is None

    @pytest.mark.asyncio
    async def test_authorize_when_not_configured(self, services_factory):
        services = services_factory()
        with pytest.raises(ValidationError) as exc_info:
            await services.twitter.build_authorize_url()
        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_no_authorization_yet(self, twitter_services):
        assert await twitter_services.twitter.get_authorization() is None


class TestCreatePost:
    """Tests for tweeting."""

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, twitter_services, mock_api):
        with pytest.raises(ValidationError) as exc_info:
            await twitter_services.twitter.create_post(NewPostRequest(content="hi"))

        assert exc_info.value.status == 401
        assert exc_info.value.message == "Unauthorized: Missing Twitter OAuth token!"
        assert mock_api.requests == []

    @pytest.mark.asyncio
    async def test_text_tweet(self, twitter_services, mock_api):
        mock_api.add("POST", "/2/tweets", status=201, json={"data": {"id": "1234", "text": "hi"}})
        await _authorize(twitter_services)

        result = await twitter_services.twitter.create_post(
            NewPostRequest(content="Hello birds", link="https://example.com")
        )

        assert result.to_dict() == {"id": "1234", "module": "twitter"}
        call = mock_api.calls("POST", "/2/tweets")[0]
        assert call.headers["Authorization"].startswith("OAuth ")
        assert 'oauth_token="access-key"' in call.headers["Authorization"]
        assert json.loads(call.content) == {"text": "Hello birds\n\nhttps://example.com"}

    @pytest.mark.asyncio
    async def test_cleanup_html_is_single_paragraph(self, twitter_services, mock_api):
        mock_api.add("POST", "/2/tweets", status=201, json={"data": {"id": "1"}})
        await _authorize(twitter_services)

        await twitter_services.twitter.create_post(
            NewPostRequest(content="<p>Hello</p><p>World</p>", cleanup_html=True)
        )

        assert json.loads(mock_api.calls("POST", "/2/tweets")[0].content)["text"] == "Hello World"

    @pytest.mark.asyncio
    async def test_tweet_with_media_and_alt_text(self, twitter_services, mock_api, png_bytes):
        mock_api.add("POST", "/1.1/media/upload.json", json={"media_id_string": "777"})
        mock_api.add("POST", "/1.1/media/metadata/create.json", status=200)
        mock_api.add("POST", "/2/tweets", status=201, json={"data": {"id": "1235"}})
        await _authorize(twitter_services)
        upload = await twitter_services.files.upload_file("cat.png", png_bytes, "A cat")

        await twitter_services.twitter.create_post(
            NewPostRequest(content="Cat", images=[upload.uuid])
        )

        upload_call = mock_api.calls("POST", "/1.1/media/upload.json")[0]
        assert upload_call.url.host == "upload.twitter.test"
        assert png_bytes in upload_call.content
        alt = json.loads(mock_api.calls("POST", "/1.1/media/metadata/create.json")[0].content)
        assert alt == {"media_id": "777", "alt_text": {"text": "A cat"}}
        tweet = json.loads(mock_api.calls("POST", "/2/tweets")[0].content)
        assert tweet == {"text": "Cat", "media": {"media_ids": ["777"]}}

    @pytest.mark.asyncio
    async def test_rejected_tweet(self, twitter_services, mock_api):
        mock_api.add("POST", "/2/tweets", status=403, json={"detail": "Forbidden"})
        await _authorize(twitter_services)

        with pytest.raises(RequestError) as exc_info:
            await twitter_services.twitter.create_post(NewPostRequest(content="hi"))
        assert exc_info.value.status == 403
        assert exc_info.value.module == "twitter"
