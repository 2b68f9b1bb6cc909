"""
Tests for the Threads integration.
"""

import pytest

from socialpublish.exceptions import RequestError, ValidationError
from socialpublish.types import NewPostRequest

USER_PATH = "/v1.0/12345"


@pytest.fixture
def threads_services(services_factory, all_platforms_configured):
    return services_factory(threads=all_platforms_configured["threads"])


def _params(request):
    return dict(request.url.params)


class TestThreads:
    """Tests for ThreadsPlatform."""

    @pytest.mark.asyncio
    async def test_text_post(self, threads_services, mock_api):
        """A text container is created, then published."""
        mock_api.add("POST", f"{USER_PATH}/threads", json={"id": "container-1"})
        mock_api.add("POST", f"{USER_PATH}/threads_publish", json={"id": "post-1"})

        result = await threads_services.threads.create_post(
            NewPostRequest(content="Hello threads", link="https://example.com")
        )

        assert result.to_dict() == {"id": "post-1", "module": "threads"}
        container = _params(mock_api.calls("POST", f"{USER_PATH}/threads")[0])
        assert container == {
            "text": "Hello threads\n\nhttps://example.com",
            "access_token": "threads-token",
            "media_type": "TEXT",
        }
        publish = _params(mock_api.calls("POST", f"{USER_PATH}/threads_publish")[0])
        assert publish == {"creation_id": "container-1", "access_token": "threads-token"}

    @pytest.mark.asyncio
    async def test_single_image_uses_public_url(self, threads_services, mock_api, png_bytes):
        mock_api.add("POST", f"{USER_PATH}/threads", json={"id": "container-1"})
        mock_api.add("POST", f"{USER_PATH}/threads_publish", json={"id": "post-1"})
        upload = await threads_services.files.upload_file("cat.png", png_bytes)

        await threads_services.threads.create_post(NewPostRequest(content="Cat", images=[upload.uuid]))

        container = _params(mock_api.calls("POST", f"{USER_PATH}/threads")[0])
        assert container["media_type"] == "IMAGE"
        assert container["image_url"] == f"http://localhost:3000/files/{upload.uuid}"

    @pytest.mark.asyncio
    async def test_carousel(self, threads_services, mock_api, png_bytes, jpeg_bytes):
        """Several images become carousel items of one container."""
        mock_api.add("POST", f"{USER_PATH}/threads", json={"id": "item-1"})
        mock_api.add("POST", f"{USER_PATH}/threads", json={"id": "item-2"})
        mock_api.add("POST", f"{USER_PATH}/threads", json={"id": "carousel"})
        mock_api.add("POST", f"{USER_PATH}/threads_publish", json={"id": "post-2"})
        first = await threads_services.files.upload_file("a.png", png_bytes)
        second = await threads_services.files.upload_file("b.jpg", jpeg_bytes)

        await threads_services.threads.create_post(
            NewPostRequest(content="Two", images=[first.uuid, second.uuid])
        )

        item, _, carousel = [_params(r) for r in mock_api.calls("POST", f"{USER_PATH}/threads")]
        assert item["is_carousel_item"] == "true"
        assert item["image_url"] == f"http://localhost:3000/files/{first.uuid}"
        assert carousel["media_type"] == "CAROUSEL"
        assert carousel["children"] == "item-1,item-2"
        publish = _params(mock_api.calls("POST", f"{USER_PATH}/threads_publish")[0])
        assert publish["creation_id"] == "carousel"

    @pytest.mark.asyncio
    async def test_publish_failure(self, threads_services, mock_api):
        mock_api.add("POST", f"{USER_PATH}/threads", json={"id": "container-1"})
        mock_api.add("POST", f"{USER_PATH}/threads_publish", status=400, json={"error": {"message": "bad"}})

        with pytest.raises(RequestError) as exc_info:
            await threads_services.threads.create_post(NewPostRequest(content="hi"))
        assert exc_info.value.status == 400
        assert exc_info.value.message == "Failed to publish post"

    @pytest.mark.asyncio
    async def test_refreshed_token_is_used(self, threads_services, mock_api):
        """After a refresh, posts use the new token."""
        mock_api.add("GET", "/refresh_access_token", json={"access_token": "new-token", "expires_in": 5183944})
        mock_api.add("POST", f"{USER_PATH}/threads", json={"id": "container-1"})
        mock_api.add("POST", f"{USER_PATH}/threads_publish", json={"id": "post-1"})

        result = await threads_services.threads.refresh_access_token()
        await threads_services.threads.create_post(NewPostRequest(content="hi"))

        assert result == {"expiresIn": 5183944}
        refresh = _params(mock_api.calls("GET", "/refresh_access_token")[0])
        assert refresh == {"grant_type": "th_refresh_token", "access_token": "threads-token"}
        container = _params(mock_api.calls("POST", f"{USER_PATH}/threads")[0])
        assert container["access_token"] == "new-token"

    @pytest.mark.asyncio
    async def test_refresh_when_not_configured(self, services_factory):
        services = services_factory()
        with pytest.raises(ValidationError) as exc_info:
            await services.threads.refresh_access_token()
        assert exc_info.value.status == 503
