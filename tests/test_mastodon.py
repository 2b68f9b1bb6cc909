"""
Tests for the Mastodon integration.
"""

from urllib.parse import parse_qs

import pytest

from socialpublish.exceptions import CaughtException, RequestError
from socialpublish.social.platforms.mastodon import MastodonPlatform
from socialpublish.types import NewPostRequest

STATUS = {"id": 109876, "url": "https://mastodon.test/@alice/109876"}


@pytest.fixture
def mastodon_services(services_factory, all_platforms_configured, monkeypatch):
    monkeypatch.setattr(MastodonPlatform, "MEDIA_POLL_INTERVAL_SECONDS", 0)
    return services_factory(mastodon=all_platforms_configured["mastodon"])


def _form(request):
    return parse_qs(request.content.decode())


class TestMastodon:
    """Tests for MastodonPlatform.create_post."""

    @pytest.mark.asyncio
    async def test_text_post(self, mastodon_services, mock_api):
        mock_api.add("POST", "/api/v1/statuses", json=STATUS)

        result = await mastodon_services.mastodon.create_post(
            NewPostRequest(content="Hello fediverse", link="https://example.com", language="en")
        )

        assert result.to_dict() == {
            "uri": "https://mastodon.test/@alice/109876",
            "id": "109876",
            "module": "mastodon",
        }
        call = mock_api.calls("POST", "/api/v1/statuses")[0]
        assert call.headers["Authorization"] == "Bearer mastodon-token"
        form = _form(call)
        assert form["status"] == ["Hello fediverse\n\nhttps://example.com"]
        assert form["language"] == ["en"]
        assert "media_ids[]" not in form

    @pytest.mark.asyncio
    async def test_cleanup_html(self, mastodon_services, mock_api):
        """HTML content is converted to text when requested."""
        mock_api.add("POST", "/api/v1/statuses", json=STATUS)

        await mastodon_services.mastodon.create_post(
            NewPostRequest(content="<p>Hello</p><p>World &amp; more</p>", cleanup_html=True)
        )

        form = _form(mock_api.calls("POST", "/api/v1/statuses")[0])
        assert form["status"] == ["Hello\n\nWorld & more"]

    @pytest.mark.asyncio
    async def test_media_processed_synchronously(self, mastodon_services, mock_api, png_bytes):
        mock_api.add("POST", "/api/v2/media", json={"id": "m1"})
        mock_api.add("POST", "/api/v1/statuses", json=STATUS)
        upload = await mastodon_services.files.upload_file("cat.png", png_bytes, "A cat")

        await mastodon_services.mastodon.create_post(
            NewPostRequest(content="Cat", images=[upload.uuid])
        )

        media_call = mock_api.calls("POST", "/api/v2/media")[0]
        assert b"A cat" in media_call.content
        assert png_bytes in media_call.content
        form = _form(mock_api.calls("POST", "/api/v1/statuses")[0])
        assert form["media_ids[]"] == ["m1"]

    @pytest.mark.asyncio
    async def test_unexpected_media_status_fails(self, mastodon_services, mock_api, png_bytes):
        """A status check answering anything but 200, 202 or 206 is an error."""
        mock_api.add("POST", "/api/v2/media", status=202, json={"id": "m2"})
        mock_api.add("GET", "/api/v1/media/m2", status=404, json={"error": "Record not found"})
        mock_api.add("GET", "/api/v1/media/m2", status=200, json={"id": "m2"})
        mock_api.add("POST", "/api/v1/statuses", json=STATUS)
        upload = await mastodon_services.files.upload_file("cat.png", png_bytes)

        with pytest.raises(RequestError) as exc_info:
            await mastodon_services.mastodon.create_post(
                NewPostRequest(content="Cat", images=[upload.uuid])
            )
        assert exc_info.value.status == 404
        assert exc_info.value.message == "Failed to get media status"

    @pytest.mark.asyncio
    async def test_partial_content_means_still_processing(self, mastodon_services, mock_api, png_bytes):
        """Mastodon answers 206 while the media is processed."""
        mock_api.add("POST", "/api/v2/media", status=202, json={"id": "m5"})
        mock_api.add("GET", "/api/v1/media/m5", status=206, json={"id": "m5", "url": None})
        mock_api.add("GET", "/api/v1/media/m5", status=200, json={"id": "m5"})
        mock_api.add("POST", "/api/v1/statuses", json=STATUS)
        upload = await mastodon_services.files.upload_file("cat.png", png_bytes)

        await mastodon_services.mastodon.create_post(
            NewPostRequest(content="Cat", images=[upload.uuid])
        )

        assert len(mock_api.calls("GET", "/api/v1/media/m5")) == 2
        assert _form(mock_api.calls("POST", "/api/v1/statuses")[0])["media_ids[]"] == ["m5"]

    @pytest.mark.asyncio
    async def test_media_ready_after_polling(self, mastodon_services, mock_api, png_bytes):
        mock_api.add("POST", "/api/v2/media", status=202, json={"id": "m3"})
        mock_api.add("GET", "/api/v1/media/m3", status=202, json={"id": "m3"})
        mock_api.add("GET", "/api/v1/media/m3", status=202, json={"id": "m3"})
        mock_api.add("GET", "/api/v1/media/m3", status=200, json={"id": "m3"})
        mock_api.add("POST", "/api/v1/statuses", json=STATUS)
        upload = await mastodon_services.files.upload_file("cat.png", png_bytes)

        await mastodon_services.mastodon.create_post(
            NewPostRequest(content="Cat", images=[upload.uuid])
        )

        assert len(mock_api.calls("GET", "/api/v1/media/m3")) == 3
        form = _form(mock_api.calls("POST", "/api/v1/statuses")[0])
        assert form["media_ids[]"] == ["m3"]

    @pytest.mark.asyncio
    async def test_media_processing_timeout(self, mastodon_services, mock_api, png_bytes, monkeypatch):
        """Media that never finishes processing fails with 500."""
        monkeypatch.setattr(MastodonPlatform, "MEDIA_POLL_ATTEMPTS", 3)
        mock_api.add("POST", "/api/v2/media", status=202, json={"id": "m4"})
        mock_api.add("GET", "/api/v1/media/m4", status=202, json={"id": "m4"})
        upload = await mastodon_services.files.upload_file("cat.png", png_bytes)

        with pytest.raises(CaughtException) as exc_info:
            await mastodon_services.mastodon.create_post(
                NewPostRequest(content="Cat", images=[upload.uuid])
            )

        assert exc_info.value.message == "Media processing timeout"
        assert exc_info.value.status == 500
        assert len(mock_api.calls("GET", "/api/v1/media/m4")) == 3
        assert mock_api.calls("POST", "/api/v1/statuses") == []

    @pytest.mark.asyncio
    async def test_rejected_status(self, mastodon_services, mock_api):
        mock_api.add("POST", "/api/v1/statuses", status=422, json={"error": "Validation failed"})

        with pytest.raises(RequestError) as exc_info:
            await mastodon_services.mastodon.create_post(NewPostRequest(content="hi"))

        assert exc_info.value.status == 422
        assert exc_info.value.to_dict()["details"] == {"body": {"error": "Validation failed"}}
