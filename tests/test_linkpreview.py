"""
Tests for link preview extraction.
"""

import os
import sys
import unittest

import httpx

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from socialpublish.linkpreview import (
    MAX_THUMBNAIL_BYTES,
    LinkPreview,
    LinkPreviewFetcher,
    parse_html,
    resolve_image_url,
)

ARTICLE_HTML = """
<html>
<head>
    <title>Fallback title</title>
    <meta property="og:title" content="Article Title">
    <meta name="twitter:title" content="Twitter Title">
    <meta property="og:description" content="What the article is about">
    <meta property="og:url" content="https://example.com/canonical">
    <meta property="og:image" content="/images/card.png">
</head>
<body></body>
</html>
"""


class TestParseHtml(unittest.TestCase):
    """Tests for parse_html."""

    def test_open_graph(self):
        preview = parse_html(ARTICLE_HTML, "https://example.com/article")

        self.assertEqual(
            preview,
            LinkPreview(
                title="Article Title",
                url="https://example.com/canonical",
                description="What the article is about",
                image="https://example.com/images/card.png",
            ),
        )

    def test_twitter_card_fallback(self):
        html = """
        <meta name="twitter:title" content="Twitter Title">
        <meta name="twitter:description" content="Twitter description">
        <meta name="twitter:image:src" content="https://cdn.example.com/t.jpg">
        """
        preview = parse_html(html, "https://example.com/t")

        self.assertEqual(preview.title, "Twitter Title")
        self.assertEqual(preview.description, "Twitter description")
        self.assertEqual(preview.url, "https://example.com/t")
        self.assertEqual(preview.image, "https://cdn.example.com/t.jpg")

    def test_plain_html_fallback(self):
        html = '<title> Plain title </title><meta name="description" content="Plain description">'
        preview = parse_html(html, "https://example.com")

        self.assertEqual(preview.title, "Plain title")
        self.assertEqual(preview.description, "Plain description")
        self.assertIsNone(preview.image)

    def test_page_without_title(self):
        self.assertIsNone(parse_html("<body>No metadata here</body>", "https://example.com"))

    def test_blank_meta_is_ignored(self):
        html = '<meta property="og:title" content="  "><title>Real title</title>'
        self.assertEqual(parse_html(html, "https://example.com").title, "Real title")


class TestResolveImageUrl(unittest.TestCase):
    """Tests for resolve_image_url."""

    def test_absolute(self):
        self.assertEqual(
            resolve_image_url("https://cdn.example.com/a.jpg", "https://example.com"),
            "https://cdn.example.com/a.jpg",
        )

    def test_relative(self):
        self.assertEqual(
            resolve_image_url("images/a.jpg", "https://example.com/blog/post"),
            "https://example.com/blog/images/a.jpg",
        )

    def test_protocol_relative(self):
        self.assertEqual(
            resolve_image_url("//cdn.example.com/a.jpg", "https://example.com"),
            "https://cdn.example.com/a.jpg",
        )

    def test_malformed_base(self):
        self.assertIsNone(resolve_image_url("/a.jpg", "not-a-valid-url"))


class TestLinkPreviewFetcher(unittest.IsolatedAsyncioTestCase):
    """Tests for LinkPreviewFetcher against a mocked site."""

    def _fetcher(self, handler):
        return LinkPreviewFetcher(transport=httpx.MockTransport(handler))

    async def test_fetch_preview(self):
        def handler(request):
            return httpx.Response(200, html=ARTICLE_HTML)

        preview = await self._fetcher(handler).fetch_preview("https://example.com/article")

        self.assertEqual(preview.title, "Article Title")

    async def test_redirects_are_not_followed(self):
        def handler(request):
            if request.url.path == "/watch":
                return httpx.Response(302, headers={"Location": "https://example.com/consent"})
            return httpx.Response(200, html=ARTICLE_HTML)

        self.assertIsNone(await self._fetcher(handler).fetch_preview("https://example.com/watch"))

    async def test_error_status(self):
        def handler(request):
            return httpx.Response(500)

        self.assertIsNone(await self._fetcher(handler).fetch_preview("https://example.com"))

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.assertIsNone(await self._fetcher(handler).fetch_preview("https://example.com"))

    async def test_fetch_image(self):
        def handler(request):
            return httpx.Response(200, content=b"png-bytes", headers={"Content-Type": "image/png"})

        image = await self._fetcher(handler).fetch_image("https://example.com/a.png")

        self.assertEqual(image.data, b"png-bytes")
        self.assertEqual(image.mimetype, "image/png")

    async def test_fetch_image_rejects_html_and_large_files(self):
        def html(request):
            return httpx.Response(200, html="<p>not an image</p>")

        def large(request):
            return httpx.Response(
                200,
                content=b"x" * (MAX_THUMBNAIL_BYTES + 1),
                headers={"Content-Type": "image/jpeg"},
            )

        self.assertIsNone(await self._fetcher(html).fetch_image("https://example.com/a.png"))
        self.assertIsNone(await self._fetcher(large).fetch_image("https://example.com/a.jpg"))


if __name__ == "__main__":
    unittest.main()
