"""
Link previews.

Fetches a linked page and reads its Open Graph, Twitter Card or plain HTML
metadata, so platforms that render link cards (Bluesky, LinkedIn) can show
a title, description and thumbnail.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Bluesky rejects blobs over 1MB
MAX_THUMBNAIL_BYTES = 1_000_000


@dataclass
class LinkPreview:
    title: str
    url: str
    description: Optional[str] = None
    image: Optional[str] = None


@dataclass
class PreviewImage:
    data: bytes
    mimetype: str


def _meta(soup: BeautifulSoup, selectors: Iterable[Tuple[str, str]]) -> Optional[str]:
    """First non-blank `content` among meta tags, in priority order."""
    for attr, value in selectors:
        tag = soup.find("meta", attrs={attr: value})
        if tag is None:
            continue
        content = (tag.get("content") or "").strip()
        if content:
            return content
    return None


def resolve_image_url(image_url: str, base_url: str) -> Optional[str]:
    """Resolve a relative image URL against the page URL."""
    if urlsplit(image_url).scheme in ("http", "https"):
        return image_url
    base = urlsplit(base_url)
    if base.scheme not in ("http", "https") or not base.netloc:
        return None
    return urljoin(base_url, image_url)


def parse_html(html: str, fallback_url: str) -> Optional[LinkPreview]:
    """
    Extract preview metadata from a page.

    Open Graph tags win over Twitter Card tags, which win over `<title>` and
    `<meta name="description">`.

    Args:
        html: The page's HTML.
        fallback_url: URL of the page, used when it declares none and to
            resolve relative image URLs.

    Returns:
        The preview, or None if the page has no title.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _meta(soup, [("property", "og:title"), ("name", "twitter:title")])
    if title is None and soup.title is not None:
        title = soup.title.get_text(strip=True) or None
    if title is None:
        return None

    description = _meta(
        soup,
        [
            ("property", "og:description"),
            ("name", "twitter:description"),
            ("name", "description"),
        ],
    )
    url = _meta(soup, [("property", "og:url"), ("name", "twitter:url")]) or fallback_url

    image = None
    image_url = _meta(
        soup,
        [
            ("property", "og:image"),
            ("name", "twitter:image"),
            ("name", "twitter:image:src"),
        ],
    )
    if image_url is not None:
        image = resolve_image_url(image_url, fallback_url)
        if image is None:
            logger.warning(f"Failed to resolve image URL '{image_url}' against '{fallback_url}'")

    return LinkPreview(title=title, url=url, description=description, image=image)


class LinkPreviewFetcher:
    """
    Downloads pages and preview images.

    Redirects are not followed; sites that redirect bots (YouTube, for one)
    get no preview. Failures are logged and yield None.

    Args:
        transport: Optional httpx transport, used to mock remote sites.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout,
            follow_redirects=False,
        )

    async def fetch_preview(self, url: str) -> Optional[LinkPreview]:
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching link preview for {url}: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Failed to fetch link preview for {url}: {response.status_code}")
            return None
        return parse_html(response.text, url)

    async def fetch_image(self, url: str) -> Optional[PreviewImage]:
        """Download a preview image, if it is an image small enough to upload."""
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching preview image {url}: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Failed to fetch preview image {url}: {response.status_code}")
            return None

        mimetype = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if not mimetype.startswith("image/"):
            logger.warning(f"Preview image {url} has content type '{mimetype}'")
            return None
        if len(response.content) > MAX_THUMBNAIL_BYTES:
            logger.warning(f"Preview image {url} is too large ({len(response.content)} bytes)")
            return None
        return PreviewImage(data=response.content, mimetype=mimetype)
