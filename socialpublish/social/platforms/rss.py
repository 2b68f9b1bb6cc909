"""
RSS feed "platform".

Posts are stored locally and rendered as an RSS 2.0 feed with Media RSS
elements for attached images, so feed readers and automation services can
pick them up.
"""

import re
import xml.etree.ElementTree as ET
from email.utils import format_datetime
from datetime import datetime, timezone
from typing import List, Literal, Optional

from ...config import Settings
from ...storage.files import FilesDatabase
from ...storage.posts import PostsDatabase
from ...types.posts import NewPostRequest, Post, RssPostResponse
from .base import BasePlatform

MEDIA_NAMESPACE = "http://search.yahoo.com/mrss/"
HASHTAG_PATTERN = re.compile(r"(?:^|\s)(#\w+)")
# Characters XML 1.0 does not allow, even escaped
INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

ET.register_namespace("media", MEDIA_NAMESPACE)

FilterMode = Optional[Literal["include", "exclude"]]


def extract_hashtags(content: str) -> List[str]:
    """Hashtags in the content, without the leading '#'."""
    return [match.group(1)[1:] for match in HASHTAG_PATTERN.finditer(content)]


def _media(tag: str) -> str:
    return f"{{{MEDIA_NAMESPACE}}}{tag}"


def _xml_text(value: str) -> str:
    return INVALID_XML_CHARS.sub("", value)


class RssPlatform(BasePlatform):
    """Stores posts and renders them as a feed."""

    name = "rss"
    display_name = "RSS"

    def __init__(
        self,
        settings: Settings,
        posts: PostsDatabase,
        files_db: FilesDatabase,
    ) -> None:
        super().__init__(settings)
        self.posts = posts
        self.files_db = files_db

    @property
    def is_configured(self) -> bool:
        return True

    @property
    def _base_url(self) -> str:
        return self.settings.server.base_url

    async def _create_post(self, request: NewPostRequest) -> RssPostResponse:
        content = self._content_text(request) if request.cleanup_html else request.content
        post = await self.posts.create(
            content=content,
            targets=[target.lower() for target in request.targets or []],
            link=request.link,
            language=request.language,
            tags=extract_hashtags(content),
            images=request.images,
        )
        self._logger.info(f"Saved RSS item {post.uuid}")
        return RssPostResponse(uri=f"{self._base_url}/rss/{post.uuid}")

    async def get_rss_item(self, post_uuid: str) -> Optional[Post]:
        return await self.posts.search_by_uuid(post_uuid)

    async def generate_rss(
        self,
        filter_by_links: FilterMode = None,
        filter_by_images: FilterMode = None,
        target: Optional[str] = None,
    ) -> str:
        """
        Render stored posts as an RSS 2.0 document.

        Args:
            filter_by_links: "include" keeps only posts with a link,
                "exclude" only posts without one.
            filter_by_images: Same as `filter_by_links`, for images.
            target: Keep only posts broadcast to this platform.

        Returns:
            The feed as an XML string.
        """
        base_url = self._base_url
        rss = ET.Element("rss", {"version": "2.0"})
        channel = ET.SubElement(rss, "channel")
        ET.SubElement(channel, "title").text = f"Feed of {re.sub(r'^https?://', '', base_url)}"
        ET.SubElement(channel, "link").text = base_url
        ET.SubElement(channel, "description").text = "Social publish RSS feed"
        ET.SubElement(channel, "lastBuildDate").text = format_datetime(datetime.now(timezone.utc))

        for post in await self.posts.get_all():
            if not self._matches(post, filter_by_links, filter_by_images, target):
                continue
            await self._append_item(channel, post)

        return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(rss, encoding="unicode")

    @staticmethod
    def _matches(
        post: Post,
        filter_by_links: FilterMode,
        filter_by_images: FilterMode,
        target: Optional[str],
    ) -> bool:
        if target is not None and target.lower() not in post.targets:
            return False
        if filter_by_links == "include" and not post.link:
            return False
        if filter_by_links == "exclude" and post.link:
            return False
        if filter_by_images == "include" and not post.images:
            return False
        if filter_by_images == "exclude" and post.images:
            return False
        return True

    async def _append_item(self, channel: ET.Element, post: Post) -> None:
        guid = f"{self._base_url}/rss/{post.uuid}"
        item = ET.SubElement(channel, "item")
        ET.SubElement(item, "title").text = _xml_text(post.content)
        ET.SubElement(item, "link").text = _xml_text(post.link) if post.link else guid
        ET.SubElement(item, "guid", {"isPermaLink": "true"}).text = guid
        ET.SubElement(item, "pubDate").text = format_datetime(post.created_at)
        ET.SubElement(item, "description").text = _xml_text(post.content)

        for name in [*post.tags, *post.targets]:
            ET.SubElement(item, "category").text = _xml_text(name)

        for image_uuid in post.images:
            upload = await self.files_db.get_file_by_uuid(image_uuid)
            if upload is None:
                continue
            content = ET.SubElement(
                item,
                _media("content"),
                {
                    "url": f"{self._base_url}/files/{upload.uuid}",
                    "fileSize": str(upload.size),
                    "type": upload.mimetype,
                },
            )
            ET.SubElement(content, _media("rating"), {"scheme": "urn:simple"}).text = "nonadult"
            if upload.alt_text:
                ET.SubElement(content, _media("description")).text = _xml_text(upload.alt_text)
