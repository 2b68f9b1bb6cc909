"""
Posts stored for the RSS feed, kept as documents of kind "post".
"""

import json
from typing import List, Optional

from ..types.posts import Post
from .documents import Document, DocumentsDatabase, DocumentTag

POST_KIND = "post"
TARGET_TAG_KIND = "target"


class PostsDatabase:
    def __init__(self, documents: DocumentsDatabase):
        self.documents = documents

    async def create(
        self,
        content: str,
        targets: List[str],
        link: Optional[str] = None,
        language: Optional[str] = None,
        tags: Optional[List[str]] = None,
        images: Optional[List[str]] = None,
    ) -> Post:
        """
        Store a post.

        Args:
            content: Post text.
            targets: Platforms the post was broadcast to; saved as tags.
            link: Optional link attached to the post.
            language: Optional language code.
            tags: Hashtags extracted from the content.
            images: Upload UUIDs.

        Returns:
            The stored post.
        """
        payload = {
            "content": content,
            "link": link,
            "tags": tags or [],
            "language": language,
            "images": images or [],
        }
        document = await self.documents.create_or_update(
            kind=POST_KIND,
            payload=json.dumps(payload),
            tags=[DocumentTag(name=target, kind=TARGET_TAG_KIND) for target in targets],
        )
        return self._to_post(document)

    async def get_all(self) -> List[Post]:
        """All posts, newest first."""
        documents = await self.documents.get_all(POST_KIND, order_by_created_desc=True)
        return [self._to_post(document) for document in documents]

    async def search_by_uuid(self, post_uuid: str) -> Optional[Post]:
        document = await self.documents.search_by_uuid(post_uuid)
        if document is None or document.kind != POST_KIND:
            return None
        return self._to_post(document)

    @staticmethod
    def _to_post(document: Document) -> Post:
        payload = json.loads(document.payload)
        return Post(
            uuid=document.uuid,
            content=payload["content"],
            link=payload.get("link"),
            language=payload.get("language"),
            tags=payload.get("tags") or [],
            images=payload.get("images") or [],
            targets=[tag.name for tag in document.tags if tag.kind == TARGET_TAG_KIND],
            created_at=document.created_at,
        )
