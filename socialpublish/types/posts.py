"""
Type definitions for posts and per-platform results.

Provides models for:
- The incoming "create a post" request
- The response returned by each platform adapter
- Posts stored for the RSS feed
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import ValidationError

MAX_CONTENT_LENGTH = 1000


class Target(str, Enum):
    """Platforms a post can be broadcast to."""

    RSS = "rss"
    MASTODON = "mastodon"
    BLUESKY = "bluesky"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    THREADS = "threads"

    @classmethod
    def parse(cls, value: str) -> Optional["Target"]:
        """Case-insensitive lookup, returning None for unknown names."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class NewPostRequest(BaseModel):
    """A post to publish, as accepted by every create-post endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    targets: Optional[List[str]] = None
    link: Optional[str] = None
    language: Optional[str] = None
    cleanup_html: bool = Field(default=False, alias="cleanupHtml")
    images: Optional[List[str]] = None

    def validate_content(self) -> None:
        """
        Check the content length.

        Raises:
            ValidationError: If content is empty or too long.
        """
        if not self.content or len(self.content) > MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"Content must be between 1 and {MAX_CONTENT_LENGTH} characters",
                status=400,
            )


# -----------------------------------------------------------------------------
# Platform Responses
# -----------------------------------------------------------------------------


class _PostResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BlueskyPostResponse(_PostResponse):
    uri: str
    cid: Optional[str] = None
    module: Literal["bluesky"] = "bluesky"


class MastodonPostResponse(_PostResponse):
    uri: str
    id: str
    module: Literal["mastodon"] = "mastodon"


class RssPostResponse(_PostResponse):
    uri: str
    module: Literal["rss"] = "rss"


class TwitterPostResponse(_PostResponse):
    id: str
    module: Literal["twitter"] = "twitter"


class LinkedInPostResponse(_PostResponse):
    post_id: str = Field(alias="postId")
    module: Literal["linkedin"] = "linkedin"


class ThreadsPostResponse(_PostResponse):
    id: str
    module: Literal["threads"] = "threads"


PostResponse = Union[
    BlueskyPostResponse,
    MastodonPostResponse,
    RssPostResponse,
    TwitterPostResponse,
    LinkedInPostResponse,
    ThreadsPostResponse,
]


# -----------------------------------------------------------------------------
# Stored Posts
# -----------------------------------------------------------------------------


class Post(BaseModel):
    """A post persisted for the RSS feed."""

    uuid: str
    content: str
    link: Optional[str] = None
    language: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    targets: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
