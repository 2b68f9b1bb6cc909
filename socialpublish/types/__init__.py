"""
Type definitions for Social Publish.
"""

from .files import (
    FileUploadResponse,
    LinkedInOAuthToken,
    StoredImage,
    TwitterOAuthToken,
    Upload,
)
from .posts import (
    BlueskyPostResponse,
    LinkedInPostResponse,
    MastodonPostResponse,
    NewPostRequest,
    Post,
    PostResponse,
    RssPostResponse,
    Target,
    ThreadsPostResponse,
    TwitterPostResponse,
)

__all__ = [
    # Files
    "FileUploadResponse",
    "StoredImage",
    "Upload",
    # OAuth
    "LinkedInOAuthToken",
    "TwitterOAuthToken",
    # Posts
    "BlueskyPostResponse",
    "LinkedInPostResponse",
    "MastodonPostResponse",
    "NewPostRequest",
    "Post",
    "PostResponse",
    "RssPostResponse",
    "Target",
    "ThreadsPostResponse",
    "TwitterPostResponse",
]
