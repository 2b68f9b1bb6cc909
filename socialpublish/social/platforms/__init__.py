"""Platform adapters, one per broadcast target."""

from .base import BasePlatform
from .bluesky import BlueskyPlatform
from .linkedin import LinkedInPlatform
from .mastodon import MastodonPlatform
from .rss import RssPlatform
from .threads import ThreadsPlatform
from .twitter import TwitterPlatform

__all__ = [
    "BasePlatform",
    "BlueskyPlatform",
    "LinkedInPlatform",
    "MastodonPlatform",
    "RssPlatform",
    "ThreadsPlatform",
    "TwitterPlatform",
]
