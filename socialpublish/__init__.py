"""
Social Publish: broadcast one post to Bluesky, Mastodon, Twitter, LinkedIn,
Threads and an RSS feed.
"""

__version__ = "1.0.0"
