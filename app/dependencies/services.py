"""
Service wiring for the Social Publish API.

Builds the storage layer, the files store and every platform adapter once
per process. Routes receive them through FastAPI dependencies so tests can
swap the whole container with `app.dependency_overrides[get_services]`.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import httpx
from fastapi import Depends

from socialpublish.config import Settings, get_settings
from socialpublish.files import FilesStore
from socialpublish.images import ImageMagick, MagickOptimizeOptions
from socialpublish.social.platforms import (
    BlueskyPlatform,
    LinkedInPlatform,
    MastodonPlatform,
    RssPlatform,
    ThreadsPlatform,
    TwitterPlatform,
)
from socialpublish.social.publisher import PublisherService
from socialpublish.storage import Database, DocumentsDatabase, FilesDatabase, PostsDatabase
from socialpublish.types import Target

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler may need."""

    settings: Settings
    database: Database
    documents: DocumentsDatabase
    files_db: FilesDatabase
    posts: PostsDatabase
    files: FilesStore
    rss: RssPlatform
    bluesky: BlueskyPlatform
    mastodon: MastodonPlatform
    twitter: TwitterPlatform
    linkedin: LinkedInPlatform
    threads: ThreadsPlatform
    publisher: PublisherService


def build_services(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    magick: Optional[ImageMagick] = None,
) -> Services:
    """
    Create and migrate the database, then wire up every component.

    Args:
        settings: Application settings.
        transport: Optional httpx transport shared by all platform clients.
        magick: Optional ImageMagick runner; located on the PATH when omitted.

    Returns:
        The service container.
    """
    database = Database(settings.server.db_path)
    database.migrate()

    documents = DocumentsDatabase(database)
    files_db = FilesDatabase(database)
    posts = PostsDatabase(documents)

    images = settings.images
    files = FilesStore(
        files_db,
        uploaded_files_path=settings.server.uploaded_files_path,
        base_url=settings.server.base_url,
        options=MagickOptimizeOptions(
            max_width=images.image_max_width,
            max_height=images.image_max_height,
            max_size_bytes=images.image_max_size_bytes,
            jpeg_quality=images.image_jpeg_quality,
        ),
        magick=magick,
    )

    rss = RssPlatform(settings, posts, files_db)
    bluesky = BlueskyPlatform(settings, files=files, transport=transport)
    mastodon = MastodonPlatform(settings, files=files, transport=transport)
    twitter = TwitterPlatform(settings, files, documents, transport=transport)
    linkedin = LinkedInPlatform(settings, files, documents, transport=transport)
    threads = ThreadsPlatform(settings, files, documents, transport=transport)

    publisher = PublisherService({
        Target.RSS: rss,
        Target.BLUESKY: bluesky,
        Target.MASTODON: mastodon,
        Target.TWITTER: twitter,
        Target.LINKEDIN: linkedin,
        Target.THREADS: threads,
    })

    return Services(
        settings=settings,
        database=database,
        documents=documents,
        files_db=files_db,
        posts=posts,
        files=files,
        rss=rss,
        bluesky=bluesky,
        mastodon=mastodon,
        twitter=twitter,
        linkedin=linkedin,
        threads=threads,
        publisher=publisher,
    )


@lru_cache()
def get_services() -> Services:
    """
    Get the process-wide service container.

    Call get_services.cache_clear() to rebuild it.
    """
    return build_services(get_settings())


def get_publisher(services: Services = Depends(get_services)) -> PublisherService:
    return services.publisher


def get_files_store(services: Services = Depends(get_services)) -> FilesStore:
    return services.files
