"""
Pytest configuration and shared fixtures for Social Publish tests.

This module provides common fixtures used across all test files:
- Settings and storage rooted in a temporary directory
- A fake ImageMagick runner
- A recording mock of the platform HTTP APIs
- Test client setup with the service container overridden
"""

import os
import shutil
import sys
import tempfile
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

# Environment setup before any imports
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="socialpublish-tests-")
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BASE_URL"] = "http://localhost:3000"
os.environ["DB_PATH"] = os.path.join(_TEST_DATA_DIR, "socialpublish.db")
os.environ["UPLOADED_FILES_PATH"] = os.path.join(_TEST_DATA_DIR, "uploads")
for _name in (
    "BSKY_USERNAME", "BSKY_PASSWORD",
    "MASTODON_HOST", "MASTODON_ACCESS_TOKEN",
    "TWITTER_OAUTH1_CONSUMER_KEY", "TWITTER_OAUTH1_CONSUMER_SECRET",
    "LINKEDIN_CLIENT_ID", "LINKEDIN_CLIENT_SECRET",
    "THREADS_ACCESS_TOKEN", "THREADS_USER_ID",
    "SENTRY_DSN",
):
    os.environ.pop(_name, None)

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from socialpublish.config import (  # noqa: E402
    BlueskySettings,
    LinkedInSettings,
    MastodonSettings,
    ServerSettings,
    Settings,
    ThreadsSettings,
    TwitterSettings,
    get_settings,
)
from socialpublish.images.magick import (  # noqa: E402
    JPEG_SIGNATURE,
    PNG_SIGNATURE,
    ImageSize,
    MagickOptimizeOptions,
)
from socialpublish.storage import Database, DocumentsDatabase, FilesDatabase, PostsDatabase  # noqa: E402

BASE_URL = "http://localhost:3000"

PNG_BYTES = PNG_SIGNATURE + b"\x00\x00\x00\rIHDR" + b"fake-png-pixels" * 8
JPEG_BYTES = JPEG_SIGNATURE + b"\xe0\x00\x10JFIF" + b"fake-jpeg-pixels" * 8


# =============================================================================
# Fakes
# =============================================================================


class FakeMagick:
    """
    Stands in for ImageMagick.

    Every file measures `size` until it is optimized; optimized files are
    truncated to the byte limit and shrunk to the requested bounds.
    """

    def __init__(self, width: int = 800, height: int = 600):
        self.size = ImageSize(width, height)
        self.sizes: Dict[str, ImageSize] = {}
        self.optimize_calls: List[Tuple[str, str, MagickOptimizeOptions]] = []

    async def identify_image_size(self, source: str) -> ImageSize:
        return self.sizes.get(source, self.size)

    async def optimize_image(
        self,
        source: str,
        dest: str,
        options: Optional[MagickOptimizeOptions] = None,
    ) -> None:
        options = options or MagickOptimizeOptions()
        with open(source, "rb") as f:
            data = f.read()
        with open(dest, "wb") as f:
            f.write(data[: options.max_size_bytes])
        self.sizes[dest] = ImageSize(
            min(self.size.width, options.max_width),
            min(self.size.height, options.max_height),
        )
        self.optimize_calls.append((source, dest, options))


Route = Union[Callable[[httpx.Request], httpx.Response], Dict[str, Any]]


class MockApi:
    """
    Routes outgoing requests by method and path, and records them.

    Responses registered for the same route are returned in order; the last
    one repeats.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Route]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, **kwargs) -> "MockApi":
        self.routes.setdefault((method, path), []).append({"status_code": status, **kwargs})
        return self

    def add_handler(
        self,
        method: str,
        path: str,
        handler: Callable[[httpx.Request], httpx.Response],
    ) -> "MockApi":
        self.routes.setdefault((method, path), []).append(handler)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": f"No route for {request.url.path}"})

        route = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(route):
            return route(request)
        return httpx.Response(**route)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            request for request in self.requests
            if request.method == method and request.url.path == path
        ]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES


@pytest.fixture
def fake_magick():
    return FakeMagick()


@pytest.fixture
def mock_api():
    return MockApi()


@pytest.fixture
def settings_factory(tmp_path):
    """Build Settings rooted in tmp_path; keyword arguments replace groups."""

    def factory(**groups) -> Settings:
        groups.setdefault(
            "server",
            ServerSettings(
                base_url=BASE_URL,
                db_path=str(tmp_path / "socialpublish.db"),
                uploaded_files_path=str(tmp_path / "uploads"),
            ),
        )
        return Settings(**groups)

    return factory


@pytest.fixture
def all_platforms_configured():
    """Settings groups with credentials for every platform."""
    return {
        "bluesky": BlueskySettings(
            bsky_service="https://bsky.test",
            bsky_username="alice.bsky.social",
            bsky_password="app-password",
        ),
        "mastodon": MastodonSettings(
            mastodon_host="https://mastodon.test",
            mastodon_access_token="mastodon-token",
        ),
        "twitter": TwitterSettings(
            twitter_oauth1_consumer_key="consumer-key",
            twitter_oauth1_consumer_secret="consumer-secret",
            twitter_api_base="https://api.twitter.test",
            twitter_upload_base="https://upload.twitter.test",
            twitter_oauth_request_token_url="https://api.twitter.test/oauth/request_token",
            twitter_oauth_access_token_url="https://api.twitter.test/oauth/access_token",
            twitter_oauth_authorize_url="https://api.twitter.test/oauth/authorize",
        ),
        "linkedin": LinkedInSettings(
            linkedin_client_id="linkedin-client",
            linkedin_client_secret="linkedin-secret",
            linkedin_authorization_url="https://www.linkedin.test/oauth/v2/authorization",
            linkedin_access_token_url="https://www.linkedin.test/oauth/v2/accessToken",
            linkedin_api_base="https://api.linkedin.test/v2",
        ),
        "threads": ThreadsSettings(
            threads_access_token="threads-token",
            threads_user_id="12345",
            threads_api_base="https://graph.threads.test",
        ),
    }


@pytest.fixture
def database(tmp_path):
    db = Database(str(tmp_path / "socialpublish.db"))
    db.migrate()
    return db


@pytest.fixture
def documents(database):
    return DocumentsDatabase(database)


@pytest.fixture
def files_db(database):
    return FilesDatabase(database)


@pytest.fixture
def posts_db(documents):
    return PostsDatabase(documents)


@pytest.fixture
def files_store(files_db, tmp_path, fake_magick):
    from socialpublish.files import FilesStore

    return FilesStore(
        files_db,
        uploaded_files_path=str(tmp_path / "uploads"),
        base_url=BASE_URL,
        magick=fake_magick,
    )


@pytest.fixture
def services_factory(settings_factory, mock_api, fake_magick):
    """Build a service container whose platform calls go to mock_api."""
    from app.dependencies import build_services

    def factory(**groups):
        return build_services(
            settings_factory(**groups),
            transport=mock_api.transport,
            magick=fake_magick,
        )

    return factory


@pytest.fixture
def client_factory(services_factory):
    """FastAPI test client with the service container overridden."""
    from fastapi.testclient import TestClient

    from app.dependencies import get_services
    from server import app

    def factory(**groups):
        services = services_factory(**groups)
        app.dependency_overrides[get_services] = lambda: services
        return TestClient(app), services

    yield factory
    app.dependency_overrides.clear()


# Test environment cleanup
@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables and cached settings after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
    get_settings.cache_clear()


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TEST_DATA_DIR, ignore_errors=True)
