"""
Base class for social media platform integrations.

Every adapter follows the same contract: check configuration, validate the
request, translate images into platform media references, then create the
post. Failures surface as `SocialPublishError` subclasses.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from ...config import Settings
from ...exceptions import CaughtException, RequestError, SocialPublishError, ValidationError
from ...files import FilesStore
from ...types.files import StoredImage
from ...types.posts import NewPostRequest, PostResponse
from ...utils.html import cleanup_html
from ...utils.logging import Timer, platform_var

logger = logging.getLogger(__name__)


class BasePlatform(ABC):
    """
    Abstract base class for platform adapters.

    Subclasses set `name` (the module name used in responses and errors)
    and `display_name`, and implement `is_configured` and `_create_post`.

    Args:
        settings: Application settings.
        files: Files store used to read uploaded images.
        transport: Optional httpx transport, used to mock platform APIs.
    """

    name: str = ""
    display_name: str = ""

    def __init__(
        self,
        settings: Settings,
        files: Optional[FilesStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.files = files
        self._transport = transport
        self._logger = logging.getLogger(f"{__name__}.{self.name}")

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the platform has the credentials it needs."""

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise ValidationError(
                f"{self.display_name} integration not configured",
                status=503,
                module="publish",
            )

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def create_post(self, request: NewPostRequest) -> PostResponse:
        """
        Publish a post to the platform.

        Args:
            request: The post to publish.

        Returns:
            The platform's response model.

        Raises:
            ValidationError: If the platform is not configured or the request
                is invalid.
            RequestError: If the platform rejected a call.
            CaughtException: For any unexpected failure.
        """
        self._ensure_configured()
        request.validate_content()

        token = platform_var.set(self.name)
        try:
            with Timer(f"{self.name}.create_post", self._logger):
                return await self._create_post(request)
        except SocialPublishError as e:
            self._logger.warning(f"Failed to create post via {self.display_name}: {e.message}")
            raise
        except Exception as e:
            self._logger.error(f"Failed to create post via {self.display_name}", exc_info=True)
            raise CaughtException(
                f"Failed to create post via {self.display_name}: {e}",
                module=self.name,
                cause=e,
            ) from e
        finally:
            platform_var.reset(token)

    @abstractmethod
    async def _create_post(self, request: NewPostRequest) -> PostResponse:
        """Platform-specific post creation."""

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _client(self, **kwargs) -> httpx.AsyncClient:
        """Build an HTTP client with the configured timeout and transport."""
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.settings.http.http_client_timeout,
            **kwargs,
        )

    @staticmethod
    def _content_text(request: NewPostRequest) -> str:
        if request.cleanup_html:
            return cleanup_html(request.content)
        return request.content.strip()

    def _post_text(self, request: NewPostRequest) -> str:
        """Post content with the link appended on its own paragraph."""
        text = self._content_text(request)
        if request.link:
            text = f"{text}\n\n{request.link}"
        return text

    def _request_error(self, response: httpx.Response, message: str) -> RequestError:
        self._logger.warning(
            f"{self.display_name} request failed",
            extra={
                "status": response.status_code,
                "url": str(response.request.url.copy_with(query=None)),
            },
        )
        return RequestError.from_response(response, message, module=self.name)

    async def _read_images(
        self,
        request: NewPostRequest,
        max_width: Optional[int] = None,
        max_height: Optional[int] = None,
    ) -> List[StoredImage]:
        """
        Load the images referenced by a request.

        Raises:
            ValidationError: 404 if an image cannot be read.
        """
        images: List[StoredImage] = []
        for image_uuid in request.images or []:
            image = None
            if self.files is not None:
                image = await self.files.read_image_file(image_uuid, max_width, max_height)
            if image is None:
                raise ValidationError(
                    f"Failed to read image file, uuid: {image_uuid}",
                    status=404,
                    module=self.name,
                )
            images.append(image)
        return images
