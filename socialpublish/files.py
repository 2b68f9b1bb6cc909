"""
Files store for uploaded images.

Uploads are hashed, measured, optimized when they exceed the configured
bounds and written to `{uploaded_files_path}/processed/{hash}`. Platform
adapters read them back by UUID, optionally resized for platforms with
tighter limits; those resized copies are cached under `resizing/`.
"""

import asyncio
import hashlib
import logging
import os
import tempfile
from typing import Optional, Tuple

from .exceptions import CaughtException, SocialPublishError, ValidationError
from .images.magick import ImageMagick, MagickOptimizeOptions, detect_format_name, detect_mimetype
from .storage.files import FilesDatabase, UploadPayload
from .types.files import FileUploadResponse, StoredImage, Upload

logger = logging.getLogger(__name__)

MODULE = "files"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


def _read_bytes(path: str) -> Optional[bytes]:
    if not os.path.isfile(path):
        return None
    with open(path, "rb") as f:
        return f.read()


class FilesStore:
    """
    Stores uploaded images and serves them back to platform adapters.

    Args:
        db: Upload metadata storage.
        uploaded_files_path: Root directory for file contents.
        base_url: Public URL of the server, used to build file links.
        options: Bounds applied when optimizing uploads.
        magick: ImageMagick runner; located on the PATH when omitted.
    """

    def __init__(
        self,
        db: FilesDatabase,
        uploaded_files_path: str,
        base_url: str,
        options: Optional[MagickOptimizeOptions] = None,
        magick: Optional[ImageMagick] = None,
    ):
        self.db = db
        self.base_url = base_url.rstrip("/")
        self.options = options or MagickOptimizeOptions()
        self._magick = magick
        self.processed_path = os.path.join(uploaded_files_path, "processed")
        self.resizing_path = os.path.join(uploaded_files_path, "resizing")
        os.makedirs(self.processed_path, exist_ok=True)
        os.makedirs(self.resizing_path, exist_ok=True)
        logger.info(f"Files store initialized at {uploaded_files_path}")

    @property
    def magick(self) -> ImageMagick:
        if self._magick is None:
            self._magick = ImageMagick.find(self.options)
        return self._magick

    def get_file_url(self, file_uuid: str) -> str:
        return f"{self.base_url}/files/{file_uuid}"

    # -------------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------------

    async def upload_file(
        self,
        file_name: Optional[str],
        data: Optional[bytes],
        alt_text: Optional[str] = None,
    ) -> FileUploadResponse:
        """
        Store an uploaded image.

        Args:
            file_name: Original file name from the multipart upload.
            data: File contents.
            alt_text: Optional image description.

        Returns:
            The UUID of the stored file and its public URL.

        Raises:
            ValidationError: If the file is missing or not a PNG/JPEG.
            CaughtException: If processing or storage fails.
        """
        if not data:
            raise ValidationError("Missing file in upload", status=400, module=MODULE)

        mimetype = detect_mimetype(data)
        if mimetype is None:
            raise ValidationError(
                f"Only PNG and JPEG images are supported, got: {detect_format_name(data) or 'unknown'}",
                status=400,
                module=MODULE,
            )

        try:
            file_hash = sha256_hex(data)
            processed, mimetype, width, height = await self._process_image(data, mimetype)

            upload = await self.db.create_file(
                UploadPayload(
                    hash=file_hash,
                    original_name=file_name or "unknown",
                    mimetype=mimetype,
                    size=len(processed),
                    alt_text=alt_text or None,
                    image_width=width or None,
                    image_height=height or None,
                )
            )
            await asyncio.to_thread(
                _write_bytes, os.path.join(self.processed_path, upload.hash), processed
            )
        except SocialPublishError:
            raise
        except Exception as e:
            logger.error("Failed to upload file", exc_info=True)
            raise CaughtException(f"Failed to upload file: {e}", module=MODULE, cause=e) from e

        logger.info(f"File uploaded: {upload.uuid} ({upload.original_name})")
        return FileUploadResponse(uuid=upload.uuid, url=self.get_file_url(upload.uuid))

    async def _process_image(self, data: bytes, mimetype: str) -> Tuple[bytes, str, int, int]:
        """Measure the image and optimize it when it exceeds the bounds."""
        with tempfile.TemporaryDirectory(prefix="upload-") as workdir:
            source = os.path.join(workdir, "source")
            await asyncio.to_thread(_write_bytes, source, data)
            size = await self.magick.identify_image_size(source)

            within_bounds = (
                size.width <= self.options.max_width
                and size.height <= self.options.max_height
                and len(data) <= self.options.max_size_bytes
            )
            if within_bounds:
                return data, mimetype, size.width, size.height

            dest = os.path.join(workdir, "optimized")
            await self.magick.optimize_image(source, dest, self.options)
            optimized = await asyncio.to_thread(_read_bytes, dest)
            optimized_size = await self.magick.identify_image_size(dest)
            logger.info(
                "Optimized upload",
                extra={
                    "original_bytes": len(data),
                    "optimized_bytes": len(optimized),
                    "width": optimized_size.width,
                    "height": optimized_size.height,
                },
            )
            return (
                optimized,
                detect_mimetype(optimized) or mimetype,
                optimized_size.width,
                optimized_size.height,
            )

    # -------------------------------------------------------------------------
    # Retrieval
    # -------------------------------------------------------------------------

    async def get_file(self, file_uuid: str) -> Tuple[Upload, str]:
        """
        Look up a stored file.

        Returns:
            The upload row and the path of its contents.

        Raises:
            ValidationError: 404 if the file or its contents are missing.
        """
        upload = await self.db.get_file_by_uuid(file_uuid)
        if upload is None:
            raise ValidationError("File not found", status=404, module=MODULE)

        path = os.path.join(self.processed_path, upload.hash)
        if not os.path.isfile(path):
            raise ValidationError("File content not found", status=404, module=MODULE)
        return upload, path

    async def read_image_file(
        self,
        file_uuid: str,
        max_width: Optional[int] = None,
        max_height: Optional[int] = None,
    ) -> Optional[StoredImage]:
        """
        Read a stored image for re-upload to a platform.

        Args:
            file_uuid: UUID returned by `upload_file`.
            max_width: Resize when the image is wider than this.
            max_height: Resize when the image is taller than this.

        Returns:
            The image, or None if it does not exist.
        """
        upload = await self.db.get_file_by_uuid(file_uuid)
        if upload is None:
            return None

        data = await asyncio.to_thread(
            _read_bytes, os.path.join(self.processed_path, upload.hash)
        )
        if data is None:
            return None

        image = StoredImage(
            uuid=upload.uuid,
            hash=upload.hash,
            mimetype=upload.mimetype,
            data=data,
            alt_text=upload.alt_text,
            width=upload.image_width,
            height=upload.image_height,
        )

        if max_width is None or max_height is None:
            return image

        width = upload.image_width or 0
        height = upload.image_height or 0
        if 0 < width <= max_width and 0 < height <= max_height:
            return image

        return await self._resized(image, max_width, max_height)

    async def _resized(self, image: StoredImage, max_width: int, max_height: int) -> StoredImage:
        cached_path = os.path.join(self.resizing_path, image.hash)
        cached = await asyncio.to_thread(_read_bytes, cached_path)
        if cached is not None:
            size = await self.magick.identify_image_size(cached_path)
            if size.width <= max_width and size.height <= max_height:
                return image.model_copy(
                    update={"data": cached, "width": size.width, "height": size.height}
                )

        with tempfile.TemporaryDirectory(prefix="resize-") as workdir:
            source = os.path.join(workdir, "source")
            await asyncio.to_thread(_write_bytes, source, image.data)
            size = await self.magick.identify_image_size(source)
            if size.width <= max_width and size.height <= max_height:
                return image.model_copy(update={"width": size.width, "height": size.height})

            dest = os.path.join(workdir, "resized")
            await self.magick.optimize_image(
                source,
                dest,
                MagickOptimizeOptions(
                    max_width=max_width,
                    max_height=max_height,
                    max_size_bytes=self.options.max_size_bytes,
                    jpeg_quality=90,
                ),
            )
            resized = await asyncio.to_thread(_read_bytes, dest)
            resized_size = await self.magick.identify_image_size(dest)

        await asyncio.to_thread(_write_bytes, cached_path, resized)
        logger.debug(f"Resized {image.uuid} to {resized_size.width}x{resized_size.height}")
        return image.model_copy(
            update={
                "data": resized,
                "mimetype": detect_mimetype(resized) or image.mimetype,
                "width": resized_size.width,
                "height": resized_size.height,
            }
        )
