"""
ImageMagick command-line wrapper.

Supports ImageMagick 7 (the unified `magick` command) and ImageMagick 6
(separate `convert` and `identify` commands). Commands run in a worker
thread so that callers on the event loop are not blocked.
"""

import asyncio
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from ..utils.logging import Timer

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"

MIN_JPEG_QUALITY = 40


class MagickError(Exception):
    """Raised when ImageMagick is missing or a command fails."""


@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int


@dataclass(frozen=True)
class MagickOptimizeOptions:
    max_width: int = 1600
    max_height: int = 1600
    max_size_bytes: int = 1_000_000
    jpeg_quality: int = 95


def detect_mimetype(data: bytes) -> Optional[str]:
    """
    Detect PNG and JPEG images from their magic bytes.

    Args:
        data: File contents, or at least their first bytes.

    Returns:
        "image/png", "image/jpeg", or None for anything else.
    """
    if data[:8] == PNG_SIGNATURE:
        return "image/png"
    if data[:3] == JPEG_SIGNATURE:
        return "image/jpeg"
    return None


def detect_format_name(data: bytes) -> Optional[str]:
    """Name of a common image format from its magic bytes, e.g. "gif"."""
    if data[:8] == PNG_SIGNATURE:
        return "png"
    if data[:3] == JPEG_SIGNATURE:
        return "jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    if data[:4] in (b"II*\x00", b"MM\x00*"):
        return "tiff"
    if data[:2] == b"BM":
        return "bmp"
    if data[4:8] == b"ftyp" and data[8:12] in (b"avif", b"heic"):
        return data[8:12].decode("ascii")
    return None


def _detect_file_mimetype(path: str) -> Optional[str]:
    with open(path, "rb") as f:
        return detect_mimetype(f.read(16))


class ImageMagick:
    """
    Runs ImageMagick commands.

    Use `ImageMagick.find()` to locate the installed binaries.
    """

    def __init__(
        self,
        magick_path: str,
        identify_path: Optional[str] = None,
        options: Optional[MagickOptimizeOptions] = None,
    ):
        self.magick_path = magick_path
        # Only set for ImageMagick 6
        self.identify_path = identify_path
        self.options = options or MagickOptimizeOptions()

    @classmethod
    def find(cls, options: Optional[MagickOptimizeOptions] = None) -> "ImageMagick":
        """
        Locate ImageMagick on the PATH.

        Raises:
            MagickError: If neither ImageMagick 7 nor 6 is installed.
        """
        magick = shutil.which("magick")
        if magick:
            logger.info(f"Found ImageMagick 7 at: {magick}")
            return cls(magick, options=options)

        convert = shutil.which("convert")
        identify = shutil.which("identify")
        if convert and identify:
            logger.info(f"Found ImageMagick 6 at: {convert}")
            return cls(convert, identify_path=identify, options=options)

        raise MagickError("ImageMagick not found, install it to process images")

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def identify_image_size(self, source: str) -> ImageSize:
        """Return the dimensions of an image file."""
        return await asyncio.to_thread(self._identify_image_size, source)

    async def optimize_image(
        self,
        source: str,
        dest: str,
        options: Optional[MagickOptimizeOptions] = None,
    ) -> None:
        """
        Resize and recompress `source` into `dest`.

        PNGs that stay above the size limit are converted to JPEG, then the
        JPEG quality is lowered in steps of 10 until the result fits.

        Args:
            source: Existing image file.
            dest: Output path; must not exist yet.
            options: Overrides the bounds given at construction.

        Raises:
            MagickError: If the input is not an image, a command fails, or the
                image cannot be made small enough.
        """
        await asyncio.to_thread(self._optimize_image, source, dest, options or self.options)

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def _identify_image_size(self, source: str) -> ImageSize:
        if not os.path.isfile(source):
            raise MagickError(f"Source file does not exist or is not readable: {source}")

        if self.identify_path:
            command = [self.identify_path, "-format", "%w %h", source]
        else:
            command = [self.magick_path, "identify", "-format", "%w %h", source]

        output = self._run(command, "ImageMagick-powered identification of image size failed")
        parts = output.split()
        if len(parts) != 2 or not all(part.isdigit() for part in parts):
            raise MagickError(
                f"Failed to parse image size from identify output: '{output}' for file: {source}"
            )
        return ImageSize(width=int(parts[0]), height=int(parts[1]))

    def _optimize_image(self, source: str, dest: str, options: MagickOptimizeOptions) -> None:
        mimetype = _detect_file_mimetype(source)
        if mimetype is None:
            raise MagickError(f"File is not a supported image type: {source}")

        quality = options.jpeg_quality
        with Timer(f"optimize_image({os.path.basename(source)})", logger):
            while True:
                if mimetype == "image/png":
                    self._optimize_png(source, dest, options)
                else:
                    self._optimize_jpeg(source, dest, options, quality)

                size = os.path.getsize(dest)
                if size <= options.max_size_bytes:
                    return

                logger.warning(
                    f"Optimized image still too large ({size} bytes), re-optimizing: {source}"
                )
                if mimetype == "image/png":
                    mimetype = "image/jpeg"
                else:
                    quality -= 10
                    if quality < MIN_JPEG_QUALITY:
                        os.remove(dest)
                        raise MagickError(
                            "Cannot optimize image below size limit without "
                            f"excessive quality loss: {source}"
                        )
                os.remove(dest)

    def _optimize_png(self, source: str, dest: str, options: MagickOptimizeOptions) -> None:
        self._check_paths(source, dest)
        self._run(
            [
                self.magick_path,
                source,
                "-auto-orient",
                "-resize", f"{options.max_width}x{options.max_height}>",
                "-strip",
                "-define", "png:compression-level=9",
                "-define", "png:compression-strategy=1",
                f"png:{dest}",
            ],
            "ImageMagick PNG optimization command failed",
        )
        self._check_created(dest)

    def _optimize_jpeg(
        self,
        source: str,
        dest: str,
        options: MagickOptimizeOptions,
        quality: int,
    ) -> None:
        self._check_paths(source, dest)
        self._run(
            [
                self.magick_path,
                source,
                "-auto-orient",
                "-resize", f"{options.max_width}x{options.max_height}>",
                "-strip",
                "-quality", str(quality),
                "-sampling-factor", "4:2:2",
                "-interlace", "JPEG",
                f"jpeg:{dest}",
            ],
            "ImageMagick JPEG optimization command failed",
        )
        self._check_created(dest)

    @staticmethod
    def _check_paths(source: str, dest: str) -> None:
        if not os.path.isfile(source):
            raise MagickError(f"Source file does not exist: {source}")
        if os.path.exists(dest):
            raise MagickError(f"Destination file already exists: {dest}")

    @staticmethod
    def _check_created(dest: str) -> None:
        if not os.path.exists(dest):
            raise MagickError(f"Optimization failed, destination file not created: {dest}")

    @staticmethod
    def _run(command: List[str], error_message: str) -> str:
        try:
            result = subprocess.run(command, check=True, capture_output=True, text=True)
        except (subprocess.CalledProcessError, OSError) as e:
            stderr = getattr(e, "stderr", None) or ""
            raise MagickError(f"{error_message}: {stderr.strip() or e}") from e
        return result.stdout.strip()
