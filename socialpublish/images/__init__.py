"""Image inspection and optimization through ImageMagick."""

from .magick import (
    ImageMagick,
    ImageSize,
    MagickError,
    MagickOptimizeOptions,
    detect_format_name,
    detect_mimetype,
)

__all__ = [
    "ImageMagick",
    "ImageSize",
    "MagickError",
    "MagickOptimizeOptions",
    "detect_format_name",
    "detect_mimetype",
]
