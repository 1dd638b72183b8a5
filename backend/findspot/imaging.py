"""
Image utilities for the capture pipeline and the thumbnail jobs.

Uses Pillow (PIL) for decoding, resizing and JPEG re-encoding. Payloads travel
as data URLs (``data:image/jpeg;base64,...``) because that is how rows keep
their inline compressed copy and thumbnail.
"""

from __future__ import annotations

from dataclasses import dataclass
import base64
import binascii
import io
import logging
import re
from typing import Tuple

from PIL import Image, ImageOps

logger = logging.getLogger("findspot.imaging")

JPEG_MIME = "image/jpeg"
DEFAULT_MAX_UPLOAD_MB = 2
MAX_IMAGE_DIMENSION = 10000  # pixels

_DATA_URL_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")


class ImageProcessingError(ValueError):
    """Raised when a payload cannot be decoded or re-encoded."""


class ImageTooLargeError(ImageProcessingError):
    """Raised when a capture exceeds the upload size limit."""


@dataclass(frozen=True)
class ThumbnailConfig:
    max_width: int = 800
    max_height: int = 800
    quality: int = 85
    progressive: bool = True


def decode_data_url(value: str) -> bytes:
    """Return raw bytes for a data URL or a bare base64 string."""
    if not value:
        raise ImageProcessingError("Empty image payload")
    payload = _DATA_URL_PREFIX.sub("", value.strip(), count=1)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageProcessingError(f"Invalid base64 image payload: {exc}") from exc


def encode_data_url(data: bytes, mime_type: str = JPEG_MIME) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def estimate_data_url_size(value: str) -> float:
    """Approximate decoded size in bytes of a base64 payload."""
    return len(value) * 3 / 4


def validate_image_size(value: str, max_mb: float = DEFAULT_MAX_UPLOAD_MB) -> bool:
    size_in_bytes = estimate_data_url_size(value)
    max_bytes = max_mb * 1024 * 1024
    if size_in_bytes > max_bytes:
        raise ImageTooLargeError(
            f"Image is too large ({size_in_bytes / 1024 / 1024:.2f}MB). "
            f"Maximum size is {max_mb:g}MB."
        )
    return True


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        width, height = img.size
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            raise ImageProcessingError(f"Image dimensions exceed {MAX_IMAGE_DIMENSION}px")
        img.load()
    except ImageProcessingError:
        raise
    except Exception as exc:
        # Pillow signals corrupt or oversized input with several exception types
        raise ImageProcessingError(f"Invalid image file: {exc}") from exc
    return img


def _to_rgb(img: Image.Image) -> Image.Image:
    # JPEG has no alpha; flatten transparent captures onto white
    if img.mode in ("RGBA", "LA", "P"):
        background = Image.new("RGB", img.size, (255, 255, 255))
        if img.mode == "P":
            img = img.convert("RGBA")
        background.paste(img, mask=img.split()[-1] if img.mode in ("RGBA", "LA") else None)
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def compressed_dimensions(
    width: int, height: int, max_width: int, max_height: int
) -> Tuple[int, int]:
    """Target size for the stored copy.

    Landscape images are bounded by width only, everything else by height
    only. Never enlarges.
    """
    if width > height:
        if width > max_width:
            height = height * max_width / width
            width = max_width
    else:
        if height > max_height:
            width = width * max_height / height
            height = max_height
    return max(1, int(width)), max(1, int(height))


def thumbnail_dimensions(
    width: int, height: int, max_width: int, max_height: int
) -> Tuple[int, int]:
    """Fit inside the box, preserve aspect ratio, never enlarge."""
    if width > max_width or height > max_height:
        scale = min(max_width / width, max_height / height)
        width = round(width * scale)
        height = round(height * scale)
    return max(1, int(width)), max(1, int(height))


def compress_image(
    data: bytes, max_width: int = 800, max_height: int = 600, quality: int = 80
) -> bytes:
    """Downsize a capture for inline storage and re-encode it as JPEG."""
    img = _to_rgb(_open(data))
    target = compressed_dimensions(img.width, img.height, max_width, max_height)
    if target != img.size:
        img = img.resize(target, Image.LANCZOS)
        logger.debug("Compressed image to %sx%s", *target)

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def create_thumbnail(data: bytes, config: ThumbnailConfig = ThumbnailConfig()) -> bytes:
    """Build a thumbnail honouring EXIF orientation."""
    img = _open(data)
    img = ImageOps.exif_transpose(img)
    img = _to_rgb(img)

    target = thumbnail_dimensions(img.width, img.height, config.max_width, config.max_height)
    if target != img.size:
        img = img.resize(target, Image.LANCZOS)

    buf = io.BytesIO()
    img.save(
        buf,
        format="JPEG",
        quality=config.quality,
        optimize=True,
        progressive=config.progressive,
    )
    return buf.getvalue()


def create_thumbnail_data_url(value: str, config: ThumbnailConfig = ThumbnailConfig()) -> str:
    return encode_data_url(create_thumbnail(decode_data_url(value), config))


def get_image_dimensions(data: bytes) -> Tuple[int, int]:
    """Get image dimensions without fully processing the image."""
    try:
        return Image.open(io.BytesIO(data)).size
    except Exception as exc:
        logger.error("Failed to get image dimensions: %s", exc)
        return 0, 0


__all__ = [
    "ImageProcessingError",
    "ImageTooLargeError",
    "ThumbnailConfig",
    "compress_image",
    "compressed_dimensions",
    "create_thumbnail",
    "create_thumbnail_data_url",
    "decode_data_url",
    "encode_data_url",
    "estimate_data_url_size",
    "get_image_dimensions",
    "thumbnail_dimensions",
    "validate_image_size",
]
