"""
Header-only inspection of image buffers.

Pillow parses the container header on open and defers pixel decoding,
so probing a large image is cheap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO

from PIL import Image

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageMetadata:
    """Dimensions and frame count of an image buffer."""
    width: int = 0
    height: int = 0
    page_count: int = 1
    valid: bool = False
    format: str | None = None

    @property
    def is_animated(self) -> bool:
        return self.page_count > 1

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


def probe(data: bytes) -> ImageMetadata:
    """
    Inspect an image buffer without decoding its pixels.

    Never raises: unreadable input comes back with valid=False and zero
    dimensions.
    """
    if not data:
        logger.debug("Empty buffer, nothing to probe")
        return ImageMetadata()

    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
            page_count = int(getattr(img, "n_frames", 1))
            fmt = img.format
    except Exception as e:
        # Plugins raise TypeError, IndexError and struct.error on damaged headers.
        logger.debug("Probe failed: %s: %s", type(e).__name__, e)
        return ImageMetadata()

    if not width or not height:
        logger.debug("Probe found no dimensions (%sx%s)", width, height)
        return ImageMetadata()

    return ImageMetadata(
        width=width,
        height=height,
        page_count=max(page_count, 1),
        valid=True,
        format=fmt,
    )
