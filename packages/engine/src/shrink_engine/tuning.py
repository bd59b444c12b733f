"""
Encoder option derivation.

AVIF encode time grows quickly with resolution, so larger frames get
coarser tiles, a wider quantizer range and less effort.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

from .params import AVIF, JPEG, OutputFormat

logger = logging.getLogger(__name__)

LARGE_IMAGE_THRESHOLD = 4_000_000
MEDIUM_IMAGE_THRESHOLD = 1_000_000

ALPHA_QUALITY = 80
CHROMA_SUBSAMPLING = "4:2:0"


@dataclass(frozen=True)
class AvifTier:
    tile_rows: int
    tile_cols: int
    min_quantizer: int
    max_quantizer: int
    effort: int


AVIF_LARGE = AvifTier(tile_rows=4, tile_cols=4, min_quantizer=30, max_quantizer=50, effort=3)
AVIF_MEDIUM = AvifTier(tile_rows=2, tile_cols=2, min_quantizer=28, max_quantizer=48, effort=4)
AVIF_SMALL = AvifTier(tile_rows=1, tile_cols=1, min_quantizer=26, max_quantizer=46, effort=5)


@dataclass(frozen=True)
class EncoderOptions:
    """
    Format-specific encoder settings.

    The tiling fields are only set for AVIF. loop is only set for
    animated output.
    """
    format: OutputFormat
    quality: int
    alpha_quality: int = ALPHA_QUALITY
    smart_subsample: bool = True
    chroma_subsampling: str = CHROMA_SUBSAMPLING
    loop: int | None = None
    tile_rows: int | None = None
    tile_cols: int | None = None
    min_quantizer: int | None = None
    max_quantizer: int | None = None
    effort: int | None = None


def avif_tier(width: int, height: int) -> AvifTier:
    """Pick the AVIF tier for a frame size."""
    pixels = width * height
    if pixels > LARGE_IMAGE_THRESHOLD:
        return AVIF_LARGE
    if pixels > MEDIUM_IMAGE_THRESHOLD:
        return AVIF_MEDIUM
    return AVIF_SMALL


def tune(
    fmt: OutputFormat,
    width: int,
    height: int,
    *,
    quality: int,
    animated: bool = False,
) -> EncoderOptions:
    """Derive encoder options for a format and frame size."""
    options = EncoderOptions(
        format=fmt,
        quality=quality,
        loop=0 if animated else None,
    )
    if fmt != AVIF:
        return options

    tier = avif_tier(width, height)
    logger.debug("AVIF tier for %dx%d: %s", width, height, tier)
    return dataclasses.replace(options, **dataclasses.asdict(tier))


def fallback_options(options: EncoderOptions) -> EncoderOptions:
    """JPEG options at the same quality, without tiling or looping."""
    return EncoderOptions(
        format=JPEG,
        quality=options.quality,
        alpha_quality=options.alpha_quality,
        smart_subsample=options.smart_subsample,
        chroma_subsampling=options.chroma_subsampling,
    )
