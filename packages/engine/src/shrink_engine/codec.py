"""
Pillow encoder gateway.

Every encode goes through encode_image or encode_animation so failures
come out classified:
- CapacityRejection when the frame is too large for the format
- EncoderError for anything else
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Any, Sequence

from PIL import Image

from .errors import CapacityRejection, EncoderError
from .params import AVIF, JPEG, WEBP
from .tuning import EncoderOptions

logger = logging.getLogger(__name__)

PIL_FORMATS = {JPEG: "JPEG", WEBP: "WEBP", AVIF: "AVIF"}

# Largest width or height each encoder accepts.
FORMAT_MAX_DIMENSION = {
    JPEG: 65500,
    WEBP: 16383,
    AVIF: 65536,
}

_CAPACITY_MARKERS = (
    "too large",
    "unsupported file size",
    "maximum supported image dimension",
    "exceeds",
    "bad dimension",
    "image size",
)

DEFAULT_FRAME_DURATION = 100


def check_capacity(fmt: str, width: int, height: int) -> None:
    """Raise CapacityRejection if fmt cannot hold a width x height frame."""
    limit = FORMAT_MAX_DIMENSION.get(fmt)
    if limit is None:
        return
    if width > limit or height > limit:
        raise CapacityRejection(
            f"{width}x{height} exceeds the {fmt} limit of {limit}px per side",
            output_format=fmt,
        )


def _is_capacity_error(exc: BaseException) -> bool:
    """Check if an encoder exception reports a size limit."""
    message = str(exc).lower()
    return any(marker in message for marker in _CAPACITY_MARKERS)


def has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA", "RGBa", "La") or (
        img.mode == "P" and "transparency" in img.info
    )


def to_grayscale(img: Image.Image) -> Image.Image:
    """Grayscale conversion that keeps transparency."""
    return img.convert("LA" if has_alpha(img) else "L")


def _prepare_mode(img: Image.Image, fmt: str) -> Image.Image:
    """Convert to a pixel mode the target encoder accepts."""
    if fmt == JPEG:
        if img.mode in ("L", "RGB", "CMYK"):
            return img
        if img.mode in ("LA", "La", "I", "I;16", "F"):
            return img.convert("L")
        return img.convert("RGB")

    if has_alpha(img):
        return img if img.mode == "RGBA" else img.convert("RGBA")
    return img if img.mode == "RGB" else img.convert("RGB")


def _tile_log2(count: int | None) -> int:
    if not count or count < 1:
        return 0
    return count.bit_length() - 1


def save_kwargs(options: EncoderOptions) -> dict[str, Any]:
    """Translate EncoderOptions into Pillow save() parameters."""
    if options.format == JPEG:
        return {
            "quality": options.quality,
            "subsampling": options.chroma_subsampling,
            "optimize": True,
        }

    if options.format == WEBP:
        kwargs: dict[str, Any] = {
            "quality": options.quality,
            "alpha_quality": options.alpha_quality,
        }
        if options.loop is not None:
            kwargs["loop"] = options.loop
        return kwargs

    if options.format == AVIF:
        kwargs = {
            "quality": options.quality,
            "subsampling": options.chroma_subsampling,
            "tile_rows": _tile_log2(options.tile_rows),
            "tile_cols": _tile_log2(options.tile_cols),
        }
        if options.effort is not None:
            kwargs["speed"] = min(max(9 - options.effort, 0), 10)
        return kwargs

    raise EncoderError(f"Unsupported output format: {options.format}",
                       output_format=options.format)


def _save(img: Image.Image, options: EncoderOptions, **extra: Any) -> bytes:
    buf = BytesIO()
    kwargs = save_kwargs(options)
    kwargs.update(extra)
    try:
        img.save(buf, format=PIL_FORMATS[options.format], **kwargs)
    except (OSError, ValueError, RuntimeError, KeyError, MemoryError, SystemError) as e:
        if _is_capacity_error(e):
            raise CapacityRejection(
                f"{options.format} encoder rejected {img.width}x{img.height}: {e}",
                output_format=options.format,
            ) from e
        raise EncoderError(
            f"{options.format} encode failed: {type(e).__name__}: {e}",
            output_format=options.format,
        ) from e
    return buf.getvalue()


def encode_image(img: Image.Image, options: EncoderOptions) -> bytes:
    """Encode a single frame."""
    check_capacity(options.format, img.width, img.height)
    frame = _prepare_mode(img, options.format)
    logger.debug("Encoding %dx%d %s as %s q=%d", img.width, img.height, img.mode,
                 options.format, options.quality)
    return _save(frame, options)


def encode_lossless(img: Image.Image, options: EncoderOptions) -> bytes:
    """
    Encode a frame as PNG in the pixel mode options.format will be written in.

    Used for intermediate slices, so pixels survive exactly until the one
    lossy encode of the reassembled frame.
    """
    frame = _prepare_mode(img, options.format)
    if frame.mode == "CMYK":
        frame = frame.convert("RGB")

    buf = BytesIO()
    try:
        frame.save(buf, format="PNG", compress_level=1)
    except (OSError, ValueError, MemoryError) as e:
        raise EncoderError(
            f"Intermediate PNG encode failed: {type(e).__name__}: {e}",
            output_format=options.format,
        ) from e
    return buf.getvalue()


def encode_animation(
    frames: Sequence[Image.Image],
    durations: Sequence[int],
    options: EncoderOptions,
) -> bytes:
    """Encode frames as one animation, keeping per-frame durations."""
    if not frames:
        raise EncoderError("No frames to encode", output_format=options.format)
    if options.format != WEBP:
        raise EncoderError(f"{options.format} cannot hold an animation",
                           output_format=options.format)

    first = frames[0]
    check_capacity(options.format, first.width, first.height)
    prepared = [_prepare_mode(f, options.format) for f in frames]
    durations = list(durations) or [DEFAULT_FRAME_DURATION] * len(prepared)

    logger.debug("Encoding %d-frame %dx%d animation as %s", len(prepared),
                 first.width, first.height, options.format)
    return _save(
        prepared[0],
        options,
        save_all=True,
        append_images=prepared[1:],
        duration=durations,
    )
