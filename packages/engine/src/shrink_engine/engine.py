"""
Transcode orchestration.

One call handles one request:
1. Probe the buffer and resolve request fields
2. Tune encoder options (animated input is forced to WEBP)
3. Encode directly, or slice-encode oversized frames
4. On a capacity rejection, re-encode once as JPEG
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Callable, Mapping, Sequence

from PIL import Image, ImageSequence

from . import codec
from .config import TranscoderConfig
from .errors import (
    INVALID_INPUT,
    ENCODER_ERROR,
    CapacityRejection,
    EncoderError,
    TranscodeFailed,
    check_cancel,
)
from .params import WEBP, CompressionParams, resolve
from .probe import ImageMetadata, probe
from .slicer import Encoder, slice_direction, slice_encode
from .tuning import EncoderOptions, fallback_options, tune

logger = logging.getLogger(__name__)

AnimationEncoder = Callable[[Sequence[Image.Image], Sequence[int], EncoderOptions], bytes]


@dataclass(frozen=True)
class TranscodeResult:
    """Encoded output and size accounting for one request."""
    data: bytes
    format: str
    original_size: int
    compressed_size: int
    fallback: bool = False

    @property
    def bytes_saved(self) -> int:
        return max(self.original_size - self.compressed_size, 0)

    @property
    def content_type(self) -> str:
        return f"image/{self.format}"


def _load_frames(
    data: bytes,
    metadata: ImageMetadata,
    grayscale: bool,
) -> tuple[list[Image.Image], list[int]]:
    """Decode every frame (just one for still images) and apply grayscale."""
    frames: list[Image.Image] = []
    durations: list[int] = []
    with Image.open(BytesIO(data)) as img:
        if metadata.is_animated:
            for frame in ImageSequence.Iterator(img):
                durations.append(int(frame.info.get("duration") or codec.DEFAULT_FRAME_DURATION))
                frames.append(frame.convert("RGBA"))
        else:
            img.load()
            frames.append(img.copy())

    if grayscale:
        frames = [codec.to_grayscale(f) for f in frames]
    return frames, durations


class TranscodeEngine:
    """
    Stateless transcoder. Safe to share between threads.

    encoder and animation_encoder default to the Pillow gateway in
    codec.py and can be swapped for instrumented ones.
    """

    def __init__(
        self,
        config: TranscoderConfig | None = None,
        *,
        encoder: Encoder | None = None,
        animation_encoder: AnimationEncoder | None = None,
    ):
        self._config = config or TranscoderConfig.load()
        self._encode = encoder or codec.encode_image
        self._encode_animation = animation_encoder or codec.encode_animation

    @property
    def config(self) -> TranscoderConfig:
        return self._config

    def transcode(
        self,
        data: bytes,
        fields: Mapping[str, Any] | None = None,
        origin_size: int = 0,
        *,
        cancel: threading.Event | None = None,
    ) -> TranscodeResult:
        """
        Re-encode an image buffer according to request fields.

        Raises:
            TranscodeFailed: If no valid output could be produced. The
                caller should serve the original resource.
        """
        params = resolve(fields)
        metadata = probe(data)
        if not metadata.valid:
            logger.warning("Invalid or missing metadata, not transcoding %d bytes", len(data))
            raise TranscodeFailed(INVALID_INPUT, "could not determine image dimensions")

        options = self._tune(metadata, params)

        try:
            frames, durations = _load_frames(data, metadata, params.grayscale)
        except Exception as e:
            logger.error("Decoding %s failed: %s", metadata.format, e)
            raise TranscodeFailed(ENCODER_ERROR, f"decode failed: {e}") from e

        fallback = False
        try:
            payload = self._encode_primary(frames, durations, metadata, options, cancel)
        except CapacityRejection as e:
            logger.warning("%s cannot hold %dx%d (%s), falling back to JPEG",
                           options.format, metadata.width, metadata.height, e)
            options = fallback_options(options)
            payload = self._encode_fallback(frames[0], options, cancel)
            fallback = True
        except EncoderError as e:
            logger.error("Encoding %dx%d as %s failed: %s",
                         metadata.width, metadata.height, options.format, e)
            raise TranscodeFailed(e.reason, str(e)) from e
        finally:
            for frame in frames:
                frame.close()

        result = TranscodeResult(
            data=payload,
            format=options.format,
            original_size=max(origin_size, 0),
            compressed_size=len(payload),
            fallback=fallback,
        )
        logger.info("Transcoded %dx%d to %s: %d -> %d bytes (saved %d)",
                    metadata.width, metadata.height, result.format,
                    result.original_size, result.compressed_size, result.bytes_saved)
        return result

    async def transcode_async(
        self,
        data: bytes,
        fields: Mapping[str, Any] | None = None,
        origin_size: int = 0,
    ) -> TranscodeResult:
        """Run transcode in a worker thread; cancelling the task aborts it."""
        cancel = threading.Event()
        try:
            return await asyncio.to_thread(
                self.transcode, data, fields, origin_size, cancel=cancel
            )
        except asyncio.CancelledError:
            cancel.set()
            raise

    def _tune(self, metadata: ImageMetadata, params: CompressionParams) -> EncoderOptions:
        output_format = WEBP if metadata.is_animated else params.format
        if output_format != params.format:
            logger.debug("Animated input (%d frames), using %s instead of %s",
                         metadata.page_count, output_format, params.format)
        return tune(
            output_format,
            metadata.width,
            metadata.height,
            quality=params.quality,
            animated=metadata.is_animated,
        )

    def _encode_primary(
        self,
        frames: list[Image.Image],
        durations: list[int],
        metadata: ImageMetadata,
        options: EncoderOptions,
        cancel: threading.Event | None,
    ) -> bytes:
        check_cancel(cancel)
        if metadata.is_animated:
            return self._encode_animation(frames, durations, options)

        image = frames[0]
        direction = slice_direction(image.width, image.height, self._config.max_dimension)
        if direction is None:
            return self._encode(image, options)

        return slice_encode(
            image,
            metadata,
            direction,
            options,
            encoder=self._encode,
            max_dimension=self._config.max_dimension,
            workers=self._config.slice_workers,
            spill=self._config.spill_to_disk,
            scratch_dir=self._config.scratch_dir,
            cancel=cancel,
        )

    def _encode_fallback(
        self,
        image: Image.Image,
        options: EncoderOptions,
        cancel: threading.Event | None,
    ) -> bytes:
        try:
            check_cancel(cancel)
            return self._encode(image, options)
        except EncoderError as e:
            logger.error("Fallback %s encode failed: %s", options.format, e)
            raise TranscodeFailed(e.reason, f"fallback failed: {e}") from e
