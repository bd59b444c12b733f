"""
Piecewise encoding for frames larger than the encoder can address.

The frame is cut along its oversized axis into slices of at most
max_dimension pixels. Slices are encoded concurrently into lossless
intermediates, decoded and stitched back in index order into one frame of
the original size, and that frame is encoded once with the requested
options.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Callable, Literal

import cv2
import numpy as np
from PIL import Image

from .codec import check_capacity, encode_lossless
from .config import DEFAULT_MAX_DIMENSION
from .errors import SliceIOError, check_cancel
from .probe import ImageMetadata
from .tuning import EncoderOptions

logger = logging.getLogger(__name__)

Direction = Literal["vertical", "horizontal"]

VERTICAL: Direction = "vertical"
HORIZONTAL: Direction = "horizontal"

Encoder = Callable[[Image.Image, EncoderOptions], bytes]


@dataclass(frozen=True)
class SliceDescriptor:
    """One slice along the splitting axis: [offset, offset + length)."""
    index: int
    offset: int
    length: int

    def box(self, direction: Direction, width: int, height: int) -> tuple[int, int, int, int]:
        """Crop box (left, top, right, bottom) spanning the full other axis."""
        if direction == VERTICAL:
            return (self.offset, 0, self.offset + self.length, height)
        return (0, self.offset, width, self.offset + self.length)


def slice_direction(width: int, height: int, max_dimension: int = DEFAULT_MAX_DIMENSION) -> Direction | None:
    """vertical if the width is too large, horizontal if the height is, else None."""
    if width > max_dimension:
        return VERTICAL
    if height > max_dimension:
        return HORIZONTAL
    return None


def plan_slices(total_extent: int, slice_size: int) -> list[SliceDescriptor]:
    """
    Cover [0, total_extent) with consecutive slices of at most slice_size.

    For i < ceil(total / size), i * size < total, so every planned slice
    has a length of at least 1.
    """
    if total_extent <= 0:
        raise ValueError(f"total_extent must be positive, got {total_extent}")
    if slice_size <= 0:
        raise ValueError(f"slice_size must be positive, got {slice_size}")

    count = -(-total_extent // slice_size)
    return [
        SliceDescriptor(
            index=i,
            offset=i * slice_size,
            length=min(slice_size, total_extent - i * slice_size),
        )
        for i in range(count)
    ]


class SliceArena:
    """
    Encoded slices keyed by index.

    Held in memory unless spill is set, in which case each slice is
    written to a temporary directory owned by this arena. close()
    always removes that directory.
    """

    def __init__(self, spill: bool = False, scratch_dir: Path | None = None):
        self._slices: dict[int, bytes] = {}
        self._paths: dict[int, Path] = {}
        self._lock = threading.Lock()
        self.directory: Path | None = None
        if spill:
            try:
                self.directory = Path(tempfile.mkdtemp(prefix="shrink-slices-", dir=scratch_dir))
            except OSError as e:
                raise SliceIOError(f"Could not create slice directory: {e}") from e
            logger.debug("Spilling slices to %s", self.directory)

    def __enter__(self) -> SliceArena:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._paths) if self.directory is not None else len(self._slices)

    def put(self, index: int, data: bytes) -> None:
        if self.directory is None:
            with self._lock:
                self._slices[index] = data
            return

        path = self.directory / f"slice{index}.bin"
        try:
            path.write_bytes(data)
        except OSError as e:
            raise SliceIOError(f"Could not write slice {index}: {e}") from e
        with self._lock:
            self._paths[index] = path

    def get(self, index: int) -> bytes:
        if self.directory is None:
            try:
                return self._slices[index]
            except KeyError:
                raise SliceIOError(f"Slice {index} is missing") from None

        path = self._paths.get(index)
        if path is None:
            raise SliceIOError(f"Slice {index} is missing")
        try:
            return path.read_bytes()
        except OSError as e:
            raise SliceIOError(f"Could not read slice {index}: {e}") from e

    def close(self) -> None:
        self._slices.clear()
        self._paths.clear()
        if self.directory is not None:
            shutil.rmtree(self.directory, ignore_errors=True)
            self.directory = None


def _decode_slice(data: bytes, index: int) -> np.ndarray:
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            return np.asarray(img)
    except (OSError, ValueError, SyntaxError) as e:
        raise SliceIOError(f"Could not decode slice {index}: {e}") from e


def stitch(
    arena: SliceArena,
    slices: list[SliceDescriptor],
    direction: Direction,
) -> Image.Image:
    """Decode slices in index order and join them along direction."""
    ordered = sorted(slices, key=lambda s: s.index)
    arrays = [_decode_slice(arena.get(s.index), s.index) for s in ordered]

    try:
        if direction == VERTICAL:
            joined = cv2.hconcat(arrays)
        else:
            joined = cv2.vconcat(arrays)
    except cv2.error as e:
        raise SliceIOError(f"Could not stitch {len(arrays)} slices: {e}") from e

    return Image.fromarray(np.ascontiguousarray(joined))


def slice_encode(
    image: Image.Image,
    metadata: ImageMetadata,
    direction: Direction,
    options: EncoderOptions,
    *,
    encoder: Encoder,
    slice_encoder: Encoder = encode_lossless,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    workers: int = 4,
    spill: bool = False,
    scratch_dir: Path | None = None,
    cancel: threading.Event | None = None,
) -> bytes:
    """
    Encode an oversized frame slice by slice and return the final encode.

    Slices go through slice_encoder (lossless by default) on up to
    `workers` threads; placement follows slice index, not completion
    order. Only the stitched frame is passed to encoder.

    Raises:
        CapacityRejection: Before any slice work, if options.format cannot
            hold the full frame.
    """
    width, height = metadata.width, metadata.height
    if image.size != (width, height):
        raise SliceIOError(
            f"Image is {image.width}x{image.height}, metadata says {width}x{height}"
        )
    check_capacity(options.format, width, height)

    total = width if direction == VERTICAL else height
    slices = plan_slices(total, max_dimension)

    logger.info("Slicing %dx%d %s into %d slices of up to %dpx",
                width, height, direction, len(slices), max_dimension)

    with SliceArena(spill=spill, scratch_dir=scratch_dir) as arena:
        pool = ThreadPoolExecutor(max_workers=max(1, min(workers, len(slices))))
        futures: dict[Future[bytes], SliceDescriptor] = {}
        try:
            for s in slices:
                check_cancel(cancel, "slicing")
                tile = image.crop(s.box(direction, width, height))
                futures[pool.submit(slice_encoder, tile, options)] = s

            for future in as_completed(futures):
                s = futures[future]
                arena.put(s.index, future.result())
                logger.debug("Slice %d/%d encoded (%d px at offset %d)",
                             s.index + 1, len(slices), s.length, s.offset)
            check_cancel(cancel, "slicing")
        except BaseException:
            pool.shutdown(wait=True, cancel_futures=True)
            raise
        pool.shutdown(wait=True)

        if len(arena) != len(slices):
            raise SliceIOError(f"Expected {len(slices)} slices, arena holds {len(arena)}")

        stitched = stitch(arena, slices, direction)
        if stitched.size != (width, height):
            raise SliceIOError(
                f"Stitched frame is {stitched.width}x{stitched.height}, expected {width}x{height}"
            )

    try:
        check_cancel(cancel, "reassembly")
        return encoder(stitched, options)
    finally:
        stitched.close()
