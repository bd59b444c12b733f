"""Image builders shared by the test suites."""

from __future__ import annotations

import struct
from io import BytesIO

import numpy as np
import pytest
from PIL import Image, features

HAS_AVIF = features.check("avif")

requires_avif = pytest.mark.skipif(not HAS_AVIF, reason="Pillow built without AVIF support")

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def gradient(width: int, height: int, mode: str = "RGB") -> Image.Image:
    """Smooth gradient, compresses well under any lossy codec."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    red = np.broadcast_to(xs, (height, width))
    green = np.broadcast_to(ys[:, None], (height, width))
    blue = (red + green) / 2
    rgb = np.stack([red, green, blue], axis=-1).astype(np.uint8)
    img = Image.fromarray(rgb)
    return img if mode == "RGB" else img.convert(mode)


def to_bytes(img: Image.Image, fmt: str = "PNG", **kwargs: object) -> bytes:
    buf = BytesIO()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


def open_bytes(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


def banded(width: int, height: int, colors: list[tuple[int, int, int]], axis: str = "x") -> Image.Image:
    """Solid colour bands of equal size along one axis."""
    img = Image.new("RGB", (width, height))
    extent = width if axis == "x" else height
    band = -(-extent // len(colors))
    for i, color in enumerate(colors):
        start, stop = i * band, min((i + 1) * band, extent)
        box = (start, 0, stop, height) if axis == "x" else (0, start, width, stop)
        img.paste(color, box)
    return img


def noise(width: int, height: int, mode: str = "RGB", seed: int = 0) -> Image.Image:
    """Random pixels, the worst case for a lossy codec."""
    channels = {"L": 1, "RGB": 3, "RGBA": 4}[mode]
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8)
    return Image.fromarray(pixels[..., 0] if channels == 1 else pixels)


def _ifd(entries: list[tuple[int, int, int]], next_offset: int) -> bytes:
    """Little-endian TIFF IFD of single-valued (tag, type, value) entries."""
    out = struct.pack("<H", len(entries))
    for tag, tag_type, value in entries:
        out += struct.pack("<HHII", tag, tag_type, 1, value)
    return out + struct.pack("<I", next_offset)


def missing_width_tiff() -> bytes:
    """
    Two-page 2x2 grayscale TIFF whose second page has no ImageWidth tag.

    The first page opens fine; counting pages hits the broken one.
    """
    short, long_ = 3, 4
    first_at = 8
    second_at = first_at + 2 + 9 * 12 + 4
    pixels_at = second_at + 2 + 2 * 12 + 4

    first = _ifd([
        (256, short, 2),
        (257, short, 2),
        (258, short, 8),
        (259, short, 1),
        (262, short, 1),
        (273, long_, pixels_at),
        (277, short, 1),
        (278, short, 2),
        (279, long_, 4),
    ], second_at)
    second = _ifd([(257, short, 2), (262, short, 1)], 0)
    return b"II*\x00" + struct.pack("<I", first_at) + first + second + b"\x10\x20\x30\x40"


def mutation_seeds() -> dict[str, bytes]:
    """Small valid images in container formats with rich headers."""
    still = gradient(16, 12)
    frames = [Image.new("RGB", (16, 12), color) for color in (RED, GREEN)]
    return {
        "TIFF": to_bytes(still, "TIFF"),
        "GIF": to_bytes(frames[0], "GIF", save_all=True, append_images=frames[1:], loop=0),
        "WEBP": to_bytes(still, "WEBP", quality=80),
    }


def header_mutations(data: bytes, span: int = 48, values: tuple[int, ...] = (0x00, 0x7F, 0xFF)) -> list[bytes]:
    """Every single-byte overwrite of the first `span` bytes with each of `values`."""
    out = []
    for pos in range(min(span, len(data))):
        for value in values:
            if data[pos] != value:
                out.append(data[:pos] + bytes([value]) + data[pos + 1:])
    return out
