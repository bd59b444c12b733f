from __future__ import annotations

from collections.abc import Callable

import pytest
from PIL import Image

from shrink_engine import TranscoderConfig
from tests.helpers import BLUE, GREEN, RED, gradient, to_bytes


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    """Return a factory producing PNG bytes of a gradient image."""

    def _make(width: int = 64, height: int = 48, mode: str = "RGB") -> bytes:
        return to_bytes(gradient(width, height, mode))

    return _make


@pytest.fixture
def animated_gif() -> bytes:
    """Three-frame looping GIF with distinct frame durations."""
    frames = [Image.new("RGB", (32, 24), color) for color in (RED, GREEN, BLUE)]
    return to_bytes(
        frames[0],
        "GIF",
        save_all=True,
        append_images=frames[1:],
        duration=[80, 120, 160],
        loop=0,
    )


@pytest.fixture
def small_config() -> TranscoderConfig:
    """Config that slices anything over 64px so slicing stays fast."""
    return TranscoderConfig(max_dimension=64, slice_workers=2)
