from __future__ import annotations

from typing import Any

import pytest
from PIL import Image

from shrink_engine import codec
from shrink_engine.errors import CapacityRejection, EncoderError
from shrink_engine.params import AVIF, JPEG, WEBP
from shrink_engine.tuning import tune
from tests.helpers import gradient, open_bytes, requires_avif


def test_avif_kwargs_map_effort_and_tiles() -> None:
    kwargs = codec.save_kwargs(tune(AVIF, 2500, 2000, quality=70))
    assert kwargs == {
        "quality": 70,
        "subsampling": "4:2:0",
        "tile_rows": 2,
        "tile_cols": 2,
        "speed": 6,
    }
    small = codec.save_kwargs(tune(AVIF, 10, 10, quality=70))
    assert (small["tile_rows"], small["tile_cols"], small["speed"]) == (0, 0, 4)


def test_webp_kwargs_carry_alpha_quality_and_loop() -> None:
    kwargs = codec.save_kwargs(tune(WEBP, 10, 10, quality=50, animated=True))
    assert kwargs == {"quality": 50, "alpha_quality": 80, "loop": 0}


@pytest.mark.parametrize(
    ("fmt", "width", "height"),
    [(WEBP, 16384, 10), (JPEG, 10, 65501), (AVIF, 65537, 1)],
)
def test_check_capacity_rejects_oversized_frames(fmt: str, width: int, height: int) -> None:
    with pytest.raises(CapacityRejection) as exc_info:
        codec.check_capacity(fmt, width, height)
    assert exc_info.value.output_format == fmt


def test_check_capacity_accepts_frames_at_the_limit() -> None:
    codec.check_capacity(WEBP, 16383, 16383)
    codec.check_capacity(JPEG, 65500, 1)


def test_encode_image_rejects_before_encoding(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(*args: Any, **kwargs: Any) -> None:
        raise AssertionError("encoder should not run")

    monkeypatch.setattr(Image.Image, "save", _fail)
    with pytest.raises(CapacityRejection):
        codec.encode_image(Image.new("RGB", (16384, 1)), tune(WEBP, 16384, 1, quality=75))


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ValueError("image is too large for the HEIF format"), CapacityRejection),
        (OSError("unsupported file size"), CapacityRejection),
        (OSError("encoder error -2 when writing image file"), EncoderError),
        (KeyError("AVIF"), EncoderError),
    ],
)
def test_encoder_exceptions_are_classified(
    monkeypatch: pytest.MonkeyPatch, error: Exception, expected: type[EncoderError]
) -> None:
    def _raise(*args: Any, **kwargs: Any) -> None:
        raise error

    monkeypatch.setattr(Image.Image, "save", _raise)
    with pytest.raises(EncoderError) as exc_info:
        codec.encode_image(gradient(16, 16), tune(JPEG, 16, 16, quality=75))
    assert type(exc_info.value) is expected
    assert exc_info.value.__cause__ is error


def test_jpeg_encode_flattens_alpha() -> None:
    img = gradient(40, 30, "RGBA")
    out = open_bytes(codec.encode_image(img, tune(JPEG, 40, 30, quality=80)))
    assert out.format == "JPEG"
    assert out.mode == "RGB"
    assert out.size == (40, 30)


def test_grayscale_keeps_alpha() -> None:
    assert codec.to_grayscale(gradient(4, 4)).mode == "L"
    assert codec.to_grayscale(gradient(4, 4, "RGBA")).mode == "LA"


def test_webp_encode_keeps_alpha() -> None:
    img = gradient(40, 30, "RGBA")
    img.putalpha(128)
    out = open_bytes(codec.encode_image(img, tune(WEBP, 40, 30, quality=80)))
    assert out.format == "WEBP"
    assert out.mode == "RGBA"


@requires_avif
def test_avif_encode_round_trips_dimensions() -> None:
    out = open_bytes(codec.encode_image(gradient(96, 64), tune(AVIF, 96, 64, quality=60)))
    assert out.format == "AVIF"
    assert out.size == (96, 64)


def test_animation_requires_an_animation_format() -> None:
    frames = [gradient(8, 8), gradient(8, 8)]
    with pytest.raises(EncoderError):
        codec.encode_animation(frames, [100, 100], tune(JPEG, 8, 8, quality=75))
    with pytest.raises(EncoderError):
        codec.encode_animation([], [], tune(WEBP, 8, 8, quality=75, animated=True))
