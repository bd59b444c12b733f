"""
Adaptive image transcoding engine.

Takes a raw image buffer plus request fields (next-gen format preference,
quality, grayscale) and returns a smaller re-encoded buffer with size
accounting. Handles animated input, frames too large for one encoder
call, and encoder capacity rejections.

Deployment:
    pip install image-shrink

This package has no networking dependencies. Serving the result (or the
original, on TranscodeFailed) is the caller's job.
"""

from .config import TranscoderConfig
from .engine import TranscodeEngine, TranscodeResult
from .errors import (
    CapacityRejection,
    EncoderError,
    SliceIOError,
    TranscodeCancelled,
    TranscodeError,
    TranscodeFailed,
)
from .headers import response_headers
from .params import CompressionParams, resolve
from .probe import ImageMetadata, probe
from .slicer import SliceDescriptor, plan_slices, slice_encode
from .tuning import EncoderOptions, tune

__all__ = [
    # Engine
    "TranscodeEngine",
    "TranscodeResult",
    "TranscoderConfig",
    "response_headers",
    # Stages
    "ImageMetadata",
    "probe",
    "CompressionParams",
    "resolve",
    "EncoderOptions",
    "tune",
    "SliceDescriptor",
    "plan_slices",
    "slice_encode",
    # Errors
    "TranscodeError",
    "EncoderError",
    "CapacityRejection",
    "SliceIOError",
    "TranscodeCancelled",
    "TranscodeFailed",
]
