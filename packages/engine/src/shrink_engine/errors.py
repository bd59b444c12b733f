"""
Error taxonomy for the transcoding engine.

Encode-time failures all derive from EncoderError. The engine recovers
CapacityRejection locally (one JPEG fallback) and turns everything else
into a single terminal TranscodeFailed.
"""

from __future__ import annotations

import threading

INVALID_INPUT = "invalid_input"
CAPACITY = "capacity"
ENCODER_ERROR = "encoder_error"
SLICE_IO = "slice_io"
CANCELLED = "cancelled"


class TranscodeError(Exception):
    """Base class for engine errors."""


class EncoderError(TranscodeError, RuntimeError):
    """Raised when an encoder fails to produce output."""

    reason = ENCODER_ERROR

    def __init__(self, message: str, output_format: str | None = None):
        self.output_format = output_format
        super().__init__(message)


class CapacityRejection(EncoderError):
    """The target format cannot represent an image this large."""

    reason = CAPACITY


class SliceIOError(EncoderError):
    """Storing, reading or stitching encoded slices failed."""

    reason = SLICE_IO


class TranscodeCancelled(EncoderError):
    """The owning request was aborted."""

    reason = CANCELLED


class TranscodeFailed(TranscodeError):
    """
    Terminal outcome of a transcode. Carries no bytes.

    Callers should serve the original resource when they see this.
    """

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(f"{reason}: {message}")


def check_cancel(cancel: threading.Event | None, stage: str = "transcode") -> None:
    """Raise TranscodeCancelled if the owning request has been aborted."""
    if cancel is not None and cancel.is_set():
        raise TranscodeCancelled(f"Cancelled during {stage}")
