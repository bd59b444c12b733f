"""Configuration for the transcoding engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MAX_DIMENSION = 16382

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class TranscoderConfig:
    """Engine configuration. Shared read-only by every request."""

    max_dimension: int = DEFAULT_MAX_DIMENSION
    slice_workers: int = 4
    spill_to_disk: bool = False
    scratch_dir: Path | None = None

    def __post_init__(self) -> None:
        if self.max_dimension <= 0:
            raise ValueError(f"max_dimension must be positive, got {self.max_dimension}")
        if self.slice_workers <= 0:
            raise ValueError(f"slice_workers must be positive, got {self.slice_workers}")

    @classmethod
    def load(cls) -> TranscoderConfig:
        """Load from environment variables."""
        scratch_dir = os.getenv("SHRINK_SCRATCH_DIR")
        return cls(
            max_dimension=int(os.getenv("SHRINK_MAX_DIMENSION", str(DEFAULT_MAX_DIMENSION))),
            slice_workers=int(os.getenv("SHRINK_SLICE_WORKERS", "4")),
            spill_to_disk=os.getenv("SHRINK_SPILL_SLICES", "").strip().lower() in _TRUTHY,
            scratch_dir=Path(scratch_dir) if scratch_dir else None,
        )
