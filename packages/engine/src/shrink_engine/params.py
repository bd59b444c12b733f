"""
Request parameter resolution.

Request fields arrive loosely typed (query strings, form data, JSON). All
coercion happens here, once, producing a validated CompressionParams.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping

OutputFormat = Literal["jpeg", "avif", "webp"]

JPEG: OutputFormat = "jpeg"
AVIF: OutputFormat = "avif"
WEBP: OutputFormat = "webp"

DEFAULT_QUALITY = 75
MIN_QUALITY = 10
MAX_QUALITY = 100

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_LEADING_INT = re.compile(r"^\s*([+-]?)(\d+)")
# Longer digit runs are out of range for any setting; skip int() on them.
_MAX_DIGITS = 9


@dataclass(frozen=True)
class CompressionParams:
    """Validated per-request compression settings."""
    format: OutputFormat = JPEG
    quality: int = DEFAULT_QUALITY
    grayscale: bool = False


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return False


def _parse_int(value: Any) -> int | None:
    """Lenient integer parse: '80', '80.5', '80px' all give 80."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    if isinstance(value, (str, bytes)):
        if isinstance(value, bytes):
            value = value.decode("ascii", errors="ignore")
        match = _LEADING_INT.match(value)
        if match is None:
            return None
        sign, digits = match.groups()
        digits = digits.lstrip("0") or "0"
        if len(digits) > _MAX_DIGITS:
            digits = "1" + "0" * _MAX_DIGITS
        return int(sign + digits)
    return None


def resolve_quality(value: Any) -> int:
    """Parse then clamp to [MIN_QUALITY, MAX_QUALITY]. Never rejects."""
    quality = _parse_int(value) or DEFAULT_QUALITY
    return min(max(quality, MIN_QUALITY), MAX_QUALITY)


def resolve_grayscale(value: Any) -> bool:
    if value is True:
        return True
    return isinstance(value, str) and value.strip().lower() == "true"


def resolve(fields: Mapping[str, Any] | None) -> CompressionParams:
    """Build CompressionParams from untrusted request fields."""
    if fields is None:
        return CompressionParams()

    prefer = fields.get("prefer_next_gen", fields.get("webp"))
    return CompressionParams(
        format=AVIF if _parse_flag(prefer) else JPEG,
        quality=resolve_quality(fields.get("quality")),
        grayscale=resolve_grayscale(fields.get("grayscale")),
    )
