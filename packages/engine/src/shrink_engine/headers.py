"""Response metadata for a finished transcode."""

from __future__ import annotations

from urllib.parse import quote, urlsplit

from .engine import TranscodeResult


def output_filename(url: str, fmt: str) -> str:
    """Last path segment of url (or 'image'), percent-encoded, plus the format."""
    name = urlsplit(url).path.rsplit("/", 1)[-1] if url else ""
    return f"{quote(name or 'image', safe='')}.{fmt}"


def response_headers(result: TranscodeResult, url: str = "") -> dict[str, str]:
    """Headers the serving layer should set when returning result."""
    filename = output_filename(url, result.format)
    return {
        "Content-Type": result.content_type,
        "Content-Length": str(result.compressed_size),
        "Content-Disposition": f'inline; filename="{filename}"',
        "X-Content-Type-Options": "nosniff",
        "x-original-size": str(result.original_size),
        "x-bytes-saved": str(result.bytes_saved),
    }
