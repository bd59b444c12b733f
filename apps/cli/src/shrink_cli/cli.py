"""CLI for the shrink engine."""

from __future__ import annotations

import dataclasses
import logging
import sys
from pathlib import Path

import click

from shrink_engine import TranscodeEngine, TranscodeFailed, TranscoderConfig


@click.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Output file (default: <input stem>.<format>)")
@click.option("--avif", is_flag=True, help="Prefer AVIF over JPEG")
@click.option("-q", "--quality", default="75", help="Quality 10..100")
@click.option("--grayscale", is_flag=True, help="Convert to grayscale")
@click.option("--max-dimension", type=int, default=None, help="Slice frames wider/taller than this")
@click.option("--spill", is_flag=True, help="Keep encoded slices on disk instead of memory")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def cli(input_path: Path, output_path: Path | None, avif: bool, quality: str,
        grayscale: bool, max_dimension: int | None, spill: bool, verbose: bool) -> None:
    """Transcode INPUT_PATH into a smaller image."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    config = TranscoderConfig.load()
    if max_dimension is not None:
        config = dataclasses.replace(config, max_dimension=max_dimension)
    if spill:
        config = dataclasses.replace(config, spill_to_disk=True)

    data = input_path.read_bytes()
    fields = {"prefer_next_gen": avif, "quality": quality, "grayscale": grayscale}

    engine = TranscodeEngine(config)
    try:
        result = engine.transcode(data, fields, origin_size=len(data))
    except TranscodeFailed as e:
        click.echo(f"Transcode failed ({e.reason}): {e}", err=True)
        sys.exit(1)

    if output_path is None:
        output_path = input_path.with_name(f"{input_path.stem}.{result.format}")
        if output_path == input_path:
            output_path = input_path.with_name(f"{input_path.stem}.min.{result.format}")
    output_path.write_bytes(result.data)

    note = " (fallback)" if result.fallback else ""
    click.echo(
        f"{output_path}: {result.format}{note}, "
        f"{result.original_size} -> {result.compressed_size} bytes, "
        f"saved {result.bytes_saved}"
    )


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
