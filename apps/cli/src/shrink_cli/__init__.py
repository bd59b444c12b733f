"""
Command line front end for the shrink engine. Transcodes local files,
mostly for trying encoder settings by hand.

Deployment:
    pip install image-shrink
    shrink photo.png --avif -q 60
"""

from .cli import cli

__all__ = ["cli"]
