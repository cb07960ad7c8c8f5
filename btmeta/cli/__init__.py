"""Command line interface for btmeta."""

from btmeta.cli.main import cli, main

__all__ = [
    "cli",
    "main",
]
