"""Run the btmeta command line interface with ``python -m btmeta``."""

from __future__ import annotations

from btmeta.cli.main import main

if __name__ == "__main__":
    main()
