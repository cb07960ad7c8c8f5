"""In-memory torrent storage.

This module holds decoded torrents for the lifetime of a process.
"""

from __future__ import annotations

from btmeta.session.registry import TorrentRegistry

__all__ = [
    "TorrentRegistry",
]
