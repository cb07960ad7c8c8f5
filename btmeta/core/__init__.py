"""Core metainfo components.

This module contains the bencode codec, the decoder combinators and the
torrent domain model built on them.
"""

from __future__ import annotations

from btmeta.core.bencode import (
    BencodeDecoder,
    BencodeEncoder,
    BencodeValue,
    decode,
    encode,
)
from btmeta.core.torrent import (
    Torrent,
    TorrentInfo,
    decode_torrent,
    encode_torrent,
    info_hash,
    load_torrent,
)

__all__ = [
    # Bencoding
    "BencodeDecoder",
    "BencodeEncoder",
    "BencodeValue",
    # Torrent
    "Torrent",
    "TorrentInfo",
    "decode",
    "decode_torrent",
    "encode",
    "encode_torrent",
    "info_hash",
    "load_torrent",
]
