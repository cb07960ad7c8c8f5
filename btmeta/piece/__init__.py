"""Piece-to-file mapping."""

from __future__ import annotations

from btmeta.piece.piece_map import (
    MappedPiece,
    Piece,
    build_piece_map,
    segments_for_piece,
)

__all__ = [
    "MappedPiece",
    "Piece",
    "build_piece_map",
    "segments_for_piece",
]
