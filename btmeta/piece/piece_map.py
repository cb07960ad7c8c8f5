"""Piece-to-file mapping for btmeta.

Pieces are fixed-size slices of the concatenation of every file of a
torrent, in the order the files are declared. This module tells, for each
piece index, which byte ranges of which files make up that piece.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from btmeta.core.torrent import TorrentInfo
from btmeta.utils.exceptions import PieceMapError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Piece:
    """A byte range of one file belonging to a piece.

    ``path`` is relative to the torrent directory for multi-file torrents,
    or the bare file name for single-file torrents.
    """

    path: tuple[str, ...]
    hash: bytes
    byte_offset: int
    length: int


@dataclass(frozen=True)
class MappedPiece:
    """A piece with its hash and the file segments it spans, in order."""

    index: int
    hash: bytes
    segments: tuple[Piece, ...]

    @property
    def length(self) -> int:
        """Number of content bytes covered by the piece."""
        return sum(segment.length for segment in self.segments)


def _piece_hash(info: TorrentInfo, piece_index: int) -> bytes:
    if piece_index >= info.num_pieces:
        msg = (
            f"File lengths need piece {piece_index} but only "
            f"{info.num_pieces} piece hashes are declared"
        )
        raise PieceMapError(msg, {"piece_index": piece_index})
    return info.pieces[piece_index]


def build_piece_map(info: TorrentInfo) -> dict[int, MappedPiece]:
    """Map every piece index onto the file segments it covers.

    Args:
        info: Info dictionary of a decoded torrent

    Returns:
        Mapping from piece index to its :class:`MappedPiece`; only the last
        piece may be shorter than ``piece_length``

    Raises:
        PieceMapError: If the piece length is not positive, or the declared
            file lengths and piece hashes disagree

    """
    piece_length = info.piece_length
    if piece_length <= 0:
        msg = f"Piece length must be positive, got {piece_length}"
        raise PieceMapError(msg)

    segments: dict[int, list[Piece]] = {}
    piece_offset = 0
    piece_index = 0

    for file_info in info.files:
        path = tuple(file_info.path)
        cursor = 0

        while cursor < file_info.length:
            file_remaining = file_info.length - cursor
            to_fill = piece_length - piece_offset
            piece_hash = _piece_hash(info, piece_index)

            if file_remaining == to_fill:
                # File and piece end together
                segments.setdefault(piece_index, []).append(
                    Piece(path, piece_hash, cursor, file_remaining),
                )
                cursor += file_remaining
                piece_index += 1
                piece_offset = 0
            elif file_remaining > to_fill:
                # Piece ends inside the file
                segments.setdefault(piece_index, []).append(
                    Piece(path, piece_hash, cursor, to_fill),
                )
                cursor += to_fill
                piece_index += 1
                piece_offset = 0
            else:
                # File ends before the piece does
                segments.setdefault(piece_index, []).append(
                    Piece(path, piece_hash, cursor, file_remaining),
                )
                cursor += file_remaining
                piece_offset += file_remaining

    mapped_count = piece_index + (1 if piece_offset else 0)
    if mapped_count != info.num_pieces:
        msg = (
            f"File lengths cover {mapped_count} pieces but "
            f"{info.num_pieces} piece hashes are declared"
        )
        raise PieceMapError(
            msg,
            {"mapped_pieces": mapped_count, "declared_pieces": info.num_pieces},
        )

    logger.debug(
        "Mapped %d pieces over %d files (%d bytes)",
        mapped_count,
        len(info.files),
        info.total_length,
    )
    return {
        index: MappedPiece(index, info.pieces[index], tuple(piece_segments))
        for index, piece_segments in segments.items()
    }


def segments_for_piece(info: TorrentInfo, index: int) -> MappedPiece:
    """Return the mapping of a single piece.

    Raises:
        PieceMapError: If ``index`` is outside the torrent, or the torrent's
            piece map is inconsistent

    """
    if not 0 <= index < info.num_pieces:
        msg = f"Piece index {index} out of range (0..{info.num_pieces - 1})"
        raise PieceMapError(msg, {"piece_index": index})
    return build_piece_map(info)[index]
