"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

pytestmark = [pytest.mark.unit]

from btmeta.core.decoders import FieldError
from btmeta.utils.exceptions import (
    BencodeDecodeError,
    BencodeError,
    BTMetaError,
    FieldValidationError,
    InvalidTorrentError,
    OutOfBoundsError,
    PieceMapError,
    TorrentError,
    TorrentFieldError,
    UnexpectedTokenError,
    ValidationError,
)


class TestExceptions:
    """Messages, details and inheritance."""

    def test_base_str(self):
        assert str(BTMetaError("plain")) == "plain"
        assert str(BTMetaError("with", {"k": 1})) == "with (Details: {'k': 1})"

    def test_decode_error_position(self):
        error = OutOfBoundsError("too short", 3)
        assert error.position == 3
        assert error.details == {"position": 3}
        assert isinstance(error, BencodeDecodeError)
        assert isinstance(error, BencodeError)
        assert isinstance(error, ValidationError)

    def test_unexpected_token(self):
        error = UnexpectedTokenError("EOF", 7)
        assert error.context == "EOF"
        assert "'EOF'" in error.message
        assert "7" in error.message

    def test_field_validation_error(self):
        errors = [FieldError("Integer", "String"), FieldError("List", "Dict")]
        error = FieldValidationError(errors)
        assert error.errors == errors
        assert error.details["errors"] == [
            "expected Integer, found String",
            "expected List, found Dict",
        ]

    def test_torrent_field_error(self):
        error = TorrentFieldError([FieldError("String", "Integer")])
        assert isinstance(error, TorrentError)
        assert isinstance(error, FieldValidationError)
        assert error.message == "Invalid torrent metainfo: 1 field error(s)"

    def test_invalid_torrent_error(self):
        error = InvalidTorrentError("pieces misaligned")
        assert error.cause == "pieces misaligned"
        assert error.message == "Invalid torrent file: pieces misaligned"

    def test_piece_map_error_is_torrent_error(self):
        with pytest.raises(TorrentError):
            raise PieceMapError("mismatch")
