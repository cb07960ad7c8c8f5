"""Exception hierarchy for btmeta.

Provides the exception tree shared by the codec, the decoder combinators,
the torrent domain model and the registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from btmeta.core.decoders import FieldError


class BTMetaError(Exception):
    """Base exception for all btmeta errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize btmeta error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(BTMetaError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class BencodeError(ValidationError):
    """Bencode encoding/decoding errors."""


class BencodeDecodeError(BencodeError):
    """Malformed bencode input.

    Decoding aborts on the first malformed byte, the cursor position is
    kept in ``details["position"]``.
    """

    def __init__(self, message: str, position: int):
        """Initialize decode error at a cursor position."""
        super().__init__(message, {"position": position})
        self.position = position


class UnclosedTermError(BencodeDecodeError):
    """Integer, list or dictionary missing its terminator."""


class InvalidNumberError(BencodeDecodeError):
    """Integer or length token without digits."""


class UnexpectedTokenError(BencodeDecodeError):
    """Malformed leading byte, trailing data or unexpected end of input."""

    def __init__(self, context: str, position: int):
        """Initialize with the offending character or ``"EOF"``."""
        super().__init__(f"Unexpected {context!r} at position {position}", position)
        self.context = context


class OutOfBoundsError(BencodeDecodeError):
    """Declared string length exceeds the remaining input."""


class BencodeEncodeError(BencodeError):
    """Value cannot be rendered in canonical bencode."""


class FieldValidationError(ValidationError):
    """One or more fields did not have the expected bencode kind."""

    def __init__(self, errors: list[FieldError], message: str | None = None):
        """Initialize with the accumulated field errors."""
        summary = "; ".join(str(e) for e in errors)
        super().__init__(
            message or f"{len(errors)} field error(s): {summary}",
            {"errors": [str(e) for e in errors]},
        )
        self.errors = list(errors)


class TorrentError(ValidationError):
    """Torrent file validation errors."""


class TorrentFieldError(TorrentError, FieldValidationError):
    """Metainfo dictionary has fields of the wrong kind or missing fields."""

    def __init__(self, errors: list[FieldError]):
        """Initialize with the accumulated field errors."""
        FieldValidationError.__init__(
            self,
            errors,
            f"Invalid torrent metainfo: {len(errors)} field error(s)",
        )


class InvalidTorrentError(TorrentError):
    """Cross-field consistency violation in a torrent."""

    def __init__(self, cause: str):
        """Initialize with a human readable cause."""
        super().__init__(f"Invalid torrent file: {cause}", {"cause": cause})
        self.cause = cause


class PieceMapError(TorrentError):
    """Declared file lengths disagree with the declared piece hashes."""


class RegistryError(BTMetaError):
    """Torrent registry errors."""


class BTMetaTimeoutError(BTMetaError):
    """Timeout errors."""
