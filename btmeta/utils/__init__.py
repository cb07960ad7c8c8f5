"""Shared utilities and infrastructure.

This module contains the exception hierarchy and logging setup used
throughout the application.
"""

from __future__ import annotations

from btmeta.utils.exceptions import (
    BencodeError,
    BTMetaError,
    ConfigurationError,
    TorrentError,
    ValidationError,
)
from btmeta.utils.logging_config import get_logger, setup_logging

__all__ = [
    # Exceptions
    "BTMetaError",
    "BencodeError",
    "ConfigurationError",
    "TorrentError",
    "ValidationError",
    # Logging
    "get_logger",
    "setup_logging",
]
