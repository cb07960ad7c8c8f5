"""Pytest configuration and shared fixtures for btmeta tests."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Any

import pytest
from hypothesis import HealthCheck, settings

from btmeta.config.config import reset_config
from btmeta.core.bencode import encode

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ANNOUNCE_URL = "http://tracker.example.com:6969/announce"

SINGLE_FILE_PIECE_LENGTH = 524288
SINGLE_FILE_PIECES = 1526

MULTI_FILE_PIECE_LENGTH = 262144
MULTI_FILE_PIECES = 1090
MULTI_FILE_LENGTHS = [
    31457280,
    12345678,
    54321,
    98765432,
    1000,
    7777777,
    26214400,
    3333333,
    524289,
]

# Autouse fixtures run once per test, not once per generated example.
settings.register_profile(
    "btmeta",
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("btmeta")


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("asyncio", "marks tests as async (deselect with '-m \"not asyncio\"')"),
        ("slow", "marks tests as slow (deselect with '-m \"not slow\"')"),
        ("unit", "marks tests as unit tests"),
        ("core", "marks tests as core functionality tests"),
        ("piece", "marks tests as piece mapping tests"),
        ("session", "marks tests as registry tests"),
        ("config", "marks tests as configuration tests"),
        ("cli", "marks tests as CLI tests"),
        ("property", "marks tests as property-based tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests away from user config files and ``BTMETA_*`` variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("BTMETA_USE_RICH", "false")
    monkeypatch.setenv("BTMETA_LOG_CORRELATION_ID", "false")
    for name in (
        "BTMETA_LOG_LEVEL",
        "BTMETA_LOG_FILE",
        "BTMETA_STRUCTURED_LOGGING",
        "BTMETA_STRICT_INTEGERS",
        "BTMETA_REGISTRY_TIMEOUT",
        "BTMETA_REGISTRY_MAX_QUEUE",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)


def piece_hashes(count: int, seed: bytes = b"") -> list[bytes]:
    """Deterministic, distinct 20-byte piece hashes."""
    return [hashlib.sha1(seed + index.to_bytes(4, "big")).digest() for index in range(count)]


def metainfo_bytes(info: dict[str, Any], **extra: Any) -> bytes:
    """Encode a metainfo dictionary around ``info`` in canonical order."""
    data: dict[str, Any] = {"announce": ANNOUNCE_URL, "info": info}
    data.update(extra)
    return encode(data)


@pytest.fixture
def sample_torrent_path() -> Path:
    """Hand-written canonical multi-file torrent with two 16-byte pieces."""
    return FIXTURES_DIR / "sample.torrent"


@pytest.fixture
def sample_torrent_bytes(sample_torrent_path) -> bytes:
    return sample_torrent_path.read_bytes()


@pytest.fixture
def single_file_info() -> dict[str, Any]:
    """Info dictionary of a 1526-piece single-file torrent."""
    length = (SINGLE_FILE_PIECES - 1) * SINGLE_FILE_PIECE_LENGTH + 123456
    return {
        "name": "ubuntu-desktop-amd64.iso",
        "length": length,
        "piece length": SINGLE_FILE_PIECE_LENGTH,
        "pieces": b"".join(piece_hashes(SINGLE_FILE_PIECES, b"single")),
    }


@pytest.fixture
def single_file_torrent_bytes(single_file_info) -> bytes:
    return metainfo_bytes(
        single_file_info,
        comment="single file fixture",
        **{"created by": "btmeta tests", "creation date": 1700000000},
    )


@pytest.fixture
def multi_file_info() -> dict[str, Any]:
    """Info dictionary of a 1090-piece torrent spread over 10 files."""
    total = (MULTI_FILE_PIECES - 1) * MULTI_FILE_PIECE_LENGTH + 100000
    lengths = [*MULTI_FILE_LENGTHS, total - sum(MULTI_FILE_LENGTHS)]
    files = [
        {"length": length, "path": ["disc1" if index < 5 else "disc2", f"track{index:02d}.flac"]}
        for index, length in enumerate(lengths)
    ]
    return {
        "name": "album",
        "files": files,
        "piece length": MULTI_FILE_PIECE_LENGTH,
        "pieces": b"".join(piece_hashes(MULTI_FILE_PIECES, b"multi")),
    }


@pytest.fixture
def multi_file_torrent_bytes(multi_file_info) -> bytes:
    return metainfo_bytes(
        multi_file_info,
        **{"announce-list": [[ANNOUNCE_URL], ["udp://backup.example.com:1337"]]},
    )


@pytest.fixture
def write_torrent(tmp_path):
    """Write torrent bytes to a file and return its path."""

    def _write(data: bytes, name: str = "test.torrent") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
def build_metainfo():
    """Return the canonical metainfo encoder used by the fixtures."""
    return metainfo_bytes


@pytest.fixture
def make_piece_hashes():
    """Return the deterministic piece hash generator used by the fixtures."""
    return piece_hashes
