"""Torrent metainfo model for btmeta.

This module projects a decoded metainfo dictionary into typed records with
the decoder combinators, encodes the records back into the exact same
dictionary shape, and calculates info hashes as required by the BitTorrent
protocol.

Only the fields modelled here survive a decode → encode round trip; unknown
keys are ignored by the decoder and dropped.

The combinators assemble the records without validation, so placeholder
values of failed fields never abort the pass; the finished tree is validated
once all field errors are known.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from btmeta.config.config import get_config
from btmeta.core.bencode import BencodeDict, BencodeValue, decode, encode, from_python
from btmeta.core.decoders import (
    Decoder,
    bytestring,
    field,
    integer,
    list_of,
    one_of,
    optional,
    record,
    run,
    string,
)
from btmeta.utils.exceptions import (
    FieldValidationError,
    InvalidTorrentError,
    TorrentError,
    TorrentFieldError,
)
from btmeta.utils.logging_config import LoggingContext

logger = logging.getLogger(__name__)

PIECE_HASH_LENGTH = 20
PEER_ID_PREFIX = b"-BM0100-"

_TORRENT_KEYS = {"announce", "announce-list", "comment", "created by", "creation date", "info"}
_INFO_KEYS = {"piece length", "pieces", "private", "name", "length", "files"}


class FileInfo(BaseModel):
    """A file of the torrent content."""

    model_config = ConfigDict(frozen=True)

    path: list[str] = Field(..., description="File path components")
    length: int = Field(..., ge=0, description="File length in bytes")

    @property
    def full_path(self) -> str:
        """Path components joined with ``/``."""
        return "/".join(self.path)


class _InfoBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    piece_length: int = Field(..., gt=0, description="Nominal piece length in bytes")
    pieces: list[bytes] = Field(..., description="SHA-1 hash of every piece")
    private: int | None = Field(None, description="BEP 27 private flag")

    @field_validator("pieces")
    @classmethod
    def validate_pieces(cls, v: list[bytes]) -> list[bytes]:
        """Validate every piece hash is 20 bytes (SHA-1 length)."""
        for index, piece_hash in enumerate(v):
            if len(piece_hash) != PIECE_HASH_LENGTH:
                msg = (
                    f"piece hash {index} must be {PIECE_HASH_LENGTH} bytes, "
                    f"got {len(piece_hash)}"
                )
                raise ValueError(msg)
        return v

    @property
    def num_pieces(self) -> int:
        """Number of declared piece hashes."""
        return len(self.pieces)

    @property
    def is_private(self) -> bool:
        """Whether the torrent is flagged private."""
        return bool(self.private)

    @property
    def total_length(self) -> int:
        """Sum of all file lengths."""
        return sum(f.length for f in self.files)


class SingleFileInfo(_InfoBase):
    """Info dictionary of a single-file torrent."""

    file: FileInfo

    @model_validator(mode="after")
    def validate_single_path(self) -> SingleFileInfo:
        """A single file is addressed by its name alone."""
        if len(self.file.path) != 1:
            msg = "single-file torrent path must be exactly the file name"
            raise ValueError(msg)
        return self

    @property
    def name(self) -> str:
        """Suggested file name."""
        return self.file.path[0]

    @property
    def files(self) -> list[FileInfo]:
        """The single file."""
        return [self.file]


class MultiFileInfo(_InfoBase):
    """Info dictionary of a multi-file (directory) torrent."""

    dir_name: str = Field(..., description="Suggested directory name")
    files: list[FileInfo] = Field(..., description="Files in content order")

    @property
    def name(self) -> str:
        """Suggested directory name."""
        return self.dir_name


TorrentInfo = Union[SingleFileInfo, MultiFileInfo]


class Torrent(BaseModel):
    """A decoded metainfo file."""

    model_config = ConfigDict(frozen=True)

    announce: str = Field(..., description="Primary tracker announce URL")
    announce_list: list[list[str]] | None = Field(
        None,
        description="BEP 12 announce tiers",
    )
    comment: str | None = Field(None, description="Free-form comment")
    created_by: str | None = Field(None, description="Creating program")
    creation_date: int | None = Field(None, description="Creation time, unix seconds")
    info: SingleFileInfo | MultiFileInfo

    @property
    def info_hash(self) -> bytes:
        """SHA-1 of the canonical info dictionary."""
        return info_hash(self.info)


def split_piece_hashes(blob: bytes) -> list[bytes]:
    """Split the ``pieces`` blob into 20-byte hashes.

    Raises:
        InvalidTorrentError: If the blob is not a multiple of 20 bytes

    """
    if len(blob) % PIECE_HASH_LENGTH:
        msg = (
            f"pieces data is {len(blob)} bytes, "
            f"not a multiple of {PIECE_HASH_LENGTH}"
        )
        raise InvalidTorrentError(msg)
    return [
        blob[start : start + PIECE_HASH_LENGTH]
        for start in range(0, len(blob), PIECE_HASH_LENGTH)
    ]


def piece_hashes() -> Decoder[list[bytes]]:
    """Decode the ``pieces`` blob into its hashes."""
    return bytestring().map(split_piece_hashes)


def file_info_decoder() -> Decoder[FileInfo]:
    """Decode one entry of the ``files`` list."""
    return record(
        FileInfo.model_construct,
        [
            ("length", "length", integer()),
            ("path", "path", list_of(string())),
        ],
    )


def single_file_decoder(
    piece_length: int,
    pieces: list[bytes],
    private: int | None,
) -> Decoder[SingleFileInfo]:
    """Decode the ``name`` + ``length`` form of the info dictionary."""

    def build(name: str, length: int) -> SingleFileInfo:
        return SingleFileInfo.model_construct(
            piece_length=piece_length,
            pieces=pieces,
            private=private,
            file=FileInfo.model_construct(path=[name], length=length),
        )

    return record(
        build,
        [
            ("name", "name", string()),
            ("length", "length", integer()),
        ],
    )


def multi_file_decoder(
    piece_length: int,
    pieces: list[bytes],
    private: int | None,
) -> Decoder[MultiFileInfo]:
    """Decode the ``name`` + ``files`` form of the info dictionary."""

    def build(dir_name: str, files: list[FileInfo]) -> MultiFileInfo:
        return MultiFileInfo.model_construct(
            piece_length=piece_length,
            pieces=pieces,
            private=private,
            dir_name=dir_name,
            files=files,
        )

    return record(
        build,
        [
            ("dir_name", "name", string()),
            ("files", "files", list_of(file_info_decoder())),
        ],
    )


def info_decoder() -> Decoder[TorrentInfo]:
    """Decode the info dictionary, single-file form first."""
    return field(
        "piece length",
        integer(),
        lambda piece_length: field(
            "pieces",
            piece_hashes(),
            lambda pieces: field(
                "private",
                optional(integer()),
                lambda private: one_of(
                    single_file_decoder(piece_length, pieces, private),
                    [multi_file_decoder(piece_length, pieces, private)],
                ),
            ),
        ),
    )


def torrent_decoder() -> Decoder[Torrent]:
    """Decode a whole metainfo dictionary."""
    return record(
        Torrent.model_construct,
        [
            ("announce", "announce", string()),
            ("announce_list", "announce-list", optional(list_of(list_of(string())))),
            ("comment", "comment", optional(string())),
            ("created_by", "created by", optional(string())),
            ("creation_date", "creation date", optional(integer())),
            ("info", "info", info_decoder()),
        ],
    )


def _unknown_keys(value: BencodeDict, known: set[str], prefix: str = "") -> list[str]:
    names = [getattr(k, "value", None) for k in value.entries]
    return sorted(f"{prefix}{name}" for name in names if name not in known)


def _log_ignored_keys(value: BencodeValue) -> None:
    if not isinstance(value, BencodeDict):
        return
    ignored = _unknown_keys(value, _TORRENT_KEYS)
    info = value.get("info")
    if isinstance(info, BencodeDict):
        ignored += _unknown_keys(info, _INFO_KEYS, prefix="info.")
    if ignored:
        logger.debug("Ignoring unmodelled metainfo keys: %s", ", ".join(ignored))


def decode_torrent(data: bytes, strict: bool = False) -> Torrent:
    """Decode metainfo bytes into a :class:`Torrent`.

    Args:
        data: Bencoded metainfo
        strict: Reject leading zeros and ``-0`` in integers

    Raises:
        BencodeDecodeError: If the bytes are not valid bencode
        TorrentFieldError: Listing every field of the wrong kind
        InvalidTorrentError: If fields are individually valid but inconsistent

    """
    value = decode(data, strict=strict)

    try:
        decoded = run(value, torrent_decoder())
    except FieldValidationError as e:
        raise TorrentFieldError(e.errors) from e

    if decoded.info.piece_length <= 0:
        msg = f"piece length must be positive, got {decoded.info.piece_length}"
        raise InvalidTorrentError(msg)

    try:
        torrent = _validate(decoded)
    except PydanticValidationError as e:
        msg = f"{e.error_count()} invalid value(s): {e.errors()[0]['msg']}"
        raise InvalidTorrentError(msg) from e

    _log_ignored_keys(value)
    return torrent


def _validate(decoded: Torrent) -> Torrent:
    info = decoded.info
    return Torrent.model_validate(
        {
            **decoded.model_dump(exclude={"info"}),
            "info": type(info).model_validate(info.model_dump()),
        },
    )


def load_torrent(torrent_path: str | Path) -> Torrent:
    """Read and decode a ``.torrent`` file.

    Integers are checked strictly when ``bencode.strict_integers`` is set.

    Raises:
        TorrentError: If the file cannot be read or decoded

    """
    path = Path(torrent_path)
    if not path.exists():
        msg = f"Torrent file not found: {path}"
        raise TorrentError(msg)

    try:
        data = path.read_bytes()
    except OSError as e:
        msg = f"Failed to read torrent file {path}: {e}"
        raise TorrentError(msg) from e

    with LoggingContext("torrent_load", torrent_path=str(path)):
        return decode_torrent(data, strict=get_config().bencode.strict_integers)


def file_info_to_value(file_info: FileInfo) -> BencodeValue:
    """Encode one entry of the ``files`` list."""
    return from_python({"length": file_info.length, "path": list(file_info.path)})


def info_to_value(info: TorrentInfo) -> BencodeValue:
    """Rebuild the info dictionary of a torrent."""
    entries: dict[str, Any] = {
        "piece length": info.piece_length,
        "pieces": b"".join(info.pieces),
        "name": info.name,
    }
    if info.private is not None:
        entries["private"] = info.private
    if isinstance(info, SingleFileInfo):
        entries["length"] = info.file.length
    else:
        entries["files"] = [file_info_to_value(f) for f in info.files]
    return from_python(entries)


def torrent_to_value(torrent: Torrent) -> BencodeValue:
    """Rebuild the metainfo dictionary of a torrent."""
    entries: dict[str, Any] = {"announce": torrent.announce}
    if torrent.announce_list is not None:
        entries["announce-list"] = torrent.announce_list
    if torrent.comment is not None:
        entries["comment"] = torrent.comment
    if torrent.created_by is not None:
        entries["created by"] = torrent.created_by
    if torrent.creation_date is not None:
        entries["creation date"] = torrent.creation_date
    entries["info"] = info_to_value(torrent.info)
    return from_python(entries)


def encode_torrent(torrent: Torrent) -> bytes:
    """Encode a torrent into canonical metainfo bytes."""
    return encode(torrent_to_value(torrent))


def info_hash(info: TorrentInfo) -> bytes:
    """SHA-1 digest of the canonical bencoding of the info dictionary."""
    return hashlib.sha1(encode(info_to_value(info))).digest()  # nosec B324 - SHA-1 required by BitTorrent protocol (BEP 3)


def info_hash_hex(info: TorrentInfo) -> str:
    """Info hash as lowercase hex, for display."""
    return info_hash(info).hex()


def generate_peer_id(prefix: bytes = PEER_ID_PREFIX) -> bytes:
    """Generate a 20-byte peer ID: ``prefix`` followed by random bytes."""
    if len(prefix) > 20:
        msg = f"Peer ID prefix is {len(prefix)} bytes, at most 20 allowed"
        raise ValueError(msg)
    return prefix + secrets.token_bytes(20 - len(prefix))
