"""Bencode encoding and decoding.

Implements the B-encoding used by BitTorrent metainfo files. Decoding turns
a byte buffer into an immutable value tree (:class:`BencodeInt`,
:class:`BencodeText`, :class:`BencodeBytes`, :class:`BencodeList`,
:class:`BencodeDict`); encoding renders a value tree in canonical form, with
dictionary keys always sorted.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Union

from btmeta.utils.exceptions import (
    BencodeDecodeError,
    BencodeEncodeError,
    BencodeError,
    InvalidNumberError,
    OutOfBoundsError,
    UnclosedTermError,
    UnexpectedTokenError,
)

logger = logging.getLogger(__name__)

_INT = ord("i")
_LIST = ord("l")
_DICT = ord("d")
_END = ord("e")
_COLON = ord(":")
_MINUS = ord("-")
_ZERO = ord("0")
_NINE = ord("9")


@dataclass(frozen=True)
class BencodeInt:
    """Bencoded integer (arbitrary precision)."""

    value: int


@dataclass(frozen=True)
class BencodeText:
    """Bencoded byte string whose payload is valid UTF-8."""

    value: str


@dataclass(frozen=True)
class BencodeBytes:
    """Bencoded byte string that is not valid UTF-8."""

    value: bytes


@dataclass(frozen=True)
class BencodeList:
    """Bencoded list."""

    items: tuple[BencodeValue, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True, eq=False)
class BencodeDict:
    """Bencoded dictionary.

    Keys may be any bencode value. Equality ignores insertion order and the
    instance is hashable, so a dictionary can itself be a key.
    """

    entries: Mapping[BencodeValue, BencodeValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BencodeDict):
            return NotImplemented
        return dict(self.entries) == dict(other.entries)

    def __hash__(self) -> int:
        return hash(frozenset(self.entries.items()))

    def __repr__(self) -> str:
        return f"BencodeDict({dict(self.entries)!r})"

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, key: str | BencodeValue) -> BencodeValue | None:
        """Look up a key given as text or as a bencode value."""
        if isinstance(key, str):
            found = self.entries.get(BencodeText(key))
            if found is None:
                found = self.entries.get(BencodeBytes(key.encode("utf-8")))
            return found
        return self.entries.get(key)

    def items(self):
        """Return the (key, value) pairs."""
        return self.entries.items()


BencodeValue = Union[BencodeInt, BencodeText, BencodeBytes, BencodeList, BencodeDict]

_VALUE_TYPES = (BencodeInt, BencodeText, BencodeBytes, BencodeList, BencodeDict)

# Marks the end of a container on the encoder stack
_CLOSE = object()

_KIND_NAMES: dict[type, str] = {
    BencodeInt: "Integer",
    BencodeText: "String",
    BencodeBytes: "Bytes",
    BencodeList: "List",
    BencodeDict: "Dict",
}


def kind_name(value: Any) -> str:
    """Return the kind name of a bencode value, as used in field errors."""
    return _KIND_NAMES.get(type(value), type(value).__name__)


def _text_or_bytes(payload: bytes) -> BencodeText | BencodeBytes:
    try:
        return BencodeText(payload.decode("utf-8"))
    except UnicodeDecodeError:
        return BencodeBytes(payload)


class BencodeDecoder:
    """Decodes a bencoded byte buffer into a value tree."""

    def __init__(self, data: bytes, strict: bool = False):
        """Initialize decoder.

        Args:
            data: Bencoded input; the whole buffer must hold exactly one term
            strict: Reject leading zeros and ``-0`` in integers

        """
        if isinstance(data, (bytearray, memoryview)):
            data = bytes(data)
        if not isinstance(data, bytes):
            msg = f"Bencode input must be bytes, not {type(data).__name__}"
            raise TypeError(msg)
        self.data = data
        self.pos = 0
        self.strict = strict

    def decode(self) -> BencodeValue:
        """Decode the buffer, requiring every byte to be consumed."""
        try:
            value = self._decode_value()
        except RecursionError as e:
            # Hashing a dictionary key made of deeply nested containers
            msg = f"Dictionary key before position {self.pos} is nested too deeply"
            raise BencodeDecodeError(msg, self.pos) from e
        if self.pos < len(self.data):
            raise UnexpectedTokenError(chr(self.data[self.pos]), self.pos)
        return value

    def _decode_value(self) -> BencodeValue:
        # Open containers, innermost last: (is_dict, decoded children).
        # Dictionary children alternate key, value.
        stack: list[tuple[bool, list[BencodeValue]]] = []

        while True:
            if self.pos >= len(self.data):
                raise UnexpectedTokenError("EOF", self.pos)

            lead = self.data[self.pos]
            if lead == _LIST or lead == _DICT:
                self.pos += 1
                stack.append((lead == _DICT, []))
                continue

            if lead == _END and stack:
                is_dict, children = stack.pop()
                if is_dict and len(children) % 2:
                    # Key without a value
                    raise UnexpectedTokenError(chr(lead), self.pos)
                self.pos += 1
                if is_dict:
                    value: BencodeValue = BencodeDict(
                        dict(zip(children[::2], children[1::2])),
                    )
                else:
                    value = BencodeList(tuple(children))
            elif lead == _INT:
                value = self._decode_int()
            elif _ZERO <= lead <= _NINE:
                value = self._decode_string()
            else:
                raise UnexpectedTokenError(chr(lead), self.pos)

            if not stack:
                return value
            stack[-1][1].append(value)

    def _scan_digits(self) -> bytes:
        start = self.pos
        while self.pos < len(self.data) and _ZERO <= self.data[self.pos] <= _NINE:
            self.pos += 1
        return self.data[start : self.pos]

    def _decode_int(self) -> BencodeInt:
        start = self.pos
        self.pos += 1  # skip 'i'

        negative = False
        if self.pos < len(self.data) and self.data[self.pos] == _MINUS:
            negative = True
            self.pos += 1

        digits = self._scan_digits()
        if not digits:
            msg = f"Integer at position {start} has no digits"
            raise InvalidNumberError(msg, self.pos)
        if self.pos >= len(self.data):
            raise UnexpectedTokenError("EOF", self.pos)
        if self.data[self.pos] != _END:
            msg = f"Integer at position {start} is not terminated"
            raise UnclosedTermError(msg, self.pos)

        if self.strict and (
            (len(digits) > 1 and digits[0] == _ZERO) or (negative and digits == b"0")
        ):
            msg = f"Non-canonical integer at position {start}: {digits.decode()}"
            raise InvalidNumberError(msg, start)

        self.pos += 1  # skip 'e'
        try:
            number = int(digits)
        except ValueError as e:
            # Beyond sys.get_int_max_str_digits()
            msg = f"Integer at position {start} has too many digits ({len(digits)})"
            raise InvalidNumberError(msg, start) from e
        return BencodeInt(-number if negative else number)

    def _decode_string(self) -> BencodeText | BencodeBytes:
        start = self.pos
        digits = self._scan_digits()
        if not digits or self.pos >= len(self.data) or self.data[self.pos] != _COLON:
            msg = f"String length at position {start} is not followed by ':'"
            raise OutOfBoundsError(msg, self.pos)

        self.pos += 1  # skip ':'
        available = len(self.data) - self.pos
        if len(digits.lstrip(b"0")) > len(str(available)) or int(digits) > available:
            msg = (
                f"String at position {start} declares {digits.decode()} bytes, "
                f"only {available} available"
            )
            raise OutOfBoundsError(msg, self.pos)

        end = self.pos + int(digits)
        payload = self.data[self.pos : end]
        self.pos = end
        return _text_or_bytes(payload)


def _key_order(key: BencodeValue) -> tuple[int, Any]:
    if isinstance(key, BencodeInt):
        return (0, key.value)
    if isinstance(key, BencodeText):
        return (1, key.value.encode("utf-8"))
    if isinstance(key, BencodeBytes):
        return (1, key.value)
    msg = f"Dictionary keys of kind {kind_name(key)} have no canonical order"
    raise BencodeEncodeError(msg)


class BencodeEncoder:
    """Encodes a value tree into canonical bencode."""

    def encode(self, value: Any) -> bytes:
        """Encode a bencode value (or a plain Python object) to bytes."""
        out = bytearray()
        # Values still to write, next one last
        pending: list[Any] = [value]

        while pending:
            item = pending.pop()
            if item is _CLOSE:
                out += b"e"
                continue
            if not isinstance(item, _VALUE_TYPES):
                item = from_python(item)

            if isinstance(item, BencodeInt):
                out += b"i%de" % item.value
            elif isinstance(item, BencodeText):
                self._encode_payload(item.value.encode("utf-8"), out)
            elif isinstance(item, BencodeBytes):
                self._encode_payload(item.value, out)
            elif isinstance(item, BencodeList):
                out += b"l"
                pending.append(_CLOSE)
                pending.extend(reversed(item.items))
            else:
                out += b"d"
                pending.append(_CLOSE)
                for key, entry in reversed(self._sorted_entries(item)):
                    pending.append(entry)
                    pending.append(key)
        return bytes(out)

    @staticmethod
    def _encode_payload(payload: bytes, out: bytearray) -> None:
        out += b"%d:" % len(payload)
        out += payload

    @staticmethod
    def _sorted_entries(
        value: BencodeDict,
    ) -> list[tuple[BencodeValue, BencodeValue]]:
        ordered = [(_key_order(k), k, v) for k, v in value.items()]
        if len({order[0] for order, _, _ in ordered}) > 1:
            msg = "Dictionary mixes integer and string keys"
            raise BencodeEncodeError(msg)

        ordered.sort(key=lambda entry: entry[0])
        for previous, current in zip(ordered, ordered[1:]):
            if previous[0] == current[0]:
                msg = f"Duplicate dictionary key {current[1]!r}"
                raise BencodeEncodeError(msg)
        return [(k, v) for _, k, v in ordered]


def decode(data: bytes, strict: bool = False) -> BencodeValue:
    """Decode bencoded bytes into a value tree.

    Args:
        data: Bencoded input
        strict: Reject leading zeros and ``-0`` in integers

    Raises:
        BencodeDecodeError: On the first malformed byte

    """
    value = BencodeDecoder(data, strict=strict).decode()
    logger.debug("Decoded %d bytes of bencode (%s)", len(data), kind_name(value))
    return value


def encode(value: Any) -> bytes:
    """Encode a value tree (or plain Python object) into canonical bencode."""
    return BencodeEncoder().encode(value)


def from_python(obj: Any) -> BencodeValue:
    """Convert plain Python objects into a value tree.

    Raises:
        BencodeEncodeError: For unsupported types, or containers nested
            deeper than the interpreter recursion limit

    """
    try:
        return _from_python(obj)
    except RecursionError as e:
        msg = "Object is nested too deeply to convert to bencode"
        raise BencodeEncodeError(msg) from e


def _from_python(obj: Any) -> BencodeValue:
    if isinstance(obj, _VALUE_TYPES):
        return obj
    if isinstance(obj, int):
        return BencodeInt(int(obj))
    if isinstance(obj, str):
        return BencodeText(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return _text_or_bytes(bytes(obj))
    if isinstance(obj, (list, tuple)):
        return BencodeList(tuple(_from_python(item) for item in obj))
    if isinstance(obj, Mapping):
        return BencodeDict({_from_python(k): _from_python(v) for k, v in obj.items()})
    msg = f"Cannot bencode object of type {type(obj).__name__}"
    raise BencodeEncodeError(msg)


def to_python(value: BencodeValue) -> Any:
    """Convert a value tree into plain Python objects.

    Raises:
        BencodeError: If the tree is nested deeper than the interpreter
            recursion limit

    """
    try:
        return _to_python(value)
    except RecursionError as e:
        msg = "Value is nested too deeply to convert"
        raise BencodeError(msg) from e


def _to_python(value: BencodeValue) -> Any:
    if isinstance(value, (BencodeInt, BencodeText, BencodeBytes)):
        return value.value
    if isinstance(value, BencodeList):
        return [_to_python(item) for item in value.items]
    if isinstance(value, BencodeDict):
        return {_python_key(k): _to_python(v) for k, v in value.items()}
    msg = f"Not a bencode value: {type(value).__name__}"
    raise TypeError(msg)


def _python_key(key: BencodeValue) -> Any:
    converted = _to_python(key)
    if isinstance(converted, list):
        return tuple(converted)
    if isinstance(converted, dict):
        return tuple(converted.items())
    return converted


def format_value(value: BencodeValue, indent: int = 2) -> str:
    """Render a value tree for diagnostics.

    Binary payloads are replaced with a ``<N bytes>`` placeholder; the output
    is not bencode and cannot be decoded back.

    Raises:
        BencodeError: If the tree is nested deeper than the interpreter
            recursion limit

    """
    try:
        return _format(value, 0, indent)
    except RecursionError as e:
        msg = "Value is nested too deeply to format"
        raise BencodeError(msg) from e


def _format(value: BencodeValue, level: int, indent: int) -> str:
    pad = " " * (indent * (level + 1))
    closing = " " * (indent * level)

    if isinstance(value, BencodeInt):
        return str(value.value)
    if isinstance(value, BencodeText):
        return json.dumps(value.value, ensure_ascii=False)
    if isinstance(value, BencodeBytes):
        return f"<{len(value.value)} bytes>"
    if isinstance(value, BencodeList):
        if not value.items:
            return "[]"
        lines = [f"{pad}{_format(item, level + 1, indent)}" for item in value.items]
        return "[\n" + ",\n".join(lines) + f"\n{closing}]"
    if not value.entries:
        return "{}"
    lines = [
        f"{pad}{_format(k, level + 1, indent)}: {_format(v, level + 1, indent)}"
        for k, v in value.items()
    ]
    return "{\n" + ",\n".join(lines) + f"\n{closing}}}"
