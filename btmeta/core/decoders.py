"""Decoder combinators for bencode value trees.

A :class:`Decoder` wraps a function ``value -> (result, errors)``. It always
yields a result, possibly a placeholder default, together with every
:class:`FieldError` it found, so all type mismatches of one pass are reported
together instead of stopping at the first one.

Collections are all-or-nothing: one bad element discards every decoded
sibling of that list or dictionary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Sequence, TypeVar

from btmeta.core.bencode import (
    BencodeBytes,
    BencodeDict,
    BencodeInt,
    BencodeList,
    BencodeText,
    BencodeValue,
    kind_name,
)
from btmeta.utils.exceptions import FieldValidationError

T = TypeVar("T")
U = TypeVar("U")
K = TypeVar("K")
V = TypeVar("V")


@dataclass(frozen=True)
class FieldError:
    """A value had a different bencode kind than expected."""

    expected: str
    found: str

    def __str__(self) -> str:
        return f"expected {self.expected}, found {self.found}"


DecodeResult = tuple[T, list[FieldError]]


class Decoder(Generic[T]):
    """Composable extraction of ``T`` from a bencode value."""

    __slots__ = ("_run",)

    def __init__(self, run: Callable[[BencodeValue], DecodeResult[T]]):
        self._run = run

    def __call__(self, value: BencodeValue) -> DecodeResult[T]:
        return self._run(value)

    def map(self, f: Callable[[T], U]) -> Decoder[U]:
        """Transform the decoded value, keeping the errors."""

        def run(value: BencodeValue) -> DecodeResult[U]:
            result, errors = self._run(value)
            return f(result), errors

        return Decoder(run)

    def then(self, f: Callable[[T], Decoder[U]]) -> Decoder[U]:
        """Method form of :func:`then`."""
        return then(self, f)


def success(value: T) -> Decoder[T]:
    """Ignore the input and yield ``value``."""
    return Decoder(lambda _input: (value, []))


def failure(default: T, expected: str) -> Decoder[T]:
    """Ignore the input and report a mismatch against ``expected``."""
    return Decoder(lambda value: (default, [FieldError(expected, kind_name(value))]))


def _leaf(kind: type, expected: str, default: Any) -> Decoder[Any]:
    def run(value: BencodeValue) -> DecodeResult[Any]:
        if isinstance(value, kind):
            return value.value, []
        return default, [FieldError(expected, kind_name(value))]

    return Decoder(run)


def integer() -> Decoder[int]:
    """Decode a bencode integer."""
    return _leaf(BencodeInt, "Integer", 0)


def string() -> Decoder[str]:
    """Decode a UTF-8 bencode string."""
    return _leaf(BencodeText, "String", "")


def bytestring() -> Decoder[bytes]:
    """Decode a binary bencode string.

    Text payloads are accepted as their UTF-8 bytes: on the wire both are the
    same byte string, a blob only decodes as text by accident of content.
    """

    def run(value: BencodeValue) -> DecodeResult[bytes]:
        if isinstance(value, BencodeBytes):
            return value.value, []
        if isinstance(value, BencodeText):
            return value.value.encode("utf-8"), []
        return b"", [FieldError("Bytes", kind_name(value))]

    return Decoder(run)


def list_of(inner: Decoder[T]) -> Decoder[list[T]]:
    """Decode every element of a list with ``inner``."""

    def run(value: BencodeValue) -> DecodeResult[list[T]]:
        if not isinstance(value, BencodeList):
            return [], [FieldError("List", kind_name(value))]

        results: list[T] = []
        errors: list[FieldError] = []
        for item in value.items:
            result, item_errors = inner(item)
            results.append(result)
            errors.extend(item_errors)
        if errors:
            return [], errors
        return results, []

    return Decoder(run)


def dict_of(key: Decoder[K], value: Decoder[V]) -> Decoder[dict[K, V]]:
    """Decode every entry of a dictionary with ``key`` and ``value``."""

    def run(input_value: BencodeValue) -> DecodeResult[dict[K, V]]:
        if not isinstance(input_value, BencodeDict):
            return {}, [FieldError("Dict", kind_name(input_value))]

        results: dict[K, V] = {}
        errors: list[FieldError] = []
        for raw_key, raw_value in input_value.items():
            decoded_key, key_errors = key(raw_key)
            decoded_value, value_errors = value(raw_value)
            errors.extend(key_errors)
            errors.extend(value_errors)
            if not key_errors:
                results[decoded_key] = decoded_value
        if errors:
            return {}, errors
        return results, []

    return Decoder(run)


def field(
    name: str,
    inner: Decoder[T],
    continuation: Callable[[T], Decoder[U]],
) -> Decoder[U]:
    """Decode the ``name`` entry of a dictionary, then continue.

    The decoder returned by ``continuation`` runs against the same input
    dictionary, so chained ``field`` calls read several keys of one
    dictionary in sequence. When the input is not a dictionary, or the key
    is absent, ``inner`` runs against the whole input and reports the
    mismatch itself.
    """

    def run(value: BencodeValue) -> DecodeResult[U]:
        target = value
        if isinstance(value, BencodeDict):
            found = value.get(name)
            if found is not None:
                target = found

        result, errors = inner(target)
        next_result, next_errors = continuation(result)(value)
        return next_result, errors + next_errors

    return Decoder(run)


def record(
    build: Callable[..., T],
    fields: Sequence[tuple[str, str, Decoder[Any]]],
) -> Decoder[T]:
    """Decode several keys of one dictionary into a single object.

    Args:
        build: Called with one keyword argument per entry of ``fields``
        fields: ``(argument name, dictionary key, decoder)`` triples, decoded
            in order with chained :func:`field` calls

    Returns:
        Decoder yielding ``build(**decoded)``; ``build`` also receives the
        placeholder defaults of failed fields

    """

    def step(index: int, decoded: dict[str, Any]) -> Decoder[T]:
        if index == len(fields):
            return Decoder(lambda _value: (build(**decoded), []))
        attr, key, inner = fields[index]
        return field(
            key,
            inner,
            lambda result: step(index + 1, {**decoded, attr: result}),
        )

    return step(0, {})


def one_of(first: Decoder[T], alternatives: Sequence[Decoder[T]] = ()) -> Decoder[T]:
    """Return the first decoder that succeeds.

    When every decoder fails, the last attempted alternative's result is
    returned; earlier failures are discarded.
    """

    def run(value: BencodeValue) -> DecodeResult[T]:
        attempt = first(value)
        if not attempt[1]:
            return attempt
        for alternative in alternatives:
            attempt = alternative(value)
            if not attempt[1]:
                return attempt
        return attempt

    return Decoder(run)


def optional(inner: Decoder[T]) -> Decoder[T | None]:
    """Yield ``None`` instead of errors when ``inner`` fails."""

    def run(value: BencodeValue) -> DecodeResult[T | None]:
        result, errors = inner(value)
        if errors:
            return None, []
        return result, []

    return Decoder(run)


def then(first: Decoder[T], f: Callable[[T], Decoder[U]]) -> Decoder[U]:
    """Run ``first``, then the decoder ``f`` builds from its value.

    Both run against the same input. A failure of ``first`` takes precedence
    over the second decoder's errors.
    """

    def run(value: BencodeValue) -> DecodeResult[U]:
        result, errors = first(value)
        next_result, next_errors = f(result)(value)
        return next_result, errors if errors else next_errors

    return Decoder(run)


def run(value: BencodeValue, decoder: Decoder[T]) -> T:
    """Execute ``decoder`` against a root value.

    Raises:
        FieldValidationError: Carrying every accumulated field error

    """
    result, errors = decoder(value)
    if errors:
        raise FieldValidationError(errors)
    return result
