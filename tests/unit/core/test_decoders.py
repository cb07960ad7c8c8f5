"""Tests for the decoder combinators."""

from __future__ import annotations

import pytest

pytestmark = [pytest.mark.unit, pytest.mark.core]

from btmeta.core.bencode import (
    BencodeBytes,
    BencodeDict,
    BencodeInt,
    BencodeList,
    BencodeText,
    from_python,
)
from btmeta.core.decoders import (
    FieldError,
    bytestring,
    dict_of,
    failure,
    field,
    integer,
    list_of,
    one_of,
    optional,
    record,
    run,
    string,
    success,
    then,
)
from btmeta.utils.exceptions import FieldValidationError


class TestLeafDecoders:
    """Decoders for scalar values."""

    def test_integer(self):
        assert integer()(BencodeInt(5)) == (5, [])

    def test_integer_mismatch(self):
        assert integer()(BencodeText("5")) == (0, [FieldError("Integer", "String")])

    def test_string(self):
        assert string()(BencodeText("abc")) == ("abc", [])

    def test_string_rejects_binary(self):
        assert string()(BencodeBytes(b"\xff")) == ("", [FieldError("String", "Bytes")])

    def test_bytestring(self):
        assert bytestring()(BencodeBytes(b"\xff")) == (b"\xff", [])

    def test_bytestring_accepts_text(self):
        assert bytestring()(BencodeText("é")) == (b"\xc3\xa9", [])

    def test_bytestring_mismatch(self):
        assert bytestring()(BencodeInt(1)) == (b"", [FieldError("Bytes", "Integer")])

    def test_success_ignores_input(self):
        assert success("x")(BencodeInt(1)) == ("x", [])

    def test_failure_reports_found_kind(self):
        assert failure(None, "Dict")(BencodeList()) == (None, [FieldError("Dict", "List")])

    def test_field_error_str(self):
        assert str(FieldError("Integer", "String")) == "expected Integer, found String"

    def test_map(self):
        assert integer().map(lambda n: n * 2)(BencodeInt(21)) == (42, [])


class TestCollections:
    """List and dictionary decoders fail as a whole."""

    def test_list_of(self):
        assert list_of(integer())(from_python([1, 2, 3])) == ([1, 2, 3], [])

    def test_list_of_discards_siblings_on_error(self):
        value = from_python([1, "x", 3, "y"])
        assert list_of(integer())(value) == (
            [],
            [FieldError("Integer", "String"), FieldError("Integer", "String")],
        )

    def test_list_of_non_list(self):
        assert list_of(integer())(BencodeInt(1)) == ([], [FieldError("List", "Integer")])

    def test_nested_list_of(self):
        value = from_python([["a", "b"], ["c"]])
        assert list_of(list_of(string()))(value) == ([["a", "b"], ["c"]], [])

    def test_dict_of(self):
        value = from_python({"a": 1, "b": 2})
        assert dict_of(string(), integer())(value) == ({"a": 1, "b": 2}, [])

    def test_dict_of_discards_siblings_on_error(self):
        value = from_python({"a": 1, "b": "two"})
        assert dict_of(string(), integer())(value) == ({}, [FieldError("Integer", "String")])

    def test_dict_of_non_dict(self):
        assert dict_of(string(), integer())(BencodeList()) == ({}, [FieldError("Dict", "List")])


class TestField:
    """Keyed access and chaining."""

    def test_field(self):
        value = from_python({"length": 10})
        assert field("length", integer(), success)(value) == (10, [])

    def test_continuation_sees_same_dict(self):
        value = from_python({"a": 1, "b": 2})
        decoder = field("a", integer(), lambda a: field("b", integer(), lambda b: success(a + b)))
        assert decoder(value) == (3, [])

    def test_missing_key_reports_dict(self):
        value = from_python({"other": 1})
        assert field("length", integer(), success)(value) == (0, [FieldError("Integer", "Dict")])

    def test_non_dict_input(self):
        assert field("length", integer(), success)(BencodeList()) == (
            0,
            [FieldError("Integer", "List")],
        )

    def test_sibling_errors_accumulate(self):
        value = from_python({"a": "x", "b": 1, "c": 2})
        decoder = field(
            "a",
            integer(),
            lambda a: field("b", string(), lambda b: field("c", integer(), success)),
        )
        _result, errors = decoder(value)
        assert errors == [FieldError("Integer", "String"), FieldError("String", "Integer")]

    def test_binary_key_lookup(self):
        value = BencodeDict({BencodeBytes(b"length"): BencodeInt(4)})
        assert field("length", integer(), success)(value) == (4, [])


class TestRecord:
    """Several keys of one dictionary into one object."""

    def test_record(self):
        value = from_python({"n": "name", "len": 3})
        decoder = record(dict, [("name", "n", string()), ("length", "len", integer())])
        assert decoder(value) == ({"name": "name", "length": 3}, [])

    def test_record_reports_every_field(self):
        value = from_python({"n": 1})
        decoder = record(dict, [("name", "n", string()), ("length", "len", integer())])
        result, errors = decoder(value)
        assert result == {"name": "", "length": 0}
        assert errors == [FieldError("String", "Integer"), FieldError("Integer", "Dict")]

    def test_record_with_optional_field(self):
        value = from_python({"n": "x"})
        decoder = record(dict, [("name", "n", string()), ("note", "note", optional(string()))])
        assert decoder(value) == ({"name": "x", "note": None}, [])


class TestAlternatives:
    """one_of, optional and then."""

    def test_one_of_first_success(self):
        decoder = one_of(integer().map(str), [string()])
        assert decoder(BencodeInt(1)) == ("1", [])

    def test_one_of_falls_back(self):
        decoder = one_of(integer().map(str), [string()])
        assert decoder(BencodeText("x")) == ("x", [])

    def test_one_of_keeps_last_failure(self):
        decoder = one_of(integer(), [list_of(integer()).map(len)])
        assert decoder(BencodeText("x")) == (0, [FieldError("List", "String")])

    def test_one_of_without_alternatives(self):
        assert one_of(integer())(BencodeText("x")) == (0, [FieldError("Integer", "String")])

    def test_optional_swallows_errors(self):
        assert optional(integer())(BencodeText("x")) == (None, [])

    def test_optional_passes_value(self):
        assert optional(integer())(BencodeInt(3)) == (3, [])

    def test_then(self):
        decoder = then(integer(), lambda n: success(n + 1))
        assert decoder(BencodeInt(1)) == (2, [])

    def test_then_first_error_wins(self):
        decoder = then(integer(), lambda _n: failure("x", "String"))
        assert decoder(BencodeList()) == ("x", [FieldError("Integer", "List")])

    def test_then_second_error(self):
        decoder = integer().then(lambda _n: failure("x", "String"))
        assert decoder(BencodeInt(1)) == ("x", [FieldError("String", "Integer")])


class TestRun:
    """Running a decoder against a root value."""

    def test_run_success(self):
        assert run(from_python([1, 2]), list_of(integer())) == [1, 2]

    def test_run_failure_carries_all_errors(self):
        value = from_python({"a": "x"})
        decoder = field("a", integer(), lambda _a: field("b", string(), success))
        with pytest.raises(FieldValidationError) as exc_info:
            run(value, decoder)
        assert exc_info.value.errors == [
            FieldError("Integer", "String"),
            FieldError("String", "Dict"),
        ]
        assert "2 field error(s)" in str(exc_info.value)
