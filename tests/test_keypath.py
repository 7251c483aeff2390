"""Tests for key path resolution and key type checks."""

from __future__ import annotations

import polars as pl
import pytest

from kvschema.keypath import (
    IssueKind,
    diagnose_index_key_path,
    diagnose_primary_key,
    format_key_path,
    is_multi_entry_compatible,
    is_number_compatible,
    is_valid_key_type,
    normalize_key_path,
    path_exists,
    resolve,
)
from kvschema.shapes import literal, one_of, optional, to_value_type
from kvschema.types import (
    BOOLEAN,
    DATE,
    NUMBER,
    STRING,
    UNDEFINED,
    UNKNOWN,
    UNRESOLVABLE,
    ArrayOf,
    LiteralType,
    ObjectShape,
    union_of,
)


class TestNormalize:
    """Tests for key path normalisation and formatting."""

    def test_list_becomes_tuple(self) -> None:
        """Test normalizing a list key path to a tuple."""
        assert normalize_key_path(["a", "b.c"]) == ("a", "b.c")

    def test_string_and_none_pass_through(self) -> None:
        """Test that string and None key paths are kept."""
        assert normalize_key_path("a.b") == "a.b"
        assert normalize_key_path("") == ""
        assert normalize_key_path(None) is None

    def test_rejects_non_string_elements(self) -> None:
        """Test rejecting non-string composite elements."""
        with pytest.raises(TypeError):
            normalize_key_path(["a", 1])  # type: ignore[list-item]

    def test_rejects_other_types(self) -> None:
        """Test rejecting unsupported key path types."""
        with pytest.raises(TypeError):
            normalize_key_path(3)  # type: ignore[arg-type]

    def test_format(self) -> None:
        """Test formatting key paths for messages."""
        assert format_key_path("id") == "id"
        assert format_key_path(("a", "b.c")) == "[a, b.c]"
        assert format_key_path(None) == "undefined"


class TestResolve:
    """Tests for resolve() and path_exists()."""

    def test_nested_path(self) -> None:
        """Test resolving a nested path."""
        shape = to_value_type({"a": {"b": {"c": pl.Int64}}})
        assert resolve(shape, "a.b.c") == NUMBER

    def test_missing_nested_field(self) -> None:
        """Test resolving a missing field."""
        shape = to_value_type({"a": pl.Utf8})
        assert resolve(shape, "a.x") is UNRESOLVABLE
        assert resolve(shape, "b") is UNRESOLVABLE

    def test_composite_resolves_against_original_shape(self) -> None:
        """Test resolving a composite path."""
        shape = to_value_type({"a": pl.Utf8, "b": {"c": pl.Int64}})
        assert resolve(shape, ("a", "b.c")) == (STRING, NUMBER)

    def test_composite_with_unresolvable_element(self) -> None:
        """Test a composite path with a missing element."""
        shape = to_value_type({"a": pl.Utf8})
        assert resolve(shape, ("a", "missing")) is UNRESOLVABLE

    def test_empty_composite_is_unresolvable(self) -> None:
        """Test resolving an empty composite path."""
        assert resolve(to_value_type({"a": pl.Utf8}), ()) is UNRESOLVABLE

    def test_empty_path_is_the_record(self) -> None:
        """Test that the empty path resolves to the record."""
        assert resolve(STRING, "") == STRING

    def test_optional_field_includes_undefined(self) -> None:
        """Test that optional fields resolve with undefined."""
        shape = to_value_type({"age": optional(pl.Int64)})
        assert resolve(shape, "age") == union_of(NUMBER, UNDEFINED)

    def test_cannot_descend_through_optional_object(self) -> None:
        """Test descending through an optional object."""
        shape = to_value_type({"address": optional({"city": pl.Utf8})})
        assert resolve(shape, "address.city") is UNRESOLVABLE

    def test_union_of_objects(self) -> None:
        """Test resolving through a union of objects."""
        shape = to_value_type(
            one_of(
                {"kind": literal("a"), "id": pl.Utf8},
                {"kind": literal("b"), "id": pl.Int64},
            )
        )
        assert resolve(shape, "id") == union_of(STRING, NUMBER)
        assert resolve(shape, "kind") == union_of(LiteralType("a"), LiteralType("b"))

    def test_union_member_without_field(self) -> None:
        """Test a union member that lacks the field."""
        shape = to_value_type(one_of({"id": pl.Utf8}, {"other": pl.Utf8}))
        assert resolve(shape, "id") is UNRESOLVABLE

    def test_path_exists(self) -> None:
        """Test path_exists."""
        shape = to_value_type({"meta": {"flags": pl.List(pl.Boolean)}})
        assert path_exists(shape, "meta.flags")
        assert path_exists(shape, "meta")
        assert not path_exists(shape, "meta.other")


class TestKeyTypes:
    """Tests for valid key and compatibility predicates."""

    @pytest.mark.parametrize(
        "value_type",
        [STRING, NUMBER, DATE, ArrayOf(STRING), ArrayOf(ArrayOf(NUMBER)), LiteralType("x"),
         LiteralType(1), union_of(STRING, NUMBER), (STRING, NUMBER)],
    )
    def test_valid_keys(self, value_type: object) -> None:
        """Test types accepted as keys."""
        assert is_valid_key_type(value_type)

    @pytest.mark.parametrize(
        "value_type",
        [BOOLEAN, UNDEFINED, UNKNOWN, ObjectShape(), ArrayOf(ObjectShape()), LiteralType(True),
         union_of(STRING, UNDEFINED), UNRESOLVABLE, ()],
    )
    def test_invalid_keys(self, value_type: object) -> None:
        """Test types rejected as keys."""
        assert not is_valid_key_type(value_type)

    def test_number_compatible(self) -> None:
        """Test number compatibility."""
        assert is_number_compatible(NUMBER)
        assert is_number_compatible(LiteralType(1))
        assert is_number_compatible(union_of(NUMBER, STRING))
        assert not is_number_compatible(STRING)
        assert not is_number_compatible((NUMBER,))

    def test_multi_entry_compatible(self) -> None:
        """Test multiEntry compatibility."""
        assert is_multi_entry_compatible(ArrayOf(STRING))
        assert is_multi_entry_compatible(STRING)
        assert is_multi_entry_compatible(union_of(STRING, ArrayOf(STRING)))
        assert not is_multi_entry_compatible(ArrayOf(ObjectShape()))


class TestDiagnosePrimaryKey:
    """Tests for primary key diagnostics."""

    def test_out_of_line_is_fine(self) -> None:
        """Test that out-of-line keys have no issue."""
        assert diagnose_primary_key(STRING, None) is None
        assert diagnose_primary_key(STRING, None, auto_increment=True) is None

    def test_composite_with_auto_increment(self) -> None:
        """Test a composite key with autoIncrement."""
        shape = to_value_type({"a": pl.Int64, "b": pl.Int64})
        issue = diagnose_primary_key(shape, ("a", "b"), auto_increment=True)
        assert issue is not None
        assert issue.kind is IssueKind.AUTO_INCREMENT

    def test_unresolvable_path(self) -> None:
        """Test a primary key path that does not resolve."""
        issue = diagnose_primary_key(to_value_type({"id": pl.Utf8}), "uid")
        assert issue is not None
        assert issue.kind is IssueKind.INVALID_PATH
        assert "'uid'" in issue.message

    def test_invalid_key_type_message(self) -> None:
        """Test the message for an invalid key type."""
        issue = diagnose_primary_key(to_value_type({"id": pl.Boolean}), "id")
        assert issue is not None
        assert issue.kind is IssueKind.INVALID_PATH
        assert "'id' resolves to 'boolean'" in issue.message

    def test_auto_increment_accepts_optional_number(self) -> None:
        """Test autoIncrement with an optional number key."""
        shape = to_value_type({"id": optional(pl.Int64)})
        assert diagnose_primary_key(shape, "id", auto_increment=True) is None

    def test_optional_key_without_auto_increment(self) -> None:
        """Test an optional key without autoIncrement."""
        shape = to_value_type({"id": optional(pl.Int64)})
        issue = diagnose_primary_key(shape, "id")
        assert issue is not None
        assert issue.kind is IssueKind.INVALID_PATH

    def test_auto_increment_rejects_string(self) -> None:
        """Test autoIncrement with a string key."""
        issue = diagnose_primary_key(to_value_type({"id": pl.Utf8}), "id", auto_increment=True)
        assert issue is not None
        assert issue.kind is IssueKind.AUTO_INCREMENT
        assert "resolves to string" in issue.message


class TestDiagnoseIndexKeyPath:
    """Tests for index key path diagnostics."""

    def test_plain_index(self) -> None:
        """Test a plain index over a string field."""
        shape = to_value_type({"email": pl.Utf8})
        assert diagnose_index_key_path(shape, "email") is None

    def test_plain_index_over_array_of_keys(self) -> None:
        """Test a plain index over an array of keys."""
        shape = to_value_type({"tags": pl.List(pl.Utf8)})
        assert diagnose_index_key_path(shape, "tags") is None

    def test_plain_index_invalid_key(self) -> None:
        """Test a plain index over an object field."""
        shape = to_value_type({"address": {"city": pl.Utf8}})
        issue = diagnose_index_key_path(shape, "address")
        assert issue is not None
        assert issue.kind is IssueKind.INVALID_PATH
        assert issue.message == "keyPath 'address' resolves to 'object', which is not a valid key"

    def test_missing_path(self) -> None:
        """Test an index over a missing path."""
        issue = diagnose_index_key_path(to_value_type({"a": pl.Utf8}), "b", multi_entry=True)
        assert issue is not None
        assert issue.message == "keyPath 'b' is not a valid path in the store schema"

    def test_multi_entry_composite(self) -> None:
        """Test multiEntry with a composite key path."""
        shape = to_value_type({"a": pl.Utf8, "b": pl.Utf8})
        issue = diagnose_index_key_path(shape, ("a", "b"), multi_entry=True)
        assert issue is not None
        assert issue.kind is IssueKind.MULTI_ENTRY
        assert issue.message == "multiEntry cannot be used with composite keyPath"

    def test_multi_entry_array_of_objects(self) -> None:
        """Test multiEntry over an array of objects."""
        shape = to_value_type({"tags": pl.List(pl.Struct({"name": pl.Utf8}))})
        issue = diagnose_index_key_path(shape, "tags", multi_entry=True)
        assert issue is not None
        assert issue.kind is IssueKind.MULTI_ENTRY
        assert "has array elements of type 'object'" in issue.message

    def test_multi_entry_non_key(self) -> None:
        """Test multiEntry over a non-key field."""
        shape = to_value_type({"flag": pl.Boolean})
        issue = diagnose_index_key_path(shape, "flag", multi_entry=True)
        assert issue is not None
        assert "must be a valid key or array of valid keys" in issue.message
