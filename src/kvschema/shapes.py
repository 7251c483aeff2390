"""Shape descriptors for store records.

Record shapes are described with the polars type system: a mapping (a plain
``dict`` or a ``pl.Schema``) of field names to polars dtypes, with
``pl.Struct`` for nested objects and ``pl.List`` / ``pl.Array`` for arrays.
A few helpers cover what polars dtypes cannot say on their own:

- :func:`optional` marks a field that may be absent,
- :func:`literal` pins a field to one value,
- :func:`one_of` describes a union,
- :data:`~kvschema.types.NEVER` deletes a field inside an update delta.

Example:
    >>> import polars as pl
    >>> from kvschema.shapes import optional, to_value_type
    >>> user = to_value_type({
    ...     "id": pl.Utf8,
    ...     "age": optional(pl.Int64),
    ...     "address": pl.Struct({"city": pl.Utf8}),
    ...     "tags": pl.List(pl.Utf8),
    ... })
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import polars as pl

from kvschema.types import (
    BINARY,
    BOOLEAN,
    DATE,
    NEVER,
    NULL,
    NUMBER,
    STRING,
    UNDEFINED,
    UNKNOWN,
    ArrayOf,
    Field,
    LiteralType,
    ObjectShape,
    Primitive,
    UnionType,
    ValueType,
    union_of,
)

logger = logging.getLogger(__name__)


class ShapeError(TypeError):
    """Raised when a shape descriptor cannot be understood."""

    def __init__(self, descriptor: Any, reason: str = "unsupported shape descriptor") -> None:
        self.descriptor = descriptor
        super().__init__(f"{reason}: {descriptor!r}")


# =============================================================================
# Descriptor helpers
# =============================================================================


@dataclass(frozen=True)
class OptionalField:
    """Wraps a descriptor whose field may be absent from a record."""

    descriptor: Any


@dataclass(frozen=True)
class _Union:
    descriptors: tuple[Any, ...]


@dataclass(frozen=True)
class _Array:
    descriptor: Any


def optional(descriptor: Any) -> OptionalField:
    """Mark a field as optional (allowed to be absent)."""
    return OptionalField(descriptor)


def literal(value: str | int | float | bool) -> LiteralType:
    """Describe a field that always holds ``value``."""
    return LiteralType(value)


def one_of(*descriptors: Any) -> _Union:
    """Describe a value that matches any of ``descriptors``."""
    if len(descriptors) < 2:
        raise ShapeError(descriptors, "one_of() needs at least two members")
    return _Union(descriptors)


def array_of(descriptor: Any) -> _Array:
    """Describe an array of ``descriptor`` elements.

    Equivalent to ``pl.List(dtype)`` but also accepts mappings and helpers.
    """
    return _Array(descriptor)


# =============================================================================
# Polars dtype mapping
# =============================================================================

_NUMERIC_DTYPES = {
    "Int8", "Int16", "Int32", "Int64", "Int128",
    "UInt8", "UInt16", "UInt32", "UInt64", "UInt128",
    "Float32", "Float64", "Decimal",
}

_SIMPLE_DTYPES: dict[str, Primitive] = {
    "String": STRING,
    "Utf8": STRING,
    "Categorical": STRING,
    "Enum": STRING,
    "Boolean": BOOLEAN,
    "Date": DATE,
    "Datetime": DATE,
    "Binary": BINARY,
    "Null": NULL,
    "Object": UNKNOWN,
}

_BUILTIN_TYPES: dict[Any, Primitive] = {
    str: STRING,
    int: NUMBER,
    float: NUMBER,
    bool: BOOLEAN,
    bytes: BINARY,
    bytearray: BINARY,
    date: DATE,
    datetime: DATE,
    type(None): NULL,
}


def is_polars_dtype(obj: Any) -> bool:
    """Check whether ``obj`` is a polars dtype class or instance."""
    if isinstance(obj, pl.DataType):
        return True
    return isinstance(obj, type) and issubclass(obj, pl.DataType)


def _from_polars(dtype: Any) -> ValueType:
    is_class = isinstance(dtype, type)
    name = dtype.__name__ if is_class else type(dtype).__name__

    if name in _NUMERIC_DTYPES:
        return NUMBER
    if name in _SIMPLE_DTYPES:
        return _SIMPLE_DTYPES[name]

    if name in ("List", "Array"):
        if is_class:
            return ArrayOf(UNKNOWN)
        return ArrayOf(_from_polars(dtype.inner))

    if name == "Struct":
        if is_class:
            return ObjectShape()
        return ObjectShape(
            tuple((f.name, Field(_from_polars(f.dtype))) for f in dtype.fields)
        )

    raise ShapeError(dtype, "polars dtype has no key-value equivalent")


# =============================================================================
# Conversion
# =============================================================================


def to_value_type(descriptor: Any) -> ValueType:
    """Normalise a shape descriptor into a value type.

    Args:
        descriptor: A polars dtype, a mapping of field descriptors, a python
            builtin type, a helper result or an existing value type.

    Returns:
        The equivalent value type.

    Raises:
        ShapeError: If the descriptor is not understood.
    """
    return _convert(descriptor, allow_never=False)


def to_shape_delta(descriptor: Any) -> ValueType:
    """Normalise an update delta, where fields may be set to ``NEVER``."""
    if descriptor is NEVER:
        raise ShapeError(descriptor, "a schema update cannot remove the whole record")
    return _convert(descriptor, allow_never=True)


def _convert(descriptor: Any, allow_never: bool) -> ValueType:
    if isinstance(descriptor, (Primitive, LiteralType, ArrayOf, ObjectShape, UnionType)):
        return descriptor

    if isinstance(descriptor, OptionalField):
        return union_of(_convert(descriptor.descriptor, allow_never), UNDEFINED)

    if isinstance(descriptor, _Union):
        return union_of(*(_convert(d, allow_never) for d in descriptor.descriptors))

    if isinstance(descriptor, _Array):
        return ArrayOf(_convert(descriptor.descriptor, allow_never=False))

    if is_polars_dtype(descriptor):
        return _from_polars(descriptor)

    if isinstance(descriptor, Mapping):
        fields: list[tuple[str, Field]] = []
        for name, value in descriptor.items():
            if not isinstance(name, str):
                raise ShapeError(descriptor, "field names must be strings")
            if value is NEVER:
                if not allow_never:
                    raise ShapeError(descriptor, "NEVER is only allowed in schema updates")
                fields.append((name, Field(NEVER)))  # type: ignore[arg-type]
            elif isinstance(value, OptionalField):
                fields.append((name, Field(_convert(value.descriptor, allow_never), optional=True)))
            else:
                fields.append((name, Field(_convert(value, allow_never))))
        return ObjectShape(tuple(fields))

    if isinstance(descriptor, type) and descriptor in _BUILTIN_TYPES:
        return _BUILTIN_TYPES[descriptor]

    raise ShapeError(descriptor)


def shape_from_frame(frame: pl.DataFrame | pl.LazyFrame) -> ObjectShape:
    """Derive a record shape from a polars frame.

    With an eager ``DataFrame``, columns that contain nulls become optional
    fields. A ``LazyFrame`` only carries its schema, so all fields are
    required.
    """
    if isinstance(frame, pl.LazyFrame):
        schema = frame.collect_schema()
        nullable: set[str] = set()
    elif isinstance(frame, pl.DataFrame):
        schema = frame.schema
        nullable = {name for name in frame.columns if frame.get_column(name).null_count() > 0}
    else:
        raise ShapeError(frame, "expected a polars DataFrame or LazyFrame")

    fields = tuple(
        (name, Field(_from_polars(dtype), optional=name in nullable))
        for name, dtype in schema.items()
    )
    logger.debug(f"Derived shape with {len(fields)} fields from frame")
    return ObjectShape(fields)


# =============================================================================
# Merging and compatibility
# =============================================================================


def deep_merge(base: ValueType, update: ValueType) -> ValueType:
    """Deep-merge an update delta into a shape.

    - fields set to ``NEVER`` are removed,
    - nested objects are merged field by field,
    - arrays and primitives are replaced entirely,
    - the delta decides each merged field's optionality,
    - unions in the base are merged member by member.
    """
    if isinstance(base, UnionType):
        return union_of(*(deep_merge(member, update) for member in base.members))
    if isinstance(base, ObjectShape) and isinstance(update, ObjectShape):
        return _merge_objects(base, update)
    return _strip_never(update)


def _merge_objects(base: ObjectShape, update: ObjectShape) -> ObjectShape:
    merged = base.as_dict()
    for name, update_field in update.fields:
        if update_field.type is NEVER:
            merged.pop(name, None)
            continue
        existing = merged.get(name)
        if existing is None:
            merged[name] = Field(_strip_never(update_field.type), update_field.optional)
        else:
            merged[name] = Field(deep_merge(existing.type, update_field.type), update_field.optional)
    return ObjectShape.of(merged)


def _strip_never(value_type: ValueType) -> ValueType:
    if isinstance(value_type, ObjectShape):
        return ObjectShape(
            tuple(
                (name, Field(_strip_never(f.type), f.optional))
                for name, f in value_type.fields
                if f.type is not NEVER
            )
        )
    return value_type


def is_assignable(source: ValueType, target: ValueType) -> bool:
    """Check whether every value of ``source`` is also a value of ``target``.

    Objects are compared structurally: extra fields in ``source`` are fine,
    a field missing from ``source`` must be optional in ``target``.
    """
    if source == target or target == UNKNOWN:
        return True
    if isinstance(source, UnionType):
        return all(is_assignable(member, target) for member in source.members)
    if isinstance(target, UnionType):
        return any(is_assignable(source, member) for member in target.members)
    if source == UNKNOWN:
        return False
    if isinstance(source, LiteralType):
        return is_assignable(source.base, target)
    if isinstance(source, ArrayOf) and isinstance(target, ArrayOf):
        return is_assignable(source.element, target.element)
    if isinstance(source, ObjectShape) and isinstance(target, ObjectShape):
        for name, target_field in target.fields:
            source_field = source.get(name)
            if source_field is None:
                if not target_field.optional:
                    return False
                continue
            if not is_assignable(source_field.effective_type, target_field.effective_type):
                return False
        return True
    return False
