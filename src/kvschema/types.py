"""Type definitions for kvschema.

Record shapes are normalised into a small, immutable value-type model. Key
paths are resolved against it and every schema rule is expressed in terms of
it, so the rest of the package never has to look at the original shape
descriptor (see :mod:`kvschema.shapes`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Union


class TypeKind(str, Enum):
    """Kinds of primitive value types."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "Date"
    BINARY = "binary"
    NULL = "null"
    UNDEFINED = "undefined"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Primitive:
    """A primitive value type."""

    kind: TypeKind

    def __repr__(self) -> str:
        return f"Primitive({self.kind.value})"


@dataclass(frozen=True)
class LiteralType:
    """A single literal value (``"active"``, ``3``, ``True``)."""

    value: str | int | float | bool

    @property
    def base(self) -> Primitive:
        """The primitive type the literal widens to."""
        if isinstance(self.value, bool):
            return BOOLEAN
        if isinstance(self.value, str):
            return STRING
        return NUMBER


@dataclass(frozen=True)
class ArrayOf:
    """An array whose elements all share one type."""

    element: "ValueType"


@dataclass(frozen=True)
class Field:
    """A named member of an object shape."""

    type: "ValueType"
    optional: bool = False

    @property
    def effective_type(self) -> "ValueType":
        """Field type as seen by a reader, ``undefined`` included if optional."""
        if self.optional:
            return union_of(self.type, UNDEFINED)
        return self.type


@dataclass(frozen=True)
class ObjectShape:
    """A nested object: an ordered set of named fields."""

    fields: tuple[tuple[str, Field], ...] = ()

    @classmethod
    def of(cls, fields: dict[str, Field]) -> "ObjectShape":
        return cls(tuple(fields.items()))

    def get(self, name: str) -> Field | None:
        for key, value in self.fields:
            if key == name:
                return value
        return None

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self.fields)

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self.fields)

    def as_dict(self) -> dict[str, Field]:
        return dict(self.fields)


@dataclass(frozen=True)
class UnionType:
    """A union of two or more distinct value types."""

    members: tuple["ValueType", ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator["ValueType"]:
        return iter(self.members)


ValueType = Union[Primitive, LiteralType, ArrayOf, ObjectShape, UnionType]


class _Unresolvable:
    """Marker for a key path that does not lead anywhere in a shape."""

    _instance: "_Unresolvable | None" = None

    def __new__(cls) -> "_Unresolvable":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVABLE"

    def __bool__(self) -> bool:
        return False


class _Never:
    """Field marker used in schema update deltas to delete a field."""

    _instance: "_Never | None" = None

    def __new__(cls) -> "_Never":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NEVER"


UNRESOLVABLE = _Unresolvable()
NEVER = _Never()

STRING = Primitive(TypeKind.STRING)
NUMBER = Primitive(TypeKind.NUMBER)
BOOLEAN = Primitive(TypeKind.BOOLEAN)
DATE = Primitive(TypeKind.DATE)
BINARY = Primitive(TypeKind.BINARY)
NULL = Primitive(TypeKind.NULL)
UNDEFINED = Primitive(TypeKind.UNDEFINED)
UNKNOWN = Primitive(TypeKind.UNKNOWN)


def union_of(*types: ValueType) -> ValueType:
    """Build a flattened, de-duplicated union.

    A single remaining member is returned as-is rather than wrapped.
    """
    members: list[ValueType] = []
    for value_type in types:
        candidates = value_type.members if isinstance(value_type, UnionType) else (value_type,)
        for candidate in candidates:
            if candidate not in members:
                members.append(candidate)
    if len(members) == 1:
        return members[0]
    return UnionType(tuple(members))


def without_undefined(value_type: ValueType) -> ValueType:
    """Strip ``undefined`` from a union (an optional field's declared type)."""
    if isinstance(value_type, UnionType):
        rest = [m for m in value_type.members if m != UNDEFINED]
        if not rest:
            return UNDEFINED
        return union_of(*rest)
    return value_type


def includes_undefined(value_type: ValueType) -> bool:
    """True for ``undefined`` itself or a union that has it as a member."""
    if isinstance(value_type, UnionType):
        return UNDEFINED in value_type.members
    return value_type == UNDEFINED


def type_name(value_type: object) -> str:
    """Human readable name of a value type, used in error messages."""
    if isinstance(value_type, Primitive):
        return value_type.kind.value
    if isinstance(value_type, LiteralType):
        return value_type.base.kind.value
    if isinstance(value_type, ArrayOf):
        return "Array"
    if isinstance(value_type, ObjectShape):
        return "object"
    if isinstance(value_type, UnionType):
        names: list[str] = []
        for member in value_type.members:
            name = type_name(member)
            if name not in names:
                names.append(name)
        return " | ".join(names)
    if isinstance(value_type, tuple):
        return "[" + ", ".join(type_name(t) for t in value_type) + "]"
    if value_type is UNRESOLVABLE:
        return "unresolvable"
    return "unknown"
