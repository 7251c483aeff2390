"""Key path resolution against record shapes.

A key path is one of:

- ``""`` - the record itself is the key,
- ``"a.b.c"`` - a dotted path selecting a nested field,
- ``("a", "b.c")`` - a composite key, each element resolved independently
  against the original shape.

``None`` stands for out-of-line keys (no key path at all).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence, Union

from kvschema.shapes import is_assignable
from kvschema.types import (
    NUMBER,
    UNRESOLVABLE,
    ArrayOf,
    LiteralType,
    ObjectShape,
    Primitive,
    TypeKind,
    UnionType,
    ValueType,
    type_name,
    union_of,
    without_undefined,
)

KeyPath = Union[str, tuple[str, ...]]

_KEY_KINDS = {TypeKind.STRING, TypeKind.NUMBER, TypeKind.DATE, TypeKind.BINARY}

_VALID_KEYS_HINT = "string, number, Date, binary, or array of these"


def normalize_key_path(path: str | Sequence[str] | None) -> KeyPath | None:
    """Normalise a user supplied key path; lists become tuples."""
    if path is None or isinstance(path, str):
        return path
    if isinstance(path, (list, tuple)):
        for element in path:
            if not isinstance(element, str):
                raise TypeError(f"Key path elements must be strings, got {element!r}")
        return tuple(path)
    raise TypeError(f"Key path must be a string or a sequence of strings, got {path!r}")


def format_key_path(path: KeyPath | None) -> str:
    """Render a key path for messages: ``id``, ``[a, b.c]`` or ``undefined``."""
    if path is None:
        return "undefined"
    if isinstance(path, tuple):
        return "[" + ", ".join(path) + "]"
    return path


def is_composite(path: KeyPath | None) -> bool:
    return isinstance(path, tuple)


# =============================================================================
# Resolution
# =============================================================================


def resolve(shape: ValueType, path: KeyPath) -> Any:
    """Resolve ``path`` against ``shape``.

    Returns:
        The value type the path points to, a tuple of value types for a
        composite path, or ``UNRESOLVABLE``.
    """
    if isinstance(path, tuple):
        if not path:
            return UNRESOLVABLE
        resolved = tuple(_resolve_single(shape, element) for element in path)
        if any(r is UNRESOLVABLE for r in resolved):
            return UNRESOLVABLE
        return resolved
    return _resolve_single(shape, path)


def _resolve_single(shape: ValueType, path: str) -> Any:
    if path == "":
        return shape
    current: Any = shape
    for segment in path.split("."):
        current = _descend(current, segment)
        if current is UNRESOLVABLE:
            return UNRESOLVABLE
    return current


def _descend(value_type: ValueType, segment: str) -> Any:
    if isinstance(value_type, ObjectShape):
        found = value_type.get(segment)
        if found is None:
            return UNRESOLVABLE
        return found.effective_type
    if isinstance(value_type, UnionType):
        results = [_descend(member, segment) for member in value_type.members]
        if any(r is UNRESOLVABLE for r in results):
            return UNRESOLVABLE
        return union_of(*results)
    return UNRESOLVABLE


def path_exists(shape: ValueType, path: KeyPath) -> bool:
    """Existence-only check; the value found need not be a valid key."""
    return resolve(shape, path) is not UNRESOLVABLE


# =============================================================================
# Key type predicates
# =============================================================================


def is_valid_key_type(value_type: Any) -> bool:
    """Check that every value of ``value_type`` is usable as a storage key."""
    if isinstance(value_type, tuple):
        return bool(value_type) and all(is_valid_key_type(t) for t in value_type)
    if isinstance(value_type, Primitive):
        return value_type.kind in _KEY_KINDS
    if isinstance(value_type, LiteralType):
        return not isinstance(value_type.value, bool)
    if isinstance(value_type, ArrayOf):
        return is_valid_key_type(value_type.element)
    if isinstance(value_type, UnionType):
        return all(is_valid_key_type(m) for m in value_type.members)
    return False


def is_number_compatible(value_type: Any) -> bool:
    """Check whether a generated numeric key fits ``value_type``."""
    if isinstance(value_type, tuple) or value_type is UNRESOLVABLE:
        return False
    return is_assignable(NUMBER, value_type) or is_assignable(value_type, NUMBER)


def is_multi_entry_compatible(value_type: Any) -> bool:
    """A single valid key, or an array whose elements are valid keys."""
    if is_valid_key_type(value_type):
        return True
    if isinstance(value_type, UnionType):
        return all(is_multi_entry_compatible(m) for m in value_type.members)
    return False


# =============================================================================
# Diagnostics
# =============================================================================


class IssueKind(str, Enum):
    """Kinds of key path problems."""

    INVALID_PATH = "invalid_path"
    AUTO_INCREMENT = "auto_increment"
    MULTI_ENTRY = "multi_entry"


@dataclass(frozen=True)
class KeyPathIssue:
    """A key path problem found against a given shape."""

    kind: IssueKind
    message: str
    key_path: KeyPath | None
    resolved: Any = UNRESOLVABLE


def diagnose_primary_key(
    shape: ValueType,
    key_path: KeyPath | None,
    auto_increment: bool = False,
) -> KeyPathIssue | None:
    """Check a store's primary key configuration against ``shape``.

    Returns:
        ``None`` when the configuration is valid, otherwise the first issue.
    """
    if key_path is None:
        return None

    label = format_key_path(key_path)

    if auto_increment and is_composite(key_path):
        return KeyPathIssue(
            IssueKind.AUTO_INCREMENT,
            "autoIncrement cannot be used with composite (array) primary keys",
            key_path,
        )

    resolved = resolve(shape, key_path)
    if resolved is UNRESOLVABLE:
        return KeyPathIssue(
            IssueKind.INVALID_PATH,
            f"Primary key '{label}' is not a valid path in the schema",
            key_path,
        )

    candidate = without_undefined(resolved) if auto_increment else resolved
    if not is_valid_key_type(candidate):
        return KeyPathIssue(
            IssueKind.INVALID_PATH,
            f"Primary key '{label}' resolves to '{type_name(resolved)}', "
            f"but must be a valid key ({_VALID_KEYS_HINT})",
            key_path,
            resolved,
        )

    if auto_increment and not is_number_compatible(candidate):
        return KeyPathIssue(
            IssueKind.AUTO_INCREMENT,
            f"autoIncrement requires primaryKey to resolve to number, "
            f"but '{label}' resolves to {type_name(resolved)}",
            key_path,
            resolved,
        )

    return None


def diagnose_index_key_path(
    shape: ValueType,
    key_path: KeyPath,
    multi_entry: bool = False,
) -> KeyPathIssue | None:
    """Check an index key path against ``shape``."""
    label = format_key_path(key_path)

    if multi_entry and is_composite(key_path):
        return KeyPathIssue(
            IssueKind.MULTI_ENTRY,
            "multiEntry cannot be used with composite keyPath",
            key_path,
        )

    resolved = resolve(shape, key_path)
    if resolved is UNRESOLVABLE:
        return KeyPathIssue(
            IssueKind.INVALID_PATH,
            f"keyPath '{label}' is not a valid path in the store schema",
            key_path,
        )

    if multi_entry:
        if is_multi_entry_compatible(resolved):
            return None
        if isinstance(resolved, ArrayOf):
            return KeyPathIssue(
                IssueKind.MULTI_ENTRY,
                f"multiEntry index '{label}' has array elements of type "
                f"'{type_name(resolved.element)}', but elements must be valid keys "
                f"({_VALID_KEYS_HINT})",
                key_path,
                resolved,
            )
        return KeyPathIssue(
            IssueKind.MULTI_ENTRY,
            f"multiEntry index '{label}' resolves to '{type_name(resolved)}', "
            f"but must be a valid key or array of valid keys",
            key_path,
            resolved,
        )

    if not is_valid_key_type(resolved):
        return KeyPathIssue(
            IssueKind.INVALID_PATH,
            f"keyPath '{label}' resolves to '{type_name(resolved)}', which is not a valid key",
            key_path,
            resolved,
        )
    return None
