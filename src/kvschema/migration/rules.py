"""Validation rules for schema operations.

One pure function per operation kind. Each takes the current
:class:`~kvschema.schema.SchemaModel` plus the operation arguments and
returns an :class:`Outcome` holding the new model and the action to record,
or raises a :class:`~kvschema.migration.base.SchemaRejection`. The input
model is never modified.
"""

from __future__ import annotations

from typing import Any, NamedTuple, Sequence

from kvschema.keypath import (
    IssueKind,
    KeyPath,
    KeyPathIssue,
    diagnose_index_key_path,
    diagnose_primary_key,
    format_key_path,
    normalize_key_path,
    resolve,
)
from kvschema.migration.actions import (
    CreateIndexAction,
    CreateStoreAction,
    DeleteIndexAction,
    DeleteStoreAction,
    MigrationAction,
    RenameIndexAction,
    RenameStoreAction,
    TransformFunc,
    TransformStoreAction,
    UpdateSchemaAction,
)
from kvschema.migration.base import (
    AutoIncrementConstraintError,
    DuplicateNameError,
    IncompatibleSchemaUpdateError,
    InvalidKeyPathError,
    MultiEntryConstraintError,
    SchemaRejection,
    TransformInvalidatesIndexError,
    TransformInvalidatesKeyError,
    UnknownNameError,
)
from kvschema.schema import IndexDescriptor, SchemaModel, StoreDescriptor
from kvschema.shapes import deep_merge, is_assignable, to_shape_delta, to_value_type
from kvschema.types import UNRESOLVABLE, ValueType, includes_undefined, type_name


class Outcome(NamedTuple):
    """Result of an accepted operation.

    ``action`` is None for operations that need no executor work
    (renaming a store or index to its own name).
    """

    model: SchemaModel
    action: MigrationAction | None


_ISSUE_ERRORS: dict[IssueKind, type[SchemaRejection]] = {
    IssueKind.INVALID_PATH: InvalidKeyPathError,
    IssueKind.AUTO_INCREMENT: AutoIncrementConstraintError,
    IssueKind.MULTI_ENTRY: MultiEntryConstraintError,
}


def _reject(operation: str, issue: KeyPathIssue, store_name: str) -> SchemaRejection:
    return _ISSUE_ERRORS[issue.kind](operation, issue.message, store_name)


def _require_store(model: SchemaModel, name: str, operation: str) -> StoreDescriptor:
    store = model.get(name)
    if store is None:
        raise UnknownNameError(operation, name)
    return store


# =============================================================================
# Stores
# =============================================================================


def create_store(
    model: SchemaModel,
    name: str,
    value_shape: Any,
    primary_key: str | Sequence[str] | None = None,
    auto_increment: bool = False,
) -> Outcome:
    """Add a store with no indexes.

    Raises:
        DuplicateNameError: If the store already exists.
        InvalidKeyPathError: If the primary key is not a valid key path.
        AutoIncrementConstraintError: If autoIncrement is combined with a
            composite or non-numeric primary key.
    """
    shape = to_value_type(value_shape)
    key_path = normalize_key_path(primary_key)

    if name in model:
        raise DuplicateNameError("create_store", name)

    issue = diagnose_primary_key(shape, key_path, auto_increment)
    if issue is not None:
        raise _reject("create_store", issue, name)

    store = StoreDescriptor(shape, key_path, auto_increment)
    action = CreateStoreAction(name, key_path, auto_increment, value_shape=shape)
    return Outcome(model.with_store(name, store), action)


def delete_store(model: SchemaModel, name: str) -> Outcome:
    _require_store(model, name, "delete_store")
    return Outcome(model.without_store(name), DeleteStoreAction(name))


def rename_store(
    model: SchemaModel,
    old_name: str,
    new_name: str,
    allow_same_name: bool = True,
) -> Outcome:
    """Move a store, with its indexes and key configuration, to a new name."""
    _require_store(model, old_name, "rename_store")

    if old_name == new_name and allow_same_name:
        return Outcome(model, None)
    if new_name in model:
        raise DuplicateNameError("rename_store", new_name)

    return Outcome(
        model.with_store_renamed(old_name, new_name),
        RenameStoreAction(old_name, new_name),
    )


# =============================================================================
# Indexes
# =============================================================================


def create_index(
    model: SchemaModel,
    store_name: str,
    index_name: str,
    key_path: str | Sequence[str],
    multi_entry: bool = False,
    unique: bool = False,
) -> Outcome:
    """Add an index to an existing store.

    Raises:
        UnknownNameError: If the store does not exist.
        DuplicateNameError: If the index already exists on the store.
        InvalidKeyPathError: If the key path does not resolve to a valid key.
        MultiEntryConstraintError: If a multiEntry key path is composite or
            resolves to neither a key nor an array of keys.
    """
    store = _require_store(model, store_name, "create_index")
    normalized = normalize_key_path(key_path)

    if index_name in store.indexes:
        raise DuplicateNameError("create_index", index_name, store_name, kind="index")

    issue = diagnose_index_key_path(store.value_shape, normalized, multi_entry)
    if issue is not None:
        raise _reject("create_index", issue, store_name)

    index = IndexDescriptor(normalized, multi_entry, unique)
    action = CreateIndexAction(store_name, index_name, normalized, multi_entry, unique)
    return Outcome(model.with_store(store_name, store.with_index(index_name, index)), action)


def delete_index(model: SchemaModel, store_name: str, index_name: str) -> Outcome:
    store = _require_store(model, store_name, "delete_index")
    if index_name not in store.indexes:
        raise UnknownNameError("delete_index", index_name, store_name, kind="index")
    return Outcome(
        model.with_store(store_name, store.without_index(index_name)),
        DeleteIndexAction(store_name, index_name),
    )


def rename_index(
    model: SchemaModel,
    store_name: str,
    old_name: str,
    new_name: str,
    allow_same_name: bool = True,
) -> Outcome:
    store = _require_store(model, store_name, "rename_index")
    if old_name not in store.indexes:
        raise UnknownNameError("rename_index", old_name, store_name, kind="index")

    if old_name == new_name and allow_same_name:
        return Outcome(model, None)
    if new_name in store.indexes:
        raise DuplicateNameError("rename_index", new_name, store_name, kind="index")

    return Outcome(
        model.with_store(store_name, store.with_index_renamed(old_name, new_name)),
        RenameIndexAction(store_name, old_name, new_name),
    )


# =============================================================================
# Record shape changes
# =============================================================================


def _revalidate(
    store: StoreDescriptor,
    new_shape: ValueType,
    operation: str,
    store_name: str,
) -> None:
    """Check that the primary key and every index survive a shape change."""
    prefix = "Transform" if operation == "transform_store" else "Schema update"
    label = format_key_path(store.primary_key_path)

    issue = diagnose_primary_key(new_shape, store.primary_key_path, store.auto_increment)
    if issue is not None:
        if issue.kind is IssueKind.AUTO_INCREMENT:
            detail = (
                f"autoIncrement requires keyPath to resolve to number after "
                f"{prefix.lower()}, but '{label}' resolves to {type_name(issue.resolved)}"
            )
        else:
            detail = (
                f"{prefix} invalidates primaryKey '{label}': "
                "keyPath no longer valid for new value type"
            )
        raise TransformInvalidatesKeyError(operation, detail, store_name)

    for index_name, index in store.indexes.items():
        issue = diagnose_index_key_path(new_shape, index.key_path, index.multi_entry)
        if issue is not None:
            raise TransformInvalidatesIndexError(operation, index_name, store_name, issue.message)


def transform_store(
    model: SchemaModel,
    store_name: str,
    transform: TransformFunc,
    value_shape: Any,
) -> Outcome:
    """Replace a store's record shape with the shape ``transform`` produces.

    The transform is never called here; ``value_shape`` declares its output.

    Raises:
        UnknownNameError: If the store does not exist.
        TransformInvalidatesKeyError: If the primary key no longer resolves.
        TransformInvalidatesIndexError: If an index no longer resolves.
    """
    store = _require_store(model, store_name, "transform_store")
    if not callable(transform):
        raise TypeError(f"transform must be callable, got {transform!r}")

    shape = to_value_type(value_shape)
    _revalidate(store, shape, "transform_store", store_name)

    return Outcome(
        model.with_store(store_name, store.with_shape(shape)),
        TransformStoreAction(store_name, transform, value_shape=shape),
    )


def _check_primary_key_kept(
    key_path: KeyPath,
    old_shape: ValueType,
    merged: ValueType,
    store_name: str,
) -> None:
    elements = key_path if isinstance(key_path, tuple) else (key_path,)
    for element in elements:
        after = resolve(merged, element)
        if after is UNRESOLVABLE:
            raise TransformInvalidatesKeyError(
                "update_schema",
                f"Schema update removes primaryKey '{element}'",
                store_name,
            )
        before = resolve(old_shape, element)
        if includes_undefined(after) and not includes_undefined(before):
            raise TransformInvalidatesKeyError(
                "update_schema",
                f"Schema update makes primaryKey '{element}' optional, which is not allowed",
                store_name,
            )


def update_schema(
    model: SchemaModel,
    store_name: str,
    shape_delta: Any,
    check_compatibility: bool = True,
) -> Outcome:
    """Deep-merge ``shape_delta`` into a store's record shape.

    Nothing is executed at runtime for this operation; it only refines the
    shape used by later checks.

    Raises:
        UnknownNameError: If the store does not exist.
        IncompatibleSchemaUpdateError: If existing records might not
            satisfy the merged shape.
        TransformInvalidatesKeyError: If the primary key is removed, made
            optional, or no longer resolves to a valid key.
        TransformInvalidatesIndexError: If an index no longer resolves.
    """
    store = _require_store(model, store_name, "update_schema")
    delta = to_shape_delta(shape_delta)
    merged = deep_merge(store.value_shape, delta)

    if check_compatibility and not is_assignable(store.value_shape, merged):
        raise IncompatibleSchemaUpdateError(store_name)

    if store.primary_key_path is not None:
        _check_primary_key_kept(store.primary_key_path, store.value_shape, merged, store_name)

    _revalidate(store, merged, "update_schema", store_name)

    return Outcome(
        model.with_store(store_name, store.with_shape(merged)),
        UpdateSchemaAction(store_name, delta),
    )
