"""Migration actions handed to a storage executor.

Each structural operation produces one action. ``UpdateSchemaAction`` is a
marker only: it records a schema refinement for replay but carries nothing
for the executor to do, so it is excluded from a step's runtime actions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Union

from kvschema.keypath import KeyPath
from kvschema.types import ValueType, type_name

TransformFunc = Callable[[Any], Any]


def _key_path_value(key_path: KeyPath | None) -> Any:
    if isinstance(key_path, tuple):
        return list(key_path)
    return key_path


@dataclass(frozen=True)
class CreateStoreAction:
    """Create a store.

    ``value_shape`` is not needed by an executor; it keeps the action log
    self-describing so it can be replayed against an empty model.
    """

    action: ClassVar[str] = "create-store"
    runtime: ClassVar[bool] = True

    store_name: str
    key_path: KeyPath | None = None
    auto_increment: bool = False
    value_shape: ValueType | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "store_name": self.store_name,
            "key_path": _key_path_value(self.key_path),
            "auto_increment": self.auto_increment,
        }


@dataclass(frozen=True)
class DeleteStoreAction:
    action: ClassVar[str] = "delete-store"
    runtime: ClassVar[bool] = True

    store_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "store_name": self.store_name}


@dataclass(frozen=True)
class RenameStoreAction:
    action: ClassVar[str] = "rename-store"
    runtime: ClassVar[bool] = True

    old_name: str
    new_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "old_name": self.old_name, "new_name": self.new_name}


@dataclass(frozen=True)
class CreateIndexAction:
    action: ClassVar[str] = "create-index"
    runtime: ClassVar[bool] = True

    store_name: str
    index_name: str
    key_path: KeyPath
    multi_entry: bool = False
    unique: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "store_name": self.store_name,
            "index_name": self.index_name,
            "key_path": _key_path_value(self.key_path),
            "multi_entry": self.multi_entry,
            "unique": self.unique,
        }


@dataclass(frozen=True)
class DeleteIndexAction:
    action: ClassVar[str] = "delete-index"
    runtime: ClassVar[bool] = True

    store_name: str
    index_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "store_name": self.store_name, "index_name": self.index_name}


@dataclass(frozen=True)
class RenameIndexAction:
    action: ClassVar[str] = "rename-index"
    runtime: ClassVar[bool] = True

    store_name: str
    old_index_name: str
    new_index_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "store_name": self.store_name,
            "old_index_name": self.old_index_name,
            "new_index_name": self.new_index_name,
        }


@dataclass(frozen=True)
class TransformStoreAction:
    """Rewrite every record of a store with ``transform``.

    The callable is opaque to the planner; only ``value_shape`` (the shape
    the transform produces) takes part in validation.
    """

    action: ClassVar[str] = "transform-store"
    runtime: ClassVar[bool] = True

    store_name: str
    transform: TransformFunc = field(compare=False)
    value_shape: ValueType | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        name = getattr(self.transform, "__qualname__", None) or repr(self.transform)
        return {"action": self.action, "store_name": self.store_name, "transform": name}


@dataclass(frozen=True)
class UpdateSchemaAction:
    action: ClassVar[str] = "update-schema"
    runtime: ClassVar[bool] = False

    store_name: str
    shape_delta: ValueType = field(compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "store_name": self.store_name,
            "delta_type": type_name(self.shape_delta),
        }


MigrationAction = Union[
    CreateStoreAction,
    DeleteStoreAction,
    RenameStoreAction,
    CreateIndexAction,
    DeleteIndexAction,
    RenameIndexAction,
    TransformStoreAction,
    UpdateSchemaAction,
]
