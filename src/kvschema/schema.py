"""Schema model for key-value stores.

A :class:`SchemaModel` is an immutable snapshot of every store known at one
point of a migration plan. Every change produces a new model; the previous
one stays valid and untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from kvschema.keypath import KeyPath, format_key_path, resolve
from kvschema.types import NUMBER, UNKNOWN, ValueType, type_name


def _frozen(mapping: Mapping[str, Any] | None = None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class IndexDescriptor:
    """Schema definition for a single index."""

    key_path: KeyPath
    multi_entry: bool = False
    unique: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "key_path": list(self.key_path) if isinstance(self.key_path, tuple) else self.key_path,
            "multi_entry": self.multi_entry,
            "unique": self.unique,
        }


@dataclass(frozen=True)
class StoreDescriptor:
    """Schema definition for a single store.

    Attributes:
        value_shape: Value type of the records held by the store.
        primary_key_path: In-line key path, or None for out-of-line keys.
        auto_increment: Whether the store generates numeric keys.
        indexes: Index name -> index descriptor (read-only mapping).
    """

    value_shape: ValueType
    primary_key_path: KeyPath | None = None
    auto_increment: bool = False
    indexes: Mapping[str, IndexDescriptor] = field(default_factory=_frozen)

    def __post_init__(self) -> None:
        if not isinstance(self.indexes, MappingProxyType):
            object.__setattr__(self, "indexes", _frozen(self.indexes))

    @property
    def key_type(self) -> Any:
        """Type of the store's keys.

        Out-of-line keys are numbers when generated, any valid key otherwise.
        """
        if self.primary_key_path is None:
            return NUMBER if self.auto_increment else UNKNOWN
        return resolve(self.value_shape, self.primary_key_path)

    def with_shape(self, value_shape: ValueType) -> "StoreDescriptor":
        return replace(self, value_shape=value_shape)

    def with_index(self, name: str, index: IndexDescriptor) -> "StoreDescriptor":
        indexes = dict(self.indexes)
        indexes[name] = index
        return replace(self, indexes=_frozen(indexes))

    def without_index(self, name: str) -> "StoreDescriptor":
        indexes = {k: v for k, v in self.indexes.items() if k != name}
        return replace(self, indexes=_frozen(indexes))

    def with_index_renamed(self, old_name: str, new_name: str) -> "StoreDescriptor":
        indexes = {(new_name if k == old_name else k): v for k, v in self.indexes.items()}
        return replace(self, indexes=_frozen(indexes))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "value_type": type_name(self.value_shape),
            "primary_key_path": format_key_path(self.primary_key_path)
            if self.primary_key_path is not None
            else None,
            "auto_increment": self.auto_increment,
            "indexes": {name: index.to_dict() for name, index in self.indexes.items()},
        }


@dataclass(frozen=True)
class SchemaModel:
    """Complete schema: store name -> store descriptor."""

    stores: Mapping[str, StoreDescriptor] = field(default_factory=_frozen)

    def __post_init__(self) -> None:
        if not isinstance(self.stores, MappingProxyType):
            object.__setattr__(self, "stores", _frozen(self.stores))

    @classmethod
    def empty(cls) -> "SchemaModel":
        return cls()

    def __getitem__(self, name: str) -> StoreDescriptor:
        """Get store descriptor by name."""
        return self.stores[name]

    def __contains__(self, name: object) -> bool:
        """Check if a store exists in the schema."""
        return name in self.stores

    def __iter__(self) -> Iterator[str]:
        """Iterate over store names."""
        return iter(self.stores)

    def __len__(self) -> int:
        return len(self.stores)

    def get(self, name: str) -> StoreDescriptor | None:
        return self.stores.get(name)

    def get_store_names(self) -> list[str]:
        """Get list of store names."""
        return list(self.stores.keys())

    def with_store(self, name: str, store: StoreDescriptor) -> "SchemaModel":
        """Return a model where ``name`` maps to ``store`` (added or replaced)."""
        stores = dict(self.stores)
        stores[name] = store
        return SchemaModel(_frozen(stores))

    def without_store(self, name: str) -> "SchemaModel":
        return SchemaModel(_frozen({k: v for k, v in self.stores.items() if k != name}))

    def with_store_renamed(self, old_name: str, new_name: str) -> "SchemaModel":
        """Move a store to a new name, keeping its position and descriptor."""
        stores = {(new_name if k == old_name else k): v for k, v in self.stores.items()}
        return SchemaModel(_frozen(stores))

    def to_dict(self) -> dict[str, Any]:
        """Convert schema to dictionary."""
        return {name: store.to_dict() for name, store in self.stores.items()}
