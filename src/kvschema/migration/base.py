"""Exceptions and configuration for migration planning.

All errors are raised while a plan is being built, before any action reaches
a storage executor. A rejected operation never changes the schema model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


# =============================================================================
# Exceptions
# =============================================================================


class MigrationError(Exception):
    """Base exception for migration-related errors."""

    pass


class VersionOrderError(MigrationError):
    """Raised when a version is not strictly greater than the previous one."""

    def __init__(self, version: Any, previous: int | None, reason: str = "") -> None:
        self.version = version
        self.previous = previous
        if reason:
            message = reason
        elif previous is None:
            message = f"version must be greater than 0, got {version}"
        else:
            message = (
                f"version {version} must be greater than the previous version {previous}"
            )
        super().__init__(message)


class SchemaRejection(MigrationError):
    """Base class for a rejected schema operation.

    Attributes:
        operation: Operation name (``create_store``, ``create_index``, ...).
        store_name: Store the operation targeted, if any.
        detail: The rejection message without location information.
        operation_index: Position of the operation within its version,
            set by the version builder.
        version: Version the operation belongs to, set by the plan.
    """

    def __init__(self, operation: str, detail: str, store_name: str | None = None) -> None:
        self.operation = operation
        self.detail = detail
        self.store_name = store_name
        self.operation_index: int | None = None
        self.version: int | None = None
        super().__init__(detail)

    def __str__(self) -> str:
        location = []
        if self.version is not None:
            location.append(f"version {self.version}")
        if self.operation_index is not None:
            location.append(f"operation #{self.operation_index}")
        if not location:
            return self.detail
        return f"[{', '.join(location)} {self.operation}] {self.detail}"


class DuplicateNameError(SchemaRejection):
    """Raised when a store or index name is already taken."""

    def __init__(
        self,
        operation: str,
        name: str,
        store_name: str | None = None,
        kind: str = "store",
    ) -> None:
        self.name = name
        self.kind = kind
        if kind == "index":
            detail = f"Index '{name}' already exists on store '{store_name}'"
        else:
            detail = f"Store '{name}' already exists"
        super().__init__(operation, detail, store_name if kind == "index" else name)


class UnknownNameError(SchemaRejection):
    """Raised when an operation references a missing store or index."""

    def __init__(
        self,
        operation: str,
        name: str,
        store_name: str | None = None,
        kind: str = "store",
    ) -> None:
        self.name = name
        self.kind = kind
        if kind == "index":
            detail = f"Index '{name}' does not exist on store '{store_name}'"
        else:
            detail = f"Store '{name}' does not exist"
        super().__init__(operation, detail, store_name if kind == "index" else name)


class InvalidKeyPathError(SchemaRejection):
    """Raised when a key path does not resolve to a valid key type."""

    pass


class AutoIncrementConstraintError(SchemaRejection):
    """Raised when autoIncrement is combined with an incompatible key path."""

    pass


class MultiEntryConstraintError(SchemaRejection):
    """Raised when a multiEntry index key path is not usable."""

    pass


class TransformInvalidatesKeyError(SchemaRejection):
    """Raised when a transform or schema update breaks the primary key."""

    pass


class TransformInvalidatesIndexError(SchemaRejection):
    """Raised when a transform or schema update breaks an index."""

    def __init__(
        self,
        operation: str,
        index_name: str,
        store_name: str,
        reason: str = "",
    ) -> None:
        self.index_name = index_name
        self.reason = reason
        prefix = "Transform" if operation == "transform_store" else "Schema update"
        detail = f"{prefix} invalidates index '{index_name}': keyPath no longer valid for new value type"
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(operation, detail, store_name)


class IncompatibleSchemaUpdateError(SchemaRejection):
    """Raised when existing records may not satisfy an updated schema."""

    def __init__(self, store_name: str) -> None:
        super().__init__(
            "update_schema",
            f"Schema update on store '{store_name}' is not backwards-compatible: "
            "existing data may not satisfy new schema. "
            "Use transform_store for breaking changes.",
            store_name,
        )


class SchemaMismatchError(MigrationError):
    """Raised when the final schema differs from the expected one."""

    def __init__(self, differences: list[str]) -> None:
        self.differences = differences
        super().__init__("Schema does not match expectation: " + "; ".join(differences))


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class PlanConfig:
    """Configuration for migration planning.

    Attributes:
        require_positive_first_version: Reject a first version <= 0.
        allow_same_name_rename: Treat renaming a store or index to its own
            name as a no-op instead of a duplicate name.
        check_update_compatibility: Reject schema updates that existing
            records might not satisfy.
    """

    require_positive_first_version: bool = False
    allow_same_name_rename: bool = True
    check_update_compatibility: bool = True
