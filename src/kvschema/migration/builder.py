"""Builder for the operations of a single version.

Each operation is checked against the model produced by the operations
before it in the same version, so a store created earlier in a version can
be indexed later in that same version.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from kvschema.migration import rules
from kvschema.migration.actions import MigrationAction, TransformFunc
from kvschema.migration.base import PlanConfig, SchemaRejection
from kvschema.schema import SchemaModel

logger = logging.getLogger(__name__)


class VersionBuilder:
    """Accumulates operations for one version.

    Every method returns the builder itself so calls can be chained. The
    first rejected operation raises and aborts the version: the model is
    left as it was before that operation, and every later call raises the
    same rejection again.

    Example:
        >>> def v1(v: VersionBuilder) -> VersionBuilder:
        ...     return (
        ...         v.create_store("users", {"id": pl.Utf8, "email": pl.Utf8}, primary_key="id")
        ...         .create_index("users", "byEmail", "email", unique=True)
        ...     )
    """

    def __init__(
        self,
        model: SchemaModel | None = None,
        version: int | None = None,
        config: PlanConfig | None = None,
    ) -> None:
        self._model = model if model is not None else SchemaModel.empty()
        self._version = version
        self._config = config or PlanConfig()
        self._operations: list[MigrationAction] = []
        self._calls = 0
        self._rejection: SchemaRejection | None = None

    @property
    def model(self) -> SchemaModel:
        """Schema after every accepted operation so far."""
        return self._model

    @property
    def version(self) -> int | None:
        return self._version

    @property
    def operations(self) -> tuple[MigrationAction, ...]:
        """Recorded operations, including schema update markers."""
        return tuple(self._operations)

    @property
    def actions(self) -> tuple[MigrationAction, ...]:
        """Recorded operations that a storage executor has to run."""
        return tuple(op for op in self._operations if op.runtime)

    @property
    def rejection(self) -> SchemaRejection | None:
        """First rejected operation of the version, if any."""
        return self._rejection

    def raise_if_rejected(self) -> None:
        if self._rejection is not None:
            raise self._rejection

    def _apply(self, operation: str, rule: Callable[..., rules.Outcome], *args: Any) -> "VersionBuilder":
        self.raise_if_rejected()
        self._calls += 1
        try:
            outcome = rule(self._model, *args)
        except SchemaRejection as exc:
            exc.operation_index = self._calls
            self._rejection = exc
            logger.debug(f"Rejected {operation} (version {self._version}): {exc.detail}")
            raise

        self._model = outcome.model
        if outcome.action is not None:
            self._operations.append(outcome.action)
            logger.debug(f"Accepted {outcome.action.action} (version {self._version})")
        else:
            logger.debug(f"Accepted {operation} as a no-op (version {self._version})")
        return self

    # -------------------------------------------------------------------------
    # Stores
    # -------------------------------------------------------------------------

    def create_store(
        self,
        name: str,
        shape: Any,
        primary_key: str | Sequence[str] | None = None,
        auto_increment: bool = False,
    ) -> "VersionBuilder":
        """Create a store.

        Args:
            name: Store name, must not exist yet.
            shape: Record shape descriptor (see :mod:`kvschema.shapes`).
            primary_key: In-line key path; None for out-of-line keys.
            auto_increment: Let the storage engine generate numeric keys.
        """
        return self._apply("create_store", rules.create_store, name, shape, primary_key, auto_increment)

    def delete_store(self, name: str) -> "VersionBuilder":
        return self._apply("delete_store", rules.delete_store, name)

    def rename_store(self, old_name: str, new_name: str) -> "VersionBuilder":
        return self._apply(
            "rename_store",
            rules.rename_store,
            old_name,
            new_name,
            self._config.allow_same_name_rename,
        )

    # -------------------------------------------------------------------------
    # Indexes
    # -------------------------------------------------------------------------

    def create_index(
        self,
        store_name: str,
        index_name: str,
        key_path: str | Sequence[str],
        multi_entry: bool = False,
        unique: bool = False,
    ) -> "VersionBuilder":
        return self._apply(
            "create_index",
            rules.create_index,
            store_name,
            index_name,
            key_path,
            multi_entry,
            unique,
        )

    def delete_index(self, store_name: str, index_name: str) -> "VersionBuilder":
        return self._apply("delete_index", rules.delete_index, store_name, index_name)

    def rename_index(self, store_name: str, old_index_name: str, new_index_name: str) -> "VersionBuilder":
        return self._apply(
            "rename_index",
            rules.rename_index,
            store_name,
            old_index_name,
            new_index_name,
            self._config.allow_same_name_rename,
        )

    # -------------------------------------------------------------------------
    # Record shapes
    # -------------------------------------------------------------------------

    def transform_store(self, store_name: str, transform: TransformFunc, shape: Any) -> "VersionBuilder":
        """Rewrite every record with ``transform``, which produces ``shape``."""
        return self._apply("transform_store", rules.transform_store, store_name, transform, shape)

    def update_schema(self, store_name: str, delta: Any) -> "VersionBuilder":
        """Deep-merge ``delta`` into the store's record shape (no runtime action).

        Example:
            >>> v.update_schema("users", {"email": optional(pl.Utf8), "legacy": NEVER})
        """
        return self._apply(
            "update_schema",
            rules.update_schema,
            store_name,
            delta,
            self._config.check_update_compatibility,
        )
