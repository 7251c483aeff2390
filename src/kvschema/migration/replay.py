"""Replay of recorded operations.

The operation log of a plan is self-describing: replaying it against an
empty model through the same rules rebuilds the plan's final schema. This
is also how an executor can double check a plan it received.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from kvschema.migration import rules
from kvschema.migration.actions import (
    CreateIndexAction,
    CreateStoreAction,
    DeleteIndexAction,
    DeleteStoreAction,
    MigrationAction,
    RenameIndexAction,
    RenameStoreAction,
    TransformStoreAction,
    UpdateSchemaAction,
)
from kvschema.migration.base import PlanConfig
from kvschema.migration.plan import MigrationStep
from kvschema.schema import SchemaModel

logger = logging.getLogger(__name__)


def _require_shape(action: CreateStoreAction | TransformStoreAction) -> object:
    if action.value_shape is None:
        raise ValueError(f"{action.action} action for '{action.store_name}' carries no value shape")
    return action.value_shape


_HANDLERS: dict[type, Callable[[SchemaModel, MigrationAction, PlanConfig], rules.Outcome]] = {
    CreateStoreAction: lambda model, a, config: rules.create_store(
        model, a.store_name, _require_shape(a), a.key_path, a.auto_increment
    ),
    DeleteStoreAction: lambda model, a, config: rules.delete_store(model, a.store_name),
    RenameStoreAction: lambda model, a, config: rules.rename_store(
        model, a.old_name, a.new_name, config.allow_same_name_rename
    ),
    CreateIndexAction: lambda model, a, config: rules.create_index(
        model, a.store_name, a.index_name, a.key_path, a.multi_entry, a.unique
    ),
    DeleteIndexAction: lambda model, a, config: rules.delete_index(model, a.store_name, a.index_name),
    RenameIndexAction: lambda model, a, config: rules.rename_index(
        model, a.store_name, a.old_index_name, a.new_index_name, config.allow_same_name_rename
    ),
    TransformStoreAction: lambda model, a, config: rules.transform_store(
        model, a.store_name, a.transform, _require_shape(a)
    ),
    UpdateSchemaAction: lambda model, a, config: rules.update_schema(
        model, a.store_name, a.shape_delta, config.check_update_compatibility
    ),
}


def apply_action(
    model: SchemaModel,
    action: MigrationAction,
    config: PlanConfig | None = None,
) -> SchemaModel:
    """Validate ``action`` against ``model`` and return the resulting model."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"unhandled migration action type: {type(action).__name__}")
    return handler(model, action, config or PlanConfig()).model


def replay(
    steps: Iterable[MigrationStep],
    config: PlanConfig | None = None,
    model: SchemaModel | None = None,
) -> SchemaModel:
    """Re-apply every step's operations in order.

    Args:
        steps: Steps to replay, in ascending version order.
        config: Planning configuration; defaults to :class:`PlanConfig`.
        model: Starting model; defaults to an empty one.

    Returns:
        The model after the last step.
    """
    config = config or PlanConfig()
    current = model if model is not None else SchemaModel.empty()
    for step in steps:
        for operation in step.operations:
            current = apply_action(current, operation, config)
        logger.debug(f"Replayed version {step.version}: {len(current)} store(s)")
    return current


def actions_after(
    steps: Iterable[MigrationStep],
    installed_version: int,
) -> list[tuple[int, MigrationAction]]:
    """Flatten the runtime actions an executor must run past ``installed_version``.

    Returns:
        ``(version, action)`` pairs in execution order.
    """
    return [
        (step.version, action)
        for step in steps
        if step.version > installed_version
        for action in step.actions
    ]
