"""Versioned schema evolution for key-value stores.

This module validates an ordered list of schema versions (stores, indexes,
primary keys, record shapes) against the schema produced by every earlier
version and records the actions a storage executor must run.

Example:
    >>> import polars as pl
    >>> from kvschema.migration import create_migrations
    >>>
    >>> migrations = (
    ...     create_migrations()
    ...     .add_version(1, lambda v: v.create_store(
    ...         "users", {"id": pl.Utf8, "email": pl.Utf8}, primary_key="id"))
    ...     .add_version(2, lambda v: v.create_index("users", "byEmail", "email"))
    ...     .add_version(3, lambda v: v.delete_index("users", "byEmail"))
    ...     .add_version(4, lambda v: v.create_index("users", "byEmail", "id"))
    ... )
    >>>
    >>> # Executor side: only run what the installed database has not seen
    >>> for step in migrations.pending(installed_version=2):
    ...     for action in step.actions:
    ...         print(step.version, action.action)
    3 delete-index
    4 create-index
"""

from kvschema.migration.base import (
    MigrationError,
    VersionOrderError,
    SchemaRejection,
    DuplicateNameError,
    UnknownNameError,
    InvalidKeyPathError,
    AutoIncrementConstraintError,
    MultiEntryConstraintError,
    TransformInvalidatesKeyError,
    TransformInvalidatesIndexError,
    IncompatibleSchemaUpdateError,
    SchemaMismatchError,
    PlanConfig,
)
from kvschema.migration.actions import (
    MigrationAction,
    TransformFunc,
    CreateStoreAction,
    DeleteStoreAction,
    RenameStoreAction,
    CreateIndexAction,
    DeleteIndexAction,
    RenameIndexAction,
    TransformStoreAction,
    UpdateSchemaAction,
)
from kvschema.migration import rules
from kvschema.migration.builder import VersionBuilder
from kvschema.migration.plan import (
    MigrationPlan,
    MigrationStep,
    add_version,
    create_migrations,
)
from kvschema.migration.replay import actions_after, apply_action, replay

__all__ = [
    # Errors
    "MigrationError",
    "VersionOrderError",
    "SchemaRejection",
    "DuplicateNameError",
    "UnknownNameError",
    "InvalidKeyPathError",
    "AutoIncrementConstraintError",
    "MultiEntryConstraintError",
    "TransformInvalidatesKeyError",
    "TransformInvalidatesIndexError",
    "IncompatibleSchemaUpdateError",
    "SchemaMismatchError",
    # Config
    "PlanConfig",
    # Actions
    "MigrationAction",
    "TransformFunc",
    "CreateStoreAction",
    "DeleteStoreAction",
    "RenameStoreAction",
    "CreateIndexAction",
    "DeleteIndexAction",
    "RenameIndexAction",
    "TransformStoreAction",
    "UpdateSchemaAction",
    # Validation
    "rules",
    "VersionBuilder",
    # Plan
    "MigrationPlan",
    "MigrationStep",
    "add_version",
    "create_migrations",
    # Replay
    "actions_after",
    "apply_action",
    "replay",
]
