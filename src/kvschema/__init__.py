"""kvschema - Validated Schema Evolution for Key-Value Stores, Shapes Powered by Polars."""

from kvschema.types import NEVER, UNRESOLVABLE, ValueType, type_name
from kvschema.shapes import (
    ShapeError,
    array_of,
    literal,
    one_of,
    optional,
    shape_from_frame,
    to_value_type,
)
from kvschema.keypath import path_exists, resolve
from kvschema.schema import IndexDescriptor, SchemaModel, StoreDescriptor
from kvschema.migration import (
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
    MigrationPlan,
    MigrationStep,
    VersionBuilder,
    add_version,
    create_migrations,
    replay,
)
from kvschema.keyrange import (
    InvalidKeyRangeError,
    KeyRange,
    NativeKeyRange,
    compare_keys,
    is_valid_key,
)

__version__ = "0.1.0"

__all__ = [
    # Shapes
    "NEVER",
    "UNRESOLVABLE",
    "ValueType",
    "type_name",
    "ShapeError",
    "array_of",
    "literal",
    "one_of",
    "optional",
    "shape_from_frame",
    "to_value_type",
    # Key paths
    "path_exists",
    "resolve",
    # Schema model
    "IndexDescriptor",
    "SchemaModel",
    "StoreDescriptor",
    # Migrations
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
    "PlanConfig",
    "MigrationPlan",
    "MigrationStep",
    "VersionBuilder",
    "add_version",
    "create_migrations",
    "replay",
    # Key ranges
    "InvalidKeyRangeError",
    "KeyRange",
    "NativeKeyRange",
    "compare_keys",
    "is_valid_key",
]
