"""Migration plan: the ordered, validated list of version steps.

A plan is immutable. :meth:`MigrationPlan.add_version` returns a new plan,
so a plan can be built once at import time and shared freely afterwards.

Example:
    >>> import polars as pl
    >>> from kvschema import create_migrations
    >>>
    >>> migrations = (
    ...     create_migrations()
    ...     .add_version(1, lambda v: v.create_store(
    ...         "users", {"id": pl.Utf8, "email": pl.Utf8}, primary_key="id"))
    ...     .add_version(2, lambda v: v.create_index("users", "byEmail", "email"))
    ... )
    >>> [step.version for step in migrations.pending(1)]
    [2]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping

from kvschema.migration.actions import MigrationAction
from kvschema.migration.base import (
    PlanConfig,
    SchemaMismatchError,
    SchemaRejection,
    VersionOrderError,
)
from kvschema.migration.builder import VersionBuilder
from kvschema.schema import SchemaModel
from kvschema.shapes import is_assignable, to_value_type
from kvschema.types import ValueType, type_name

logger = logging.getLogger(__name__)

StepFunc = Callable[[VersionBuilder], Any]


@dataclass(frozen=True)
class MigrationStep:
    """One version of a plan.

    Attributes:
        version: Version number.
        operations: Every recorded operation, schema update markers included.
        schema: Schema model after this step.
    """

    version: int
    operations: tuple[MigrationAction, ...] = ()
    schema: SchemaModel = field(default_factory=SchemaModel.empty, compare=False, repr=False)

    @property
    def actions(self) -> tuple[MigrationAction, ...]:
        """Actions a storage executor has to run for this version."""
        return tuple(op for op in self.operations if op.runtime)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "version": self.version,
            "actions": [action.to_dict() for action in self.actions],
        }


class MigrationPlan:
    """Ordered list of validated migration steps.

    Versions must be strictly increasing. The schema model is threaded from
    one version to the next; a rejected version leaves the plan unchanged.
    """

    def __init__(self, config: PlanConfig | None = None) -> None:
        self._config = config or PlanConfig()
        self._steps: tuple[MigrationStep, ...] = ()
        self._schema = SchemaModel.empty()

    @property
    def config(self) -> PlanConfig:
        return self._config

    @property
    def steps(self) -> tuple[MigrationStep, ...]:
        return self._steps

    @property
    def schema(self) -> SchemaModel:
        """Schema model after the last step."""
        return self._schema

    @property
    def final_version(self) -> int:
        """Version of the last step, 0 for an empty plan."""
        if not self._steps:
            return 0
        return self._steps[-1].version

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[MigrationStep]:
        return iter(self._steps)

    def _check_version(self, version: int) -> None:
        if isinstance(version, bool) or not isinstance(version, int):
            raise TypeError(f"version must be an integer, got {version!r}")

        if not self._steps:
            if self._config.require_positive_first_version and version <= 0:
                raise VersionOrderError(version, None)
            return

        previous = self.final_version
        if version <= previous:
            raise VersionOrderError(version, previous)

    def add_version(self, version: int, step: StepFunc) -> "MigrationPlan":
        """Return a new plan with one more version.

        Args:
            version: Version number, strictly greater than the last one.
            step: Called with a :class:`VersionBuilder` seeded with the
                current schema; records the version's operations.

        Raises:
            VersionOrderError: If ``version`` is out of order.
            SchemaRejection: If an operation of the version is rejected.
        """
        self._check_version(version)

        builder = VersionBuilder(self._schema, version, self._config)
        try:
            step(builder)
            builder.raise_if_rejected()
        except SchemaRejection as exc:
            exc.version = version
            logger.debug(f"Version {version} rejected: {exc.detail}")
            raise

        new_step = MigrationStep(version, builder.operations, builder.model)
        logger.debug(
            f"Added version {version} with {len(new_step.actions)} action(s), "
            f"{len(builder.model)} store(s)"
        )

        plan = MigrationPlan(self._config)
        plan._steps = self._steps + (new_step,)
        plan._schema = builder.model
        return plan

    def pending(self, installed_version: int) -> tuple[MigrationStep, ...]:
        """Steps an executor must apply on top of ``installed_version``."""
        return tuple(step for step in self._steps if step.version > installed_version)

    def infer_schema(self) -> dict[str, ValueType]:
        """Final record shape of every store."""
        return {name: store.value_shape for name, store in self._schema.stores.items()}

    def expect_schema(self, expected: Mapping[str, Any]) -> "MigrationPlan":
        """Check the final record shapes against ``expected``.

        Args:
            expected: Store name -> shape descriptor.

        Returns:
            The plan itself, for chaining.

        Raises:
            SchemaMismatchError: If stores or shapes differ.
        """
        actual = self.infer_schema()
        differences: list[str] = []

        for name in expected:
            if name not in actual:
                differences.append(f"missing store '{name}'")
        for name in actual:
            if name not in expected:
                differences.append(f"unexpected store '{name}'")

        for name, descriptor in expected.items():
            if name not in actual:
                continue
            wanted = to_value_type(descriptor)
            if not (is_assignable(wanted, actual[name]) and is_assignable(actual[name], wanted)):
                differences.append(
                    f"store '{name}' holds {type_name(actual[name])} records "
                    f"that differ from the expected {type_name(wanted)} shape"
                )

        if differences:
            raise SchemaMismatchError(differences)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "final_version": self.final_version,
            "steps": [step.to_dict() for step in self._steps],
        }


def add_version(plan: MigrationPlan, version: int, step: StepFunc) -> MigrationPlan:
    """Functional form of :meth:`MigrationPlan.add_version`."""
    return plan.add_version(version, step)


def create_migrations(config: PlanConfig | None = None) -> MigrationPlan:
    """Start an empty migration plan."""
    return MigrationPlan(config)
