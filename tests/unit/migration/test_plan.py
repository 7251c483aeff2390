"""Unit tests for MigrationPlan."""

from __future__ import annotations

from typing import Any

import polars as pl
import pytest

from kvschema.migration import (
    DuplicateNameError,
    InvalidKeyPathError,
    MigrationPlan,
    MigrationStep,
    PlanConfig,
    SchemaMismatchError,
    VersionOrderError,
    add_version,
    create_migrations,
)
from kvschema.migration.actions import CreateIndexAction, DeleteIndexAction, UpdateSchemaAction
from kvschema.migration.builder import VersionBuilder
from kvschema.schema import IndexDescriptor
from kvschema.shapes import optional, to_value_type
from kvschema.types import NEVER


def noop(v: VersionBuilder) -> VersionBuilder:
    return v


class TestVersionOrder:
    """Tests for version monotonicity."""

    def test_empty_plan(self) -> None:
        """Test the empty plan."""
        plan = create_migrations()

        assert len(plan) == 0
        assert plan.final_version == 0
        assert plan.steps == ()

    @pytest.mark.parametrize("gap", [1, 2, 10, 1000])
    def test_any_gap_accepted(self, gap: int) -> None:
        """Test that any gap between versions is accepted."""
        plan = create_migrations().add_version(1, noop).add_version(1 + gap, noop)
        assert [step.version for step in plan] == [1, 1 + gap]

    @pytest.mark.parametrize("version", [3, 2, 0, -1])
    def test_not_greater_rejected(self, version: int) -> None:
        """Test rejecting a version that is not greater."""
        plan = create_migrations().add_version(1, noop).add_version(3, noop)

        with pytest.raises(VersionOrderError) as exc_info:
            plan.add_version(version, noop)

        assert exc_info.value.previous == 3
        assert exc_info.value.version == version

    @pytest.mark.parametrize("version", [0, -5])
    def test_first_version_unconstrained_by_default(self, version: int) -> None:
        """Test that the first version is unconstrained."""
        plan = create_migrations().add_version(version, noop)
        assert plan.final_version == version

    def test_first_version_must_be_positive_when_configured(self) -> None:
        """Test require_positive_first_version."""
        plan = create_migrations(PlanConfig(require_positive_first_version=True))

        with pytest.raises(VersionOrderError) as exc_info:
            plan.add_version(0, noop)

        assert str(exc_info.value) == "version must be greater than 0, got 0"
        assert plan.add_version(1, noop).final_version == 1

    @pytest.mark.parametrize("version", [1.5, "2", True, None])
    def test_version_must_be_an_integer(self, version: Any) -> None:
        """Test rejecting non-integer versions."""
        with pytest.raises(TypeError):
            create_migrations().add_version(version, noop)

    def test_functional_form(self) -> None:
        """Test the add_version function."""
        plan = add_version(create_migrations(), 1, noop)
        assert plan.final_version == 1


class TestPlanImmutability:
    """Tests for plan immutability and rejection handling."""

    def test_add_version_returns_new_plan(self) -> None:
        """Test that add_version returns a new plan."""
        empty = create_migrations()
        plan = empty.add_version(1, noop)

        assert plan is not empty
        assert len(empty) == 0
        assert len(plan) == 1

    def test_rejected_version_leaves_plan_usable(self, users_plan: MigrationPlan) -> None:
        """Test that a rejected version leaves the plan usable."""
        with pytest.raises(DuplicateNameError):
            users_plan.add_version(2, lambda v: v.create_index("users", "other", "id").create_store("users", {}))

        assert users_plan.final_version == 1
        assert set(users_plan.schema["users"].indexes) == {"byEmail"}

        retried = users_plan.add_version(2, lambda v: v.create_index("users", "other", "id"))
        assert set(retried.schema["users"].indexes) == {"byEmail", "other"}

    def test_rejection_reports_location(self, users_plan: MigrationPlan) -> None:
        """Test the version and operation on a rejection."""
        with pytest.raises(InvalidKeyPathError) as exc_info:
            users_plan.add_version(
                3,
                lambda v: v.create_index("users", "byId", "id").create_index("users", "byAddress", "address"),
            )

        error = exc_info.value
        assert error.version == 3
        assert error.operation_index == 2
        assert error.store_name == "users"
        assert str(error).startswith("[version 3, operation #2 create_index] keyPath 'address'")

    def test_swallowed_rejection_still_aborts_version(self) -> None:
        """Test that catching a rejection inside the step does not commit the version."""
        plan = create_migrations()

        def step(v: VersionBuilder) -> VersionBuilder:
            v.create_store("a", pl.Utf8)
            try:
                v.create_store("a", pl.Utf8)
            except DuplicateNameError:
                pass
            return v

        with pytest.raises(DuplicateNameError) as exc_info:
            plan.add_version(1, step)

        assert exc_info.value.version == 1
        assert exc_info.value.operation_index == 2
        assert plan.final_version == 0
        assert len(plan) == 0

    def test_plan_shares_config(self) -> None:
        """Test that new plans share the config."""
        config = PlanConfig(allow_same_name_rename=False)
        plan = create_migrations(config).add_version(1, noop)
        assert plan.config is config


class TestEndToEnd:
    """The users/byEmail scenario across four versions."""

    def test_four_versions(self) -> None:
        """Test the four-version users scenario."""
        plan = (
            create_migrations()
            .add_version(1, lambda v: v.create_store("users", {"id": pl.Utf8, "email": pl.Utf8}, primary_key="id"))
            .add_version(2, lambda v: v.create_index("users", "byEmail", "email"))
            .add_version(3, lambda v: v.delete_index("users", "byEmail"))
            .add_version(4, lambda v: v.create_index("users", "byEmail", "id"))
        )

        assert plan.final_version == 4
        assert dict(plan.schema["users"].indexes) == {"byEmail": IndexDescriptor("id")}
        assert plan.steps[2].actions == (DeleteIndexAction("users", "byEmail"),)
        assert plan.steps[3].actions == (CreateIndexAction("users", "byEmail", "id"),)

    def test_each_step_keeps_its_schema(self, users_plan: MigrationPlan) -> None:
        """Test that each step keeps its own schema."""
        plan = users_plan.add_version(2, lambda v: v.delete_index("users", "byEmail"))

        assert "byEmail" in plan.steps[0].schema["users"].indexes
        assert "byEmail" not in plan.steps[1].schema["users"].indexes


class TestPending:
    """Tests for executor step selection."""

    @pytest.fixture
    def plan(self) -> MigrationPlan:
        return (
            create_migrations()
            .add_version(1, lambda v: v.create_store("a", pl.Utf8))
            .add_version(3, lambda v: v.create_store("b", pl.Utf8))
            .add_version(7, lambda v: v.create_store("c", pl.Utf8))
        )

    @pytest.mark.parametrize(
        ("installed", "expected"),
        [(0, [1, 3, 7]), (1, [3, 7]), (2, [3, 7]), (3, [7]), (7, []), (100, [])],
    )
    def test_pending(self, plan: MigrationPlan, installed: int, expected: list[int]) -> None:
        """Test selecting pending steps."""
        assert [step.version for step in plan.pending(installed)] == expected


class TestSchemaInference:
    """Tests for infer_schema and expect_schema."""

    def test_infer_schema(self, users_plan: MigrationPlan) -> None:
        """Test infer_schema."""
        plan = users_plan.add_version(2, lambda v: v.update_schema("users", {"tags": NEVER}))
        shape = plan.infer_schema()["users"]

        assert "tags" not in shape
        assert "email" in shape

    def test_expect_schema_matches(self) -> None:
        """Test expect_schema with a matching schema."""
        plan = create_migrations().add_version(
            1, lambda v: v.create_store("users", {"id": pl.Utf8, "age": optional(pl.Int64)}, primary_key="id")
        )
        assert plan.expect_schema({"users": {"age": optional(pl.Int32), "id": pl.String}}) is plan

    def test_expect_schema_mismatch(self, users_plan: MigrationPlan) -> None:
        """Test expect_schema with a mismatch."""
        with pytest.raises(SchemaMismatchError) as exc_info:
            users_plan.expect_schema({"users": {"id": pl.Utf8}, "orders": {"no": pl.Int64}})

        differences = exc_info.value.differences
        assert "missing store 'orders'" in differences
        assert any("store 'users'" in d for d in differences)

    def test_expect_schema_unexpected_store(self, users_plan: MigrationPlan) -> None:
        """Test expect_schema with an unexpected store."""
        with pytest.raises(SchemaMismatchError) as exc_info:
            users_plan.expect_schema({})
        assert exc_info.value.differences == ["unexpected store 'users'"]


class TestSerialisation:
    """Tests for to_dict summaries."""

    def test_plan_to_dict(self, users_plan: MigrationPlan) -> None:
        """Test serializing a plan."""
        plan = users_plan.add_version(
            2, lambda v: v.update_schema("users", {"nickname": optional(pl.Utf8)}).delete_index("users", "byEmail")
        )
        data = plan.to_dict()

        assert data["final_version"] == 2
        assert data["steps"][0]["actions"][0] == {
            "action": "create-store",
            "store_name": "users",
            "key_path": "id",
            "auto_increment": False,
        }
        assert data["steps"][1]["actions"] == [
            {"action": "delete-index", "store_name": "users", "index_name": "byEmail"}
        ]

    def test_step_separates_operations_and_actions(self, users_plan: MigrationPlan) -> None:
        """Test operations versus runtime actions."""
        plan = users_plan.add_version(2, lambda v: v.update_schema("users", {"nickname": optional(pl.Utf8)}))
        step = plan.steps[1]

        assert isinstance(step, MigrationStep)
        assert isinstance(step.operations[0], UpdateSchemaAction)
        assert step.actions == ()

    def test_step_equality_ignores_schema(self) -> None:
        """Test that step equality ignores the schema."""
        plan = create_migrations().add_version(1, lambda v: v.create_store("a", pl.Utf8))
        assert plan.steps[0] == MigrationStep(1, plan.steps[0].operations)
        assert plan.schema["a"].value_shape == to_value_type(pl.Utf8)
