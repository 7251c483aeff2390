"""Shared pytest fixtures for kvschema tests."""

from __future__ import annotations

from typing import Any

import polars as pl
import pytest

from kvschema.migration import create_migrations, rules
from kvschema.migration.plan import MigrationPlan
from kvschema.schema import SchemaModel
from kvschema.shapes import optional


# =============================================================================
# Shapes
# =============================================================================


@pytest.fixture
def user_shape() -> dict[str, Any]:
    """A user record with a nested address and a list of tags."""
    return {
        "id": pl.Utf8,
        "email": pl.Utf8,
        "age": optional(pl.Int64),
        "address": pl.Struct({"city": pl.Utf8, "zip": pl.Utf8}),
        "tags": pl.List(pl.Utf8),
    }


@pytest.fixture
def counter_shape() -> dict[str, Any]:
    """A record keyed by a generated numeric id."""
    return {"id": optional(pl.Int64), "count": pl.Int64}


# =============================================================================
# Models and plans
# =============================================================================


@pytest.fixture
def users_model(user_shape: dict[str, Any]) -> SchemaModel:
    """Model with a single ``users`` store keyed by ``id``."""
    return rules.create_store(SchemaModel.empty(), "users", user_shape, "id").model


@pytest.fixture
def users_plan(user_shape: dict[str, Any]) -> MigrationPlan:
    """Plan whose first version creates ``users`` with a ``byEmail`` index."""
    return create_migrations().add_version(
        1,
        lambda v: v.create_store("users", user_shape, primary_key="id").create_index(
            "users", "byEmail", "email", unique=True
        ),
    )
