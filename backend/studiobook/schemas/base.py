"""
Base schemas shared by the engine's data models.
"""

from pydantic import BaseModel, ConfigDict


class SnapshotModel(BaseModel):
    """
    Immutable value read from an external store.

    Rows are passed to the engine by value; freezing them keeps a single
    evaluation consistent with the snapshot it started from.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
