"""Shared base model definitions for hardsub domain objects."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class HardsubBaseModel(BaseModel):
    """Base model configured for hardsub-wide defaults."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class SnapshotModel(HardsubBaseModel):
    """Immutable value object; changes are expressed with ``model_copy``."""

    model_config = ConfigDict(frozen=True)


__all__ = ["HardsubBaseModel", "SnapshotModel"]
