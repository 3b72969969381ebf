"""
libsnap: Common Primitives

Shared base classes and clock/id utilities used across the package.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel
from ulid import ULID


def new_id() -> str:
    """Generate a new ULID string. Time-sortable, globally unique."""
    return str(ULID())


def local_now() -> datetime:
    """Current local wall-clock time, used for human-facing log lines."""
    return datetime.now().astimezone()


# ─── Base Models ──────────────────────────────────────────────────


class LibsnapBaseModel(BaseModel):
    """Base model for all libsnap value types."""

    model_config = {"populate_by_name": True, "from_attributes": True}


class FrozenModel(LibsnapBaseModel):
    """Immutable value object. Assignment after construction raises."""

    model_config = {"populate_by_name": True, "from_attributes": True, "frozen": True}
