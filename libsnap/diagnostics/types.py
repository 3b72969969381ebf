"""
libsnap: Diagnostics Type Definitions

Value types shared by the fault path: call frames and stacks, the run's
process identity, saved trace-toggle state, and fault events.

None of these are persisted. Frames and fault events live for a single
report; the run identity lives for the whole run and is never mutated.
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import Field

from libsnap.primitives.common import (
    FrozenModel,
    LibsnapBaseModel,
    local_now,
    new_id,
)


# ─── Enums ────────────────────────────────────────────────────────


class FaultLevel(enum.StrEnum):
    WARNING = "warning"
    ERROR = "error"


class FaultMode(enum.StrEnum):
    """The two variants of one fault operation."""

    REPORT = "report"  # side-effecting: print, log, terminate
    FORMAT = "format"  # pure: produce the text only


# ─── Call Stack ───────────────────────────────────────────────────


class CallFrame(FrozenModel):
    """One activation on the explicit call context."""

    function_name: str
    source_location: str = "?"
    line_number: int = 0
    arguments: tuple[str, ...] = ()


class CallStack(FrozenModel):
    """Frames ordered innermost first."""

    frames: tuple[CallFrame, ...] = ()

    @property
    def depth(self) -> int:
        return len(self.frames)

    def without_innermost(self, skip: int) -> CallStack | None:
        """
        Drop ``skip`` innermost frames.

        Returns None when skip is out of range (negative or deeper than
        the stack) so callers render an empty-stack marker instead of
        a partial stack.
        """
        if skip < 0 or skip > self.depth:
            return None
        return CallStack(frames=self.frames[skip:])


# ─── Process Identity ─────────────────────────────────────────────


class RunIdentity(FrozenModel):
    """
    Established once by the first process of a run, inherited by value.

    Every process in the tree compares its own pid with master_process_id
    to learn whether it is the master or a subordinate.
    """

    master_process_id: int
    process_group_id: int

    def is_master(self, pid: int) -> bool:
        return pid == self.master_process_id


# ─── Tracing ──────────────────────────────────────────────────────


class TraceToggleEntry(FrozenModel):
    call_site_identity: str
    was_enabled: bool


# ─── Fault Events ─────────────────────────────────────────────────


class FaultEvent(LibsnapBaseModel):
    """One invocation of the Fault Reporter."""

    id: str = Field(default_factory=new_id)
    message: str
    level: FaultLevel = FaultLevel.ERROR
    stack_skip: int = 0
    mode: FaultMode = FaultMode.REPORT
    timestamp: datetime = Field(default_factory=local_now)

    @property
    def is_recursive_invocation(self) -> bool:
        return self.mode == FaultMode.FORMAT
