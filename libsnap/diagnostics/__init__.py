"""
libsnap: Diagnostics

Fault signalling for the snapshot tools: an explicit call context and its
renderer, trace toggling, the run log, and the fault reporter that ends the
whole process tree when something fatal happens.
"""

from libsnap.diagnostics.callstack import (
    CallStackRenderer,
    abbreviate_path,
    call_frame,
    current_stack,
    elide_arguments,
    traced_call,
)
from libsnap.diagnostics.errors import (
    CallStackError,
    CommandError,
    LibsnapError,
    LogSinkError,
    TraceStateError,
    UsageError,
)
from libsnap.diagnostics.process import (
    establish_run_identity,
    is_process_alive,
    is_subordinate,
)
from libsnap.diagnostics.reporter import FaultReporter, fault_guard
from libsnap.diagnostics.run_logger import RunLogger
from libsnap.diagnostics.service import DiagnosticsService, configure, get_service
from libsnap.diagnostics.terminator import ProcessTreeTerminator
from libsnap.diagnostics.tracing import TraceFlag, TraceStateStore, suspended_tracing
from libsnap.diagnostics.types import (
    CallFrame,
    CallStack,
    FaultEvent,
    FaultLevel,
    FaultMode,
    RunIdentity,
    TraceToggleEntry,
)

__all__ = [
    "CallFrame",
    "CallStack",
    "CallStackError",
    "CallStackRenderer",
    "CommandError",
    "DiagnosticsService",
    "FaultEvent",
    "FaultLevel",
    "FaultMode",
    "FaultReporter",
    "LibsnapError",
    "LogSinkError",
    "ProcessTreeTerminator",
    "RunIdentity",
    "RunLogger",
    "TraceFlag",
    "TraceStateError",
    "TraceStateStore",
    "TraceToggleEntry",
    "UsageError",
    "abbreviate_path",
    "call_frame",
    "configure",
    "current_stack",
    "elide_arguments",
    "establish_run_identity",
    "fault_guard",
    "get_service",
    "is_process_alive",
    "is_subordinate",
    "suspended_tracing",
    "traced_call",
]
