"""
libsnap: shared library for the snapshot/backup tools.

Import the functions below at the top of a tool; configure the run with
``libsnap.diagnostics.configure()`` (or LIBSNAP_* environment variables).
"""

from libsnap.diagnostics.callstack import call_frame, traced_call
from libsnap.functions import (
    abort,
    header,
    log,
    restore_tracing,
    run_command,
    suspend_tracing,
    trace,
    trace_vars,
    warn,
)

__version__ = "0.1.0"

__all__ = [
    "abort",
    "call_frame",
    "header",
    "log",
    "restore_tracing",
    "run_command",
    "suspend_tracing",
    "trace",
    "trace_vars",
    "traced_call",
    "warn",
]
