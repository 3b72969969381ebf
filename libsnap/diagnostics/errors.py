"""
libsnap: Diagnostics Errors

Every failure the core raises derives from LibsnapError. The Fault Reporter
decides how each one surfaces: usage errors print the usage text, anything
else is reported with a stack, logged, and terminates the run.
"""

from __future__ import annotations


class LibsnapError(RuntimeError):
    """Base error for the diagnostics core."""


class UsageError(LibsnapError):
    """A caller used an operation incorrectly (bad arguments, bad pairing)."""


class TraceStateError(UsageError):
    """restore() was called for an identity with no matching suspend()."""

    def __init__(self, call_site_identity: str) -> None:
        self.call_site_identity = call_site_identity
        super().__init__(
            f"restore_tracing {call_site_identity}: no matching suspend_tracing"
        )


class LogSinkError(LibsnapError):
    """A run-log line could not be written to its sink."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"log: can't append to {path}: {reason}")


class CallStackError(LibsnapError):
    """The explicit call context could not be read."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"call stack unavailable: {reason}")


class CommandError(LibsnapError):
    """An external command exited non-zero."""

    def __init__(self, argv: list[str], returncode: int) -> None:
        self.argv = argv
        self.returncode = returncode
        super().__init__(f"{' '.join(argv)} => {returncode}")
