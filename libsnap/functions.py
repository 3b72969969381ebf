"""
libsnap: Functions for calling tools

Thin module-level entry points over the process-wide DiagnosticsService, so
a tool can write ``abort("can't mount backup disk")`` without carrying the
service around. Each one resolves template variables in *its caller's*
scope.
"""

from __future__ import annotations

import subprocess
import sys
from typing import Any

from libsnap.diagnostics.scope import caller_scope
from libsnap.diagnostics.service import get_service
from libsnap.diagnostics.tracing import run_command as _run_command


def abort(message: str, *, skip: int = 0) -> None:
    """
    Report a fatal error from the caller's point of view and end the run.

    Returns only when called while another report is in progress; the outer
    report then finishes and exits.
    """
    get_service().reporter.report(message, skip=skip, scope=caller_scope(1))


def warn(message: str) -> None:
    get_service().reporter.warn(message)


def log(level: int, message: str) -> bool:
    return get_service().run_logger.log(level, message, scope=caller_scope(1))


def trace(level: int, *message: Any) -> bool:
    return get_service().trace_flag.trace(level, *message)


def trace_vars(level: int, *names: str) -> bool:
    return get_service().trace_flag.trace_vars(level, *names, scope=caller_scope(1))


def suspend_tracing(call_site_identity: str, *, loop: bool = False, status: int = 0) -> int:
    return get_service().trace_state.suspend(call_site_identity, loop=loop, status=status)


def restore_tracing(call_site_identity: str, *names: str, status: int = 0) -> int:
    return get_service().trace_state.restore(
        call_site_identity, *names, status=status, scope=caller_scope(1)
    )


def header(text: str) -> None:
    """Print a head(1)-style section header."""
    print(f"\n==> {text} <==")
    sys.stdout.flush()


def run_command(argv: list[str], *, check: bool = True, **kwargs: Any) -> subprocess.CompletedProcess:
    service = get_service()
    return _run_command(
        argv,
        flag=service.trace_flag,
        dry_run=service.dry_run,
        check=check,
        **kwargs,
    )
