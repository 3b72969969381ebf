"""
libsnap: Trace Toggle and TraceState Store

The trace flag is the ambient "echo what you run" switch. When it is on,
commands started through ``run_command`` are echoed to stderr as
``+ <command>``, the way a shell echoes under ``set -x``.

Noisy helpers bracket their bodies with suspend/restore so a trace shows
only the interesting commands. Saved states are kept per call-site identity
as a stack: nested and recursive activations of the same function each get
their own entry back.
"""

from __future__ import annotations

import shlex
import subprocess
import sys
from contextlib import contextmanager
from typing import Any, Generator, Mapping, TextIO

import structlog

from libsnap.diagnostics.errors import CommandError, TraceStateError
from libsnap.diagnostics.scope import caller_scope
from libsnap.diagnostics.types import TraceToggleEntry

logger = structlog.get_logger()
_SYSTEM = "libsnap.tracing"


class TraceFlag:
    """The ambient tracing-enabled toggle, plus levelled trace output."""

    def __init__(self, enabled: bool = False, level: int = 0) -> None:
        self._enabled = enabled
        self.level = level

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def trace(self, level: int, *message: Any, stream: TextIO | None = None) -> bool:
        """Print message to stderr if level is within the trace threshold."""
        if level > self.level:
            return False
        print(*message, file=stream or sys.stderr)
        return True

    def trace_vars(
        self,
        level: int,
        *names: str,
        scope: Mapping[str, Any] | None = None,
        stream: TextIO | None = None,
    ) -> bool:
        """Print ``name=value`` for each name if level is within the threshold."""
        if level > self.level:
            return False
        values = scope if scope is not None else caller_scope(1)
        out = stream or sys.stderr
        for name in names:
            print(f"{name}={values.get(name, '')}", file=out)
        return True


class TraceStateStore:
    """
    Saves and restores the trace flag around spans of code.

    Usage:
        def noisy_helper():
            store.suspend("noisy_helper")
            ...
            return store.restore("noisy_helper", "result", status=status)
    """

    def __init__(self, flag: TraceFlag) -> None:
        self._flag = flag
        self._saved: dict[str, list[TraceToggleEntry]] = {}

    def suspend(self, call_site_identity: str, *, loop: bool = False, status: int = 0) -> int:
        """
        Save the current flag under ``call_site_identity`` and turn tracing off.

        In loop mode nothing is saved when tracing is already off and an
        entry is already waiting, so only the first iteration's state counts.
        Returns ``status`` unchanged.
        """
        was_enabled = self._flag.enabled
        if loop and not was_enabled and self._saved.get(call_site_identity):
            return status

        self._saved.setdefault(call_site_identity, []).append(
            TraceToggleEntry(call_site_identity=call_site_identity, was_enabled=was_enabled)
        )
        self._flag.disable()
        return status

    def restore(
        self,
        call_site_identity: str,
        *names: str,
        status: int = 0,
        scope: Mapping[str, Any] | None = None,
        stream: TextIO | None = None,
    ) -> int:
        """
        Put the flag back the way the matching ``suspend`` found it.

        When tracing comes back on, each requested variable is shown first as
        ``+ name=value`` (or ``+ name not set``). Returns ``status`` unchanged
        so wrapping code keeps its exit status.
        """
        saved = self._saved.get(call_site_identity)
        if not saved:
            raise TraceStateError(call_site_identity)

        entry = saved.pop()
        if not saved:
            del self._saved[call_site_identity]

        if entry.was_enabled:
            values = scope if scope is not None else caller_scope(1)
            out = stream or sys.stderr
            for name in names:
                if name in values:
                    print(f"+ {name}={values[name]}", file=out)
                else:
                    print(f"+ {name} not set", file=out)
            self._flag.enable()
        return status

    def pending(self, call_site_identity: str) -> int:
        """How many suspends for this identity are still waiting on a restore."""
        return len(self._saved.get(call_site_identity, ()))


@contextmanager
def suspended_tracing(
    store: TraceStateStore,
    call_site_identity: str,
    *names: str,
    scope: Mapping[str, Any] | None = None,
) -> Generator[None, None, None]:
    """Suspend tracing for the block; restore it (and show ``names``) after."""
    store.suspend(call_site_identity)
    try:
        yield
    finally:
        store.restore(
            call_site_identity,
            *names,
            scope=scope if scope is not None else caller_scope(2),
        )


def run_command(
    argv: list[str],
    *,
    flag: TraceFlag,
    dry_run: bool = False,
    check: bool = True,
    **kwargs: Any,
) -> subprocess.CompletedProcess:
    """
    Run an external command, echoing it when tracing is on.

    In dry-run mode the command is printed to stdout instead of run.
    """
    cmdline = shlex.join(argv)
    if flag.enabled:
        print(f"+ {cmdline}", file=sys.stderr)
    if dry_run:
        print(cmdline)
        return subprocess.CompletedProcess(argv, 0)

    result = subprocess.run(argv, **kwargs)
    if check and result.returncode != 0:
        logger.debug("command_failed", system=_SYSTEM, argv=argv, returncode=result.returncode)
        raise CommandError(list(argv), result.returncode)
    return result
