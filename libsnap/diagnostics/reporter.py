"""
libsnap: Fault Reporter

The top of the fault path. One operation, two explicit variants:

  report()  side-effecting. Prints a highlighted banner and the call stack
            to stderr, logs the same text once, then ends the run: a
            subordinate process brings down the whole process tree, the
            master simply exits.
  format()  pure. Returns the banner and stack as text. It is what report()
            logs, and it is all a fault raised *during* reporting gets: a
            recursive fault is shown, never logged again and never escalated.

Ordering within one process is fixed by sequencing alone: stack capture,
then logging, then termination.
"""

from __future__ import annotations

import re
import sys
from contextlib import contextmanager
from typing import Any, Generator, Mapping, NoReturn, TextIO

import structlog

from libsnap.config import LibsnapConfig
from libsnap.diagnostics.callstack import CallStackRenderer, call_frame
from libsnap.diagnostics.errors import CallStackError, LogSinkError, UsageError
from libsnap.diagnostics.process import is_subordinate
from libsnap.diagnostics.run_logger import RunLogger
from libsnap.diagnostics.scope import caller_scope, exception_scope
from libsnap.diagnostics.terminator import ProcessTreeTerminator
from libsnap.diagnostics.types import FaultEvent, FaultLevel, FaultMode

logger = structlog.get_logger()
_SYSTEM = "libsnap.reporter"

_HIGHLIGHT: dict[FaultLevel, str] = {
    FaultLevel.WARNING: "\033[1;33m",
    FaultLevel.ERROR: "\033[1;31m",
}
_RESET = "\033[0m"

# Name of the frame each variant pushes for itself
ABORT_FRAME = "abort"


class FaultReporter:
    """Reports fatal conditions and ends the run."""

    def __init__(
        self,
        config: LibsnapConfig,
        renderer: CallStackRenderer,
        run_logger: RunLogger,
        terminator: ProcessTreeTerminator,
        stream: TextIO | None = None,
    ) -> None:
        self._config = config
        self._renderer = renderer
        self._run_logger = run_logger
        self._terminator = terminator
        self._stream = stream
        self._reporting = False
        self._logger = logger.bind(system=_SYSTEM, tool=config.tool.name)

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stderr

    @property
    def is_reporting(self) -> bool:
        return self._reporting

    # ── Text ──────────────────────────────────────────────────────────────────

    def banner(self, message: str, level: FaultLevel = FaultLevel.ERROR, highlight: bool = False) -> str:
        """Blank line, ``<tool>: <message>``, blank line."""
        line = f"{self._config.tool.name}: {message}"
        if highlight:
            line = f"{_HIGHLIGHT[level]}{line}{_RESET}"
        return f"\n{line}\n\n"

    def _should_highlight(self) -> bool:
        if not self._config.fault.highlight:
            return False
        isatty = getattr(self.stream, "isatty", None)
        return bool(isatty and isatty())

    def _render_stack(self, skip: int, header_message: str = "") -> str:
        return self._renderer.render(
            skip,
            self._config.fault.max_args_per_frame,
            header_message=header_message,
        )

    def format(
        self,
        message: str,
        *,
        level: FaultLevel = FaultLevel.ERROR,
        skip: int = 0,
    ) -> str:
        """
        Banner plus call stack as plain text. No logging, no exit.

        Pushes its own frame, so it renders with one more frame skipped than
        it was asked for. If the stack cannot be rendered, the reason is shown
        in its place instead of failing again.
        """
        event = FaultEvent(message=message, level=level, stack_skip=skip, mode=FaultMode.FORMAT)
        with call_frame(ABORT_FRAME, message):
            try:
                stack_text = self._render_stack(event.stack_skip + 1)
            except CallStackError as exc:
                stack_text = f"    {exc}"
        return self.banner(event.message, event.level) + stack_text + "\n"

    # ── Side effects ──────────────────────────────────────────────────────────

    def warn(self, message: str) -> None:
        """Print a highlighted warning banner; the run continues."""
        self.stream.write(
            self.banner(message, FaultLevel.WARNING, highlight=self._should_highlight())
        )
        self.stream.flush()

    def usage(self, patterns: list[str] | None = None, stream: TextIO | None = None) -> None:
        """Print the usage text, or just its lines matching any pattern (case-insensitive)."""
        out = stream or sys.stdout
        text = self._config.fault.usage_text
        if not patterns:
            out.write(text.rstrip("\n") + "\n")
            return
        regexes = [re.compile(p, re.IGNORECASE) for p in patterns]
        for line in text.splitlines():
            if any(r.search(line) for r in regexes):
                out.write(line + "\n")

    def usage_error(self, message: str = "") -> NoReturn:
        """Report bad command-line usage: no stack, no log, non-zero exit."""
        if message and message != self._config.fault.usage_text:
            self.stream.write(self.banner(message))
        self.stream.write(self._config.fault.usage_text.rstrip("\n") + "\n")
        self.stream.flush()
        raise SystemExit(self._config.fault.usage_exit_status)

    def report(
        self,
        message: str,
        *,
        level: FaultLevel = FaultLevel.ERROR,
        skip: int = 0,
        scope: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Report a fatal condition and end the run.

        Does not return, except when called while a report is already in
        progress in this process: the nested call only writes its formatted
        text to stderr and returns, leaving the outer report to finish.
        """
        usage_text = self._config.fault.usage_text
        if usage_text and message == usage_text:
            self.usage_error()

        if self._reporting:
            self.stream.write(self.format(message, level=level, skip=skip + 1))
            self.stream.flush()
            return

        event = FaultEvent(message=message, level=level, stack_skip=skip)
        if scope is None:
            scope = caller_scope(1)

        self._reporting = True
        try:
            with call_frame(ABORT_FRAME, message):
                self._emit(event)
                self._log(event, scope)
            self._end_run(event)
        finally:
            self._reporting = False

    def _emit(self, event: FaultEvent) -> None:
        try:
            stack_text = self._render_stack(event.stack_skip + 1)
        except CallStackError as exc:
            stack_text = self.format(str(exc), skip=1).strip("\n")
        self.stream.write(
            self.banner(event.message, event.level, highlight=self._should_highlight())
            + stack_text
            + "\n"
        )
        self.stream.flush()

    def _log(self, event: FaultEvent, scope: Mapping[str, Any]) -> None:
        text = self.format(event.message, level=event.level, skip=event.stack_skip + 1)
        try:
            self._run_logger.log(0, text.strip("\n"), scope=scope, echo=False)
        except LogSinkError as exc:
            # Recursive fault: shown with the abort frame included, never logged.
            self._logger.debug("fault_log_failed", fault_id=event.id, sink=exc.path)
            self.stream.write(self.format(str(exc)))
            self.stream.flush()

    def _end_run(self, event: FaultEvent) -> NoReturn:
        status = self._config.fault.fault_exit_status
        identity = self._terminator.identity
        if is_subordinate(identity):
            self._logger.debug("fault_in_subordinate", fault_id=event.id)
            self._terminator.terminate_subordinate_tree(status)
        self._logger.debug("fault_in_master", fault_id=event.id)
        raise SystemExit(status)


@contextmanager
def fault_guard(reporter: FaultReporter) -> Generator[None, None, None]:
    """
    Turn an exception escaping a tool's main body into a fault report.

    UsageError goes to the usage path; anything else is an internal fault.
    The log prefix is resolved in the scope of the guarded block.

    A guard entered while ``reporter`` is already reporting swallows the
    exception: the nested report only prints and returns, and the block's
    caller continues until the outer report ends the run.
    """
    try:
        yield
    except UsageError as exc:
        reporter.usage_error(str(exc))
    except Exception as exc:
        reporter.report(
            f"{type(exc).__name__}: {exc}",
            scope=exception_scope(exc, outside=sys._getframe()),
        )
