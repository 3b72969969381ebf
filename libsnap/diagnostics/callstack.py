"""
libsnap: Call Stack Capturer

Keeps an explicit call context (push on entry, pop on exit) and renders it
as text for fault banners. The renderer only ever reads this owned stack;
it does not walk interpreter frames.

Frames are pushed with the ``call_frame`` context manager or the
``traced_call`` decorator. The context lives in a ContextVar, so threads and
asyncio tasks each see their own stack.
"""

from __future__ import annotations

import contextvars
import functools
import inspect
import os
import re
import shlex
import sys
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Generator, TypeVar

from libsnap.diagnostics.errors import CallStackError
from libsnap.diagnostics.types import CallFrame, CallStack
from libsnap.primitives.common import local_now

F = TypeVar("F", bound=Callable[..., Any])

# Outermost first; rendering reverses it.
_CALL_CONTEXT: contextvars.ContextVar[tuple[CallFrame, ...]] = contextvars.ContextVar(
    "libsnap_call_context", default=()
)

_OTHER_HOME = re.compile(r"^/home/([^/]+)(/.*)?$")

EMPTY_STACK_MARKER = "<empty stack>"


# ── Call context ──────────────────────────────────────────────────────────────


def current_stack() -> CallStack:
    """Snapshot of the explicit call context, innermost first."""
    return CallStack(frames=tuple(reversed(_CALL_CONTEXT.get())))


def _caller_location(depth: int) -> tuple[str, int]:
    try:
        frame = sys._getframe(depth + 1)
    except ValueError:
        return "?", 0
    return frame.f_code.co_filename, frame.f_lineno


def _stringify_arguments(args: tuple[Any, ...], kwargs: dict[str, Any]) -> tuple[str, ...]:
    rendered = [str(a) for a in args]
    rendered.extend(f"{k}={v}" for k, v in kwargs.items())
    return tuple(rendered)


@contextmanager
def call_frame(
    function_name: str,
    *arguments: Any,
    source: str | None = None,
    line: int | None = None,
) -> Generator[CallFrame, None, None]:
    """
    Push one frame for the duration of the block.

    ``source`` and ``line`` default to the location of the ``with`` statement.
    """
    if source is None or line is None:
        found_source, found_line = _caller_location(2)
        source = source if source is not None else found_source
        line = line if line is not None else found_line

    frame = CallFrame(
        function_name=function_name,
        source_location=source,
        line_number=line,
        arguments=tuple(str(a) for a in arguments),
    )
    token = _CALL_CONTEXT.set(_CALL_CONTEXT.get() + (frame,))
    try:
        yield frame
    finally:
        _CALL_CONTEXT.reset(token)


def traced_call(func: F) -> F:
    """Decorator: record each call of ``func`` on the explicit call context."""
    name = func.__qualname__

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            source, line = _caller_location(1)
            with call_frame(name, *_stringify_arguments(args, kwargs), source=source, line=line):
                return await func(*args, **kwargs)

        return async_wrapper  # type: ignore[return-value]

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        source, line = _caller_location(1)
        with call_frame(name, *_stringify_arguments(args, kwargs), source=source, line=line):
            return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


# ── Rendering ─────────────────────────────────────────────────────────────────


def abbreviate_path(path: str, home: str | None = None) -> str:
    """Show our home as ``~`` and other users' homes as ``~user``."""
    home = (home or os.path.expanduser("~")).rstrip("/")
    if home and (path == home or path.startswith(home + "/")):
        return "~" + path[len(home):]
    m = _OTHER_HOME.match(path)
    if m:
        return f"~{m.group(1)}{m.group(2) or ''}"
    return path


def _quote(argument: str) -> str:
    if argument == "" or any(c.isspace() for c in argument):
        return shlex.quote(argument)
    return argument


def elide_arguments(arguments: tuple[str, ...] | list[str], max_args_per_frame: int) -> list[str]:
    """
    Quote arguments and elide the middle of long lists.

    With n arguments and threshold t, lists longer than t + 1 keep the first
    two and the last t - 2 around a ``<n-t more args>`` marker. A list of
    exactly t + 1 is shown whole, so the marker never stands for one argument.
    """
    if max_args_per_frame < 2:
        raise ValueError("max_args_per_frame must be at least 2")
    quoted = [_quote(a) for a in arguments]
    n = len(quoted)
    t = max_args_per_frame
    if n <= t + 1:
        return quoted
    return quoted[:2] + [f"<{n - t} more args>"] + quoted[n - (t - 2):]


class CallStackRenderer:
    """
    Renders the explicit call context for fault banners.

    The stack source and clock are injectable; by default they read the
    live call context and local wall-clock time.
    """

    def __init__(
        self,
        date_format: str = "%a %m/%d %H:%M:%S",
        source: Callable[[], CallStack] = current_stack,
        clock: Callable[[], datetime] = local_now,
        home: str | None = None,
    ) -> None:
        self._date_format = date_format
        self._source = source
        self._clock = clock
        self._home = home

    def capture(self) -> CallStack:
        try:
            stack = self._source()
        except Exception as exc:
            raise CallStackError(f"{type(exc).__name__}: {exc}") from exc
        if not isinstance(stack, CallStack):
            raise CallStackError(f"unexpected call context {type(stack).__name__}")
        return stack

    def render_frame(self, frame: CallFrame, max_args_per_frame: int) -> str:
        parts = [
            f"{abbreviate_path(frame.source_location, self._home)}:{frame.line_number}",
            frame.function_name,
            *elide_arguments(frame.arguments, max_args_per_frame),
        ]
        return "    " + " ".join(parts)

    def render(
        self,
        skip: int,
        max_args_per_frame: int,
        header_message: str = "",
        stack: CallStack | None = None,
    ) -> str:
        """
        Header line, then one line per retained frame, innermost first.

        Raises CallStackError if the call context cannot be read.
        """
        if stack is None:
            stack = self.capture()

        header = f"{self._clock().strftime(self._date_format)} call stack"
        if header_message:
            header = f"{header}: {header_message}"
        lines = [header]

        retained = stack.without_innermost(skip)
        if retained is None:
            lines.append(f"    {EMPTY_STACK_MARKER}")
        else:
            lines.extend(self.render_frame(f, max_args_per_frame) for f in retained.frames)
        return "\n".join(lines)
