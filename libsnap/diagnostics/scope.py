"""Late-bound variable lookup for log prefixes and trace output."""

from __future__ import annotations

import os
import string
import sys
from types import FrameType
from typing import Any, Mapping


class ScopeMapping(dict):
    """Variables visible to a template; unknown names expand to ''."""

    def __missing__(self, key: str) -> str:
        return ""


def caller_scope(depth: int = 1) -> ScopeMapping:
    """
    Variables visible ``depth`` frames above the caller of this function.

    Locals shadow globals, which shadow the process environment, the way a
    shell resolves a name.
    """
    try:
        frame = sys._getframe(depth + 1)
    except ValueError:
        return ScopeMapping(os.environ)
    return frame_scope(frame)


def frame_scope(frame: FrameType) -> ScopeMapping:
    scope = ScopeMapping(os.environ)
    scope.update(frame.f_globals)
    scope.update(frame.f_locals)
    return scope


def exception_scope(exc: BaseException, outside: FrameType | None = None) -> ScopeMapping:
    """
    Variables of the outermost frame the exception unwound through.

    Entries for ``outside`` (a handler's own frame, when the exception was
    thrown into it) are passed over.
    """
    tb = exc.__traceback__
    while tb is not None and tb.tb_frame is outside:
        tb = tb.tb_next
    if tb is None:
        return ScopeMapping(os.environ)
    return frame_scope(tb.tb_frame)


def expand(template: str, scope: Mapping[str, Any]) -> str:
    """Substitute ``$name`` and ``${name}`` from scope; unknown names are empty."""
    if not template:
        return ""
    mapping = scope if isinstance(scope, ScopeMapping) else ScopeMapping(scope)
    return string.Template(template).safe_substitute(
        {k: v for k, v in _names(template, mapping)}
    )


def _names(template: str, scope: ScopeMapping) -> list[tuple[str, str]]:
    pattern = string.Template.pattern
    found: list[tuple[str, str]] = []
    for m in pattern.finditer(template):
        name = m.group("named") or m.group("braced")
        if name:
            found.append((name, str(scope[name])))
    return found
