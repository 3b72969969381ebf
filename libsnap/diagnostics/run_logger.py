"""
libsnap: Run Logger

Appends one levelled, timestamped line per event to the run log:

    <timestamp><prefix>: <message>

The prefix template may name variables (``$host``, ``${snapshot}``); they are
resolved in the caller's scope at the moment of the call, not when the
logger is configured.

Write failures raise LogSinkError. The Fault Reporter catches that on its own
logging step, so a broken sink can never send the fault path round again.
"""

from __future__ import annotations

import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Mapping

import structlog

from libsnap.config import LogSinkConfig
from libsnap.diagnostics.errors import LogSinkError
from libsnap.diagnostics.scope import caller_scope, expand
from libsnap.primitives.common import local_now

logger = structlog.get_logger()
_SYSTEM = "libsnap.run_logger"


class RunLogger:
    """Levelled appender for a tool's run log."""

    def __init__(
        self,
        config: LogSinkConfig,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._config = config
        self._clock = clock

    @property
    def config(self) -> LogSinkConfig:
        return self._config

    @property
    def sink(self) -> str:
        """Where lines go right now; dry runs never touch the real sink."""
        return os.devnull if self._config.dry_run else self._config.path

    def format_line(self, message: str, scope: Mapping[str, Any]) -> str:
        stamp = self._clock().strftime(self._config.date_format)
        prefix = expand(self._config.msg_prefix, scope).rstrip()
        return f"{stamp}{prefix}: {message}"

    def log(
        self,
        level: int,
        message: str,
        *,
        scope: Mapping[str, Any] | None = None,
        echo: bool | None = None,
    ) -> bool:
        """
        Append ``message`` if ``level`` is within the configured threshold.

        Returns False (and writes nothing) when the level is filtered out.
        """
        if level > self._config.level:
            return False

        line = self.format_line(message, scope if scope is not None else caller_scope(1))
        self._append(self.sink, line + "\n")

        if self._config.echo_stdout if echo is None else echo:
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        return True

    def _append(self, sink: str, text: str) -> None:
        path = Path(sink)
        if sink != os.devnull:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise LogSinkError(sink, f"can't create {path.parent}: {exc.strerror}") from exc

            if path.exists() and not os.access(path, os.W_OK):
                self._append_as_root(sink, text)
                return

        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as exc:
            raise LogSinkError(sink, exc.strerror or str(exc)) from exc

    def _append_as_root(self, sink: str, text: str) -> None:
        logger.debug("log_sink_not_writable_using_sudo", system=_SYSTEM, sink=sink)
        try:
            subprocess.run(
                ["sudo", "tee", "-a", sink],
                input=text,
                text=True,
                stdout=subprocess.DEVNULL,
                check=True,
            )
        except FileNotFoundError as exc:
            raise LogSinkError(sink, "not writable and sudo is not available") from exc
        except subprocess.CalledProcessError as exc:
            raise LogSinkError(sink, f"sudo tee exited {exc.returncode}") from exc
