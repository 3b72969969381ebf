"""
libsnap: Diagnostics Service

Wires the diagnostics core together from one LibsnapConfig: the explicit
call context renderer, the trace flag and its state store, the run logger,
the run identity and terminator, and the fault reporter on top.

A process normally has one service, built on first use by ``get_service()``
(or explicitly by ``configure()``). Tests build their own.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, MutableMapping, TextIO

import structlog

from libsnap.config import LibsnapConfig, load_config
from libsnap.diagnostics.callstack import CallStackRenderer
from libsnap.diagnostics.process import establish_run_identity
from libsnap.diagnostics.reporter import FaultReporter
from libsnap.diagnostics.run_logger import RunLogger
from libsnap.diagnostics.terminator import ProcessTreeTerminator
from libsnap.diagnostics.tracing import TraceFlag, TraceStateStore
from libsnap.diagnostics.types import RunIdentity
from libsnap.telemetry.logging import setup_logging

logger = structlog.get_logger()
_SYSTEM = "libsnap.service"


class DiagnosticsService:
    """Everything a tool needs to trace, log, and fail loudly."""

    def __init__(
        self,
        config: LibsnapConfig,
        identity: RunIdentity | None = None,
        terminator: ProcessTreeTerminator | None = None,
        stream: TextIO | None = None,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self.identity = identity or establish_run_identity(environ)
        self.trace_flag = TraceFlag(enabled=config.trace.enabled, level=config.trace.level)
        self.trace_state = TraceStateStore(self.trace_flag)
        self.renderer = CallStackRenderer(date_format=config.log.date_format)
        self.run_logger = RunLogger(config.log)
        self.terminator = terminator or ProcessTreeTerminator(
            self.identity,
            grace_period_s=config.fault.grace_period_s,
        )
        self.reporter = FaultReporter(
            config,
            self.renderer,
            self.run_logger,
            self.terminator,
            stream=stream,
        )

    @property
    def dry_run(self) -> bool:
        return self.config.log.dry_run

    def log(self, level: int, message: str, scope: Mapping[str, Any] | None = None) -> bool:
        return self.run_logger.log(level, message, scope=scope)

    def abort(self, message: str, skip: int = 0, scope: Mapping[str, Any] | None = None) -> None:
        self.reporter.report(message, skip=skip, scope=scope)

    def warn(self, message: str) -> None:
        self.reporter.warn(message)


_service: DiagnosticsService | None = None


def configure(
    config: LibsnapConfig | None = None,
    config_path: str | os.PathLike[str] | None = None,
    **kwargs: Any,
) -> DiagnosticsService:
    """(Re)build the process-wide service."""
    global _service
    config = config or load_config(config_path)
    if not structlog.is_configured():
        setup_logging(config.logging, tool_name=config.tool.name)
    _service = DiagnosticsService(config, **kwargs)
    logger.debug(
        "diagnostics_configured",
        system=_SYSTEM,
        tool=_service.config.tool.name,
        master_pid=_service.identity.master_process_id,
    )
    return _service


def get_service() -> DiagnosticsService:
    if _service is None:
        return configure()
    return _service


def reset_service() -> None:
    global _service
    _service = None
