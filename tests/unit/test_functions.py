"""
Tests for the module-level functions tools call directly.
"""

from __future__ import annotations

import io
import os
from pathlib import Path

import pytest

from libsnap import (
    abort,
    header,
    log,
    restore_tracing,
    run_command,
    suspend_tracing,
    trace_vars,
    warn,
)
from libsnap.config import LibsnapConfig
from libsnap.diagnostics.process import MASTER_PID_ENV
from libsnap.diagnostics.service import configure, get_service


def _configure(tmp_path: Path, stream: io.StringIO | None = None, **log_overrides):
    config = LibsnapConfig(
        tool={"name": "snaptool"},
        log={
            "path": str(tmp_path / "run.log"),
            "level": 1,
            "msg_prefix": " [$volume]",
            "echo_stdout": False,
            **log_overrides,
        },
        trace={"level": 1, "enabled": True},
        fault={"highlight": False},
    )
    return configure(config, stream=stream)


class TestService:
    def test_first_service_is_master(self, tmp_path: Path):
        service = _configure(tmp_path)
        assert service.identity.master_process_id == os.getpid()
        assert os.environ[MASTER_PID_ENV] == str(os.getpid())

    def test_get_service_returns_configured(self, tmp_path: Path):
        service = _configure(tmp_path)
        assert get_service() is service


class TestLogAndAbort:
    def test_log_uses_caller_scope(self, tmp_path: Path):
        _configure(tmp_path)
        volume = "sdb1"
        assert log(1, f"snapshot of {volume} done") is True
        assert "[sdb1]: snapshot of sdb1 done" in (tmp_path / "run.log").read_text()

    def test_abort_ends_run(self, tmp_path: Path):
        stream = io.StringIO()
        _configure(tmp_path, stream=stream)
        volume = "sdc1"
        with pytest.raises(SystemExit) as exc_info:
            abort(f"can't mount {volume}")
        assert exc_info.value.code == 1
        assert "snaptool: can't mount sdc1" in stream.getvalue()
        assert "[sdc1]:" in (tmp_path / "run.log").read_text()

    def test_warn_continues(self, tmp_path: Path):
        stream = io.StringIO()
        _configure(tmp_path, stream=stream)
        warn("low space")
        assert stream.getvalue() == "\nsnaptool: low space\n\n"


class TestTracingFunctions:
    def test_suspend_restore_round_trip(self, tmp_path: Path, capsys):
        service = _configure(tmp_path)
        status = 1
        suspend_tracing("prune")
        assert service.trace_flag.enabled is False
        assert restore_tracing("prune", "status", status=status) == 1
        assert service.trace_flag.enabled is True
        assert capsys.readouterr().err == "+ status=1\n"

    def test_trace_vars_reads_caller(self, tmp_path: Path, capsys):
        _configure(tmp_path)
        keep = 7
        assert trace_vars(1, "keep") is True
        assert capsys.readouterr().err == f"keep={keep}\n"


class TestHelpers:
    def test_header(self, capsys):
        header("/mnt/backups")
        assert capsys.readouterr().out == "\n==> /mnt/backups <==\n"

    def test_run_command_dry_run(self, tmp_path: Path, capsys):
        _configure(tmp_path, dry_run=True)
        result = run_command(["btrfs", "subvolume", "delete", "/mnt/snap 1"])
        assert result.returncode == 0
        captured = capsys.readouterr()
        assert captured.out == "btrfs subvolume delete '/mnt/snap 1'\n"
        assert captured.err == "+ btrfs subvolume delete '/mnt/snap 1'\n"
