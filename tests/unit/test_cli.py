"""
Tests for the libsnap command-line entry point.
"""

from __future__ import annotations

import functools
import os
import signal
from pathlib import Path

import pytest

from libsnap.cli import main
from libsnap.diagnostics.process import MASTER_PGID_ENV, MASTER_PID_ENV
from libsnap.diagnostics.terminator import ProcessTreeTerminator

USAGE = "Usage: snaptool [-n] volume\n  -n  dry run\n  -v  verbose\n"


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "snap.yaml"
    path.write_text(
        "tool:\n  name: snaptool\n"
        f"log:\n  path: {tmp_path / 'run.log'}\n  level: 1\n  echo_stdout: false\n"
        "fault:\n  highlight: false\n  usage_text: |\n"
        + "".join(f"    {line}\n" for line in USAGE.splitlines())
    )
    return path


class TestIdentity:
    def test_names_parent_when_nothing_inherited(self, capsys):
        assert main(["identity"]) == 0
        parent = os.getppid()
        assert capsys.readouterr().out == (
            f"export {MASTER_PID_ENV}={parent} {MASTER_PGID_ENV}={os.getpgid(parent)}\n"
        )

    def test_passes_through_inherited(self, capsys, monkeypatch):
        monkeypatch.setenv(MASTER_PID_ENV, "1234")
        monkeypatch.setenv(MASTER_PGID_ENV, "1200")
        assert main(["identity"]) == 0
        assert capsys.readouterr().out == f"export {MASTER_PID_ENV}=1234 {MASTER_PGID_ENV}=1200\n"


class TestLog:
    def test_writes_line(self, config_file: Path, tmp_path: Path):
        assert main(["--config", str(config_file), "log", "1", "rotated", "daily.3"]) == 0
        assert (tmp_path / "run.log").read_text().endswith(": rotated daily.3\n")

    def test_filtered_level(self, config_file: Path, tmp_path: Path):
        assert main(["--config", str(config_file), "log", "2", "chatty"]) == 1
        assert not (tmp_path / "run.log").exists()


class TestUsage:
    def test_filtered(self, config_file: Path, capsys):
        assert main(["--config", str(config_file), "usage", "-k", "verbose"]) == 0
        assert capsys.readouterr().out == "  -v  verbose\n"


class RecordingSignals:
    def __init__(self) -> None:
        self.calls: list[tuple[int, int]] = []

    def __call__(self, pgid: int, sig: int) -> None:
        self.calls.append((pgid, sig))


@pytest.fixture
def signals(monkeypatch) -> RecordingSignals:
    """Route the service's terminator to a recorder instead of os.killpg."""
    recorder = RecordingSignals()
    monkeypatch.setattr(
        "libsnap.diagnostics.service.ProcessTreeTerminator",
        functools.partial(
            ProcessTreeTerminator,
            signal_group=recorder,
            sleep=lambda seconds: None,
            install_handler=lambda *args: None,
        ),
    )
    return recorder


class TestAbort:
    def test_reports_and_exits(self, config_file: Path, tmp_path: Path, capsys, signals):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(config_file), "abort", "disk", "gone"])
        assert exc_info.value.code == 1
        assert "snaptool: disk gone" in capsys.readouterr().err
        assert "snaptool: disk gone" in (tmp_path / "run.log").read_text()

    def test_brings_down_calling_script(self, config_file: Path, signals):
        with pytest.raises(SystemExit):
            main(["--config", str(config_file), "abort", "disk", "gone"])
        script_group = os.getpgid(os.getppid())
        assert signals.calls == [(script_group, signal.SIGTERM), (script_group, signal.SIGKILL)]

    def test_inherited_master_is_signalled(self, config_file: Path, monkeypatch, signals):
        monkeypatch.setenv(MASTER_PID_ENV, str(os.getpid() + 1))
        monkeypatch.setenv(MASTER_PGID_ENV, "4242")
        with pytest.raises(SystemExit):
            main(["--config", str(config_file), "abort", "disk", "gone"])
        assert signals.calls == [(4242, signal.SIGTERM), (4242, signal.SIGKILL)]
