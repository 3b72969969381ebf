"""
Tests for the Run Logger.
"""

from __future__ import annotations

import os
import subprocess
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from libsnap.config import LogSinkConfig
from libsnap.diagnostics.errors import LogSinkError
from libsnap.diagnostics.run_logger import RunLogger


def _clock() -> datetime:
    return datetime(2024, 3, 5, 14, 7, 9)


def _logger(path: Path, **overrides) -> RunLogger:
    config = LogSinkConfig(path=str(path), echo_stdout=False, **overrides)
    return RunLogger(config, clock=_clock)


class TestThreshold:
    def test_filtered_level_writes_nothing(self, tmp_path: Path):
        sink = tmp_path / "run.log"
        assert _logger(sink, level=0).log(1, "x", scope={}) is False
        assert not sink.exists()

    def test_level_within_threshold_appends_one_line(self, tmp_path: Path):
        sink = tmp_path / "run.log"
        assert _logger(sink, level=1).log(1, "x", scope={}) is True
        lines = sink.read_text().splitlines()
        assert len(lines) == 1
        assert lines[0].endswith(": x")

    def test_appends(self, tmp_path: Path):
        sink = tmp_path / "run.log"
        run_logger = _logger(sink)
        run_logger.log(0, "first", scope={})
        run_logger.log(0, "second", scope={})
        assert sink.read_text() == "Tue 03/05 14:07:09: first\nTue 03/05 14:07:09: second\n"


class TestPrefix:
    def test_prefix_resolved_at_call_time(self, tmp_path: Path):
        sink = tmp_path / "run.log"
        run_logger = _logger(sink, msg_prefix=" [$volume]")
        run_logger.log(0, "snap", scope={"volume": "sdb1"})
        run_logger.log(0, "snap", scope={"volume": "sdc1"})
        assert sink.read_text().splitlines() == [
            "Tue 03/05 14:07:09 [sdb1]: snap",
            "Tue 03/05 14:07:09 [sdc1]: snap",
        ]

    def test_prefix_reads_caller_locals_by_default(self, tmp_path: Path):
        sink = tmp_path / "run.log"
        run_logger = _logger(sink, msg_prefix=" ${snapshot}")
        snapshot = "daily.3"
        run_logger.log(0, "pruned")
        assert snapshot in sink.read_text()

    def test_trailing_whitespace_stripped(self, tmp_path: Path):
        sink = tmp_path / "run.log"
        _logger(sink, msg_prefix=" $unset_name ").log(0, "m", scope={})
        assert sink.read_text() == "Tue 03/05 14:07:09: m\n"


class TestSink:
    def test_dry_run_uses_null_device(self, tmp_path: Path):
        sink = tmp_path / "run.log"
        run_logger = _logger(sink, dry_run=True)
        assert run_logger.sink == os.devnull
        assert run_logger.log(0, "would delete", scope={}) is True
        assert not sink.exists()

    def test_creates_missing_directories(self, tmp_path: Path):
        sink = tmp_path / "var" / "log" / "snap" / "run.log"
        _logger(sink).log(0, "x", scope={})
        assert sink.exists()

    def test_echo_to_stdout(self, tmp_path: Path, capsys):
        config = LogSinkConfig(path=str(tmp_path / "run.log"), echo_stdout=True)
        RunLogger(config, clock=_clock).log(0, "hello", scope={})
        assert capsys.readouterr().out == "Tue 03/05 14:07:09: hello\n"

    def test_echo_overridden_per_call(self, tmp_path: Path, capsys):
        config = LogSinkConfig(path=str(tmp_path / "run.log"), echo_stdout=True)
        RunLogger(config, clock=_clock).log(0, "quiet", scope={}, echo=False)
        assert capsys.readouterr().out == ""

    def test_unwritable_sink_raises(self, tmp_path: Path):
        with pytest.raises(LogSinkError) as exc_info:
            _logger(tmp_path).log(0, "x", scope={})
        assert exc_info.value.path == str(tmp_path)

    def test_unwritable_existing_file_goes_through_sudo(self, tmp_path: Path):
        sink = tmp_path / "root-owned.log"
        sink.write_text("")
        with patch("libsnap.diagnostics.run_logger.os.access", return_value=False), patch(
            "libsnap.diagnostics.run_logger.subprocess.run"
        ) as run:
            _logger(sink).log(0, "x", scope={})
        argv = run.call_args.args[0]
        assert argv == ["sudo", "tee", "-a", str(sink)]
        assert run.call_args.kwargs["input"] == "Tue 03/05 14:07:09: x\n"

    def test_sudo_failure_raises(self, tmp_path: Path):
        sink = tmp_path / "root-owned.log"
        sink.write_text("")
        failure = subprocess.CalledProcessError(1, ["sudo"])
        with patch("libsnap.diagnostics.run_logger.os.access", return_value=False), patch(
            "libsnap.diagnostics.run_logger.subprocess.run", side_effect=failure
        ):
            with pytest.raises(LogSinkError, match="sudo tee exited 1"):
                _logger(sink).log(0, "x", scope={})
