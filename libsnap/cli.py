"""
libsnap: Command-line entry point

Lets shell scripts of the snapshot tools share the diagnostics core:

    eval "$(libsnap identity)"            # once, in the master script
    libsnap log 1 "rotated $snapshot"     # one run-log line
    libsnap abort "can't mount $disk"     # report, log, end the run
    libsnap usage -k rotate               # usage lines mentioning 'rotate'
"""

from __future__ import annotations

import argparse
import os
import sys

from libsnap.config import load_config
from libsnap.diagnostics.errors import LogSinkError
from libsnap.diagnostics.process import MASTER_PID_ENV, export_lines, parent_run_identity
from libsnap.diagnostics.service import configure
from libsnap.diagnostics.types import FaultLevel
from libsnap.telemetry.logging import setup_logging


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="libsnap",
        description="Diagnostics and fault signalling for the snapshot tools.",
    )
    parser.add_argument("--config", default=None, help="YAML configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_log = sub.add_parser("log", help="append one line to the run log")
    p_log.add_argument("level", type=int)
    p_log.add_argument("message", nargs="+")

    p_abort = sub.add_parser("abort", help="report a fatal error and end the run")
    p_abort.add_argument("--skip", type=int, default=0, help="innermost frames to hide")
    p_abort.add_argument("--warning", action="store_true", help="report at warning level")
    p_abort.add_argument("message", nargs="+")

    sub.add_parser("identity", help="print the run identity as shell exports")

    p_usage = sub.add_parser("usage", help="print the usage text, or the lines matching PATTERN")
    p_usage.add_argument("-k", "--keyword", action="store_true", help="(ignored; grep-style flag)")
    p_usage.add_argument("pattern", nargs="*")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    config = load_config(args.config)
    setup_logging(config.logging, tool_name=config.tool.name)

    # With no run inherited, the calling script is the master, not this helper
    identity = None if MASTER_PID_ENV in os.environ else parent_run_identity()
    service = configure(config, identity=identity)

    if args.command == "identity":
        print(export_lines(service.identity))
        return 0

    if args.command == "usage":
        service.reporter.usage(args.pattern)
        return 0

    if args.command == "log":
        try:
            return 0 if service.log(args.level, " ".join(args.message)) else 1
        except LogSinkError as exc:
            service.warn(str(exc))
            return 1

    if args.command == "abort":
        level = FaultLevel.WARNING if args.warning else FaultLevel.ERROR
        service.reporter.report(" ".join(args.message), level=level, skip=args.skip)

    return config.fault.fault_exit_status


if __name__ == "__main__":
    sys.exit(main())
