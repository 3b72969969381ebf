"""
libsnap: Run Identity and Process Liveness

The first process of a run records its pid and process group in the
environment. Children inherit that environment, so every process in the tree
can tell whether it is the master or a subordinate without asking anyone.
"""

from __future__ import annotations

import errno
import os
import time
from pathlib import Path
from typing import Callable, MutableMapping

import structlog

from libsnap.diagnostics.types import RunIdentity

logger = structlog.get_logger()
_SYSTEM = "libsnap.process"

MASTER_PID_ENV = "LIBSNAP_MASTER_PID"
MASTER_PGID_ENV = "LIBSNAP_MASTER_PGID"

# is_process_alive: kill(pid, 0) sometimes reports a live process as gone
_ALIVE_TRIES = 5
_ALIVE_RETRY_S = 0.123


def establish_run_identity(environ: MutableMapping[str, str] | None = None) -> RunIdentity:
    """
    Read the run identity from the environment, or become the master.

    The first caller in a run has nothing to inherit; it records its own pid
    and process group in ``environ`` so every child started afterwards
    inherits them by value.
    """
    env = os.environ if environ is None else environ
    pid_text = env.get(MASTER_PID_ENV)
    pgid_text = env.get(MASTER_PGID_ENV)

    if pid_text and pid_text.isdigit():
        master_pid = int(pid_text)
        pgid = int(pgid_text) if pgid_text and pgid_text.isdigit() else master_pid
        return RunIdentity(master_process_id=master_pid, process_group_id=pgid)

    identity = RunIdentity(master_process_id=os.getpid(), process_group_id=os.getpgrp())
    env[MASTER_PID_ENV] = str(identity.master_process_id)
    env[MASTER_PGID_ENV] = str(identity.process_group_id)
    logger.debug(
        "run_identity_established",
        system=_SYSTEM,
        master_pid=identity.master_process_id,
        pgid=identity.process_group_id,
    )
    return identity


def export_lines(identity: RunIdentity) -> str:
    """Shell text a master script can ``eval`` to share its identity."""
    return (
        f"export {MASTER_PID_ENV}={identity.master_process_id}"
        f" {MASTER_PGID_ENV}={identity.process_group_id}"
    )


def is_subordinate(identity: RunIdentity, pid: int | None = None) -> bool:
    return not identity.is_master(os.getpid() if pid is None else pid)


def is_process_alive(
    *pids: int,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    True if every pid names a live process.

    A permission error means the process exists but belongs to someone else.
    Each pid gets a few tries before it is declared gone.
    """
    for pid in pids:
        found = False
        for attempt in range(_ALIVE_TRIES):
            try:
                os.kill(pid, 0)
                found = True
            except ProcessLookupError:
                pass
            except PermissionError:
                found = True
            except OSError as exc:
                if exc.errno != errno.ESRCH and Path(f"/proc/{pid}").is_dir():
                    found = True
            if found:
                break
            if attempt < _ALIVE_TRIES - 1:
                sleep(_ALIVE_RETRY_S)
        if not found:
            return False
    return True


def parent_run_identity() -> RunIdentity:
    """
    Identity naming our parent as master.

    For a helper started by a shell script that has no identity yet: the
    script, not the short-lived helper, is the first process of the run.
    """
    parent = os.getppid()
    return RunIdentity(master_process_id=parent, process_group_id=os.getpgid(parent))
