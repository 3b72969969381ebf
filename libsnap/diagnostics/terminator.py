"""
libsnap: Process-Tree Terminator

A subordinate process that hits a fatal error must bring the whole run
down, not just itself. It does that by signalling the master's process
group: SIGTERM first, a grace period, then SIGKILL.

Rules:
- The terminating process ignores SIGTERM while it signals, so the
  group-wide SIGTERM cannot cut the escalation short.
- A target that has already exited is an expected race, never a fault.
- terminate_subordinate_tree() does not return.
"""

from __future__ import annotations

import os
import signal
import time
from typing import Callable, NoReturn

import structlog

from libsnap.diagnostics.types import RunIdentity

logger = structlog.get_logger()
_SYSTEM = "libsnap.terminator"

DEFAULT_GRACE_PERIOD_S: float = 1.0


class ProcessTreeTerminator:
    """
    Two-phase, group-wide termination for a run.

    The signalling, sleeping and handler-installing primitives are injectable
    so the escalation can be exercised without killing anything.
    """

    def __init__(
        self,
        identity: RunIdentity,
        grace_period_s: float = DEFAULT_GRACE_PERIOD_S,
        signal_group: Callable[[int, int], None] = os.killpg,
        sleep: Callable[[float], None] = time.sleep,
        install_handler: Callable[..., object] = signal.signal,
    ) -> None:
        self._identity = identity
        self._grace_period_s = grace_period_s
        self._signal_group = signal_group
        self._sleep = sleep
        self._install_handler = install_handler
        self._logger = logger.bind(
            system=_SYSTEM,
            master_pid=identity.master_process_id,
            pgid=identity.process_group_id,
        )

    @property
    def identity(self) -> RunIdentity:
        return self._identity

    def _send(self, sig: signal.Signals) -> bool:
        """Signal the group. False if nobody was left to receive it."""
        try:
            self._signal_group(self._identity.process_group_id, sig)
        except ProcessLookupError:
            self._logger.debug("process_group_already_gone", signal=sig.name)
            return False
        self._logger.debug("process_group_signalled", signal=sig.name)
        return True

    def terminate_subordinate_tree(self, status: int = 1) -> NoReturn:
        """
        SIGTERM the run's process group, wait, then SIGKILL it.

        If this process survives (it is outside the group, or SIGKILL was
        not delivered), it exits with ``status``.
        """
        self._logger.info("terminating_process_tree", pid=os.getpid())
        previous = self._install_handler(signal.SIGTERM, signal.SIG_IGN)
        try:
            self._send(signal.SIGTERM)
            self._sleep(self._grace_period_s)
            self._send(signal.SIGKILL)
        finally:
            if previous is not None:
                self._install_handler(signal.SIGTERM, previous)
        raise SystemExit(status)
