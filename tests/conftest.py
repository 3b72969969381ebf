from __future__ import annotations

import os

import pytest

from libsnap.config import LoggingConfig
from libsnap.diagnostics.process import MASTER_PGID_ENV, MASTER_PID_ENV
from libsnap.diagnostics.service import reset_service
from libsnap.telemetry.logging import setup_logging


@pytest.fixture(scope="session", autouse=True)
def _quiet_structlog():
    """Keep the library's own debug events off the streams tests inspect."""
    setup_logging(LoggingConfig(level="WARNING"))
    yield


@pytest.fixture(autouse=True)
def _fresh_run():
    """Each test starts as the first process of a new run."""
    saved = {k: os.environ.pop(k) for k in (MASTER_PID_ENV, MASTER_PGID_ENV) if k in os.environ}
    reset_service()
    yield
    reset_service()
    for k in (MASTER_PID_ENV, MASTER_PGID_ENV):
        os.environ.pop(k, None)
    os.environ.update(saved)
