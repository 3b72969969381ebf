"""
libsnap: Configuration System

All configuration is Pydantic-validated and loaded from:
1. an optional YAML file (defaults for a tool or a host)
2. Environment variables (overrides, LIBSNAP_ prefix)

The surrounding tool owns these values; the diagnostics core only reads them.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, EnvSettingsSource, SettingsConfigDict

# ─── Sub-configs ──────────────────────────────────────────────────


def _default_tool_name() -> str:
    return Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "libsnap"


class ToolConfig(BaseModel):
    # Shown as "<name>: <message>" in fault banners
    name: str = Field(default_factory=_default_tool_name)


class LogSinkConfig(BaseModel):
    """The run log: one timestamped line per event, appended."""

    path: str = os.devnull
    level: int = 0  # lines with a higher level are dropped
    date_format: str = "%a %m/%d %H:%M:%S"
    # May hold $variables, resolved in the caller's scope on every call
    msg_prefix: str = ""
    dry_run: bool = False
    echo_stdout: bool = True


class TraceConfig(BaseModel):
    level: int = 0
    enabled: bool = False  # initial state of the ambient trace flag


class FaultConfig(BaseModel):
    max_args_per_frame: int = 6
    grace_period_s: float = 1.0
    highlight: bool = True  # only honoured when stderr is a TTY
    usage_text: str = ""
    usage_exit_status: int = 2
    fault_exit_status: int = 1

    @field_validator("max_args_per_frame")
    @classmethod
    def _at_least_two(cls, v: int) -> int:
        if v < 2:
            raise ValueError("max_args_per_frame must be at least 2")
        return v


class LoggingConfig(BaseModel):
    level: str = "WARNING"
    format: str = "console"  # "console" | "json"


# ─── Root Configuration ──────────────────────────────────────────


class LibsnapConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIBSNAP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    tool: ToolConfig = Field(default_factory=ToolConfig)
    log: LogSinkConfig = Field(default_factory=LogSinkConfig)
    trace: TraceConfig = Field(default_factory=TraceConfig)
    fault: FaultConfig = Field(default_factory=FaultConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> LibsnapConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.

    Precedence, lowest first: the file, the shell library's variable names,
    ``LIBSNAP_<SECTION>__<KEY>`` variables, explicit ``overrides``.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    # The shell library's historical variable names
    if log_file := os.environ.get("LIBSNAP_LOG_CMD_FILE"):
        raw.setdefault("log", {})["path"] = log_file
    if our_name := os.environ.get("LIBSNAP_OUR_NAME"):
        raw.setdefault("tool", {})["name"] = our_name
    if run_if := os.environ.get("RunIf"):
        raw.setdefault("log", {})["dry_run"] = bool(run_if.strip())

    # Init kwargs outrank the environment in BaseSettings, so fold it in here
    raw = _deep_merge(raw, EnvSettingsSource(LibsnapConfig)())

    if overrides:
        raw = _deep_merge(raw, overrides)

    return LibsnapConfig(**raw)
