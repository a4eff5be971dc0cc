"""Run configuration and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DNS_TIMEOUT = 2.0


def default_cache_dir() -> Path:
    env = os.getenv("ACCESS_LOG_REPORT_CACHE_DIR")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".cache" / "access-log-report"


def resolve_max_workers(max_workers: int | None) -> int:
    """Worker count for DNS resolution: argument, env, then CPU count."""
    if max_workers is not None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        return max_workers

    env = os.getenv("ACCESS_LOG_REPORT_MAX_WORKERS")
    if env:
        try:
            value = int(env)
        except ValueError as exc:
            raise ValueError("ACCESS_LOG_REPORT_MAX_WORKERS must be an integer") from exc
        if value < 1:
            raise ValueError("ACCESS_LOG_REPORT_MAX_WORKERS must be >= 1")
        return value

    cpu_count = os.cpu_count() or 1
    return min(32, cpu_count)


def resolve_dns_timeout(timeout: float | None) -> float:
    if timeout is not None:
        if timeout <= 0:
            raise ValueError("dns_timeout must be > 0")
        return timeout

    env = os.getenv("ACCESS_LOG_REPORT_DNS_TIMEOUT")
    if env is None or env == "":
        return DEFAULT_DNS_TIMEOUT

    try:
        value = float(env)
    except ValueError as exc:
        raise ValueError("ACCESS_LOG_REPORT_DNS_TIMEOUT must be a number") from exc
    if value <= 0:
        raise ValueError("ACCESS_LOG_REPORT_DNS_TIMEOUT must be > 0")
    return value


@dataclass(frozen=True, slots=True)
class ReportConfig:
    """Options shared by the CLI and the MCP tool."""

    blacklist_path: Path | None = None  # None disables blacklist filtering
    cache_dir: Path = field(default_factory=default_cache_dir)
    dns_timeout: float | None = None
    max_workers: int | None = None
    resolve_deadline: float | None = None  # seconds for the whole resolution phase
