"""MCP tool implementations.

This module contains the *implementation* behind the exposed MCP tools.
Keep this layer thin: validate inputs, translate them into core calls, and
return JSON-serializable data structures.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from access_log_report.core.blacklist import ReverseLookup
from access_log_report.core.config import ReportConfig
from access_log_report.core.log_service import generate_report
from access_log_report.core.ranking import validate_limit
from access_log_report.core.reports import parse_mode, report_to_dict

BASE_DIR_ENV = "ACCESS_LOG_REPORT_BASE_DIR"


def _base_dir() -> Path:
    raw = os.getenv(BASE_DIR_ENV, os.getcwd())
    return Path(raw).resolve()


def _safe_resolve(path: str) -> Path:
    """Resolve a path under the configured base directory."""
    base = _base_dir()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = base / p
    p = p.resolve()
    if base not in p.parents and p != base:
        raise ValueError("Path escapes base dir")
    return p


async def access_report_impl(
    *,
    log_path: str,
    mode: str,
    limit: int = -1,
    blacklist_path: str | None = None,
    lookup: ReverseLookup | None = None,
) -> dict[str, Any]:
    """Implementation for the `access_report` MCP tool.

    Notes
    -----
    - mode is case-insensitive: attempts, successful, status, failures, bytes
    - limit=-1 returns every row; limit=0 returns none
    - blacklist_path enables reverse-DNS filtering (cached across calls)
    """
    report_mode = parse_mode(mode)
    validate_limit(limit)

    config = ReportConfig(
        blacklist_path=_safe_resolve(blacklist_path) if blacklist_path else None,
    )
    report = await generate_report(
        _safe_resolve(log_path),
        report_mode,
        limit=limit,
        config=config,
        lookup=lookup,
    )
    return report_to_dict(report)
