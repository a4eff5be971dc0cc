"""MCP server entrypoint (stdio transport).

Exposes the access-log reports as a single MCP tool.

Run locally (stdio):
    python -m access_log_report.server.log_server
"""

from __future__ import annotations

import logging
import os
from typing import Any

from mcp.server.fastmcp import FastMCP

from access_log_report.tools.report import access_report_impl

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure a reasonable default logging setup.

    The MCP client typically captures stderr; keeping logs concise makes them easier to consume.
    """
    level_name = os.getenv("ACCESS_LOG_REPORT_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


mcp = FastMCP("access-log-report", json_response=True)


@mcp.tool()
async def access_report(
    log_path: str,
    mode: str,
    limit: int = -1,
    blacklist_path: str | None = None,
) -> dict[str, Any]:
    """Return a ranked access-log report.

    Parameters
    ----------
    log_path:
        Path to a local access log. Supports plain text and .gz.
    mode:
        One of:
          - attempts: connection attempts per IP
          - successful: 1xx-3xx responses per IP
          - status: distinct (code, IP) pairs, grouped by code
          - failures: like status, restricted to 4xx-5xx
          - bytes: bytes sent per IP
    limit:
        Maximum number of rows (-1 for all).
    blacklist_path:
        Optional file of domain names; clients whose reverse DNS matches are dropped.

    Returns
    -------
    dict:
        {"mode": str, "limit": int, "count": int, "rows": list[dict]}
    """
    return await access_report_impl(
        log_path=log_path,
        mode=mode,
        limit=limit,
        blacklist_path=blacklist_path,
    )


def main() -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
