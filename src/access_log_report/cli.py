from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
import sys
from collections.abc import Sequence
from pathlib import Path

from access_log_report.core.config import ReportConfig, default_cache_dir
from access_log_report.core.log_service import STDIN, generate_report
from access_log_report.core.models import ReportMode
from access_log_report.core.reports import format_report

_NEGATIVE_INT_RE = re.compile(r"^-\d+$")


def _configure_logging() -> None:
    # Reports go to stdout; keep stderr quiet unless asked.
    level_name = os.getenv("ACCESS_LOG_REPORT_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _limit(s: str) -> int:
    try:
        value = int(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError("limit must be an integer") from e
    if value < -1:
        raise argparse.ArgumentTypeError("limit must be >= 0, or -1 for no limit")
    return value


def _blacklist_path(s: str) -> Path | None:
    # An empty value means "no blacklist", same as omitting the option.
    return Path(s) if s else None


def _join_negative_limit(argv: Sequence[str]) -> list[str]:
    """Rewrite `-n -1` as `-n=-1`.

    The `-2` mode flag makes argparse read any negative number as an option.
    """
    out: list[str] = []
    it = iter(argv)
    for arg in it:
        if arg == "-n":
            value = next(it, None)
            if value is not None and _NEGATIVE_INT_RE.match(value):
                out.append(f"-n={value}")
                continue
            out.append(arg)
            if value is not None:
                out.append(value)
            continue
        out.append(arg)
    return out


def _positive_float(s: str) -> float:
    try:
        value = float(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError("expected a number of seconds") from e
    if value <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return value


def _positive_int(s: str) -> int:
    try:
        value = int(s)
    except ValueError as e:
        raise argparse.ArgumentTypeError("expected an integer") from e
    if value < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="access-log-report",
        description="Rank clients, status codes and bandwidth in an access log.",
        epilog="Use '-' (or omit FILE) to read standard input.",
    )
    p.add_argument("log_path", nargs="?", default=STDIN, metavar="FILE")
    p.add_argument("-n", dest="limit", type=_limit, default=-1, help="Limit the number of results to N (default: all)")

    modes = p.add_mutually_exclusive_group(required=True)
    modes.add_argument(
        "-c", dest="mode", action="store_const", const=ReportMode.ATTEMPTS,
        help="Which IP addresses make the most connection attempts?",
    )
    modes.add_argument(
        "-2", dest="mode", action="store_const", const=ReportMode.SUCCESSFUL,
        help="Which IP addresses make the most successful (1xx-3xx) attempts?",
    )
    modes.add_argument(
        "-r", dest="mode", action="store_const", const=ReportMode.STATUS,
        help="Most common result codes and where they come from",
    )
    modes.add_argument(
        "-F", dest="mode", action="store_const", const=ReportMode.FAILURES,
        help="Most common failure codes (4xx-5xx) and where they come from",
    )
    modes.add_argument(
        "-t", dest="mode", action="store_const", const=ReportMode.BYTES,
        help="Which IP addresses get the most bytes sent to them?",
    )

    # Blacklist filtering
    p.add_argument("-b", "--blacklist", type=_blacklist_path, default=None, help="File of blacklisted domain names, one per line")
    p.add_argument("--cache-dir", type=Path, default=None, help="Blacklist cache directory")
    p.add_argument("--dns-timeout", type=_positive_float, default=None, help="Per-lookup reverse DNS timeout (seconds)")
    p.add_argument("--workers", type=_positive_int, default=None, help="Concurrent reverse DNS lookups")
    p.add_argument("--deadline", type=_positive_float, default=None, help="Time budget for all DNS lookups (seconds)")
    return p


def main(argv: Sequence[str] | None = None) -> None:
    p = build_parser()
    args = p.parse_args(_join_negative_limit(sys.argv[1:] if argv is None else argv))
    _configure_logging()

    try:
        config = ReportConfig(
            blacklist_path=args.blacklist,
            cache_dir=args.cache_dir or default_cache_dir(),
            dns_timeout=args.dns_timeout,
            max_workers=args.workers,
            resolve_deadline=args.deadline,
        )
        report = asyncio.run(generate_report(args.log_path, args.mode, limit=args.limit, config=config))
    except FileNotFoundError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(1)
    except ValueError as e:
        p.print_usage(sys.stderr)
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)

    for line in format_report(report):
        print(line)


if __name__ == "__main__":
    main()
