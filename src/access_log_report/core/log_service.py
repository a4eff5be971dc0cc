"""Log loading, blacklist filtering and report generation.

This module is the main integration point: it reads an access log (file,
gzip file or standard input), extracts records, drops blacklisted clients
and builds the requested report.
"""

from __future__ import annotations

import asyncio
import gzip
import io
import logging
import sys
from collections.abc import AsyncIterator, Iterable
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from pathlib import Path

import aiofiles
from aiofiles.threadpool import wrap

from .blacklist import BlacklistResolver, DnsReverseLookup, ReverseLookup, open_resolver
from .config import ReportConfig, resolve_dns_timeout, resolve_max_workers
from .fields import extract
from .models import LogRecord, Report, ReportMode
from .ranking import UNLIMITED, validate_limit
from .reports import build_report, parse_mode

logger = logging.getLogger(__name__)

STDIN = "-"


@asynccontextmanager
async def _open_text(source: str | Path, *, encoding: str, decode_errors: str):
    """Open a log source for async text reading (stdin, plain or gzip)."""
    if str(source) == STDIN:
        buffer = getattr(sys.stdin, "buffer", None)
        if buffer is None:
            yield wrap(sys.stdin)
            return
        stream = io.TextIOWrapper(buffer, encoding=encoding, errors=decode_errors)
        try:
            yield wrap(stream)
        finally:
            # Leave sys.stdin usable for the caller.
            stream.detach()
        return

    path = Path(source)
    if not path.is_file():
        raise FileNotFoundError(f"Log file not found: {path}")

    if path.suffix.lower() == ".gz":
        f = gzip.open(path, mode="rt", encoding=encoding, errors=decode_errors)
        af = wrap(f)
        try:
            yield af
        finally:
            await af.close()
    else:
        async with aiofiles.open(path, encoding=encoding, errors=decode_errors) as f:
            yield f


async def iter_lines(
    source: str | Path,
    *,
    encoding: str = "utf-8",
    decode_errors: str = "replace",
) -> AsyncIterator[str]:
    """Yield lines without their line endings."""
    async with _open_text(source, encoding=encoding, decode_errors=decode_errors) as f:
        async for line in f:
            yield line.rstrip("\r\n")


async def iter_records(source: str | Path, **line_kwargs) -> AsyncIterator[LogRecord]:
    """Yield one record per non-blank line."""
    async for line in iter_lines(source, **line_kwargs):
        if not line.strip():
            continue
        yield extract(line)


async def resolve_blacklisted(
    ips: Iterable[str],
    resolver: BlacklistResolver,
    *,
    max_workers: int | None = None,
    deadline: float | None = None,
) -> set[str]:
    """Return the blacklisted subset of ips, resolving unknown IPs concurrently.

    IPs still unresolved when the deadline expires count as not blacklisted.
    """
    if not resolver.enabled:
        return set()
    resolver.load()

    blocked: set[str] = set()
    pending: list[str] = []
    for ip in dict.fromkeys(ips):
        if not ip:
            continue
        if resolver.is_cached(ip):
            if resolver.is_blacklisted(ip):
                blocked.add(ip)
        else:
            pending.append(ip)

    if not pending:
        return blocked

    worker_count = min(resolve_max_workers(max_workers), len(pending))
    logger.info("Resolving %d uncached IPs with %d workers", len(pending), worker_count)

    loop = asyncio.get_running_loop()
    executor = ThreadPoolExecutor(max_workers=worker_count)
    timed_out = False
    try:
        tasks = {
            asyncio.ensure_future(loop.run_in_executor(executor, resolver.is_blacklisted, ip)): ip
            for ip in pending
        }
        done, not_done = await asyncio.wait(tasks, timeout=deadline)
        if not_done:
            timed_out = True
            logger.warning(
                "Blacklist resolution deadline reached; %d IPs treated as not blacklisted",
                len(not_done),
            )
            for task in not_done:
                task.cancel()
        for task in done:
            if task.result():
                blocked.add(tasks[task])
    finally:
        executor.shutdown(wait=not timed_out, cancel_futures=True)

    return blocked


async def filter_blacklisted(
    records: list[LogRecord],
    resolver: BlacklistResolver,
    *,
    max_workers: int | None = None,
    deadline: float | None = None,
) -> list[LogRecord]:
    """Drop records whose client IP is blacklisted."""
    if not resolver.enabled:
        return records
    blocked = await resolve_blacklisted(
        (r.ip for r in records),
        resolver,
        max_workers=max_workers,
        deadline=deadline,
    )
    if blocked:
        logger.info("Dropping traffic from %d blacklisted IPs", len(blocked))
    return [r for r in records if r.ip not in blocked]


async def generate_report(
    source: str | Path,
    mode: ReportMode | str,
    *,
    limit: int = UNLIMITED,
    config: ReportConfig | None = None,
    lookup: ReverseLookup | None = None,
    encoding: str = "utf-8",
    decode_errors: str = "replace",
) -> Report:
    """Read a log source and build one ranked report.

    The blacklist cache is loaded before filtering and saved only after the
    report has been built.
    """
    config = config or ReportConfig()
    mode = parse_mode(mode)
    validate_limit(limit)

    records = [
        r async for r in iter_records(source, encoding=encoding, decode_errors=decode_errors)
    ]

    if lookup is None and config.blacklist_path is not None:
        lookup = DnsReverseLookup(timeout=resolve_dns_timeout(config.dns_timeout))
    resolver = open_resolver(config.blacklist_path, cache_dir=config.cache_dir, lookup=lookup)

    with resolver:
        kept = await filter_blacklisted(
            records,
            resolver,
            max_workers=config.max_workers,
            deadline=config.resolve_deadline,
        )
        report = build_report(kept, mode, limit)

    logger.info(
        "Built %s report: %d records read, %d kept, %d rows",
        mode.value,
        len(records),
        len(kept),
        len(report.rows),
    )
    return report
