"""Reverse-DNS blacklist resolution with a persisted per-blacklist cache.

An IP is blacklisted when any name its PTR records resolve to contains one of
the blacklist entries. Lookups that fail, time out, or return no names are
treated as not blacklisted (fail-open): blacklist filtering never removes
traffic just because DNS is unreachable.

Answers are memoized in memory and persisted as a JSON document named after
the SHA-256 of the blacklist, so different blacklists never share a cache.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import dns.resolver
from pydantic import BaseModel, Field, ValidationError

from .config import DEFAULT_DNS_TIMEOUT

logger = logging.getLogger(__name__)


def _normalize_name(name: str) -> str:
    return name.strip().rstrip(".").lower()


@dataclass(frozen=True, slots=True)
class Blacklist:
    """A set of blacklisted domain names or name fragments."""

    entries: frozenset[str]

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> Blacklist:
        entries: set[str] = set()
        for line in lines:
            text = line.split("#", 1)[0]
            name = _normalize_name(text)
            if name:
                entries.add(name)
        return cls(entries=frozenset(entries))

    @classmethod
    def from_file(cls, path: str | Path) -> Blacklist:
        p = Path(path)
        if not p.is_file():
            raise FileNotFoundError(f"Blacklist file not found: {p}")
        return cls.from_lines(p.read_text(encoding="utf-8", errors="replace").splitlines())

    @property
    def digest(self) -> str:
        """Stable content hash used as the cache identity."""
        payload = "\n".join(sorted(self.entries))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def matches(self, name: str) -> bool:
        host = _normalize_name(name)
        if not host:
            return False
        return any(entry in host for entry in self.entries)


class ReverseLookup(Protocol):
    """Reverse-DNS interface: return the names for an IP (may raise)."""

    def lookup(self, ip: str) -> Sequence[str]:
        ...


@dataclass(frozen=True, slots=True)
class DnsReverseLookup:
    """PTR lookups through dnspython, bounded by a timeout."""

    timeout: float = DEFAULT_DNS_TIMEOUT

    def lookup(self, ip: str) -> list[str]:
        resolver = dns.resolver.Resolver()
        resolver.timeout = self.timeout
        resolver.lifetime = self.timeout
        answer = resolver.resolve_address(ip)
        return [rr.target.to_text(omit_final_dot=True) for rr in answer]


class BlacklistCacheDocument(BaseModel):
    """On-disk form of the persisted IP -> blacklisted map."""

    blacklist_hash: str
    entries: dict[str, bool] = Field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BlacklistCacheStore:
    """Directory of cache documents keyed by blacklist hash."""

    directory: Path

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> dict[str, bool]:
        """Return the persisted map for key; any problem yields an empty map."""
        path = self.path_for(key)
        if not path.is_file():
            return {}
        try:
            doc = BlacklistCacheDocument.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as exc:
            logger.warning("Ignoring unreadable blacklist cache %s: %s", path, exc)
            return {}
        if doc.blacklist_hash != key:
            logger.warning("Ignoring blacklist cache %s: hash mismatch", path)
            return {}
        return dict(doc.entries)

    def save(self, key: str, entries: Mapping[str, bool]) -> Path:
        """Overwrite the document for key with a full snapshot."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        tmp = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
        doc = BlacklistCacheDocument(blacklist_hash=key, entries=dict(entries))
        try:
            tmp.write_text(doc.model_dump_json(), encoding="utf-8")
            os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)
        return path


class BlacklistResolver:
    """Answer is_blacklisted(ip) with memoization and a persisted cache.

    Passing ``blacklist=None`` (or a blacklist with no entries) disables
    filtering entirely: every IP is reported as not blacklisted, and nothing
    is resolved, loaded or saved.

    Concurrent calls for the same IP share a single resolution. The first
    value recorded for an IP wins.
    """

    def __init__(
        self,
        blacklist: Blacklist | None,
        *,
        store: BlacklistCacheStore | None = None,
        lookup: ReverseLookup | None = None,
    ) -> None:
        self._blacklist = blacklist
        self._store = store
        self._lookup = lookup or DnsReverseLookup()
        self._memo: dict[str, bool] = {}
        self._inflight: dict[str, Future[bool]] = {}
        self._lock = threading.Lock()
        self._loaded = False
        self.resolutions = 0

    @property
    def enabled(self) -> bool:
        return self._blacklist is not None and bool(self._blacklist.entries)

    @property
    def cache_key(self) -> str | None:
        return self._blacklist.digest if self._blacklist is not None else None

    def __enter__(self) -> BlacklistResolver:
        self.load()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Only a completed run persists what it learned.
        if exc_type is None:
            self.save()

    def snapshot(self) -> dict[str, bool]:
        with self._lock:
            return dict(self._memo)

    def is_cached(self, ip: str) -> bool:
        with self._lock:
            return ip in self._memo

    def load(self) -> None:
        """Merge the persisted cache into memory (once)."""
        if not self.enabled or self._loaded:
            return
        key = self._blacklist.digest
        entries = self._store.load(key) if self._store is not None else {}
        with self._lock:
            if self._loaded:
                return
            for ip, value in entries.items():
                self._memo.setdefault(ip, value)
            self._loaded = True
        logger.info("Loaded %d cached blacklist answers (key=%s)", len(entries), key[:12])

    def save(self) -> bool:
        """Persist the full in-memory map. Returns True when written."""
        if not self.enabled or self._store is None or not self._loaded:
            return False
        key = self._blacklist.digest
        entries = self.snapshot()
        try:
            path = self._store.save(key, entries)
        except OSError as exc:
            logger.error("Failed to save blacklist cache (key=%s): %s", key[:12], exc)
            return False
        logger.info("Saved %d blacklist answers to %s", len(entries), path)
        return True

    def is_blacklisted(self, ip: str) -> bool:
        if not self.enabled:
            return False
        self.load()

        with self._lock:
            cached = self._memo.get(ip)
            if cached is not None:
                return cached
            fut = self._inflight.get(ip)
            owner = fut is None
            if owner:
                fut = Future()
                self._inflight[ip] = fut

        if not owner:
            return fut.result()

        try:
            value = self._resolve(ip)
        except BaseException as exc:
            with self._lock:
                self._inflight.pop(ip, None)
            fut.set_exception(exc)
            raise

        with self._lock:
            value = self._memo.setdefault(ip, value)
            self._inflight.pop(ip, None)
        fut.set_result(value)
        return value

    def _resolve(self, ip: str) -> bool:
        with self._lock:
            self.resolutions += 1
        try:
            names = self._lookup.lookup(ip)
        except Exception as exc:
            logger.debug("Reverse lookup failed for %s (treated as not blacklisted): %s", ip, exc)
            return False
        if not names:
            return False
        return any(self._blacklist.matches(name) for name in names)


def open_resolver(
    blacklist_path: str | Path | None,
    *,
    cache_dir: Path | None,
    lookup: ReverseLookup | None = None,
) -> BlacklistResolver:
    """Build a resolver for a blacklist file (None disables filtering)."""
    if blacklist_path is None:
        return BlacklistResolver(None)
    blacklist = Blacklist.from_file(blacklist_path)
    store = BlacklistCacheStore(cache_dir) if cache_dir is not None else None
    return BlacklistResolver(blacklist, store=store, lookup=lookup)
