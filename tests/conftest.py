from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest


def access_line(ip: str, status: str | int = 200, size: str | int = 512, path: str = "/index.html") -> str:
    """Common Log Format line: status is field 9, size is field 10."""
    return f'{ip} - - [10/Oct/2000:13:55:36 -0700] "GET {path} HTTP/1.0" {status} {size}'


class FakeLookup:
    """Reverse lookup backed by a dict; records every call."""

    def __init__(
        self,
        names: dict[str, Sequence[str]] | None = None,
        *,
        fail: bool = False,
        delay: threading.Event | None = None,
    ) -> None:
        self.names = names or {}
        self.fail = fail
        self.delay = delay
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def lookup(self, ip: str) -> Sequence[str]:
        with self._lock:
            self.calls.append(ip)
        if self.delay is not None:
            self.delay.wait(timeout=2)
        if self.fail:
            raise TimeoutError(f"lookup timed out for {ip}")
        return self.names.get(ip, [])


@pytest.fixture(autouse=True)
def isolated_cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    cache_dir = tmp_path / "blacklist-cache"
    monkeypatch.setenv("ACCESS_LOG_REPORT_CACHE_DIR", str(cache_dir))
    monkeypatch.delenv("ACCESS_LOG_REPORT_MAX_WORKERS", raising=False)
    monkeypatch.delenv("ACCESS_LOG_REPORT_DNS_TIMEOUT", raising=False)
    return cache_dir


@pytest.fixture
def line() -> Callable[..., str]:
    return access_line


@pytest.fixture
def fake_lookup() -> Callable[..., FakeLookup]:
    return FakeLookup


@pytest.fixture
def write_log() -> Callable[[Path, list[str]], Path]:
    def _write(path: Path, lines: list[str]) -> Path:
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_lines() -> list[str]:
    """Three 200s from 10.0.0.1 and one 404 from 10.0.0.2."""
    return [access_line("10.0.0.1", 200, 512)] * 3 + [access_line("10.0.0.2", 404, 100)]


@pytest.fixture
def mixed_lines() -> list[str]:
    return [
        access_line("10.0.0.1", 200, 100),
        access_line("10.0.0.1", 200, 100),
        access_line("10.0.0.1", 404, "-"),
        access_line("10.0.0.2", 301, 50),
        access_line("10.0.0.2", 500, "-"),
        access_line("10.0.0.2", 500, "-"),
        access_line("10.0.0.2", 500, "-"),
        access_line("10.0.0.3", 404, "-"),
        access_line("10.0.0.3", 404, "-"),
        access_line("10.0.0.3", 200, 4000),
        access_line("10.0.0.4", 403, "-"),
        "garbage",
    ]


@pytest.fixture
def write_blacklist() -> Callable[[Path, list[str]], Path]:
    def _write(path: Path, entries: list[str]) -> Path:
        path.write_text("\n".join(entries) + "\n", encoding="utf-8")
        return path

    return _write
