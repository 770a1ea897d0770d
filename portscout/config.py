"""Scan defaults and the immutable per-run configuration."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_START_PORT = 1
DEFAULT_END_PORT = 1024
DEFAULT_TIMEOUT_MS = 1000
DEFAULT_CONCURRENCY_LIMIT = 100

# Active probes use their own fixed budget, independent of the connect timeout.
PROBE_TIMEOUT_MS = 500
PROBE_READ_LIMIT = 4096

MAX_PORT = 65535


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """Connect timeout and admission limit for one scan."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    probe_timeout_ms: int = PROBE_TIMEOUT_MS

    @property
    def timeout(self) -> float:
        """Connect timeout in seconds."""
        return self.timeout_ms / 1000

    @property
    def probe_timeout(self) -> float:
        return self.probe_timeout_ms / 1000
