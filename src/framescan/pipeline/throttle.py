"""Per-session scan throttle.

Caps the number of successful scans a single session may run. The limit
comes from FRAMESCAN_MAX_SCANS_PER_SESSION (default 50).
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Final

from framescan.pipeline.errors import ScanThrottled

logger = logging.getLogger(__name__)

FRAMESCAN_MAX_SCANS_PER_SESSION_ENV: Final[str] = "FRAMESCAN_MAX_SCANS_PER_SESSION"
DEFAULT_MAX_SCANS_PER_SESSION: Final[int] = 50


class ThrottleConfigError(Exception):
    """Raised when throttle configuration is invalid."""


@dataclass(frozen=True)
class ThrottleStats:
    scans_this_session: int
    max_scans_per_session: int
    remaining: int


def _limit_from_env() -> int:
    raw = os.environ.get(FRAMESCAN_MAX_SCANS_PER_SESSION_ENV)
    if raw is None or not raw.strip():
        return DEFAULT_MAX_SCANS_PER_SESSION
    try:
        return int(raw)
    except ValueError as e:
        raise ThrottleConfigError(
            f"{FRAMESCAN_MAX_SCANS_PER_SESSION_ENV} must be an integer: {raw!r}"
        ) from e


class ScanThrottle:
    """Thread-safe per-session scan counter."""

    def __init__(self, max_scans_per_session: int | None = None) -> None:
        """Initialize the throttle.

        Args:
            max_scans_per_session: Limit override; falls back to the environment.

        Raises:
            ThrottleConfigError: If the limit is not positive.
        """
        limit = max_scans_per_session if max_scans_per_session is not None else _limit_from_env()
        if limit <= 0:
            raise ThrottleConfigError(f"max_scans_per_session must be > 0, got {limit}")
        self._limit = limit
        self._count = 0
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def max_scans_per_session(self) -> int:
        return self._limit

    def enforce(self) -> None:
        """Reserve a slot for one scan, or raise ScanThrottled at the limit.

        Scans still in flight count against the limit, so concurrent callers
        cannot overshoot it. Pair every successful call with record_scan()
        or release().
        """
        with self._lock:
            used = self._count + self._in_flight
            if used >= self._limit:
                logger.warning("Scan throttled: %d/%d scans this session", used, self._limit)
                raise ScanThrottled(self._limit)
            self._in_flight += 1

    def record_scan(self) -> None:
        """Count a completed scan, consuming its reserved slot if it holds one."""
        with self._lock:
            if self._in_flight > 0:
                self._in_flight -= 1
            self._count += 1

    def release(self) -> None:
        """Give back a reserved slot for a scan that did not complete."""
        with self._lock:
            if self._in_flight > 0:
                self._in_flight -= 1

    def remaining(self) -> int:
        with self._lock:
            return max(0, self._limit - self._count)

    def stats(self) -> ThrottleStats:
        with self._lock:
            return ThrottleStats(
                scans_this_session=self._count,
                max_scans_per_session=self._limit,
                remaining=max(0, self._limit - self._count),
            )

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._in_flight = 0
