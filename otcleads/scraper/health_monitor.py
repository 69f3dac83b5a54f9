"""Tracks scraper request outcomes and judges whether scraping is healthy."""

from __future__ import annotations

import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

_RECENT_FAILURE_LIMIT = 50
_FAILURE_THRESHOLD = 0.2
_CONSECUTIVE_THRESHOLD = 5
_MIN_REQUESTS_FOR_RATE = 10
_MIN_FAILURES_FOR_PATTERNS = 3
_SILENCE_LIMIT = timedelta(hours=1)

_PATTERN_ADVICE = {
    "timeout": (
        "Frequent timeout errors detected",
        "Consider increasing request timeouts or reducing concurrency",
    ),
    "rate_limit": (
        "Rate limiting detected",
        "Reduce scraping frequency and implement exponential backoff",
    ),
    "authentication": (
        "Authentication errors detected",
        "Verify OxyLabs credentials and account status",
    ),
    "network": (
        "Network connectivity issues detected",
        "Check network connectivity and DNS resolution",
    ),
}


@dataclass(frozen=True)
class FailureRecord:
    """One failed scraping operation."""

    timestamp: datetime
    ticker: str
    error: str
    url: str = ""


@dataclass
class HealthStatus:
    """A snapshot of the scraper's health."""

    is_healthy: bool
    total_requests: int
    successful_requests: int
    failed_requests: int
    success_rate: float
    consecutive_failures: int
    last_failure_time: Optional[datetime] = None
    last_success_time: Optional[datetime] = None
    recent_failures: list[FailureRecord] = field(default_factory=list)
    health_issues: list[str] = field(default_factory=list)
    recommended_actions: list[str] = field(default_factory=list)


def categorize_error(error_msg: str) -> str:
    """Sort an error message into a broad category."""
    text = error_msg.lower()
    if "timeout" in text or "deadline" in text:
        return "timeout"
    if "rate limit" in text or "429" in text:
        return "rate_limit"
    if "unauthorized" in text or "401" in text or "403" in text:
        return "authentication"
    if "network" in text or "connection" in text or "dns" in text:
        return "network"
    return "other"


class HealthMonitor:
    """Thread-safe record of scraper successes and failures."""

    def __init__(
        self,
        max_recent_failures: int = _RECENT_FAILURE_LIMIT,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.max_recent_failures = max_recent_failures
        self.failure_threshold = _FAILURE_THRESHOLD
        self.consecutive_threshold = _CONSECUTIVE_THRESHOLD
        self._clock = clock
        self._lock = threading.Lock()
        self._total = 0
        self._successful = 0
        self._failed = 0
        self._consecutive_failures = 0
        self._last_failure: Optional[datetime] = None
        self._last_success: Optional[datetime] = None
        self._recent: deque[FailureRecord] = deque(maxlen=max_recent_failures)

    def record_success(self, ticker: str) -> None:
        """Record a successful scraping operation."""
        with self._lock:
            self._total += 1
            self._successful += 1
            self._consecutive_failures = 0
            self._last_success = self._clock()

    def record_failure(self, ticker: str, error_msg: str, url: str) -> None:
        """Record a failed scraping operation."""
        with self._lock:
            now = self._clock()
            self._total += 1
            self._failed += 1
            self._consecutive_failures += 1
            self._last_failure = now
            self._recent.append(FailureRecord(now, ticker, error_msg, url))

    def health_status(self) -> HealthStatus:
        """Return the current health status with any issues found."""
        with self._lock:
            success_rate = self._successful / self._total if self._total else 1.0
            status = HealthStatus(
                is_healthy=True,
                total_requests=self._total,
                successful_requests=self._successful,
                failed_requests=self._failed,
                success_rate=success_rate,
                consecutive_failures=self._consecutive_failures,
                last_failure_time=self._last_failure,
                last_success_time=self._last_success,
                recent_failures=list(self._recent),
            )

            if self._total >= _MIN_REQUESTS_FOR_RATE and success_rate < 1.0 - self.failure_threshold:
                self._flag(status, "High failure rate detected (>20%)",
                           "Check OxyLabs connectivity and credentials")

            if self._consecutive_failures >= self.consecutive_threshold:
                self._flag(status, "Multiple consecutive failures detected",
                           "Verify OTC Markets website accessibility and rate limits")

            if self._last_success is not None and self._clock() - self._last_success > _SILENCE_LIMIT:
                self._flag(status, "No successful requests in the last hour",
                           "Check system connectivity and OxyLabs service status")

            self._analyze_failure_patterns(status)
            return status

    @staticmethod
    def _flag(status: HealthStatus, issue: str, action: str) -> None:
        status.is_healthy = False
        status.health_issues.append(issue)
        status.recommended_actions.append(action)

    def _analyze_failure_patterns(self, status: HealthStatus) -> None:
        total = len(self._recent)
        if total < _MIN_FAILURES_FOR_PATTERNS:
            return
        counts = Counter(categorize_error(failure.error) for failure in self._recent)
        for category, count in counts.items():
            if count / total > 0.5 and category in _PATTERN_ADVICE:
                issue, action = _PATTERN_ADVICE[category]
                status.health_issues.append(issue)
                status.recommended_actions.append(action)

    def reset(self) -> None:
        """Clear all recorded data."""
        with self._lock:
            self._total = 0
            self._successful = 0
            self._failed = 0
            self._consecutive_failures = 0
            self._last_failure = None
            self._last_success = None
            self._recent.clear()

    def is_healthy(self) -> bool:
        """Whether the scraper is operating within healthy parameters."""
        return self.health_status().is_healthy

    def failure_rate(self) -> float:
        """The fraction of requests that failed."""
        with self._lock:
            if self._total == 0:
                return 0.0
            return self._failed / self._total