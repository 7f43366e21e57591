"""Usage and error accounting for embedding API calls.

A :class:`TelemetryCollector` is created by the caller and handed to the
clients that report into it; there is no process-wide instance.
"""

from __future__ import annotations

import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Deque, Dict, List, Optional

import requests

from .clients.base import (
    ForbiddenError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    RequestRejectedError,
    RequestTimeoutError,
    ResponseParseError,
    UnauthorizedError,
    UpstreamError,
)

DEFAULT_MAX_ERRORS = 100


class ErrorCategory(str, Enum):
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    MODEL_NOT_FOUND = "model_not_found"
    INVALID_REQUEST = "invalid_request"
    SERVER_ERROR = "server_error"
    PARSE_ERROR = "parse_error"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


def categorize_error(error: BaseException) -> ErrorCategory:
    """Map a client or transport exception onto an :class:`ErrorCategory`."""

    if isinstance(error, (RequestTimeoutError, requests.Timeout)):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (NetworkError, requests.ConnectionError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (UnauthorizedError, ForbiddenError)):
        return ErrorCategory.AUTHENTICATION
    if isinstance(error, RateLimitedError):
        return ErrorCategory.RATE_LIMIT
    if isinstance(error, NotFoundError):
        return ErrorCategory.MODEL_NOT_FOUND
    if isinstance(error, RequestRejectedError):
        return ErrorCategory.INVALID_REQUEST
    if isinstance(error, UpstreamError):
        return ErrorCategory.SERVER_ERROR
    if isinstance(error, (ResponseParseError, ValueError)):
        return ErrorCategory.PARSE_ERROR
    return ErrorCategory.UNKNOWN


@dataclass
class UsageStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    total_tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    avg_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    min_latency_ms: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.successful_calls / self.total_calls * 100.0


@dataclass(frozen=True)
class ErrorRecord:
    category: ErrorCategory
    message: str
    timestamp: float
    model: Optional[str] = None


class TelemetryCollector:
    def __init__(self, max_errors: int = DEFAULT_MAX_ERRORS) -> None:
        self._lock = threading.Lock()
        self._stats = UsageStats()
        self._latency_total_ms = 0.0
        self._errors: Deque[ErrorRecord] = deque(maxlen=max_errors)
        self._error_counts: Counter[ErrorCategory] = Counter()

    def record_success(
        self, prompt_tokens: int, completion_tokens: int = 0, *, latency_s: float = 0.0
    ) -> None:
        latency_ms = latency_s * 1000.0
        with self._lock:
            stats = self._stats
            stats.total_calls += 1
            stats.successful_calls += 1
            stats.prompt_tokens += prompt_tokens
            stats.completion_tokens += completion_tokens
            stats.total_tokens += prompt_tokens + completion_tokens

            if stats.successful_calls == 1 or latency_ms < stats.min_latency_ms:
                stats.min_latency_ms = latency_ms
            stats.max_latency_ms = max(stats.max_latency_ms, latency_ms)
            self._latency_total_ms += latency_ms
            stats.avg_latency_ms = self._latency_total_ms / stats.successful_calls

    def record_failure(
        self, category: ErrorCategory, message: str, model: Optional[str] = None
    ) -> None:
        with self._lock:
            self._stats.total_calls += 1
            self._stats.failed_calls += 1
            self._error_counts[category] += 1
            self._errors.append(ErrorRecord(category, message, time.time(), model))

    def record_exception(self, error: BaseException, model: Optional[str] = None) -> ErrorCategory:
        category = categorize_error(error)
        self.record_failure(category, str(error), model)
        return category

    def get_stats(self) -> UsageStats:
        with self._lock:
            return replace(self._stats)

    def get_error_counts(self) -> Dict[ErrorCategory, int]:
        with self._lock:
            return dict(self._error_counts)

    def get_recent_errors(self, limit: int) -> List[ErrorRecord]:
        """Return up to ``limit`` error records, most recent first."""

        with self._lock:
            return list(reversed(self._errors))[:limit]

    def reset(self) -> None:
        with self._lock:
            self._stats = UsageStats()
            self._latency_total_ms = 0.0
            self._errors.clear()
            self._error_counts.clear()

    def generate_report(self) -> str:
        stats = self.get_stats()
        error_counts = self.get_error_counts()

        lines = [
            "=== API Usage Report ===",
            f"Total calls: {stats.total_calls}",
            f"Success rate: {stats.success_rate:.1f}%",
            f"Successful: {stats.successful_calls} | Failed: {stats.failed_calls}",
            f"Tokens: {stats.total_tokens} (prompt {stats.prompt_tokens}, "
            f"completion {stats.completion_tokens})",
            f"Latency: avg {stats.avg_latency_ms:.1f}ms, min {stats.min_latency_ms:.1f}ms, "
            f"max {stats.max_latency_ms:.1f}ms",
        ]
        if error_counts:
            lines.append("Errors:")
            for category, count in sorted(error_counts.items(), key=lambda item: item[0].value):
                lines.append(f"  {category.value}: {count}")
        return "\n".join(lines)


__all__ = [
    "ErrorCategory",
    "ErrorRecord",
    "TelemetryCollector",
    "UsageStats",
    "categorize_error",
]
