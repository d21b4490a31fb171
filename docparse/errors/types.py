"""
Error taxonomy — a closed set of error kinds with the retry policy as data.

Callers never need isinstance() checks to decide whether to retry:

    err.kind             → ErrorKind (closed enum)
    err.retry_suggested  → bool, always populated
    err.retry_policy     → RetryPolicy (delay schedule + attempt cap)
    err.request_id       → for support correlation

ParseError is a value (returned from await_completion / stored in a
DocumentBatch). ParseClientError is the single exception type used when a
ParseError has to be raised.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

# Upper bound for linear / exponential backoff delays (seconds)
MAX_BACKOFF_DELAY = 60.0


class ErrorKind(str, Enum):
    TRANSPORT        = "transport"          # never reached the service (DNS, TCP reset, TLS)
    VALIDATION       = "validation"         # 400
    AUTH             = "auth"               # 401 / 403
    RATE_LIMIT       = "rate_limit"         # 429
    TIMEOUT          = "timeout"            # 408 or local wait budget exhausted
    UNSUPPORTED_FILE = "unsupported_file"   # 415
    JOB_FAILED       = "job_failed"         # remote job reached FAILED
    QUOTA_EXCEEDED   = "quota_exceeded"     # 402
    SERVER_ERROR     = "server_error"       # 5xx
    UNKNOWN          = "unknown"            # anything unmapped; fail closed


class BackoffKind(str, Enum):
    FIXED       = "fixed"
    LINEAR      = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    """Derived per error instance; never persisted."""
    should_retry: bool
    base_delay:   float       = 0.0
    backoff_kind: BackoffKind = BackoffKind.FIXED
    max_attempts: int         = 0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before retry number `attempt` (1-based)."""
        attempt = max(1, attempt)
        if self.backoff_kind is BackoffKind.FIXED:
            return self.base_delay
        if self.backoff_kind is BackoffKind.LINEAR:
            return min(self.base_delay * attempt, MAX_BACKOFF_DELAY)
        return min(self.base_delay * (2 ** (attempt - 1)), MAX_BACKOFF_DELAY)


NO_RETRY = RetryPolicy(should_retry=False)


@dataclass(frozen=True)
class ParseError:
    """
    A typed failure. Built by docparse.errors.classifier, which also attaches
    the retry policy; construct errors through that module.
    """
    kind:           ErrorKind
    message:        str
    request_id:     str | None       = None
    status_code:    int | None       = None
    retry_after:    float | None     = None     # server hint or seconds until quota reset
    failure_reason: str | None       = None     # JOB_FAILED sub-reason
    job_id:         str | None       = None
    attempts:       int              = 1
    retry_policy:   RetryPolicy      = field(default=NO_RETRY)
    details:        dict[str, Any]   = field(default_factory=dict, compare=False)

    @property
    def retry_suggested(self) -> bool:
        return self.retry_policy.should_retry

    def with_attempts(self, attempts: int) -> "ParseError":
        return replace(self, attempts=attempts)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["retry_suggested"] = self.retry_suggested
        data["retry_policy"]["backoff_kind"] = self.retry_policy.backoff_kind.value
        return data

    def __str__(self) -> str:
        parts = [f"[{self.kind.value}] {self.message}"]
        if self.failure_reason:
            parts.append(f"reason={self.failure_reason}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        parts.append(f"request_id={self.request_id or 'n/a'}")
        if self.attempts > 1:
            parts.append(f"attempts={self.attempts}")
        parts.append(f"retry_suggested={'yes' if self.retry_suggested else 'no'}")
        return " ".join(parts)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ParseClientError(Exception):
    """Raised when an operation fails; `.error` holds the typed ParseError."""

    def __init__(self, error: ParseError) -> None:
        super().__init__(str(error))
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def retry_suggested(self) -> bool:
        return self.error.retry_suggested

    @property
    def request_id(self) -> str | None:
        return self.error.request_id


class TransportError(Exception):
    """
    Connection-level failure (DNS, TCP reset, TLS handshake, socket timeout).
    Raised by the transport after its own fixed retries are exhausted; never
    carries a remote status code.
    """

    def __init__(self, message: str, *, request_id: str | None = None, attempts: int = 1) -> None:
        super().__init__(message)
        self.request_id = request_id
        self.attempts   = attempts
