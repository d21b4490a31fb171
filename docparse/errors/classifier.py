"""
Error Classifier — HTTP status + body → typed ParseError + RetryPolicy

Mapping (deterministic):

  status   kind               retryable by default
  ──────   ────────────────   ─────────────────────────────────────────
  400      VALIDATION         no
  401/403  AUTH               no
  402      QUOTA_EXCEEDED     yes iff a reset time is present
  408      TIMEOUT            yes (linear)
  415      UNSUPPORTED_FILE   no
  429      RATE_LIMIT         yes, fixed delay from Retry-After or default
  5xx      SERVER_ERROR       yes (exponential)
  other    UNKNOWN            no (fail closed)

Remote job failures are classified by failure reason: transient reasons
(e.g. "temporary_server_error") are retryable by resubmission, everything
else (corrupted / invalid / oversized files) is permanent.

get_retry_strategy() is a pure function of its arguments; it never looks
at clocks, settings or any other external state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from http import HTTPStatus
from typing import Any, Mapping

from docparse.errors.types import (
    NO_RETRY,
    BackoffKind,
    ErrorKind,
    ParseError,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Policy constants
# ---------------------------------------------------------------------------

DEFAULT_BASE_DELAY       = 1.0    # seconds; linear / exponential base
DEFAULT_RATE_LIMIT_DELAY = 10.0   # used when a 429 carries no Retry-After

_MAX_ATTEMPTS: dict[ErrorKind, int] = {
    ErrorKind.TRANSPORT:      1,     # the transport already retried the connection
    ErrorKind.RATE_LIMIT:     5,
    ErrorKind.TIMEOUT:        3,
    ErrorKind.SERVER_ERROR:   3,
    ErrorKind.QUOTA_EXCEEDED: 1,
    ErrorKind.JOB_FAILED:     2,
}

TRANSIENT_FAILURE_REASONS: frozenset[str] = frozenset(
    {
        "temporary_server_error",
        "service_unavailable",
        "internal_error",
        "timeout",
        "worker_lost",
    }
)

PERMANENT_FAILURE_REASONS: frozenset[str] = frozenset(
    {
        "file_corrupted",
        "invalid_file_format",
        "file_too_large",
        "password_protected",
        "unsupported_file_type",
        "cancelled",
    }
)


# ---------------------------------------------------------------------------
# Retry strategy (pure)
# ---------------------------------------------------------------------------

def get_retry_strategy(error: ParseError, base_delay: float = DEFAULT_BASE_DELAY) -> RetryPolicy:
    """Derive the retry policy for a typed error. Safe to call repeatedly."""
    kind = error.kind
    max_attempts = _MAX_ATTEMPTS.get(kind, 0)

    if kind is ErrorKind.RATE_LIMIT:
        delay = error.retry_after if error.retry_after is not None else DEFAULT_RATE_LIMIT_DELAY
        return RetryPolicy(True, delay, BackoffKind.FIXED, max_attempts)

    if kind is ErrorKind.QUOTA_EXCEEDED:
        if error.retry_after is None:
            return NO_RETRY
        return RetryPolicy(True, error.retry_after, BackoffKind.FIXED, max_attempts)

    if kind is ErrorKind.SERVER_ERROR:
        return RetryPolicy(True, base_delay, BackoffKind.EXPONENTIAL, max_attempts)

    if kind is ErrorKind.TIMEOUT:
        return RetryPolicy(True, base_delay, BackoffKind.LINEAR, max_attempts)

    if kind is ErrorKind.TRANSPORT:
        return RetryPolicy(True, base_delay, BackoffKind.FIXED, max_attempts)

    if kind is ErrorKind.JOB_FAILED and is_transient_failure(error.failure_reason):
        return RetryPolicy(True, base_delay, BackoffKind.EXPONENTIAL, max_attempts)

    # VALIDATION, AUTH, UNSUPPORTED_FILE, permanent JOB_FAILED, UNKNOWN
    return NO_RETRY


def is_transient_failure(reason: str | None) -> bool:
    if not reason:
        return False
    reason = reason.strip().lower()
    if reason in PERMANENT_FAILURE_REASONS:
        return False
    return reason in TRANSIENT_FAILURE_REASONS


def make_error(kind: ErrorKind, message: str, **fields: Any) -> ParseError:
    """Build a ParseError with its default retry policy attached."""
    error = ParseError(kind=kind, message=message, **fields)
    return replace(error, retry_policy=get_retry_strategy(error))


# ---------------------------------------------------------------------------
# HTTP classification
# ---------------------------------------------------------------------------

_STATUS_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.AUTH,
    402: ErrorKind.QUOTA_EXCEEDED,
    403: ErrorKind.AUTH,
    408: ErrorKind.TIMEOUT,
    415: ErrorKind.UNSUPPORTED_FILE,
    429: ErrorKind.RATE_LIMIT,
}


def classify(
    status_code:   int,
    response_body: Any,
    request_id:    str | None,
    headers:       Mapping[str, str] | None = None,
    *,
    now:           float | None = None,
) -> ParseError:
    """
    Map a non-success HTTP response to a ParseError.

    Args:
        status_code:   HTTP status from the transport.
        response_body: decoded JSON (dict/list) or raw text.
        request_id:    X-Request-ID used for the call (support correlation).
        headers:       response headers, for Retry-After / X-RateLimit-Reset.
        now:           epoch seconds used to turn reset timestamps into delays
                       (defaults to time.time()).
    """
    headers = headers or {}
    now = time.time() if now is None else now

    if 500 <= status_code <= 599:
        kind = ErrorKind.SERVER_ERROR
    else:
        kind = _STATUS_KINDS.get(status_code, ErrorKind.UNKNOWN)

    retry_after: float | None = None
    if kind is ErrorKind.RATE_LIMIT:
        retry_after = parse_retry_after(_header(headers, "Retry-After"), now=now)
        if retry_after is None and isinstance(response_body, dict):
            retry_after = _as_seconds(response_body.get("retry_after"))
    elif kind is ErrorKind.QUOTA_EXCEEDED:
        retry_after = _seconds_until_reset(response_body, headers, now)
    elif kind is ErrorKind.SERVER_ERROR:
        # 503 may carry a Retry-After hint; it raises the floor of the first delay
        retry_after = parse_retry_after(_header(headers, "Retry-After"), now=now)

    error = make_error(
        kind,
        extract_message(response_body, status_code),
        request_id=request_id,
        status_code=status_code,
        retry_after=retry_after,
        details=response_body if isinstance(response_body, dict) else {},
    )
    logger.debug(
        "Classifier | status=%d kind=%s retry=%s request_id=%s",
        status_code, error.kind.value, error.retry_suggested, request_id,
    )
    return error


def classify_job_failure(
    failure_reason: str | None,
    message:        str | None = None,
    request_id:     str | None = None,
    job_id:         str | None = None,
) -> ParseError:
    """Classify a job that the service reported as failed."""
    reason = (failure_reason or "unknown").strip().lower()
    return make_error(
        ErrorKind.JOB_FAILED,
        message or f"Parse job failed: {reason}",
        request_id=request_id,
        failure_reason=reason,
        job_id=job_id,
    )


def classify_transport_error(exc: BaseException, request_id: str | None = None) -> ParseError:
    return make_error(
        ErrorKind.TRANSPORT,
        f"Connection failed: {exc}",
        request_id=getattr(exc, "request_id", None) or request_id,
        attempts=getattr(exc, "attempts", 1),
    )


def timeout_error(
    message:    str,
    request_id: str | None = None,
    job_id:     str | None = None,
) -> ParseError:
    """A local wait-budget timeout. Always suggests retry; never cancels remotely."""
    return make_error(ErrorKind.TIMEOUT, message, request_id=request_id, job_id=job_id)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def extract_message(body: Any, status_code: int | None = None) -> str:
    """Pull a human-readable message out of common error body shapes."""
    if isinstance(body, dict):
        for key in ("detail", "message", "error_message"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        err = body.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"].strip()
        if isinstance(err, str) and err.strip():
            return err.strip()
    elif isinstance(body, str) and body.strip():
        return body.strip()[:500]

    if status_code is not None:
        try:
            return f"HTTP {status_code} {HTTPStatus(status_code).phrase}"
        except ValueError:
            return f"HTTP {status_code}"
    return "Unknown error"


def parse_retry_after(value: str | None, *, now: float | None = None) -> float | None:
    """Retry-After is either delta-seconds or an HTTP-date."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    seconds = _as_seconds(value)
    if seconds is not None:
        return seconds
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = time.time() if now is None else now
    return max(0.0, when.timestamp() - now)


def _seconds_until_reset(body: Any, headers: Mapping[str, str], now: float) -> float | None:
    raw: Any = None
    if isinstance(body, dict):
        raw = body.get("reset_at") or body.get("resets_at") or body.get("quota_reset")
    if raw is None:
        raw = _header(headers, "X-RateLimit-Reset")
    if raw is None or raw == "":
        return None

    seconds = _as_seconds(raw)
    if seconds is not None:
        # Large numbers are epoch timestamps, small ones are relative seconds
        return max(0.0, seconds - now) if seconds > 1_000_000_000 else seconds

    try:
        when = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, when.timestamp() - now)


def _as_seconds(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if key.lower() == lowered:
            return val
    return None
