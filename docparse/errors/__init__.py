"""
Error taxonomy, classification and retry execution.

    from docparse.errors import ErrorKind, ParseClientError, classify, get_retry_strategy
"""

from docparse.errors.classifier import (
    classify,
    classify_job_failure,
    classify_transport_error,
    get_retry_strategy,
    is_transient_failure,
    make_error,
    timeout_error,
)
from docparse.errors.retry import call_with_retries
from docparse.errors.types import (
    BackoffKind,
    ErrorKind,
    ParseClientError,
    ParseError,
    RetryPolicy,
    TransportError,
)

__all__ = [
    "BackoffKind",
    "ErrorKind",
    "ParseClientError",
    "ParseError",
    "RetryPolicy",
    "TransportError",
    "call_with_retries",
    "classify",
    "classify_job_failure",
    "classify_transport_error",
    "get_retry_strategy",
    "is_transient_failure",
    "make_error",
    "timeout_error",
]
