"""
Retry execution driven by typed errors.

    result = await call_with_retries(
        send_request,
        name="submit",
        max_retries=settings.max_retries,
        base_delay=settings.retry_delay,
        deadline=loop.time() + 60,
    )

Rules:
  - Non-retryable errors raise immediately with attempts=1 (no budget used).
  - Retryable errors follow get_retry_strategy(); the number of retries is
    min(policy.max_attempts, max_retries).
  - A retry whose delay would cross the deadline is not attempted.
  - Exhaustion raises the LAST error, annotated with the total number of
    requests sent, counting the transport's own connection attempts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from docparse.core.cancellation import CancellationToken
from docparse.errors.classifier import (
    classify_transport_error,
    get_retry_strategy,
    timeout_error,
)
from docparse.errors.types import ParseClientError, ParseError, RetryPolicy, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_delay(error: ParseError, policy: RetryPolicy, attempt: int) -> float:
    """Delay before retry `attempt`; a server Retry-After hint is a floor."""
    delay = policy.delay_for(attempt)
    if error.retry_after is not None:
        delay = max(delay, error.retry_after)
    return delay


def retry_limit(policy: RetryPolicy, max_retries: int) -> int:
    if not policy.should_retry:
        return 0
    return max(0, min(policy.max_attempts, max_retries))


def error_from_exception(exc: BaseException) -> ParseError:
    if isinstance(exc, ParseClientError):
        return exc.error
    if isinstance(exc, TransportError):
        return classify_transport_error(exc)
    raise TypeError(f"Not a client error: {exc!r}")


async def call_with_retries(
    operation:    Callable[[], Awaitable[T]],
    *,
    name:         str,
    max_retries:  int,
    base_delay:   float,
    deadline:     float | None = None,
    cancel_token: CancellationToken | None = None,
) -> T:
    """
    Run `operation` until it succeeds or its typed error says stop.

    `operation` must raise ParseClientError (remote errors) or TransportError
    (connectivity). `deadline` is an event-loop time (loop.time()).
    """
    loop = asyncio.get_running_loop()
    attempt = 0
    sent    = 0

    while True:
        attempt += 1
        try:
            return await operation()
        except (ParseClientError, TransportError) as exc:
            error = error_from_exception(exc)
            cause = exc
        sent += error.attempts

        policy = get_retry_strategy(error, base_delay=base_delay)
        limit  = retry_limit(policy, max_retries)

        if attempt > limit:
            if policy.should_retry:
                logger.warning(
                    "Retry exhausted | op=%s kind=%s attempts=%d request_id=%s",
                    name, error.kind.value, sent, error.request_id,
                )
            raise ParseClientError(error.with_attempts(sent)) from cause

        delay = retry_delay(error, policy, attempt)
        if deadline is not None and loop.time() + delay >= deadline:
            logger.warning(
                "Retry skipped | op=%s kind=%s delay=%.1fs exceeds remaining budget",
                name, error.kind.value, delay,
            )
            raise ParseClientError(error.with_attempts(sent)) from cause

        logger.info(
            "Retrying | op=%s kind=%s attempt=%d/%d delay=%.2fs request_id=%s",
            name, error.kind.value, attempt, limit, delay, error.request_id,
        )

        if cancel_token is not None:
            if await cancel_token.sleep(delay):
                raise ParseClientError(
                    timeout_error(
                        f"{name} cancelled while waiting to retry ({cancel_token.reason})",
                        request_id=error.request_id,
                    )
                ) from cause
        else:
            await asyncio.sleep(delay)
