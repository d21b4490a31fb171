"""
Concurrency Controller — fan a list of inputs out into independent jobs.

  parse_many(inputs, max_concurrent, ...) → DocumentBatch

Each input becomes its own single-input job. An asyncio.Semaphore of size
max_concurrent admits the next input as soon as any slot frees up, so one
slow job never holds back unrelated ones (no batch-then-wait).

Failures are per input: a ParseError lands at that input's position in the
batch and siblings carry on. Results keep input order.

Budgets:
  - job_timeout  : per input, from the moment it gets a slot
  - timeout      : aggregate, for the whole call
  The tighter of the two always wins.

Stopping:
  - When the aggregate deadline passes, or the caller cancels the
    parse_many() task, the shared CancellationToken is set. Poll loops see
    it at their next check or wake from their sleep, and release their slot.
    In-flight HTTP calls are not awaited: they finish in the background
    and their results are discarded.
  - Inputs stopped this way report TIMEOUT (retry_suggested=True).
  - Caller cancellation re-raises asyncio.CancelledError once every loop has
    stopped.
  - Remote jobs are never cancelled by any of this.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable

from docparse.core.cancellation import CancellationToken
from docparse.errors.classifier import get_retry_strategy, timeout_error
from docparse.errors.retry import retry_delay, retry_limit
from docparse.errors.types import ErrorKind, ParseClientError, ParseError
from docparse.jobs.poller import JobPoller, ProgressCallback
from docparse.models.batch import DocumentBatch, ParseOutcome
from docparse.models.documents import Document
from docparse.models.requests import InputLike, InputSource, ParseRequest, ProcessingMode

logger = logging.getLogger(__name__)


class ParseController:

    def __init__(self, poller: JobPoller) -> None:
        self._poller = poller

    @property
    def poller(self) -> JobPoller:
        return self._poller

    async def parse_many(
        self,
        inputs:            InputLike | Iterable[InputLike],
        max_concurrent:    int | None            = None,
        mode:              ProcessingMode | str  = ProcessingMode.DEFAULT,
        timeout:           float | None          = None,
        job_timeout:       float | None          = None,
        poll_interval:     float | None          = None,
        progress_callback: ProgressCallback | None = None,
        cancel_token:      CancellationToken | None = None,
    ) -> DocumentBatch:
        settings = self._poller.settings
        request = ParseRequest.of(inputs, mode, timeout=job_timeout, poll_interval=poll_interval)
        max_concurrent = max_concurrent or settings.max_concurrent
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        token     = cancel_token or CancellationToken()
        loop      = asyncio.get_running_loop()
        deadline  = loop.time() + timeout if timeout is not None else None
        semaphore = asyncio.Semaphore(max_concurrent)
        t0        = time.monotonic()

        logger.info(
            "ParseController | inputs=%d max_concurrent=%d mode=%s timeout=%s",
            len(request.inputs), max_concurrent, request.mode.value, timeout,
        )

        tasks = [
            asyncio.ensure_future(
                self._admit(idx, source, request, semaphore, token, deadline, progress_callback)
            )
            for idx, source in enumerate(request.inputs)
        ]
        watchdog = (
            loop.call_later(timeout, token.cancel, "aggregate timeout exceeded")
            if timeout is not None else None
        )

        try:
            # asyncio.wait (unlike gather) leaves the tasks running if we are cancelled
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            token.cancel("caller cancelled")
            await asyncio.wait(tasks)
            logger.info("ParseController | cancelled by caller; %d poll loops stopped", len(tasks))
            raise
        finally:
            if watchdog is not None:
                watchdog.cancel()

        results: list[ParseOutcome] = [task.result() for task in tasks]
        batch = DocumentBatch(request=request, results=results)

        logger.info(
            "ParseController done | inputs=%d documents=%d errors=%d elapsed_ms=%.0f",
            len(results), len(batch.documents), len(batch.errors),
            (time.monotonic() - t0) * 1000,
        )
        return batch

    # ------------------------------------------------------------------
    # Per-input execution
    # ------------------------------------------------------------------

    async def _admit(
        self,
        index:             int,
        source:            InputSource,
        request:           ParseRequest,
        semaphore:         asyncio.Semaphore,
        token:             CancellationToken,
        deadline:          float | None,
        progress_callback: ProgressCallback | None,
    ) -> ParseOutcome:
        async with semaphore:
            if token.cancelled:
                logger.debug("ParseController | input=%d not started reason=%s", index, token.reason)
                return timeout_error(
                    f"Input {source.source_id} was not started: {token.reason}"
                )
            single = ParseRequest(
                inputs=(source,),
                mode=request.mode,
                timeout=request.timeout,
                poll_interval=request.poll_interval,
            )
            return await self.parse_one(
                single,
                deadline=deadline,
                progress_callback=progress_callback,
                cancel_token=token,
            )

    async def parse_one(
        self,
        request:           ParseRequest,
        *,
        deadline:          float | None = None,
        progress_callback: ProgressCallback | None = None,
        cancel_token:      CancellationToken | None = None,
    ) -> ParseOutcome:
        """
        Submit `request` and await it. Transient remote failures are
        resubmitted as new jobs, bounded by max_retries and the time budget.
        """
        settings = self._poller.settings
        loop = asyncio.get_running_loop()
        job_deadline = loop.time() + (request.timeout or settings.job_timeout)
        if deadline is not None:
            job_deadline = min(job_deadline, deadline)

        attempt = 0
        while True:
            attempt += 1
            remaining = job_deadline - loop.time()
            if remaining <= 0:
                return timeout_error(f"No time left to parse {request.sources[0]}")

            try:
                job = await self._poller.submit(
                    request, deadline=job_deadline, cancel_token=cancel_token,
                )
            except ParseClientError as exc:
                return exc.error

            outcome = await self._poller.await_completion(
                job,
                timeout=max(job_deadline - loop.time(), 0.001),
                poll_interval=request.poll_interval,
                progress_callback=progress_callback,
                cancel_token=cancel_token,
            )
            if isinstance(outcome, Document):
                return outcome

            resubmit_delay = self._resubmit_delay(outcome, attempt)
            if resubmit_delay is None:
                return outcome.with_attempts(attempt) if attempt > 1 else outcome
            if loop.time() + resubmit_delay >= job_deadline:
                logger.warning(
                    "ParseController | job=%s failed reason=%s; no budget left to resubmit",
                    job.job_id, outcome.failure_reason,
                )
                return outcome.with_attempts(attempt)

            logger.info(
                "ParseController | job=%s failed reason=%s; resubmitting attempt=%d delay=%.2fs",
                job.job_id, outcome.failure_reason, attempt + 1, resubmit_delay,
            )
            if cancel_token is not None:
                if await cancel_token.sleep(resubmit_delay):
                    return timeout_error(
                        f"Stopped before resubmitting {request.sources[0]}: {cancel_token.reason}",
                        job_id=job.job_id,
                    )
            else:
                await asyncio.sleep(resubmit_delay)

    def _resubmit_delay(self, error: ParseError, attempt: int) -> float | None:
        """Delay before resubmitting after `error`, or None if it is final."""
        if error.kind is not ErrorKind.JOB_FAILED or not error.retry_suggested:
            return None
        settings = self._poller.settings
        policy = get_retry_strategy(error, base_delay=settings.retry_delay)
        if attempt > retry_limit(policy, settings.max_retries):
            return None
        return retry_delay(error, policy, attempt)
