"""
Job Poller — submit parse jobs and drive them to a terminal state.

  submit(request)              → Job               POST /v0/parse
  get_status(job_id)           → JobStatusResponse GET  /v0/jobs/{job_id}
  await_completion(job, ...)   → Document | ParseError
  cancel(job)                  → Job               POST /v0/jobs/{job_id}/cancel

Poll loop contract:
  - Sleeps poll_interval between status calls (raised to the server's
    Retry-After hint when present) until the job is terminal or the
    timeout elapses.
  - Timeout returns exactly one TIMEOUT ParseError (retry_suggested=True)
    and leaves the remote job running.
  - A failed poll is classified: non-retryable errors end the wait at once,
    retryable ones follow their policy. The attempt count resets after every
    successful poll and no retry sleeps past the deadline.
  - progress_callback(job) runs once per successful status fetch, including
    the terminal one, and never after the loop returns.
  - A CancellationToken is checked at the top of each iteration and wakes
    any sleep early.
  - Every request is bounded by the wait deadline: its httpx timeout is the
    smaller of settings.timeout and the time left, and a call still
    in flight when the deadline passes or the token fires is abandoned. It
    finishes in the background and its result is discarded, as is any
    response that lands after the token fired.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import ValidationError

from docparse.core.cancellation import CancellationToken
from docparse.core.config import ClientSettings
from docparse.errors.classifier import (
    classify,
    classify_job_failure,
    get_retry_strategy,
    make_error,
    parse_retry_after,
    timeout_error,
)
from docparse.errors.retry import call_with_retries, error_from_exception, retry_delay, retry_limit
from docparse.errors.types import ErrorKind, ParseClientError, ParseError, TransportError
from docparse.jobs.state_machine import JobStateMachine
from docparse.models.documents import Document
from docparse.models.jobs import InvalidJobTransition, Job, JobState
from docparse.models.requests import InputKind, ParseRequest
from docparse.schemas.jobs import JobResult, JobStatusResponse, SubmitResponse
from docparse.transport.http import HttpTransport, TransportResponse

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Job], Any]

T = TypeVar("T")

PARSE_PATH  = "/v0/parse"
JOB_PATH    = "/v0/jobs/{job_id}"
CANCEL_PATH = "/v0/jobs/{job_id}/cancel"


class JobPoller:

    def __init__(
        self,
        transport:     HttpTransport,
        state_machine: JobStateMachine | None = None,
    ) -> None:
        self._transport = transport
        self._machine   = state_machine or JobStateMachine()

    @property
    def settings(self) -> ClientSettings:
        return self._transport.settings

    @property
    def state_machine(self) -> JobStateMachine:
        return self._machine

    # ------------------------------------------------------------------
    # Generic call with classification + retries
    # ------------------------------------------------------------------

    async def call(
        self,
        method:       str,
        path:         str,
        *,
        name:         str,
        deadline:     float | None = None,
        cancel_token: CancellationToken | None = None,
        **kwargs,
    ) -> TransportResponse:
        """
        Execute one request; non-2xx responses are classified and retried per
        their policy. Raises ParseClientError once retrying stops, or with a
        TIMEOUT error when `deadline` passes or `cancel_token` fires first.
        """
        if cancel_token is not None and cancel_token.cancelled:
            raise ParseClientError(timeout_error(f"{name} not sent: {cancel_token.reason}"))

        async def _once() -> TransportResponse:
            response = await self._transport.execute(
                method, path, timeout=self._request_timeout(deadline), **kwargs,
            )
            if not response.ok:
                raise ParseClientError(
                    classify(response.status_code, response.body, response.request_id, response.headers)
                )
            return response

        finished, response = await _bounded(
            call_with_retries(
                _once,
                name=name,
                max_retries=self.settings.max_retries,
                base_delay=self.settings.retry_delay,
                deadline=deadline,
                cancel_token=cancel_token,
            ),
            deadline=deadline,
            token=cancel_token,
        )
        if not finished:
            stopped = cancel_token is not None and cancel_token.cancelled
            reason = cancel_token.reason if stopped else "deadline passed"
            logger.warning("JobPoller | %s abandoned in flight reason=%s", name, reason)
            raise ParseClientError(timeout_error(f"{name} abandoned in flight: {reason}"))
        return response

    def _request_timeout(self, deadline: float | None) -> float:
        """Per-request httpx timeout: settings.timeout, capped by the time left."""
        timeout = self.settings.timeout
        if deadline is not None:
            remaining = deadline - asyncio.get_running_loop().time()
            timeout = min(timeout, max(remaining, 0.001))
        return timeout

    # ------------------------------------------------------------------
    # submit
    # ------------------------------------------------------------------

    async def submit(
        self,
        request:      ParseRequest,
        *,
        deadline:     float | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Job:
        data, files = await self._encode(request)
        return await self.start_job(
            PARSE_PATH,
            request,
            data=data,
            files=files or None,
            deadline=deadline,
            cancel_token=cancel_token,
        )

    async def start_job(
        self,
        path:         str,
        request:      ParseRequest,
        *,
        deadline:     float | None = None,
        cancel_token: CancellationToken | None = None,
        **kwargs,
    ) -> Job:
        """POST to any job-creating endpoint and wrap the reply in a QUEUED Job."""
        response = await self.call(
            "POST", path, name="submit", deadline=deadline, cancel_token=cancel_token, **kwargs,
        )
        try:
            submitted = SubmitResponse.model_validate(response.body)
        except ValidationError as exc:
            raise ParseClientError(malformed_error(response, exc)) from exc

        job = Job(job_id=submitted.job_id, request=request, request_id=response.request_id)
        if submitted.status is JobState.RUNNING:
            self._machine.transition(job, JobState.RUNNING)

        logger.info(
            "JobPoller | submitted job=%s inputs=%d mode=%s request_id=%s",
            job.job_id, len(request.inputs), request.mode.value, job.request_id,
        )
        return job

    async def _encode(self, request: ParseRequest) -> tuple[dict[str, Any], list]:
        files: list[tuple[str, tuple[str, bytes, str]]] = []
        urls:  list[str] = []
        for source in request.inputs:
            if source.kind is InputKind.URL:
                urls.append(str(source.value))
            elif source.kind is InputKind.FOLDER:
                raise ValueError("Folder inputs are submitted through a folder source")
            else:
                try:
                    content = await source.read_bytes()
                except OSError as exc:
                    raise ParseClientError(make_error(
                        ErrorKind.VALIDATION,
                        f"Cannot read input {source.source_id}: {exc}",
                    )) from exc
                files.append(("files", (source.filename, content, source.content_type)))

        data: dict[str, Any] = {"mode": request.mode.value}
        if urls:
            data["urls"] = urls
        return data, files

    # ------------------------------------------------------------------
    # status
    # ------------------------------------------------------------------

    async def get_status(self, job_id: str) -> JobStatusResponse:
        status, _ = await self._fetch_status(job_id)
        return status

    async def _fetch_status(
        self,
        job_id:   str,
        deadline: float | None = None,
    ) -> tuple[JobStatusResponse, TransportResponse]:
        """One status call, no retries. Raises ParseClientError / TransportError."""
        response = await self._transport.execute(
            "GET", JOB_PATH.format(job_id=job_id), timeout=self._request_timeout(deadline),
        )
        if not response.ok:
            raise ParseClientError(
                classify(response.status_code, response.body, response.request_id, response.headers)
            )
        try:
            status = JobStatusResponse.model_validate(response.body)
        except ValidationError as exc:
            raise ParseClientError(malformed_error(response, exc)) from exc
        return status, response

    # ------------------------------------------------------------------
    # await_completion
    # ------------------------------------------------------------------

    async def await_completion(
        self,
        job:               Job,
        timeout:           float | None = None,
        poll_interval:     float | None = None,
        progress_callback: ProgressCallback | None = None,
        cancel_token:      CancellationToken | None = None,
    ) -> Document | ParseError:
        """
        Poll until `job` is terminal. Never raises for remote or connectivity
        failures: those come back as a ParseError value.

        Raises InvalidJobTransition if `job` is already terminal.
        """
        if job.is_terminal:
            raise InvalidJobTransition(f"Job {job.job_id} is already {job.state.value}")

        timeout  = timeout or job.request.timeout or self.settings.job_timeout
        interval = poll_interval or job.request.poll_interval or self.settings.poll_interval
        loop     = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        failures = 0
        sent     = 0

        while True:
            if cancel_token is not None and cancel_token.cancelled:
                return self._stopped(job, cancel_token)
            if loop.time() >= deadline:
                return self._timed_out(job, timeout)

            try:
                finished, fetched = await _bounded(
                    self._fetch_status(job.job_id, deadline),
                    deadline=deadline,
                    token=cancel_token,
                )
            except (ParseClientError, TransportError) as exc:
                if cancel_token is not None and cancel_token.cancelled:
                    return self._stopped(job, cancel_token)
                if loop.time() >= deadline:
                    return self._timed_out(job, timeout)
                error  = replace(error_from_exception(exc), job_id=job.job_id)
                policy = get_retry_strategy(error, base_delay=self.settings.retry_delay)
                failures += 1
                sent     += error.attempts
                limit = retry_limit(policy, self.settings.max_retries)

                if failures > limit:
                    logger.warning(
                        "JobPoller | job=%s poll failed kind=%s attempts=%d retry=%s",
                        job.job_id, error.kind.value, sent, error.retry_suggested,
                    )
                    return error.with_attempts(sent)

                delay = retry_delay(error, policy, failures)
                if loop.time() + delay >= deadline:
                    logger.warning(
                        "JobPoller | job=%s poll failed kind=%s; retry would pass the deadline",
                        job.job_id, error.kind.value,
                    )
                    return error.with_attempts(sent)

                logger.info(
                    "JobPoller | job=%s poll retry kind=%s attempt=%d/%d delay=%.2fs",
                    job.job_id, error.kind.value, failures, limit, delay,
                )
                if await _sleep(delay, cancel_token):
                    return self._stopped(job, cancel_token)
                continue

            # a response that lands after the token fired is discarded
            if cancel_token is not None and cancel_token.cancelled:
                return self._stopped(job, cancel_token)
            if not finished:
                return self._timed_out(job, timeout)

            status, response = fetched
            failures = sent = 0
            self._apply(job, status)
            _notify(progress_callback, job)

            if job.is_terminal:
                return self._outcome(job, status, response)

            wait = interval
            hinted = parse_retry_after(response.headers.get("Retry-After"))
            if hinted is not None:
                wait = max(wait, hinted)
            remaining = deadline - loop.time()
            if remaining <= 0:
                return self._timed_out(job, timeout)
            if await _sleep(min(wait, remaining), cancel_token):
                return self._stopped(job, cancel_token)

    def _apply(self, job: Job, status: JobStatusResponse) -> None:
        self._machine.record_poll(job)
        target = status.status
        if target is JobState.QUEUED and job.state is JobState.RUNNING:
            target = JobState.RUNNING   # the service never moves a job backwards
        if target is JobState.FAILED:
            self._machine.transition(
                job, target,
                progress=status.progress,
                failure_reason=status.failure_reason or "unknown",
                failure_message=status.message,
            )
        elif target is JobState.CANCELLED:
            self._machine.transition(
                job, target,
                progress=status.progress,
                failure_reason="cancelled",
                failure_message=status.message,
            )
        else:
            self._machine.transition(job, target, progress=status.progress)
        logger.debug(
            "JobPoller | job=%s poll=%d state=%s progress=%s",
            job.job_id, job.polls, job.state.value, job.progress,
        )

    def _outcome(
        self,
        job:      Job,
        status:   JobStatusResponse,
        response: TransportResponse,
    ) -> Document | ParseError:
        if job.state is JobState.COMPLETED:
            source = job.request.inputs[0].source_id if len(job.request.inputs) == 1 else job.job_id
            return Document.from_result(status.result or JobResult(), source=source, job_id=job.job_id)

        error = classify_job_failure(
            job.failure_reason,
            job.failure_message or (f"Job {job.job_id} was cancelled" if job.state is JobState.CANCELLED else None),
            request_id=response.request_id,
            job_id=job.job_id,
        )
        logger.warning("JobPoller | job=%s ended %s", job.job_id, error)
        return error

    def _timed_out(self, job: Job, timeout: float) -> ParseError:
        logger.warning(
            "JobPoller | job=%s still %s after %.1fs; remote job left running",
            job.job_id, job.state.value, timeout,
        )
        return timeout_error(
            f"Job {job.job_id} did not finish within {timeout:.1f}s (last state: {job.state.value})",
            request_id=job.request_id,
            job_id=job.job_id,
        )

    def _stopped(self, job: Job, token: CancellationToken | None) -> ParseError:
        reason = token.reason if token is not None else "cancelled"
        logger.info("JobPoller | job=%s wait stopped reason=%s", job.job_id, reason)
        return timeout_error(
            f"Stopped waiting for job {job.job_id}: {reason} (remote job left running)",
            request_id=job.request_id,
            job_id=job.job_id,
        )

    # ------------------------------------------------------------------
    # cancel
    # ------------------------------------------------------------------

    async def cancel(self, job: Job) -> Job:
        """Cancel the remote job and mark `job` CANCELLED."""
        if job.is_terminal:
            raise InvalidJobTransition(f"Job {job.job_id} is already {job.state.value}")
        await self.call("POST", CANCEL_PATH.format(job_id=job.job_id), name="cancel")
        return self._machine.transition(job, JobState.CANCELLED, failure_reason="cancelled")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _bounded(
    operation: Awaitable[T],
    *,
    deadline:  float | None,
    token:     CancellationToken | None,
) -> tuple[bool, T | None]:
    """
    Await `operation` until it finishes, the loop time reaches `deadline`, or
    `token` fires, whichever comes first.

    Returns (True, result) when it finished; exceptions it raised propagate.
    Otherwise returns (False, None) and leaves the operation running in the
    background with its outcome discarded.
    """
    if deadline is None and token is None:
        return True, await operation

    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(operation)
    stop = asyncio.ensure_future(token.wait()) if token is not None else None
    timeout = max(deadline - loop.time(), 0.0) if deadline is not None else None
    try:
        await asyncio.wait(
            {task, stop} if stop is not None else {task},
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        task.add_done_callback(_discard)
        raise
    finally:
        if stop is not None:
            stop.cancel()

    if task.done():
        return True, task.result()
    task.add_done_callback(_discard)
    return False, None


def _discard(task: asyncio.Future) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("JobPoller | abandoned request ended with %r", task.exception())


async def _sleep(delay: float, token: CancellationToken | None) -> bool:
    """Returns True if the token fired during the sleep."""
    if token is not None:
        return await token.sleep(delay)
    await asyncio.sleep(delay)
    return False


def _notify(callback: ProgressCallback | None, job: Job) -> None:
    if callback is None:
        return
    try:
        callback(job)
    except Exception as exc:
        # progress reporting is never fatal to the wait
        logger.warning("JobPoller | progress callback failed job=%s: %s", job.job_id, exc)


def malformed_error(response: TransportResponse, exc: ValidationError) -> ParseError:
    return make_error(
        ErrorKind.UNKNOWN,
        f"Malformed response from service: {exc.error_count()} validation error(s)",
        request_id=response.request_id,
        status_code=response.status_code,
        details={"errors": exc.errors(include_url=False)},
    )
