"""
Unit Tests — ParseController.parse_many / parse_one
════════════════════════════════════════════════════

Coverage targets:
  ✅ Results keep input order; failures sit at their input's position
  ✅ One stuck job never blocks the others (max_concurrent=3, 10 inputs)
  ✅ No more than max_concurrent jobs in flight
  ✅ Aggregate timeout: unstarted inputs report TIMEOUT
  ✅ Aggregate timeout is not stretched by hanging requests
  ✅ Per-input job_timeout
  ✅ Transient remote failure → resubmitted; permanent → not
  ✅ Resubmission bounded by the retry budget
  ✅ Submit errors land in the batch instead of raising
  ✅ Caller cancellation re-raises CancelledError without remote cancels
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from docparse.errors.types import ErrorKind, ParseError
from docparse.models.documents import Document
from docparse.models.requests import InputSource
from tests.conftest import completed, delayed, failed, running


def _inputs(count: int) -> list[InputSource]:
    return [InputSource.from_bytes(b"%PDF-1.4", f"doc{i}.pdf") for i in range(count)]


@pytest.mark.unit
@pytest.mark.concurrency
class TestParseMany:

    async def test_results_in_input_order(self, client, service):
        for i in range(5):
            service.script(f"doc{i}.pdf", [running(), completed(f"text {i}.")])

        batch = await client.parse_many(_inputs(5), max_concurrent=2)

        assert len(batch) == 5
        assert batch.succeeded
        assert [doc.content for doc in batch.documents] == [f"text {i}." for i in range(5)]
        assert [doc.source for doc in batch] == [f"doc{i}.pdf" for i in range(5)]

    async def test_stuck_job_does_not_block_siblings(self, client, service):
        for i in range(10):
            service.script(f"doc{i}.pdf", [running(), running(), completed(f"text {i}.")])
        service.script("doc2.pdf", [running()])

        batch = await client.parse_many(_inputs(10), max_concurrent=3, timeout=1.0)

        assert len(batch) == 10
        assert isinstance(batch[2], ParseError)
        assert batch[2].kind is ErrorKind.TIMEOUT
        assert batch[2].retry_suggested is True
        for i in (0, 1, 3, 4, 5, 6, 7, 8, 9):
            assert isinstance(batch[i], Document), i
            assert batch[i].content == f"text {i}."
        assert batch.succeeded is False
        assert batch.failed_sources()[0][0] == "doc2.pdf"
        assert service.cancelled == []

    async def test_concurrency_bound(self, client, service):
        for i in range(8):
            service.script(f"doc{i}.pdf", [running(), running(), completed()])
        active: set[str] = set()
        peak = 0

        def track(job):
            nonlocal peak
            if job.is_terminal:
                active.discard(job.job_id)
            else:
                active.add(job.job_id)
                peak = max(peak, len(active))

        batch = await client.parse_many(_inputs(8), max_concurrent=3, progress_callback=track)

        assert batch.succeeded
        assert peak == 3

    async def test_aggregate_timeout_reports_unstarted_inputs(self, client, service):
        service.script("doc0.pdf", [running()])

        batch = await client.parse_many(_inputs(3), max_concurrent=1, timeout=0.2)

        assert all(isinstance(r, ParseError) for r in batch)
        assert all(r.kind is ErrorKind.TIMEOUT for r in batch.errors)
        # only the first input ever reached the service
        assert len(service.submissions) == 1

    async def test_aggregate_timeout_not_stretched_by_hanging_requests(self, client, service):
        service.script("doc0.pdf", [delayed(1.0, completed("late."))])
        service.script("doc1.pdf", [delayed(1.0, completed("late."))])
        loop = asyncio.get_running_loop()

        t0 = loop.time()
        batch = await client.parse_many(_inputs(2), timeout=0.2)

        assert loop.time() - t0 < 0.8
        assert [r.kind for r in batch] == [ErrorKind.TIMEOUT, ErrorKind.TIMEOUT]

    async def test_job_timeout_per_input(self, client, service):
        service.script("doc1.pdf", [running()])

        batch = await client.parse_many(_inputs(3), job_timeout=0.1)

        assert isinstance(batch[0], Document)
        assert batch[1].kind is ErrorKind.TIMEOUT
        assert isinstance(batch[2], Document)

    async def test_transient_failure_resubmitted(self, client, service):
        def step():
            if len(service.jobs_for("doc0.pdf")) == 1:
                return failed("temporary_server_error")
            return completed("second time lucky.")

        service.script("doc0.pdf", [step])

        batch = await client.parse_many(_inputs(1))

        assert isinstance(batch[0], Document)
        assert batch[0].content == "second time lucky."
        assert len(service.jobs_for("doc0.pdf")) == 2

    async def test_permanent_failure_not_resubmitted(self, client, service):
        service.script("doc0.pdf", [failed("file_corrupted")])

        batch = await client.parse_many(_inputs(2))

        assert batch[0].kind is ErrorKind.JOB_FAILED
        assert batch[0].retry_suggested is False
        assert isinstance(batch[1], Document)
        assert len(service.jobs_for("doc0.pdf")) == 1

    async def test_resubmission_bounded(self, client, service):
        service.script("doc0.pdf", [failed("service_unavailable")])

        batch = await client.parse_many(_inputs(1))

        # JOB_FAILED allows two resubmissions
        assert batch[0].kind is ErrorKind.JOB_FAILED
        assert batch[0].attempts == 3
        assert len(service.jobs_for("doc0.pdf")) == 3

    async def test_submit_error_lands_in_batch(self, client, service):
        service.submit_errors.append(httpx.Response(415, json={"detail": "not a document"}))

        batch = await client.parse_many(_inputs(2), max_concurrent=1)

        assert batch[0].kind is ErrorKind.UNSUPPORTED_FILE
        assert isinstance(batch[1], Document)

    async def test_caller_cancellation(self, client, service):
        service.script("doc0.pdf", [running()])
        service.script("doc1.pdf", [running()])

        task = asyncio.create_task(client.parse_many(_inputs(2), poll_interval=0.5))
        await asyncio.sleep(0.1)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert service.cancelled == []

    async def test_invalid_arguments(self, client):
        with pytest.raises(ValueError):
            await client.parse_many(_inputs(1), max_concurrent=-1)
        with pytest.raises(ValueError):
            await client.parse_many(_inputs(1), timeout=0)
        with pytest.raises(ValueError):
            await client.parse_many([])
