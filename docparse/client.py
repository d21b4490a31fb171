"""
DocParseClient — the public entry point.

Composes the transport, job poller, concurrency controller and chunker
around one ClientSettings instance:

    async with DocParseClient(api_key="...") as client:
        doc   = await client.parse("report.pdf")
        batch = await client.parse_many(["a.pdf", "b.pdf"], max_concurrent=3)
        chunks = await batch.aget_chunks(target_size=500, overlap_size=50)

A missing API key raises ConfigurationError here, before any network call.
"""

from __future__ import annotations

import logging
from typing import Iterable

import httpx

from docparse.core.cancellation import CancellationToken
from docparse.core.config import ClientSettings
from docparse.core.logging import redact
from docparse.errors.types import ParseClientError, ParseError
from docparse.jobs.controller import ParseController
from docparse.jobs.poller import JobPoller, ProgressCallback
from docparse.models.batch import DocumentBatch
from docparse.models.documents import Document
from docparse.models.jobs import Job
from docparse.models.requests import InputLike, ParseRequest, ProcessingMode
from docparse.processing.chunking import Chunk, Chunker, ChunkingOptions, ChunkTarget
from docparse.schemas.jobs import JobStatusResponse
from docparse.sources.base import RemoteFolderSource
from docparse.sources.factory import get_folder_source
from docparse.transport.http import HttpTransport

logger = logging.getLogger(__name__)


class DocParseClient:

    def __init__(
        self,
        settings:  ClientSettings | None = None,
        *,
        api_key:   str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **overrides,
    ) -> None:
        settings = (settings or ClientSettings()).with_overrides(api_key=api_key, **overrides)
        self._settings   = settings
        self._transport  = HttpTransport(settings, transport=transport)
        self._poller     = JobPoller(self._transport)
        self._controller = ParseController(self._poller)
        logger.debug(
            "DocParseClient | base_url=%s api_key=%s max_concurrent=%d job_timeout=%.0fs",
            settings.base_url, redact(settings.api_key), settings.max_concurrent, settings.job_timeout,
        )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def poller(self) -> JobPoller:
        return self._poller

    # ------------------------------------------------------------------
    # Job-level operations
    # ------------------------------------------------------------------

    async def submit(
        self,
        inputs:        InputLike | Iterable[InputLike],
        mode:          ProcessingMode | str = ProcessingMode.DEFAULT,
        *,
        timeout:       float | None = None,
        poll_interval: float | None = None,
    ) -> Job:
        request = ParseRequest.of(inputs, mode, timeout=timeout, poll_interval=poll_interval)
        return await self._poller.submit(request)

    async def get_status(self, job: Job | str) -> JobStatusResponse:
        job_id = job.job_id if isinstance(job, Job) else job
        return await self._poller.get_status(job_id)

    async def await_completion(
        self,
        job:               Job,
        timeout:           float | None = None,
        poll_interval:     float | None = None,
        progress_callback: ProgressCallback | None = None,
        cancel_token:      CancellationToken | None = None,
    ) -> Document | ParseError:
        return await self._poller.await_completion(
            job,
            timeout=timeout,
            poll_interval=poll_interval,
            progress_callback=progress_callback,
            cancel_token=cancel_token,
        )

    async def cancel(self, job: Job) -> Job:
        return await self._poller.cancel(job)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    async def parse(
        self,
        source:            InputLike,
        mode:              ProcessingMode | str = ProcessingMode.DEFAULT,
        *,
        timeout:           float | None = None,
        poll_interval:     float | None = None,
        progress_callback: ProgressCallback | None = None,
        cancel_token:      CancellationToken | None = None,
    ) -> Document:
        """Parse one input. Raises ParseClientError if it does not succeed."""
        request = ParseRequest.of(source, mode, timeout=timeout, poll_interval=poll_interval)
        if len(request.inputs) != 1:
            raise ValueError("parse() takes a single input; use parse_many() for several")
        outcome = await self._controller.parse_one(
            request, progress_callback=progress_callback, cancel_token=cancel_token,
        )
        if isinstance(outcome, ParseError):
            raise ParseClientError(outcome)
        return outcome

    async def parse_many(
        self,
        inputs:            Iterable[InputLike],
        *,
        max_concurrent:    int | None = None,
        mode:              ProcessingMode | str = ProcessingMode.DEFAULT,
        timeout:           float | None = None,
        job_timeout:       float | None = None,
        poll_interval:     float | None = None,
        progress_callback: ProgressCallback | None = None,
        cancel_token:      CancellationToken | None = None,
    ) -> DocumentBatch:
        return await self._controller.parse_many(
            inputs,
            max_concurrent=max_concurrent,
            mode=mode,
            timeout=timeout,
            job_timeout=job_timeout,
            poll_interval=poll_interval,
            progress_callback=progress_callback,
            cancel_token=cancel_token,
        )

    # ------------------------------------------------------------------
    # Chunking + folder sources
    # ------------------------------------------------------------------

    def chunk(self, target: ChunkTarget, **options) -> list[Chunk]:
        return Chunker(ChunkingOptions(**options)).chunk(target)

    async def achunk(self, target: ChunkTarget, **options) -> list[Chunk]:
        return await Chunker(ChunkingOptions(**options)).achunk(target)

    def folder(self, provider: str) -> RemoteFolderSource:
        return get_folder_source(provider, self._poller)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> "DocParseClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"DocParseClient(base_url={self._settings.base_url!r})"
