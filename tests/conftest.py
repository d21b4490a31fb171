"""
Root conftest.py — Shared fixtures for all unit tests

Fixture hierarchy:
  function-scoped : settings, service, make_client, client

Environment strategy:
  - The parse service is simulated in-process by FakeParseService, mounted
    on httpx.MockTransport. No test opens a socket.
  - Poll intervals and retry delays are shrunk to milliseconds so the
    poll-loop tests run fast but still exercise real asyncio sleeps.

How to run:
  pytest                               # all tests
  pytest -m unit                       # everything here is unit
  pytest -m chunking                   # one component
  pytest tests/unit/test_poller.py     # single file
"""

from __future__ import annotations

import asyncio
import json
import os
import re
from collections import defaultdict
from typing import Any, Callable
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

# ─────────────────────────────────────────────────────────────────────────────
# Patch environment BEFORE any client code reads settings
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("DOCPARSE_API_KEY",  "dp-test-key-0000")
os.environ.setdefault("DOCPARSE_BASE_URL", "https://api.docparse.test")

from docparse.core.config import ClientSettings  # noqa: E402
from docparse.client import DocParseClient        # noqa: E402


TEST_BASE_URL = "https://api.docparse.test"
TEST_API_KEY  = "dp-test-key-0000"

_FILENAME_RE = re.compile(rb'name="files"; filename="([^"]+)"')
_MULTIPART_FIELD_RE = re.compile(rb'name="(mode|urls)"\r\n\r\n(.*?)\r\n', re.S)


# ─────────────────────────────────────────────────────────────────────────────
# Fake parse service
# ─────────────────────────────────────────────────────────────────────────────

StatusStep = Any   # dict | httpx.Response | Callable[[], Any] (may return a coroutine)


class FakeParseService:
    """
    In-memory stand-in for the remote parse API.

    Scripts are keyed by input name (file name or URL). Each status call for
    a job serves the next step of its script; the last step repeats forever,
    so a script ending in {"status": "running"} is a job that never finishes.

        service.script("a.pdf", [{"status": "running"}, completed("text")])
        service.submit_errors.append(httpx.Response(429, headers={"Retry-After": "0"}))
    """

    def __init__(self) -> None:
        self.scripts:        dict[str, list[StatusStep]] = {}
        self.submit_errors:  list[httpx.Response] = []
        self.submissions:    list[dict[str, Any]] = []
        self.status_calls:   dict[str, int] = defaultdict(int)
        self.cancelled:      list[str] = []
        self.requests:       list[httpx.Request] = []
        self.folder_entries: dict[str, list[dict]] = {}
        self.folder_jobs:    list[dict[str, Any]] = []
        self._jobs:          dict[str, str] = {}         # job_id → input key
        self._counter = 0

    # ------------------------------------------------------------------
    # Scripting
    # ------------------------------------------------------------------

    def script(self, key: str, steps: list[StatusStep]) -> None:
        self.scripts[key] = list(steps)

    def key_for(self, job_id: str) -> str:
        return self._jobs[job_id]

    def jobs_for(self, key: str) -> list[str]:
        return [job_id for job_id, k in self._jobs.items() if k == key]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/v0/parse":
            return self._submit(request)
        match = re.fullmatch(r"/v0/jobs/([^/]+)", path)
        if request.method == "GET" and match:
            return self._status(match.group(1))
        match = re.fullmatch(r"/v0/jobs/([^/]+)/cancel", path)
        if request.method == "POST" and match:
            self.cancelled.append(match.group(1))
            return httpx.Response(200, json={"job_id": match.group(1), "status": "cancelled"})
        match = re.fullmatch(r"/v0/([a-z0-9]+)/list", path)
        if request.method == "GET" and match:
            entries = self.folder_entries.get(match.group(1), [])
            return httpx.Response(200, json={"entries": entries})
        match = re.fullmatch(r"/v0/([a-z0-9]+)/parse", path)
        if request.method == "POST" and match:
            body = json.loads(request.content)
            self.folder_jobs.append({"provider": match.group(1), **body})
            return httpx.Response(202, json={"job_id": self._new_job(f"{match.group(1)}-folder")})
        return httpx.Response(404, json={"detail": f"No route for {request.method} {path}"})

    def _new_job(self, key: str) -> str:
        self._counter += 1
        job_id = f"job-{self._counter:04d}"
        self._jobs[job_id] = key
        return job_id

    def _submit(self, request: httpx.Request) -> httpx.Response:
        if self.submit_errors:
            return self.submit_errors.pop(0)

        fields = _decode_form(request)
        self.submissions.append(fields)
        key = (fields["files"] or fields["urls"] or ["unknown"])[0]
        return httpx.Response(
            202,
            json={"job_id": self._new_job(key), "status": "queued"},
            headers={"X-Request-ID": request.headers["X-Request-ID"]},
        )

    def _status(self, job_id: str) -> httpx.Response:
        if job_id not in self._jobs:
            return httpx.Response(404, json={"detail": "job not found"})
        calls = self.status_calls[job_id]
        self.status_calls[job_id] += 1

        key = self._jobs[job_id]
        steps = self.scripts.get(key) or [completed(f"Parsed content of {key}.")]
        step = steps[min(calls, len(steps) - 1)]
        if callable(step):
            step = step()
        if asyncio.iscoroutine(step):
            # MockTransport awaits handlers that return an awaitable
            return self._respond_later(job_id, step)
        return self._respond(job_id, step)

    async def _respond_later(self, job_id: str, pending) -> httpx.Response:
        return self._respond(job_id, await pending)

    @staticmethod
    def _respond(job_id: str, step: StatusStep) -> httpx.Response:
        if isinstance(step, httpx.Response):
            return step
        return httpx.Response(200, json={"job_id": job_id, **step})


def _decode_form(request: httpx.Request) -> dict[str, Any]:
    content = request.content
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        qs = parse_qs(content.decode())
        return {"files": [], "mode": qs.get("mode", [""])[0], "urls": qs.get("urls", [])}

    fields: dict[str, Any] = {"files": [], "mode": "", "urls": []}
    fields["files"] = [m.decode() for m in _FILENAME_RE.findall(content)]
    for name, value in _MULTIPART_FIELD_RE.findall(content):
        if name == b"mode":
            fields["mode"] = value.decode()
        else:
            fields["urls"].append(value.decode())
    return fields


# ─────────────────────────────────────────────────────────────────────────────
# Status body builders
# ─────────────────────────────────────────────────────────────────────────────

def completed(content: str = "Parsed content.", **result: Any) -> dict:
    return {"status": "completed", "progress": 100, "result": {"content": content, **result}}


def running(progress: float | None = None) -> dict:
    body: dict[str, Any] = {"status": "running"}
    if progress is not None:
        body["progress"] = progress
    return body


def failed(reason: str, message: str | None = None) -> dict:
    return {"status": "failed", "failure_reason": reason, "message": message or reason}


def error_response(status: int, detail: str = "error", headers: dict | None = None) -> Callable[[], httpx.Response]:
    """A fresh httpx.Response per call (responses are single-use)."""
    return lambda: httpx.Response(status, json={"detail": detail}, headers=headers or {})


def delayed(seconds: float, step: dict) -> Callable[[], Any]:
    """A status step the service only answers after `seconds`."""
    async def _answer() -> dict:
        await asyncio.sleep(seconds)
        return step
    return _answer


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def settings() -> ClientSettings:
    """Settings tuned for fast tests: millisecond polls and retry delays."""
    return ClientSettings(
        api_key=TEST_API_KEY,
        base_url=TEST_BASE_URL,
        timeout=5.0,
        job_timeout=5.0,
        max_retries=3,
        retry_delay=0.01,
        poll_interval=0.01,
        max_concurrent=5,
        transport_retries=3,
        transport_retry_delay=0.0,
    )


@pytest.fixture
def service() -> FakeParseService:
    return FakeParseService()


@pytest_asyncio.fixture
async def make_client(settings, service):
    """Factory: build a DocParseClient wired to the fake service; closed on teardown."""
    created: list[DocParseClient] = []

    def _build(**overrides) -> DocParseClient:
        client = DocParseClient(settings, transport=service.transport, **overrides)
        created.append(client)
        return client

    yield _build
    for client in created:
        await client.aclose()


@pytest.fixture
def client(make_client) -> DocParseClient:
    return make_client()
