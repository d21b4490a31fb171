"""
HTTP Transport — authenticated request execution on httpx.AsyncClient

  execute(method, path, ...) → TransportResponse(status_code, body, headers, request_id)

Responsibilities:
  - Inject the bearer token, User-Agent and a per-call X-Request-ID
  - Apply the configured request timeout (overridable per call)
  - Retry connection-level failures (httpx.TransportError: DNS, TCP reset,
    TLS handshake, connect/read timeouts) a small fixed number of times,
    then raise docparse.errors.TransportError

Non-responsibilities:
  - No interpretation of status codes. A 500 is returned like a 200; the
    Error Classifier decides what it means.

The transport owns one httpx.AsyncClient (connection pool) and must be
closed: use it as an async context manager or call aclose().
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from docparse.core.config import ClientSettings
from docparse.errors.types import TransportError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


# ---------------------------------------------------------------------------
# Response dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body:        Any                 # decoded JSON, or text when not JSON
    headers:     Mapping[str, str]   # httpx.Headers, case-insensitive
    request_id:  str
    elapsed_ms:  float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class HttpTransport:
    """
    Usage::

        async with HttpTransport(settings) as transport:
            resp = await transport.execute("GET", "/v0/jobs/abc")

    Tests inject an httpx.MockTransport via `transport=`.
    """

    def __init__(
        self,
        settings:  ClientSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        api_key = settings.require_api_key()   # ConfigurationError before any I/O

        self._settings = settings
        self._client   = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "User-Agent":    settings.user_agent,
                "Accept":        "application/json",
            },
        )

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # execute
    # ------------------------------------------------------------------

    async def execute(
        self,
        method:  str,
        path:    str,
        *,
        headers: Mapping[str, str] | None = None,
        json:    Any = None,
        data:    Mapping[str, Any] | None = None,
        files:   list[tuple[str, tuple[str, bytes, str]]] | None = None,
        params:  Mapping[str, Any] | None = None,
        timeout: float | None = None,
    ) -> TransportResponse:
        """
        Send one HTTP request, retrying only connection-level failures.

        `files` must hold bytes payloads (not open file objects) so that a
        retried request re-sends identical content.
        """
        request_headers = dict(headers or {})
        request_id = request_headers.setdefault(REQUEST_ID_HEADER, uuid.uuid4().hex)
        max_attempts = self._settings.transport_retries

        for attempt in range(1, max_attempts + 1):
            t0 = time.monotonic()
            try:
                response = await self._client.request(
                    method,
                    path,
                    headers=request_headers,
                    json=json,
                    data=data,
                    files=files,
                    params=params,
                    timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
                )
            except httpx.TransportError as exc:
                logger.warning(
                    "Transport | %s %s failed attempt=%d/%d error=%s: %s request_id=%s",
                    method, path, attempt, max_attempts, type(exc).__name__, exc, request_id,
                )
                if attempt >= max_attempts:
                    raise TransportError(
                        f"{method} {path} failed after {attempt} attempt(s): "
                        f"{type(exc).__name__}: {exc}",
                        request_id=request_id,
                        attempts=attempt,
                    ) from exc
                await asyncio.sleep(self._settings.transport_retry_delay)
                continue

            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.debug(
                "Transport | %s %s status=%d elapsed_ms=%.0f request_id=%s",
                method, path, response.status_code, elapsed_ms, request_id,
            )
            return TransportResponse(
                status_code=response.status_code,
                body=_decode_body(response),
                headers=response.headers,
                request_id=response.headers.get(REQUEST_ID_HEADER, request_id),
                elapsed_ms=elapsed_ms,
            )

        raise AssertionError("unreachable")   # loop always returns or raises


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text
