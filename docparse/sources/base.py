"""
Remote Folder Source — Abstract Base

Every connected storage provider (S3, SharePoint, Box, Dropbox) implements
this interface. The service does the listing and the fetching; the client
only names a location in the provider's own terms and gets back either a
folder listing or a Job that runs through the normal poll loop.

    GET  /v0/{provider}/list?...   → list[FolderEntry]
    POST /v0/{provider}/parse      → Job (QUEUED)

Subclasses only translate a user-facing path into the provider's location
fields. Path validation happens before any network call.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from pydantic import ValidationError

from docparse.errors.types import ParseClientError
from docparse.jobs.poller import JobPoller, malformed_error
from docparse.models.jobs import Job
from docparse.models.requests import InputSource, ParseRequest, ProcessingMode
from docparse.schemas.jobs import FolderListing

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FolderEntry:
    """One file or sub-folder returned by a listing."""
    path:        str
    name:        str
    is_folder:   bool        = False
    size_bytes:  int | None  = None
    modified_at: str | None  = None


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class RemoteFolderSource(ABC):

    provider: ClassVar[str]

    def __init__(self, poller: JobPoller) -> None:
        self._poller = poller

    @abstractmethod
    def location(self, path: str) -> dict[str, Any]:
        """
        Provider-specific location fields for `path`.
        Raises ValueError for a path the provider cannot address.
        """

    async def list(self, path: str = "") -> list[FolderEntry]:
        params = self.location(path)
        response = await self._poller.call(
            "GET", f"/v0/{self.provider}/list", name=f"{self.provider}.list", params=params,
        )
        try:
            body = response.body or {}
            if isinstance(body, list):
                body = {"entries": body}
            listing = FolderListing.model_validate(body)
        except ValidationError as exc:
            raise ParseClientError(malformed_error(response, exc)) from exc

        entries = [
            FolderEntry(
                path=e.path,
                name=e.name or e.path.rstrip("/").rsplit("/", 1)[-1],
                is_folder=e.is_folder,
                size_bytes=e.size_bytes,
                modified_at=e.modified_at,
            )
            for e in listing.entries
        ]
        logger.info(
            "FolderSource | provider=%s path=%s entries=%d",
            self.provider, path or "/", len(entries),
        )
        return entries

    async def submit_folder(
        self,
        path: str,
        mode: ProcessingMode | str = ProcessingMode.DEFAULT,
    ) -> Job:
        """Start one parse job covering every file under `path`."""
        mode = ProcessingMode(mode)
        request = ParseRequest(inputs=(InputSource.from_folder(self.provider, path),), mode=mode)
        return await self._poller.start_job(
            f"/v0/{self.provider}/parse",
            request,
            json={**self.location(path), "mode": mode.value},
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider!r})"
