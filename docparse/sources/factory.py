"""
Folder Source Factory

Selects the folder source for a provider name. The rest of the client only
calls get_folder_source(); it never touches the concrete classes directly.
"""

from __future__ import annotations

from docparse.jobs.poller import JobPoller
from docparse.sources.base import RemoteFolderSource
from docparse.sources.providers import (
    BoxFolderSource,
    DropboxFolderSource,
    S3FolderSource,
    SharePointFolderSource,
)

_SOURCES: dict[str, type[RemoteFolderSource]] = {
    cls.provider: cls
    for cls in (S3FolderSource, SharePointFolderSource, BoxFolderSource, DropboxFolderSource)
}

PROVIDERS: tuple[str, ...] = tuple(_SOURCES)


def get_folder_source(provider: str, poller: JobPoller) -> RemoteFolderSource:
    key = provider.strip().lower()
    if key not in _SOURCES:
        raise ValueError(
            f"Unknown folder provider: '{provider}'. "
            f"Valid options: {', '.join(repr(p) for p in PROVIDERS)}"
        )
    return _SOURCES[key](poller)
