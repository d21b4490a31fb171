"""
Unit Tests — Remote folder sources
═══════════════════════════════════

Coverage targets:
  ✅ Factory: every provider resolves; unknown names list the options
  ✅ Per-provider path → location translation and validation
  ✅ list() hits /v0/{provider}/list and maps entries
  ✅ submit_folder() starts a job that completes through the poll loop
  ✅ Invalid paths fail before any network call
"""

from __future__ import annotations

import pytest

from docparse.models.documents import Document
from docparse.models.jobs import JobState
from docparse.sources import (
    PROVIDERS,
    BoxFolderSource,
    DropboxFolderSource,
    FolderEntry,
    S3FolderSource,
    SharePointFolderSource,
    get_folder_source,
)


@pytest.mark.unit
@pytest.mark.sources
class TestFactory:

    @pytest.mark.parametrize("name,cls", [
        ("s3", S3FolderSource),
        ("SharePoint", SharePointFolderSource),
        ("box", BoxFolderSource),
        (" dropbox ", DropboxFolderSource),
    ])
    async def test_resolves(self, client, name, cls):
        source = get_folder_source(name, client.poller)
        assert isinstance(source, cls)
        assert cls.provider in repr(source)

    async def test_unknown_provider(self, client):
        with pytest.raises(ValueError) as exc_info:
            client.folder("gdrive")
        message = str(exc_info.value)
        assert "gdrive" in message
        for provider in PROVIDERS:
            assert provider in message


@pytest.mark.unit
@pytest.mark.sources
class TestLocations:

    @pytest.mark.parametrize("path,expected", [
        ("s3://reports/2024/q1", {"bucket": "reports", "prefix": "2024/q1"}),
        ("my.bucket-01", {"bucket": "my.bucket-01", "prefix": ""}),
    ])
    async def test_s3(self, client, path, expected):
        assert client.folder("s3").location(path) == expected

    @pytest.mark.parametrize("path", ["s3://Bad_Bucket/x", "ab", ""])
    async def test_s3_invalid(self, client, path):
        with pytest.raises(ValueError):
            client.folder("s3").location(path)

    async def test_sharepoint(self, client):
        location = client.folder("sharepoint").location("/legal/Contracts/2024/")
        assert location == {"site": "legal", "path": "/Contracts/2024"}

    async def test_sharepoint_needs_site(self, client):
        with pytest.raises(ValueError):
            client.folder("sharepoint").location("/")

    @pytest.mark.parametrize("path,folder_id", [("", "0"), ("12345", "12345")])
    async def test_box(self, client, path, folder_id):
        assert client.folder("box").location(path) == {"folder_id": folder_id}

    async def test_box_rejects_names(self, client):
        with pytest.raises(ValueError):
            client.folder("box").location("Invoices")

    @pytest.mark.parametrize("path,expected", [("", ""), ("/", ""), ("/Team/Docs/", "/Team/Docs")])
    async def test_dropbox(self, client, path, expected):
        assert client.folder("dropbox").location(path) == {"path": expected}

    async def test_dropbox_relative_rejected(self, client):
        with pytest.raises(ValueError):
            client.folder("dropbox").location("Team/Docs")


@pytest.mark.unit
@pytest.mark.sources
class TestFolderOperations:

    async def test_list(self, client, service):
        service.folder_entries["s3"] = [
            {"path": "2024/q1/report.pdf", "size": 2048, "last_modified": "2024-04-01T00:00:00Z"},
            {"path": "2024/q1/archive/", "is_dir": True},
        ]

        entries = await client.folder("s3").list("s3://reports/2024/q1")

        assert entries[0] == FolderEntry(
            path="2024/q1/report.pdf", name="report.pdf",
            size_bytes=2048, modified_at="2024-04-01T00:00:00Z",
        )
        assert entries[1].is_folder is True
        assert entries[1].name == "archive"
        request = service.requests[-1]
        assert request.url.path == "/v0/s3/list"
        assert request.url.params["bucket"] == "reports"
        assert request.url.params["prefix"] == "2024/q1"

    async def test_submit_folder_and_await(self, client, service):
        source = client.folder("dropbox")
        job = await source.submit_folder("/Team/Contracts", mode="advanced")

        assert job.state is JobState.QUEUED
        assert service.folder_jobs == [
            {"provider": "dropbox", "path": "/Team/Contracts", "mode": "advanced"}
        ]

        doc = await client.await_completion(job)
        assert isinstance(doc, Document)
        assert doc.content == "Parsed content of dropbox-folder."
        assert doc.source == "dropbox:/Team/Contracts"

    async def test_submit_s3_folder(self, client, service):
        job = await client.folder("s3").submit_folder("s3://reports/2024")

        assert service.requests[-1].url.path == "/v0/s3/parse"
        assert service.folder_jobs == [
            {"provider": "s3", "bucket": "reports", "prefix": "2024", "mode": "default"}
        ]
        doc = await client.await_completion(job)
        assert doc.content == "Parsed content of s3-folder."

    async def test_invalid_path_makes_no_request(self, client, service):
        with pytest.raises(ValueError):
            await client.folder("box").submit_folder("not-a-number")
        assert service.requests == []
