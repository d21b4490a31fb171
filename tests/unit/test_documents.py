"""
Unit Tests — Document, page maps, wire schemas, DocumentBatch
══════════════════════════════════════════════════════════════

Coverage targets:
  ✅ Document.from_result: content, tables, images, metadata, ids
  ✅ Page texts joined with a blank line when content is absent
  ✅ Pages located inside service-assembled content
  ✅ build_page_map / lookup_page
  ✅ Wire aliases and status / progress normalisation
  ✅ DocumentBatch accessors and chunk extraction
  ✅ ParseRequest is frozen and non-empty
"""

from __future__ import annotations

import dataclasses

import pytest
from pydantic import ValidationError

from docparse.errors.classifier import timeout_error
from docparse.models.batch import DocumentBatch
from docparse.models.documents import Document, build_page_map, lookup_page
from docparse.models.jobs import JobState
from docparse.models.requests import ParseRequest
from docparse.schemas.jobs import JobResult, JobStatusResponse, SubmitResponse


@pytest.mark.unit
@pytest.mark.documents
class TestDocumentFromResult:

    def test_fields(self):
        result = JobResult.model_validate({
            "markdown": "# Title\n\nBody.",
            "num_pages": 3,
            "tables": [{"row_count": 4, "cols": 2, "page_number": 2, "caption": "Totals"}],
            "images": [{"page": 1, "alt_text": "logo"}],
            "metadata": {"lang": "en"},
        })
        doc = Document.from_result(result, source="report.pdf", job_id="job-9")

        assert doc.document_id == "job-9"
        assert doc.job_id == "job-9"
        assert doc.content == "# Title\n\nBody."
        assert doc.source == "report.pdf"
        assert doc.page_count == 3
        assert doc.tables[0].rows == 4
        assert doc.tables[0].columns == 2
        assert doc.tables[0].page_number == 2
        assert doc.tables[0].caption == "Totals"
        assert doc.images[0].description == "logo"
        assert doc.metadata == {"lang": "en"}
        assert len(doc) == len("# Title\n\nBody.")

    def test_content_id_without_job(self):
        result = JobResult(content="same text")
        first = Document.from_result(result, source="a.pdf")
        second = Document.from_result(result, source="a.pdf")
        other = Document.from_result(result, source="b.pdf")
        assert first.document_id == second.document_id
        assert first.document_id != other.document_id
        assert len(first.document_id) == 32

    def test_pages_joined(self):
        result = JobResult.model_validate({"pages": ["Page one.", "Page two.", "Page three."]})
        doc = Document.from_result(result, source="a.pdf", job_id="j")

        assert doc.content == "Page one.\n\nPage two.\n\nPage three."
        assert doc.page_count == 3
        assert doc.page_map == {0: 1, 11: 2, 22: 3}
        assert doc.page_for_offset(15) == 2
        assert doc.page_for_offset(len(doc.content) - 1) == 3

    def test_pages_located_in_content(self):
        content = "Intro page text.\n\n---\n\nBody page text."
        result = JobResult.model_validate({
            "content": content,
            "pages": [{"page": 1, "text": "Intro page text."}, {"page": 2, "text": "Body page text."}],
        })
        doc = Document.from_result(result, source="a.pdf", job_id="j")
        assert doc.page_map == {0: 1, content.index("Body"): 2}

    def test_source_from_result_wins(self):
        result = JobResult(content="x", source="s3://bucket/a.pdf")
        doc = Document.from_result(result, source="job-1", job_id="job-1")
        assert doc.source == "s3://bucket/a.pdf"

    def test_integer_pages_is_page_count(self):
        result = JobResult.model_validate({"content": "x", "pages": 7})
        assert result.pages is None
        assert result.resolved_page_count() == 7


@pytest.mark.unit
@pytest.mark.documents
class TestPageMap:

    def test_build_page_map(self):
        assert build_page_map([(1, "intro text"), (2, "body text")]) == {0: 1, 12: 2}

    @pytest.mark.parametrize("offset,page", [(0, 1), (11, 1), (12, 2), (500, 2)])
    def test_lookup(self, offset, page):
        assert lookup_page(offset, {0: 1, 12: 2}) == page

    def test_empty_map_is_page_one(self):
        assert lookup_page(999, {}) == 1
        assert lookup_page(0, None) == 1


@pytest.mark.unit
@pytest.mark.documents
class TestWireSchemas:

    @pytest.mark.parametrize("raw,state", [
        ("pending", JobState.QUEUED),
        ("PROCESSING", JobState.RUNNING),
        ("succeeded", JobState.COMPLETED),
        ("error", JobState.FAILED),
        ("canceled", JobState.CANCELLED),
    ])
    def test_status_aliases(self, raw, state):
        assert JobStatusResponse.model_validate({"status": raw}).status is state

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            JobStatusResponse.model_validate({"status": "teleported"})

    @pytest.mark.parametrize("raw,expected", [(0.5, 0.5), (50, 0.5), (100, 1.0), (250, 1.0)])
    def test_progress_normalised(self, raw, expected):
        body = {"status": "running", "progress": raw}
        assert JobStatusResponse.model_validate(body).progress == expected

    def test_failure_fields(self):
        body = {"status": "failed", "error_code": "file_corrupted", "error": {"message": "bad xref"}}
        status = JobStatusResponse.model_validate(body)
        assert status.failure_reason == "file_corrupted"
        assert status.message == "bad xref"

    def test_submit_response(self):
        assert SubmitResponse.model_validate({"id": "job-1"}).job_id == "job-1"
        assert SubmitResponse.model_validate({"jobId": "j", "status": "running"}).status is JobState.RUNNING
        with pytest.raises(ValidationError):
            SubmitResponse.model_validate({"status": "queued"})


@pytest.mark.unit
@pytest.mark.documents
class TestDocumentBatch:

    @pytest.fixture
    def batch(self) -> DocumentBatch:
        request = ParseRequest.of(["https://example.com/a.pdf", "https://example.com/b.pdf", b"c"])
        return DocumentBatch(request=request, results=[
            Document(document_id="a", content="Alpha sentence. " * 20, source="https://example.com/a.pdf"),
            timeout_error("took too long", job_id="job-2"),
            Document(document_id="c", content="Gamma sentence. " * 20, source="document.bin"),
        ])

    def test_accessors(self, batch):
        assert len(batch) == 3
        assert [d.document_id for d in batch.documents] == ["a", "c"]
        assert len(batch.errors) == 1
        assert batch.succeeded is False
        assert batch[1].job_id == "job-2"
        assert batch.failed_sources() == [("https://example.com/b.pdf", batch[1])]
        assert "errors=1" in repr(batch)

    def test_all_success(self):
        batch = DocumentBatch(
            request=ParseRequest.of(b"x"),
            results=[Document(document_id="x", content="x", source="document.bin")],
        )
        assert batch.succeeded is True

    def test_get_chunks(self, batch):
        chunks = batch.get_chunks(target_size=100, overlap_size=16)
        assert {c.source_document_id for c in chunks} == {"a", "c"}
        assert all(c.text.endswith(". ") for c in chunks if c.metadata["split"] == "sentence")

    async def test_aget_chunks(self, batch):
        expected = batch.get_chunks(target_size=120)
        assert await batch.aget_chunks(target_size=120) == expected


@pytest.mark.unit
@pytest.mark.documents
class TestParseRequest:

    def test_fields_are_frozen(self):
        request = ParseRequest.of("https://example.com/a.pdf", timeout=30)
        assert [f.name for f in dataclasses.fields(request)] == [
            "inputs", "mode", "timeout", "poll_interval",
        ]
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.timeout = 5

    def test_needs_an_input(self):
        with pytest.raises(ValueError):
            ParseRequest(inputs=())
