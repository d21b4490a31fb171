"""
Wire schemas for the parse service — Pydantic models for response bodies.

Covers:
  POST /v0/parse            → SubmitResponse
  GET  /v0/jobs/{job_id}    → JobStatusResponse (with optional JobResult)
  GET  /v0/{provider}/list  → FolderListing

Design decisions:
  - Field aliases absorb the naming drift seen across service versions
    (e.g. "content" | "text" | "markdown"), so the rest of the client only
    sees one shape.
  - Status strings are normalised to JobState here; an unknown status is a
    validation error, not a silent default.
  - Progress is normalised to 0.0–1.0 (percent values are divided by 100).
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from docparse.models.jobs import JobState

_STATUS_MAP: dict[str, JobState] = {
    "queued":      JobState.QUEUED,
    "pending":     JobState.QUEUED,
    "submitted":   JobState.QUEUED,
    "running":     JobState.RUNNING,
    "processing":  JobState.RUNNING,
    "in_progress": JobState.RUNNING,
    "completed":   JobState.COMPLETED,
    "succeeded":   JobState.COMPLETED,
    "success":     JobState.COMPLETED,
    "done":        JobState.COMPLETED,
    "failed":      JobState.FAILED,
    "error":       JobState.FAILED,
    "cancelled":   JobState.CANCELLED,
    "canceled":    JobState.CANCELLED,
}


def parse_job_state(value: str) -> JobState:
    key = str(value).strip().lower()
    if key not in _STATUS_MAP:
        raise ValueError(f"Unknown job status: {value!r}")
    return _STATUS_MAP[key]


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------

class SubmitResponse(_WireModel):
    job_id: str             = Field(..., min_length=1, validation_alias=AliasChoices("job_id", "id", "jobId"))
    status: JobState        = JobState.QUEUED

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> JobState:
        return JobState.QUEUED if value is None else parse_job_state(value)


# ---------------------------------------------------------------------------
# Job result payload
# ---------------------------------------------------------------------------

class TableInfo(_WireModel):
    rows:        int        = Field(0, ge=0, validation_alias=AliasChoices("rows", "row_count", "num_rows"))
    columns:     int        = Field(0, ge=0, validation_alias=AliasChoices("columns", "column_count", "num_columns", "cols"))
    page:        int | None = Field(None, validation_alias=AliasChoices("page", "page_number", "page_no"))
    caption:     str | None = None


class ImageInfo(_WireModel):
    page:        int | None = Field(None, validation_alias=AliasChoices("page", "page_number", "page_no"))
    description: str | None = Field(None, validation_alias=AliasChoices("description", "caption", "alt_text"))


class PageText(_WireModel):
    page: int
    text: str = ""


class JobResult(_WireModel):
    content:    str                    = Field("", validation_alias=AliasChoices("content", "text", "markdown"))
    pages:      list[PageText] | None  = None
    page_count: int | None             = Field(None, ge=0, validation_alias=AliasChoices("page_count", "num_pages"))
    tables:     list[TableInfo]        = Field(default_factory=list)
    images:     list[ImageInfo]        = Field(default_factory=list)
    source:     str | None             = None
    metadata:   dict[str, Any]         = Field(default_factory=dict)

    @field_validator("pages", mode="before")
    @classmethod
    def _pages(cls, value: Any) -> Any:
        # "pages" is either a count or a list of page texts / {page, text} objects
        if value is None or isinstance(value, int):
            return None
        if isinstance(value, list):
            normalised = []
            for idx, item in enumerate(value, start=1):
                if isinstance(item, str):
                    normalised.append({"page": idx, "text": item})
                elif isinstance(item, dict):
                    normalised.append({
                        "page": item.get("page") or item.get("page_number") or idx,
                        "text": item.get("text") or item.get("content") or "",
                    })
                else:
                    raise ValueError(f"Unsupported page entry: {type(item).__name__}")
            return normalised
        raise ValueError("pages must be an integer or a list")

    @model_validator(mode="before")
    @classmethod
    def _integer_pages(cls, data: Any) -> Any:
        # an integer "pages" is the page count, not page texts
        if isinstance(data, dict) and isinstance(data.get("pages"), int):
            data = dict(data)
            data.setdefault("page_count", data["pages"])
        return data

    def resolved_page_count(self) -> int:
        if self.page_count is not None:
            return self.page_count
        if self.pages:
            return max(p.page for p in self.pages)
        return 0


# ---------------------------------------------------------------------------
# Job status
# ---------------------------------------------------------------------------

class JobStatusResponse(_WireModel):
    job_id:         str | None       = Field(None, validation_alias=AliasChoices("job_id", "id", "jobId"))
    status:         JobState
    progress:       float | None     = None
    result:         JobResult | None = None
    failure_reason: str | None       = Field(None, validation_alias=AliasChoices("failure_reason", "error_code", "reason"))
    message:        str | None       = Field(None, validation_alias=AliasChoices("message", "error", "detail"))

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> JobState:
        return parse_job_state(value)

    @field_validator("progress", mode="before")
    @classmethod
    def _progress(cls, value: Any) -> float | None:
        if value is None:
            return None
        progress = float(value)
        if progress > 1.0:
            progress = progress / 100.0
        return min(max(progress, 0.0), 1.0)

    @field_validator("message", mode="before")
    @classmethod
    def _message(cls, value: Any) -> str | None:
        if isinstance(value, dict):
            return value.get("message") or str(value)
        return value


# ---------------------------------------------------------------------------
# Folder listing
# ---------------------------------------------------------------------------

class FolderEntryInfo(_WireModel):
    path:          str
    name:          str | None = None
    is_folder:     bool       = Field(False, validation_alias=AliasChoices("is_folder", "is_dir", "folder"))
    size_bytes:    int | None = Field(None, validation_alias=AliasChoices("size_bytes", "size"))
    modified_at:   str | None = Field(None, validation_alias=AliasChoices("modified_at", "last_modified"))


class FolderListing(_WireModel):
    entries: list[FolderEntryInfo] = Field(default_factory=list, validation_alias=AliasChoices("entries", "files", "items"))
