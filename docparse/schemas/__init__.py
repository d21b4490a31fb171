from docparse.schemas.jobs import (
    FolderEntryInfo,
    FolderListing,
    ImageInfo,
    JobResult,
    JobStatusResponse,
    PageText,
    SubmitResponse,
    TableInfo,
    parse_job_state,
)

__all__ = [
    "FolderEntryInfo",
    "FolderListing",
    "ImageInfo",
    "JobResult",
    "JobStatusResponse",
    "PageText",
    "SubmitResponse",
    "TableInfo",
    "parse_job_state",
]
