"""
docparse — asynchronous client for the document parsing service.

    from docparse import DocParseClient

    async with DocParseClient(api_key="...") as client:
        batch  = await client.parse_many(["a.pdf", "https://example.com/b.pdf"])
        chunks = await batch.aget_chunks(target_size=800, overlap_size=100)
"""

from docparse._version import __version__
from docparse.client import DocParseClient
from docparse.core import CancellationToken, ClientSettings, ConfigurationError, configure_logging
from docparse.errors import (
    BackoffKind,
    ErrorKind,
    ParseClientError,
    ParseError,
    RetryPolicy,
    TransportError,
    classify,
    get_retry_strategy,
)
from docparse.jobs import JobPoller, JobStateMachine, ParseController
from docparse.models import (
    Document,
    DocumentBatch,
    Image,
    InputSource,
    InvalidJobTransition,
    Job,
    JobState,
    ParseRequest,
    ProcessingMode,
    Table,
)
from docparse.processing import Chunk, Chunker, ChunkingOptions, achunk, chunk
from docparse.sources import FolderEntry, RemoteFolderSource, get_folder_source

__all__ = [
    "BackoffKind",
    "CancellationToken",
    "Chunk",
    "Chunker",
    "ChunkingOptions",
    "ClientSettings",
    "ConfigurationError",
    "DocParseClient",
    "Document",
    "DocumentBatch",
    "ErrorKind",
    "FolderEntry",
    "Image",
    "InputSource",
    "InvalidJobTransition",
    "Job",
    "JobPoller",
    "JobState",
    "JobStateMachine",
    "ParseClientError",
    "ParseController",
    "ParseError",
    "ParseRequest",
    "ProcessingMode",
    "RemoteFolderSource",
    "RetryPolicy",
    "Table",
    "TransportError",
    "__version__",
    "achunk",
    "chunk",
    "classify",
    "configure_logging",
    "get_folder_source",
    "get_retry_strategy",
]
