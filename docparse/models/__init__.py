from docparse.models.batch import DocumentBatch, ParseOutcome
from docparse.models.documents import Document, Image, Table, build_page_map
from docparse.models.jobs import TERMINAL_STATES, InvalidJobTransition, Job, JobState
from docparse.models.requests import (
    InputKind,
    InputLike,
    InputSource,
    ParseRequest,
    ProcessingMode,
)

__all__ = [
    "Document",
    "DocumentBatch",
    "Image",
    "InputKind",
    "InputLike",
    "InputSource",
    "InvalidJobTransition",
    "Job",
    "JobState",
    "ParseOutcome",
    "ParseRequest",
    "ProcessingMode",
    "TERMINAL_STATES",
    "Table",
    "build_page_map",
]
