"""
Document model — the parsed result for one input.

Built from a completed job's result payload (docparse.schemas.jobs.JobResult).
When the service returns per-page texts, `page_map` maps the starting
character offset of each page to its 1-based page number so chunks can be
cited back to a page. The map is best effort: without page texts every
offset resolves to page 1.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any

from docparse.schemas.jobs import JobResult, PageText

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class Table:
    rows:        int
    columns:     int
    page_number: int | None = None
    caption:     str | None = None


@dataclass(frozen=True)
class Image:
    page_number: int | None = None
    description: str | None = None


@dataclass
class Document:
    document_id: str
    content:     str
    source:      str
    page_count:  int                  = 0
    tables:      tuple[Table, ...]    = ()
    images:      tuple[Image, ...]    = ()
    page_map:    dict[int, int]       = field(default_factory=dict)   # char offset → page
    metadata:    dict[str, Any]       = field(default_factory=dict)
    job_id:      str | None           = None

    @classmethod
    def from_result(
        cls,
        result: JobResult,
        *,
        source: str,
        job_id: str | None = None,
    ) -> "Document":
        pages = result.pages or []
        content = result.content
        if not content and pages:
            content = PAGE_SEPARATOR.join(p.text for p in pages)
            page_map = build_page_map([(p.page, p.text) for p in pages])
        else:
            page_map = locate_pages(content, pages)

        document_id = job_id or _content_id(source, content)
        doc = cls(
            document_id=document_id,
            content=content,
            source=result.source or source,
            page_count=result.resolved_page_count(),
            tables=tuple(
                Table(rows=t.rows, columns=t.columns, page_number=t.page, caption=t.caption)
                for t in result.tables
            ),
            images=tuple(
                Image(page_number=i.page, description=i.description) for i in result.images
            ),
            page_map=page_map,
            metadata=dict(result.metadata),
            job_id=job_id,
        )
        logger.debug(
            "Document | id=%s source=%s chars=%d pages=%d tables=%d images=%d",
            doc.document_id, doc.source, len(doc.content), doc.page_count,
            len(doc.tables), len(doc.images),
        )
        return doc

    def page_for_offset(self, offset: int) -> int:
        return lookup_page(offset, self.page_map)

    def __len__(self) -> int:
        return len(self.content)


# ---------------------------------------------------------------------------
# Page map helpers
# ---------------------------------------------------------------------------

def build_page_map(pages_text: list[tuple[int, str]]) -> dict[int, int]:
    """
    Build a char_offset → page_number map from (page_num, text) tuples that
    were joined with PAGE_SEPARATOR.

    Example:
        build_page_map([(1, "intro text"), (2, "body text")])
        → {0: 1, 12: 2}
    """
    page_map: dict[int, int] = {}
    offset = 0
    for page_num, text in pages_text:
        page_map[offset] = page_num
        offset += len(text) + len(PAGE_SEPARATOR)
    return page_map


def locate_pages(content: str, pages: list[PageText]) -> dict[int, int]:
    """
    Page map for content the service assembled itself: each page's text is
    searched for after the previous page's start. Pages that cannot be found
    are skipped.
    """
    page_map: dict[int, int] = {}
    cursor = 0
    for page in pages:
        needle = page.text.strip()[:40]
        if not needle:
            continue
        offset = content.find(needle, cursor)
        if offset == -1:
            continue
        page_map[offset] = page.page
        cursor = offset + 1
    return page_map


def lookup_page(char_offset: int, page_map: dict[int, int] | None) -> int:
    """
    Page number for a character offset. page_map keys are the starting
    offset of each page. Returns 1 when the map is empty.
    """
    if not page_map:
        return 1
    page = 1
    for offset_start, page_num in sorted(page_map.items()):
        if char_offset >= offset_start:
            page = page_num
        else:
            break
    return page


def _content_id(source: str, content: str) -> str:
    digest = hashlib.sha256(f"{source}:{content}".encode()).hexdigest()
    return digest[:32]
