"""
DocumentBatch — ordered per-input results of one parse_many() call.

results[i] is either the Document parsed from request.inputs[i] or the
ParseError that input ended with. A failure never hides its siblings'
successes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Union

from docparse.errors.types import ParseError
from docparse.models.documents import Document
from docparse.models.requests import ParseRequest

if TYPE_CHECKING:
    from docparse.processing.chunking import Chunk

ParseOutcome = Union[Document, ParseError]


@dataclass
class DocumentBatch:
    request: ParseRequest
    results: list[ParseOutcome] = field(default_factory=list)

    @property
    def documents(self) -> list[Document]:
        return [r for r in self.results if isinstance(r, Document)]

    @property
    def errors(self) -> list[ParseError]:
        return [r for r in self.results if isinstance(r, ParseError)]

    @property
    def succeeded(self) -> bool:
        return bool(self.results) and not self.errors

    def failed_sources(self) -> list[tuple[str, ParseError]]:
        return [
            (source.source_id, result)
            for source, result in zip(self.request.inputs, self.results)
            if isinstance(result, ParseError)
        ]

    def __iter__(self) -> Iterator[ParseOutcome]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, index: int) -> ParseOutcome:
        return self.results[index]

    # ------------------------------------------------------------------
    # Chunk extraction
    # ------------------------------------------------------------------

    def get_chunks(
        self,
        target_size:        int   = 1000,
        tolerance:          float = 0.1,
        overlap_size:       int   = 0,
        respect_boundaries: bool  = True,
    ) -> list["Chunk"]:
        """All chunks of all successful documents, in input order."""
        from docparse.processing.chunking import Chunker, ChunkingOptions

        chunker = Chunker(ChunkingOptions(
            target_size=target_size,
            tolerance=tolerance,
            overlap_size=overlap_size,
            respect_boundaries=respect_boundaries,
        ))
        return chunker.chunk(self)

    async def aget_chunks(self, **options) -> list["Chunk"]:
        """get_chunks() on the default executor, off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.get_chunks(**options))

    def __repr__(self) -> str:
        return (
            f"DocumentBatch(inputs={len(self.request.inputs)}, "
            f"documents={len(self.documents)}, errors={len(self.errors)})"
        )
