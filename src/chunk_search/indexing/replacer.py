"""
Replacement of a source document's chunk set in the index.
"""

from __future__ import annotations

import logging
from contextlib import closing
from dataclasses import dataclass, field
from typing import Iterable

from ..models import BulkEntry
from ..storage import IndexEngine, IndexWriter
from .chunker import Chunk, WordChunker, build_chunks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplaceResult:
    """Outcome of replacing one source document."""

    source_document: str
    chunks_written: int
    warning: str | None = None

    @property
    def skipped(self) -> bool:
        return self.warning is not None


@dataclass
class BulkResult:
    """Outcome of a bulk replace run."""

    documents_added: int = 0
    chunks_written: int = 0
    warnings: list[str] = field(default_factory=list)


def empty_content_warning(source_id: str) -> str:
    return f"Document '{source_id}' produced no chunks (empty content)"


class DocumentReplacer:
    """
    Swap the stored chunks of source documents for freshly computed ones.

    Deletes and adds for a document are buffered in the same writer session
    and committed once, so readers opened afterwards see the complete new
    chunk set and nothing of the old one. Blank content never touches the
    index: previously stored chunks stay in place.
    """

    def __init__(self, engine: IndexEngine, chunker: WordChunker | None = None) -> None:
        self.engine = engine
        self.chunker = chunker or WordChunker()

    def replace(self, source_id: str, title: str, content: str | None) -> ReplaceResult:
        chunks = build_chunks(source_id, title, content or "", self.chunker)
        if not chunks:
            warning = empty_content_warning(source_id)
            logger.warning(warning)
            return ReplaceResult(source_document=source_id, chunks_written=0, warning=warning)

        with closing(self.engine.open_writer()) as writer:
            self._stage(writer, source_id, chunks)
            writer.commit()

        logger.info("Replaced document %r with %d chunks", source_id, len(chunks))
        return ReplaceResult(source_document=source_id, chunks_written=len(chunks))

    def replace_many(self, entries: Iterable[BulkEntry]) -> BulkResult:
        """
        Replace every well-formed entry in one writer session.

        Entries without an id or title, and entries with blank content, are
        skipped with a warning. If processing an entry raises, everything
        staged before it is still committed, then the error propagates.
        """
        result = BulkResult()
        with closing(self.engine.open_writer()) as writer:
            try:
                for entry in entries:
                    self._stage_entry(writer, entry, result)
            except Exception:
                logger.exception(
                    "Bulk replace aborted after %d documents; committing them",
                    result.documents_added,
                )
                writer.commit()
                raise
            writer.commit()

        logger.info(
            "Bulk replace wrote %d documents as %d chunks",
            result.documents_added,
            result.chunks_written,
        )
        return result

    def _stage_entry(self, writer: IndexWriter, entry: BulkEntry, result: BulkResult) -> None:
        if not entry.id or not entry.title:
            warning = "Skipping document with missing id or title"
            logger.warning(warning)
            result.warnings.append(warning)
            return

        chunks = build_chunks(entry.id, entry.title, entry.content or "", self.chunker)
        if not chunks:
            warning = empty_content_warning(entry.id)
            logger.warning(warning)
            result.warnings.append(warning)
            return

        self._stage(writer, entry.id, chunks)
        result.documents_added += 1
        result.chunks_written += len(chunks)

    @staticmethod
    def _stage(writer: IndexWriter, source_id: str, chunks: list[Chunk]) -> None:
        writer.delete_by_term("source_document", source_id)
        for chunk in chunks:
            writer.add(chunk.to_fields())
