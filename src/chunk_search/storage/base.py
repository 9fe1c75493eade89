"""
Storage interfaces and data models for the chunk index.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Protocol

from ..query import ParsedQuery

CHUNK_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "content",
    "source_document",
    "chunk_index",
)


class EngineIOError(RuntimeError):
    """Raised when the index cannot be opened, read or written."""


@dataclass(frozen=True)
class ScoredChunk:
    """A ranked hit with its stored fields."""

    ordinal: int
    fields: dict[str, Any]
    score: float


@dataclass(frozen=True)
class TopHits:
    """Result page of a ranked search."""

    total_hits: int
    hits: list[ScoredChunk]


class IndexWriter(Protocol):
    """Buffered write session; operations become visible at commit."""

    def add(self, fields: Mapping[str, str | int]) -> None:
        """Buffer one stored chunk record."""

    def delete_by_term(self, field: str, value: str) -> None:
        """Buffer deletion of every record whose ``field`` equals ``value``."""

    def commit(self) -> int:
        """Apply buffered operations atomically. Return the index generation."""

    def close(self) -> None:
        """End the session, discarding uncommitted operations."""


class IndexReader(Protocol):
    """Point-in-time view over the index."""

    generation: int

    def inc_ref(self) -> None:
        """Take an additional reference on the reader."""

    def dec_ref(self) -> None:
        """Release a reference; the reader closes when none remain."""

    def total_stored_count(self) -> int:
        """Number of stored chunk records in this view."""

    def stored_fields(self, ordinal: int) -> dict[str, Any]:
        """Stored fields of the record at ``ordinal``."""

    def iter_stored(self) -> Iterator[dict[str, Any]]:
        """Stored fields of every record, in ordinal order."""

    def search(self, query: ParsedQuery, top_n: int) -> TopHits:
        """Return the ``top_n`` best hits for ``query``."""


class IndexEngine(Protocol):
    """Factory for writers and readers over one index location."""

    index_path: str

    def exists(self) -> bool:
        """Return True if an initialized index is present."""

    def initialize(self) -> None:
        """Create the index if needed."""

    def open_writer(self) -> IndexWriter:
        """Open the single write session."""

    def open_reader(self) -> IndexReader:
        """Open a reader over the latest committed state."""

    def reopen_if_changed(self, reader: IndexReader) -> IndexReader | None:
        """Return a newer reader, or None when nothing was committed since."""
