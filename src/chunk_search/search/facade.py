"""
Search and listing operations served from the coordinator's active reader.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping

import duckdb

from ..models import (
    DocumentListing,
    DocumentSummary,
    SearchResponse,
    SearchResult,
    ToolError,
)
from ..query import QueryParseError, parse_query
from ..storage import EngineIOError
from .refresh import RefreshCoordinator

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 10

_PART_SUFFIX_RE = re.compile(r" - Part \d+$")


def strip_part_suffix(title: str) -> str:
    return _PART_SUFFIX_RE.sub("", title)


class SearchFacade:
    """Run ranked queries and shape hits into the search payload."""

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        *,
        top_n: int = DEFAULT_TOP_N,
        default_field: str = "content",
    ) -> None:
        self.coordinator = coordinator
        self.top_n = top_n
        self.default_field = default_field

    def search(self, query: str) -> SearchResponse | ToolError:
        try:
            parsed = parse_query(query, default_field=self.default_field)
            with self.coordinator.acquire() as reader:
                top_hits = reader.search(parsed, self.top_n)
        except QueryParseError as exc:
            return ToolError(error="parse_error", message=str(exc), query=query)
        except (EngineIOError, duckdb.Error) as exc:
            logger.exception("Search failed for query %r", query)
            return ToolError(error="search_error", message=str(exc), query=query)
        finally:
            self.coordinator.signal_change()

        return SearchResponse(
            query=query,
            total_hits=top_hits.total_hits,
            results=[
                SearchResult(
                    id=hit.fields.get("id"),
                    title=hit.fields.get("title"),
                    content=hit.fields.get("content"),
                    source_document=hit.fields.get("source_document"),
                    chunk_index=hit.fields.get("chunk_index"),
                    score=hit.score,
                )
                for hit in top_hits.hits
            ],
        )


def summarize_chunks(stored: Iterable[Mapping[str, Any]]) -> list[DocumentSummary]:
    """
    Fold stored chunk fields into one summary per source document.

    The first chunk seen for a source fixes its display title; later chunks
    only bump the count and the highest chunk index. Chunks lacking a source
    document or a title are ignored.
    """
    summaries: dict[str, DocumentSummary] = {}
    for fields in stored:
        source_document = fields.get("source_document")
        title = fields.get("title")
        if source_document is None or title is None:
            continue
        chunk_index = fields.get("chunk_index")
        if chunk_index is None:
            chunk_index = 1

        existing = summaries.get(source_document)
        if existing is None:
            summaries[source_document] = DocumentSummary(
                source_document=source_document,
                title=strip_part_suffix(title),
                chunk_count=1,
                max_chunk_index=chunk_index,
            )
        else:
            summaries[source_document] = existing.model_copy(
                update={
                    "chunk_count": existing.chunk_count + 1,
                    "max_chunk_index": max(existing.max_chunk_index, chunk_index),
                }
            )
    return [summaries[key] for key in sorted(summaries)]


class ListingFacade:
    """Aggregate every stored chunk into per-document summaries."""

    def __init__(self, coordinator: RefreshCoordinator) -> None:
        self.coordinator = coordinator

    def list_documents(self) -> DocumentListing | ToolError:
        try:
            with self.coordinator.acquire() as reader:
                total_chunks = reader.total_stored_count()
                documents = summarize_chunks(reader.iter_stored())
        except (EngineIOError, duckdb.Error) as exc:
            logger.exception("Listing documents failed")
            return ToolError(error="listing_error", message=str(exc))
        finally:
            self.coordinator.signal_change()

        return DocumentListing(
            total_documents=len(documents),
            total_chunks=total_chunks,
            documents=documents,
        )
