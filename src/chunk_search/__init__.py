"""
chunk-search - chunked full-text indexing and search for business documents.

Documents are split into overlapping word windows, stored per source
document in a DuckDB-backed index, and served through search and listing
tools whose reader is refreshed on a debounce.

Example usage:
    >>> from chunk_search import DocumentReplacer, DuckDBIndexEngine, IndexService
    >>> engine = DuckDBIndexEngine("./chunk-index.duckdb")
    >>> engine.initialize()
    >>> DocumentReplacer(engine).replace("policy-7", "Travel Policy", text)
    >>> with IndexService(engine) as service:
    ...     print(service.search_json("reimbursement"))
"""

from .config import ConfigurationError, IndexSettings
from .indexing import (
    Chunk,
    DocumentReplacer,
    WordChunker,
    assign_chunk_identity,
    extract_text,
)
from .query import ParsedQuery, QueryParseError, parse_query
from .search import ListingFacade, RefreshCoordinator, RefreshState, SearchFacade
from .service import IndexService
from .storage import DuckDBIndexEngine, EngineIOError

__all__ = [
    # Configuration
    "ConfigurationError",
    "IndexSettings",
    # Indexing
    "Chunk",
    "DocumentReplacer",
    "WordChunker",
    "assign_chunk_identity",
    "extract_text",
    # Query
    "ParsedQuery",
    "QueryParseError",
    "parse_query",
    # Search
    "ListingFacade",
    "RefreshCoordinator",
    "RefreshState",
    "SearchFacade",
    # Service
    "IndexService",
    "DuckDBIndexEngine",
    "EngineIOError",
]
