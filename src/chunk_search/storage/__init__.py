"""Index engine backends for chunk storage."""

from .base import (
    CHUNK_FIELDS,
    EngineIOError,
    IndexEngine,
    IndexReader,
    IndexWriter,
    ScoredChunk,
    TopHits,
)
from .duckdb import DuckDBIndexEngine, DuckDBIndexReader, DuckDBIndexWriter

__all__ = [
    "CHUNK_FIELDS",
    "EngineIOError",
    "IndexEngine",
    "IndexReader",
    "IndexWriter",
    "ScoredChunk",
    "TopHits",
    "DuckDBIndexEngine",
    "DuckDBIndexReader",
    "DuckDBIndexWriter",
]
