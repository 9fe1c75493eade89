"""Indexing components: chunking, text extraction and document replacement."""

from .chunker import Chunk, WordChunker, assign_chunk_identity, build_chunks
from .extraction import TextExtractionError, extract_text
from .replacer import BulkResult, DocumentReplacer, ReplaceResult

__all__ = [
    "Chunk",
    "WordChunker",
    "assign_chunk_identity",
    "build_chunks",
    "TextExtractionError",
    "extract_text",
    "BulkResult",
    "DocumentReplacer",
    "ReplaceResult",
]
