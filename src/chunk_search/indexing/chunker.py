"""
Word-window chunking and chunk identity for indexed documents.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..config import DEFAULT_MAX_WORDS, DEFAULT_OVERLAP_WORDS, ConfigurationError

_WORD_SPLIT_RE = re.compile(r"[ \t\r\n]+")


@dataclass(frozen=True)
class Chunk:
    """A stored, independently searchable slice of a source document."""

    id: str
    title: str
    content: str
    source_document: str
    chunk_index: int

    def to_fields(self) -> dict[str, str | int]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "source_document": self.source_document,
            "chunk_index": self.chunk_index,
        }


class WordChunker:
    """
    Overlapping word-window chunker.

    Texts of at most ``max_words`` words come back unchanged as a single
    chunk. Longer texts are cut into windows of ``max_words`` words joined by
    single spaces, advancing ``max_words - overlap_words`` words at a time.
    """

    def __init__(
        self,
        max_words: int = DEFAULT_MAX_WORDS,
        overlap_words: int = DEFAULT_OVERLAP_WORDS,
    ) -> None:
        if max_words <= 0:
            raise ConfigurationError("max_words must be > 0")
        if overlap_words < 0:
            raise ConfigurationError("overlap_words must be >= 0")
        if overlap_words >= max_words:
            raise ConfigurationError("overlap_words must be smaller than max_words")

        self.max_words = max_words
        self.overlap_words = overlap_words

    @property
    def stride(self) -> int:
        return self.max_words - self.overlap_words

    def split(self, text: str) -> list[str]:
        words = [word for word in _WORD_SPLIT_RE.split(text) if word]
        total = len(words)
        if total <= self.max_words:
            return [text]

        chunks: list[str] = []
        cursor = 0
        while cursor < total:
            take = min(self.max_words, total - cursor)
            chunks.append(" ".join(words[cursor : cursor + take]))

            # The window just emitted already reaches the end; a further one
            # would be smaller than the overlap.
            next_cursor = cursor + self.stride
            if next_cursor >= total - self.overlap_words:
                break
            cursor = next_cursor

        return chunks


def assign_chunk_identity(
    source_id: str, title: str, text_chunks: list[str]
) -> list[Chunk]:
    """Derive ids, titles and 1-based indices for a document's chunks."""
    single = len(text_chunks) == 1
    return [
        Chunk(
            id=make_chunk_id(source_id, index),
            title=title if single else f"{title} - Part {index}",
            content=text,
            source_document=source_id,
            chunk_index=index,
        )
        for index, text in enumerate(text_chunks, start=1)
    ]


def make_chunk_id(source_id: str, chunk_index: int) -> str:
    return f"{source_id}-chunk-{chunk_index:03d}"


def build_chunks(
    source_id: str,
    title: str,
    content: str,
    chunker: WordChunker | None = None,
) -> list[Chunk]:
    """Chunk ``content`` and assign identities; blank content yields nothing."""
    if not content or not content.strip():
        return []
    text_chunks = (chunker or WordChunker()).split(content)
    return assign_chunk_identity(source_id, title, text_chunks)
