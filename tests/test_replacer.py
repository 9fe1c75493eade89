"""Tests for document replacement."""

from typing import Iterator

import pytest

from chunk_search.indexing import DocumentReplacer, WordChunker
from chunk_search.models import BulkEntry
from chunk_search.storage import DuckDBIndexEngine

from conftest import make_words


def _stored(engine: DuckDBIndexEngine) -> list[dict]:
    reader = engine.open_reader()
    try:
        return sorted(reader.iter_stored(), key=lambda fields: fields["id"])
    finally:
        reader.dec_ref()


def test_long_document_is_stored_as_titled_parts(engine: DuckDBIndexEngine) -> None:
    replacer = DocumentReplacer(engine)

    result = replacer.replace("handbook", "Employee Handbook", " ".join(make_words(300)))

    assert result.chunks_written == 2
    assert result.skipped is False
    stored = _stored(engine)
    assert [(fields["id"], fields["title"], fields["chunk_index"]) for fields in stored] == [
        ("handbook-chunk-001", "Employee Handbook - Part 1", 1),
        ("handbook-chunk-002", "Employee Handbook - Part 2", 2),
    ]
    assert all(fields["source_document"] == "handbook" for fields in stored)


def test_replacing_a_document_removes_its_previous_chunks(engine: DuckDBIndexEngine) -> None:
    replacer = DocumentReplacer(engine, WordChunker(max_words=3, overlap_words=1))
    replacer.replace("doc", "Doc", "one two three four five six seven")
    replacer.replace("other", "Other", "untouched")

    result = replacer.replace("doc", "Doc v2", "short")

    assert result.chunks_written == 1
    stored = _stored(engine)
    assert [(fields["id"], fields["title"], fields["content"]) for fields in stored] == [
        ("doc-chunk-001", "Doc v2", "short"),
        ("other-chunk-001", "Other", "untouched"),
    ]


def test_blank_content_leaves_the_index_untouched(engine: DuckDBIndexEngine) -> None:
    replacer = DocumentReplacer(engine)
    replacer.replace("doc", "Doc", "original text")
    generation = engine.current_generation()

    result = replacer.replace("doc", "Doc", "   \n\t")

    assert result.skipped is True
    assert result.chunks_written == 0
    assert "doc" in result.warning
    assert engine.current_generation() == generation
    assert [fields["content"] for fields in _stored(engine)] == ["original text"]


def test_replace_many_skips_malformed_and_blank_entries(engine: DuckDBIndexEngine) -> None:
    entries = [
        BulkEntry(id="a", title="Alpha", content="alpha text"),
        BulkEntry(title="No id", content="ignored"),
        BulkEntry(id="b", content="no title"),
        BulkEntry(id="c", title="Blank", content=""),
        BulkEntry(id="d", title="Delta", content="delta text"),
    ]

    result = DocumentReplacer(engine).replace_many(entries)

    assert result.documents_added == 2
    assert result.chunks_written == 2
    assert result.warnings == [
        "Skipping document with missing id or title",
        "Skipping document with missing id or title",
        "Document 'c' produced no chunks (empty content)",
    ]
    assert [fields["source_document"] for fields in _stored(engine)] == ["a", "d"]
    assert engine.current_generation() == 1


def test_replace_many_commits_staged_documents_before_reraising(
    engine: DuckDBIndexEngine,
) -> None:
    def entries() -> Iterator[BulkEntry]:
        yield BulkEntry(id="first", title="First", content="first text")
        raise RuntimeError("source exhausted")

    with pytest.raises(RuntimeError, match="source exhausted"):
        DocumentReplacer(engine).replace_many(entries())

    assert [fields["id"] for fields in _stored(engine)] == ["first-chunk-001"]


def test_bulk_entry_from_raw_tolerates_odd_input() -> None:
    assert BulkEntry.from_raw(["not", "an", "object"]) == BulkEntry()
    entry = BulkEntry.from_raw({"id": 42, "title": "Numbered", "content": "x", "extra": True})
    assert entry.id == "42"
    assert entry.title == "Numbered"
