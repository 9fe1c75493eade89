"""Tests for word-window chunking and chunk identity."""

import pytest

from chunk_search.config import ConfigurationError
from chunk_search.indexing.chunker import (
    WordChunker,
    assign_chunk_identity,
    build_chunks,
    make_chunk_id,
)

from conftest import make_words


def test_short_text_is_returned_unmodified() -> None:
    text = "  Invoice\t#42\r\n\nis   due  "
    assert WordChunker().split(text) == [text]

    exactly_max = " ".join(make_words(250))
    assert WordChunker().split(exactly_max) == [exactly_max]


def test_three_hundred_words_make_two_chunks() -> None:
    words = make_words(300)

    chunks = WordChunker().split("\n".join(words))

    assert len(chunks) == 2
    assert chunks[0] == " ".join(words[0:250])
    assert chunks[1] == " ".join(words[210:300])
    assert len(chunks[1].split(" ")) == 90


def test_one_word_over_the_window_still_gets_a_second_chunk() -> None:
    words = make_words(251)

    chunks = WordChunker().split(" ".join(words))

    assert chunks == [" ".join(words[0:250]), " ".join(words[210:251])]


@pytest.mark.parametrize(
    ("word_count", "max_words", "overlap_words"),
    [
        (10, 3, 1),
        (251, 250, 40),
        (1000, 250, 40),
        (57, 10, 9),
        (99, 10, 0),
        (4, 3, 2),
    ],
)
def test_chunks_cover_every_word_with_fixed_overlap(
    word_count: int, max_words: int, overlap_words: int
) -> None:
    words = make_words(word_count)
    chunker = WordChunker(max_words=max_words, overlap_words=overlap_words)

    chunks = [chunk.split(" ") for chunk in chunker.split(" ".join(words))]

    covered: set[int] = set()
    for position, chunk_words in enumerate(chunks):
        start = position * chunker.stride
        assert chunk_words == words[start : start + len(chunk_words)]
        assert len(chunk_words) <= max_words
        covered.update(range(start, start + len(chunk_words)))
    assert covered == set(range(word_count))

    for previous, current in zip(chunks, chunks[1:]):
        overlap = len(previous) - chunker.stride
        assert overlap >= overlap_words
        if overlap:
            assert current[:overlap] == previous[-overlap:]


@pytest.mark.parametrize(
    ("max_words", "overlap_words"),
    [(10, 10), (10, 11), (0, 0), (10, -1)],
)
def test_invalid_window_configuration_fails_fast(
    max_words: int, overlap_words: int
) -> None:
    with pytest.raises(ConfigurationError):
        WordChunker(max_words=max_words, overlap_words=overlap_words)


def test_single_chunk_keeps_document_title() -> None:
    chunks = assign_chunk_identity("policy-7", "Travel Policy", ["only chunk"])

    assert len(chunks) == 1
    assert chunks[0].id == "policy-7-chunk-001"
    assert chunks[0].title == "Travel Policy"
    assert chunks[0].source_document == "policy-7"
    assert chunks[0].chunk_index == 1


def test_multiple_chunks_get_part_titles_and_contiguous_ids() -> None:
    chunks = assign_chunk_identity("contract", "Master Agreement", ["a", "b", "c"])

    assert [chunk.id for chunk in chunks] == [
        "contract-chunk-001",
        "contract-chunk-002",
        "contract-chunk-003",
    ]
    assert [chunk.title for chunk in chunks] == [
        "Master Agreement - Part 1",
        "Master Agreement - Part 2",
        "Master Agreement - Part 3",
    ]
    assert [chunk.chunk_index for chunk in chunks] == [1, 2, 3]
    assert [chunk.content for chunk in chunks] == ["a", "b", "c"]


def test_chunk_id_padding_grows_past_three_digits() -> None:
    assert make_chunk_id("doc", 7) == "doc-chunk-007"
    assert make_chunk_id("doc", 1234) == "doc-chunk-1234"


def test_build_chunks_returns_nothing_for_blank_content() -> None:
    assert build_chunks("doc", "Title", "") == []
    assert build_chunks("doc", "Title", " \t\r\n ") == []


def test_chunk_to_fields_matches_stored_schema() -> None:
    chunk = build_chunks("doc", "Title", "hello world")[0]

    assert chunk.to_fields() == {
        "id": "doc-chunk-001",
        "title": "Title",
        "content": "hello world",
        "source_document": "doc",
        "chunk_index": 1,
    }
