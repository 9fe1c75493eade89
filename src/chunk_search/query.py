"""
Parsing of full-text query strings into engine clauses.

Supports the small subset of the classic query syntax the tools expose:
bare terms, quoted phrases, ``field:value``, ``+``/``-`` prefixes and the
``AND`` / ``OR`` / ``NOT`` keywords. Bare terms are OR-ed together.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal


Occur = Literal["must", "should", "must_not"]

TEXT_FIELDS: frozenset[str] = frozenset({"content", "title"})
KEYWORD_FIELDS: frozenset[str] = frozenset({"id", "source_document"})
INTEGER_FIELDS: frozenset[str] = frozenset({"chunk_index"})
SEARCHABLE_FIELDS: frozenset[str] = TEXT_FIELDS | KEYWORD_FIELDS | INTEGER_FIELDS

# Stop set of the classic English standard analyzer.
STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if",
        "in", "into", "is", "it", "no", "not", "of", "on", "or", "such",
        "that", "the", "their", "then", "there", "these", "they", "this",
        "to", "was", "will", "with",
    }
)

_OPERATORS = {"AND", "OR", "NOT"}
_TOKEN_RE = re.compile(r"\w+")
_CLAUSE_RE = re.compile(
    r"""
    (?P<prefix>[+-])?
    (?:(?P<field>[A-Za-z_][A-Za-z0-9_]*):)?
    (?:"(?P<phrase>[^"]*)"|(?P<word>[^\s"()]+))
    """,
    re.VERBOSE,
)


class QueryParseError(ValueError):
    """Raised when a query string cannot be parsed."""


@dataclass(frozen=True)
class QueryClause:
    """One field-scoped condition of a parsed query."""

    field: str
    terms: tuple[str, ...]
    occur: Occur
    phrase: bool = False

    @property
    def is_positive(self) -> bool:
        return self.occur != "must_not"


@dataclass(frozen=True)
class ParsedQuery:
    """Normalized query ready to be executed by an index reader."""

    raw: str
    clauses: tuple[QueryClause, ...]

    @property
    def matches_nothing(self) -> bool:
        return not any(clause.is_positive for clause in self.clauses)


def tokenize(text: str) -> list[str]:
    """Lower-case word tokens, the same split the engine applies to fields."""
    return _TOKEN_RE.findall(text.lower())


def analyze(text: str) -> list[str]:
    return [token for token in tokenize(text) if token not in STOP_WORDS]


@dataclass
class _RawClause:
    field: str | None
    text: str
    phrase: bool
    occur: Occur


def parse_query(
    raw_query: str,
    *,
    default_field: str = "content",
    fields: frozenset[str] = SEARCHABLE_FIELDS,
) -> ParsedQuery:
    """Parse ``raw_query`` into clauses against ``fields``."""
    if raw_query is None or not raw_query.strip():
        raise QueryParseError("Query string is empty.")

    raw_clauses = _scan(raw_query)
    clauses: list[QueryClause] = []
    for raw_clause in raw_clauses:
        clause = _build_clause(raw_clause, default_field=default_field, fields=fields)
        if clause is not None:
            clauses.append(clause)
    return ParsedQuery(raw=raw_query, clauses=tuple(clauses))


def _scan(raw_query: str) -> list[_RawClause]:
    clauses: list[_RawClause] = []
    pending_operator: str | None = None
    position = 0
    length = len(raw_query)

    while position < length:
        if raw_query[position].isspace():
            position += 1
            continue

        ch = raw_query[position]
        if ch in "()":
            raise QueryParseError(
                f"Grouping with parentheses is not supported (position {position})."
            )

        match = _CLAUSE_RE.match(raw_query, position)
        if match is None:
            quote_at = raw_query.find('"', position)
            if quote_at != -1:
                raise QueryParseError(
                    f"Unterminated phrase starting at position {quote_at}."
                )
            raise QueryParseError(f"Cannot parse query near {raw_query[position:]!r}.")
        position = match.end()

        word = match.group("word")
        prefix = match.group("prefix")
        field = match.group("field")

        if word in _OPERATORS and prefix is None and field is None:
            if word in {"AND", "OR"} and (not clauses or pending_operator is not None):
                raise QueryParseError(f"Operator {word} is missing a left operand.")
            if word == "NOT" and pending_operator == "NOT":
                raise QueryParseError("Operator NOT cannot be repeated.")
            pending_operator = word
            continue

        if word is not None and word.endswith(":"):
            raise QueryParseError(f"Missing value for field {word[:-1]!r}.")

        occur: Occur = "should"
        if prefix == "+":
            occur = "must"
        elif prefix == "-":
            occur = "must_not"

        if pending_operator == "NOT":
            occur = "must_not"
        elif pending_operator == "AND":
            if occur == "should":
                occur = "must"
            if clauses and clauses[-1].occur == "should":
                clauses[-1].occur = "must"

        phrase = match.group("phrase")
        clauses.append(
            _RawClause(
                field=field,
                text=phrase if phrase is not None else word,
                phrase=phrase is not None,
                occur=occur,
            )
        )
        pending_operator = None

    if pending_operator is not None:
        raise QueryParseError(f"Operator {pending_operator} is missing a right operand.")
    return clauses


def _build_clause(
    raw_clause: _RawClause,
    *,
    default_field: str,
    fields: frozenset[str],
) -> QueryClause | None:
    field = raw_clause.field or default_field
    if field not in fields:
        allowed = ", ".join(sorted(fields))
        raise QueryParseError(f"Unknown field {field!r}. Searchable fields: {allowed}")

    if field in INTEGER_FIELDS:
        value = raw_clause.text.strip()
        if not re.fullmatch(r"-?\d+", value):
            raise QueryParseError(f"Field {field!r} requires an integer, got {value!r}.")
        return QueryClause(field=field, terms=(str(int(value)),), occur=raw_clause.occur)

    if field in KEYWORD_FIELDS:
        return QueryClause(
            field=field,
            terms=(raw_clause.text,),
            occur=raw_clause.occur,
            phrase=raw_clause.phrase,
        )

    if raw_clause.phrase:
        terms = tokenize(raw_clause.text)
    else:
        terms = analyze(raw_clause.text)
    if not terms:
        return None
    return QueryClause(
        field=field,
        terms=tuple(terms),
        occur=raw_clause.occur,
        phrase=raw_clause.phrase,
    )
