"""
DuckDB-backed index engine.

Writers buffer operations and apply them in one transaction at commit, which
also bumps a generation counter. Readers are in-memory snapshots of the
committed file, so a reader never observes a half-applied commit and a new
reader is only needed when the generation moved.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Mapping

import duckdb

from ..query import INTEGER_FIELDS, TEXT_FIELDS, ParsedQuery, QueryClause
from .base import CHUNK_FIELDS, EngineIOError, ScoredChunk, TopHits

logger = logging.getLogger(__name__)

_SELECT_FIELDS = ", ".join(CHUNK_FIELDS)

LOCK_RETRIES = 10
LOCK_RETRY_DELAY = 0.2

# Tokens separated by two spaces and wrapped in one, so that " term " occurs
# once per token occurrence.
_TERMS_EXPR = (
    r"' ' || array_to_string(regexp_split_to_array(lower(coalesce({column}, '')), "
    r"'[^\pL\pN_]+'), '  ') || ' '"
)


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _create_schema(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS chunks (
            id VARCHAR NOT NULL,
            title VARCHAR,
            content VARCHAR,
            source_document VARCHAR,
            chunk_index INTEGER
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS index_meta (
            key VARCHAR PRIMARY KEY,
            value BIGINT NOT NULL
        );
        """
    )
    conn.execute(
        """
        INSERT INTO index_meta (key, value)
        VALUES ('generation', 0)
        ON CONFLICT (key) DO NOTHING
        """
    )


def _row_to_fields(row: tuple[Any, ...]) -> dict[str, Any]:
    return {
        name: value
        for name, value in zip(CHUNK_FIELDS, row)
        if value is not None
    }


@dataclass(frozen=True)
class _PendingOp:
    kind: str
    field: str | None = None
    value: str | None = None
    record: tuple[Any, ...] | None = None


class DuckDBIndexWriter:
    """Single write session over the index file."""

    def __init__(
        self,
        index_path: str,
        *,
        lock_retries: int = LOCK_RETRIES,
        lock_retry_delay: float = LOCK_RETRY_DELAY,
    ) -> None:
        self.index_path = index_path
        self._conn = self._connect(lock_retries, lock_retry_delay)
        try:
            _create_schema(self._conn)
        except duckdb.Error as exc:
            self._conn.close()
            raise EngineIOError(
                f"Unable to open index for writing at {index_path}: {exc}"
            ) from exc
        self._pending: list[_PendingOp] = []
        self._closed = False

    def __enter__(self) -> "DuckDBIndexWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _connect(self, retries: int, delay: float) -> duckdb.DuckDBPyConnection:
        # Another process (a reader taking its snapshot, or a writer) may hold
        # the file lock for a moment.
        attempt = 0
        while True:
            try:
                return duckdb.connect(self.index_path)
            except duckdb.IOException as exc:
                if attempt >= retries:
                    raise EngineIOError(
                        f"Unable to open index for writing at {self.index_path}: {exc}"
                    ) from exc
                attempt += 1
                logger.debug(
                    "Index file locked, retrying (%d/%d)", attempt, retries
                )
                time.sleep(delay)
            except duckdb.Error as exc:
                raise EngineIOError(
                    f"Unable to open index for writing at {self.index_path}: {exc}"
                ) from exc

    @property
    def pending_operations(self) -> int:
        return len(self._pending)

    def add(self, fields: Mapping[str, str | int]) -> None:
        self._ensure_open()
        unknown = set(fields) - set(CHUNK_FIELDS)
        if unknown:
            raise ValueError(f"Unknown chunk fields: {', '.join(sorted(unknown))}")
        if not fields.get("id"):
            raise ValueError("Chunk records require a non-empty 'id'.")
        record = tuple(fields.get(name) for name in CHUNK_FIELDS)
        self._pending.append(_PendingOp(kind="add", record=record))

    def delete_by_term(self, field: str, value: str) -> None:
        self._ensure_open()
        if field not in CHUNK_FIELDS:
            raise ValueError(f"Unknown chunk field: {field!r}")
        self._pending.append(_PendingOp(kind="delete", field=field, value=value))

    def commit(self) -> int:
        self._ensure_open()
        if not self._pending:
            return self._read_generation()

        try:
            self._conn.execute("BEGIN TRANSACTION")
            batch: list[tuple[Any, ...]] = []
            for op in self._pending:
                if op.kind == "delete":
                    self._flush_adds(batch)
                    self._conn.execute(
                        f"DELETE FROM chunks WHERE {op.field} = ?", [op.value]
                    )
                else:
                    batch.append(op.record)
            self._flush_adds(batch)
            self._conn.execute(
                "UPDATE index_meta SET value = value + 1 WHERE key = 'generation'"
            )
            generation = self._read_generation()
            self._conn.execute("COMMIT")
        except duckdb.Error as exc:
            with suppress(duckdb.Error):
                self._conn.execute("ROLLBACK")
            raise EngineIOError(f"Failed to commit index changes: {exc}") from exc

        self._pending.clear()
        return generation

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        try:
            self._conn.execute("CHECKPOINT")
        except duckdb.Error as exc:
            raise EngineIOError(f"Failed to checkpoint index: {exc}") from exc
        finally:
            self._conn.close()

    def _flush_adds(self, batch: list[tuple[Any, ...]]) -> None:
        if not batch:
            return
        placeholders = ", ".join(["?"] * len(CHUNK_FIELDS))
        self._conn.executemany(
            f"INSERT INTO chunks ({_SELECT_FIELDS}) VALUES ({placeholders})",
            batch,
        )
        batch.clear()

    def _read_generation(self) -> int:
        row = self._conn.execute(
            "SELECT value FROM index_meta WHERE key = 'generation'"
        ).fetchone()
        return int(row[0]) if row else 0

    def _ensure_open(self) -> None:
        if self._closed:
            raise EngineIOError("Index writer is closed.")


class DuckDBIndexReader:
    """In-memory, reference-counted snapshot of committed chunks."""

    def __init__(self, conn: duckdb.DuckDBPyConnection, generation: int) -> None:
        self._conn: duckdb.DuckDBPyConnection | None = conn
        self.generation = generation
        self._refs = 1
        self._ref_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._conn is None

    def inc_ref(self) -> None:
        with self._ref_lock:
            if self._refs <= 0:
                raise EngineIOError("Index reader is already closed.")
            self._refs += 1

    def dec_ref(self) -> None:
        with self._ref_lock:
            self._refs -= 1
            if self._refs > 0 or self._conn is None:
                return
            conn, self._conn = self._conn, None
        conn.close()

    def total_stored_count(self) -> int:
        row = self._fetchone("SELECT COUNT(*) FROM chunks")
        return int(row[0]) if row else 0

    def stored_fields(self, ordinal: int) -> dict[str, Any]:
        row = self._fetchone(
            f"SELECT {_SELECT_FIELDS} FROM chunks WHERE ordinal = ?", [ordinal]
        )
        if row is None:
            raise IndexError(f"No stored chunk at ordinal {ordinal}")
        return _row_to_fields(row)

    def iter_stored(self) -> Iterator[dict[str, Any]]:
        cursor = self._cursor()
        try:
            cursor.execute(f"SELECT {_SELECT_FIELDS} FROM chunks ORDER BY ordinal")
            while True:
                rows = cursor.fetchmany(500)
                if not rows:
                    break
                for row in rows:
                    yield _row_to_fields(row)
        except duckdb.Error as exc:
            raise EngineIOError(f"Failed to read stored chunks: {exc}") from exc
        finally:
            cursor.close()

    def search(self, query: ParsedQuery, top_n: int) -> TopHits:
        if query.matches_nothing:
            return TopHits(total_hits=0, hits=[])

        select_exprs: list[str] = []
        params: list[Any] = []
        for position, clause in enumerate(query.clauses):
            expr, expr_params = self._clause_expr(clause)
            select_exprs.append(f"({expr}) AS c{position}")
            params.extend(expr_params)

        positive = [
            f"c{position}"
            for position, clause in enumerate(query.clauses)
            if clause.is_positive
        ]
        conditions = [
            f"c{position} > 0"
            for position, clause in enumerate(query.clauses)
            if clause.occur == "must"
        ]
        conditions.extend(
            f"c{position} = 0"
            for position, clause in enumerate(query.clauses)
            if clause.occur == "must_not"
        )
        if not any(clause.occur == "must" for clause in query.clauses):
            conditions.append(
                "(" + " OR ".join(f"{name} > 0" for name in positive) + ")"
            )

        clause_columns = ", ".join(select_exprs)
        score_expr = " + ".join(positive)
        where_expr = " AND ".join(conditions)
        sql = f"""
            WITH scored AS (
                SELECT ordinal, {_SELECT_FIELDS}, {clause_columns}
                FROM chunks
            )
            SELECT
                ordinal,
                {_SELECT_FIELDS},
                CAST({score_expr} AS DOUBLE) AS score,
                COUNT(*) OVER () AS total_hits
            FROM scored
            WHERE {where_expr}
            ORDER BY score DESC, ordinal ASC
            LIMIT ?
        """
        params.append(max(top_n, 1))
        rows = self._fetchall(sql, params)

        hits = [
            ScoredChunk(
                ordinal=int(row[0]),
                fields=_row_to_fields(row[1 : 1 + len(CHUNK_FIELDS)]),
                score=float(row[-2]),
            )
            for row in rows
        ]
        total_hits = int(rows[0][-1]) if rows else 0
        return TopHits(total_hits=total_hits, hits=hits)

    @staticmethod
    def _clause_expr(clause: QueryClause) -> tuple[str, list[Any]]:
        if clause.field in TEXT_FIELDS:
            column = f"{clause.field}_terms"
            if clause.phrase:
                needles = [" " + "  ".join(clause.terms) + " "]
            else:
                needles = [f" {term} " for term in clause.terms]
            count_expr = (
                f"(length({column}) - length(replace({column}, CAST(? AS VARCHAR), '')))"
                " / length(CAST(? AS VARCHAR))"
            )
            params: list[Any] = []
            for needle in needles:
                params.extend([needle, needle])
            return " + ".join([count_expr] * len(needles)), params

        if clause.field in INTEGER_FIELDS:
            return f"CASE WHEN {clause.field} = ? THEN 1 ELSE 0 END", [
                int(clause.terms[0])
            ]

        return f"CASE WHEN {clause.field} = ? THEN 1 ELSE 0 END", [clause.terms[0]]

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise EngineIOError("Index reader is closed.")
        return self._conn.cursor()

    def _fetchone(self, sql: str, params: list[Any] | None = None) -> Any:
        cursor = self._cursor()
        try:
            return cursor.execute(sql, params or []).fetchone()
        except duckdb.Error as exc:
            raise EngineIOError(f"Index read failed: {exc}") from exc
        finally:
            cursor.close()

    def _fetchall(self, sql: str, params: list[Any]) -> list[tuple[Any, ...]]:
        cursor = self._cursor()
        try:
            return cursor.execute(sql, params).fetchall()
        except duckdb.Error as exc:
            raise EngineIOError(f"Index search failed: {exc}") from exc
        finally:
            cursor.close()


class DuckDBIndexEngine:
    """Index engine over a single DuckDB file."""

    def __init__(self, index_path: str) -> None:
        self.index_path = str(Path(index_path).expanduser().resolve())

    def exists(self) -> bool:
        if not Path(self.index_path).is_file():
            return False
        try:
            conn = duckdb.connect(self.index_path, read_only=True)
        except duckdb.Error as exc:
            raise EngineIOError(
                f"Unable to open index at {self.index_path}: {exc}"
            ) from exc
        try:
            row = conn.execute(
                """
                SELECT COUNT(*)
                FROM information_schema.tables
                WHERE table_name IN ('chunks', 'index_meta')
                """
            ).fetchone()
        finally:
            conn.close()
        return bool(row) and int(row[0]) == 2

    def initialize(self) -> None:
        Path(self.index_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = duckdb.connect(self.index_path)
        except duckdb.Error as exc:
            raise EngineIOError(
                f"Unable to create index at {self.index_path}: {exc}"
            ) from exc
        try:
            _create_schema(conn)
        finally:
            conn.close()

    def open_writer(self) -> DuckDBIndexWriter:
        Path(self.index_path).parent.mkdir(parents=True, exist_ok=True)
        return DuckDBIndexWriter(self.index_path)

    def open_reader(self) -> DuckDBIndexReader:
        title_terms = _TERMS_EXPR.format(column="title")
        content_terms = _TERMS_EXPR.format(column="content")
        conn = duckdb.connect(":memory:")
        try:
            conn.execute(f"ATTACH {_sql_literal(self.index_path)} AS source (READ_ONLY)")
            conn.execute("BEGIN TRANSACTION")
            row = conn.execute(
                "SELECT value FROM source.index_meta WHERE key = 'generation'"
            ).fetchone()
            conn.execute(
                f"""
                CREATE TABLE chunks AS
                SELECT
                    row_number() OVER () - 1 AS ordinal,
                    {_SELECT_FIELDS},
                    {title_terms} AS title_terms,
                    {content_terms} AS content_terms
                FROM source.chunks
                """
            )
            conn.execute("COMMIT")
            conn.execute("DETACH source")
        except duckdb.Error as exc:
            conn.close()
            raise EngineIOError(
                f"Unable to open index reader at {self.index_path}: {exc}"
            ) from exc
        return DuckDBIndexReader(conn, generation=int(row[0]) if row else 0)

    def current_generation(self) -> int:
        try:
            conn = duckdb.connect(self.index_path, read_only=True)
        except duckdb.Error as exc:
            raise EngineIOError(
                f"Unable to open index at {self.index_path}: {exc}"
            ) from exc
        try:
            row = conn.execute(
                "SELECT value FROM index_meta WHERE key = 'generation'"
            ).fetchone()
        except duckdb.Error as exc:
            raise EngineIOError(f"Unable to read index generation: {exc}") from exc
        finally:
            conn.close()
        return int(row[0]) if row else 0

    def reopen_if_changed(self, reader: DuckDBIndexReader) -> DuckDBIndexReader | None:
        if self.current_generation() == reader.generation:
            return None
        return self.open_reader()
