import json
import logging
import os
from pathlib import Path
from typing import Annotated

from typer import Argument, Exit, Option, Typer, echo
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import (
    ENV_LOG_LEVEL,
    ConfigurationError,
    IndexSettings,
    configure_logging,
    normalize_log_level,
    resolve_index_path,
)
from .indexing import DocumentReplacer, TextExtractionError, WordChunker, extract_text
from .models import BulkEntry
from .server import run_server
from .service import IndexService
from .storage import DuckDBIndexEngine, EngineIOError

app = Typer(no_args_is_help=True, help="Chunked full-text document index.")

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

IndexPathOption = Annotated[
    str | None,
    Option(
        "--index",
        "-i",
        help="Path to the index file (defaults to $CHUNK_SEARCH_INDEX_PATH or ./chunk-index.duckdb).",
    ),
]


def _fail(message: str) -> Exit:
    err_console.print(f"[bold red]Error:[/] {escape(message)}")
    return Exit(code=1)


def _load_settings() -> IndexSettings:
    try:
        return IndexSettings.from_env()
    except ConfigurationError as exc:
        raise _fail(str(exc))


def _make_replacer(index: str | None) -> DocumentReplacer:
    settings = _load_settings()
    engine = DuckDBIndexEngine(resolve_index_path(index))
    try:
        chunker = WordChunker(settings.max_words, settings.overlap_words)
    except ConfigurationError as exc:
        raise _fail(str(exc))
    return DocumentReplacer(engine, chunker)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        Option(
            "--verbose",
            "-v",
            help="Log at INFO to stderr (otherwise $CHUNK_SEARCH_LOG_LEVEL, default ERROR).",
        ),
    ] = False,
) -> None:
    if verbose:
        level = "INFO"
    else:
        try:
            level = normalize_log_level(os.getenv(ENV_LOG_LEVEL, "ERROR"))
        except ConfigurationError as exc:
            raise _fail(str(exc))
    configure_logging(level)


@app.command()
def init(index: IndexPathOption = None) -> None:
    """Initialize a new index."""
    index_path = resolve_index_path(index)
    try:
        DuckDBIndexEngine(index_path).initialize()
    except EngineIOError as exc:
        raise _fail(f"initializing index: {exc}")
    console.print(f"Successfully initialized index at: {escape(index_path)}")


@app.command()
def add(
    doc_id: Annotated[str, Option("--id", "-d", help="Source document id.")],
    title: Annotated[str, Option("--title", "-t", help="Document title.")],
    content: Annotated[
        str | None, Option("--content", "-c", help="Document content.")
    ] = None,
    file: Annotated[
        Path | None,
        Option("--file", "-f", help="File containing the document content (.pdf, .txt, ...)."),
    ] = None,
    index: IndexPathOption = None,
) -> None:
    """Add or replace a single document."""
    if content is None and file is None:
        raise _fail("Either --content or --file must be provided")
    if content is not None and file is not None:
        raise _fail("Cannot specify both --content and --file")

    if file is not None:
        try:
            content = extract_text(str(file))
        except FileNotFoundError:
            raise _fail(f"File not found: {file.resolve()}")
        except (TextExtractionError, OSError, UnicodeDecodeError) as exc:
            raise _fail(f"reading {file}: {exc}")

    replacer = _make_replacer(index)
    try:
        result = replacer.replace(doc_id, title, content)
    except EngineIOError as exc:
        raise _fail(f"adding document: {exc}")

    if result.skipped:
        console.print(f"[bold yellow]Warning:[/] {escape(result.warning)}")
        return
    console.print(
        f"Successfully added document '{escape(doc_id)}' as "
        f"{result.chunks_written} chunks to index"
    )


@app.command()
def bulk(
    json_file: Annotated[
        Path,
        Option("--json", "-j", help="JSON file holding an array of {id, title, content}."),
    ],
    index: IndexPathOption = None,
) -> None:
    """Add or replace documents from a JSON file."""
    if not json_file.is_file():
        raise _fail(f"JSON file not found: {json_file.resolve()}")
    try:
        raw_entries = json.loads(json_file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise _fail(f"Invalid JSON format: {exc}")
    if not isinstance(raw_entries, list):
        raise _fail("Invalid JSON format: expected an array of documents")

    replacer = _make_replacer(index)
    try:
        result = replacer.replace_many(BulkEntry.from_raw(raw) for raw in raw_entries)
    except Exception as exc:
        raise _fail(f"processing bulk documents: {exc}")

    for warning in result.warnings:
        console.print(f"[bold yellow]Warning:[/] {escape(warning)}")

    table = Table(show_header=False, box=None)
    table.add_row("Documents Added", str(result.documents_added))
    table.add_row("Chunks Written", str(result.chunks_written))
    table.add_row("Skipped", str(len(result.warnings)))
    console.print(
        Panel(table, title="Bulk Index Complete", title_align="left", border_style="bold green")
    )
    console.print(
        f"Successfully added {result.documents_added} documents as "
        f"{result.chunks_written} total chunks to index"
    )


def _open_service(index: str | None) -> IndexService:
    settings = _load_settings()
    try:
        return IndexService.open(resolve_index_path(index), settings)
    except (ConfigurationError, EngineIOError) as exc:
        raise _fail(str(exc))


@app.command()
def search(
    query: Annotated[str, Argument(help="Full-text query, e.g. 'title:invoice \"net 30\"'.")],
    index: IndexPathOption = None,
) -> None:
    """Print the search tool payload for QUERY."""
    with _open_service(index) as service:
        echo(service.search_json(query))


@app.command("list")
def list_documents(index: IndexPathOption = None) -> None:
    """Print the document listing tool payload."""
    with _open_service(index) as service:
        echo(service.list_documents_json())


@app.command()
def serve(
    index: IndexPathOption = None,
    host: Annotated[str, Option("--host", help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", help="Bind port.")] = 8000,
) -> None:
    """Serve the search and listing tools over HTTP."""
    settings = _load_settings()
    try:
        run_server(index, host=host, port=port, settings=settings)
    except (ConfigurationError, EngineIOError) as exc:
        logging.getLogger(__name__).error("Failed to start server: %s", exc)
        raise _fail(str(exc))
