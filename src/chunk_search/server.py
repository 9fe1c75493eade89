"""
FastAPI transport for the search and listing tools.

Each endpoint returns exactly the JSON payload of the matching tool, so an
agent-side bridge can forward responses verbatim.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from .config import IndexSettings, configure_logging, resolve_index_path
from .models import ToolError
from .service import IndexService


def create_app(service: IndexService) -> FastAPI:
    """Build the app around an already opened service."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        try:
            yield
        finally:
            service.close()

    app = FastAPI(
        title="chunk-search",
        description="Chunk-level full-text search over indexed documents",
        lifespan=lifespan,
    )
    app.state.service = service

    @app.get("/api/search")
    def search(query: str = Query(..., description="Full-text query string")):
        """Search indexed chunks and return the top ranked hits."""
        result = service.search(query)
        if isinstance(result, ToolError):
            status_code = 400 if result.error == "parse_error" else 500
            return JSONResponse(
                result.model_dump(exclude_none=True), status_code=status_code
            )
        return result.model_dump(by_alias=True)

    @app.get("/api/documents")
    def list_documents():
        """List indexed source documents with title and chunk count."""
        result = service.list_documents()
        if isinstance(result, ToolError):
            return JSONResponse(result.model_dump(exclude_none=True), status_code=500)
        return result.model_dump()

    @app.get("/api/status")
    def status():
        """Report the served generation and the refresh state."""
        return service.status()

    return app


def run_server(
    index_path: str | None = None,
    host: str = "127.0.0.1",
    port: int = 8000,
    settings: IndexSettings | None = None,
) -> None:
    """Open the index, then run the FastAPI server."""
    import uvicorn

    settings = settings or IndexSettings.from_env()
    configure_logging(settings.log_level)
    service = IndexService.open(resolve_index_path(index_path), settings)
    uvicorn.run(create_app(service), host=host, port=port, log_config=None)


if __name__ == "__main__":
    run_server()
