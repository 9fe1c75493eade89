"""
Index service: the object the tool transports talk to.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable

from .config import ConfigurationError, IndexSettings
from .models import DocumentListing, SearchResponse, ToolError, to_tool_json
from .search import ListingFacade, RefreshCoordinator, SearchFacade
from .storage import DuckDBIndexEngine, IndexEngine


class IndexService:
    """Wires one refresh coordinator to the search and listing facades."""

    def __init__(
        self,
        engine: IndexEngine,
        *,
        refresh_interval: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: Any = threading.Timer,
    ) -> None:
        self.engine = engine
        self.coordinator = RefreshCoordinator(
            engine,
            interval=refresh_interval,
            clock=clock,
            timer_factory=timer_factory,
        )
        self.searcher = SearchFacade(self.coordinator)
        self.lister = ListingFacade(self.coordinator)

    @classmethod
    def open(
        cls,
        index_path: str,
        settings: IndexSettings | None = None,
        **kwargs: Any,
    ) -> "IndexService":
        """Open the service over an existing index, or fail to start."""
        settings = settings or IndexSettings()
        engine = DuckDBIndexEngine(index_path)
        if not engine.exists():
            raise ConfigurationError(
                f"No index found at: {engine.index_path}. "
                "Make sure the index exists and is accessible (run `chunk-search init`)."
            )
        return cls(engine, refresh_interval=settings.refresh_interval, **kwargs)

    def search(self, query: str) -> SearchResponse | ToolError:
        return self.searcher.search(query)

    def list_documents(self) -> DocumentListing | ToolError:
        return self.lister.list_documents()

    def search_json(self, query: str) -> str:
        return to_tool_json(self.search(query))

    def list_documents_json(self) -> str:
        return to_tool_json(self.list_documents())

    def status(self) -> dict[str, Any]:
        return {
            "index_path": self.engine.index_path,
            "generation": self.coordinator.generation,
            "refresh_state": self.coordinator.state.value,
            "refresh_count": self.coordinator.refresh_count,
        }

    def close(self) -> None:
        self.coordinator.close()

    def __enter__(self) -> "IndexService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
