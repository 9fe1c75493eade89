from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BulkEntry(BaseModel):
    """One document of a bulk JSON file"""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str | None = Field(default=None, description="Source document id")
    title: str | None = Field(default=None, description="Source document title")
    content: str | None = Field(default=None, description="Raw document text")

    @classmethod
    def from_raw(cls, raw: Any) -> "BulkEntry":
        """Entries that are not JSON objects become empty (malformed) entries"""
        if not isinstance(raw, dict):
            return cls()
        return cls.model_validate(raw)


class SearchResult(BaseModel):
    """A ranked chunk returned by the search tool"""

    id: str | None
    title: str | None
    content: str | None
    source_document: str | None
    chunk_index: int | None = None
    score: float


class SearchResponse(BaseModel):
    """Payload of the search tool"""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    total_hits: int = Field(serialization_alias="totalHits")
    results: list[SearchResult]


class DocumentSummary(BaseModel):
    """Per-source-document aggregate built from its stored chunks"""

    source_document: str
    title: str
    chunk_count: int
    max_chunk_index: int


class DocumentListing(BaseModel):
    """Payload of the document listing tool"""

    total_documents: int
    total_chunks: int
    documents: list[DocumentSummary]


class ToolError(BaseModel):
    """Structured error returned instead of a tool payload"""

    error: str = Field(description="Error kind, e.g. parse_error")
    message: str
    query: str | None = None


def to_tool_json(payload: BaseModel) -> str:
    return payload.model_dump_json(
        indent=2,
        by_alias=True,
        exclude_none=isinstance(payload, ToolError),
    )
