"""Search-side components: reader refresh and the tool facades."""

from .facade import (
    DEFAULT_TOP_N,
    ListingFacade,
    SearchFacade,
    strip_part_suffix,
    summarize_chunks,
)
from .refresh import RefreshCoordinator, RefreshState

__all__ = [
    "DEFAULT_TOP_N",
    "ListingFacade",
    "SearchFacade",
    "strip_part_suffix",
    "summarize_chunks",
    "RefreshCoordinator",
    "RefreshState",
]
