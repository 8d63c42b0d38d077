from .search import (
    CandidateFilters,
    ExtractionFailure,
    ExtractionResult,
    FilterSummary,
    InventoryCity,
    LocationOutcome,
    LocationRequest,
    LocationValidation,
    PropertyCategory,
    SearchErrorKind,
    SearchRequest,
    SearchResponse,
    SearchResult,
    TransactionType,
)

__all__ = [
    "CandidateFilters",
    "ExtractionFailure",
    "ExtractionResult",
    "FilterSummary",
    "InventoryCity",
    "LocationOutcome",
    "LocationRequest",
    "LocationValidation",
    "PropertyCategory",
    "SearchErrorKind",
    "SearchRequest",
    "SearchResponse",
    "SearchResult",
    "TransactionType",
]
