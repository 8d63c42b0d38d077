"""
Natural-language search interpreter.

Runs a query through normalize -> extract -> validate and assembles the
``SearchResult`` handed back to callers. Also hosts the presentation
helpers used by the API layer (filter summary and user suggestions).
"""

import logging
from typing import List, Optional, Sequence

from ai_search.config import Settings
from ai_search.models.search import (
    CandidateFilters,
    FilterSummary,
    LocationOutcome,
    SearchErrorKind,
    SearchResult,
)
from ai_search.services.extractor import FilterExtractor
from ai_search.services.inventory import Inventory
from ai_search.services.location_validator import LocationValidator
from ai_search.services.normalizer import normalize_query

logger = logging.getLogger(__name__)


class SearchInterpreter:
    """Pipeline entry point for natural language property search."""

    def __init__(
        self,
        inventory: Inventory,
        extractor: FilterExtractor,
        validator: LocationValidator,
        max_query_length: int = 500,
    ) -> None:
        self.inventory = inventory
        self.extractor = extractor
        self.validator = validator
        self.max_query_length = max_query_length

    async def parse_search_query(self, query: Optional[str]) -> SearchResult:
        """
        Interpret a free-text search query.

        Args:
            query: Raw user input.

        Returns:
            SearchResult with filters and a location verdict, or
            ``success=False`` with an error kind. Input errors are reported
            before any collaborator is called.
        """
        raw = query or ""

        normalized = normalize_query(raw)
        if not normalized:
            return SearchResult(
                success=False,
                query=raw,
                confidence=0,
                error="Search query cannot be empty",
                error_kind=SearchErrorKind.EMPTY_INPUT,
            )

        if len(raw) > self.max_query_length:
            return SearchResult(
                success=False,
                query=raw,
                confidence=0,
                error=f"Search query is too long (max {self.max_query_length} characters)",
                error_kind=SearchErrorKind.QUERY_TOO_LONG,
            )

        inventory = self.inventory.list_serviced_cities()

        extraction = await self.extractor.extract(
            normalized, [city.name for city in inventory]
        )
        if not extraction.is_ok:
            return SearchResult(
                success=False,
                query=raw,
                confidence=0,
                error=extraction.failure.message,
                error_kind=extraction.failure.kind,
            )

        filters = extraction.filters
        validation = self.validator.validate(filters.city, inventory)

        if validation.outcome == LocationOutcome.NO_CITY:
            confidence = filters.raw_confidence
        else:
            confidence = min(filters.raw_confidence, validation.confidence)

        # Unmatched cities are dropped so the other filters stay usable.
        filters = filters.model_copy(update={"city": validation.matched_city})

        logger.info(
            "Parsed query %r: outcome=%s confidence=%d",
            raw[:100],
            validation.outcome.value,
            confidence,
        )

        return SearchResult(
            success=True,
            query=raw,
            confidence=confidence,
            filters=filters,
            location_validation=validation,
        )


def is_confident_parse(result: SearchResult, min_confidence: int = 50) -> bool:
    """True when the parse succeeded with at least ``min_confidence``."""
    return result.success and result.confidence >= min_confidence


def format_price(value: float) -> str:
    """Format a USD amount the way listings show it, e.g. ``$150k``."""
    if value >= 1000:
        return f"${value / 1000:.0f}k"
    return f"${value:.0f}"


def summarize_filters(filters: Optional[CandidateFilters]) -> FilterSummary:
    """Build a short human-readable summary of the applied filters."""
    if filters is None:
        return FilterSummary()

    price_range = None
    if filters.min_price is not None or filters.max_price is not None:
        parts = [
            format_price(p) for p in (filters.min_price, filters.max_price) if p is not None
        ]
        price_range = " - ".join(parts)

    return FilterSummary(
        city=filters.city,
        address=filters.address,
        category=filters.category,
        price_range=price_range,
        bedrooms=filters.bedrooms,
        features=list(filters.features),
    )


def build_suggestions(
    result: SearchResult,
    top_cities: Sequence[str],
    min_confidence: int = 30,
    warn_confidence: int = 50,
) -> List[str]:
    """
    Hints that help the user refine a search.

    Args:
        result: Pipeline result, successful or not. Confidence checks use
            the extractor confidence so a rejected city alone does not
            read as a vague query.
        top_cities: Busiest serviced cities, used in examples.
        min_confidence: Below this the query is considered too vague.
        warn_confidence: Below this the query is considered low confidence.

    Returns:
        Ordered, de-duplicated list of suggestions; empty for confident
        searches with a valid location.
    """
    suggestions: List[str] = []
    validation = result.location_validation
    filters = result.filters
    query_confidence = filters.raw_confidence if filters is not None else result.confidence

    if validation is not None and not validation.is_valid:
        if validation.outcome == LocationOutcome.NO_INVENTORY:
            suggestions.append("No cities are available right now, please try again later")
        else:
            if top_cities:
                suggestions.append(f"Specify a serviced city: {', '.join(top_cities)}")
            if validation.suggested_cities:
                suggestions.append(f"Did you mean: {', '.join(validation.suggested_cities)}?")

    if filters is not None and query_confidence < warn_confidence:
        suggestions.append("Your search has low confidence, try being more specific")
        suggestions.append("Add more details (price, location, property type)")

    if filters is not None and query_confidence < min_confidence:
        if not filters.city and validation is not None and validation.is_valid and top_cities:
            suggestions.append(f"Specify a city (e.g. {', '.join(top_cities[:2])})")
        if filters.category is None:
            suggestions.append("Indicate the property type (house, apartment, land)")
        if filters.min_price is None and filters.max_price is None:
            suggestions.append("Define a price range (e.g. under $150k)")

    return list(dict.fromkeys(suggestions))


def build_interpreter(inventory: Inventory, completion, settings: Settings) -> SearchInterpreter:
    """Wire a SearchInterpreter from settings and collaborators."""
    return SearchInterpreter(
        inventory=inventory,
        extractor=FilterExtractor(completion, settings),
        validator=LocationValidator(settings),
        max_query_length=settings.max_query_length,
    )
