"""
API routes for natural language property search.
"""

import logging
from typing import Annotated, Any, Dict, List, NamedTuple, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from ai_search.config import Settings, get_settings
from ai_search.models.search import (
    InventoryCity,
    LocationRequest,
    LocationValidation,
    SearchErrorKind,
    SearchRequest,
    SearchResponse,
)
from ai_search.services.claude_service import get_claude_service
from ai_search.services.inventory import autocomplete_cities, get_inventory
from ai_search.services.location_validator import LocationValidator
from ai_search.services.search_parser import (
    SearchInterpreter,
    build_interpreter,
    build_suggestions,
    summarize_filters,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["search"])

ERROR_STATUS = {
    SearchErrorKind.EMPTY_INPUT: 422,
    SearchErrorKind.QUERY_TOO_LONG: 422,
    SearchErrorKind.TOO_VAGUE: 422,
    SearchErrorKind.EXTRACTION_FAILURE: status.HTTP_502_BAD_GATEWAY,
}


class Services(NamedTuple):
    """Container for injected services."""

    interpreter: SearchInterpreter
    inventory: Any
    validator: LocationValidator
    settings: Settings


def get_services(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Services:
    """Dependency that provides all required services."""
    inventory = get_inventory(settings)
    return Services(
        interpreter=build_interpreter(inventory, get_claude_service(settings), settings),
        inventory=inventory,
        validator=LocationValidator(settings),
        settings=settings,
    )


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Interpret a natural language search",
    description="Extract structured filters from a free-text query and validate its location.",
)
async def search(
    request: SearchRequest,
    services: Annotated[Services, Depends(get_services)],
):
    """
    Interpret a natural language property search.

    This endpoint:
    1. Normalizes the query and rejects blank or oversized input
    2. Uses Claude to extract structured filters
    3. Validates the requested city against the serviced inventory
    4. Rejects queries too vague to filter on and adds suggestions

    Args:
        request: Search request containing the natural language query.
        services: Injected pipeline and collaborators.

    Returns:
        SearchResponse, with a non-2xx status when ``success`` is false.
    """
    logger.info("Received search request: %s", request.query[:100])
    settings = services.settings

    await services.inventory.refresh()
    result = await services.interpreter.parse_search_query(request.query)

    # Vagueness is judged on the query itself, not on the location verdict.
    query_confidence = result.filters.raw_confidence if result.filters else result.confidence

    if result.success and query_confidence < settings.min_search_confidence:
        logger.warning(
            "Query confidence %d%% below minimum %d%%",
            query_confidence,
            settings.min_search_confidence,
        )
        result = result.model_copy(
            update={
                "success": False,
                "error": (
                    f"Your search is too vague (confidence: {query_confidence}%). "
                    'Please be more specific, e.g. "3 bedroom apartment under $200k in Cuenca"'
                ),
                "error_kind": SearchErrorKind.TOO_VAGUE,
            }
        )
    elif result.success and query_confidence < settings.warn_search_confidence:
        logger.warning("Low confidence parse (%d%%), results may be incomplete", query_confidence)

    validator = services.validator
    top_cities = validator.top_cities(services.inventory.list_serviced_cities())
    response = SearchResponse(
        **result.model_dump(),
        filter_summary=summarize_filters(result.filters) if result.filters else None,
        suggestions=build_suggestions(
            result,
            top_cities,
            min_confidence=settings.min_search_confidence,
            warn_confidence=settings.warn_search_confidence,
        ),
    )

    if response.success:
        return response

    logger.error("Search failed (%s): %s", response.error_kind, response.error)
    return JSONResponse(
        status_code=ERROR_STATUS.get(response.error_kind, status.HTTP_400_BAD_REQUEST),
        content=response.model_dump(mode="json", by_alias=True),
    )


@router.post(
    "/validate-location",
    response_model=LocationValidation,
    summary="Validate a location only",
    description="Check a location against the serviced cities without calling the AI.",
)
async def validate_location(
    request: LocationRequest,
    services: Annotated[Services, Depends(get_services)],
) -> LocationValidation:
    """
    Validate a location string against the current inventory.

    Useful for debugging the matcher or for autocorrecting a city field
    before running a full search.
    """
    await services.inventory.refresh()
    return services.validator.validate(
        request.location,
        services.inventory.list_serviced_cities(),
    )


@router.get(
    "/cities",
    response_model=Dict[str, Any],
    summary="Autocomplete serviced cities",
    description="Return serviced cities whose name matches the query.",
)
async def search_cities(
    services: Annotated[Services, Depends(get_services)],
    q: Annotated[Optional[str], Query(description="Search term, at least 2 characters")] = None,
) -> Dict[str, Any]:
    """
    Autocomplete serviced cities for search boxes.

    Args:
        services: Injected services.
        q: Search term.

    Returns:
        Dictionary with the matching cities and their listing counts.
    """
    term = (q or "").strip()
    if not term:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required parameter: q",
        )
    if len(term) < 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query must be at least 2 characters",
        )

    await services.inventory.refresh()
    cities: List[InventoryCity] = autocomplete_cities(services.inventory, term)
    return {
        "success": True,
        "data": [city.model_dump(by_alias=True) for city in cities],
    }
