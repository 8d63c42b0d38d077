"""
LLM-backed extraction of structured search filters.

The completion backend is asked for a fixed JSON shape which is then
decoded against ``ExtractionPayload``. Anything that does not decode
cleanly is reported as an ``ExtractionFailure``; no partial filters are
ever salvaged from a broken reply.
"""

import asyncio
import json
import logging
import math
from typing import Any, List, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ai_search.config import Settings
from ai_search.models.search import (
    CandidateFilters,
    ExtractionResult,
    PropertyCategory,
    TransactionType,
)
from ai_search.services.claude_service import CompletionServiceError

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = """You are a real estate search assistant for the Ecuador market (Cuenca and nearby towns). You turn short search queries, usually in Spanish, into structured filters.

Return ONLY a JSON object with exactly these keys:

{
    "city": <serviced city name or null>,
    "address": <neighborhood, street or landmark mentioned, or null>,
    "category": <one of "casa", "apartamento", "suite", "terreno", "local", "oficina", "bodega", "finca", or null>,
    "transactionType": <"VENTA", "ARRIENDO" or null>,
    "bedrooms": <integer or null>,
    "bathrooms": <integer or null>,
    "minPrice": <number in USD or null>,
    "maxPrice": <number in USD or null>,
    "features": [<physical features: "garaje", "jardín", "piscina", "balcón", ...>],
    "amenities": [<furnishing state: "amueblado", "sin amueblar", ...>],
    "confidence": <integer 0-100, how specific and unambiguous the query is>,
    "reasoning": <one short sentence explaining the extraction>
}

Guidelines:
- Copy the city as the user wrote it; do not invent a city that is not mentioned
- A neighborhood such as "El Ejido" or "San Blas" goes in "address" and also in "city" if no city is named
- Convert prices to plain numbers ("$150k" = 150000, "medio millón" = 500000)
- "bajo", "menos de", "hasta" set maxPrice; "desde", "más de" set minPrice
- "arriendo", "alquiler", "renta" mean ARRIENDO; "venta", "compra" mean VENTA
- Style words ("moderno", "lujoso", "bonito") are not filters
- Never guess bedrooms, bathrooms or prices that are not in the query
- Confidence 90-100 for specific queries, 50-89 for partially specified ones, below 30 for vague ones
- Return ONLY the JSON object, no markdown and no additional text"""

CATEGORY_ALIASES = {
    "casa": PropertyCategory.HOUSE,
    "house": PropertyCategory.HOUSE,
    "apartamento": PropertyCategory.APARTMENT,
    "apartment": PropertyCategory.APARTMENT,
    "apto": PropertyCategory.APARTMENT,
    "departamento": PropertyCategory.APARTMENT,
    "suite": PropertyCategory.SUITE,
    "villa": PropertyCategory.VILLA,
    "penthouse": PropertyCategory.PENTHOUSE,
    "duplex": PropertyCategory.DUPLEX,
    "loft": PropertyCategory.LOFT,
    "terreno": PropertyCategory.LAND,
    "lote": PropertyCategory.LAND,
    "land": PropertyCategory.LAND,
    "local": PropertyCategory.COMMERCIAL,
    "local comercial": PropertyCategory.COMMERCIAL,
    "commercial": PropertyCategory.COMMERCIAL,
    "oficina": PropertyCategory.OFFICE,
    "office": PropertyCategory.OFFICE,
    "bodega": PropertyCategory.WAREHOUSE,
    "warehouse": PropertyCategory.WAREHOUSE,
    "finca": PropertyCategory.FARM,
    "hacienda": PropertyCategory.FARM,
    "farm": PropertyCategory.FARM,
}

TRANSACTION_ALIASES = {
    "venta": TransactionType.SALE,
    "vendo": TransactionType.SALE,
    "compra": TransactionType.SALE,
    "sale": TransactionType.SALE,
    "arriendo": TransactionType.RENT,
    "arrendamiento": TransactionType.RENT,
    "alquiler": TransactionType.RENT,
    "renta": TransactionType.RENT,
    "rent": TransactionType.RENT,
}


class CompletionClient(Protocol):
    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        ...


class ExtractionPayload(BaseModel):
    """Schema the completion reply must satisfy."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    city: Optional[str] = None
    address: Optional[str] = None
    category: Optional[str] = None
    transaction_type: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    features: List[str] = []
    amenities: List[str] = []
    confidence: float = 0
    reasoning: Optional[str] = None

    @field_validator("features", "amenities", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("confidence", mode="before")
    @classmethod
    def _lenient_confidence(cls, value: Any) -> float:
        # Missing or non-numeric confidence counts as no confidence at all.
        if isinstance(value, bool):
            return 0
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0
        if number != number:  # NaN
            return 0
        return min(max(number, 0.0), 100.0)

    @field_validator("city", "address", "category", "transaction_type", mode="after")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block, if any."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()
    return cleaned


def build_user_prompt(query: str, city_names: Sequence[str]) -> str:
    """Compose the user message with the query and serviced cities."""
    cities = ", ".join(city_names) if city_names else "(none)"
    return (
        f"Serviced cities: {cities}\n\n"
        f"Extract property search filters from this query:\n\n{query}"
    )


class FilterExtractor:
    """Turns a normalized query into ``CandidateFilters`` via the completion backend."""

    def __init__(self, completion: CompletionClient, settings: Settings) -> None:
        self.completion = completion
        self.max_rooms = settings.max_rooms
        self.max_plausible_price = settings.max_plausible_price

    async def extract(self, query: str, city_names: Sequence[str]) -> ExtractionResult:
        """
        Extract structured filters from a normalized query.

        Args:
            query: Normalized query text.
            city_names: Names of serviced cities, used to ground the model.

        Returns:
            ``ExtractionResult`` carrying either filters or a failure.
            Cancellation of the awaiting task is not intercepted.
        """
        logger.info("Extracting filters from query: %s", query[:100])

        try:
            response_text = await self.completion.complete(
                build_user_prompt(query, city_names),
                system=EXTRACTION_SYSTEM_PROMPT,
            )
        except CompletionServiceError as e:
            logger.error("Completion service failed (%s): %s", e.kind, e)
            return ExtractionResult.err(str(e))
        except (TimeoutError, asyncio.TimeoutError):
            logger.error("Completion service timed out")
            return ExtractionResult.err("Completion service timed out")
        except Exception as e:
            logger.exception("Unexpected error from completion service")
            return ExtractionResult.err(f"Completion service error: {type(e).__name__}: {e}")

        return self.decode(response_text)

    def decode(self, response_text: Optional[str]) -> ExtractionResult:
        """Strictly decode a completion reply into filters."""
        if not response_text or not response_text.strip():
            return ExtractionResult.err("Empty response from completion service")

        try:
            data = json.loads(strip_code_fences(response_text))
        except json.JSONDecodeError as e:
            logger.error("Failed to parse completion response as JSON: %s", e)
            return ExtractionResult.err(f"Failed to parse AI response: {e}")

        if not isinstance(data, dict):
            logger.error("Completion response is not a JSON object: %s", type(data).__name__)
            return ExtractionResult.err("AI response is not a JSON object")

        try:
            payload = ExtractionPayload.model_validate(data)
        except ValidationError as e:
            logger.error("Completion response failed schema validation: %s", e)
            return ExtractionResult.err(
                f"AI response does not match the expected shape ({e.error_count()} errors)"
            )

        if payload.reasoning:
            logger.debug("Extraction reasoning: %s", payload.reasoning)

        try:
            filters = self._to_filters(payload)
        except ValidationError as e:
            logger.error("Extracted filters failed validation: %s", e)
            return ExtractionResult.err(
                f"AI response contains invalid filter values ({e.error_count()} errors)"
            )

        logger.info("Successfully extracted filters: %s", filters.model_dump(exclude_defaults=True))
        return ExtractionResult.ok(filters)

    def _to_filters(self, payload: ExtractionPayload) -> CandidateFilters:
        min_price = self._price(payload.min_price, "minPrice")
        max_price = self._price(payload.max_price, "maxPrice")
        if min_price is not None and max_price is not None and min_price > max_price:
            logger.warning("Swapping inverted price range %s > %s", min_price, max_price)
            min_price, max_price = max_price, min_price

        return CandidateFilters(
            city=payload.city,
            address=payload.address,
            category=_lookup(CATEGORY_ALIASES, payload.category, "category"),
            transaction_type=_lookup(TRANSACTION_ALIASES, payload.transaction_type, "transactionType"),
            bedrooms=self._rooms(payload.bedrooms, "bedrooms"),
            bathrooms=self._rooms(payload.bathrooms, "bathrooms"),
            min_price=min_price,
            max_price=max_price,
            features=[f.strip() for f in payload.features if f and f.strip()],
            amenities=[a.strip() for a in payload.amenities if a and a.strip()],
            raw_confidence=int(round(payload.confidence)),
        )

    def _rooms(self, value: Optional[int], field: str) -> Optional[int]:
        if value is None:
            return None
        if value < 0 or value > self.max_rooms:
            logger.warning("%s=%s outside [0, %s], dropping", field, value, self.max_rooms)
            return None
        return value

    def _price(self, value: Optional[float], field: str) -> Optional[float]:
        if value is None:
            return None
        if not math.isfinite(value):
            logger.warning("%s=%s is not a finite number, dropping", field, value)
            return None
        if value < 0 or value > self.max_plausible_price:
            logger.warning(
                "%s=%s outside [0, %s], dropping", field, value, self.max_plausible_price
            )
            return None
        return value


def _lookup(table: dict, value: Optional[str], field: str):
    if value is None:
        return None
    mapped = table.get(value.lower().strip())
    if mapped is None:
        logger.warning("Unknown %s %r, ignoring", field, value)
    return mapped
