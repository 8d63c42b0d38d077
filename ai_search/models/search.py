"""
Pydantic models for the natural-language search interpreter.

These models define the data structures that flow through the
normalize -> extract -> validate pipeline and the HTTP API. Python
attributes are snake_case; JSON bodies use camelCase aliases.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PropertyCategory(str, Enum):
    HOUSE = "HOUSE"
    APARTMENT = "APARTMENT"
    SUITE = "SUITE"
    VILLA = "VILLA"
    PENTHOUSE = "PENTHOUSE"
    DUPLEX = "DUPLEX"
    LOFT = "LOFT"
    LAND = "LAND"
    COMMERCIAL = "COMMERCIAL"
    OFFICE = "OFFICE"
    WAREHOUSE = "WAREHOUSE"
    FARM = "FARM"


class TransactionType(str, Enum):
    SALE = "SALE"
    RENT = "RENT"


class LocationOutcome(str, Enum):
    """Which branch of the location state machine produced a verdict."""

    NO_CITY = "NO_CITY"
    EXACT = "EXACT"
    ALIAS = "ALIAS"
    FUZZY = "FUZZY"
    UNMATCHED = "UNMATCHED"
    NO_INVENTORY = "NO_INVENTORY"


class SearchErrorKind(str, Enum):
    EMPTY_INPUT = "EmptyInput"
    QUERY_TOO_LONG = "QueryTooLong"
    EXTRACTION_FAILURE = "ExtractionFailure"
    TOO_VAGUE = "TooVague"


class InventoryCity(CamelModel):
    """A city with at least one listed property."""

    name: str = Field(min_length=1, description="City name as stored")
    property_count: int = Field(ge=0, description="Number of available listings")


class CandidateFilters(CamelModel):
    """
    Structured search filters extracted from a natural language query.

    Produced by the extractor; the validator only ever touches ``city``.
    """

    city: Optional[str] = Field(default=None, description="Requested or matched city")
    address: Optional[str] = Field(
        default=None,
        description="Street, neighborhood or landmark mentioned in the query",
    )
    category: Optional[PropertyCategory] = None
    transaction_type: Optional[TransactionType] = None
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)
    min_price: Optional[float] = Field(default=None, ge=0, description="Minimum price in USD")
    max_price: Optional[float] = Field(default=None, ge=0, description="Maximum price in USD")
    features: List[str] = Field(
        default_factory=list,
        description="Physical features (e.g. 'garaje', 'jardín')",
    )
    amenities: List[str] = Field(
        default_factory=list,
        description="Furnishing state (e.g. 'amueblado')",
    )
    raw_confidence: int = Field(default=0, ge=0, le=100)


class ExtractionFailure(CamelModel):
    """Why the extractor could not produce filters."""

    kind: SearchErrorKind = SearchErrorKind.EXTRACTION_FAILURE
    message: str


class ExtractionResult(CamelModel):
    """Tagged extractor outcome: exactly one of ``filters`` or ``failure``."""

    filters: Optional[CandidateFilters] = None
    failure: Optional[ExtractionFailure] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ExtractionResult":
        if (self.filters is None) == (self.failure is None):
            raise ValueError("ExtractionResult needs exactly one of filters or failure")
        return self

    @classmethod
    def ok(cls, filters: CandidateFilters) -> "ExtractionResult":
        return cls(filters=filters)

    @classmethod
    def err(cls, message: str) -> "ExtractionResult":
        return cls(failure=ExtractionFailure(message=message))

    @property
    def is_ok(self) -> bool:
        return self.filters is not None


class LocationValidation(CamelModel):
    """Verdict on the location requested in a query. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    requested_location: str = ""
    is_valid: bool
    matched_city: Optional[str] = None
    confidence: int = Field(ge=0, le=100)
    suggested_cities: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    outcome: LocationOutcome


class SearchResult(CamelModel):
    """Final output of the search interpreter pipeline."""

    success: bool
    query: str = ""
    confidence: int = Field(default=0, ge=0, le=100)
    filters: Optional[CandidateFilters] = None
    location_validation: Optional[LocationValidation] = None
    error: Optional[str] = None
    error_kind: Optional[SearchErrorKind] = None


class FilterSummary(CamelModel):
    """Human-readable digest of the filters actually applied."""

    city: Optional[str] = None
    address: Optional[str] = None
    category: Optional[PropertyCategory] = None
    price_range: Optional[str] = None
    bedrooms: Optional[int] = None
    features: List[str] = Field(default_factory=list)


class SearchRequest(CamelModel):
    """API request body for natural language search."""

    query: str = Field(
        ...,
        description="Natural language description of the desired property",
        examples=[
            "Apartamento en Cuenca bajo $150k",
            "Casa 3 habitaciones con jardín en Gualaceo",
        ],
    )


class SearchResponse(SearchResult):
    """API response: the pipeline result plus presentation helpers."""

    filter_summary: Optional[FilterSummary] = None
    suggestions: List[str] = Field(default_factory=list)


class LocationRequest(CamelModel):
    """API request body for standalone location validation."""

    location: Optional[str] = Field(default=None, examples=["Cueca", "El Ejido"])
