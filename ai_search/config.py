"""
Application configuration using pydantic-settings.

Loads environment variables from .env file and provides typed access
to configuration values throughout the application, including the
tunable constants of the location matcher.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ai_search.models.search import InventoryCity


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # API Keys
    anthropic_api_key: str

    # Claude configuration
    claude_model: str = "claude-sonnet-4-20250514"
    claude_max_tokens: int = 500
    claude_temperature: float = 0.3
    claude_timeout_seconds: float = 20.0
    claude_max_retries: int = 2

    # Inventory source. Without a URL the static seed is served as-is.
    inventory_api_url: Optional[str] = None
    inventory_cache_ttl_seconds: float = 300.0
    inventory_retry_backoff_seconds: float = 30.0
    inventory_seed: List[InventoryCity] = Field(default_factory=list)

    # Query limits
    max_query_length: int = 500

    # Extraction sanity bounds
    max_rooms: int = 10
    max_plausible_price: float = 1_000_000

    # Location matching
    fuzzy_threshold: float = Field(default=0.7, gt=0, lt=1)
    containment_similarity: float = 0.8
    containment_min_length: int = 4
    single_edit_similarity: float = 0.75
    single_edit_min_length: int = 3
    fuzzy_confidence_floor: int = 60
    fuzzy_confidence_ceiling: int = 95
    alias_confidence: int = 90
    unmatched_confidence: int = 10
    max_suggestions: int = 3

    # Confidence gates applied by the HTTP layer
    min_search_confidence: int = 30
    warn_search_confidence: int = 50

    # Application settings
    debug: bool = False
    app_name: str = "AI Property Search API"
    app_version: str = "0.1.0"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once and reuse
    the same instance throughout the application lifecycle.
    """
    return Settings()
