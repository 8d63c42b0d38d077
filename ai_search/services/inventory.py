"""
Inventory of serviced cities.

The search pipeline only needs a synchronous snapshot of
``InventoryCity`` records. ``StaticInventory`` serves a fixed list;
``RemoteInventory`` keeps a cached snapshot fetched from the listings
service and refreshes it when it goes stale.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import httpx
from pydantic import ValidationError

from ai_search.config import Settings
from ai_search.models.search import InventoryCity
from ai_search.services.location_validator import normalize_location

logger = logging.getLogger(__name__)


class Inventory(Protocol):
    def list_serviced_cities(self) -> List[InventoryCity]:
        ...


class StaticInventory:
    """Fixed, in-memory inventory snapshot."""

    def __init__(self, cities: Sequence[InventoryCity]) -> None:
        self._cities = tuple(cities)

    def list_serviced_cities(self) -> List[InventoryCity]:
        return list(self._cities)

    async def refresh(self) -> None:
        return None

    async def close(self) -> None:
        return None


class RemoteInventory:
    """Inventory fetched over HTTP and cached for a fixed time."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the remote inventory.

        Args:
            settings: Application settings containing the inventory URL and TTL.
            client: Optional HTTP client, mainly for tests.
            clock: Monotonic time source used for cache expiry.
        """
        if not settings.inventory_api_url:
            raise ValueError("inventory_api_url is required for RemoteInventory")
        self.url = settings.inventory_api_url
        self.ttl = settings.inventory_cache_ttl_seconds
        self.retry_backoff = settings.inventory_retry_backoff_seconds
        self.client = client or httpx.AsyncClient(
            timeout=10.0,
            headers={"Accept": "application/json"},
        )
        self._clock = clock
        self._cities: tuple = tuple(settings.inventory_seed)
        self._fetched_at: Optional[float] = None
        self._failed_at: Optional[float] = None
        self._lock = asyncio.Lock()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    @property
    def is_stale(self) -> bool:
        if self._fetched_at is None:
            return True
        return self._clock() - self._fetched_at >= self.ttl

    def _due(self) -> bool:
        if not self.is_stale:
            return False
        if self._failed_at is None:
            return True
        return self._clock() - self._failed_at >= self.retry_backoff

    def list_serviced_cities(self) -> List[InventoryCity]:
        return list(self._cities)

    async def refresh(self, force: bool = False) -> None:
        """
        Refetch the city list if the cached snapshot has expired.

        A failed fetch keeps the previous snapshot and is not retried until
        the backoff has passed. Concurrent callers share a single fetch.
        """
        if not force and not self._due():
            return

        async with self._lock:
            # Another caller may have refreshed while we waited.
            if not force and not self._due():
                return

            cities = await self._fetch()
            if cities is None:
                self._failed_at = self._clock()
                return

            # Rebinding keeps concurrent readers on a consistent snapshot.
            self._cities = tuple(cities)
            self._fetched_at = self._clock()
            self._failed_at = None
            logger.info("Loaded %d serviced cities", len(cities))

    async def _fetch(self) -> Optional[List[InventoryCity]]:
        logger.info("Refreshing city inventory from %s", self.url)
        try:
            response = await self.client.get(self.url)
            response.raise_for_status()
            return self._parse_cities(response.json())
        except httpx.HTTPStatusError as e:
            logger.error("Inventory API error: %s", e.response.status_code)
        except httpx.RequestError as e:
            logger.error("Failed to connect to inventory API: %s", e)
        except ValueError as e:
            logger.error("Inventory API returned invalid JSON: %s", e)
        return None

    def _parse_cities(self, data: Any) -> List[InventoryCity]:
        """
        Parse the listings service response into InventoryCity records.

        Accepts a bare list or an object with a ``data``/``results`` list.
        Entries that fail validation are skipped; zero-count cities too.
        """
        if isinstance(data, dict):
            data = data.get("data", data.get("results", []))
        if not isinstance(data, list):
            raise ValueError(f"Unexpected inventory payload: {type(data).__name__}")

        cities: List[InventoryCity] = []
        for item in data:
            try:
                city = InventoryCity.model_validate(item)
            except ValidationError as e:
                logger.warning("Failed to parse inventory entry: %s - %s", e, item)
                continue
            if city.property_count > 0:
                cities.append(city)
        return cities


def autocomplete_cities(
    inventory: Inventory,
    query: str,
    limit: int = 10,
) -> List[InventoryCity]:
    """
    Cities whose name contains the query, ignoring case and accents.

    Prefix matches rank first, then by property count and name.
    """
    needle = normalize_location(query)
    if not needle:
        return []

    matches: List[Dict[str, Any]] = []
    for city in inventory.list_serviced_cities():
        name = normalize_location(city.name)
        if needle in name:
            matches.append({"city": city, "prefix": name.startswith(needle), "name": name})

    matches.sort(key=lambda m: (not m["prefix"], -m["city"].property_count, m["name"]))
    return [m["city"] for m in matches[:limit]]


# Dependency injection helper
_inventory = None


def get_inventory(settings: Settings):
    """
    Get or create the inventory singleton.

    Uses the remote listings service when configured, otherwise the
    static seed from settings.
    """
    global _inventory
    if _inventory is None:
        if settings.inventory_api_url:
            _inventory = RemoteInventory(settings)
        else:
            _inventory = StaticInventory(settings.inventory_seed)
    return _inventory
