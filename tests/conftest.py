import json
import os
from typing import Any, List, Optional

import pytest

os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")

from ai_search.config import Settings  # noqa: E402
from ai_search.models.search import InventoryCity  # noqa: E402
from ai_search.services.extractor import FilterExtractor  # noqa: E402
from ai_search.services.inventory import StaticInventory  # noqa: E402
from ai_search.services.location_validator import LocationValidator  # noqa: E402
from ai_search.services.search_parser import SearchInterpreter  # noqa: E402


class FakeCompletion:
    """Completion backend returning a canned reply or raising an error."""

    def __init__(self, response: Any = None, error: Optional[BaseException] = None) -> None:
        self.response = response
        self.error = error
        self.calls: List[dict] = []

    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        self.calls.append({"prompt": prompt, "system": system})
        if self.error is not None:
            raise self.error
        if isinstance(self.response, str):
            return self.response
        return json.dumps(self.response)


class CountingInventory(StaticInventory):
    """Static inventory that records how often it was read."""

    def __init__(self, cities) -> None:
        super().__init__(cities)
        self.reads = 0

    def list_serviced_cities(self) -> List[InventoryCity]:
        self.reads += 1
        return super().list_serviced_cities()


def make_cities(**counts: int) -> List[InventoryCity]:
    return [InventoryCity(name=name, property_count=count) for name, count in counts.items()]


@pytest.fixture
def settings() -> Settings:
    return Settings(anthropic_api_key="test-key", _env_file=None)


@pytest.fixture
def cities() -> List[InventoryCity]:
    return [
        InventoryCity(name="Cuenca", property_count=40),
        InventoryCity(name="Gualaceo", property_count=5),
        InventoryCity(name="Azogues", property_count=5),
        InventoryCity(name="Paute", property_count=3),
        InventoryCity(name="Girón", property_count=2),
    ]


@pytest.fixture
def validator(settings) -> LocationValidator:
    return LocationValidator(settings)


@pytest.fixture
def make_interpreter(settings):
    def _make(response: Any = None, error: Optional[BaseException] = None, cities=None):
        completion = FakeCompletion(response=response, error=error)
        inventory = CountingInventory(cities if cities is not None else make_cities(Cuenca=40, Gualaceo=5, Paute=3))
        interpreter = SearchInterpreter(
            inventory=inventory,
            extractor=FilterExtractor(completion, settings),
            validator=LocationValidator(settings),
            max_query_length=settings.max_query_length,
        )
        return interpreter, completion, inventory

    return _make
