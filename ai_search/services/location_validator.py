"""
Location validation against the serviced-city inventory.

Resolves the city the extractor found to a city we actually have
listings in. Matching runs in a fixed order:

1. exact match, ignoring case and accents
2. neighborhood alias, mapped to its parent city
3. fuzzy match on normalized Levenshtein similarity
4. otherwise unmatched, with the busiest cities offered as suggestions

Similarity between two normalized names ``a`` and ``b``:

- 1.0 when identical
- ``containment_similarity`` when one contains the other and the
  shorter one has at least ``containment_min_length`` characters
- at least ``single_edit_similarity`` when the names are one edit apart
  and the shorter one has at least ``single_edit_min_length`` characters
- ``1 - levenshtein(a, b) / max(len(a), len(b))`` otherwise

A fuzzy candidate is accepted only when its similarity is strictly
greater than ``fuzzy_threshold``. Its confidence is the similarity
scaled linearly from ``(threshold, 1]`` into the
``[fuzzy_confidence_floor, fuzzy_confidence_ceiling]`` band.

The validator holds no mutable state; the inventory snapshot is passed
on every call, so identical inputs always give identical verdicts.
"""

import logging
import unicodedata
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple

from ai_search.config import Settings
from ai_search.models.search import InventoryCity, LocationOutcome, LocationValidation

logger = logging.getLogger(__name__)

# Sub-localities of serviced cities. Keys are compared after normalize_location.
NEIGHBORHOOD_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "el ejido": "Cuenca",
        "ejido": "Cuenca",
        "ejido norte": "Cuenca",
        "zona centro": "Cuenca",
        "el centro": "Cuenca",
        "centro": "Cuenca",
        "centro historico": "Cuenca",
        "san blas": "Cuenca",
        "calle larga": "Cuenca",
        "belen": "Cuenca",
        "totoracocha": "Cuenca",
        "estadio": "Cuenca",
        "machangara": "Cuenca",
        "monay": "Cuenca",
        "hermano miguel": "Cuenca",
        "yanuncay": "Cuenca",
        "misicata": "Cuenca",
        "challuabamba": "Cuenca",
        "ricaurte": "Cuenca",
        "banos": "Cuenca",
        "puertas del sol": "Cuenca",
        "ordonez lasso": "Cuenca",
        "zona norte": "Cuenca",
        "zona sur": "Cuenca",
        "zona este": "Cuenca",
        "zona oeste": "Cuenca",
    }
)


def normalize_location(location: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFD", location.lower())
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    return " ".join(stripped.split())


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance with unit insert, delete and substitute costs."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


class LocationValidator:
    """Pure validator for requested locations."""

    def __init__(
        self,
        settings: Settings,
        aliases: Mapping[str, str] = NEIGHBORHOOD_ALIASES,
    ) -> None:
        """
        Args:
            settings: Source of the matching thresholds and confidence bands.
            aliases: Neighborhood -> parent city table. Keys are normalized
                on the way in, so any spelling may be used.
        """
        self.aliases: Mapping[str, str] = MappingProxyType(
            {normalize_location(k): v for k, v in aliases.items()}
        )
        self.fuzzy_threshold = settings.fuzzy_threshold
        self.containment_similarity = settings.containment_similarity
        self.containment_min_length = settings.containment_min_length
        self.single_edit_similarity = settings.single_edit_similarity
        self.single_edit_min_length = settings.single_edit_min_length
        self.confidence_floor = settings.fuzzy_confidence_floor
        self.confidence_ceiling = settings.fuzzy_confidence_ceiling
        self.alias_confidence = settings.alias_confidence
        self.unmatched_confidence = settings.unmatched_confidence
        self.max_suggestions = settings.max_suggestions

    def similarity(self, a: str, b: str) -> float:
        """Similarity in [0, 1] between two already normalized names."""
        if a == b:
            return 1.0
        if not a or not b:
            return 0.0
        shorter = min(len(a), len(b))
        if shorter >= self.containment_min_length and (a in b or b in a):
            return self.containment_similarity
        distance = levenshtein(a, b)
        score = 1 - distance / max(len(a), len(b))
        # One typo in a short name still counts as a near miss.
        if distance == 1 and shorter >= self.single_edit_min_length:
            return max(score, self.single_edit_similarity)
        return score

    def fuzzy_confidence(self, score: float) -> int:
        """Map an accepted similarity score into the fuzzy confidence band."""
        span = 1 - self.fuzzy_threshold
        fraction = (score - self.fuzzy_threshold) / span
        band = self.confidence_ceiling - self.confidence_floor
        confidence = round(self.confidence_floor + fraction * band)
        return int(min(max(confidence, self.confidence_floor), self.confidence_ceiling))

    def top_cities(self, inventory: Sequence[InventoryCity]) -> List[str]:
        """Busiest cities first, ties broken alphabetically."""
        ranked = sorted(
            inventory,
            key=lambda c: (-c.property_count, normalize_location(c.name), c.name),
        )
        return [c.name for c in ranked[: self.max_suggestions]]

    def best_fuzzy_match(
        self, requested: str, inventory: Sequence[InventoryCity]
    ) -> Optional[Tuple[InventoryCity, float]]:
        """Highest-similarity city; ties go to more listings, then alphabetical."""
        if not inventory:
            return None
        scored = [
            (city, self.similarity(requested, normalize_location(city.name)))
            for city in inventory
        ]
        scored.sort(
            key=lambda pair: (
                -pair[1],
                -pair[0].property_count,
                normalize_location(pair[0].name),
                pair[0].name,
            )
        )
        return scored[0]

    def validate(
        self,
        requested_location: Optional[str],
        inventory: Sequence[InventoryCity],
    ) -> LocationValidation:
        """
        Validate a requested location against an inventory snapshot.

        Args:
            requested_location: City as extracted from the query, if any.
            inventory: Serviced cities with their listing counts.

        Returns:
            An immutable ``LocationValidation`` verdict.
        """
        requested = (requested_location or "").strip()

        if not inventory:
            logger.warning("Location validation ran against an empty inventory")
            return LocationValidation(
                requested_location=requested,
                is_valid=False,
                confidence=0,
                message="No cities are currently available. Please try again later.",
                outcome=LocationOutcome.NO_INVENTORY,
            )

        normalized = normalize_location(requested)
        if not normalized:
            return LocationValidation(
                requested_location=requested,
                is_valid=True,
                confidence=100,
                outcome=LocationOutcome.NO_CITY,
            )

        by_name = {normalize_location(city.name): city for city in inventory}

        exact = by_name.get(normalized)
        if exact is not None:
            return LocationValidation(
                requested_location=requested,
                is_valid=True,
                matched_city=exact.name,
                confidence=100,
                outcome=LocationOutcome.EXACT,
            )

        parent = self.aliases.get(normalized)
        if parent is not None:
            parent_city = by_name.get(normalize_location(parent))
            if parent_city is not None:
                return LocationValidation(
                    requested_location=requested,
                    is_valid=True,
                    matched_city=parent_city.name,
                    confidence=self.alias_confidence,
                    message=(
                        f'"{requested}" was interpreted as a neighborhood of '
                        f"{parent_city.name}"
                    ),
                    outcome=LocationOutcome.ALIAS,
                )
            logger.info("Alias %r maps to %s which has no listings", requested, parent)

        best = self.best_fuzzy_match(normalized, inventory)
        if best is not None and best[1] > self.fuzzy_threshold:
            city, score = best
            confidence = self.fuzzy_confidence(score)
            logger.info(
                "Fuzzy matched %r to %s (similarity %.3f, confidence %d)",
                requested,
                city.name,
                score,
                confidence,
            )
            return LocationValidation(
                requested_location=requested,
                is_valid=True,
                matched_city=city.name,
                confidence=confidence,
                message=f'"{requested}" was interpreted as "{city.name}"',
                outcome=LocationOutcome.FUZZY,
            )

        suggestions = self.top_cities(inventory)
        logger.info("Location %r not serviced, suggesting %s", requested, suggestions)
        return LocationValidation(
            requested_location=requested,
            is_valid=False,
            confidence=self.unmatched_confidence,
            suggested_cities=suggestions,
            message=(
                f'We don\'t have properties in "{requested}" yet. '
                f"Try searching in: {', '.join(suggestions)}"
            ),
            outcome=LocationOutcome.UNMATCHED,
        )
