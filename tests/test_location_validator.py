import pytest

from ai_search.models.search import InventoryCity, LocationOutcome
from ai_search.services.location_validator import (
    NEIGHBORHOOD_ALIASES,
    LocationValidator,
    levenshtein,
    normalize_location,
)
from tests.conftest import make_cities


class TestHelpers:
    def test_normalize_location_strips_accents_and_case(self):
        assert normalize_location("  Belén ") == "belen"
        assert normalize_location("CENTRO   Histórico") == "centro historico"
        assert normalize_location("Machángara") == "machangara"

    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("kitten", "sitting", 3),
            ("", "abc", 3),
            ("abc", "", 3),
            ("cuenca", "cuenca", 0),
            ("cueca", "cuenca", 1),
            ("flaw", "lawn", 2),
        ],
    )
    def test_levenshtein(self, a, b, expected):
        assert levenshtein(a, b) == expected
        assert levenshtein(b, a) == expected

    def test_similarity_containment_needs_minimum_length(self, validator):
        assert validator.similarity("cuenca norte", "cuenca") == pytest.approx(0.8)
        # "pa" is too short to count as contained in "paute"
        assert validator.similarity("pa", "paute") < 0.7

    def test_fuzzy_confidence_is_monotonic_within_band(self, validator):
        scores = [0.701, 0.75, 0.8, 0.85, 0.9, 0.95, 1.0]
        confidences = [validator.fuzzy_confidence(s) for s in scores]
        assert confidences == sorted(confidences)
        assert all(60 <= c <= 95 for c in confidences)
        assert confidences[-1] == 95


class TestExactMatch:
    @pytest.mark.parametrize("variant", [str.lower, str.upper, str.title, lambda s: f"  {s} "])
    def test_every_city_matches_in_any_case(self, validator, cities, variant):
        for city in cities:
            result = validator.validate(variant(city.name), cities)
            assert result.is_valid
            assert result.matched_city == city.name
            assert result.confidence == 100
            assert result.outcome == LocationOutcome.EXACT

    def test_accents_are_ignored_both_ways(self, validator, cities):
        result = validator.validate("Giron", cities)
        assert result.matched_city == "Girón"
        assert result.confidence == 100

        accented = [InventoryCity(name="Cuenca", property_count=1)]
        result = validator.validate("Cuénca", accented)
        assert result.matched_city == "Cuenca"
        assert result.outcome == LocationOutcome.EXACT


class TestAliasMatch:
    def test_every_alias_resolves_to_parent(self, validator, cities):
        for neighborhood, parent in NEIGHBORHOOD_ALIASES.items():
            result = validator.validate(neighborhood, cities)
            assert result.is_valid, neighborhood
            assert result.matched_city == parent
            assert result.outcome == LocationOutcome.ALIAS
            assert result.confidence == 90

    def test_alias_with_accents_and_case(self, validator, cities):
        result = validator.validate("Centro Histórico", cities)
        assert result.matched_city == "Cuenca"
        assert "Cuenca" in result.message
        assert "Centro Histórico" in result.message

    def test_alias_ignored_when_parent_not_serviced(self, validator):
        inventory = make_cities(Gualaceo=5, Paute=3)
        result = validator.validate("El Ejido", inventory)
        assert result.outcome != LocationOutcome.ALIAS
        assert not result.is_valid

    def test_custom_alias_table(self, settings, cities):
        validator = LocationValidator(settings, aliases={"Chordeleg Centro": "Gualaceo"})
        result = validator.validate("chordeleg centro", cities)
        assert result.matched_city == "Gualaceo"
        assert result.outcome == LocationOutcome.ALIAS
        assert validator.validate("El Ejido", cities).outcome != LocationOutcome.ALIAS


class TestFuzzyMatch:
    @pytest.mark.parametrize(
        "typo,expected",
        [
            ("Cueca", "Cuenca"),
            ("Cuenka", "Cuenca"),
            ("Cuencaa", "Cuenca"),
            ("Gualaseo", "Gualaceo"),
            ("Gualceo", "Gualaceo"),
            ("Azoges", "Azogues"),
            ("Pautte", "Paute"),
            ("Pauta", "Paute"),
            ("Girom", "Girón"),
        ],
    )
    def test_one_character_typo_resolves(self, validator, cities, typo, expected):
        result = validator.validate(typo, cities)
        assert result.is_valid
        assert result.matched_city == expected
        assert result.outcome == LocationOutcome.FUZZY
        assert 60 <= result.confidence <= 95

    @pytest.mark.parametrize("typo", ["Oma", "Ono", "Una", "ONAA"])
    def test_one_character_typo_of_short_city_resolves(self, validator, typo):
        inventory = [
            InventoryCity(name="Cuenca", property_count=40),
            InventoryCity(name="Oña", property_count=2),
            InventoryCity(name="Sígsig", property_count=1),
        ]
        result = validator.validate(typo, inventory)
        assert result.is_valid
        assert result.matched_city == "Oña"
        assert result.outcome == LocationOutcome.FUZZY
        assert 60 <= result.confidence <= 95

    def test_two_edits_on_short_city_stay_unmatched(self, validator):
        inventory = [InventoryCity(name="Oña", property_count=2)]
        result = validator.validate("Oxx", inventory)
        assert not result.is_valid
        assert result.outcome == LocationOutcome.UNMATCHED

    def test_message_notes_the_correction(self, validator, cities):
        result = validator.validate("Cueca", cities)
        assert result.message == '"Cueca" was interpreted as "Cuenca"'
        assert result.requested_location == "Cueca"

    def test_tie_prefers_more_listings(self, validator):
        inventory = make_cities(Sarta=2, Sarto=9)
        result = validator.validate("Sartx", inventory)
        assert result.matched_city == "Sarto"

    def test_tie_with_equal_counts_is_alphabetical(self, validator):
        inventory = make_cities(Sarto=5, Sarta=5)
        result = validator.validate("Sartx", inventory)
        assert result.matched_city == "Sarta"

    def test_threshold_is_configurable(self, settings, cities):
        strict = LocationValidator(settings.model_copy(update={"fuzzy_threshold": 0.9}))
        result = strict.validate("Cueca", cities)
        assert not result.is_valid
        assert result.outcome == LocationOutcome.UNMATCHED


class TestUnmatched:
    def test_unknown_city_gets_top_cities_by_count(self, validator):
        inventory = make_cities(Gualaceo=5, Paute=3, Cuenca=40)
        result = validator.validate("Quito", inventory)
        assert not result.is_valid
        assert result.matched_city is None
        assert result.outcome == LocationOutcome.UNMATCHED
        assert result.suggested_cities == ["Cuenca", "Gualaceo", "Paute"]
        assert result.confidence == 10
        assert "Quito" in result.message
        assert "Cuenca, Gualaceo, Paute" in result.message

    def test_suggestion_ties_are_alphabetical_and_capped(self, validator, cities):
        result = validator.validate("Guayaquil", cities)
        assert result.suggested_cities == ["Cuenca", "Azogues", "Gualaceo"]
        assert len(result.suggested_cities) <= 3

    def test_suggestion_count_follows_settings(self, settings, cities):
        validator = LocationValidator(settings.model_copy(update={"max_suggestions": 5}))
        result = validator.validate("Manta", cities)
        assert result.suggested_cities == ["Cuenca", "Azogues", "Gualaceo", "Paute", "Girón"]


class TestSpecialCases:
    @pytest.mark.parametrize("requested", [None, "", "   "])
    def test_no_city_requested(self, validator, cities, requested):
        result = validator.validate(requested, cities)
        assert result.is_valid
        assert result.matched_city is None
        assert result.message is None
        assert result.suggested_cities == []
        assert result.outcome == LocationOutcome.NO_CITY

    @pytest.mark.parametrize("requested", [None, "Cuenca", "Quito"])
    def test_empty_inventory(self, validator, requested):
        result = validator.validate(requested, [])
        assert not result.is_valid
        assert result.outcome == LocationOutcome.NO_INVENTORY
        assert result.suggested_cities == []
        assert result.matched_city is None
        assert "No cities" in result.message

    @pytest.mark.parametrize("requested", ["Cuenca", "El Ejido", "Cueca", "Quito", None])
    def test_validation_is_idempotent(self, validator, cities, requested):
        first = validator.validate(requested, cities)
        second = validator.validate(requested, cities)
        assert first == second
        assert first.model_dump_json() == second.model_dump_json()

    def test_verdict_is_immutable(self, validator, cities):
        result = validator.validate("Cuenca", cities)
        with pytest.raises(Exception):
            result.matched_city = "Paute"
