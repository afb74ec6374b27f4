"""Tests for the indicator registry and accessors."""

import logging
import math

import pytest

from sitiocompare.indicators import (
    DAILY_POVERTY_THRESHOLD,
    DEFAULT_REGISTRY,
    METRIC_GROUPS,
    IndicatorRegistry,
    Rollup,
    SORT_PRESETS,
    custom_field_indicator,
    format_currency,
    format_number,
    format_percent,
    get_categorized_indicators,
    get_indicator,
    get_indicators_by_category,
    get_sort_preset,
    sort_sitios,
)
from sitiocompare.models import Polarity, SitioProfile


class TestRegistry:
    """Registry lookup and consistency."""

    def test_keys_are_unique(self):
        keys = DEFAULT_REGISTRY.keys()
        assert len(keys) == len(set(keys))

    def test_every_indicator_has_a_known_group(self):
        for ind in DEFAULT_REGISTRY.indicators:
            assert ind.category in METRIC_GROUPS

    def test_duplicate_key_rejected(self):
        ind = get_indicator("totalPopulation")
        with pytest.raises(ValueError, match="Duplicate"):
            IndicatorRegistry((ind, ind))

    def test_unknown_key_returns_none(self):
        assert get_indicator("nope") is None
        assert "nope" not in DEFAULT_REGISTRY

    def test_by_category(self):
        keys = [i.key for i in get_indicators_by_category("infrastructure")]
        assert "totalRoadLength" in keys
        assert "pavedRoadPercent" in keys
        assert all(i.category == "infrastructure" for i in get_indicators_by_category("infrastructure"))

    def test_categorized_listing_follows_group_order(self):
        cats = [c for c, _, _ in get_categorized_indicators()]
        assert tuple(cats) == METRIC_GROUPS

    def test_polarity(self):
        assert get_indicator("totalPopulation").polarity is Polarity.NEUTRAL
        assert get_indicator("unemploymentRate").polarity is Polarity.WORSE
        assert get_indicator("electricityPercent").polarity is Polarity.BETTER
        assert get_indicator("electricityPercent").higher_is_better is True
        assert get_indicator("totalPopulation").higher_is_better is None

    def test_ordinal_indicators_roll_up_by_mean(self):
        assert get_indicator("mobileSignal").rollup is Rollup.MEAN
        assert get_indicator("electricityPercent").rollup is Rollup.DERIVE

    def test_with_indicators_leaves_original_untouched(self):
        extra = custom_field_indicator("wells", "Wells")
        reg = DEFAULT_REGISTRY.with_indicators([extra])
        assert "custom:wells" in reg
        assert "custom:wells" not in DEFAULT_REGISTRY
        assert len(reg) == len(DEFAULT_REGISTRY) + 1


class TestAccessors:
    """Accessors are total, finite and zero-guarded."""

    def test_empty_profile_gives_finite_values(self):
        empty = SitioProfile()
        for ind in DEFAULT_REGISTRY.indicators:
            v = ind.value(empty)
            assert math.isfinite(v), ind.key
            assert isinstance(ind.format(v), str)

    def test_zero_denominators(self, make_profile):
        p = make_profile(
            households_with_electricity=5,
            households_with_toilet=5,
            households_with_internet=5,
            total_population=12,
            vulnerable_groups={"unemployed_count": 3, "out_of_school_youth": 3},
            backyard_gardens={"households_with_gardens": 4},
            pets={"vaccinated_dogs": 2},
        )
        for ind in DEFAULT_REGISTRY.indicators:
            if ind.is_percentage:
                assert ind.value(p) == 0.0, ind.key
        assert get_indicator("averageHouseholdSize").value(p) == 0.0

    def test_electricity_percent(self, make_electrified):
        assert get_indicator("electricityPercent").value(make_electrified(10, 5)) == 50.0

    def test_mobile_signal_levels(self, make_profile):
        ind = get_indicator("mobileSignal")
        assert ind.value(make_profile(mobile_signal="4g")) == 3.0
        assert ind.value(make_profile(mobile_signal="none")) == 0.0
        assert ind.value(make_profile(mobile_signal="6g")) == 0.0
        assert ind.format(3.0) == "4G"

    def test_paved_road_percent_counts_existing_roads_only(self, make_profile):
        p = make_profile(infrastructure={
            "asphalt": {"exists": "yes", "length": 2},
            "gravel": {"exists": "yes", "length": 2},
            "concrete": {"exists": "no", "length": 10},
        })
        assert get_indicator("totalRoadLength").value(p) == 4.0
        assert get_indicator("pavedRoadPercent").value(p) == 50.0

    def test_facilities(self, make_profile):
        p = make_profile(facilities={
            "healthCenter": {"exists": "yes", "condition": 4},
            "market": {"exists": "yes", "condition": 2},
            "pharmacy": {"exists": "no", "condition": 5},
        })
        assert get_indicator("facilityCount").value(p) == 2.0
        assert get_indicator("avgFacilityCondition").value(p) == 3.0
        assert get_indicator("hasHealthCenter").value(p) == 1.0
        assert get_indicator("hasPharmacy").value(p) == 0.0
        assert get_indicator("avgFacilityCondition").observed(p) == [4.0, 2.0]

    def test_unrated_facilities_are_not_shown_as_missing(self, make_profile):
        """A 0 condition is a real value ("Not rated"); "N/A" means no data."""
        ind = get_indicator("avgFacilityCondition")
        p = make_profile(facilities={"market": {"exists": "yes"}})
        assert ind.value(p) == 0.0
        assert ind.observed(p) == []
        assert ind.format(0.0) == "Not rated"
        assert ind.format(3.5) == "3.5"

    def test_food_security_observations(self, make_profile):
        ind = get_indicator("foodSecurityLevel")
        assert ind.observed(make_profile(food_security="seasonal_scarcity")) == [2.0]
        assert ind.observed(make_profile(food_security="unknown")) == []
        assert get_indicator("mobileSignal").observed(make_profile(mobile_signal="none")) == [0.0]

    def test_highest_water_level(self, make_profile):
        ind = get_indicator("highestWaterLevel")
        assert ind.value(make_profile()) == -1.0
        assert ind.value(make_profile(water_sources={"natural": {"exists": "yes"}})) == 0.0
        assert ind.value(make_profile(water_sources={"level2": {"exists": "yes"}})) == 2.0
        assert ind.format(2.0) == "Level 2"

    def test_below_poverty_line(self, make_profile):
        ind = get_indicator("belowPovertyLine")
        assert ind.value(make_profile(average_daily_income=DAILY_POVERTY_THRESHOLD - 1)) == 1.0
        assert ind.value(make_profile(average_daily_income=DAILY_POVERTY_THRESHOLD + 1)) == 0.0
        # unreported income is not counted as poor
        assert ind.value(make_profile(average_daily_income=0)) == 0.0

    def test_employment_and_unemployment_rates(self, make_profile):
        p = make_profile(labor_force_count=40, vulnerable_groups={"unemployed_count": 10})
        assert get_indicator("unemploymentRate").value(p) == 25.0
        assert get_indicator("employmentRate").value(p) == 75.0

    def test_total_hazard_frequency(self, make_profile):
        p = make_profile(hazards={"flood": {"frequency": 3}, "drought": {"frequency": 1}})
        assert get_indicator("totalHazardFrequency").value(p) == 4.0


class TestCustomFields:

    def test_numeric_boolean_and_text_values(self, make_profile):
        ind = custom_field_indicator("trainingAttendees", "Training Attendees")
        assert ind.key == "custom:trainingAttendees"
        assert ind.category == "customFields"
        assert ind.value(make_profile(custom_fields={"trainingAttendees": 12})) == 12.0
        assert ind.value(make_profile(custom_fields={"trainingAttendees": "yes"})) == 1.0
        assert ind.value(make_profile(custom_fields={"trainingAttendees": True})) == 1.0
        assert ind.value(make_profile(custom_fields={"trainingAttendees": "abc"})) == 0.0
        assert ind.value(make_profile()) == 0.0

    def test_percentage_custom_field_formats_as_percent(self):
        ind = custom_field_indicator("coverage", "Coverage", is_percentage=True, polarity=Polarity.BETTER)
        assert ind.format(42.0) == "42.0%"
        assert ind.polarity is Polarity.BETTER


def test_formatters():
    assert format_number(1500) == "1,500"
    assert format_number(2.5) == "2.5"
    assert format_percent(66.666) == "66.7%"
    assert format_currency(1234.5) == "₱1,234.50"


class TestSortSitios:
    """Multi-key ordering of the sitio list."""

    def test_population_preset(self, snapshot):
        preset = get_sort_preset("population-ranking")
        out = sort_sitios(snapshot, preset.indicators, year=2023)

        # Charlie has no 2023 profile and goes last
        assert [s.id for s in out] == [4, 1, 5, 2, 3]

    def test_latest_year_when_no_year_given(self, snapshot):
        out = sort_sitios(snapshot, [("totalPopulation", "asc")])
        assert [s.id for s in out] == [3, 2, 5, 1, 4]

    def test_secondary_key_breaks_ties(self, make_sitio, make_profile):
        sitios = [
            make_sitio(1, {2023: make_profile(total_population=50, total_households=5)}),
            make_sitio(2, {2023: make_profile(total_population=50, total_households=9)}),
        ]
        out = sort_sitios(sitios, [("totalPopulation", "desc"), ("totalHouseholds", "desc")])
        assert [s.id for s in out] == [2, 1]

    def test_unknown_key_skipped(self, snapshot, caplog):
        with caplog.at_level(logging.WARNING):
            out = sort_sitios(snapshot, [("bogus", "desc")])
        assert [s.id for s in out] == [1, 2, 3, 4, 5]
        assert "bogus" in caplog.text

    def test_presets_reference_known_indicators(self):
        for preset in SORT_PRESETS:
            for key, order in preset.indicators:
                assert key in DEFAULT_REGISTRY
                assert order in ("asc", "desc")
