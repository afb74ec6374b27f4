"""Tests for municipality / barangay roll-ups."""

import logging

import pytest

from sitiocompare.aggregate import aggregate_entity, rollup_profiles
from sitiocompare.indicators import DEFAULT_REGISTRY, custom_field_indicator


class TestRollupProfiles:
    """Combining several profiles into one."""

    def test_counts_are_summed(self, make_profile):
        rolled = rollup_profiles([
            make_profile(total_population=10, population={"totalMale": 4}),
            make_profile(total_population=20, population={"totalMale": 11}),
        ], "BANGA")
        assert rolled.total_population == 30
        assert rolled.population.total_male == 15
        assert rolled.municipality == "BANGA"
        assert rolled.sitio_name == "BANGA"

    def test_yes_no_and_flags_are_or_ed(self, make_profile):
        rolled = rollup_profiles([
            make_profile(facilities={"healthCenter": {"exists": "yes"}}, sanitation_types={"openDefecation": True}),
            make_profile(),
        ])
        assert rolled.facilities.health_center.exists == "yes"
        assert rolled.facilities.market.exists == "no"
        assert rolled.sanitation_types.open_defecation is True

    def test_income_is_mean_of_reported_values(self, make_profile):
        rolled = rollup_profiles([
            make_profile(average_daily_income=500),
            make_profile(average_daily_income=0),
            make_profile(average_daily_income=700),
        ])
        assert rolled.average_daily_income == 600

    def test_lists_are_merged_without_duplicates(self, make_profile):
        rolled = rollup_profiles([
            make_profile(crops=["Rice", "Corn"], priorities=[{"name": "Water", "rating": 3}]),
            make_profile(crops=["Corn", "Banana"]),
        ])
        assert rolled.crops == ("Rice", "Corn", "Banana")
        assert rolled.priorities == ()

    def test_custom_fields(self, make_profile):
        rolled = rollup_profiles([
            make_profile(custom_fields={"wells": 2, "hasCoop": "no"}),
            make_profile(custom_fields={"wells": 3, "hasCoop": "yes"}),
        ])
        assert rolled.custom_fields == {"wells": 5, "hasCoop": "yes"}

    def test_empty_input_rejected(self):
        with pytest.raises(ValueError):
            rollup_profiles([])


class TestAggregateEntity:

    def test_rates_come_from_summed_counts(self, make_sitio, make_electrified):
        sitios = [
            make_sitio(1, {2023: make_electrified(10, 10)}),
            make_sitio(2, {2023: make_electrified(20, 10)}),
        ]
        e = aggregate_entity("BANGA", "municipality", sitios, 2023)

        assert e.metrics["electricityPercent"] == pytest.approx(20 / 30 * 100)
        # not the mean of 100% and 50%
        assert e.metrics["electricityPercent"] != pytest.approx(75.0)
        assert e.total_households == 30
        assert e.sitio_count == 2
        assert not e.has_stale_data

    def test_stale_contributor(self, make_sitio, make_electrified, caplog):
        sitios = [
            make_sitio(1, {2023: make_electrified(10, 5)}),
            make_sitio(2, {2021: make_electrified(10, 5), 2024: make_electrified(10, 10)}),
        ]
        with caplog.at_level(logging.WARNING, logger="sitiocompare.aggregate"):
            e = aggregate_entity("BANGA", "municipality", sitios, 2023)

        assert e.has_stale_data
        assert [(c.sitio_id, c.year_used) for c in e.stale_contributors] == [(2, 2021)]
        assert e.total_households == 20
        assert "2021" in caplog.text

    def test_sitio_without_earlier_data_is_excluded(self, make_sitio, make_electrified):
        sitios = [
            make_sitio(1, {2023: make_electrified(10, 5)}),
            make_sitio(2, {2024: make_electrified(10, 10)}),
        ]
        e = aggregate_entity("BANGA", "municipality", sitios, 2023)

        assert e.excluded_sitio_ids == (2,)
        assert [c.sitio_id for c in e.contributors] == [1]
        assert e.metrics["electricityPercent"] == 50.0

    def test_no_contributors(self, make_sitio, make_electrified):
        e = aggregate_entity("BANGA", "municipality", [make_sitio(1, {2024: make_electrified(1, 1)})], 2023)

        assert e.sitio_count == 0
        assert e.total_population == 0
        assert e.profile is None
        assert all(v is None for v in e.metrics.values())
        assert set(e.metrics) == set(DEFAULT_REGISTRY.keys())

    def test_ordinal_indicators_are_averaged(self, make_sitio, make_profile):
        sitios = [
            make_sitio(1, {2023: make_profile(mobile_signal="4g")}),
            make_sitio(2, {2023: make_profile(mobile_signal="2g")}),
        ]
        e = aggregate_entity("BANGA", "municipality", sitios, 2023)
        assert e.metrics["mobileSignal"] == 2.0

    def test_unrated_sitio_does_not_lower_facility_condition(self, make_sitio, make_profile):
        sitios = [
            make_sitio(1, {2024: make_profile(facilities={"healthCenter": {"exists": "yes", "condition": 4}})}),
            make_sitio(2, {2024: make_profile()}),
        ]
        e = aggregate_entity("BANGA", "municipality", sitios, 2024)
        assert e.metrics["avgFacilityCondition"] == 4.0

    def test_facility_condition_pools_every_rated_facility(self, make_sitio, make_profile):
        """Mean over facilities, not the mean of per-sitio means."""
        sitios = [
            make_sitio(1, {2024: make_profile(facilities={
                "healthCenter": {"exists": "yes", "condition": 5},
                "market": {"exists": "yes", "condition": 5},
                "pharmacy": {"exists": "yes", "condition": 5},
            })}),
            make_sitio(2, {2024: make_profile(facilities={"healthCenter": {"exists": "yes", "condition": 1}})}),
        ]
        e = aggregate_entity("BANGA", "municipality", sitios, 2024)
        assert e.metrics["avgFacilityCondition"] == 4.0

    def test_unknown_food_security_is_skipped(self, make_sitio, make_profile):
        sitios = [
            make_sitio(1, {2024: make_profile(food_security="secure")}),
            make_sitio(2, {2024: make_profile(food_security="unknown")}),
        ]
        e = aggregate_entity("BANGA", "municipality", sitios, 2024)
        assert e.metrics["foodSecurityLevel"] == 3.0

    def test_no_rated_facilities_anywhere(self, make_sitio, make_profile):
        sitios = [make_sitio(1, {2024: make_profile()}), make_sitio(2, {2024: make_profile()})]
        e = aggregate_entity("BANGA", "municipality", sitios, 2024)
        assert e.metrics["avgFacilityCondition"] == 0.0
        assert DEFAULT_REGISTRY.get("avgFacilityCondition").format(0.0) == "Not rated"

    def test_custom_field_indicator(self, make_sitio, make_profile):
        reg = DEFAULT_REGISTRY.with_indicators([custom_field_indicator("wells", "Wells")])
        sitios = [
            make_sitio(1, {2023: make_profile(custom_fields={"wells": 2})}),
            make_sitio(2, {2023: make_profile(custom_fields={"wells": 3})}),
        ]
        e = aggregate_entity("BANGA", "municipality", sitios, 2023, reg)
        assert e.metrics["custom:wells"] == 5.0

    def test_bad_level(self, make_sitio, make_profile):
        with pytest.raises(ValueError):
            aggregate_entity("X", "province", [make_sitio(1, {2023: make_profile()})], 2023)

    def test_barangay_level_names_the_barangay(self, make_sitio, make_profile):
        e = aggregate_entity("Rang-ay", "barangay", [make_sitio(1, {2023: make_profile(total_population=5)})], 2023)
        assert e.profile.barangay == "Rang-ay"
        assert e.level == "barangay"
