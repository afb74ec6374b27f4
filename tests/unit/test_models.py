"""Tests for the sitio data model."""

import pytest

from sitiocompare.models import (
    NO, YES, Polarity, SitioProfile, SitioRecord,
)


class TestProfileFromDict:
    """Building profiles from storage-layer mappings."""

    def test_camel_case_nested_sections(self):
        p = SitioProfile.from_dict({
            "totalPopulation": 120,
            "population": {"totalMale": 60, "totalFemale": 60},
            "vulnerableGroups": {"noNationalIDCount": 3, "laborForce60to64Count": 2},
            "facilities": {"healthCenter": {"exists": "yes", "condition": 4}},
            "sanitationTypes": {"communityCR": True},
            "waterSources": {"level2": {"exists": "yes", "functioningCount": 2}},
        })

        assert p.total_population == 120
        assert p.population.total_male == 60
        assert p.vulnerable_groups.no_national_id_count == 3
        assert p.vulnerable_groups.labor_force_60_to_64_count == 2
        assert p.facilities.health_center.exists == YES
        assert p.facilities.health_center.condition == 4.0
        assert p.sanitation_types.community_cr is True
        assert p.water_sources.level2.functioning_count == 2

    def test_missing_sections_take_defaults(self):
        p = SitioProfile.from_dict({})

        assert p.total_population == 0
        assert p.facilities.market.exists == NO
        assert p.infrastructure.asphalt.length is None
        assert p.mobile_signal == "none"
        assert dict(p.custom_fields) == {}

    def test_snake_case_and_unknown_keys(self):
        p = SitioProfile.from_dict({"total_households": "12", "somethingElse": 5})
        assert p.total_households == 12

    def test_bad_number_raises(self):
        with pytest.raises(ValueError, match="totalPopulation|total_population"):
            SitioProfile.from_dict({"totalPopulation": "many"})

    def test_priorities_and_crops(self):
        p = SitioProfile.from_dict({
            "crops": ["Rice", "Corn"],
            "priorities": [{"name": "Water", "rating": 3}],
        })
        assert p.crops == ("Rice", "Corn")
        assert p.priorities[0].name == "Water"
        assert p.priorities[0].rating == 3


class TestSitioRecord:
    """Year invariants and copy-on-change helpers."""

    def test_create_sorts_years(self, make_profile):
        r = SitioRecord.create(id=1, municipality="M", barangay="B", sitio_name="S",
                               yearly_data={"2024": make_profile(), 2022: make_profile()})
        assert r.available_years == (2022, 2024)
        assert r.latest_year == 2024
        assert r.label == "S, B"

    def test_unsorted_years_rejected(self, make_profile):
        with pytest.raises(ValueError):
            SitioRecord(id=1, municipality="M", barangay="B", sitio_name="S",
                        yearly_data={2022: make_profile(), 2023: make_profile()},
                        available_years=(2023, 2022))

    def test_mismatched_years_rejected(self, make_profile):
        with pytest.raises(ValueError):
            SitioRecord(id=1, municipality="M", barangay="B", sitio_name="S",
                        yearly_data={2022: make_profile()},
                        available_years=(2022, 2023))

    def test_profile_for_missing_year(self, make_sitio, make_profile):
        r = make_sitio(1, {2022: make_profile()})
        assert r.profile_for(2023) is None
        assert r.profile_for(2022) is not None

    def test_with_and_without_year_return_copies(self, make_sitio, make_profile):
        r = make_sitio(1, {2022: make_profile()})
        r2 = r.with_year(2021, make_profile(total_population=5))

        assert r.available_years == (2022,)
        assert r2.available_years == (2021, 2022)
        assert r2.without_year(2022).available_years == (2021,)
        with pytest.raises(KeyError):
            r.without_year(2030)

    def test_from_dict_storage_shape(self):
        r = SitioRecord.from_dict({
            "id": 7,
            "municipality": "BANGA",
            "barangay": "Poblacion",
            "sitioName": "Purok 1",
            "availableYears": [2023, 2022],
            "yearlyData": {"2023": {"totalPopulation": 10}, "2022": {"totalPopulation": 8}},
        })
        assert r.id == 7
        assert r.sitio_name == "Purok 1"
        assert r.available_years == (2022, 2023)
        assert r.profile_for(2023).total_population == 10


class TestPolarity:

    def test_legacy_flags(self):
        assert Polarity.coerce(True) is Polarity.BETTER
        assert Polarity.coerce(False) is Polarity.WORSE
        assert Polarity.coerce(None) is Polarity.NEUTRAL
        assert Polarity.coerce("worse") is Polarity.WORSE
        assert Polarity.coerce(Polarity.BETTER) is Polarity.BETTER
