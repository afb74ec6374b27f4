"""
Indicator registry
==================

Every comparable number about a sitio-year is an *indicator*: a pure accessor
from one `SitioProfile` to a float, plus display metadata.

The registry is plain data (a tuple of `IndicatorDefinition` records), not a
class hierarchy. Ranking, diffing and aggregation only ever look at the
record's accessor/polarity/rollup fields, so new indicators (for example the
admin-defined custom fields) can be added without touching them.

Rules every accessor follows:
- it reads nothing but the profile passed in,
- it never raises (missing nested data counts as 0),
- every denominator is guarded (0 / 0 -> 0, never NaN or inf),
- yes/no and enum facts are mapped to numbers so all indicators sort the same way.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import math

from .dsa import merge_sort
from .models import YES, Polarity, SitioProfile, SitioRecord

log = logging.getLogger(__name__)


# -----------------------------
# Categories (= comparison metric groups)
# -----------------------------

METRIC_GROUP_LABELS: Dict[str, str] = {
    "demographics": "Demographics & Population",
    "utilities": "Basic Utilities & Connectivity",
    "infrastructure": "Roads & Infrastructure",
    "facilities": "Community Facilities",
    "livelihood": "Livelihood & Agriculture",
    "safety": "Safety & Risk Context",
    "education": "Education Status",
    "customFields": "Custom Fields",
}

METRIC_GROUPS: Tuple[str, ...] = tuple(METRIC_GROUP_LABELS)


class Rollup(Enum):
    """How an indicator is combined across the sitios of a municipality/barangay.

    DERIVE: evaluate the accessor on the rolled-up (summed) profile, so rates
    come from summed numerators and denominators.
    MEAN: average the pooled observations of all contributors; for ordinal
    scores (signal quality, facility condition, food security) that have no
    meaningful sum. An indicator with an `observations` accessor contributes
    only what that accessor reports, so unrated sitios add nothing.
    """
    DERIVE = "derive"
    MEAN = "mean"


@dataclass(frozen=True)
class IndicatorDefinition:
    key: str
    label: str
    short_label: str
    category: str
    accessor: Callable[[SitioProfile], float] = field(compare=False)
    format: Callable[[float], str] = field(compare=False)
    default_order: str = "desc"
    description: str = ""
    unit: str = ""
    is_percentage: bool = False
    polarity: Polarity = Polarity.NEUTRAL
    rollup: Rollup = Rollup.DERIVE
    observations: Optional[Callable[[SitioProfile], Sequence[float]]] = field(default=None, compare=False)

    @property
    def higher_is_better(self) -> Optional[bool]:
        """Legacy tri-state view: True / False / None (neutral)."""
        if self.polarity is Polarity.BETTER:
            return True
        if self.polarity is Polarity.WORSE:
            return False
        return None

    def value(self, profile: SitioProfile) -> float:
        return float(self.accessor(profile))

    def observed(self, profile: SitioProfile) -> List[float]:
        """Values this profile adds to a MEAN roll-up (default: its one value)."""
        if self.observations is None:
            return [self.value(profile)]
        return [float(v) for v in self.observations(profile)]


# -----------------------------
# Formatters
# -----------------------------

# Monthly poverty threshold for a family of 5 (PHP), DEPDev 2025.
MONTHLY_POVERTY_THRESHOLD = 20000.0
DAILY_POVERTY_THRESHOLD = MONTHLY_POVERTY_THRESHOLD / 30


def format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def format_currency(value: float) -> str:
    return f"₱{value:,.2f}"


def format_decimal(value: float, decimals: int = 1) -> str:
    return f"{value:,.{decimals}f}"


def format_yes_no(value: float) -> str:
    return "Yes" if value >= 1 else "No"


def _with_unit(unit: str, decimals: int = 1) -> Callable[[float], str]:
    return lambda v: f"{format_decimal(v, decimals)} {unit}"


def _out_of(total: int) -> Callable[[float], str]:
    return lambda v: f"{format_number(v)}/{total}"


_SIGNAL_LABELS = ["None", "2G", "3G", "4G", "5G"]
_FOOD_SECURITY_LABELS = {3: "Secure", 2: "Seasonal Scarcity", 1: "Critical"}


def _format_signal(v: float) -> str:
    # roll-ups can average to a fraction; label the nearest level
    i = int(round(v))
    return _SIGNAL_LABELS[i] if 0 <= i < len(_SIGNAL_LABELS) else "Unknown"


def _format_food_security(v: float) -> str:
    return _FOOD_SECURITY_LABELS.get(int(round(v)), "Unknown")


def _format_water_level(v: float) -> str:
    if v < 0:
        return "None"
    if v == 0:
        return "Natural"
    return f"Level {int(v)}"


def _format_condition(v: float) -> str:
    return "Not rated" if v == 0 else format_decimal(v, 1)


# -----------------------------
# Accessor helpers
# -----------------------------

def safe_percent(numerator: float, denominator: float) -> float:
    """numerator / denominator * 100, or 0 when the denominator is 0."""
    if not denominator:
        return 0.0
    return (numerator / denominator) * 100


def _n(value: Any) -> float:
    """Missing or non-finite numbers count as 0."""
    if value is None or isinstance(value, bool):
        return float(bool(value))
    try:
        f = float(value)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _exists(detail: Any) -> bool:
    return getattr(detail, "exists", None) == YES


def _road_length(road: Any) -> float:
    return _n(road.length) if _exists(road) else 0.0


def total_road_length(p: SitioProfile) -> float:
    return sum(_road_length(r) for r in p.infrastructure.all())


def paved_road_percent(p: SitioProfile) -> float:
    paved = _road_length(p.infrastructure.asphalt) + _road_length(p.infrastructure.concrete)
    return safe_percent(paved, total_road_length(p))


def facility_count(p: SitioProfile) -> float:
    return float(sum(1 for f in p.facilities.all() if _exists(f)))


def facility_conditions(p: SitioProfile) -> List[float]:
    """Condition ratings of existing facilities; unrated ones are skipped."""
    return [_n(f.condition) for f in p.facilities.all() if _exists(f) and _n(f.condition) > 0]


def avg_facility_condition(p: SitioProfile) -> float:
    conds = facility_conditions(p)
    if not conds:
        return 0.0
    return sum(conds) / len(conds)


def water_sources_count(p: SitioProfile) -> float:
    return float(sum(1 for w in p.water_sources.all() if _exists(w)))


def highest_water_level(p: SitioProfile) -> float:
    ws = p.water_sources
    if _exists(ws.level3):
        return 3.0
    if _exists(ws.level2):
        return 2.0
    if _exists(ws.level1):
        return 1.0
    if _exists(ws.natural):
        return 0.0
    return -1.0


def functioning_water_percent(p: SitioProfile) -> float:
    ok = sum(_n(w.functioning_count) for w in p.water_sources.all())
    broken = sum(_n(w.not_functioning_count) for w in p.water_sources.all())
    return safe_percent(ok, ok + broken)


def mobile_signal_level(p: SitioProfile) -> float:
    levels = {"none": 0, "2g": 1, "3g": 2, "4g": 3, "5g": 4}
    return float(levels.get(str(p.mobile_signal).lower(), 0))


def food_security_level(p: SitioProfile) -> float:
    levels = {"secure": 3, "seasonal_scarcity": 2, "critical_shortage": 1}
    return float(levels.get(str(p.food_security).lower(), 0))


def known_food_security(p: SitioProfile) -> List[float]:
    """Food security level, or nothing when it is unknown (0)."""
    level = food_security_level(p)
    return [level] if level else []


def total_hazard_frequency(p: SitioProfile) -> float:
    h = p.hazards
    return _n(h.flood.frequency) + _n(h.landslide.frequency) + _n(h.drought.frequency) + _n(h.earthquake.frequency)


def total_workers(p: SitioProfile) -> float:
    wc = p.worker_class
    return (_n(wc.private_household) + _n(wc.private_establishment) + _n(wc.government)
            + _n(wc.self_employed) + _n(wc.employer) + _n(wc.ofw))


def employment_rate(p: SitioProfile) -> float:
    labor = _n(p.labor_force_count)
    return safe_percent(labor - _n(p.vulnerable_groups.unemployed_count), labor)


def unemployment_rate(p: SitioProfile) -> float:
    return safe_percent(_n(p.vulnerable_groups.unemployed_count), _n(p.labor_force_count))


def average_household_size(p: SitioProfile) -> float:
    hh = _n(p.total_households)
    return _n(p.total_population) / hh if hh else 0.0


def pet_vaccination_rate(p: SitioProfile) -> float:
    pets = p.pets
    return safe_percent(_n(pets.vaccinated_cats) + _n(pets.vaccinated_dogs), _n(pets.cats_count) + _n(pets.dogs_count))


def below_poverty_line(p: SitioProfile) -> float:
    income = _n(p.average_daily_income)
    return 1.0 if 0 < income < DAILY_POVERTY_THRESHOLD else 0.0


def _flag(getter: Callable[[SitioProfile], Any]) -> Callable[[SitioProfile], float]:
    return lambda p: 1.0 if getter(p) else 0.0


def _has_facility(name: str) -> Callable[[SitioProfile], float]:
    return lambda p: 1.0 if _exists(getattr(p.facilities, name)) else 0.0


def _count(getter: Callable[[SitioProfile], Any]) -> Callable[[SitioProfile], float]:
    return lambda p: _n(getter(p))


# -----------------------------
# Indicator definitions
# -----------------------------

B, W, N = Polarity.BETTER, Polarity.WORSE, Polarity.NEUTRAL

SITIO_INDICATORS: List[IndicatorDefinition] = [
    # ---- demographics ----
    IndicatorDefinition("totalPopulation", "Total Population", "Population", "demographics",
                        _count(lambda p: p.total_population), format_number,
                        description="Total population of the sitio", polarity=N),
    IndicatorDefinition("totalHouseholds", "Total Households", "Households", "demographics",
                        _count(lambda p: p.total_households), format_number,
                        description="Total number of households", polarity=N),
    IndicatorDefinition("totalMale", "Male Population", "Male", "demographics",
                        _count(lambda p: p.population.total_male), format_number, polarity=N),
    IndicatorDefinition("totalFemale", "Female Population", "Female", "demographics",
                        _count(lambda p: p.population.total_female), format_number, polarity=N),
    IndicatorDefinition("registeredVoters", "Registered Voters", "Voters", "demographics",
                        _count(lambda p: p.registered_voters), format_number, polarity=N),
    IndicatorDefinition("laborForceCount", "Labor Force", "Labor Force", "demographics",
                        _count(lambda p: p.labor_force_count), format_number,
                        description="Total labor force population", polarity=N),
    IndicatorDefinition("averageHouseholdSize", "Avg Household Size", "HH Size", "demographics",
                        average_household_size, format_decimal,
                        description="Persons per household", polarity=N),
    IndicatorDefinition("seniorsCount", "Senior Citizens", "Seniors", "demographics",
                        _count(lambda p: p.vulnerable_groups.seniors_count), format_number,
                        description="Number of seniors (60+ years)", polarity=N),
    IndicatorDefinition("ipCount", "Indigenous Peoples", "IP Count", "demographics",
                        _count(lambda p: p.vulnerable_groups.ip_count), format_number, polarity=N),
    IndicatorDefinition("muslimCount", "Muslim Population", "Muslim", "demographics",
                        _count(lambda p: p.vulnerable_groups.muslim_count), format_number, polarity=N),
    IndicatorDefinition("outOfSchoolYouth", "Out-of-School Youth", "OSY", "demographics",
                        _count(lambda p: p.vulnerable_groups.out_of_school_youth), format_number,
                        polarity=W),
    IndicatorDefinition("noBirthCertCount", "Without Birth Certificate", "No Birth Cert", "demographics",
                        _count(lambda p: p.vulnerable_groups.no_birth_cert_count), format_number,
                        polarity=W),
    IndicatorDefinition("noNationalIDCount", "Without National ID", "No Nat'l ID", "demographics",
                        _count(lambda p: p.vulnerable_groups.no_national_id_count), format_number,
                        polarity=W),
    IndicatorDefinition("unemployedCount", "Unemployed", "Unemployed", "demographics",
                        _count(lambda p: p.vulnerable_groups.unemployed_count), format_number,
                        default_order="asc", polarity=W),
    IndicatorDefinition("unemploymentRate", "Unemployment Rate", "Unemployment %", "demographics",
                        unemployment_rate, format_percent, default_order="asc",
                        unit="%", is_percentage=True, polarity=W),

    # ---- utilities (incl. water & sanitation) ----
    IndicatorDefinition("electricityPercent", "Electricity Access", "Electricity %", "utilities",
                        lambda p: safe_percent(_n(p.households_with_electricity), _n(p.total_households)),
                        format_percent, description="Percentage of households with electricity",
                        unit="%", is_percentage=True, polarity=B),
    IndicatorDefinition("householdsWithElectricity", "Households with Electricity", "HH w/ Elec", "utilities",
                        _count(lambda p: p.households_with_electricity), format_number, polarity=B),
    IndicatorDefinition("toiletAccessPercent", "Toilet Access", "Toilet %", "utilities",
                        lambda p: safe_percent(_n(p.households_with_toilet), _n(p.total_households)),
                        format_percent, description="Percentage of households with toilet",
                        unit="%", is_percentage=True, polarity=B),
    IndicatorDefinition("householdsWithToilet", "Households with Toilet", "HH w/ Toilet", "utilities",
                        _count(lambda p: p.households_with_toilet), format_number, polarity=B),
    IndicatorDefinition("internetPercent", "Internet Access", "Internet %", "utilities",
                        lambda p: safe_percent(_n(p.households_with_internet), _n(p.total_households)),
                        format_percent, description="Percentage of households with internet",
                        unit="%", is_percentage=True, polarity=B),
    IndicatorDefinition("householdsWithInternet", "Households with Internet", "HH w/ Internet", "utilities",
                        _count(lambda p: p.households_with_internet), format_number, polarity=B),
    IndicatorDefinition("mobileSignal", "Mobile Signal Quality", "Signal", "utilities",
                        mobile_signal_level, _format_signal,
                        description="Best available mobile signal (0=None .. 4=5G)",
                        polarity=B, rollup=Rollup.MEAN),
    IndicatorDefinition("waterSourcesAvailable", "Water Sources Available", "Water Sources", "utilities",
                        water_sources_count, _out_of(4), polarity=B),
    IndicatorDefinition("highestWaterLevel", "Highest Water Level", "Water Level", "utilities",
                        highest_water_level, _format_water_level,
                        description="Highest water service level (0=Natural, 1-3=Levels)", polarity=B),
    IndicatorDefinition("functioningWaterPercent", "Functioning Water Systems", "Water Func %", "utilities",
                        functioning_water_percent, format_percent,
                        unit="%", is_percentage=True, polarity=B),
    IndicatorDefinition("hasWaterSealed", "Has Water-Sealed Toilet", "Water Sealed", "utilities",
                        _flag(lambda p: p.sanitation_types.water_sealed), format_yes_no, polarity=B),
    IndicatorDefinition("hasOpenDefecation", "Has Open Defecation", "Open Defecation", "utilities",
                        _flag(lambda p: p.sanitation_types.open_defecation), format_yes_no,
                        default_order="asc", polarity=W),

    # ---- infrastructure ----
    IndicatorDefinition("totalRoadLength", "Total Road Length", "Road Length", "infrastructure",
                        total_road_length, _with_unit("km", 2), unit="km", polarity=B),
    IndicatorDefinition("concreteRoadLength", "Concrete Road", "Concrete", "infrastructure",
                        lambda p: _road_length(p.infrastructure.concrete), _with_unit("km"), unit="km"),
    IndicatorDefinition("asphaltRoadLength", "Asphalt Road", "Asphalt", "infrastructure",
                        lambda p: _road_length(p.infrastructure.asphalt), _with_unit("km"), unit="km"),
    IndicatorDefinition("gravelRoadLength", "Gravel Road", "Gravel", "infrastructure",
                        lambda p: _road_length(p.infrastructure.gravel), _with_unit("km"), unit="km"),
    IndicatorDefinition("naturalRoadLength", "Natural/Earth Road", "Earth", "infrastructure",
                        lambda p: _road_length(p.infrastructure.natural), _with_unit("km"), unit="km"),
    IndicatorDefinition("pavedRoadPercent", "Paved Road Coverage", "Paved %", "infrastructure",
                        paved_road_percent, format_percent,
                        description="Share of road length that is asphalt or concrete",
                        unit="%", is_percentage=True, polarity=B),

    # ---- facilities ----
    IndicatorDefinition("facilityCount", "Facilities Available", "Facilities", "facilities",
                        facility_count, _out_of(8),
                        description="Number of community facility types (out of 8)", polarity=B),
    IndicatorDefinition("avgFacilityCondition", "Avg Facility Condition", "Facility Cond", "facilities",
                        avg_facility_condition, _format_condition,
                        description="Average condition of existing facilities (1-5 scale)",
                        polarity=B, rollup=Rollup.MEAN, observations=facility_conditions),
    IndicatorDefinition("hasHealthCenter", "Has Health Center", "Health Ctr", "facilities",
                        _has_facility("health_center"), format_yes_no, polarity=B),
    IndicatorDefinition("hasPharmacy", "Has Pharmacy", "Pharmacy", "facilities",
                        _has_facility("pharmacy"), format_yes_no, polarity=B),
    IndicatorDefinition("hasCommunityToilet", "Has Community Toilet", "Comm. CR", "facilities",
                        _has_facility("community_toilet"), format_yes_no, polarity=B),
    IndicatorDefinition("hasMarket", "Has Market", "Market", "facilities",
                        _has_facility("market"), format_yes_no, polarity=B),

    # ---- livelihood ----
    IndicatorDefinition("averageDailyIncome", "Average Daily Income", "Daily Income", "livelihood",
                        _count(lambda p: p.average_daily_income), format_currency,
                        description="Average household daily income", polarity=B),
    IndicatorDefinition("belowPovertyLine", "Below Poverty Line", "Poor", "livelihood",
                        below_poverty_line, format_yes_no,
                        description="Average daily income below the daily poverty threshold",
                        default_order="asc", polarity=W),
    IndicatorDefinition("employmentRate", "Employment Rate", "Employment %", "livelihood",
                        employment_rate, format_percent, description="Percentage of labor force employed",
                        unit="%", is_percentage=True, polarity=B),
    IndicatorDefinition("totalWorkers", "Total Workers", "Workers", "livelihood",
                        total_workers, format_number, polarity=B),
    IndicatorDefinition("ofwCount", "OFW Count", "OFWs", "livelihood",
                        _count(lambda p: p.worker_class.ofw), format_number,
                        description="Number of overseas Filipino workers", polarity=N),
    IndicatorDefinition("numberOfFarmers", "Number of Farmers", "Farmers", "livelihood",
                        _count(lambda p: p.agriculture.number_of_farmers), format_number, polarity=N),
    IndicatorDefinition("farmAreaHectares", "Farm Area (Hectares)", "Farm Area", "livelihood",
                        _count(lambda p: p.agriculture.estimated_farm_area_hectares), _with_unit("ha"),
                        unit="ha", polarity=N),
    IndicatorDefinition("numberOfAssociations", "Farmer Associations", "Associations", "livelihood",
                        _count(lambda p: p.agriculture.number_of_associations), format_number, polarity=B),
    IndicatorDefinition("backyardGardenPercent", "Backyard Garden Households", "Gardens %", "livelihood",
                        lambda p: safe_percent(_n(p.backyard_gardens.households_with_gardens), _n(p.total_households)),
                        format_percent, unit="%", is_percentage=True, polarity=B),
    IndicatorDefinition("petVaccinationRate", "Pet Vaccination Rate", "Pets Vacc %", "livelihood",
                        pet_vaccination_rate, format_percent, unit="%", is_percentage=True, polarity=B),

    # ---- safety ----
    IndicatorDefinition("totalHazardFrequency", "Total Hazard Frequency", "Hazard Freq", "safety",
                        total_hazard_frequency, lambda v: f"{format_number(v)} events",
                        description="Total hazard occurrences in past 12 months",
                        default_order="asc", polarity=W),
    IndicatorDefinition("floodFrequency", "Flood Frequency", "Floods", "safety",
                        _count(lambda p: p.hazards.flood.frequency), lambda v: f"{format_number(v)}x",
                        default_order="asc", polarity=W),
    IndicatorDefinition("landslideFrequency", "Landslide Frequency", "Landslides", "safety",
                        _count(lambda p: p.hazards.landslide.frequency), lambda v: f"{format_number(v)}x",
                        default_order="asc", polarity=W),
    IndicatorDefinition("droughtFrequency", "Drought Frequency", "Droughts", "safety",
                        _count(lambda p: p.hazards.drought.frequency), lambda v: f"{format_number(v)}x",
                        default_order="asc", polarity=W),
    IndicatorDefinition("earthquakeFrequency", "Earthquake Frequency", "Earthquakes", "safety",
                        _count(lambda p: p.hazards.earthquake.frequency), lambda v: f"{format_number(v)}x",
                        default_order="asc", polarity=W),
    IndicatorDefinition("foodSecurityLevel", "Food Security Level", "Food Security", "safety",
                        food_security_level, _format_food_security,
                        polarity=B, rollup=Rollup.MEAN, observations=known_food_security),

    # ---- education ----
    IndicatorDefinition("schoolAgeChildren", "School-Age Children", "School Age", "education",
                        _count(lambda p: p.school_age_children), format_number, polarity=N),
    IndicatorDefinition("outOfSchoolYouthEducation", "Out-of-School Youth", "OSY", "education",
                        _count(lambda p: p.vulnerable_groups.out_of_school_youth), format_number,
                        default_order="asc", polarity=W),
    IndicatorDefinition("outOfSchoolRate", "Out-of-School Rate", "OSY %", "education",
                        lambda p: safe_percent(_n(p.vulnerable_groups.out_of_school_youth), _n(p.school_age_children)),
                        format_percent, default_order="asc", unit="%", is_percentage=True, polarity=W),
    IndicatorDefinition("hasKindergarten", "Has Kindergarten", "Kinder", "education",
                        _has_facility("kindergarten"), format_yes_no, polarity=B),
    IndicatorDefinition("hasElementarySchool", "Has Elementary School", "Elem School", "education",
                        _has_facility("elementary_school"), format_yes_no, polarity=B),
    IndicatorDefinition("hasHighSchool", "Has High School", "High School", "education",
                        _has_facility("high_school"), format_yes_no, polarity=B),
]


# -----------------------------
# Registry
# -----------------------------

@dataclass(frozen=True)
class IndicatorRegistry:
    """Immutable lookup over a set of indicator definitions (keys are unique)."""
    indicators: Tuple[IndicatorDefinition, ...]
    _by_key: Dict[str, IndicatorDefinition] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_key: Dict[str, IndicatorDefinition] = {}
        for ind in self.indicators:
            if ind.key in by_key:
                raise ValueError(f"Duplicate indicator key: {ind.key}")
            if ind.category not in METRIC_GROUP_LABELS:
                raise ValueError(f"Unknown indicator category {ind.category!r} for {ind.key}")
            by_key[ind.key] = ind
        object.__setattr__(self, "_by_key", by_key)

    def get(self, key: str) -> Optional[IndicatorDefinition]:
        return self._by_key.get(key)

    def by_category(self, category: str) -> List[IndicatorDefinition]:
        return [ind for ind in self.indicators if ind.category == category]

    def keys(self, category: Optional[str] = None) -> List[str]:
        return [ind.key for ind in self.indicators if category is None or ind.category == category]

    def with_indicators(self, extra: Iterable[IndicatorDefinition]) -> "IndicatorRegistry":
        """Return a new registry extended with `extra` (e.g. custom-field indicators)."""
        return IndicatorRegistry(self.indicators + tuple(extra))

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self.indicators)


DEFAULT_REGISTRY = IndicatorRegistry(tuple(SITIO_INDICATORS))


def get_indicator(key: str, registry: Optional[IndicatorRegistry] = None) -> Optional[IndicatorDefinition]:
    """Indicator by key, or None when the key is unknown."""
    return (registry or DEFAULT_REGISTRY).get(key)


def get_indicators_by_category(category: str, registry: Optional[IndicatorRegistry] = None) -> List[IndicatorDefinition]:
    return (registry or DEFAULT_REGISTRY).by_category(category)


def get_categorized_indicators(registry: Optional[IndicatorRegistry] = None) -> List[Tuple[str, str, List[IndicatorDefinition]]]:
    """(category key, label, indicators) for every metric group, in display order."""
    reg = registry or DEFAULT_REGISTRY
    return [(cat, label, reg.by_category(cat)) for cat, label in METRIC_GROUP_LABELS.items()]


# -----------------------------
# Custom fields
# -----------------------------

def _custom_number(value: Any) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("yes", "true"):
            return 1.0
        if v in ("no", "false", ""):
            return 0.0
    return _n(value)


def custom_field_indicator(
    field_id: str,
    label: str,
    *,
    polarity: Polarity = Polarity.NEUTRAL,
    unit: str = "",
    is_percentage: bool = False,
) -> IndicatorDefinition:
    """Indicator over one admin-defined custom field (numeric, boolean or yes/no)."""
    fmt = format_percent if is_percentage else ((lambda v: f"{format_number(v)} {unit}") if unit else format_number)
    return IndicatorDefinition(
        key=f"custom:{field_id}",
        label=label,
        short_label=label,
        category="customFields",
        accessor=lambda p: _custom_number((p.custom_fields or {}).get(field_id)),
        format=fmt,
        description=f"Custom field {field_id}",
        unit=unit,
        is_percentage=is_percentage,
        polarity=polarity,
    )


# -----------------------------
# Sort presets (sitio list ordering)
# -----------------------------

@dataclass(frozen=True)
class SortPreset:
    key: str
    label: str
    description: str
    indicators: Tuple[Tuple[str, str], ...]


SORT_PRESETS: Tuple[SortPreset, ...] = (
    SortPreset("lowest-infrastructure", "Lowest Infrastructure", "Sitios with least infrastructure",
               (("electricityPercent", "asc"), ("toiletAccessPercent", "asc"), ("internetPercent", "asc"))),
    SortPreset("population-ranking", "Population Ranking", "Largest sitios by population",
               (("totalPopulation", "desc"), ("totalHouseholds", "desc"))),
    SortPreset("economic-priority", "Economic Priority", "Sitios needing economic intervention",
               (("averageDailyIncome", "asc"), ("unemployedCount", "desc"), ("totalPopulation", "desc"))),
    SortPreset("highest-hazard", "Highest Hazard Exposure", "Sitios hit most often by hazards",
               (("totalHazardFrequency", "desc"), ("totalPopulation", "desc"))),
)


def get_sort_preset(key: str) -> Optional[SortPreset]:
    return next((p for p in SORT_PRESETS if p.key == key), None)


def sort_sitios(
    sitios: Sequence[SitioRecord],
    order_by: Sequence[Tuple[str, str]],
    year: Optional[int] = None,
    registry: Optional[IndicatorRegistry] = None,
) -> List[SitioRecord]:
    """Order sitios by several indicators (first key wins ties last).

    Uses the profile for `year`, or each sitio's latest year when `year` is
    None. Sitios without a profile always sort after those with one. Unknown
    keys are skipped.
    """
    reg = registry or DEFAULT_REGISTRY

    def profile(s: SitioRecord) -> Optional[SitioProfile]:
        y = year if year is not None else s.latest_year
        return s.profile_for(y) if y is not None else None

    out = list(sitios)
    # stable passes from the least to the most significant key
    for key, order in reversed(list(order_by)):
        ind = reg.get(key)
        if ind is None:
            log.warning("sort_sitios: unknown indicator %r skipped", key)
            continue
        desc = order == "desc"
        with_data = [s for s in out if profile(s) is not None]
        without = [s for s in out if profile(s) is None]
        out = merge_sort(with_data, key=lambda s, ind=ind: ind.value(profile(s)), reverse=desc) + without
    return out
