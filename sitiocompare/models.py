"""
Data model (SitioProfile / SitioRecord)
======================================

Each sitio (sub-village) has a fixed identity and one survey profile per
year. Both are kept immutable (`frozen=True`) so that:
- the comparison engine can never modify the snapshot it was given, and
- results built from the same snapshot are always identical.

Profiles are loaded from the storage layer's camelCase JSON (or from a flat
table, see `loader.py`) through `SitioProfile.from_dict`.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, is_dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import collections.abc
import re
import typing

YES = "yes"
NO = "no"

MOBILE_SIGNALS = ("none", "2g", "3g", "4g", "5g")
FOOD_SECURITY_LEVELS = ("secure", "seasonal_scarcity", "critical_shortage")
STUDENTS_PER_ROOM = ("less_than_46", "46_50", "51_55", "more_than_56", "no_classroom")


class Polarity(Enum):
    """Whether a higher indicator value is good, bad, or neither.

    NEUTRAL is its own state: trend colouring renders no judgement for it and
    ranking orders it descending ("more is shown first").
    """
    BETTER = "better"
    WORSE = "worse"
    NEUTRAL = "neutral"

    @classmethod
    def coerce(cls, value: Any) -> "Polarity":
        """Accept a Polarity or the legacy True / False / None flag."""
        if isinstance(value, Polarity):
            return value
        if value is None:
            return cls.NEUTRAL
        if value is True:
            return cls.BETTER
        if value is False:
            return cls.WORSE
        return cls(str(value).lower())


# -----------------------------
# Profile sections
# -----------------------------

@dataclass(frozen=True)
class SitioClassification:
    gida: bool = False
    indigenous: bool = False
    conflict: bool = False


@dataclass(frozen=True)
class MainAccess:
    paved_road: bool = False
    unpaved_road: bool = False
    footpath: bool = False
    boat: bool = False


@dataclass(frozen=True)
class PopulationBreakdown:
    total_male: int = 0
    total_female: int = 0


@dataclass(frozen=True)
class VulnerableGroups:
    muslim_count: int = 0
    ip_count: int = 0
    seniors_count: int = 0
    labor_force_60_to_64_count: int = 0
    unemployed_count: int = 0
    no_birth_cert_count: int = 0
    no_national_id_count: int = 0
    out_of_school_youth: int = 0


@dataclass(frozen=True)
class ElectricitySources:
    grid: int = 0
    solar: int = 0
    battery: int = 0
    generator: int = 0


@dataclass(frozen=True)
class FacilityDetails:
    """One row of the community facilities table (Section D)."""
    exists: str = NO
    count: Optional[int] = None
    distance_to_nearest: Optional[float] = None
    # 1 = bad .. 5 = excellent
    condition: Optional[float] = None


@dataclass(frozen=True)
class Facilities:
    health_center: FacilityDetails = field(default_factory=FacilityDetails)
    pharmacy: FacilityDetails = field(default_factory=FacilityDetails)
    community_toilet: FacilityDetails = field(default_factory=FacilityDetails)
    kindergarten: FacilityDetails = field(default_factory=FacilityDetails)
    elementary_school: FacilityDetails = field(default_factory=FacilityDetails)
    high_school: FacilityDetails = field(default_factory=FacilityDetails)
    madrasah: FacilityDetails = field(default_factory=FacilityDetails)
    market: FacilityDetails = field(default_factory=FacilityDetails)

    def all(self) -> List[FacilityDetails]:
        return [getattr(self, f.name) for f in fields(self)]


@dataclass(frozen=True)
class RoadDetails:
    """One row of the roads table (Section E). Length is in km."""
    exists: str = NO
    length: Optional[float] = None
    condition: Optional[float] = None


@dataclass(frozen=True)
class Infrastructure:
    asphalt: RoadDetails = field(default_factory=RoadDetails)
    concrete: RoadDetails = field(default_factory=RoadDetails)
    gravel: RoadDetails = field(default_factory=RoadDetails)
    natural: RoadDetails = field(default_factory=RoadDetails)

    def all(self) -> List[RoadDetails]:
        return [getattr(self, f.name) for f in fields(self)]


@dataclass(frozen=True)
class WaterSourceStatus:
    exists: str = NO
    functioning_count: Optional[int] = None
    not_functioning_count: Optional[int] = None


@dataclass(frozen=True)
class WaterSources:
    natural: WaterSourceStatus = field(default_factory=WaterSourceStatus)
    level1: WaterSourceStatus = field(default_factory=WaterSourceStatus)
    level2: WaterSourceStatus = field(default_factory=WaterSourceStatus)
    level3: WaterSourceStatus = field(default_factory=WaterSourceStatus)

    def all(self) -> List[WaterSourceStatus]:
        return [getattr(self, f.name) for f in fields(self)]


@dataclass(frozen=True)
class SanitationTypes:
    water_sealed: bool = False
    pit_latrine: bool = False
    community_cr: bool = False
    open_defecation: bool = False


@dataclass(frozen=True)
class WorkerClass:
    private_household: int = 0
    private_establishment: int = 0
    government: int = 0
    self_employed: int = 0
    employer: int = 0
    ofw: int = 0


@dataclass(frozen=True)
class Agriculture:
    number_of_farmers: int = 0
    number_of_associations: int = 0
    estimated_farm_area_hectares: float = 0.0


@dataclass(frozen=True)
class Pets:
    cats_count: int = 0
    dogs_count: int = 0
    vaccinated_cats: int = 0
    vaccinated_dogs: int = 0


@dataclass(frozen=True)
class BackyardGardens:
    households_with_gardens: int = 0
    common_crops: Tuple[str, ...] = ()


@dataclass(frozen=True)
class HazardDetails:
    # occurrences in the past 12 months
    frequency: int = 0


@dataclass(frozen=True)
class Hazards:
    flood: HazardDetails = field(default_factory=HazardDetails)
    landslide: HazardDetails = field(default_factory=HazardDetails)
    drought: HazardDetails = field(default_factory=HazardDetails)
    earthquake: HazardDetails = field(default_factory=HazardDetails)


@dataclass(frozen=True)
class PriorityItem:
    name: str = ""
    # 0 = not needed .. 3 = very urgent
    rating: int = 0


# -----------------------------
# Yearly profile
# -----------------------------

@dataclass(frozen=True)
class SitioProfile:
    """One year's survey of one sitio.

    Only raw counts and facts are stored. Percentages are always derived by
    the indicator accessors so that they cannot go stale.
    """
    # Section A. Basic information
    municipality: str = ""
    barangay: str = ""
    sitio_name: str = ""
    sitio_code: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    sitio_classification: SitioClassification = field(default_factory=SitioClassification)
    main_access: MainAccess = field(default_factory=MainAccess)

    # Section B. Population & demographics
    total_population: int = 0
    total_households: int = 0
    registered_voters: int = 0
    labor_force_count: int = 0
    school_age_children: int = 0
    population: PopulationBreakdown = field(default_factory=PopulationBreakdown)
    vulnerable_groups: VulnerableGroups = field(default_factory=VulnerableGroups)

    # Section C. Utilities & connectivity
    households_with_toilet: int = 0
    households_with_electricity: int = 0
    electricity_sources: ElectricitySources = field(default_factory=ElectricitySources)
    mobile_signal: str = "none"
    households_with_internet: int = 0

    # Section D / E. Facilities and roads
    facilities: Facilities = field(default_factory=Facilities)
    infrastructure: Infrastructure = field(default_factory=Infrastructure)

    # Section F. Education
    students_per_room: str = "no_classroom"

    # Section G. Water & sanitation
    water_sources: WaterSources = field(default_factory=WaterSources)
    sanitation_types: SanitationTypes = field(default_factory=SanitationTypes)

    # Section H. Livelihood & agriculture
    worker_class: WorkerClass = field(default_factory=WorkerClass)
    average_daily_income: float = 0.0
    agriculture: Agriculture = field(default_factory=Agriculture)
    crops: Tuple[str, ...] = ()
    livestock: Tuple[str, ...] = ()
    pets: Pets = field(default_factory=Pets)
    backyard_gardens: BackyardGardens = field(default_factory=BackyardGardens)

    # Section I. Safety & risk
    hazards: Hazards = field(default_factory=Hazards)
    food_security: str = "secure"

    # Section J / K. Priorities and recommendation (scored elsewhere)
    priorities: Tuple[PriorityItem, ...] = ()
    average_need_score: float = 0.0
    recommendations: Tuple[Any, ...] = ()

    # Section L. Admin-defined custom fields
    custom_fields: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SitioProfile":
        """Build a profile from a (camelCase or snake_case) mapping.

        Missing sections fall back to zero / "no" defaults.
        """
        return _build(cls, data or {})


# -----------------------------
# Multi-year record
# -----------------------------

@dataclass(frozen=True)
class SitioRecord:
    """A sitio's identity plus its yearly profiles.

    `yearly_data` is keyed by integer year and `available_years` lists exactly
    those keys in ascending order. The pairing is checked on construction, so
    comparison code can rely on it without re-validating.
    """
    id: int
    municipality: str
    barangay: str
    sitio_name: str
    coding: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    classification: SitioClassification = field(default_factory=SitioClassification)
    yearly_data: Mapping[int, SitioProfile] = field(default_factory=dict)
    available_years: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        years = tuple(self.available_years)
        if list(years) != sorted(years):
            raise ValueError(f"available_years must be sorted ascending (sitio {self.id})")
        if set(years) != set(self.yearly_data.keys()) or len(set(years)) != len(years):
            raise ValueError(
                f"available_years {list(years)} do not match yearly_data keys "
                f"{sorted(self.yearly_data.keys())} (sitio {self.id})"
            )

    @classmethod
    def create(cls, *, yearly_data: Mapping[Any, SitioProfile], **identity: Any) -> "SitioRecord":
        """Build a record, normalizing year keys to int and sorting them."""
        data = {int(y): p for y, p in yearly_data.items()}
        return cls(yearly_data=data, available_years=tuple(sorted(data)), **identity)

    @property
    def label(self) -> str:
        return f"{self.sitio_name}, {self.barangay}"

    @property
    def latest_year(self) -> Optional[int]:
        return self.available_years[-1] if self.available_years else None

    def profile_for(self, year: int) -> Optional[SitioProfile]:
        return self.yearly_data.get(int(year))

    def with_year(self, year: int, profile: SitioProfile) -> "SitioRecord":
        """Return a copy with one year's profile added (or replaced)."""
        data = dict(self.yearly_data)
        data[int(year)] = profile
        return replace(self, yearly_data=data, available_years=tuple(sorted(data)))

    def without_year(self, year: int) -> "SitioRecord":
        """Return a copy with one year's profile removed."""
        if int(year) not in self.yearly_data:
            raise KeyError(f"Sitio {self.id} has no data for {year}")
        data = {y: p for y, p in self.yearly_data.items() if y != int(year)}
        return replace(self, yearly_data=data, available_years=tuple(sorted(data)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SitioRecord":
        """Build a record from the storage layer's JSON shape."""
        d = {_snake(k): v for k, v in data.items()}
        yearly = {int(y): SitioProfile.from_dict(p) for y, p in (d.get("yearly_data") or {}).items()}
        return cls.create(
            id=int(d["id"]),
            municipality=str(d.get("municipality", "")),
            barangay=str(d.get("barangay", "")),
            sitio_name=str(d.get("sitio_name", "")),
            coding=str(d.get("coding", "") or ""),
            latitude=float(d.get("latitude") or 0.0),
            longitude=float(d.get("longitude") or 0.0),
            classification=_build(SitioClassification, d.get("sitio_classification") or {}),
            yearly_data=yearly,
        )


# -----------------------------
# Dict -> dataclass helpers
# -----------------------------

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")

# camelCase keys that do not map mechanically onto snake_case
_KEY_ALIASES = {
    "laborForce60to64Count": "labor_force_60_to_64_count",
    "noNationalIDCount": "no_national_id_count",
    "communityCR": "community_cr",
}


def _snake(name: str) -> str:
    if name in _KEY_ALIASES:
        return _KEY_ALIASES[name]
    return _CAMEL_RE.sub(r"_\1", name).lower()


def _build(cls, data: Mapping[str, Any]):
    """Recursively build dataclass `cls` from a mapping, ignoring unknown keys."""
    hints = typing.get_type_hints(cls)
    norm = {_snake(str(k)): v for k, v in data.items()}
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in norm:
            continue
        kwargs[f.name] = _coerce(hints[f.name], norm[f.name], f.name)
    return cls(**kwargs)


def _coerce(tp, value: Any, name: str) -> Any:
    origin = typing.get_origin(tp)
    args = typing.get_args(tp)
    if origin is typing.Union:
        if value is None:
            return None
        inner = [a for a in args if a is not type(None)]
        return _coerce(inner[0], value, name)
    if is_dataclass(tp):
        return _build(tp, value or {})
    if origin in (tuple, Tuple):
        items: Iterable[Any] = value or ()
        if args and is_dataclass(args[0]):
            return tuple(_build(args[0], v) for v in items)
        return tuple(items)
    if origin in (dict, collections.abc.Mapping):
        return dict(value or {})
    if tp is bool:
        return _to_bool(value)
    if tp is int:
        return _to_number(value, int, name)
    if tp is float:
        return _to_number(value, float, name)
    if tp is str:
        return "" if value is None else str(value).strip()
    return value


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


def _to_number(value: Any, kind, name: str):
    if value is None or value == "":
        return kind(0)
    try:
        return kind(float(value)) if kind is int else kind(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Field {name!r} expects a number, got {value!r}") from e
