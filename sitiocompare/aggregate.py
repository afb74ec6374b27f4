"""
Aggregation (municipality / barangay roll-ups)
==============================================

An administrative entity is compared as if it were one big sitio:

1) pick each member sitio's profile for the target year, or the latest
   earlier year it has (that sitio is then a *stale contributor*),
2) roll the contributing profiles up into one synthetic profile
   (counts summed, yes/no facts OR-ed, ...),
3) evaluate the indicators on the rolled-up profile.

Step 3 is what keeps rates correct: electrification of the entity is
sum(households with electricity) / sum(households), never the average of the
per-sitio percentages. Ordinal scores (signal quality, facility condition,
food security) have no meaningful sum, so the ratings of all contributors are
pooled and averaged instead (`Rollup.MEAN`); unrated sitios add no rating.
"""

from __future__ import annotations
from dataclasses import dataclass, fields, is_dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import logging

from .indicators import DEFAULT_REGISTRY, IndicatorRegistry, Rollup
from .indices import profile_at_or_before
from .models import NO, YES, SitioProfile, SitioRecord

log = logging.getLogger(__name__)

AGGREGATE_LEVELS = ("municipality", "barangay")


@dataclass(frozen=True)
class Contributor:
    sitio_id: int
    sitio_label: str
    year_used: int
    is_stale: bool


@dataclass(frozen=True)
class AggregatedEntityData:
    name: str
    level: str
    year: int
    total_population: int
    total_households: int
    sitio_count: int
    contributors: Tuple[Contributor, ...]
    excluded_sitio_ids: Tuple[int, ...]
    metrics: Mapping[str, Optional[float]]
    profile: Optional[SitioProfile] = None

    @property
    def stale_contributors(self) -> Tuple[Contributor, ...]:
        return tuple(c for c in self.contributors if c.is_stale)

    @property
    def has_stale_data(self) -> bool:
        return any(c.is_stale for c in self.contributors)


# -----------------------------
# Profile roll-up
# -----------------------------

# averaged (over contributors that report them) instead of summed
_MEAN_FIELDS = {"latitude", "longitude", "condition", "distance_to_nearest", "average_need_score"}
# lists of per-sitio records that have no meaning once combined
_DROPPED_FIELDS = {"priorities", "recommendations"}


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _combine(name: str, values: Sequence[Any]) -> Any:
    present = [v for v in values if v is not None]
    if not present:
        return None
    first = present[0]
    if is_dataclass(first):
        return _combine_dataclass(type(first), present)
    if name in _DROPPED_FIELDS:
        return ()
    if name == "custom_fields":
        return _combine_custom(present)
    if isinstance(first, bool):
        return any(present)
    if name == "average_daily_income":
        # households without a reported income do not pull the mean down
        return _mean([v for v in present if v > 0])
    if name in _MEAN_FIELDS:
        return _mean(present)
    if isinstance(first, (int, float)):
        return sum(present)
    if name == "exists":
        return YES if any(v == YES for v in present) else NO
    if isinstance(first, str):
        return first if all(v == first for v in present) else ""
    if isinstance(first, tuple):
        seen: Dict[Any, None] = {}
        for t in present:
            for item in t:
                seen.setdefault(item, None)
        return tuple(seen)
    return first


def _combine_dataclass(cls, items: Sequence[Any]):
    return cls(**{f.name: _combine(f.name, [getattr(i, f.name) for i in items]) for f in fields(cls)})


def _combine_custom(maps: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    keys: Dict[str, None] = {}
    for m in maps:
        for k in m:
            keys.setdefault(k, None)
    out: Dict[str, Any] = {}
    for k in keys:
        vals = [m[k] for m in maps if m.get(k) is not None]
        if not vals:
            continue
        if all(isinstance(v, bool) for v in vals):
            out[k] = any(vals)
        elif all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in vals):
            out[k] = sum(vals)
        elif all(isinstance(v, str) and v.lower() in (YES, NO) for v in vals):
            out[k] = YES if any(v.lower() == YES for v in vals) else NO
        else:
            out[k] = vals[0]
    return out


def rollup_profiles(profiles: Sequence[SitioProfile], name: str = "", level: str = "municipality") -> SitioProfile:
    """Combine several sitio-year profiles into one synthetic profile.

    The result carries the entity name in place of the sitio name; the
    municipality/barangay fields keep their value when all inputs agree.
    """
    if not profiles:
        raise ValueError("rollup_profiles needs at least one profile")
    rolled = _combine_dataclass(SitioProfile, list(profiles))
    if level == "barangay":
        return replace(rolled, sitio_name=name, barangay=name or rolled.barangay, sitio_code="")
    return replace(rolled, sitio_name=name, municipality=name or rolled.municipality, sitio_code="")


# -----------------------------
# Entity aggregation
# -----------------------------

def aggregate_entity(
    entity_name: str,
    level: str,
    sitios_in_entity: Sequence[SitioRecord],
    year: int,
    registry: Optional[IndicatorRegistry] = None,
) -> AggregatedEntityData:
    """Roll the member sitios of one municipality/barangay up for `year`."""
    if level not in AGGREGATE_LEVELS:
        raise ValueError("level must be 'municipality' or 'barangay'")
    reg = registry or DEFAULT_REGISTRY

    contributors: List[Contributor] = []
    profiles: List[SitioProfile] = []
    excluded: List[int] = []
    for s in sitios_in_entity:
        used, prof = profile_at_or_before(s, year)
        if prof is None:
            log.debug("%s %s: sitio %s has no data at or before %s", level, entity_name, s.id, year)
            excluded.append(s.id)
            continue
        stale = used != year
        if stale:
            log.warning("%s %s: sitio %s has no %s data, using %s", level, entity_name, s.id, year, used)
        contributors.append(Contributor(s.id, s.label, used, stale))
        profiles.append(prof)

    if not profiles:
        return AggregatedEntityData(
            name=entity_name,
            level=level,
            year=year,
            total_population=0,
            total_households=0,
            sitio_count=0,
            contributors=(),
            excluded_sitio_ids=tuple(excluded),
            metrics={key: None for key in reg.keys()},
            profile=None,
        )

    rolled = rollup_profiles(profiles, entity_name, level)
    metrics: Dict[str, Optional[float]] = {}
    for ind in reg.indicators:
        if ind.rollup is Rollup.MEAN:
            metrics[ind.key] = _mean([v for p in profiles for v in ind.observed(p)])
        else:
            metrics[ind.key] = ind.value(rolled)

    return AggregatedEntityData(
        name=entity_name,
        level=level,
        year=year,
        total_population=rolled.total_population,
        total_households=rolled.total_households,
        sitio_count=len(contributors),
        contributors=tuple(contributors),
        excluded_sitio_ids=tuple(excluded),
        metrics=metrics,
        profile=rolled,
    )
