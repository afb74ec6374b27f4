"""
Comparison engine
=================

This is the heart of the project. A comparison request goes through:

1) Validate the config against the limits -> list of messages (never raises)
2) Resolve subjects
   - temporal:  one sitio, its profile for each requested year (ascending)
   - spatial:   several sitios, their profile for one year (requested order)
   - aggregate: several municipalities/barangays, rolled up for one year
3) Extract one aligned row of values per indicator, grouped by metric group
4) Derive comparison data
   - temporal:  year-over-year diffs + overall first -> last trend
   - spatial/aggregate: rankings + min/max/average per indicator

Every call recomputes the result from scratch; results are frozen and the
sitio snapshot is never modified.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union
import logging

from .aggregate import AGGREGATE_LEVELS, AggregatedEntityData, aggregate_entity
from .extract import ComparisonMetricValue, Subject, extract_metrics
from .indicators import (
    DEFAULT_REGISTRY,
    METRIC_GROUPS,
    IndicatorRegistry,
    custom_field_indicator,
)
from .indices import Indices, build_indices, entity_sitio_ids
from .models import Polarity, SitioRecord
from .ranking import SummaryStats, rank_subjects, summary_stats
from .settings import DEFAULT_LIMITS, ComparisonLimits
from .trend import ComparisonDiff, compute_diff

log = logging.getLogger(__name__)

TEMPORAL = "temporal"
SPATIAL = "spatial"
AGGREGATE = "aggregate"
COMPARISON_TYPES = (TEMPORAL, SPATIAL, AGGREGATE)


@dataclass(frozen=True)
class ComparisonConfig:
    type: str
    sitio_ids: Tuple[int, ...] = ()
    years: Tuple[int, ...] = ()
    metric_groups: Tuple[str, ...] = ()
    aggregate_level: Optional[str] = None
    aggregate_entities: Tuple[str, ...] = ()
    # barangay level only: restrict entities to one municipality
    municipality_filter: Optional[str] = None

    def __post_init__(self) -> None:
        # accept lists from callers, store tuples
        for name in ("sitio_ids", "years", "metric_groups", "aggregate_entities"):
            object.__setattr__(self, name, tuple(getattr(self, name)))


# -----------------------------
# Results
# -----------------------------

@dataclass(frozen=True)
class YearChange:
    from_year: int
    to_year: int
    changes: Mapping[str, ComparisonDiff]


class _ResultView:
    """Shared read helpers of the three result shapes."""

    def all_metrics(self) -> Iterator[ComparisonMetricValue]:
        for group in METRIC_GROUPS:
            yield from self.metrics_by_group.get(group, ())

    def metric(self, key: str) -> Optional[ComparisonMetricValue]:
        return next((m for m in self.all_metrics() if m.key == key), None)

    def display_labels(self) -> Dict[str, str]:
        """Subject id -> label that is unique within this result.

        Sitio labels repeat across municipalities ("Purok 1, Poblacion"); a
        label shared by several subjects gets the subject id appended.
        """
        counts = Counter(self.subject_labels)
        return {
            sid: f"{label} [{sid}]" if counts[label] > 1 else label
            for sid, label in zip(self.subject_ids, self.subject_labels)
        }


@dataclass(frozen=True)
class TemporalComparisonResult(_ResultView):
    sitio: SitioRecord
    years: Tuple[int, ...]
    subject_ids: Tuple[str, ...]
    subject_labels: Tuple[str, ...]
    metrics_by_group: Mapping[str, Tuple[ComparisonMetricValue, ...]]
    year_changes: Tuple[YearChange, ...]
    overall_trend: Mapping[str, ComparisonDiff]
    type: str = TEMPORAL


@dataclass(frozen=True)
class SpatialComparisonResult(_ResultView):
    sitios: Tuple[SitioRecord, ...]
    year: int
    subject_ids: Tuple[str, ...]
    subject_labels: Tuple[str, ...]
    metrics_by_group: Mapping[str, Tuple[ComparisonMetricValue, ...]]
    rankings: Mapping[str, Mapping[str, int]]
    stats: Mapping[str, SummaryStats]
    type: str = SPATIAL


@dataclass(frozen=True)
class AggregateComparisonResult(_ResultView):
    level: str
    year: int
    entities: Tuple[AggregatedEntityData, ...]
    subject_ids: Tuple[str, ...]
    subject_labels: Tuple[str, ...]
    metrics_by_group: Mapping[str, Tuple[ComparisonMetricValue, ...]]
    rankings: Mapping[str, Mapping[str, int]]
    stats: Mapping[str, SummaryStats]
    municipality_filter: Optional[str] = None
    type: str = AGGREGATE


ComparisonResult = Union[TemporalComparisonResult, SpatialComparisonResult, AggregateComparisonResult]


@dataclass(frozen=True)
class ComparisonOutcome:
    """Either a complete result or the validation messages, never both."""
    result: Optional[ComparisonResult] = None
    errors: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.result is not None


# -----------------------------
# Validation
# -----------------------------

def _count_rule(n: int, lo: int, hi: int, too_few: str, too_many: str) -> List[str]:
    if n < lo:
        return [too_few]
    if n > hi:
        return [too_many]
    return []


def validate_comparison_config(
    config: ComparisonConfig,
    limits: Optional[ComparisonLimits] = None,
    sitios: Optional[Sequence[SitioRecord]] = None,
) -> List[str]:
    """Every problem with `config`, as human-readable messages ([] when valid).

    When the sitio snapshot is given, ids and entity names are checked
    against it as well.
    """
    lim = limits or DEFAULT_LIMITS
    errors: List[str] = []

    if config.type == TEMPORAL:
        if len(config.sitio_ids) != 1:
            errors.append("Temporal comparison requires exactly 1 sitio")
        errors += _count_rule(len(config.years), 2, lim.max_years,
                              "Select at least 2 years", f"Maximum {lim.max_years} years allowed")
    elif config.type == SPATIAL:
        errors += _count_rule(len(config.sitio_ids), 2, lim.max_sitios,
                              "Select at least 2 sitios", f"Maximum {lim.max_sitios} sitios allowed")
        if len(config.years) != 1:
            errors.append("Spatial comparison requires exactly 1 year")
    elif config.type == AGGREGATE:
        if not config.aggregate_level:
            errors.append("Aggregate level is required")
        elif config.aggregate_level not in AGGREGATE_LEVELS:
            errors.append(f"Unknown aggregate level: {config.aggregate_level}")
        errors += _count_rule(len(config.aggregate_entities), 2, lim.max_sitios,
                              "Select at least 2 entities to compare", f"Maximum {lim.max_sitios} entities allowed")
        if len(config.years) != 1:
            errors.append("Aggregate comparison requires exactly 1 year")
    else:
        errors.append(f"Unknown comparison type: {config.type}")

    if not config.metric_groups:
        errors.append("At least one metric group must be selected")
    for g in config.metric_groups:
        if g not in METRIC_GROUPS:
            errors.append(f"Unknown metric group: {g}")

    if len(set(config.sitio_ids)) != len(config.sitio_ids):
        errors.append("Duplicate sitios selected")
    if len(set(config.years)) != len(config.years):
        errors.append("Duplicate years selected")
    if len(set(config.aggregate_entities)) != len(config.aggregate_entities):
        errors.append("Duplicate entities selected")

    if sitios is not None:
        errors += _snapshot_errors(config, build_indices(sitios))
    return errors


def _snapshot_errors(config: ComparisonConfig, idx: Indices) -> List[str]:
    errors: List[str] = []
    if config.type in (TEMPORAL, SPATIAL):
        for sid in config.sitio_ids:
            if sid not in idx.by_id:
                errors.append(f"Unknown sitio id: {sid}")
    elif config.type == AGGREGATE and config.aggregate_level in AGGREGATE_LEVELS:
        for name in config.aggregate_entities:
            if not entity_sitio_ids(idx, config.aggregate_level, name, config.municipality_filter):
                errors.append(f"No sitios found for {config.aggregate_level} {name}")
    return errors


# -----------------------------
# Comparison strategies
# -----------------------------

def _trend_polarity(polarity: Polarity) -> Polarity:
    # Year-over-year colouring reads growth of a neutral count (population,
    # households) as good news; compute_diff itself stays neutral.
    return Polarity.BETTER if polarity is Polarity.NEUTRAL else polarity


def _metrics_by_group(subjects: Sequence[Subject], groups: Sequence[str], reg: IndicatorRegistry):
    return {g: tuple(extract_metrics(subjects, reg.keys(g), reg)) for g in groups}


def _diffs(metrics: Sequence[ComparisonMetricValue], i: int, j: int) -> Dict[str, ComparisonDiff]:
    out: Dict[str, ComparisonDiff] = {}
    for m in metrics:
        a, b = m.values[i].value, m.values[j].value
        # no diff against a year without data
        if a is None or b is None:
            continue
        out[m.key] = compute_diff(a, b, _trend_polarity(m.polarity))
    return out


def _rankings_and_stats(metrics: Sequence[ComparisonMetricValue]):
    rankings: Dict[str, Dict[str, int]] = {}
    stats: Dict[str, SummaryStats] = {}
    for m in metrics:
        if all(v.value is None for v in m.values):
            continue
        rankings[m.key] = rank_subjects(m.values, m.polarity)
        stats[m.key] = summary_stats(m.values)
    return rankings, stats


def _flatten(metrics_by_group) -> List[ComparisonMetricValue]:
    return [m for g in METRIC_GROUPS for m in metrics_by_group.get(g, ())]


def _temporal(config: ComparisonConfig, idx: Indices, reg: IndicatorRegistry) -> TemporalComparisonResult:
    sitio = idx.by_id[config.sitio_ids[0]]
    years = sorted(config.years)
    subjects = [Subject(str(y), str(y), sitio.profile_for(y)) for y in years]
    mbg = _metrics_by_group(subjects, config.metric_groups, reg)
    flat = _flatten(mbg)

    missing = [y for y in years if sitio.profile_for(y) is None]
    if missing:
        log.debug("Sitio %s has no data for %s", sitio.id, missing)

    year_changes = tuple(
        YearChange(years[i - 1], years[i], _diffs(flat, i - 1, i)) for i in range(1, len(years))
    )
    return TemporalComparisonResult(
        sitio=sitio,
        years=tuple(years),
        subject_ids=tuple(s.subject_id for s in subjects),
        subject_labels=tuple(s.subject_label for s in subjects),
        metrics_by_group=mbg,
        year_changes=year_changes,
        overall_trend=_diffs(flat, 0, len(years) - 1),
    )


def _spatial(config: ComparisonConfig, idx: Indices, reg: IndicatorRegistry) -> SpatialComparisonResult:
    year = config.years[0]
    sitios = [idx.by_id[sid] for sid in config.sitio_ids]
    subjects = [Subject(str(s.id), s.label, s.profile_for(year)) for s in sitios]
    mbg = _metrics_by_group(subjects, config.metric_groups, reg)
    rankings, stats = _rankings_and_stats(_flatten(mbg))
    return SpatialComparisonResult(
        sitios=tuple(sitios),
        year=year,
        subject_ids=tuple(s.subject_id for s in subjects),
        subject_labels=tuple(s.subject_label for s in subjects),
        metrics_by_group=mbg,
        rankings=rankings,
        stats=stats,
    )


def _aggregate(config: ComparisonConfig, idx: Indices, reg: IndicatorRegistry) -> AggregateComparisonResult:
    year = config.years[0]
    level = config.aggregate_level
    entities: List[AggregatedEntityData] = []
    for name in config.aggregate_entities:
        ids = entity_sitio_ids(idx, level, name, config.municipality_filter)
        entities.append(aggregate_entity(name, level, [idx.by_id[i] for i in ids], year, reg))

    subjects = [Subject(e.name, e.name, e.profile, values=e.metrics) for e in entities]
    mbg = _metrics_by_group(subjects, config.metric_groups, reg)
    rankings, stats = _rankings_and_stats(_flatten(mbg))
    return AggregateComparisonResult(
        level=level,
        year=year,
        entities=tuple(entities),
        subject_ids=tuple(s.subject_id for s in subjects),
        subject_labels=tuple(s.subject_label for s in subjects),
        metrics_by_group=mbg,
        rankings=rankings,
        stats=stats,
        municipality_filter=config.municipality_filter,
    )


_STRATEGIES = {TEMPORAL: _temporal, SPATIAL: _spatial, AGGREGATE: _aggregate}


def _run(config: ComparisonConfig, idx: Indices,
         limits: ComparisonLimits, reg: IndicatorRegistry) -> ComparisonOutcome:
    errors = validate_comparison_config(config, limits) + _snapshot_errors(config, idx)
    if errors:
        log.info("Rejected %s comparison: %s", config.type, "; ".join(errors))
        return ComparisonOutcome(errors=tuple(errors))
    result = _STRATEGIES[config.type](config, idx, reg)
    log.info("Ran %s comparison over %d subjects", config.type, len(result.subject_ids))
    return ComparisonOutcome(result=result)


def run_comparison(
    config: ComparisonConfig,
    sitios: Sequence[SitioRecord],
    limits: Optional[ComparisonLimits] = None,
    registry: Optional[IndicatorRegistry] = None,
) -> ComparisonOutcome:
    """Validate and run one comparison over the sitio snapshot."""
    return _run(config, build_indices(sitios), limits or DEFAULT_LIMITS, registry or DEFAULT_REGISTRY)


# -----------------------------
# Facade
# -----------------------------

def discover_custom_fields(sitios: Sequence[SitioRecord]) -> List[str]:
    """Custom field ids present anywhere in the snapshot, sorted."""
    ids = set()
    for s in sitios:
        for p in s.yearly_data.values():
            ids.update(p.custom_fields or {})
    return sorted(ids)


@dataclass
class ComparisonEngine:
    """Sitio comparison engine.

    The engine stores:
    - sitios: the snapshot (never modified)
    - idx: precomputed indices for subject resolution
    - limits / registry: the bounds and indicators every comparison uses
    """
    sitios: List[SitioRecord]
    idx: Indices
    limits: ComparisonLimits = DEFAULT_LIMITS
    registry: IndicatorRegistry = DEFAULT_REGISTRY
    dataset_path: Optional[str] = None
    # CLI commands, replayed in reports
    command_log: List[str] = field(default_factory=list)

    @classmethod
    def from_records(
        cls,
        sitios: Sequence[SitioRecord],
        limits: Optional[ComparisonLimits] = None,
        registry: Optional[IndicatorRegistry] = None,
        dataset_path: Optional[str] = None,
    ) -> "ComparisonEngine":
        """Build the engine, registering an indicator for every custom field found."""
        reg = registry or DEFAULT_REGISTRY
        extra = [custom_field_indicator(fid, fid) for fid in discover_custom_fields(sitios)
                 if f"custom:{fid}" not in reg]
        if extra:
            reg = reg.with_indicators(extra)
        return cls(
            sitios=list(sitios),
            idx=build_indices(sitios),
            limits=limits or DEFAULT_LIMITS,
            registry=reg,
            dataset_path=dataset_path,
        )

    def validate(self, config: ComparisonConfig) -> List[str]:
        return validate_comparison_config(config, self.limits) + _snapshot_errors(config, self.idx)

    def compare(self, config: ComparisonConfig) -> ComparisonOutcome:
        return _run(config, self.idx, self.limits, self.registry)

    # ---------------- Snapshot helpers ----------------
    def years(self) -> List[int]:
        return list(self.idx.years_sorted)

    def municipalities(self) -> List[str]:
        return sorted(self.idx.by_municipality)

    def barangays(self, municipality: Optional[str] = None) -> List[str]:
        if municipality:
            return sorted(b for (m, b) in self.idx.by_municipality_barangay if m == municipality)
        return sorted(self.idx.by_barangay)


# -----------------------------
# JSON export
# -----------------------------

def _diff_dict(d: ComparisonDiff) -> Dict[str, Any]:
    return {
        "previous_value": d.previous_value,
        "current_value": d.current_value,
        "change": d.change,
        "change_percent": d.change_percent,
        "trend": d.trend,
        "is_positive": d.is_positive,
    }


def _metric_dict(m: ComparisonMetricValue) -> Dict[str, Any]:
    return {
        "key": m.key,
        "label": m.label,
        "category": m.category,
        "unit": m.unit,
        "is_percentage": m.is_percentage,
        "polarity": m.polarity.value,
        "values": [
            {"subject_id": v.subject_id, "subject_label": v.subject_label,
             "value": v.value, "display_value": v.display_value}
            for v in m.values
        ],
    }


def result_to_dict(result: ComparisonResult) -> Dict[str, Any]:
    """JSON-serializable view of a result (sitio profiles are not included)."""
    out: Dict[str, Any] = {
        "type": result.type,
        "subjects": [{"id": sid, "label": label} for sid, label in zip(result.subject_ids, result.subject_labels)],
        "metrics_by_group": {g: [_metric_dict(m) for m in ms] for g, ms in result.metrics_by_group.items()},
    }
    if isinstance(result, TemporalComparisonResult):
        out["sitio_id"] = result.sitio.id
        out["years"] = list(result.years)
        out["year_changes"] = [
            {"from_year": yc.from_year, "to_year": yc.to_year,
             "changes": {k: _diff_dict(d) for k, d in yc.changes.items()}}
            for yc in result.year_changes
        ]
        out["overall_trend"] = {k: _diff_dict(d) for k, d in result.overall_trend.items()}
        return out

    out["year"] = result.year
    out["rankings"] = {k: dict(r) for k, r in result.rankings.items()}
    out["stats"] = {k: {"min": s.min, "max": s.max, "average": s.average} for k, s in result.stats.items()}
    if isinstance(result, AggregateComparisonResult):
        out["level"] = result.level
        out["municipality_filter"] = result.municipality_filter
        out["entities"] = [
            {
                "name": e.name,
                "total_population": e.total_population,
                "total_households": e.total_households,
                "sitio_count": e.sitio_count,
                "excluded_sitio_ids": list(e.excluded_sitio_ids),
                "stale_contributors": [
                    {"sitio_id": c.sitio_id, "sitio_label": c.sitio_label, "year_used": c.year_used}
                    for c in e.stale_contributors
                ],
            }
            for e in result.entities
        ]
    else:
        out["sitio_ids"] = [s.id for s in result.sitios]
    return out
