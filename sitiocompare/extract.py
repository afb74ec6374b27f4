"""
Metric extraction
=================

Turns N subjects (years of one sitio, several sitios, or rolled-up
municipalities/barangays) into one aligned row per indicator:

    ComparisonMetricValue(key="totalPopulation", values=[subject1, subject2, ...])

Every row lists the subjects in the same order they were given, so chart and
table layers can zip rows together without re-matching ids.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple
import logging

from .indicators import IndicatorRegistry, DEFAULT_REGISTRY
from .models import Polarity, SitioProfile

log = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class Subject:
    """One column of a comparison.

    `values` holds precomputed indicator values (used for aggregate subjects);
    a key found there wins over evaluating the accessor on `profile`.
    """
    subject_id: Any
    subject_label: str
    profile: Optional[SitioProfile]
    values: Optional[Mapping[str, Optional[float]]] = None


@dataclass(frozen=True)
class MetricSubjectValue:
    subject_id: Any
    subject_label: str
    value: Optional[float]
    display_value: str


@dataclass(frozen=True)
class ComparisonMetricValue:
    key: str
    label: str
    category: str
    unit: str
    is_percentage: bool
    polarity: Polarity
    values: Tuple[MetricSubjectValue, ...]

    def numeric_values(self) -> List[Optional[float]]:
        return [v.value for v in self.values]

    def value_for(self, subject_id: Any) -> Optional[float]:
        for v in self.values:
            if v.subject_id == subject_id:
                return v.value
        return None


def extract_metrics(
    subjects: Sequence[Subject],
    indicator_keys: Sequence[str],
    registry: Optional[IndicatorRegistry] = None,
) -> List[ComparisonMetricValue]:
    """Evaluate each known indicator for every subject, in subject order."""
    reg = registry or DEFAULT_REGISTRY
    out: List[ComparisonMetricValue] = []
    for key in indicator_keys:
        ind = reg.get(key)
        if ind is None:
            log.warning("Unknown indicator %r skipped", key)
            continue
        row: List[MetricSubjectValue] = []
        for s in subjects:
            if s.values is not None and key in s.values:
                value = s.values[key]
            elif s.profile is not None:
                value = ind.value(s.profile)
            else:
                value = None
            display = ind.format(value) if value is not None else NOT_AVAILABLE
            row.append(MetricSubjectValue(s.subject_id, s.subject_label, value, display))
        out.append(ComparisonMetricValue(
            key=ind.key,
            label=ind.label,
            category=ind.category,
            unit=ind.unit,
            is_percentage=ind.is_percentage,
            polarity=ind.polarity,
            values=tuple(row),
        ))
    return out
