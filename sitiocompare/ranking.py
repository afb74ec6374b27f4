"""
Ranking
=======

Standard competition ranking ("1, 1, 3") of the subjects of one indicator.
Direction comes from the indicator's polarity: descending unless lower is
better. Subjects without a value are left unranked.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from .dsa import merge_sort
from .extract import MetricSubjectValue
from .models import Polarity


@dataclass(frozen=True)
class SummaryStats:
    min: Optional[float]
    max: Optional[float]
    average: Optional[float]


def rank_subjects(values: Sequence[MetricSubjectValue], polarity: Any = Polarity.NEUTRAL) -> Dict[Any, int]:
    """Map subject id -> rank (1 = best). Ties share the lowest rank."""
    pol = Polarity.coerce(polarity)
    ranked = [v for v in values if v.value is not None]
    ordered = merge_sort(ranked, key=lambda v: v.value, reverse=pol is not Polarity.WORSE)

    ranks: Dict[Any, int] = {}
    prev_value = None
    prev_rank = 0
    for pos, v in enumerate(ordered, start=1):
        rank = prev_rank if (pos > 1 and v.value == prev_value) else pos
        ranks[v.subject_id] = rank
        prev_value, prev_rank = v.value, rank
    return ranks


def summary_stats(values: Sequence[MetricSubjectValue]) -> SummaryStats:
    nums = [v.value for v in values if v.value is not None]
    if not nums:
        return SummaryStats(None, None, None)
    return SummaryStats(min=min(nums), max=max(nums), average=sum(nums) / len(nums))
