"""
Diff / trend
============

Year-over-year change of one indicator, with a verdict on whether the change
is good news for that indicator's polarity.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from .models import Polarity

UP = "up"
DOWN = "down"
FLAT = "flat"


@dataclass(frozen=True)
class ComparisonDiff:
    previous_value: float
    current_value: float
    change: float
    change_percent: float
    trend: str
    is_positive: bool


def percent_change(previous: float, current: float) -> float:
    """Relative change in percent.

    0 -> 0 is 0%; growth from 0 is reported as +100% (there is no finite
    relative change from zero).
    """
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    return (current - previous) / previous * 100


def compute_diff(previous: float, current: float, polarity: Any = Polarity.NEUTRAL) -> ComparisonDiff:
    """Change from `previous` to `current`.

    `polarity` may also be given as the legacy True / False / None flag.
    """
    pol = Polarity.coerce(polarity)
    change = current - previous
    if change > 0:
        trend = UP
    elif change < 0:
        trend = DOWN
    else:
        trend = FLAT
    is_positive = (change > 0 and pol is Polarity.BETTER) or (change < 0 and pol is Polarity.WORSE)
    return ComparisonDiff(
        previous_value=previous,
        current_value=current,
        change=change,
        change_percent=percent_change(previous, current),
        trend=trend,
        is_positive=is_positive,
    )
