"""
Settings
========

Admin-configurable limits and engine defaults. Everything has a default, so
a JSON settings file only needs the keys it changes:

    {"max_sitios": 6, "max_years": 5, "default_metric_groups": ["demographics"]}
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple
import json
import logging

from .indicators import METRIC_GROUPS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonLimits:
    """Upper bounds on subjects per comparison.

    max_sitios bounds spatial sitios and aggregate entities alike.
    """
    max_sitios: int = 4
    max_years: int = 5

    def __post_init__(self) -> None:
        for name in ("max_sitios", "max_years"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, int) or v < 1:
                raise ValueError(f"{name} must be a positive integer, got {v!r}")


DEFAULT_LIMITS = ComparisonLimits()


@dataclass(frozen=True)
class EngineSettings:
    limits: ComparisonLimits = field(default_factory=ComparisonLimits)
    # year used by the CLI when a command gives none (None = latest in the snapshot)
    default_year: Optional[int] = None
    default_metric_groups: Tuple[str, ...] = METRIC_GROUPS

    def __post_init__(self) -> None:
        unknown = [g for g in self.default_metric_groups if g not in METRIC_GROUPS]
        if unknown:
            raise ValueError(f"Unknown metric group(s): {', '.join(unknown)}")


def limits_from_dict(data: Mapping[str, Any]) -> ComparisonLimits:
    """Accepts snake_case or the storage layer's camelCase keys."""
    max_sitios = data.get("max_sitios", data.get("maxSitios", DEFAULT_LIMITS.max_sitios))
    max_years = data.get("max_years", data.get("maxYears", DEFAULT_LIMITS.max_years))
    return ComparisonLimits(max_sitios=max_sitios, max_years=max_years)


def load_limits(path: str) -> ComparisonLimits:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    limits = limits_from_dict(data)
    log.info("Loaded comparison limits from %s: %s", path, limits)
    return limits


def load_settings(path: Optional[str] = None) -> EngineSettings:
    """Read engine settings from a JSON file, or return the defaults."""
    if not path:
        return EngineSettings()
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    groups = data.get("default_metric_groups")
    year = data.get("default_year")
    settings = EngineSettings(
        limits=limits_from_dict(data),
        default_year=int(year) if year is not None else None,
        default_metric_groups=tuple(groups) if groups else METRIC_GROUPS,
    )
    log.info("Loaded engine settings from %s", path)
    return settings
