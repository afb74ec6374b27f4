"""
Shareable comparison links
==========================

A ComparisonConfig is stored in a URL query string with short keys:

    t=s&s=3,7&y=2024&m=du

t  type (t/s/a)            s  sitio ids          y  years
m  metric groups, one letter each (d u i f l s e c)
al aggregate level (m/b)   ae aggregate entities mf municipality filter

Entity names are percent-encoded one by one before they are joined, so a
name may itself contain a comma ("Sto. Nino, Upper").
"""

from __future__ import annotations
from typing import Dict, List, Optional
from urllib.parse import parse_qs, quote, unquote, urlencode

from .engine import AGGREGATE, SPATIAL, TEMPORAL, ComparisonConfig

_TYPE_CODES = {TEMPORAL: "t", SPATIAL: "s", AGGREGATE: "a"}
_GROUP_CODES = {
    "demographics": "d",
    "utilities": "u",
    "infrastructure": "i",
    "facilities": "f",
    "livelihood": "l",
    "safety": "s",
    "education": "e",
    "customFields": "c",
}
_LEVEL_CODES = {"municipality": "m", "barangay": "b"}

_TYPES = {v: k for k, v in _TYPE_CODES.items()}
_GROUPS = {v: k for k, v in _GROUP_CODES.items()}
_LEVELS = {v: k for k, v in _LEVEL_CODES.items()}


class ConfigParseError(ValueError):
    pass


def serialize_config(config: ComparisonConfig) -> str:
    params: Dict[str, str] = {
        "t": _TYPE_CODES[config.type],
        "s": ",".join(str(i) for i in config.sitio_ids),
        "y": ",".join(str(y) for y in config.years),
        "m": "".join(_GROUP_CODES[g] for g in config.metric_groups),
    }
    if config.aggregate_level:
        params["al"] = _LEVEL_CODES[config.aggregate_level]
    if config.aggregate_entities:
        params["ae"] = ",".join(quote(e, safe="") for e in config.aggregate_entities)
    if config.municipality_filter:
        params["mf"] = config.municipality_filter
    return urlencode(params)


def _int_list(text: str, key: str) -> List[int]:
    out: List[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            out.append(int(part))
        except ValueError as e:
            raise ConfigParseError(f"Bad number {part!r} in {key!r}") from e
    return out


def parse_config(text: str) -> Optional[ComparisonConfig]:
    """Rebuild a config from a link's query string.

    Returns None when the type, years or metric groups are missing (or the
    sitio ids, for temporal/spatial links). Unknown group letters are
    dropped; malformed numbers raise ConfigParseError.
    """
    qs = {k: v[0] for k, v in parse_qs(text.lstrip("?"), keep_blank_values=True).items()}
    ctype = _TYPES.get(qs.get("t", ""))
    years = qs.get("y", "")
    groups = qs.get("m", "")
    sitios = qs.get("s", "")
    if ctype is None or not years or not groups:
        return None
    if ctype != AGGREGATE and not sitios:
        return None

    level = _LEVELS.get(qs.get("al", ""))
    entities = [unquote(e) for e in qs.get("ae", "").split(",") if e]
    return ComparisonConfig(
        type=ctype,
        sitio_ids=tuple(_int_list(sitios, "s")),
        years=tuple(_int_list(years, "y")),
        metric_groups=tuple(_GROUPS[c] for c in groups if c in _GROUPS),
        aggregate_level=level,
        aggregate_entities=tuple(entities),
        municipality_filter=qs.get("mf") or None,
    )
