"""
Indices (precomputed lookup tables)
===================================

The engine builds simple indices over the sitio snapshot once, so that
comparison requests can resolve their subjects without rescanning it.

Example:
- `by_municipality["BANGA"]` gives the sorted sitio ids of that municipality.
- `years_sorted` lists every survey year present in the snapshot.

Barangay names repeat across municipalities, so barangays are also indexed by
(municipality, barangay).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from .dsa import floor_value
from .models import SitioProfile, SitioRecord


@dataclass
class Indices:
    """Container of precomputed indices for fast subject resolution."""
    by_id: Dict[int, SitioRecord]
    by_municipality: Dict[str, List[int]]
    by_barangay: Dict[str, List[int]]
    by_municipality_barangay: Dict[Tuple[str, str], List[int]]
    years_sorted: List[int]


def build_indices(sitios: Sequence[SitioRecord]) -> Indices:
    """Build indices from the loaded snapshot."""
    by_id: Dict[int, SitioRecord] = {}
    by_municipality: Dict[str, List[int]] = {}
    by_barangay: Dict[str, List[int]] = {}
    by_mb: Dict[Tuple[str, str], List[int]] = {}
    years = set()

    for s in sitios:
        by_id[s.id] = s
        by_municipality.setdefault(s.municipality, []).append(s.id)
        by_barangay.setdefault(s.barangay, []).append(s.id)
        by_mb.setdefault((s.municipality, s.barangay), []).append(s.id)
        years.update(s.available_years)

    for d in (by_municipality, by_barangay, by_mb):
        for k in d:
            d[k].sort()

    return Indices(
        by_id=by_id,
        by_municipality=by_municipality,
        by_barangay=by_barangay,
        by_municipality_barangay=by_mb,
        years_sorted=sorted(years),
    )


def entity_sitio_ids(idx: Indices, level: str, name: str, municipality_filter: Optional[str] = None) -> List[int]:
    """Sitio ids belonging to one municipality or barangay."""
    if level == "municipality":
        return list(idx.by_municipality.get(name, []))
    if level == "barangay":
        if municipality_filter:
            return list(idx.by_municipality_barangay.get((municipality_filter, name), []))
        return list(idx.by_barangay.get(name, []))
    raise ValueError("level must be 'municipality' or 'barangay'")


def resolve_year(sitio: SitioRecord, year: int) -> Optional[int]:
    """The survey year to use for `year`: that year, else the latest earlier one.

    Returns None when the sitio has no data at or before `year`.
    """
    return floor_value(sitio.available_years, year)


def profile_at_or_before(sitio: SitioRecord, year: int) -> Tuple[Optional[int], Optional[SitioProfile]]:
    used = resolve_year(sitio, year)
    if used is None:
        return None, None
    return used, sitio.yearly_data[used]
