"""
Snapshot loader (JSON / Excel / CSV -> SitioRecord list)
========================================================

Two input shapes are supported:

1) The storage layer's JSON snapshot: a list of sitio records (or
   {"sitios": [...]}) with camelCase keys and `yearlyData` keyed by year.
2) A flat table (xlsx via openpyxl, or csv) with one row per sitio-year.
   Identity columns are required; every other column is matched against the
   profile fields, e.g. "Total Population", "total_population" or
   "facilities.healthCenter.exists". Columns named "custom.<id>" become custom
   fields.

Key ideas:
- We try multiple possible column names because exports vary.
- Blank cells are treated as missing, so the profile default applies.
- The loader returns immutable records; the source file is never modified.
"""

from __future__ import annotations
from dataclasses import fields, is_dataclass
from typing import Any, Dict, List, Optional, Tuple
import json
import logging
import os
import re
import typing
import pandas as pd

from .models import SitioProfile, SitioRecord

log = logging.getLogger(__name__)

_SEQUENCE_SPLIT_RE = re.compile(r"\s*[;,]\s*")


def _to_int(x) -> Optional[int]:
    """Convert a cell to int, returning None if missing/invalid."""
    if _is_blank(x): return None
    try: return int(float(x))
    except (TypeError, ValueError): return None


def _to_float(x) -> Optional[float]:
    if _is_blank(x): return None
    try: return float(x)
    except (TypeError, ValueError): return None


def _to_str(x) -> str:
    if _is_blank(x): return ""
    return str(x).strip()


def _is_blank(x) -> bool:
    if isinstance(x, str):
        return not x.strip()
    return x is None or bool(pd.isna(x))


def _norm(s: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", str(s).lower())


def _col(df: pd.DataFrame, *names: str) -> str:
    cols = list(df.columns)
    for n in names:
        if n in cols:
            return n
    norm_map = {_norm(c): c for c in cols}
    for n in names:
        nn = _norm(n)
        if nn in norm_map:
            return norm_map[nn]
    raise KeyError(f"Missing required column. Tried={names}. Available={cols}")


def _opt_col(df: pd.DataFrame, *names: str) -> Optional[str]:
    try:
        return _col(df, *names)
    except KeyError:
        return None


# -----------------------------
# JSON snapshot
# -----------------------------

def load_snapshot_json(path: str) -> List[SitioRecord]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    items = data.get("sitios", []) if isinstance(data, dict) else data
    sitios = [SitioRecord.from_dict(item) for item in items]
    _check_unique_ids(sitios)
    log.info("Loaded %d sitios from %s", len(sitios), path)
    return sitios


def _check_unique_ids(sitios: List[SitioRecord]) -> None:
    seen = set()
    for s in sitios:
        if s.id in seen:
            raise ValueError(f"Duplicate sitio id: {s.id}")
        seen.add(s.id)


# -----------------------------
# Flat table
# -----------------------------

# nested records that have no single-cell form
_NOT_TABULAR = {"custom_fields", "priorities", "recommendations"}


def _profile_paths(cls, prefix: Tuple[str, ...] = ()) -> Dict[str, Tuple[Tuple[str, ...], Any]]:
    """Normalized column name -> (field path, leaf type) for every profile leaf."""
    out: Dict[str, Tuple[Tuple[str, ...], Any]] = {}
    hints = typing.get_type_hints(cls)
    for f in fields(cls):
        tp = hints[f.name]
        path = prefix + (f.name,)
        if is_dataclass(tp):
            out.update(_profile_paths(tp, path))
        elif f.name not in _NOT_TABULAR:
            out[_norm("".join(path))] = (path, tp)
    return out


def _column_lookup() -> Dict[str, Tuple[Tuple[str, ...], Any]]:
    """Full paths, plus bare leaf names where they are unambiguous ("Total Male")."""
    full = _profile_paths(SitioProfile)
    leaves: Dict[str, List[Tuple[Tuple[str, ...], Any]]] = {}
    for path, tp in full.values():
        leaves.setdefault(_norm(path[-1]), []).append((path, tp))
    out = dict(full)
    for name, hits in leaves.items():
        if len(hits) == 1:
            out.setdefault(name, hits[0])
    return out


_PROFILE_PATHS = _column_lookup()
_IDENTITY_COLUMNS = {
    "id": ("Sitio ID", "ID", "id"),
    "year": ("Year", "Survey Year"),
    "municipality": ("Municipality",),
    "barangay": ("Barangay",),
    "sitio_name": ("Sitio Name", "Sitio", "sitioName"),
}


def _is_sequence_type(tp) -> bool:
    return typing.get_origin(tp) in (tuple, Tuple)


def _set_path(target: Dict[str, Any], path: Tuple[str, ...], value: Any) -> None:
    for key in path[:-1]:
        target = target.setdefault(key, {})
    target[path[-1]] = value


def _row_profile(row: pd.Series, columns: Dict[str, Tuple[Tuple[str, ...], Any]],
                 custom_columns: Dict[str, str]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for col, (path, tp) in columns.items():
        x = row[col]
        if _is_blank(x):
            continue
        if _is_sequence_type(tp):
            x = tuple(p for p in _SEQUENCE_SPLIT_RE.split(_to_str(x)) if p)
        elif isinstance(x, str):
            x = x.strip()
        _set_path(data, path, x)
    custom: Dict[str, Any] = {}
    for col, field_id in custom_columns.items():
        x = row[col]
        if _is_blank(x):
            continue
        custom[field_id] = x.strip() if isinstance(x, str) else (x.item() if hasattr(x, "item") else x)
    if custom:
        data["custom_fields"] = custom
    return data


def read_table(path: str) -> pd.DataFrame:
    ext = os.path.splitext(path)[1].lower()
    if ext in (".xlsx", ".xlsm"):
        df = pd.read_excel(path, engine="openpyxl")
    elif ext == ".csv":
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported table format: {ext or path} (use .xlsx or .csv)")
    df.rename(columns={c: str(c).strip() for c in df.columns}, inplace=True)
    return df


def sitios_from_frame(df: pd.DataFrame) -> List[SitioRecord]:
    """Group sitio-year rows into SitioRecords (ordered by first appearance)."""
    id_col = _col(df, *_IDENTITY_COLUMNS["id"])
    year_col = _col(df, *_IDENTITY_COLUMNS["year"])
    mun_col = _col(df, *_IDENTITY_COLUMNS["municipality"])
    brgy_col = _col(df, *_IDENTITY_COLUMNS["barangay"])
    name_col = _col(df, *_IDENTITY_COLUMNS["sitio_name"])
    coding_col = _opt_col(df, "Coding", "Sitio Code", "Code")
    lat_col = _opt_col(df, "Latitude", "Lat")
    lng_col = _opt_col(df, "Longitude", "Lng", "Lon")

    identity_cols = {id_col, year_col, mun_col, brgy_col, name_col, coding_col, lat_col, lng_col}
    columns: Dict[str, Tuple[Tuple[str, ...], Any]] = {}
    custom_columns: Dict[str, str] = {}
    for c in df.columns:
        if c in identity_cols:
            continue
        m = re.match(r"^custom[.:](.+)$", c, re.IGNORECASE)
        if m:
            custom_columns[c] = m.group(1).strip()
            continue
        hit = _PROFILE_PATHS.get(_norm(c))
        if hit is None:
            log.debug("Ignoring unknown column %r", c)
            continue
        columns[c] = hit

    identities: Dict[int, Dict[str, Any]] = {}
    yearly: Dict[int, Dict[int, SitioProfile]] = {}
    for i, row in df.iterrows():
        sid = _to_int(row[id_col])
        year = _to_int(row[year_col])
        if sid is None or year is None:
            raise ValueError(f"Row {i}: sitio id and year are required")
        if sid not in identities:
            identities[sid] = dict(
                id=sid,
                municipality=_to_str(row[mun_col]),
                barangay=_to_str(row[brgy_col]),
                sitio_name=_to_str(row[name_col]),
                coding=_to_str(row[coding_col]) if coding_col else "",
                latitude=(_to_float(row[lat_col]) or 0.0) if lat_col else 0.0,
                longitude=(_to_float(row[lng_col]) or 0.0) if lng_col else 0.0,
            )
            yearly[sid] = {}
        if year in yearly[sid]:
            raise ValueError(f"Row {i}: duplicate data for sitio {sid} year {year}")
        data = _row_profile(row, columns, custom_columns)
        ident = identities[sid]
        for key in ("municipality", "barangay", "sitio_name"):
            data.setdefault(key, ident[key])
        try:
            yearly[sid][year] = SitioProfile.from_dict(data)
        except ValueError as e:
            raise ValueError(f"Row {i}: {e}") from e

    return [SitioRecord.create(yearly_data=yearly[sid], **ident) for sid, ident in identities.items()]


def load_sitio_table(path: str) -> List[SitioRecord]:
    """Load sitio-year rows from an Excel (.xlsx) or CSV file."""
    sitios = sitios_from_frame(read_table(path))
    log.info("Loaded %d sitios from %s", len(sitios), path)
    return sitios


def load_sitios(path: str) -> List[SitioRecord]:
    """Pick the loader by file extension."""
    if path.lower().endswith(".json"):
        return load_snapshot_json(path)
    return load_sitio_table(path)
