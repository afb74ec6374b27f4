"""
Table projections (pandas)
==========================

DataFrame views of a comparison result for printing and exporting. Cells
hold the engine's `display_value` strings unchanged, so the CLI, CSV export
and DOCX report all show exactly the same formatting.
"""

from __future__ import annotations
from typing import Optional
import pandas as pd

from .engine import ComparisonResult, TemporalComparisonResult
from .indicators import METRIC_GROUP_LABELS
from .trend import ComparisonDiff

_TREND_ARROWS = {"up": "↑", "down": "↓", "flat": "→"}


def metrics_frame(result: ComparisonResult, group: Optional[str] = None) -> pd.DataFrame:
    """Rows = indicators, columns = subjects, cells = display strings.

    Columns are keyed by subject id and headed by `display_labels()`, so two
    sitios sharing a name never share a column.
    """
    headers = result.display_labels()
    rows = []
    index = []
    for g, metrics in result.metrics_by_group.items():
        if group is not None and g != group:
            continue
        for m in metrics:
            index.append(m.key)
            row = {"Group": METRIC_GROUP_LABELS.get(g, g), "Metric": m.label}
            for v in m.values:
                row[headers[v.subject_id]] = v.display_value
            rows.append(row)
    columns = ["Group", "Metric"] + list(headers.values())
    return pd.DataFrame(rows, index=pd.Index(index, name="key"), columns=columns)


def rankings_frame(result: ComparisonResult) -> pd.DataFrame:
    """Rank of every subject per indicator (spatial/aggregate results).

    Unranked subjects (no value) are left empty.
    """
    if isinstance(result, TemporalComparisonResult):
        raise ValueError("Temporal results have no rankings")
    labels = result.display_labels()
    rows = []
    index = []
    for m in result.all_metrics():
        ranks = result.rankings.get(m.key)
        if ranks is None:
            continue
        index.append(m.key)
        row = {"Metric": m.label}
        for sid, label in labels.items():
            row[label] = ranks.get(sid)
        rows.append(row)
    frame = pd.DataFrame(rows, index=pd.Index(index, name="key"), columns=["Metric"] + list(labels.values()))
    return frame.astype({label: "Int64" for label in labels.values()})


def _format_change(d: ComparisonDiff) -> str:
    sign = "+" if d.change > 0 else ""
    return f"{_TREND_ARROWS[d.trend]} {sign}{_number(d.change)} ({sign}{d.change_percent:.1f}%)"


def trend_frame(result: TemporalComparisonResult) -> pd.DataFrame:
    """Overall first -> last year change per indicator (temporal results)."""
    if not isinstance(result, TemporalComparisonResult):
        raise ValueError("Only temporal results have trends")
    first, last = result.subject_labels[0], result.subject_labels[-1]
    rows = []
    index = []
    for m in result.all_metrics():
        d = result.overall_trend.get(m.key)
        if d is None:
            continue
        index.append(m.key)
        rows.append({
            "Metric": m.label,
            first: m.values[0].display_value,
            last: m.values[-1].display_value,
            "Change": _format_change(d),
            "Trend": d.trend,
            "Positive": d.is_positive,
        })
    return pd.DataFrame(rows, index=pd.Index(index, name="key"),
                        columns=["Metric", first, last, "Change", "Trend", "Positive"])


def _number(v: float) -> str:
    return f"{v:,.0f}" if float(v).is_integer() else f"{v:,.2f}"
