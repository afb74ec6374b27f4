"""
Chart projections
=================

Small views of a comparison result shaped for plotting, plus matplotlib
renderers for the CLI and the DOCX report.

Missing values stay `None` in every projection. They only become NaN in
`as_plot_array`, which matplotlib draws as a gap, never as a zero.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence
import numpy as np

from .engine import ComparisonResult


@dataclass(frozen=True)
class SingleMetricSeries:
    labels: List[str]
    values: List[Optional[float]]
    metric_label: str


@dataclass(frozen=True)
class Series:
    name: str
    data: List[Optional[float]]


@dataclass(frozen=True)
class ChartData:
    """Categories on one axis, one series per line/bar group/polygon."""
    categories: List[str]
    series: List[Series]


def single_metric_series(result: ComparisonResult, metric_key: str) -> Optional[SingleMetricSeries]:
    """One metric across all subjects, or None when the metric is not in the result."""
    metric = result.metric(metric_key)
    if metric is None:
        return None
    label = f"{metric.label} ({metric.unit})" if metric.unit else metric.label
    headers = result.display_labels()
    return SingleMetricSeries(
        labels=[headers[v.subject_id] for v in metric.values],
        values=[v.value for v in metric.values],
        metric_label=label,
    )


def temporal_line_chart(result: ComparisonResult, metric_keys: Sequence[str]) -> ChartData:
    """Subjects (years) on the x axis, one line per requested metric."""
    series = [
        Series(m.label, [v.value for v in m.values])
        for m in result.all_metrics() if m.key in metric_keys
    ]
    return ChartData(categories=list(result.subject_labels), series=series)


def bar_chart(result: ComparisonResult, metric_key: str) -> ChartData:
    s = single_metric_series(result, metric_key)
    if s is None:
        return ChartData(categories=[], series=[])
    return ChartData(categories=s.labels, series=[Series(metric_key, s.values)])


def radar_chart(result: ComparisonResult, metric_keys: Sequence[str]) -> ChartData:
    """One polygon per subject, every axis scaled to 0-100 by its maximum."""
    metrics = [m for m in result.all_metrics() if m.key in metric_keys]
    series: List[Series] = []
    for i, label in enumerate(result.display_labels().values()):
        data: List[Optional[float]] = []
        for m in metrics:
            value = m.values[i].value
            peak = max((v.value for v in m.values if v.value is not None), default=0.0)
            if value is None:
                data.append(None)
            else:
                data.append(value / peak * 100 if peak > 0 else 0.0)
        series.append(Series(label, data))
    return ChartData(categories=[m.label for m in metrics], series=series)


def as_plot_array(values: Sequence[Optional[float]]) -> np.ndarray:
    """None -> NaN, so plots show a gap instead of a zero."""
    return np.array([np.nan if v is None else float(v) for v in values], dtype=float)


# -----------------------------
# Renderers (matplotlib)
# -----------------------------

def _pyplot():
    # Lazy import: charts are only needed for `chart` / `report`.
    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError as e:
        raise ImportError(
            "Missing dependency: matplotlib.\n"
            "Install it with: python -m pip install matplotlib"
        ) from e
    return plt


def _save(plt, path: str) -> str:
    plt.tight_layout()
    plt.savefig(path, dpi=200)
    plt.close()
    return path


def render_line_chart(data: ChartData, path: str, title: str = "") -> str:
    plt = _pyplot()
    plt.figure()
    x = np.arange(len(data.categories))
    for s in data.series:
        plt.plot(x, as_plot_array(s.data), marker="o", label=s.name)
    plt.xticks(x, data.categories)
    plt.title(title)
    if data.series:
        plt.legend(fontsize="small")
    return _save(plt, path)


def render_bar_chart(data: ChartData, path: str, title: str = "", ylabel: str = "") -> str:
    plt = _pyplot()
    plt.figure()
    x = np.arange(len(data.categories))
    n = max(len(data.series), 1)
    width = 0.8 / n
    for i, s in enumerate(data.series):
        # NaN bars are simply not drawn
        plt.bar(x + (i - (n - 1) / 2) * width, as_plot_array(s.data), width=width, label=s.name)
    plt.xticks(x, data.categories, rotation=45, ha="right")
    plt.title(title)
    plt.ylabel(ylabel)
    return _save(plt, path)


def render_radar_chart(data: ChartData, path: str, title: str = "") -> str:
    plt = _pyplot()
    n = len(data.categories)
    if n < 3:
        raise ValueError("Radar chart needs at least 3 metrics")
    angles = np.linspace(0, 2 * np.pi, n, endpoint=False)
    closed = np.concatenate([angles, angles[:1]])
    fig = plt.figure()
    ax = fig.add_subplot(111, polar=True)
    for s in data.series:
        vals = as_plot_array(s.data)
        ax.plot(closed, np.concatenate([vals, vals[:1]]), label=s.name)
    ax.set_xticks(angles)
    ax.set_xticklabels(data.categories, fontsize="small")
    ax.set_ylim(0, 100)
    ax.set_title(title)
    ax.legend(fontsize="small", loc="upper right", bbox_to_anchor=(1.3, 1.1))
    return _save(plt, path)
