from __future__ import annotations

"""
Comparison report generator
---------------------------
This module writes a DOCX report for one comparison result.

Design goals:
- Keep the engine usable even if report dependencies are missing (lazy imports).
- Never re-derive numbers: every table cell is the engine's display string,
  so the report matches what the CLI printed.
- Pick charts that fit the comparison type (lines over years for temporal,
  bars across subjects for spatial/aggregate).
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import os
import tempfile
import pandas as pd

from .charts import bar_chart, radar_chart, render_bar_chart, render_line_chart, render_radar_chart, temporal_line_chart
from .engine import AggregateComparisonResult, ComparisonResult, TemporalComparisonResult
from .indicators import METRIC_GROUP_LABELS
from .tables import metrics_frame, rankings_frame, trend_frame


@dataclass
class ComparisonExportConfig:
    """High-level knobs to control how the report is written."""
    title: str = "Sitio Comparison Report"
    subtitle: str = "Comparison & Ranking Engine"
    dataset_name: str = "Sitio profile snapshot"
    include_charts: bool = True
    include_detailed_tables: bool = True
    include_trend_analysis: bool = True

    # Charts per metric group (first N indicators of each group)
    charts_per_group: int = 2

    # Optional: CLI commands that produced the result
    command_log: Optional[List[str]] = None


def _scope_line(result: ComparisonResult) -> str:
    if isinstance(result, TemporalComparisonResult):
        years = ", ".join(str(y) for y in result.years)
        return f"Temporal: {result.sitio.label} over {years}"
    if isinstance(result, AggregateComparisonResult):
        scope = f" in {result.municipality_filter}" if result.municipality_filter else ""
        return f"Aggregate ({result.level}{scope}), {result.year}: " + ", ".join(result.subject_labels)
    return f"Spatial, {result.year}: " + ", ".join(result.subject_labels)


def _chart_files(result: ComparisonResult, config: ComparisonExportConfig, tmpdir: str) -> List[Tuple[str, str]]:
    """(title, png path) for each chart in the report."""
    out: List[Tuple[str, str]] = []
    for group, metrics in result.metrics_by_group.items():
        picked = [m for m in metrics if any(v.value is not None for v in m.values)][:config.charts_per_group]
        for m in picked:
            title = f"{m.label} ({m.unit})" if m.unit else m.label
            path = os.path.join(tmpdir, f"{group}_{m.key.replace(':', '_')}.png")
            if isinstance(result, TemporalComparisonResult):
                render_line_chart(temporal_line_chart(result, [m.key]), path, title=title)
            else:
                render_bar_chart(bar_chart(result, m.key), path, title=title, ylabel=m.unit)
            out.append((title, path))

    if not isinstance(result, TemporalComparisonResult):
        keys = [m.key for m in result.all_metrics() if m.is_percentage][:8]
        if len(keys) >= 3:
            path = os.path.join(tmpdir, "overview_radar.png")
            render_radar_chart(radar_chart(result, keys), path, title="Coverage overview (0-100, scaled to best)")
            out.append(("Coverage overview", path))
    return out


def generate_comparison_report(
    result: ComparisonResult,
    out_path: str,
    *,
    config: Optional[ComparisonExportConfig] = None,
) -> str:
    """Generate a DOCX report (+ charts) for one comparison result."""
    config = config or ComparisonExportConfig()

    # Lazy imports: only required when "report" is used.
    try:
        from docx import Document
        from docx.shared import Pt, Inches
        from docx.enum.text import WD_ALIGN_PARAGRAPH
    except ImportError as e:
        raise ImportError(
            "Missing dependency: python-docx.\n"
            "Install it with: python -m pip install python-docx"
        ) from e

    doc = Document()
    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)

    def _center_title(text: str, size: int, bold: bool = False, italic: bool = False) -> None:
        p = doc.add_paragraph()
        r = p.add_run(text)
        r.bold = bold
        r.italic = italic
        r.font.size = Pt(size)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _kv(key: str, value: str) -> None:
        p = doc.add_paragraph()
        r = p.add_run(f"{key}: ")
        r.bold = True
        p.add_run(value)

    def _frame_table(frame) -> None:
        cols = list(frame.columns)
        t = doc.add_table(rows=1, cols=len(cols))
        t.style = "Table Grid"
        for j, c in enumerate(cols):
            t.rows[0].cells[j].text = str(c)
        for _, row in frame.iterrows():
            cells = t.add_row().cells
            for j, c in enumerate(cols):
                v = row[c]
                cells[j].text = "" if pd.isna(v) else str(v)

    _center_title(config.title, 22, bold=True)
    _center_title(config.subtitle, 12, italic=True)

    doc.add_paragraph("")
    _kv("Dataset", config.dataset_name)
    _kv("Comparison", _scope_line(result))
    _kv("Metric groups", ", ".join(METRIC_GROUP_LABELS.get(g, g) for g in result.metrics_by_group))

    # Aggregate data coverage (stale / excluded sitios)
    if isinstance(result, AggregateComparisonResult):
        doc.add_paragraph("")
        doc.add_heading("Data coverage", level=1)
        t = doc.add_table(rows=1, cols=5)
        t.style = "Table Grid"
        for j, h in enumerate(["Entity", "Sitios used", "Population", "Households", "Older data used"]):
            t.rows[0].cells[j].text = h
        for e in result.entities:
            r = t.add_row().cells
            r[0].text = e.name
            r[1].text = str(e.sitio_count)
            r[2].text = f"{e.total_population:,}"
            r[3].text = f"{e.total_households:,}"
            r[4].text = "; ".join(f"{c.sitio_label} ({c.year_used})" for c in e.stale_contributors) or "-"
        doc.add_paragraph(
            "Sitios without data for the comparison year are represented by their latest earlier survey."
        )

    if config.include_detailed_tables:
        doc.add_paragraph("")
        doc.add_heading("Detailed comparison", level=1)
        for group in result.metrics_by_group:
            frame = metrics_frame(result, group).drop(columns=["Group"])
            if frame.empty:
                continue
            doc.add_heading(METRIC_GROUP_LABELS.get(group, group), level=2)
            _frame_table(frame)

        if not isinstance(result, TemporalComparisonResult):
            ranks = rankings_frame(result)
            if not ranks.empty:
                doc.add_paragraph("")
                doc.add_heading("Rankings (1 = best)", level=1)
                _frame_table(ranks)

    if config.include_trend_analysis and isinstance(result, TemporalComparisonResult):
        trends = trend_frame(result)
        if not trends.empty:
            doc.add_paragraph("")
            doc.add_heading("Trend analysis", level=1)
            improving = int(trends["Positive"].sum())
            doc.add_paragraph(
                f"{improving} of {len(trends)} indicators moved in a favourable direction "
                f"between {result.years[0]} and {result.years[-1]}."
            )
            _frame_table(trends.drop(columns=["Positive"]))

    if config.include_charts:
        tmpdir = tempfile.mkdtemp(prefix="sitiocompare_report_")
        charts = _chart_files(result, config, tmpdir)
        if charts:
            doc.add_paragraph("")
            doc.add_heading("Visualizations", level=1)
            for title, path in charts:
                doc.add_paragraph(title)
                doc.add_picture(path, width=Inches(6.0))

    # -----------------------------
    # Reproducibility footer
    # -----------------------------
    doc.add_paragraph("")
    doc.add_heading("Reproducibility footer", level=1)

    from . import __version__
    from datetime import datetime as _dt
    doc.add_paragraph(f"sitiocompare version: {__version__}")
    doc.add_paragraph(f"Report generated at: {_dt.now().isoformat(timespec='seconds')}")
    if config.command_log:
        doc.add_paragraph("Commands used (log):")
        for line in config.command_log:
            doc.add_paragraph(line, style="List Bullet")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    doc.save(out_path)
    return out_path
