"""
sitiocompare Command Line Interface (CLI)
=========================================

This file provides the interactive terminal program you run like:

    python -m sitiocompare.cli --data "path/to/sitios.json"

It demonstrates:
- Argument parsing (argparse)
- A REPL loop (Read-Eval-Print Loop) for commands
- Mapping user commands to engine calls (compare, rank, chart, export, report)

The CLI DOES NOT modify the data file. It loads the snapshot once and keeps
the last comparison result in memory for the show/rank/chart/export commands.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Optional
import argparse, json, logging, os, shlex

from .engine import ComparisonEngine, ComparisonOutcome, TemporalComparisonResult, result_to_dict
from .indicators import METRIC_GROUP_LABELS, get_sort_preset, sort_sitios, SORT_PRESETS
from .loader import load_sitios
from .query_lang import parse_config
from .settings import ComparisonLimits, EngineSettings, load_limits, load_settings

HELP = """
Commands:
  help
  stats
  limits
  sitios [municipality] [barangay]
  indicators [group]
  sort <preset> [year]               (presets: see `sort presets`)

  compare "<query>"
    temporal  sitio=<id> years=<y1>,<y2>[,...] [groups=<g1>,<g2>|all]
    spatial   sitios=<id1>,<id2>[,...] year=<y> [groups=...]
    aggregate level=municipality|barangay entities=<n1>,<n2> year=<y>
              [municipality=<name>] [groups=...]
    Examples:
      compare "temporal sitio=12 years=2022,2023 groups=demographics"
      compare "aggregate level=municipality entities=BANGA,KORONADAL year=2024 groups=all"

  show [group]                       (last comparison: display values)
  rank                               (last spatial/aggregate comparison)
  trend                              (last temporal comparison)
  chart <metric key> "<out.png>"
  export json "<out.json>"
  export csv "<out.csv>"
  report "<out.docx>"
  quit

Groups: """ + ", ".join(METRIC_GROUP_LABELS) + "\n"


class Session:
    """The engine, its settings and the last successful comparison."""

    def __init__(self, engine: ComparisonEngine, settings: Optional[EngineSettings] = None) -> None:
        self.engine = engine
        self.settings = settings or EngineSettings(limits=engine.limits)
        self.last: Optional[ComparisonOutcome] = None

    def require_result(self):
        if self.last is None or not self.last.ok:
            raise ValueError("No comparison yet. Run: compare \"<query>\"")
        return self.last.result


def main(argv=None):
    """Entry point for the sitiocompare CLI.

    1) Load the snapshot
    2) Build the engine (indices + limits)
    3) Start an interactive REPL
    """
    ap = argparse.ArgumentParser(prog="sitiocompare")
    ap.add_argument("--data", required=True, help="Sitio snapshot (.json, .xlsx or .csv)")
    ap.add_argument("--settings", help="JSON file with limits, default_year and default_metric_groups")
    ap.add_argument("--limits", help="JSON file with max_sitios / max_years")
    ap.add_argument("--max-sitios", type=int, help="Override the maximum sitios/entities per comparison")
    ap.add_argument("--max-years", type=int, help="Override the maximum years per temporal comparison")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    settings = load_settings(args.settings)
    limits = load_limits(args.limits) if args.limits else settings.limits
    if args.max_sitios is not None or args.max_years is not None:
        limits = ComparisonLimits(
            max_sitios=args.max_sitios if args.max_sitios is not None else limits.max_sitios,
            max_years=args.max_years if args.max_years is not None else limits.max_years,
        )

    print("Loading dataset...")
    sitios = load_sitios(args.data)
    engine = ComparisonEngine.from_records(sitios, limits=limits, dataset_path=args.data)
    session = Session(engine, replace(settings, limits=limits))

    print(f"Loaded {len(sitios)} sitios. Type 'help' for commands.")
    while True:
        try:
            line = input("sitio> ")
        except EOFError:
            break
        # Keep a lightweight log of commands for the report (reproducibility).
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.lower() in ("quit", "exit"):
            break
        if stripped.split()[0].lower() in ("compare", "sort"):
            engine.command_log.append(stripped)
        try:
            handle(session, stripped)
        except Exception as e:
            print(f"Error: {e}")


def _compare(session: Session, query: str) -> None:
    if not query:
        raise ValueError('Usage: compare "<query>"')
    outcome = session.engine.compare(parse_config(query, session.settings.default_metric_groups))
    if not outcome.ok:
        print("Comparison rejected:")
        for msg in outcome.errors:
            print(f"  - {msg}")
        return
    session.last = outcome
    r = outcome.result
    print(f"{r.type.capitalize()} comparison: " + " | ".join(r.subject_labels))
    for e in getattr(r, "entities", ()):
        if e.has_stale_data:
            stale = ", ".join(f"{c.sitio_label} ({c.year_used})" for c in e.stale_contributors)
            print(f"  note: {e.name} uses older data for {stale}")
    print("Type 'show' to see values.")


def handle(session: Session, line: str) -> None:
    """Handle one CLI command line."""
    engine = session.engine

    # compare takes the raw query, so quoting inside it is kept
    if line.lower().startswith("compare"):
        query = line[len("compare"):].strip()
        if len(query) >= 2 and query[0] == query[-1] == '"':
            query = query[1:-1]
        _compare(session, query)
        return

    parts = shlex.split(line)
    cmd = parts[0].lower()

    if cmd == "help":
        print(HELP)
        return

    if cmd == "stats":
        idx = engine.idx
        years = idx.years_sorted
        span = f"{years[0]}-{years[-1]}" if years else "none"
        print(f"Sitios: {len(idx.by_id)} | Municipalities: {len(idx.by_municipality)} | "
              f"Barangays: {len(idx.by_municipality_barangay)} | Years: {span}")
        print(f"Indicators: {len(engine.registry)}")
        return

    if cmd == "limits":
        print(f"max_sitios={engine.limits.max_sitios} max_years={engine.limits.max_years}")
        return

    if cmd == "sitios":
        municipality = parts[1] if len(parts) >= 2 else None
        barangay = parts[2] if len(parts) >= 3 else None
        for s in engine.sitios:
            if municipality and s.municipality != municipality:
                continue
            if barangay and s.barangay != barangay:
                continue
            years = ",".join(str(y) for y in s.available_years)
            print(f"[{s.id}] {s.label} ({s.municipality}) | years: {years}")
        return

    if cmd == "indicators":
        group = parts[1] if len(parts) >= 2 else None
        if group and group not in METRIC_GROUP_LABELS:
            raise ValueError(f"Unknown group: {group}")
        for g, label in METRIC_GROUP_LABELS.items():
            if group and g != group:
                continue
            print(f"{label} ({g})")
            for ind in engine.registry.by_category(g):
                print(f"  {ind.key:<28} {ind.label} [{ind.polarity.value}]")
        return

    if cmd == "sort":
        if len(parts) < 2 or parts[1] == "presets":
            for p in SORT_PRESETS:
                print(f"{p.key:<24} {p.description}")
            return
        preset = get_sort_preset(parts[1])
        if preset is None:
            raise ValueError(f"Unknown sort preset: {parts[1]}")
        year = int(parts[2]) if len(parts) >= 3 else session.settings.default_year
        out = sort_sitios(engine.sitios, preset.indicators, year=year, registry=engine.registry)
        print(f"{preset.label}. Showing 10:")
        for s in out[:10]:
            print(f"[{s.id}] {s.label} ({s.municipality})")
        return

    if cmd == "show":
        from .tables import metrics_frame
        group = parts[1] if len(parts) >= 2 else None
        frame = metrics_frame(session.require_result(), group)
        print(frame.drop(columns=["Group"]).to_string(index=False))
        return

    if cmd == "rank":
        from .tables import rankings_frame
        print(rankings_frame(session.require_result()).to_string(index=False))
        return

    if cmd == "trend":
        from .tables import trend_frame
        result = session.require_result()
        if not isinstance(result, TemporalComparisonResult):
            raise ValueError("trend needs a temporal comparison")
        print(trend_frame(result).to_string(index=False))
        return

    if cmd == "chart":
        # chart <metric key> "<out.png>"
        from .charts import bar_chart, render_bar_chart, render_line_chart, temporal_line_chart
        if len(parts) < 3:
            raise ValueError('Usage: chart <metric key> "out.png"')
        result = session.require_result()
        key, out_path = parts[1], parts[2]
        metric = result.metric(key)
        if metric is None:
            raise ValueError(f"Metric not in the last comparison: {key}")
        if isinstance(result, TemporalComparisonResult):
            render_line_chart(temporal_line_chart(result, [key]), out_path, title=metric.label)
        else:
            render_bar_chart(bar_chart(result, key), out_path, title=metric.label, ylabel=metric.unit)
        print(f"Chart written to {out_path}")
        return

    if cmd == "export":
        # export <json|csv> "<path>"
        if len(parts) < 3:
            print('Usage: export json "out.json"  OR  export csv "out.csv"')
            return
        fmt, out_path = parts[1].lower(), parts[2]
        result = session.require_result()
        if fmt == "json":
            with open(out_path, "w", encoding="utf-8") as f:
                json.dump(result_to_dict(result), f, ensure_ascii=False, indent=2)
            print(f"Exported JSON to {out_path}")
            return
        if fmt == "csv":
            from .tables import metrics_frame
            metrics_frame(result).to_csv(out_path)
            print(f"Exported CSV to {out_path}")
            return
        print("Unknown export format. Use: json or csv")
        return

    if cmd == "report":
        from .report import ComparisonExportConfig, generate_comparison_report
        if len(parts) < 2:
            raise ValueError('Usage: report "out.docx"')
        cfg = ComparisonExportConfig(
            dataset_name=os.path.basename(engine.dataset_path) if engine.dataset_path else "Sitio profile snapshot",
            command_log=engine.command_log,
        )
        generate_comparison_report(session.require_result(), parts[1], config=cfg)
        print(f"Report written to {parts[1]}")
        return

    print("Unknown command. Type 'help'.")


if __name__ == "__main__":
    main()
