"""CLI entry point for the IKM scoring pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .core import run_analyze, run_export, run_report, run_trend
from .errors import ScoringError
from .models import PeriodComparison, SurveyResult

load_dotenv()


# ── Output helpers ───────────────────────────────────────────────────

def _print_result(result: SurveyResult) -> None:
    if not result.has_data:
        print("No scored answers yet; IKM defaults to the floor value.")
    print(f"Respondents:   {result.total_responses}")
    print(f"Average score: {result.average_score:.2f} / {result.scale_max}")
    print(f"IKM:           {result.satisfaction_index:.2f} / 4.00")
    print(f"Quality:       {result.quality.category} ({result.quality.label})")
    print()
    for ind in result.indicator_scores:
        print(f"  {ind.title:<40} {ind.score:5.2f}  IKM {ind.ikm:4.2f}  (n={ind.respondent_count}, p={ind.question_count})")


def _print_comparison(comparison: PeriodComparison) -> None:
    for point in comparison.overall:
        marker = "" if point.has_data else "  (no data)"
        print(
            f"  {point.period_name:<10} score {point.score:5.2f}  IKM {point.ikm:4.2f}  "
            f"{point.quality.category}  n={point.respondent_count}{marker}"
        )
    if comparison.change is not None:
        print(f"Change since previous period: {comparison.change:+.2f}")


# ── Commands ─────────────────────────────────────────────────────────

def cmd_analyze(args: argparse.Namespace) -> None:
    """Score a survey export and print the result."""
    outcome = run_analyze(args.export, period=args.period, on_progress=None if args.json else print)
    if args.json:
        print(outcome.result.model_dump_json(indent=2))
        return
    print()
    _print_result(outcome.result)
    print()
    print(outcome.breakdown.overall.formula)
    print(outcome.breakdown.ikm_formula)


def cmd_trend(args: argparse.Namespace) -> None:
    """Compare periods in the order given on the command line."""
    comparison = run_trend(args.export, args.period, on_progress=None if args.json else print)
    if args.json:
        print(comparison.model_dump_json(indent=2))
        return
    print()
    _print_comparison(comparison)


def cmd_report(args: argparse.Namespace) -> None:
    """Render the markdown report to a file or stdout."""
    outcome = run_report(args.export, args.period or None, on_progress=print if args.output else None)
    if args.output:
        args.output.write_text(outcome.markdown)
        print(f"Report written to {args.output}")
    else:
        print(outcome.markdown)


def cmd_export(args: argparse.Namespace) -> None:
    """Write CSV tables for spreadsheet use."""
    paths = run_export(args.export, args.out_dir, args.period or None, on_progress=print)
    print(f"Exported {len(paths)} files to {args.out_dir}")


# ── Main entry ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ikm_pipeline",
        description="IKM survey scoring: indicator scores, satisfaction index and trends",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_analyze = subparsers.add_parser("analyze", help="Score a survey export")
    p_analyze.add_argument("export", type=Path, help="Survey export (JSON or YAML)")
    p_analyze.add_argument("--period", help="Only responses in this period (e.g. 2024, 2024-Q1, S2 2024)")
    p_analyze.add_argument("--json", action="store_true", help="Print the full result as JSON")

    p_trend = subparsers.add_parser("trend", help="Compare scores across periods")
    p_trend.add_argument("export", type=Path, help="Survey export (JSON or YAML)")
    p_trend.add_argument("--period", action="append", required=True, help="Period to include; repeat, in display order")
    p_trend.add_argument("--json", action="store_true", help="Print the comparison as JSON")

    p_report = subparsers.add_parser("report", help="Render a markdown results report")
    p_report.add_argument("export", type=Path, help="Survey export (JSON or YAML)")
    p_report.add_argument("--period", action="append", default=[], help="Add a trend section for these periods")
    p_report.add_argument("-o", "--output", type=Path, help="Write to this file instead of stdout")

    p_export = subparsers.add_parser("export", help="Write result tables as CSV")
    p_export.add_argument("export", type=Path, help="Survey export (JSON or YAML)")
    p_export.add_argument("out_dir", type=Path, help="Directory for the CSV files")
    p_export.add_argument("--period", action="append", default=[], help="Also export a trend table for these periods")

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    commands = {
        "analyze": cmd_analyze,
        "trend": cmd_trend,
        "report": cmd_report,
        "export": cmd_export,
    }
    try:
        commands[args.command](args)
    except (ScoringError, FileNotFoundError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
