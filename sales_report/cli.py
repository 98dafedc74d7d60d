"""Command-line trigger for one report run."""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from .config import load_report_config
from .context import FilterState
from .data_loader import connect_duckdb, resolve_data_path
from .errors import ReportError
from .orchestrator import ReportOrchestrator
from .views import view_source

logger = logging.getLogger(__name__)


def parse_filters(items: List[str]) -> FilterState:
    """``["state=California,Texas", "segment=Consumer"]`` -> FilterState."""
    selections: Dict[str, set] = {}
    for item in items:
        dimension, sep, raw = item.partition("=")
        if not sep or not dimension.strip():
            raise argparse.ArgumentTypeError(f"Filter must look like dimension=value[,value]: {item!r}")
        values = {v.strip() for v in raw.split(",") if v.strip()}
        selections.setdefault(dimension.strip(), set()).update(values)
    return FilterState.from_mapping(selections)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export the filtered sales report as a PDF")
    parser.add_argument("--data", type=str, help="Sales extract (.parquet or .csv)")
    parser.add_argument("--filter", action="append", default=[], metavar="DIM=V1,V2",
                        help="Restrict a dimension; repeatable")
    parser.add_argument("--config", type=Path, help="TOML file with a [report] table")
    parser.add_argument("--dest", type=Path, help="Output directory")
    parser.add_argument("--template", type=str, help="File name template, e.g. Report_{date:%%Y-%%m-%%d}.pdf")
    parser.add_argument("--views", type=str, help="Comma-separated section order")
    parser.add_argument("--as-of", type=date.fromisoformat, help="Generation date (default: today)")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        filters = parse_filters(args.filter)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    try:
        config = load_report_config(args.config)
        overrides = {}
        if args.dest:
            overrides["destination"] = args.dest
        if args.template:
            overrides["name_template"] = args.template
        if args.views:
            overrides["view_order"] = tuple(v.strip() for v in args.views.split(",") if v.strip())
        config = replace(config, **overrides)

        conn = connect_duckdb(args.data or resolve_data_path())
        orchestrator = ReportOrchestrator(config, filters, view_source(conn))
        record = orchestrator.generate(as_of=args.as_of)
    except (ReportError, FileNotFoundError, ValueError) as exc:
        logger.error("Report not generated: %s", exc)
        return 1

    print(record.artifact.path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
