#!/usr/bin/env python3
"""Summarise replicate samples and Grubbs outlier screening for a plate template."""
from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Sequence

from plate_app.engine.excel_writer import write_plate_workbook
from plate_app.engine.plate_manager import PlateManager

logger = logging.getLogger("plate_report")

REPORT_FIELDS = (
    "sample",
    "well",
    "in_average",
    "metric",
    "verdict",
    "statistic",
    "analysis_value",
    "critical_value",
)


def _load_json(path: Path, what: str) -> Any:
    if not path.exists():
        raise SystemExit(f"{what} file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def build_plate(
    template: Path,
    *,
    separator: str | None = None,
    analysis: Path | None = None,
    spectra: Path | None = None,
    growth_curves: Path | None = None,
) -> PlateManager:
    if not template.exists():
        raise SystemExit(f"Template file not found: {template}")
    plate = PlateManager.read_template(template.read_text(encoding="utf-8"), separator=separator)
    if spectra is not None:
        plate.add_spectrum_from_array(_load_json(spectra, "Spectra"))
    if growth_curves is not None:
        plate.add_growth_curves_from_array(_load_json(growth_curves, "Growth curve"))
    if analysis is not None:
        payload = _load_json(analysis, "Analysis")
        if isinstance(payload, dict):
            # Keyed by well id instead of listed in well order.
            payload = [payload.get(well.id) for well in plate.wells]
        plate.add_analysis_from_array(payload)
    return plate


def report_rows(plate: PlateManager) -> List[Dict[str, Any]]:
    frame = plate.grubbs_frame()
    return frame.astype(object).where(frame.notna(), None).to_dict(orient="records")


def output_json(rows: Sequence[Dict[str, Any]]) -> None:
    json.dump(list(rows), sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def output_csv(rows: Sequence[Dict[str, Any]]) -> None:
    writer = csv.DictWriter(sys.stdout, fieldnames=list(REPORT_FIELDS))
    writer.writeheader()
    for row in rows:
        writer.writerow({key: "" if row.get(key) is None else row.get(key) for key in REPORT_FIELDS})


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("template", help="Reagent template (CSV/TSV with row, column, reagent columns).")
    parser.add_argument(
        "--separator",
        help="Template delimiter (default: detected from the header row).",
    )
    parser.add_argument(
        "--analysis",
        help="JSON list of per-well analysis records in well order, or a mapping keyed by well id.",
    )
    parser.add_argument(
        "--spectra",
        help="JSON list of {label, array: {x, y}} spectra.",
    )
    parser.add_argument(
        "--growth-curves",
        dest="growth_curves",
        help="JSON list of {label, array: {x, y}} growth curves.",
    )
    parser.add_argument(
        "--format",
        choices=("json", "csv"),
        default="json",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--workbook",
        help="Also write an Excel workbook with wells, samples and Grubbs results.",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="WARNING",
        help="Logging level (default: WARNING).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="[%(levelname)s] %(message)s",
    )
    plate = build_plate(
        Path(args.template),
        separator=args.separator,
        analysis=Path(args.analysis) if args.analysis else None,
        spectra=Path(args.spectra) if args.spectra else None,
        growth_curves=Path(args.growth_curves) if args.growth_curves else None,
    )
    if args.workbook:
        path = write_plate_workbook(plate, args.workbook)
        logger.info("Workbook written to %s", path)

    rows = report_rows(plate)
    try:
        if args.format == "json":
            output_json(rows)
        else:
            output_csv(rows)
    except BrokenPipeError:
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
