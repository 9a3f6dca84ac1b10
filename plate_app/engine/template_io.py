"""Delimiter-separated plate templates (reagent layouts)."""

from __future__ import annotations

import io
import logging
import re
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import pandas as pd

from plate_app.engine.io_common import sniff_template_format
from plate_app.engine.plate_labels import numeric_position
from plate_app.engine.well_model import ShapeMismatchError, Well

if TYPE_CHECKING:
    from plate_app.engine.plate_manager import PlateManager

__all__ = [
    "NUMERIC_TEMPLATE_COLUMNS",
    "format_reagent_header",
    "parse_reagent_header",
    "well_position",
    "write_template",
    "parse_template",
]

logger = logging.getLogger(__name__)

NUMERIC_TEMPLATE_COLUMNS = 10

_LABEL_PARTS = re.compile(r"[0-9]+|[a-zA-Z]+")
_HEADER = re.compile(r"^\s*(?P<name>.*?)\s*\((?P<unit>[^()]*)\)\s*$")


def format_reagent_header(label: str, unit: Optional[str]) -> str:
    return f"{label}({unit})" if unit else label


def parse_reagent_header(text: str) -> Tuple[str, Optional[str]]:
    match = _HEADER.match(text)
    if not match:
        return text.strip(), None
    unit = match.group("unit").strip()
    return match.group("name"), unit or None


def well_position(well: Well, *, columns: int = NUMERIC_TEMPLATE_COLUMNS) -> Tuple[Any, Any]:
    """``(row, column)`` of a well as written in a template."""

    if well.label.isdigit():
        return numeric_position(well.label, columns)
    parts = _LABEL_PARTS.findall(well.label)
    if len(parts) != 2:
        raise ValueError(f"Cannot split well label {well.label!r} into row and column")
    return parts[0], parts[1]


def _format_concentration(value: Optional[float]) -> str:
    if value is None:
        return ""
    number = float(value)
    return str(int(number)) if number.is_integer() else repr(number)


def write_template(plate: "PlateManager", *, separator: str = ",") -> str:
    """Template text for a single-plate layout.

    Template rows carry no plate index, so layouts spanning several plates
    are refused.
    """

    wells = plate.wells
    plates = sorted({well.plate for well in wells})
    if len(plates) > 1:
        raise ShapeMismatchError(f"Templates describe a single plate, layout spans plates {plates}")
    if not wells:
        return separator.join(["row", "column"])
    header = ["row", "column"] + [
        format_reagent_header(reagent.label, reagent.unit) for reagent in wells[0].reagents
    ]
    lines = [separator.join(header)]
    for well in wells:
        row, column = well_position(well)
        cells = [str(row), str(column)] + [
            _format_concentration(reagent.concentration) for reagent in well.reagents
        ]
        lines.append(separator.join(cells))
    return "\n".join(lines)


def _is_integer(text: str) -> bool:
    return str(text).strip().lstrip("+-").isdigit()


def _parse_concentration(text: str, decimal: str) -> Optional[float]:
    cleaned = str(text).strip()
    if not cleaned:
        return None
    if decimal == ",":
        cleaned = cleaned.replace(",", ".")
    return float(cleaned)


def parse_template(text: str, *, separator: str | None = None) -> Dict[str, Any]:
    """Parse template text into a layout and per-well reagent records.

    Returns ``{"layout": "numeric" | "alphanumeric", "wells": [...]}`` where
    each well record carries its id on plate 1 and its reagents.
    """

    fmt = sniff_template_format(text)
    sep = separator or fmt["delimiter"]
    frame = pd.read_csv(
        io.StringIO(text),
        sep=sep,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        skipinitialspace=True,
    )
    if frame.shape[1] < 2:
        raise ValueError("Template needs at least 'row' and 'column' columns")
    frame = frame[~(frame == "").all(axis=1)]
    if frame.empty:
        raise ValueError("Template contains no well rows")

    reagent_headers = [parse_reagent_header(str(name)) for name in frame.columns[2:]]
    first = frame.iloc[0]
    numeric = _is_integer(first.iloc[0]) and _is_integer(first.iloc[1])

    wells: List[Dict[str, Any]] = []
    seen: set = set()
    for _, row in frame.iterrows():
        row_cell, column_cell = str(row.iloc[0]).strip(), str(row.iloc[1]).strip()
        if numeric:
            number = (int(row_cell) - 1) * NUMERIC_TEMPLATE_COLUMNS + int(column_cell)
            well_id = f"1-{number}"
        else:
            well_id = f"1-{row_cell}{column_cell}"
        if well_id in seen:
            raise ShapeMismatchError(f"Template lists position {row_cell}, {column_cell} more than once")
        seen.add(well_id)
        reagents = [
            {
                "label": label,
                "unit": unit,
                "concentration": _parse_concentration(row.iloc[idx + 2], fmt["decimal"]),
            }
            for idx, (label, unit) in enumerate(reagent_headers)
        ]
        wells.append({"id": well_id, "reagents": reagents})

    layout = "numeric" if numeric else "alphanumeric"
    logger.info("Parsed %s template with %d wells and %d reagents", layout, len(wells), len(reagent_headers))
    return {"layout": layout, "wells": wells}
