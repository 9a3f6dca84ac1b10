from __future__ import annotations

import math
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
from openpyxl import Workbook

if TYPE_CHECKING:
    from plate_app.engine.plate_manager import PlateManager


def _ensure_parent(path: Path) -> None:
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def _clean_value(value: Any) -> Any:
    if isinstance(value, np.generic):
        value = value.item()
    if value is None:
        return None
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str) and value and value[0] in "=+-@":
        # Keep spreadsheet applications from evaluating labels as formulas.
        return "'" + value
    return value


def _write_frame(ws, frame: pd.DataFrame) -> None:
    if frame.empty and not len(frame.columns):
        return
    ws.append([str(column) for column in frame.columns])
    for row in frame.itertuples(index=False, name=None):
        ws.append([_clean_value(value) for value in row])


def write_plate_workbook(plate: "PlateManager", out_path: str | Path) -> str:
    """Write wells, sample aggregates, Grubbs results and the audit trail."""

    workbook_path = Path(out_path)
    _ensure_parent(workbook_path)

    wb = Workbook()
    ws_wells = wb.active
    ws_wells.title = "Wells"
    _write_frame(ws_wells, plate.wells_frame())

    ws_samples = wb.create_sheet("Samples")
    _write_frame(ws_samples, plate.samples_frame())

    ws_grubbs = wb.create_sheet("Grubbs")
    _write_frame(ws_grubbs, plate.grubbs_frame())

    ws_audit = wb.create_sheet("Audit_Log")
    ws_audit.append(["Index", "Entry"])
    for idx, entry in enumerate(plate.audit or [], start=1):
        ws_audit.append([idx, _clean_value(entry)])

    wb.save(workbook_path)
    return str(workbook_path)
