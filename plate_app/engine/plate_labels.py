"""Well identity generation for arbitrary plate topologies."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, List, Mapping, Tuple

from plate_app.engine.plate_config import PlateConfig, count_to_letters

__all__ = [
    "PlateLabels",
    "generate_plate_labels",
    "numeric_label",
    "numeric_position",
    "set_type_of_plate",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlateLabels:
    labels_list: Tuple[str, ...]
    type_of_plate: str
    rows: int
    columns: int
    plates: Tuple[int, ...]


def _as_config(config: PlateConfig | Mapping[str, Any] | None) -> PlateConfig:
    if isinstance(config, PlateConfig):
        return config.ensure_valid()
    return PlateConfig.from_options(config).ensure_valid()


def numeric_label(row: int, column: int, rows: int, columns: int, direction: str = "horizontal") -> int:
    """Return the 1-based number of the well at zero-based ``(row, column)``."""

    if direction == "vertical":
        return column * rows + row + 1
    return row * columns + column + 1


def numeric_position(label: int | str, columns: int = 10, *, rows: int | None = None, direction: str = "horizontal") -> Tuple[int, int]:
    """Decompose a numeric label into its 1-based ``(row, column)`` position."""

    number = int(label)
    if number < 1:
        raise ValueError(f"Numeric well labels start at 1, got {label!r}")
    if direction == "vertical":
        if rows is None:
            raise ValueError("Column-major decomposition needs the number of rows")
        col_idx, row_idx = divmod(number - 1, rows)
        return row_idx + 1, col_idx + 1
    row_idx, col_idx = divmod(number - 1, columns)
    return row_idx + 1, col_idx + 1


def set_type_of_plate(config: PlateConfig | Mapping[str, Any] | None = None) -> str:
    return _as_config(config).type_of_plate


def generate_plate_labels(config: PlateConfig | Mapping[str, Any] | None = None) -> PlateLabels:
    """Generate the ordered well ids of a plate manager.

    Ids have the form ``<plate>-<label>`` and are emitted plate by plate,
    each plate in reading order (row by row). Alphanumeric labels (``A1``)
    restart on every plate. Numeric labels follow ``direction`` inside a
    plate and keep counting across plates when ``account_previous_wells`` is
    set, taking every plate before the current one into account.
    """

    cfg = _as_config(config)
    rows, columns = cfg.rows, cfg.columns
    per_plate = rows * columns
    plates = tuple(range(int(cfg.init_plate), int(cfg.init_plate) + int(cfg.nb_plates)))

    labels: List[str] = []
    for plate in plates:
        offset = (plate - 1) * per_plate if cfg.account_previous_wells else 0
        for row in range(rows):
            row_letters = count_to_letters(row + 1)
            for column in range(columns):
                if cfg.label_format == "numeric":
                    label = str(offset + numeric_label(row, column, rows, columns, cfg.direction))
                else:
                    label = f"{row_letters}{column + 1}"
                labels.append(f"{plate}-{label}")

    logger.debug(
        "Generated %d well ids for %d plate(s) of %s (%s labels)",
        len(labels),
        len(plates),
        cfg.type_of_plate,
        cfg.label_format,
    )
    return PlateLabels(
        labels_list=tuple(labels),
        type_of_plate=cfg.type_of_plate,
        rows=rows,
        columns=columns,
        plates=plates,
    )
