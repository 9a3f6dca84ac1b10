from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

DIRECTIONS = ("horizontal", "vertical")
LABEL_FORMATS = ("alphanumeric", "numeric")
OUTLIER_METHODS = ("table", "exact")

_OPTION_ALIASES = {
    "nbRows": "nb_rows",
    "nbColumns": "nb_columns",
    "nbPlates": "nb_plates",
    "initPlate": "init_plate",
    "accountPreviousWells": "account_previous_wells",
    "labelFormat": "label_format",
}


class PlateConfigError(ValueError):
    """Raised when a plate topology cannot be built from its configuration."""


def letters_to_count(letters: str) -> int:
    """Return the 1-based alphabetical position of ``letters`` (``H`` -> 8, ``AA`` -> 27)."""

    text = str(letters).strip().upper()
    if not text or not text.isascii() or not text.isalpha():
        raise PlateConfigError(f"Terminal bound must be a letter from 'A', got {letters!r}")
    count = 0
    for char in text:
        count = count * 26 + (ord(char) - ord("A") + 1)
    return count


def count_to_letters(count: int) -> str:
    """Inverse of :func:`letters_to_count` (``1`` -> ``A``, ``27`` -> ``AA``)."""

    if count < 1:
        raise PlateConfigError(f"Row index must be positive, got {count}")
    letters = ""
    while count:
        count, rem = divmod(count - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def resolve_extent(value: Any, name: str = "extent") -> int:
    """Resolve a row/column option given as a count or as a terminal letter."""

    if isinstance(value, bool):
        raise PlateConfigError(f"{name} must be a count or a letter, got {value!r}")
    if isinstance(value, int):
        extent = value
    elif isinstance(value, float) and value.is_integer():
        extent = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.lstrip("+-").isdigit():
            extent = int(text)
        else:
            try:
                extent = letters_to_count(text)
            except PlateConfigError as exc:
                raise PlateConfigError(f"{name}: {exc}") from exc
    else:
        raise PlateConfigError(f"{name} must be a count or a letter, got {value!r}")
    if extent <= 0:
        raise PlateConfigError(f"{name} must resolve to a positive extent, got {value!r}")
    return extent


def resolve_outlier_config(outlier: Mapping[str, Any] | bool | None) -> Dict[str, Any]:
    if outlier is None or outlier is True:
        cfg: Dict[str, Any] = {}
    elif outlier is False:
        cfg = {"enabled": False}
    elif isinstance(outlier, Mapping):
        cfg = dict(outlier)
    else:
        raise TypeError("'outlier' must be a mapping, boolean or None")
    return {
        "enabled": bool(cfg.get("enabled", True)),
        "method": str(cfg.get("method", "table")).lower(),
        "alpha": float(cfg.get("alpha", 0.05)),
    }


@dataclass
class PlateConfig:
    nb_rows: int | str = 8
    nb_columns: int | str = 12
    nb_plates: int = 1
    init_plate: int = 1
    account_previous_wells: bool = False
    direction: str = "horizontal"
    label_format: str = "alphanumeric"
    outlier: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None, **overrides: Any) -> "PlateConfig":
        merged: Dict[str, Any] = {}
        for key, value in {**dict(options or {}), **overrides}.items():
            if value is None:
                continue
            merged[_OPTION_ALIASES.get(key, key)] = value
        unknown = set(merged) - set(cls.__dataclass_fields__)
        if unknown:
            raise PlateConfigError(f"Unknown plate options: {', '.join(sorted(unknown))}")
        return cls(**merged)

    @property
    def rows(self) -> int:
        return resolve_extent(self.nb_rows, "nb_rows")

    @property
    def columns(self) -> int:
        return resolve_extent(self.nb_columns, "nb_columns")

    @property
    def type_of_plate(self) -> str:
        return f"{self.rows}x{self.columns}"

    @property
    def outlier_settings(self) -> Dict[str, Any]:
        return resolve_outlier_config(self.outlier)

    def validate(self) -> list[str]:
        errs = []
        for name in ("nb_rows", "nb_columns"):
            try:
                resolve_extent(getattr(self, name), name)
            except PlateConfigError as exc:
                errs.append(str(exc))
        try:
            if int(self.nb_plates) < 1:
                errs.append("nb_plates must be at least 1")
        except (TypeError, ValueError):
            errs.append("nb_plates must be an integer")
        try:
            if int(self.init_plate) < 1:
                errs.append("init_plate must be at least 1")
        except (TypeError, ValueError):
            errs.append("init_plate must be an integer")
        if self.direction not in DIRECTIONS:
            errs.append(f"direction must be one of {', '.join(DIRECTIONS)}")
        if self.label_format not in LABEL_FORMATS:
            errs.append(f"label_format must be one of {', '.join(LABEL_FORMATS)}")

        try:
            outlier = self.outlier_settings
        except (TypeError, ValueError) as exc:
            errs.append(f"Invalid outlier settings: {exc}")
        else:
            if outlier["method"] not in OUTLIER_METHODS:
                errs.append(f"Outlier method must be one of {', '.join(OUTLIER_METHODS)}")
            if not 0.0 < outlier["alpha"] < 1.0:
                errs.append("Outlier alpha must lie between 0 and 1")
            elif outlier["method"] == "table" and abs(outlier["alpha"] - 0.05) > 1e-12:
                errs.append("Grubbs table lookup only supports alpha=0.05")
        return errs

    def ensure_valid(self) -> "PlateConfig":
        errs = self.validate()
        if errs:
            raise PlateConfigError("; ".join(errs))
        return self
