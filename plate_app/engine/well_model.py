from __future__ import annotations

from dataclasses import dataclass, field
import math
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import uuid4

import numpy as np


class ShapeMismatchError(ValueError):
    """Raised when bulk input does not match the per-well structure."""


def _coerce_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (Real, np.integer, np.floating)):
        number = float(value)
        return number if math.isfinite(number) else None
    return None


def split_well_id(well_id: str) -> tuple[int, str]:
    plate, sep, label = str(well_id).partition("-")
    if not sep or not label:
        raise ValueError(f"Well id must look like '<plate>-<label>', got {well_id!r}")
    return int(plate), label


@dataclass
class Reagent:
    label: str
    unit: Optional[str] = None
    concentration: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "unit": self.unit, "concentration": self.concentration}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | "Reagent") -> "Reagent":
        if isinstance(data, Reagent):
            return cls(label=data.label, unit=data.unit, concentration=data.concentration)
        if not isinstance(data, Mapping):
            raise ShapeMismatchError(f"Reagent must be a mapping, got {type(data).__name__}")
        unit = data.get("unit")
        concentration = data.get("concentration")
        return cls(
            label=str(data.get("label") or ""),
            unit=str(unit) if unit not in (None, "") else None,
            concentration=float(concentration) if concentration not in (None, "") else None,
        )


@dataclass
class Curve:
    x: np.ndarray
    y: np.ndarray

    @classmethod
    def empty(cls) -> "Curve":
        return cls(x=np.zeros(0, dtype=float), y=np.zeros(0, dtype=float))

    @property
    def is_empty(self) -> bool:
        return self.x.size == 0 or self.y.size == 0

    def copy(self) -> "Curve":
        return Curve(x=np.asarray(self.x, dtype=float).copy(), y=np.asarray(self.y, dtype=float).copy())

    def to_dict(self) -> Dict[str, List[float]]:
        return {
            "x": np.asarray(self.x, dtype=float).tolist(),
            "y": np.asarray(self.y, dtype=float).tolist(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | "Curve" | None) -> "Curve":
        """Build a curve from ``{"x": [...], "y": [...]}``.

        ``x`` and ``y`` must be one-dimensional and of equal length; anything
        else raises :class:`ShapeMismatchError`.
        """

        if data is None:
            return cls.empty()
        if isinstance(data, Curve):
            return data.copy()
        if not isinstance(data, Mapping):
            raise ShapeMismatchError("Curve payload must be a mapping with 'x' and 'y'")
        raw_x = data.get("x")
        raw_y = data.get("y")
        if raw_x is None and raw_y is None:
            return cls.empty()
        if isinstance(raw_x, (str, bytes)) or isinstance(raw_y, (str, bytes)):
            raise ShapeMismatchError("Curve components must be numeric sequences")
        try:
            x = np.asarray(raw_x if raw_x is not None else [], dtype=float)
            y = np.asarray(raw_y if raw_y is not None else [], dtype=float)
        except (TypeError, ValueError) as exc:
            raise ShapeMismatchError(f"Curve components must be numeric sequences: {exc}") from exc
        if x.ndim != 1 or y.ndim != 1:
            raise ShapeMismatchError("Curve components must be one-dimensional")
        if x.size != y.size:
            raise ShapeMismatchError(
                f"Curve x and y must share the same length ({x.size} != {y.size})"
            )
        return cls(x=x, y=y)


def _default_well_metadata() -> Dict[str, Any]:
    return {"color": "black", "display": True}


@dataclass
class Well:
    id: str
    plate: int
    label: str
    reagents: List[Reagent] = field(default_factory=list)
    spectrum: Curve = field(default_factory=Curve.empty)
    growth_curve: Curve = field(default_factory=Curve.empty)
    analysis: Dict[str, float] = field(default_factory=dict)
    analysis_raw: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=_default_well_metadata)

    def add_reagents(self, reagents: Iterable[Mapping[str, Any] | Reagent]) -> None:
        self.reagents = [Reagent.from_dict(item) for item in reagents]

    def update_reagents(self, reagents: Iterable[Mapping[str, Any] | Reagent]) -> None:
        """Merge ``reagents`` into the well by reagent label."""

        by_label = {reagent.label: idx for idx, reagent in enumerate(self.reagents)}
        for item in reagents:
            reagent = Reagent.from_dict(item)
            idx = by_label.get(reagent.label)
            if idx is None:
                by_label[reagent.label] = len(self.reagents)
                self.reagents.append(reagent)
                continue
            current = self.reagents[idx]
            current.concentration = reagent.concentration
            if reagent.unit is not None:
                current.unit = reagent.unit

    def add_spectrum(self, curve: Mapping[str, Any] | Curve) -> None:
        self.spectrum = Curve.from_dict(curve)

    def add_growth_curve(self, curve: Mapping[str, Any] | Curve) -> None:
        self.growth_curve = Curve.from_dict(curve)

    def add_analysis(self, analysis: Mapping[str, Any] | None) -> None:
        """Store an analysis record and derive its numeric view.

        ``analysis_raw`` keeps the record as supplied; ``analysis`` only keeps
        the finite numeric scalars, which is what aggregation and outlier
        detection operate on.
        """

        raw = dict(analysis or {})
        self.analysis_raw = raw
        processed: Dict[str, float] = {}
        for key, value in raw.items():
            number = _coerce_float(value)
            if number is not None:
                processed[str(key)] = number
        self.analysis = processed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "plate": self.plate,
            "label": self.label,
            "reagents": [reagent.to_dict() for reagent in self.reagents],
            "spectrum": self.spectrum.to_dict(),
            "growth_curve": self.growth_curve.to_dict(),
            "analysis": dict(self.analysis_raw),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Well":
        if not isinstance(data, Mapping):
            raise ShapeMismatchError(f"Well record must be a mapping, got {type(data).__name__}")
        if not data.get("id"):
            raise ShapeMismatchError("Well record is missing its 'id'")
        well_id = str(data["id"])
        plate, label = split_well_id(well_id)
        reagents = data.get("reagents") or []
        if not isinstance(reagents, Sequence) or isinstance(reagents, (str, bytes)):
            raise ShapeMismatchError(f"Reagents of well {well_id} must be a list")
        well = cls(
            id=well_id,
            plate=int(data.get("plate") or plate),
            label=str(data.get("label") or label),
            reagents=[Reagent.from_dict(item) for item in reagents],
            spectrum=Curve.from_dict(_curve_payload(data.get("spectrum"))),
            growth_curve=Curve.from_dict(
                _curve_payload(data.get("growth_curve", data.get("growthCurve")))
            ),
            metadata={**_default_well_metadata(), **dict(data.get("metadata") or {})},
        )
        well.add_analysis(data.get("analysis"))
        return well


def _curve_payload(payload: Any) -> Any:
    # Accept both {"x", "y"} and the nested {"data": {"x", "y"}} shape.
    if isinstance(payload, Mapping) and "x" not in payload and isinstance(payload.get("data"), Mapping):
        return payload["data"]
    return payload


@dataclass
class GrubbsResult:
    label: str
    verdict: Optional[str]
    value: Optional[float]
    analysis_value: Optional[float]
    color: Optional[str]
    critical_value: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "verdict": self.verdict,
            "value": self.value,
            "analysis_value": self.analysis_value,
            "color": self.color,
            "critical_value": self.critical_value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GrubbsResult":
        return cls(
            label=str(data.get("label") or ""),
            verdict=data.get("verdict"),
            value=_coerce_float(data.get("value")),
            analysis_value=_coerce_float(data.get("analysis_value")),
            color=data.get("color"),
            critical_value=_coerce_float(data.get("critical_value")),
        )


@dataclass
class SampleWell:
    id: str
    in_average: bool = True
    tests: List[GrubbsResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "in_average": bool(self.in_average),
            "tests": [result.to_dict() for result in self.tests],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SampleWell":
        if not isinstance(data, Mapping) or not data.get("id"):
            raise ShapeMismatchError("Sample well entries need an 'id'")
        in_average = data.get("in_average", data.get("inAverage", True))
        return cls(
            id=str(data["id"]),
            in_average=bool(in_average),
            tests=[GrubbsResult.from_dict(item) for item in data.get("tests") or []],
        )


def _default_sample_metadata() -> Dict[str, Any]:
    return {"color": "blue", "display": True, "category": None, "group": None}


@dataclass
class PlateSample:
    label: str
    wells: List[SampleWell]
    id: str = field(default_factory=lambda: str(uuid4()))
    metadata: Dict[str, Any] = field(default_factory=_default_sample_metadata)
    analysis: Dict[str, Any] = field(default_factory=dict)
    averaged_spectra: Curve = field(default_factory=Curve.empty)
    averaged_growth_curves: Curve = field(default_factory=Curve.empty)
    reagents: List[Reagent] = field(default_factory=list)
    grubbs_critical_value: Optional[float] = None

    @property
    def included_ids(self) -> List[str]:
        return [entry.id for entry in self.wells if entry.in_average]

    def get_entry(self, well_id: str) -> Optional[SampleWell]:
        for entry in self.wells:
            if entry.id == well_id:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "wells": [entry.to_dict() for entry in self.wells],
            "metadata": dict(self.metadata),
            "reagents": [reagent.to_dict() for reagent in self.reagents],
            "grubbs_critical_value": self.grubbs_critical_value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlateSample":
        """Rebuild a sample shell; derived views are refreshed by the manager."""

        if not isinstance(data, Mapping):
            raise ShapeMismatchError(f"Sample record must be a mapping, got {type(data).__name__}")
        wells = data.get("wells")
        if not isinstance(wells, Sequence) or isinstance(wells, (str, bytes)):
            raise ShapeMismatchError("Sample record needs a list of 'wells'")
        return cls(
            id=str(data.get("id") or uuid4()),
            label=str(data.get("label") or ""),
            wells=[SampleWell.from_dict(item) for item in wells],
            metadata={**_default_sample_metadata(), **dict(data.get("metadata") or {})},
            reagents=[Reagent.from_dict(item) for item in data.get("reagents") or []],
            grubbs_critical_value=_coerce_float(data.get("grubbs_critical_value")),
        )
