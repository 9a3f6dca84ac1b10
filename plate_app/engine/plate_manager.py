"""Plate manager: owns the wells of a plate layout and their replicate samples."""

from __future__ import annotations

from dataclasses import asdict
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from plate_app.engine import audit as audit_log
from plate_app.engine import grubbs
from plate_app.engine.charts import build_chart
from plate_app.engine.plate_config import PlateConfig, resolve_extent
from plate_app.engine.plate_labels import generate_plate_labels
from plate_app.engine.reagents import check_reagents
from plate_app.engine.replicates import (
    average_analysis,
    average_curves,
    group_replicates,
    raw_analysis,
    replicate_key,
)
from plate_app.engine.template_io import parse_template, write_template
from plate_app.engine.well_model import (
    Curve,
    PlateSample,
    Reagent,
    SampleWell,
    ShapeMismatchError,
    Well,
    split_well_id,
)
from plate_app.engine.well_ordering import sort_wells

__all__ = ["PlateManager", "INITIALIZED", "GROUPED", "ANALYZED"]

logger = logging.getLogger(__name__)

INITIALIZED = "initialized"
GROUPED = "grouped"
ANALYZED = "analyzed"

MATCHED_CURVE_METADATA = {"display": False, "color": "black"}
MISSING_CURVE_METADATA = {"display": False, "color": "darkgrey"}


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _normalise_curve_items(items: Any) -> List[Dict[str, Any]]:
    """Validate curve input and return ``{"key", "by_id", "curve"}`` entries."""

    if not _is_list(items):
        raise ShapeMismatchError("Curve input must be a list of {label, array: {x, y}} objects")
    normalised = []
    for position, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ShapeMismatchError(f"Curve entry {position} must be a mapping")
        payload = item.get("array", item)
        curve = Curve.from_dict(payload)
        if curve.is_empty and not (isinstance(payload, Mapping) and "x" in payload and "y" in payload):
            raise ShapeMismatchError(f"Curve entry {position} needs 'x' and 'y' arrays")
        if item.get("id") is not None:
            normalised.append({"key": str(item["id"]), "by_id": True, "curve": curve})
        elif item.get("label") is not None:
            normalised.append({"key": str(item["label"]), "by_id": False, "curve": curve})
        else:
            raise ShapeMismatchError(f"Curve entry {position} needs a 'label' or an 'id'")
    return normalised


class PlateManager:
    """Wells of one or more physical plates plus their replicate samples.

    Samples are created the first time :meth:`update_samples` runs and are
    only updated in place afterwards, so manual ``in_average`` edits and
    sample metadata survive every recomputation. Every method that changes
    well data recomputes the samples before returning.
    """

    def __init__(self, config: PlateConfig | Mapping[str, Any] | None = None, **options: Any) -> None:
        if isinstance(config, PlateConfig):
            cfg = config if not options else PlateConfig.from_options({**config.__dict__, **options})
        else:
            cfg = PlateConfig.from_options(config, **options)
        self.config = cfg.ensure_valid()
        layout = generate_plate_labels(self.config)
        self.type_of_plate = layout.type_of_plate
        self.wells: List[Well] = []
        for well_id in layout.labels_list:
            plate, label = split_well_id(well_id)
            self.wells.append(Well(id=well_id, plate=plate, label=label))
        self.samples: List[PlateSample] = []
        self._analyzed = False
        self.audit = audit_log.start_audit(self.type_of_plate, len(self.wells))

    @property
    def state(self) -> str:
        if not self.samples:
            return INITIALIZED
        return ANALYZED if self._analyzed else GROUPED

    # ------------------------------------------------------------------
    # Bulk assignment
    def add_reagents_from_array(self, reagents: Sequence[Iterable[Mapping[str, Any] | Reagent]]) -> None:
        if not _is_list(reagents) or len(reagents) != len(self.wells):
            raise ShapeMismatchError("Input array must have the same length as wells in the plate")
        parsed = []
        for position, entry in enumerate(reagents):
            if not _is_list(entry):
                raise ShapeMismatchError(f"Reagents for well {position} must be a list")
            parsed.append([Reagent.from_dict(item) for item in entry])
        for well, well_reagents in zip(self.wells, parsed):
            well.add_reagents(well_reagents)
        audit_log.log_step(self.audit, f"Reagents assigned to {len(self.wells)} wells")
        self.update_samples()

    def add_spectrum_from_array(self, spectra: Sequence[Mapping[str, Any]]) -> None:
        self._assign_curves(spectra, "spectrum")

    def add_growth_curves_from_array(self, growth_curves: Sequence[Mapping[str, Any]]) -> None:
        self._assign_curves(growth_curves, "growth_curve")

    def _assign_curves(self, items: Sequence[Mapping[str, Any]], attribute: str) -> None:
        entries = _normalise_curve_items(items)
        by_id: Dict[str, Curve] = {}
        by_label: Dict[str, Curve] = {}
        for entry in entries:
            target = by_id if entry["by_id"] else by_label
            target.setdefault(entry["key"], entry["curve"])

        incoming = {well.id: by_id.get(well.id) or by_label.get(well.label) for well in self.wells}
        lengths: Dict[str, set] = {}
        for well in self.wells:
            curve = incoming[well.id] or getattr(well, attribute)
            if not curve.is_empty:
                lengths.setdefault(replicate_key(well), set()).add(len(curve.x))
        mixed = sorted(label for label, sizes in lengths.items() if len(sizes) > 1)
        if mixed:
            raise ShapeMismatchError(f"Replicate {attribute} curves differ in length for samples: {', '.join(mixed)}")

        matched = 0
        for well in self.wells:
            curve = incoming[well.id]
            if curve is not None:
                well.metadata.update(MATCHED_CURVE_METADATA)
                setattr(well, attribute, curve.copy())
                matched += 1
            else:
                well.metadata.update(MISSING_CURVE_METADATA)
        if matched < len(self.wells):
            logger.info("%d of %d wells received no %s", len(self.wells) - matched, len(self.wells), attribute)
        audit_log.log_step(self.audit, f"{attribute} assigned to {matched} wells")
        self.update_samples()

    def add_analysis_from_array(self, analysis: Sequence[Mapping[str, Any] | None]) -> None:
        """Attach analysis results by position, parallel to :attr:`wells`.

        Entries beyond the last well are ignored; wells without an entry (or
        with ``None``) keep their current analysis.
        """

        if not _is_list(analysis):
            raise ShapeMismatchError("The analysis input is not an array")
        for position, entry in enumerate(analysis):
            if entry is not None and not isinstance(entry, Mapping):
                raise ShapeMismatchError(f"Analysis entry {position} must be a mapping")
        if len(analysis) > len(self.wells):
            logger.warning("Ignoring %d analysis entries beyond the last well", len(analysis) - len(self.wells))
        for well, entry in zip(self.wells, analysis):
            if entry is not None:
                well.add_analysis(entry)
        audit_log.log_step(self.audit, f"Analysis assigned to {min(len(analysis), len(self.wells))} wells")
        self.update_samples()

    def set_in_average(self, sample_id: str, well_id: str, in_average: bool) -> PlateSample:
        """Include or exclude one well of a sample from its aggregates."""

        self.update_samples()
        sample = self.get_sample(sample_id)
        if sample is None:
            raise KeyError(f"Unknown sample id: {sample_id}")
        entry = sample.get_entry(well_id)
        if entry is None:
            raise KeyError(f"Well {well_id} is not part of sample {sample.label}")
        entry.in_average = bool(in_average)
        audit_log.log_step(self.audit, f"Well {well_id} in_average={entry.in_average} in sample {sample.label}")
        self.update_samples()
        return sample

    # ------------------------------------------------------------------
    # Lookup
    def get_wells(self, ids: Optional[Iterable[str]] = None) -> List[Well]:
        if ids is None:
            return list(self.wells)
        wanted = set(ids)
        return [well for well in self.wells if well.id in wanted]

    def get_well(self, well_id: str) -> Optional[Well]:
        for well in self.wells:
            if well.id == well_id:
                return well
        return None

    def get_samples(self, ids: Optional[Iterable[str]] = None) -> List[PlateSample]:
        if ids is None:
            return list(self.samples)
        wanted = set(ids)
        return [sample for sample in self.samples if sample.id in wanted]

    def get_sample(self, sample_id: str) -> Optional[PlateSample]:
        for sample in self.samples:
            if sample.id == sample_id:
                return sample
        return None

    def get_sample_by_label(self, label: str) -> Optional[PlateSample]:
        for sample in self.samples:
            if sample.label == label:
                return sample
        return None

    def check_reagents(
        self,
        *,
        check_keys: bool = True,
        check_values: bool = False,
        keys: Sequence[str] | None = None,
    ) -> None:
        for well in self.wells:
            check_reagents(well, check_keys=check_keys, check_values=check_values, keys=keys)

    # ------------------------------------------------------------------
    # Samples
    def group_samples(self) -> List[PlateSample]:
        """Create one sample per distinct positional label (only once)."""

        if self.samples:
            return self.samples
        groups = group_replicates(sort_wells(self.wells))
        self.samples = [
            PlateSample(
                label=label,
                wells=[SampleWell(id=well.id, in_average=True) for well in members],
            )
            for label, members in groups.items()
        ]
        self._analyzed = False
        logger.debug("Grouped %d wells into %d samples", len(self.wells), len(self.samples))
        return self.samples

    def analyze_samples(self) -> None:
        wells_by_id = {well.id: well for well in self.wells}
        outlier = self.config.outlier_settings
        for sample in self.samples:
            members = [wells_by_id[entry.id] for entry in sample.wells if entry.id in wells_by_id]
            included = [wells_by_id[well_id] for well_id in sample.included_ids if well_id in wells_by_id]
            sample.reagents = [Reagent.from_dict(reagent) for reagent in members[0].reagents] if members else []
            sample.analysis = {
                "raw": raw_analysis(included),
                "averaged": average_analysis(included),
                "wells": [{"id": well.id, "analysis": dict(well.analysis)} for well in included],
            }
            sample.averaged_spectra = average_curves([well.spectrum for well in included])
            sample.averaged_growth_curves = average_curves([well.growth_curve for well in included])
            grubbs.evaluate_sample(sample, wells_by_id, outlier)
        self._analyzed = True

    def update_samples(self) -> None:
        self.group_samples()
        self.analyze_samples()

    # ------------------------------------------------------------------
    # Charts
    def get_spectra_chart(self, ids: Optional[Iterable[str]] = None) -> Dict[str, List[Dict[str, Any]]]:
        return build_chart((well.spectrum, well) for well in self.get_wells(ids))

    def get_growth_curve_chart(self, ids: Optional[Iterable[str]] = None) -> Dict[str, List[Dict[str, Any]]]:
        return build_chart((well.growth_curve, well) for well in self.get_wells(ids))

    def get_chart_of_spectra_samples(self, ids: Optional[Iterable[str]] = None) -> Dict[str, List[Dict[str, Any]]]:
        return build_chart((sample.averaged_spectra, sample) for sample in self.get_samples(ids))

    def get_chart_of_growth_curves_samples(
        self, ids: Optional[Iterable[str]] = None
    ) -> Dict[str, List[Dict[str, Any]]]:
        return build_chart((sample.averaged_growth_curves, sample) for sample in self.get_samples(ids))

    # ------------------------------------------------------------------
    # Tabular views
    def wells_frame(self) -> pd.DataFrame:
        rows = []
        for well in self.wells:
            row: Dict[str, Any] = {"id": well.id, "plate": well.plate, "label": well.label}
            for reagent in well.reagents:
                key = f"{reagent.label}({reagent.unit})" if reagent.unit else reagent.label
                row[key] = reagent.concentration
            for key, value in well.analysis.items():
                row[f"analysis.{key}"] = value
            rows.append(row)
        return pd.DataFrame(rows)

    def samples_frame(self) -> pd.DataFrame:
        rows = []
        for sample in self.samples:
            row: Dict[str, Any] = {
                "id": sample.id,
                "label": sample.label,
                "wells": len(sample.wells),
                "in_average": len(sample.included_ids),
                "grubbs_critical_value": sample.grubbs_critical_value,
            }
            for key, value in (sample.analysis.get("averaged") or {}).items():
                row[f"mean.{key}"] = value
            rows.append(row)
        return pd.DataFrame(rows)

    def grubbs_frame(self) -> pd.DataFrame:
        rows = []
        for sample in self.samples:
            for entry in sample.wells:
                for result in entry.tests:
                    rows.append(
                        {
                            "sample": sample.label,
                            "well": entry.id,
                            "in_average": entry.in_average,
                            "metric": result.label,
                            "verdict": result.verdict,
                            "statistic": result.value,
                            "analysis_value": result.analysis_value,
                            "critical_value": result.critical_value,
                        }
                    )
        columns = [
            "sample",
            "well",
            "in_average",
            "metric",
            "verdict",
            "statistic",
            "analysis_value",
            "critical_value",
        ]
        return pd.DataFrame(rows, columns=columns)

    # ------------------------------------------------------------------
    # Templates and reconstruction
    def get_template(self, separator: str = ",") -> str:
        return write_template(self, separator=separator)

    @classmethod
    def read_template(cls, text: str, separator: str | None = None) -> "PlateManager":
        parsed = parse_template(text, separator=separator)
        if parsed["layout"] == "numeric":
            plate = cls(nb_rows=10, nb_columns=10, label_format="numeric")
        else:
            plate = cls(nb_rows="H", nb_columns=12)
        for record in parsed["wells"]:
            well = plate.get_well(record["id"])
            if well is None:
                raise ValueError(f"Template position {record['id']} is outside a {plate.type_of_plate} plate")
            well.update_reagents(record["reagents"])
        audit_log.log_step(plate.audit, f"Template loaded with {len(parsed['wells'])} wells")
        plate.update_samples()
        return plate

    @classmethod
    def fill_plate_from_array(cls, wells: Sequence[Mapping[str, Any]]) -> "PlateManager":
        """Rebuild a plate manager from well records given in any order."""

        if not _is_list(wells) or not wells:
            raise ShapeMismatchError("Well records must be a non-empty list")
        records = []
        for position, record in enumerate(wells):
            if not isinstance(record, Mapping) or not record.get("id"):
                raise ShapeMismatchError(f"Well record {position} needs an 'id'")
            plate_index, label = split_well_id(str(record["id"]))
            records.append({**record, "id": str(record["id"]), "label": str(record.get("label") or label)})
            records[-1].setdefault("plate", plate_index)

        records = sort_wells(records)
        last_label = sort_wells(records, "label")[-1]["label"]
        if last_label.isdigit():
            nb_rows, nb_columns, label_format = 10, 10, "numeric"
        else:
            parts = re.findall(r"[^\d]+|\d+", last_label)
            if len(parts) != 2:
                raise ShapeMismatchError(f"Cannot infer plate dimensions from label {last_label!r}")
            nb_rows, nb_columns, label_format = parts[0], int(parts[1]), "alphanumeric"
        nb_plates = max(split_well_id(record["id"])[0] for record in records)

        plate = cls(nb_rows=nb_rows, nb_columns=nb_columns, nb_plates=nb_plates, label_format=label_format)
        index_by_id = {well.id: idx for idx, well in enumerate(plate.wells)}
        ignored = 0
        for record in records:
            idx = index_by_id.get(record["id"])
            if idx is None:
                ignored += 1
                continue
            plate.wells[idx] = Well.from_dict(record)
        if ignored:
            logger.warning("Ignored %d well records outside the inferred layout", ignored)
        plate.type_of_plate = f"{resolve_extent(nb_rows)}x{resolve_extent(nb_columns)}"
        audit_log.log_step(plate.audit, f"Plate rebuilt from {len(records) - ignored} well records")
        plate.update_samples()
        return plate

    # ------------------------------------------------------------------
    # (De)serialization
    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": asdict(self.config),
            "type_of_plate": self.type_of_plate,
            "wells": [well.to_dict() for well in self.wells],
            "samples": [sample.to_dict() for sample in self.samples],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlateManager":
        """Rebuild a live plate manager from :meth:`to_dict` output.

        Sample ids, metadata and ``in_average`` flags are restored; every
        derived view is recomputed from the restored wells.
        """

        if not isinstance(data, Mapping):
            raise ShapeMismatchError("Plate payload must be a mapping")
        wells = data.get("wells")
        samples = data.get("samples") or []
        if not _is_list(wells) or not _is_list(samples):
            raise ShapeMismatchError("Plate payload needs 'wells' and 'samples' lists")

        plate = cls(PlateConfig.from_options(data.get("config") or {}))
        restored = [Well.from_dict(record) for record in wells]
        if [well.id for well in restored] != [well.id for well in plate.wells]:
            raise ShapeMismatchError("Stored wells do not match the stored plate configuration")
        plate.wells = restored
        plate.type_of_plate = str(data.get("type_of_plate") or plate.type_of_plate)
        plate.samples = [PlateSample.from_dict(record) for record in samples]
        known = {well.id for well in plate.wells}
        for sample in plate.samples:
            unknown = [entry.id for entry in sample.wells if entry.id not in known]
            if unknown:
                raise ShapeMismatchError(f"Sample {sample.label} refers to unknown wells: {unknown}")
        audit_log.log_step(plate.audit, "Plate restored from serialized payload")
        plate.update_samples()
        return plate
