from __future__ import annotations

from typing import Iterable, Sequence

from plate_app.engine.well_model import Well

DEFAULT_REAGENT_KEYS = ("label", "concentration", "unit")


def check_reagents(
    well: Well,
    *,
    check_keys: bool = True,
    check_values: bool = False,
    keys: Sequence[str] | None = None,
) -> None:
    """Raise ``ValueError`` when a reagent of ``well`` is incomplete.

    ``check_keys`` requires every reagent to define the requested keys;
    ``check_values`` additionally rejects empty values.
    """

    required: Iterable[str] = keys or DEFAULT_REAGENT_KEYS
    for position, reagent in enumerate(well.reagents):
        payload = reagent.to_dict()
        for key in required:
            if check_keys and key not in payload:
                raise ValueError(f"Reagent {position} of well {well.id} has no '{key}' key")
            if check_values and payload.get(key) in (None, ""):
                raise ValueError(f"Reagent {position} of well {well.id} has no value for '{key}'")
