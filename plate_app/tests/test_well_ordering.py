import random

import pytest

from plate_app.engine.well_model import Well
from plate_app.engine.well_ordering import sort_wells, well_sort_key


def test_natural_order_puts_a2_before_a10():
    labels = ["A10", "B1", "A2", "A1"]
    assert sorted(labels, key=well_sort_key) == ["A1", "A2", "A10", "B1"]


def test_integer_labels_sort_numerically():
    labels = ["10", "9", "100", "1"]
    assert sorted(labels, key=well_sort_key) == ["1", "9", "10", "100"]


def test_sort_by_id_orders_plates_numerically():
    records = [{"id": "10-A1"}, {"id": "2-A1"}, {"id": "1-B2"}, {"id": "1-A12"}, {"id": "1-A3"}]
    assert [item["id"] for item in sort_wells(records)] == ["1-A3", "1-A12", "1-B2", "2-A1", "10-A1"]


def test_sort_is_stable_for_equal_keys():
    records = [
        {"id": "2-A1", "label": "A1", "tag": "first"},
        {"id": "1-B1", "label": "B1", "tag": "b"},
        {"id": "1-A1", "label": "A1", "tag": "second"},
    ]
    ordered = sort_wells(records, path="label")
    assert [item["tag"] for item in ordered] == ["first", "second", "b"]


def test_sort_accepts_well_objects():
    wells = [Well(id=f"1-{label}", plate=1, label=label) for label in ("H12", "A2", "A10", "A1")]
    random.Random(0).shuffle(wells)
    assert [well.label for well in sort_wells(wells, "label")] == ["A1", "A2", "A10", "H12"]


def test_sort_rejects_unknown_field():
    with pytest.raises(ValueError):
        sort_wells([{"id": "1-A1"}], path="plate")
