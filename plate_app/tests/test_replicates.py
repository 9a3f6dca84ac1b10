import numpy as np
import pytest

from plate_app.engine.plate_labels import generate_plate_labels
from plate_app.engine.replicates import (
    average_analysis,
    average_curves,
    group_replicates,
    raw_analysis,
    replicate_key,
)
from plate_app.engine.well_model import Curve, Well, split_well_id


def _wells(options):
    wells = []
    for well_id in generate_plate_labels(options).labels_list:
        plate, label = split_well_id(well_id)
        wells.append(Well(id=well_id, plate=plate, label=label))
    return wells


def test_grouping_pairs_matching_labels_across_plates():
    groups = group_replicates(_wells({"nbRows": 2, "nbColumns": 2, "nbPlates": 2}))
    assert list(groups) == ["A1", "A2", "B1", "B2"]
    assert [well.id for well in groups["A1"]] == ["1-A1", "2-A1"]
    assert [well.id for well in groups["A2"]] == ["1-A2", "2-A2"]


def test_grouping_is_a_partition():
    wells = _wells({"nbRows": 3, "nbColumns": 4, "nbPlates": 3})
    groups = group_replicates(wells)
    members = [well.id for group in groups.values() for well in group]
    assert sorted(members) == sorted(well.id for well in wells)
    for label, group in groups.items():
        assert all(replicate_key(well) == label for well in group)
    assert replicate_key("12-C4") == "C4"


def test_average_of_single_curve_is_unchanged():
    curve = Curve(x=np.array([1.0, 2.0, 3.0]), y=np.array([4.0, 5.0, 9.0]))
    averaged = average_curves([curve])
    assert np.allclose(averaged.x, curve.x)
    assert np.allclose(averaged.y, curve.y)


def test_average_of_identical_curves_is_that_curve():
    curve = Curve(x=np.linspace(0, 1, 5), y=np.array([0.1, 0.4, 0.2, 0.8, 0.5]))
    averaged = average_curves([curve.copy() for _ in range(4)])
    assert np.allclose(averaged.y, curve.y)


def test_average_skips_empty_curves_and_takes_elementwise_mean():
    x = np.array([400.0, 410.0, 420.0])
    curves = [
        Curve(x=x, y=np.array([1.0, 2.0, 3.0])),
        Curve.empty(),
        Curve(x=x, y=np.array([3.0, 4.0, 5.0])),
    ]
    averaged = average_curves(curves)
    assert np.allclose(averaged.x, x)
    assert np.allclose(averaged.y, [2.0, 3.0, 4.0])


def test_average_without_curves_is_empty():
    assert average_curves([]).is_empty
    assert average_curves([Curve.empty(), Curve.empty()]).is_empty


def test_average_rejects_length_mismatch():
    with pytest.raises(ValueError):
        average_curves(
            [
                Curve(x=np.arange(3.0), y=np.ones(3)),
                Curve(x=np.arange(4.0), y=np.ones(4)),
            ]
        )


def test_analysis_views():
    first = Well(id="1-A1", plate=1, label="A1")
    second = Well(id="2-A1", plate=2, label="A1")
    first.add_analysis({"od": 1.0, "rate": 0.2, "note": "lag"})
    second.add_analysis({"od": 3.0})

    rows = raw_analysis([first, second])
    assert rows == [{"od": 1.0, "rate": 0.2, "id": "1-A1"}, {"od": 3.0, "id": "2-A1"}]

    averaged = average_analysis([first, second])
    assert averaged["od"] == pytest.approx(2.0)
    assert averaged["rate"] == pytest.approx(0.2)
    assert "note" not in averaged
    assert average_analysis([first, second]) == averaged
