import pytest

from plate_app.engine.io_common import sniff_template_format
from plate_app.engine.plate_manager import PlateManager
from plate_app.engine.template_io import parse_reagent_header, parse_template
from plate_app.engine.well_model import ShapeMismatchError


def _fill(plate):
    reagents = []
    for idx, _ in enumerate(plate.wells):
        reagents.append(
            [
                {"label": "glucose", "unit": "mM", "concentration": 0.25 * idx},
                {"label": "tween", "unit": "%", "concentration": 1.0 / (idx + 3)},
                {"label": "water", "unit": None, "concentration": 10.0},
            ]
        )
    plate.add_reagents_from_array(reagents)
    return plate


def _assert_same_reagents(source, restored):
    for well in source.wells:
        other = restored.get_well(well.id)
        assert other is not None, well.id
        assert [r.label for r in other.reagents] == [r.label for r in well.reagents]
        assert [r.unit for r in other.reagents] == [r.unit for r in well.reagents]
        for mine, theirs in zip(well.reagents, other.reagents):
            assert theirs.concentration == pytest.approx(mine.concentration)


def test_alphanumeric_template_layout():
    plate = _fill(PlateManager(nbRows=2, nbColumns=2))
    lines = plate.get_template().splitlines()
    assert lines[0] == "row,column,glucose(mM),tween(%),water"
    assert lines[1].startswith("A,1,0,")
    assert lines[4].startswith("B,2,0.75,")
    assert len(lines) == 5


def test_alphanumeric_round_trip():
    plate = _fill(PlateManager(nbRows="H", nbColumns=12))
    restored = PlateManager.read_template(plate.get_template())
    assert restored.type_of_plate == "8x12"
    _assert_same_reagents(plate, restored)
    assert restored.samples, "Samples should be computed after loading"


def test_numeric_round_trip_with_tabs():
    plate = _fill(PlateManager(nbRows=10, nbColumns=10, label_format="numeric"))
    text = plate.get_template(separator="\t")
    assert text.splitlines()[1].split("\t")[:2] == ["1", "1"]
    assert text.splitlines()[11].split("\t")[:2] == ["2", "1"]
    restored = PlateManager.read_template(text)
    assert restored.type_of_plate == "10x10"
    assert restored.wells[0].label == "1"
    _assert_same_reagents(plate, restored)


def test_partial_template_only_updates_listed_wells():
    text = "row;column;glucose(mM)\nA;1;0,5\nB;3;1,25\n"
    plate = PlateManager.read_template(text)
    assert plate.get_well("1-A1").reagents[0].concentration == pytest.approx(0.5)
    assert plate.get_well("1-B3").reagents[0].unit == "mM"
    assert plate.get_well("1-B3").reagents[0].concentration == pytest.approx(1.25)
    assert plate.get_well("1-A2").reagents == []


def test_template_position_outside_plate_is_rejected():
    with pytest.raises(ValueError):
        PlateManager.read_template("row,column,glucose\nZ,1,1\n")


def test_parse_template_layout_detection():
    parsed = parse_template("row,column,dmso(uL)\n3,4,2\n")
    assert parsed["layout"] == "numeric"
    assert parsed["wells"] == [
        {"id": "1-24", "reagents": [{"label": "dmso", "unit": "uL", "concentration": 2.0}]}
    ]


def test_reagent_header_parsing():
    assert parse_reagent_header("glucose(mM)") == ("glucose", "mM")
    assert parse_reagent_header(" sodium chloride (M) ") == ("sodium chloride", "M")
    assert parse_reagent_header("water") == ("water", None)


def test_sniff_template_format():
    assert sniff_template_format("row,column,a\nA,1,0.5") == {"decimal": ".", "delimiter": ","}
    assert sniff_template_format("row\tcolumn\ta\nA\t1\t0,5") == {"decimal": ",", "delimiter": "\t"}
    assert sniff_template_format("") == {"decimal": ".", "delimiter": ","}


def test_multi_plate_layout_has_no_template():
    plate = PlateManager(nbRows=1, nbColumns=2, nbPlates=2)
    plate.add_reagents_from_array(
        [[{"label": "g", "unit": "mM", "concentration": float(idx)}] for idx in range(4)]
    )
    with pytest.raises(ShapeMismatchError, match="single plate"):
        plate.get_template()


def test_repeated_template_position_is_rejected():
    text = "row,column,g(mM)\nA,1,0\nA,2,1\nA,1,2\nA,2,3\n"
    with pytest.raises(ShapeMismatchError, match="more than once"):
        parse_template(text)
    with pytest.raises(ShapeMismatchError):
        PlateManager.read_template(text)
    with pytest.raises(ShapeMismatchError):
        parse_template("row,column,g\n1,2,0\n1,2,1\n")
