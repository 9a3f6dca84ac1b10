import pytest

from plate_app.engine.plate_config import PlateConfigError
from plate_app.engine.plate_labels import (
    generate_plate_labels,
    numeric_position,
    set_type_of_plate,
)


def test_two_by_two_single_plate_uses_alphanumeric_labels():
    layout = generate_plate_labels({"nbRows": 2, "nbColumns": 2})
    assert layout.labels_list == ("1-A1", "1-A2", "1-B1", "1-B2")
    assert layout.type_of_plate == "2x2"


def test_two_plates_restart_alphanumeric_labels():
    layout = generate_plate_labels({"nbRows": 2, "nbColumns": 2, "nbPlates": 2, "accountPreviousWells": True})
    assert layout.labels_list == (
        "1-A1",
        "1-A2",
        "1-B1",
        "1-B2",
        "2-A1",
        "2-A2",
        "2-B1",
        "2-B2",
    )


@pytest.mark.parametrize(
    "options",
    [
        {"nb_rows": 8, "nb_columns": 12},
        {"nb_rows": "H", "nb_columns": 12, "nb_plates": 3},
        {"nb_rows": 3, "nb_columns": "e", "nb_plates": 2, "init_plate": 4},
        {"nb_rows": 4, "nb_columns": 5, "nb_plates": 2, "label_format": "numeric"},
        {"nb_rows": 4, "nb_columns": 5, "nb_plates": 3, "label_format": "numeric", "account_previous_wells": True},
        {"nb_rows": 3, "nb_columns": 4, "label_format": "numeric", "direction": "vertical"},
        {"nb_rows": 30, "nb_columns": 2},
    ],
)
def test_label_count_matches_type_of_plate(options):
    layout = generate_plate_labels(options)
    rows, columns = (int(part) for part in layout.type_of_plate.split("x"))
    nb_plates = options.get("nb_plates", 1)
    assert len(layout.labels_list) == rows * columns * nb_plates
    assert len(set(layout.labels_list)) == len(layout.labels_list)


def test_terminal_letters_resolve_to_extent():
    assert set_type_of_plate({"nbRows": "H", "nbColumns": 12}) == "8x12"
    layout = generate_plate_labels({"nbRows": "c", "nbColumns": "B"})
    assert layout.labels_list == ("1-A1", "1-A2", "1-B1", "1-B2", "1-C1", "1-C2")


def test_init_plate_offsets_plate_index():
    layout = generate_plate_labels({"nbRows": 1, "nbColumns": 2, "nbPlates": 2, "initPlate": 3})
    assert layout.labels_list == ("3-A1", "3-A2", "4-A1", "4-A2")
    assert layout.plates == (3, 4)


def test_rows_beyond_z_use_double_letters():
    layout = generate_plate_labels({"nbRows": 27, "nbColumns": 1})
    assert layout.labels_list[25] == "1-Z1"
    assert layout.labels_list[26] == "1-AA1"


def test_numeric_labels_restart_without_previous_wells():
    layout = generate_plate_labels(
        {"nbRows": 2, "nbColumns": 2, "nbPlates": 2, "label_format": "numeric"}
    )
    assert layout.labels_list == ("1-1", "1-2", "1-3", "1-4", "2-1", "2-2", "2-3", "2-4")


def test_numeric_labels_continue_across_plates():
    layout = generate_plate_labels(
        {
            "nbRows": 2,
            "nbColumns": 2,
            "nbPlates": 2,
            "label_format": "numeric",
            "accountPreviousWells": True,
        }
    )
    assert layout.labels_list == ("1-1", "1-2", "1-3", "1-4", "2-5", "2-6", "2-7", "2-8")


def test_numeric_vertical_direction_numbers_columns_first():
    layout = generate_plate_labels(
        {"nbRows": 2, "nbColumns": 3, "label_format": "numeric", "direction": "vertical"}
    )
    # Reading order, numbered down each column.
    assert layout.labels_list == ("1-1", "1-3", "1-5", "1-2", "1-4", "1-6")


def test_numeric_position_decomposition():
    assert numeric_position(1) == (1, 1)
    assert numeric_position(10) == (1, 10)
    assert numeric_position(11) == (2, 1)
    assert numeric_position(5, rows=2, direction="vertical") == (1, 3)


@pytest.mark.parametrize(
    "options",
    [
        {"nbRows": 0, "nbColumns": 12},
        {"nbRows": 8, "nbColumns": -1},
        {"nbRows": "@", "nbColumns": 12},
        {"nbRows": "H1", "nbColumns": 12},
        {"nbRows": 8, "nbColumns": 12, "nbPlates": 0},
        {"nbRows": 8, "nbColumns": 12, "direction": "diagonal"},
    ],
)
def test_invalid_geometry_raises(options):
    with pytest.raises(PlateConfigError):
        generate_plate_labels(options)
