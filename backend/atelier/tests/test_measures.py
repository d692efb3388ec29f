import pytest

from atelier import measures


@pytest.mark.parametrize(
    "value,unit,expected",
    [
        (100, "cm", 100.0),
        (1000, "mm", 100.0),
        (1.5, "m", 150.0),
        (10, "in", 25.4),
        ("42", "cm", 42.0),
        (0, "cm", 0.0),
    ],
)
def test_normalize_to_cm(value, unit, expected):
    assert measures.normalize_to_cm(value, unit) == pytest.approx(expected)


@pytest.mark.parametrize(
    "value,unit",
    [(10, "ft"), (10, None), ("abc", "cm"), (None, "cm"), (-1, "cm"), (True, "cm")],
)
def test_normalize_to_cm_rejects_bad_input(value, unit):
    assert measures.normalize_to_cm(value, unit) is None


def test_calculate_cbm_rounds_to_six_places():
    assert measures.calculate_cbm(100, 100, 100) == 1.0
    assert measures.calculate_cbm(12.3, 45.6, 78.9) == round(12.3 * 45.6 * 78.9 / 1_000_000, 6)


def test_calculate_cbm_requires_three_positive_dimensions():
    assert measures.calculate_cbm(100, None, 100) is None
    assert measures.calculate_cbm(100, 0, 100) is None
    assert measures.calculate_cbm(100, -5, 100) is None
    assert measures.calculate_cbm(100, 100, measures.MAX_DIMENSION_CM + 1) is None


def test_derive_timeline_type():
    assert measures.derive_timeline_type("furniture") == "6_step"
    assert measures.derive_timeline_type("global_sourcing") == "4_step"
    assert measures.derive_timeline_type("other") is None
    assert measures.derive_timeline_type(None) is None


def test_unit_and_sourcing_validation_treat_empty_as_absent():
    assert measures.is_valid_unit(None)
    assert measures.is_valid_unit("")
    assert measures.is_valid_unit("in")
    assert not measures.is_valid_unit("yd")
    assert measures.is_valid_sourcing_type("")
    assert measures.is_valid_sourcing_type("furniture")
    assert not measures.is_valid_sourcing_type("bespoke")
