"""Dimension unit normalisation and derived item classifications."""

from __future__ import annotations

from enum import Enum

# purpose: convert item dimensions into centimetres and derive cbm/timeline classifications
# inputs: raw dimension scalars, unit codes, sourcing type codes
# outputs: floats in cm, cbm rounded to 6 decimals, timeline type codes
# status: active


class Unit(str, Enum):
    MILLIMETRE = "mm"
    CENTIMETRE = "cm"
    METRE = "m"
    INCH = "in"


class SourcingType(str, Enum):
    FURNITURE = "furniture"
    GLOBAL_SOURCING = "global_sourcing"


class TimelineType(str, Enum):
    SIX_STEP = "6_step"
    FOUR_STEP = "4_step"


SUPPORTED_UNITS: tuple[str, ...] = tuple(unit.value for unit in Unit)
ALLOWED_SOURCING_TYPES: tuple[str, ...] = tuple(kind.value for kind in SourcingType)

# 1000 m expressed in centimetres
MAX_DIMENSION_CM = 100000.0

_TIMELINE_BY_SOURCING: dict[SourcingType, TimelineType] = {
    SourcingType.FURNITURE: TimelineType.SIX_STEP,
    SourcingType.GLOBAL_SOURCING: TimelineType.FOUR_STEP,
}


def _to_float(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_to_cm(value, unit: str | None) -> float | None:
    """Convert ``value`` expressed in ``unit`` to centimetres.

    Unknown units, non-numeric values and negative values yield ``None``.
    """

    if unit not in SUPPORTED_UNITS:
        return None
    number = _to_float(value)
    if number is None or number < 0:
        return None
    parsed = Unit(unit)
    if parsed is Unit.MILLIMETRE:
        return number / 10.0
    if parsed is Unit.METRE:
        return number * 100.0
    if parsed is Unit.INCH:
        return number * 2.54
    return number


def calculate_cbm(width_cm, depth_cm, height_cm) -> float | None:
    """Return cubic metres for dimensions given in centimetres, rounded to 6 places."""

    dims = [_to_float(width_cm), _to_float(depth_cm), _to_float(height_cm)]
    if any(dim is None for dim in dims):
        return None
    if any(dim <= 0 or dim > MAX_DIMENSION_CM for dim in dims):
        return None
    width, depth, height = dims
    return round((width * depth * height) / 1_000_000.0, 6)


def derive_timeline_type(sourcing_type: str | None) -> str | None:
    if not sourcing_type or sourcing_type not in ALLOWED_SOURCING_TYPES:
        return None
    return _TIMELINE_BY_SOURCING[SourcingType(sourcing_type)].value


def is_valid_unit(unit: str | None) -> bool:
    # empty means "not provided"
    if unit is None or unit == "":
        return True
    return unit in SUPPORTED_UNITS


def is_valid_sourcing_type(sourcing_type: str | None) -> bool:
    if sourcing_type is None or sourcing_type == "":
        return True
    return sourcing_type in ALLOWED_SOURCING_TYPES
