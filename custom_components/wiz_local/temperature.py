"""Conversion between WiZ Kelvin and the user-facing temperature unit.

The user-facing unit runs from 140 (coolest) to 500 (warmest), the device
speaks Kelvin from 2700 (warmest) to 6500 (coolest). The two mapping
functions are linear inverses of each other and do no bounds checking;
callers clamp with the helpers below before converting.
"""
from __future__ import annotations

from typing import Any

from .const import (
    COLOR_TEMP_KELVIN_MAX,
    COLOR_TEMP_KELVIN_MIN,
    COLOR_TEMP_UNIT_MAX,
    COLOR_TEMP_UNIT_MIN,
)

_KELVIN_SPAN = COLOR_TEMP_KELVIN_MAX - COLOR_TEMP_KELVIN_MIN
_UNIT_SPAN = COLOR_TEMP_UNIT_MAX - COLOR_TEMP_UNIT_MIN


def unit_to_kelvin(unit: float) -> int:
    """Convert a user-facing temperature unit to Kelvin."""
    p = 1 - (unit - COLOR_TEMP_UNIT_MIN) / _UNIT_SPAN
    return round(COLOR_TEMP_KELVIN_MIN + _KELVIN_SPAN * p)


def kelvin_to_unit(kelvin: float) -> int:
    """Convert Kelvin to the user-facing temperature unit."""
    p = 1 - (kelvin - COLOR_TEMP_KELVIN_MIN) / _KELVIN_SPAN
    return round(COLOR_TEMP_UNIT_MIN + _UNIT_SPAN * p)


def clamp_kelvin(kelvin: float) -> int:
    return int(round(max(COLOR_TEMP_KELVIN_MIN, min(COLOR_TEMP_KELVIN_MAX, kelvin))))


def clamp_unit(unit: float) -> int:
    return int(round(max(COLOR_TEMP_UNIT_MIN, min(COLOR_TEMP_UNIT_MAX, unit))))


def unit_from_reading(raw: Any, default: int = COLOR_TEMP_UNIT_MIN) -> int:
    """Map a raw ``temp`` reading from a bulb to the user-facing unit.

    Missing or unparseable readings fall back to ``default`` instead of
    raising; numeric readings are clamped to the Kelvin range first.
    """
    if raw is None or isinstance(raw, bool):
        return default
    try:
        kelvin = float(raw)
    except (TypeError, ValueError):
        return default
    if kelvin != kelvin:  # NaN
        return default
    return kelvin_to_unit(clamp_kelvin(kelvin))
