from __future__ import annotations

import math

from .numeric import parse_number

"""Engineering indices derived from raw field text.

Every function here is total: unparsable input, a zero divisor or a
non-finite result all collapse to None, which the presentation layer shows as
a placeholder. Blank input parses to zero (see parse_number), so a blank
rated ratio yields None through the zero divisor while a blank measured value
still produces a number.
"""

__all__ = [
    "COPPER_TEMP_CONSTANT",
    "deviation_percent",
    "resistance_corrected",
    "dielectric_absorption_ratio",
    "polarization_index",
]

# Copper inferred-zero-resistance temperature (°C), IEC 60076-1
COPPER_TEMP_CONSTANT = 235.0


def _finite_or_none(value: float) -> float | None:
    return value if math.isfinite(value) else None


def _ratio(numerator: str | None, denominator: str | None) -> float | None:
    num = parse_number(numerator)
    den = parse_number(denominator)
    if math.isnan(num) or math.isnan(den) or den == 0:
        return None
    return _finite_or_none(num / den)


def deviation_percent(measured: str | None, rated: str | None) -> float | None:
    """Turns-ratio deviation of a measured phase against the rated ratio, in %."""
    m = parse_number(measured)
    r = parse_number(rated)
    if math.isnan(m) or math.isnan(r) or r == 0:
        return None
    return _finite_or_none((m - r) / r * 100)


def resistance_corrected(
    measured: str | None, measured_temp: str | None, ref_temp: str | None
) -> float | None:
    """Winding resistance corrected from the measurement to the reference temperature.

    R_ref = R_meas * (235 + T_ref) / (235 + T_meas)
    """
    m = parse_number(measured)
    t_meas = parse_number(measured_temp)
    t_ref = parse_number(ref_temp)
    if math.isnan(m) or math.isnan(t_meas) or math.isnan(t_ref):
        return None
    divisor = COPPER_TEMP_CONSTANT + t_meas
    if divisor == 0:
        return None
    return _finite_or_none(m * (COPPER_TEMP_CONSTANT + t_ref) / divisor)


def dielectric_absorption_ratio(val1m: str | None, val30s: str | None) -> float | None:
    """DAR = R(60 s) / R(30 s)."""
    return _ratio(val1m, val30s)


def polarization_index(val10m: str | None, val1m: str | None) -> float | None:
    """PI = R(10 min) / R(1 min)."""
    return _ratio(val10m, val1m)
