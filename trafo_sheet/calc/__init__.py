"""Pure calculation layer: number format, tap rows, derived indices and classification."""

from .classification import (
    Classification,
    Status,
    classify_deviation,
    classify_polarization_index,
    classify_tg_delta,
)
from .derivation import (
    deviation_percent,
    dielectric_absorption_ratio,
    polarization_index,
    resistance_corrected,
)
from .numeric import format_number, normalize_decimal, parse_number
from .taps import TapRow, generate_tap_rows

__all__ = [
    "Classification",
    "Status",
    "TapRow",
    "classify_deviation",
    "classify_polarization_index",
    "classify_tg_delta",
    "deviation_percent",
    "dielectric_absorption_ratio",
    "format_number",
    "generate_tap_rows",
    "normalize_decimal",
    "parse_number",
    "polarization_index",
    "resistance_corrected",
]
