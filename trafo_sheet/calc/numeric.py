from __future__ import annotations

import math
import re

"""Decimal-comma number handling.

Field values are stored exactly as typed, using a comma as the decimal
separator. Arithmetic always goes through parse_number() first; display and
export go through format_number().
"""

__all__ = [
    "PLACEHOLDER",
    "is_blank",
    "normalize_decimal",
    "parse_number",
    "format_number",
]

PLACEHOLDER = "-"

# Leading numeric prefix, the same subset a browser parseFloat() accepts
_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def is_blank(text: str | None) -> bool:
    return text is None or text == ""


def normalize_decimal(text: str) -> str:
    """Replace the first period with a comma (write-side normalization)."""
    return text.replace(".", ",", 1)


def parse_number(text: str | float | int | None) -> float:
    """Parse decimal-comma text into a float.

    Blank input yields 0.0; input without a numeric prefix yields NaN.
    Never raises.

    Examples:
        >>> parse_number("100,5")
        100.5
        >>> parse_number("")
        0.0
    """
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text)
    if is_blank(text):
        return 0.0
    candidate = str(text).replace(",", ".", 1)
    match = _NUMBER_PREFIX.match(candidate)
    if match is None:
        return math.nan
    return float(match.group(1))


def format_number(value: float | None, decimals: int = 3) -> str:
    """Format a value with a fixed number of decimals and a comma separator.

    None, NaN and infinities render as the "-" placeholder.
    """
    if value is None or not math.isfinite(value):
        return PLACEHOLDER
    return f"{value:.{decimals}f}".replace(".", ",")
