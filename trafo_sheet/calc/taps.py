from __future__ import annotations

from dataclasses import dataclass

"""Tap position rows for the TTR and winding resistance tables."""

__all__ = [
    "MAX_TAP_RANGE",
    "NEUTRAL_ROW_ID",
    "TapRow",
    "generate_tap_rows",
    "validate_tap_range",
]

MAX_TAP_RANGE = 16
NEUTRAL_ROW_ID = "neutral"
NEUTRAL_LABEL = "0 (Nominal)"


@dataclass(frozen=True)
class TapRow:
    id: str  # pos-<k> / neutral / neg-<k>
    label: str  # +k / 0 (Nominal) / -k


def validate_tap_range(tap_range: int) -> int:
    if isinstance(tap_range, bool) or not isinstance(tap_range, int):
        raise ValueError(f"tap range must be an integer, got {tap_range!r}")
    if not 0 <= tap_range <= MAX_TAP_RANGE:
        raise ValueError(f"tap range must be within 0..{MAX_TAP_RANGE}, got {tap_range}")
    return tap_range


def generate_tap_rows(tap_range: int) -> tuple[TapRow, ...]:
    """Return the ordered tap rows for a +/-N tap changer.

    Highest positive tap first, then the nominal position, then the negative
    taps in ascending magnitude. Ids depend only on the position so measured
    data keyed by them survives a change of tap range.

    Raises:
        ValueError: If tap_range is not an integer within 0..16
    """
    validate_tap_range(tap_range)
    rows: list[TapRow] = []
    for k in range(tap_range, 0, -1):
        rows.append(TapRow(id=f"pos-{k}", label=f"+{k}"))
    rows.append(TapRow(id=NEUTRAL_ROW_ID, label=NEUTRAL_LABEL))
    for k in range(1, tap_range + 1):
        rows.append(TapRow(id=f"neg-{k}", label=f"-{k}"))
    return tuple(rows)
