from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from .numeric import is_blank, parse_number

"""Pass/fail rules for the derived indices.

Thresholds are fixed acceptance values and are not exposed to configuration.
"""

__all__ = [
    "Status",
    "Classification",
    "TTR_MAX_DEVIATION_PERCENT",
    "TG_DELTA_MAX_PERCENT",
    "PI_MIN",
    "classify_deviation",
    "classify_tg_delta",
    "classify_polarization_index",
]

TTR_MAX_DEVIATION_PERCENT = 0.5
TG_DELTA_MAX_PERCENT = 0.5
PI_MIN = 1.0


class Status(Enum):
    """Outcome of a single check.

    - PASS: value within acceptance limits
    - FAIL: value outside acceptance limits
    - NEUTRAL: nothing to judge (missing or unusable data)
    """
    PASS = "pass"
    FAIL = "fail"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class Classification:
    status: Status
    label: str

    @property
    def passed(self) -> bool:
        return self.status is Status.PASS

    @property
    def failed(self) -> bool:
        return self.status is Status.FAIL


NEUTRAL = Classification(Status.NEUTRAL, "-")
PASSED = Classification(Status.PASS, "OK")
FAILED = Classification(Status.FAIL, "FALLA")
PI_ACCEPTABLE = Classification(Status.PASS, "ACEPTABLE")
PI_NOT_ACCEPTABLE = Classification(Status.FAIL, "NO ACEPTABLE")


def classify_deviation(deviation: float | None) -> Classification:
    """TTR: |deviation| <= 0.5 % passes (boundary inclusive)."""
    if deviation is None:
        return NEUTRAL
    return PASSED if abs(deviation) <= TTR_MAX_DEVIATION_PERCENT else FAILED


def classify_tg_delta(tg_percent: str | None) -> Classification:
    """Tangent delta works on the raw field: blank is NEUTRAL, 0.5 % and above fails."""
    if is_blank(tg_percent):
        return NEUTRAL
    value = parse_number(tg_percent)
    if math.isnan(value):
        return NEUTRAL
    return PASSED if value < TG_DELTA_MAX_PERCENT else FAILED


def classify_polarization_index(pi: float | None) -> Classification:
    """PI above 1.0 is acceptable; exactly 1.0 is not."""
    if pi is None:
        return NEUTRAL
    return PI_ACCEPTABLE if pi > PI_MIN else PI_NOT_ACCEPTABLE
