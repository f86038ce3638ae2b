from __future__ import annotations

import pytest

from trafo_sheet.calc.derivation import (
    deviation_percent,
    dielectric_absorption_ratio,
    polarization_index,
    resistance_corrected,
)


def test_deviation_percent_values():
    assert deviation_percent("100,5", "100") == pytest.approx(0.5)
    assert deviation_percent("101", "100") == pytest.approx(1.0)
    assert deviation_percent("99", "100") == pytest.approx(-1.0)


@pytest.mark.parametrize(
    "measured, rated",
    [("100", "0"), ("100", "0,0"), ("abc", "100"), ("100", "abc"), ("100", ""), ("100", None)],
)
def test_deviation_percent_undefined(measured, rated):
    assert deviation_percent(measured, rated) is None


def test_deviation_percent_blank_measured_counts_as_zero():
    # Blank readings parse to 0; only the divisor guards the result
    assert deviation_percent("", "100") == pytest.approx(-100.0)


def test_resistance_corrected():
    assert resistance_corrected("10", "20", "75") == pytest.approx(12.157, abs=1e-3)
    assert resistance_corrected("10", "75", "75") == pytest.approx(10.0)
    assert resistance_corrected("0,5", "20,5", "75") == pytest.approx(0.5 * 310 / 255.5)


@pytest.mark.parametrize(
    "measured, t_meas, t_ref",
    [("abc", "20", "75"), ("10", "x", "75"), ("10", "20", "?"), ("10", "-235", "75")],
)
def test_resistance_corrected_undefined(measured, t_meas, t_ref):
    assert resistance_corrected(measured, t_meas, t_ref) is None


def test_dielectric_absorption_ratio():
    assert dielectric_absorption_ratio("2", "1") == 2
    assert dielectric_absorption_ratio("3,3", "2,2") == pytest.approx(1.5)
    assert dielectric_absorption_ratio("2", "0") is None
    assert dielectric_absorption_ratio("2", "") is None
    assert dielectric_absorption_ratio("x", "1") is None


def test_polarization_index():
    assert polarization_index("5", "5") == 1.0
    assert polarization_index("5,01", "5") == pytest.approx(1.002)
    assert polarization_index("5", "0") is None
    assert polarization_index("5", "n/a") is None


def test_no_infinite_results():
    assert deviation_percent("1e308", "1e-308") is None
