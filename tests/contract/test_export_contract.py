from __future__ import annotations

import pytest

from trafo_sheet.export.mapper import SHEET_TITLES, build_export, export_filename


@pytest.fixture()
def filled(project):
    p = project.with_header_field("serial_number", "SN-4711")
    p = p.with_header_field("client", "Cooperativa")
    p = p.with_tap_field("neutral", "ratio_percent", "0")
    p = p.with_tap_field("neutral", "rated_ratio", "100")
    p = p.with_tap_field("neutral", "phase_a", "100,5")
    p = p.with_tap_field("neutral", "res_conn1_meas", "10")
    tg = p.tg_delta_data[0].id
    p = p.with_tg_delta_field(tg, "mode", "UST")
    p = p.with_tg_delta_field(tg, "injection", "AT")
    p = p.with_tg_delta_field(tg, "tg_percent", "0,25")
    ins = p.insulation_data[0].id
    p = p.with_insulation_field(ins, "val30s", "1")
    p = p.with_insulation_field(ins, "val1m", "2")
    p = p.with_insulation_field(ins, "val10m", "5")
    return p


def test_sheet_titles_and_order(filled):
    model = build_export(filled)
    assert tuple(s.title for s in model.sheets) == SHEET_TITLES == ("TTR", "Resistencia", "TG Delta", "Aislación")


def test_ttr_columns(filled):
    sheet = build_export(filled).sheet("TTR")
    assert sheet.header == (
        "Tap", "Ratio %", "Rated Ratio",
        "Ph A Meas", "Dev A %", "Ph B Meas", "Dev B %", "Ph C Meas", "Dev C %",
    )
    assert [r[0] for r in sheet.rows] == ["+5", "+4", "+3", "+2", "+1", "0 (Nominal)", "-1", "-2", "-3", "-4", "-5"]
    neutral = sheet.rows[5]
    assert neutral[:5] == ("0 (Nominal)", "0", "100", "100,5", "0,500")
    # Blank phase still derives from 0
    assert neutral[5:7] == ("", "-100,000")
    # No rated ratio: derived cells are empty
    assert sheet.rows[0][4] == ""
    assert sheet.preamble[1] == ("Cliente:", "Cooperativa", "Fecha:", filled.header_info.date)
    assert sheet.preamble[2][:2] == ("Nº Serie:", "SN-4711")


def test_resistance_columns(filled):
    sheet = build_export(filled).sheet("Resistencia")
    assert sheet.header == (
        "Tap",
        "Conexión 1 (Valor a 20°C)", "Conexión 1 (Corr. a 75°C)",
        "Conexión 2 (Valor a 20°C)", "Conexión 2 (Corr. a 75°C)",
        "Conexión 3 (Valor a 20°C)", "Conexión 3 (Corr. a 75°C)",
    )
    neutral = sheet.rows[5]
    assert neutral[1:3] == ("10", "12,1569")
    assert neutral[3:5] == ("", "0,0000")


def test_resistance_header_follows_settings(filled):
    p = filled.with_resistance_setting("measured_temp", "22.5").with_resistance_setting("conn2_name", "H2-H3")
    header = build_export(p).sheet("Resistencia").header
    assert header[1] == "Conexión 1 (Valor a 22,5°C)"
    assert header[3] == "H2-H3 (Valor a 22,5°C)"


def test_tg_delta_columns(filled):
    sheet = build_export(filled).sheet("TG Delta")
    assert sheet.header == ("Modo", "Inyección", "Medición", "Guarda", "Tensión Ensayo", "TG (%)", "Cx (pF)")
    assert len(sheet.rows) == 4
    assert sheet.rows[0] == ("UST", "AT", "", "", "", "0,25", "")


def test_insulation_columns(filled):
    sheet = build_export(filled).sheet("Aislación")
    assert sheet.header == (
        "Inyección", "Medición", "Guarda",
        '30"', "1'", "2'", "3'", "4'", "5'", "6'", "7'", "8'", "9'", "10'",
        "RAD (DAR)", "IP (PI)", "Estado IP",
    )
    assert len(sheet.rows) == 6
    assert sheet.rows[0][-3:] == ("2,00", "2,50", "ACEPTABLE")
    assert sheet.rows[1][-3:] == ("", "", "-")
    assert all(len(r) == len(sheet.header) for r in sheet.rows)


def test_rows_follow_table_length(filled):
    p = filled.without_tg_delta_row(filled.tg_delta_data[0].id).with_tap_range(0)
    model = build_export(p)
    assert len(model.sheet("TG Delta").rows) == 3
    assert [r[0] for r in model.sheet("TTR").rows] == ["0 (Nominal)"]
    assert len(model.sheet("Resistencia").rows) == 1


def test_as_rows_layout(filled):
    rows = build_export(filled).sheet("TG Delta").as_rows()
    assert rows[0] == ["PLANILLA DE ENSAYOS - TANGENTE DELTA"]
    assert rows[1] == []
    assert rows[2][0] == "Modo"
    assert len(rows) == 3 + 4


def test_filename(filled, project):
    assert build_export(filled).filename("xlsx") == "Ensayo_SN-4711.xlsx"
    assert build_export(project).filename("pdf") == "Ensayo_SN.pdf"
    assert export_filename("", ".xlsx") == "Ensayo_SN.xlsx"


def test_document_layout(filled):
    layout = build_export(filled).document
    assert (layout.filename, layout.page_format, layout.orientation, layout.margin_mm) == (
        "Ensayo_SN-4711.pdf", "a4", "landscape", 5,
    )


def test_filename_replaces_path_separators():
    assert export_filename("T-12/3", "xlsx") == "Ensayo_T-12-3.xlsx"
    assert export_filename("A\\B", "pdf") == "Ensayo_A-B.pdf"
