from __future__ import annotations

from dataclasses import dataclass

from ..calc.numeric import format_number
from ..models.project import Project
from ..services.project_model import (
    project_insulation_results,
    project_resistance_results,
    project_tg_delta_results,
    project_ttr_results,
)

"""Renderer-agnostic export model.

build_export() flattens a project into four sheets of text cells. Computed
cells come from the same functions the editor uses, so an export never
disagrees with the screen. Column order and titles are a fixed contract with
the spreadsheet and document renderers.
"""

__all__ = [
    "SHEET_TITLES",
    "ExportSheet",
    "DocumentLayout",
    "ExportModel",
    "build_export",
    "export_filename",
]

SHEET_TITLES = ("TTR", "Resistencia", "TG Delta", "Aislación")

TTR_HEADER = (
    "Tap", "Ratio %", "Rated Ratio",
    "Ph A Meas", "Dev A %", "Ph B Meas", "Dev B %", "Ph C Meas", "Dev C %",
)
TG_DELTA_HEADER = ("Modo", "Inyección", "Medición", "Guarda", "Tensión Ensayo", "TG (%)", "Cx (pF)")
INSULATION_HEADER = (
    "Inyección", "Medición", "Guarda",
    '30"', "1'", "2'", "3'", "4'", "5'", "6'", "7'", "8'", "9'", "10'",
    "RAD (DAR)", "IP (PI)", "Estado IP",
)

DEVIATION_DECIMALS = 3
RESISTANCE_DECIMALS = 4
INDEX_DECIMALS = 2


@dataclass(frozen=True)
class ExportSheet:
    title: str
    preamble: tuple[tuple[str, ...], ...]
    header: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]

    def as_rows(self) -> list[list[str]]:
        """Preamble, one blank separator row, header, data rows."""
        out = [list(r) for r in self.preamble]
        out.append([])
        out.append(list(self.header))
        out.extend(list(r) for r in self.rows)
        return out


@dataclass(frozen=True)
class DocumentLayout:
    """Page setup handed to the paginated document renderer."""
    filename: str
    page_format: str = "a4"
    orientation: str = "landscape"
    margin_mm: int = 5


@dataclass(frozen=True)
class ExportModel:
    project_id: str
    sheets: tuple[ExportSheet, ...]
    serial_number: str
    document: DocumentLayout

    def filename(self, ext: str) -> str:
        return export_filename(self.serial_number, ext)

    def sheet(self, title: str) -> ExportSheet:
        for s in self.sheets:
            if s.title == title:
                return s
        raise KeyError(title)


_PATH_SEPARATORS = str.maketrans({"/": "-", "\\": "-"})


def export_filename(serial_number: str, ext: str) -> str:
    # Path separators in the serial become dashes
    serial = serial_number.translate(_PATH_SEPARATORS)
    return f"Ensayo_{serial or 'SN'}.{ext.lstrip('.')}"


def _raw(value: str | None) -> str:
    return value if value is not None else ""


def _derived(value: float | None, decimals: int) -> str:
    return format_number(value, decimals) if value is not None else ""


def _ttr_sheet(project: Project) -> ExportSheet:
    header = project.header_info
    rows = []
    for result in project_ttr_results(project):
        d = result.data
        cells = [result.tap.label, _raw(d.ratio_percent), _raw(d.rated_ratio)]
        for phase, deviation in zip(d.phases, result.deviations, strict=True):
            cells += [_raw(phase), _derived(deviation, DEVIATION_DECIMALS)]
        rows.append(tuple(cells))
    return ExportSheet(
        title="TTR",
        preamble=(
            ("PLANILLA DE ENSAYOS - TTR",),
            ("Cliente:", header.client, "Fecha:", header.date),
            ("Nº Serie:", header.serial_number, "Nº Fab:", header.manufacturing_number),
        ),
        header=TTR_HEADER,
        rows=tuple(rows),
    )


def _resistance_sheet(project: Project) -> ExportSheet:
    settings = project.resistance_settings
    header = ["Tap"]
    for name in settings.connection_names:
        header += [
            f"{name} (Valor a {settings.measured_temp}°C)",
            f"{name} (Corr. a {settings.ref_temp}°C)",
        ]
    rows = []
    for result in project_resistance_results(project):
        cells = [result.tap.label]
        for measured, corrected in zip(result.data.resistances, result.corrected, strict=True):
            cells += [_raw(measured), _derived(corrected, RESISTANCE_DECIMALS)]
        rows.append(tuple(cells))
    return ExportSheet(
        title="Resistencia",
        preamble=(("PLANILLA DE ENSAYOS - RESISTENCIA",),),
        header=tuple(header),
        rows=tuple(rows),
    )


def _tg_delta_sheet(project: Project) -> ExportSheet:
    rows = tuple(
        (
            _raw(r.row.mode), _raw(r.row.injection), _raw(r.row.measurement), _raw(r.row.guard),
            _raw(r.row.test_voltage), _raw(r.row.tg_percent), _raw(r.row.capacitance),
        )
        for r in project_tg_delta_results(project)
    )
    return ExportSheet(
        title="TG Delta",
        preamble=(("PLANILLA DE ENSAYOS - TANGENTE DELTA",),),
        header=TG_DELTA_HEADER,
        rows=rows,
    )


def _insulation_sheet(project: Project) -> ExportSheet:
    rows = []
    for result in project_insulation_results(project):
        row = result.row
        cells = [_raw(row.injection), _raw(row.measurement), _raw(row.guard)]
        cells += [_raw(v) for v in row.readings]
        cells += [
            _derived(result.dar, INDEX_DECIMALS),
            _derived(result.pi, INDEX_DECIMALS),
            result.pi_status.label,
        ]
        rows.append(tuple(cells))
    return ExportSheet(
        title="Aislación",
        preamble=(("PLANILLA DE ENSAYOS - RESISTENCIA DE AISLACIÓN (GΩ)",),),
        header=INSULATION_HEADER,
        rows=tuple(rows),
    )


def build_export(project: Project) -> ExportModel:
    serial = project.header_info.serial_number
    return ExportModel(
        project_id=project.id,
        sheets=(
            _ttr_sheet(project),
            _resistance_sheet(project),
            _tg_delta_sheet(project),
            _insulation_sheet(project),
        ),
        serial_number=serial,
        document=DocumentLayout(filename=export_filename(serial, "pdf")),
    )
