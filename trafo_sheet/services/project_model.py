from __future__ import annotations

import logging
from dataclasses import dataclass

from ..calc.classification import (
    Classification,
    classify_deviation,
    classify_polarization_index,
    classify_tg_delta,
)
from ..calc.derivation import (
    deviation_percent,
    dielectric_absorption_ratio,
    polarization_index,
    resistance_corrected,
)
from ..calc.taps import TapRow, generate_tap_rows
from ..models.project import InsulationRow, Project, TapRowData, TgDeltaRow
from ..models.row_id import RowIdGenerator
from .persistence import PersistenceController

"""Editing session for one open project.

ProjectModel owns the current immutable Project snapshot. Each mutation
replaces the snapshot, hands it to the PersistenceController (when one is
attached) and returns it. Mutations that address a row id that no longer
exists are no-ops: nothing changes and nothing is scheduled.

The *_results() readers expose the computed values the editor shows; the
export mapper uses the same derivation and classification functions.
"""

__all__ = [
    "ProjectModel",
    "TtrResult",
    "ResistanceResult",
    "TgDeltaResult",
    "InsulationResult",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TtrResult:
    tap: TapRow
    data: TapRowData
    deviations: tuple[float | None, float | None, float | None]  # phase A, B, C
    statuses: tuple[Classification, Classification, Classification]


@dataclass(frozen=True)
class ResistanceResult:
    tap: TapRow
    data: TapRowData
    corrected: tuple[float | None, float | None, float | None]  # connection 1, 2, 3


@dataclass(frozen=True)
class TgDeltaResult:
    row: TgDeltaRow
    status: Classification


@dataclass(frozen=True)
class InsulationResult:
    row: InsulationRow
    dar: float | None
    pi: float | None
    pi_status: Classification


def ttr_result(tap: TapRow, data: TapRowData) -> TtrResult:
    deviations = tuple(deviation_percent(phase, data.rated_ratio) for phase in data.phases)
    return TtrResult(
        tap=tap,
        data=data,
        deviations=deviations,  # type: ignore[arg-type]
        statuses=tuple(classify_deviation(d) for d in deviations),  # type: ignore[arg-type]
    )


def resistance_result(tap: TapRow, data: TapRowData, measured_temp: str, ref_temp: str) -> ResistanceResult:
    return ResistanceResult(
        tap=tap,
        data=data,
        corrected=tuple(  # type: ignore[arg-type]
            resistance_corrected(value, measured_temp, ref_temp) for value in data.resistances
        ),
    )


def insulation_result(row: InsulationRow) -> InsulationResult:
    pi = polarization_index(row.val10m, row.val1m)
    return InsulationResult(
        row=row,
        dar=dielectric_absorption_ratio(row.val1m, row.val30s),
        pi=pi,
        pi_status=classify_polarization_index(pi),
    )


def project_ttr_results(project: Project) -> list[TtrResult]:
    return [ttr_result(tap, project.tap_data(tap.id)) for tap in generate_tap_rows(project.tap_range)]


def project_resistance_results(project: Project) -> list[ResistanceResult]:
    settings = project.resistance_settings
    return [
        resistance_result(tap, project.tap_data(tap.id), settings.measured_temp, settings.ref_temp)
        for tap in generate_tap_rows(project.tap_range)
    ]


def project_tg_delta_results(project: Project) -> list[TgDeltaResult]:
    return [TgDeltaResult(row=row, status=classify_tg_delta(row.tg_percent)) for row in project.tg_delta_data]


def project_insulation_results(project: Project) -> list[InsulationResult]:
    return [insulation_result(row) for row in project.insulation_data]


class ProjectModel:
    def __init__(
        self,
        project: Project,
        persistence: PersistenceController | None = None,
        row_ids: RowIdGenerator | None = None,
    ) -> None:
        self._snapshot = project
        self._persistence = persistence
        self._row_ids = row_ids or RowIdGenerator()
        self._row_ids.reserve(project.row_ids())

    @property
    def snapshot(self) -> Project:
        return self._snapshot

    @property
    def project_id(self) -> str:
        return self._snapshot.id

    @property
    def persistence(self) -> PersistenceController | None:
        return self._persistence

    @property
    def saving(self) -> bool:
        return self._persistence.saving if self._persistence is not None else False

    @property
    def tap_rows(self) -> tuple[TapRow, ...]:
        return generate_tap_rows(self._snapshot.tap_range)

    def _commit(self, updated: Project) -> Project:
        if updated is self._snapshot:
            return updated
        self._snapshot = updated
        if self._persistence is not None:
            self._persistence.schedule(updated)
        return updated

    def _missing_row(self, table: str, row_id: str) -> Project:
        logger.debug(f"ignored edit of missing {table} row id={row_id} project={self.project_id}")
        return self._snapshot

    # -- header / settings ---------------------------------------------------------

    def set_tap_range(self, tap_range: int) -> Project:
        """Change the number of tap positions. Data of hidden positions is kept."""
        return self._commit(self._snapshot.with_tap_range(tap_range))

    def set_header_field(self, name: str, value: str) -> Project:
        return self._commit(self._snapshot.with_header_field(name, value))

    def set_resistance_setting(self, name: str, value: str) -> Project:
        return self._commit(self._snapshot.with_resistance_setting(name, value))

    # -- TTR / resistance ---------------------------------------------------------------

    def set_tap_field(self, row_id: str, name: str, value: str | None) -> Project:
        return self._commit(self._snapshot.with_tap_field(row_id, name, value))

    # -- TG delta --------------------------------------------------------------------------

    def add_tg_delta_row(self) -> Project:
        return self._commit(self._snapshot.with_tg_delta_row(TgDeltaRow(id=self._row_ids.new_id())))

    def remove_tg_delta_row(self, row_id: str, *, confirmed: bool = False) -> Project:
        """Delete a TG delta row. Irreversible, so callers must pass confirmed=True."""
        if not confirmed:
            logger.debug(f"TG delta row removal not confirmed id={row_id}")
            return self._snapshot
        updated = self._snapshot.without_tg_delta_row(row_id)
        if updated is self._snapshot:
            return self._missing_row("TG delta", row_id)
        return self._commit(updated)

    def set_tg_delta_field(self, row_id: str, name: str, value: str | None) -> Project:
        updated = self._snapshot.with_tg_delta_field(row_id, name, value)
        if updated is self._snapshot:
            return self._missing_row("TG delta", row_id)
        return self._commit(updated)

    # -- insulation --------------------------------------------------------------------------

    def add_insulation_row(self) -> Project:
        return self._commit(self._snapshot.with_insulation_row(InsulationRow(id=self._row_ids.new_id())))

    def remove_insulation_row(self, row_id: str, *, confirmed: bool = False) -> Project:
        """Delete an insulation row. Irreversible, so callers must pass confirmed=True."""
        if not confirmed:
            logger.debug(f"insulation row removal not confirmed id={row_id}")
            return self._snapshot
        updated = self._snapshot.without_insulation_row(row_id)
        if updated is self._snapshot:
            return self._missing_row("insulation", row_id)
        return self._commit(updated)

    def set_insulation_field(self, row_id: str, name: str, value: str | None) -> Project:
        updated = self._snapshot.with_insulation_field(row_id, name, value)
        if updated is self._snapshot:
            return self._missing_row("insulation", row_id)
        return self._commit(updated)

    # -- computed views ---------------------------------------------------------------------------

    def ttr_results(self) -> list[TtrResult]:
        return project_ttr_results(self._snapshot)

    def resistance_results(self) -> list[ResistanceResult]:
        return project_resistance_results(self._snapshot)

    def tg_delta_results(self) -> list[TgDeltaResult]:
        return project_tg_delta_results(self._snapshot)

    def insulation_results(self) -> list[InsulationResult]:
        return project_insulation_results(self._snapshot)
