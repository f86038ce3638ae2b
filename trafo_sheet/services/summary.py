from __future__ import annotations

from dataclasses import dataclass

from ..calc.classification import Status
from ..models.project import Project
from .project_model import (
    project_insulation_results,
    project_tg_delta_results,
    project_ttr_results,
)

"""Pass/fail tally of a project and its SUMMARY line."""


@dataclass(frozen=True)
class ResultCounts:
    passed: int = 0
    failed: int = 0
    neutral: int = 0


@dataclass(frozen=True)
class ProjectSummary:
    project_id: str
    ttr: ResultCounts
    tg_delta: ResultCounts
    insulation: ResultCounts

    @property
    def failed(self) -> int:
        return self.ttr.failed + self.tg_delta.failed + self.insulation.failed


def _count(statuses: list[Status]) -> ResultCounts:
    return ResultCounts(
        passed=sum(1 for s in statuses if s is Status.PASS),
        failed=sum(1 for s in statuses if s is Status.FAIL),
        neutral=sum(1 for s in statuses if s is Status.NEUTRAL),
    )


def summarize(project: Project) -> ProjectSummary:
    """Count classifications of the visible tap rows (three phases each), TG delta and PI."""
    ttr = [c.status for r in project_ttr_results(project) for c in r.statuses]
    tg = [r.status.status for r in project_tg_delta_results(project)]
    ins = [r.pi_status.status for r in project_insulation_results(project)]
    return ProjectSummary(
        project_id=project.id,
        ttr=_count(ttr),
        tg_delta=_count(tg),
        insulation=_count(ins),
    )


def render_summary_line(project: Project) -> str:
    """Render the SUMMARY line for a project.

    Examples:
        >>> from trafo_sheet.models.project import Project
        >>> render_summary_line(Project(id="abc", tap_range=0))
        'SUMMARY project=abc ttr_pass=0 ttr_fail=0 tg_pass=0 tg_fail=0 ip_pass=0 ip_fail=0'
    """
    s = summarize(project)
    return (
        f"SUMMARY project={s.project_id} "
        f"ttr_pass={s.ttr.passed} "
        f"ttr_fail={s.ttr.failed} "
        f"tg_pass={s.tg_delta.passed} "
        f"tg_fail={s.tg_delta.failed} "
        f"ip_pass={s.insulation.passed} "
        f"ip_fail={s.insulation.failed}"
    )
