# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from trafo_sheet.db.repository import InMemoryProjectRepository
from trafo_sheet.models.project import Project, new_project
from trafo_sheet.models.row_id import RowIdGenerator

OWNER_SCOPE = "empresa-demo-001"


class ManualTimer:
    def __init__(self, scheduler: ManualScheduler, due: float, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic stand-in for threading timers: time only moves on advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self, self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        while True:
            due = [t for t in self.pending if t.due <= self.now]
            if not due:
                return
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            timer.callback()


class StepClock:
    """Clock returning strictly increasing UTC timestamps."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "exports").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """owner_scope: empresa-demo-001
debounce_ms: 1000
export_directory: ./exports
defaults:
  tap_range: 5
  tg_delta_rows: 4
  insulation_rows: 6
  measured_temp: "20"
  ref_temp: "75"
  conn_names: ["H1-H2", "H2-H3", "H3-H1"]
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sheet.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def repository() -> InMemoryProjectRepository:
    return InMemoryProjectRepository(OWNER_SCOPE)


@pytest.fixture()
def project() -> Project:
    return new_project(
        "proj-1",
        RowIdGenerator(),
        now=datetime(2025, 3, 1, 9, 0, tzinfo=UTC),
    )
