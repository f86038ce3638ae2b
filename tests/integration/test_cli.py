from __future__ import annotations

from pathlib import Path

import pytest

from trafo_sheet.cli import app
from trafo_sheet.db.repository import InMemoryProjectRepository
from trafo_sheet.logging.init import reset_logging


@pytest.fixture()
def shared_repo(monkeypatch, write_config):
    """Memory mode with one repository shared across CLI invocations."""
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    repo = InMemoryProjectRepository("empresa-demo-001")
    monkeypatch.setattr(app, "InMemoryProjectRepository", lambda scope: repo)
    reset_logging()
    yield repo
    reset_logging()


def _run(capsys, *argv: str) -> tuple[int, list[str]]:
    reset_logging()
    code = app.main(list(argv))
    return code, capsys.readouterr().out.splitlines()


def test_create_list_show(shared_repo, capsys):
    code, out = _run(capsys, "create")
    assert code == 0
    project_id = out[-1]
    assert shared_repo.get(project_id) is not None

    code, out = _run(capsys, "list")
    assert code == 0
    assert out[0].startswith(f"{project_id}\t")
    assert "Sin Cliente" in out[0]
    assert "INFO projects=1" in out

    code, out = _run(capsys, "show", project_id)
    assert code == 0
    assert out[-1] == (
        f"SUMMARY project={project_id} ttr_pass=0 ttr_fail=0 tg_pass=0 tg_fail=0 ip_pass=0 ip_fail=0"
    )


def test_set_then_export(shared_repo, capsys, temp_workdir: Path):
    _, out = _run(capsys, "create")
    project_id = out[-1]

    code, out = _run(
        capsys, "set", project_id,
        "--tap-range", "1",
        "--header", "serial_number=SN-42",
        "--setting", "measured_temp=22.5",
        "--tap", "neutral:rated_ratio=100",
        "--tap", "neutral:phase_a=100.4",
    )
    assert code == 0
    stored = shared_repo.get(project_id)
    assert stored.tap_range == 1
    assert stored.header_info.serial_number == "SN-42"
    assert stored.resistance_settings.measured_temp == "22,5"
    assert stored.tap_data("neutral").phase_a == "100,4"

    code, out = _run(capsys, "show", project_id)
    assert "ttr_pass=1 ttr_fail=2" in out[-1]

    code, out = _run(capsys, "export", project_id)
    assert code == 0
    assert (temp_workdir / "exports" / "Ensayo_SN-42.xlsx").exists()
    assert out[-1] == "SUMMARY exported=1 failed=0"


def test_set_invalid_field(shared_repo, capsys):
    _, out = _run(capsys, "create")
    code, out = _run(capsys, "set", out[-1], "--header", "owner=x")
    assert code == 1
    assert any(line.startswith("ERROR set: unknown header field") for line in out)


def test_failed_set_writes_nothing(shared_repo, capsys):
    _, out = _run(capsys, "create")
    project_id = out[-1]
    code, out = _run(capsys, "set", project_id, "--tap-range", "2", "--header", "bogus=1")
    assert code == 1
    stored = shared_repo.get(project_id)
    assert stored.tap_range == 5
    assert shared_repo.put_count == 1


def test_missing_project(shared_repo, capsys):
    assert _run(capsys, "show", "nope")[0] == 2
    assert _run(capsys, "export", "nope")[0] == 2
    assert _run(capsys, "set", "nope", "--tap-range", "2")[0] == 2
    assert _run(capsys, "delete", "nope", "--yes")[0] == 2


def test_delete_requires_yes(shared_repo, capsys):
    _, out = _run(capsys, "create")
    project_id = out[-1]
    code, out = _run(capsys, "delete", project_id)
    assert code == 1
    assert shared_repo.get(project_id) is not None
    code, out = _run(capsys, "delete", project_id, "--yes")
    assert code == 0
    assert shared_repo.get(project_id) is None


def test_export_all(shared_repo, capsys, temp_workdir: Path):
    _run(capsys, "create")
    code, out = _run(capsys, "export", "--all", "--out", str(temp_workdir / "batch"))
    assert code == 0
    assert (temp_workdir / "batch" / "Ensayo_SN.xlsx").exists()


def test_missing_config_is_fatal(temp_workdir, monkeypatch, capsys):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    code, out = _run(capsys, "list")
    assert code == 1
    assert any(line.startswith("ERROR config: config file not found") for line in out)
    reset_logging()


def test_db_failure_falls_back_to_memory(write_config, monkeypatch, capsys):
    from trafo_sheet.db import postgres
    from trafo_sheet.db.repository import RepositoryError

    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)

    def refuse(dsn):
        raise RepositoryError("connection failed: refused")

    monkeypatch.setattr(postgres, "connect", refuse)
    code, out = _run(capsys, "list")
    assert code == 0
    assert any("fallback to memory mode" in line for line in out)
    reset_logging()
