from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from trafo_sheet.models.project import (
    HeaderInfo,
    InsulationRow,
    Project,
    TgDeltaRow,
    new_project,
)
from trafo_sheet.models.row_id import RowIdGenerator


def test_new_project_defaults():
    p = new_project("p1", RowIdGenerator(), today=date(2025, 3, 1), now=datetime(2025, 3, 1, tzinfo=UTC))
    assert p.tap_range == 5
    assert len(p.tg_delta_data) == 4
    assert len(p.insulation_data) == 6
    assert p.header_info == HeaderInfo(date="2025-03-01")
    assert p.resistance_settings.measured_temp == "20"
    assert p.resistance_settings.ref_temp == "75"
    assert len(p.row_ids()) == 10
    assert dict(p.data) == {}


def test_snapshot_containers_are_read_only(project):
    with pytest.raises(TypeError):
        project.data["neutral"] = None  # type: ignore[index]


def test_with_methods_do_not_touch_original(project):
    updated = project.with_tap_field("neutral", "phase_a", "100.5")
    assert project.tap_data("neutral").phase_a is None
    assert updated.tap_data("neutral").phase_a == "100,5"
    assert updated.data is not project.data


def test_tap_numeric_fields_normalized(project):
    p = project.with_tap_field("pos-1", "rated_ratio", "1.2.3")
    assert p.tap_data("pos-1").rated_ratio == "1,2.3"


def test_header_is_verbatim(project):
    p = project.with_header_field("client", "A.B. S.A.")
    assert p.header_info.client == "A.B. S.A."


def test_resistance_settings(project):
    p = project.with_resistance_setting("measured_temp", "22.5")
    p = p.with_resistance_setting("conn1_name", "H1.H2")
    assert p.resistance_settings.measured_temp == "22,5"
    assert p.resistance_settings.conn1_name == "H1.H2"


@pytest.mark.parametrize(
    "call",
    [
        lambda p: p.with_header_field("owner", "x"),
        lambda p: p.with_resistance_setting("temp", "1"),
        lambda p: p.with_tap_field("neutral", "phase_d", "1"),
        lambda p: p.with_tg_delta_field(p.tg_delta_data[0].id, "id", "x"),
        lambda p: p.with_tg_delta_field(p.tg_delta_data[0].id, "mode", "AC"),
        lambda p: p.with_tg_delta_field(p.tg_delta_data[0].id, "injection", "XT"),
        lambda p: p.with_insulation_field(p.insulation_data[0].id, "injection", "HV"),
        lambda p: p.with_insulation_field(p.insulation_data[0].id, "val11m", "1"),
    ],
)
def test_invalid_edits_raise(project, call):
    with pytest.raises(ValueError):
        call(project)


def test_tg_delta_field_edit(project):
    row_id = project.tg_delta_data[1].id
    p = project.with_tg_delta_field(row_id, "mode", "GST g")
    p = p.with_tg_delta_field(row_id, "tg_percent", "0.3")
    p = p.with_tg_delta_field(row_id, "measurement", "H1.H2")
    row = p.tg_delta_data[1]
    assert (row.mode, row.tg_percent, row.measurement) == ("GST g", "0,3", "H1.H2")
    assert p.tg_delta_data[0] == project.tg_delta_data[0]


def test_missing_row_returns_same_instance(project):
    assert project.with_tg_delta_field("missing", "guard", "x") is project
    assert project.with_insulation_field("missing", "val1m", "1") is project
    assert project.without_tg_delta_row("missing") is project
    assert project.without_insulation_row("missing") is project


def test_duplicate_row_ids_rejected(project):
    with pytest.raises(ValueError):
        project.with_tg_delta_row(TgDeltaRow(id=project.tg_delta_data[0].id))
    with pytest.raises(ValueError):
        project.with_insulation_row(InsulationRow(id=project.insulation_data[0].id))


def test_tap_range_validation(project):
    assert project.with_tap_range(0).tap_range == 0
    assert project.with_tap_range(16).tap_range == 16
    with pytest.raises(ValueError):
        project.with_tap_range(17)
    with pytest.raises(ValueError):
        Project(id="x", tap_range=-1)


def test_document_round_trip(project):
    p = project.with_tap_field("neg-2", "phase_c", "99,8")
    p = p.with_insulation_field(p.insulation_data[0].id, "val10m", "12.5")
    doc = p.to_document()
    assert doc["lastModified"] == "2025-03-01T09:00:00.000Z"
    assert doc["data"] == {"neg-2": {"phaseC": "99,8"}}
    assert Project.from_document(doc) == p


def test_from_document_defaults():
    p = Project.from_document({"id": "abc"})
    assert p.tap_range == 5
    assert p.header_info == HeaderInfo()
    assert p.tg_delta_data == ()
    assert p.last_modified == datetime(1970, 1, 1, tzinfo=UTC)


def test_from_document_requires_id():
    with pytest.raises(ValueError):
        Project.from_document({"tapRange": 3})
