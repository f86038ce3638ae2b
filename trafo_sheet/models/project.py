from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from types import MappingProxyType
from typing import Any

from ..calc.numeric import normalize_decimal
from ..calc.taps import validate_tap_range
from .row_id import RowIdGenerator

"""Project aggregate: one transformer test sheet.

A Project is an immutable snapshot. Every with_*/without_* method returns a
new Project built from fresh containers, or the very same instance when the
change addresses a row that does not exist (callers use identity to detect
the no-op).

The stored document keeps the camelCase keys of the original project store,
see to_document() / from_document().
"""

__all__ = [
    "TG_DELTA_MODES",
    "INJECTION_POINTS",
    "HeaderInfo",
    "ResistanceSettings",
    "TapRowData",
    "TgDeltaRow",
    "InsulationRow",
    "Project",
    "new_project",
]

TG_DELTA_MODES = ("", "UST", "GST g", "GST-GND")
INJECTION_POINTS = ("", "AT", "MT", "BT")
INSULATION_READINGS = (
    "val30s", "val1m", "val2m", "val3m", "val4m", "val5m",
    "val6m", "val7m", "val8m", "val9m", "val10m",
)

DEFAULT_TAP_RANGE = 5
DEFAULT_TG_DELTA_ROWS = 4
DEFAULT_INSULATION_ROWS = 6
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class HeaderInfo:
    manufacturing_number: str = ""
    serial_number: str = ""
    client: str = ""
    date: str = ""


@dataclass(frozen=True)
class ResistanceSettings:
    measured_temp: str = "20"  # °C, decimal-comma text
    ref_temp: str = "75"  # °C, decimal-comma text
    conn1_name: str = "Conexión 1"
    conn2_name: str = "Conexión 2"
    conn3_name: str = "Conexión 3"

    @property
    def connection_names(self) -> tuple[str, str, str]:
        return (self.conn1_name, self.conn2_name, self.conn3_name)


@dataclass(frozen=True)
class TapRowData:
    """TTR and winding resistance readings for one tap position. None = not entered."""
    ratio_percent: str | None = None
    rated_ratio: str | None = None
    phase_a: str | None = None
    phase_b: str | None = None
    phase_c: str | None = None
    res_conn1_meas: str | None = None
    res_conn2_meas: str | None = None
    res_conn3_meas: str | None = None

    @property
    def phases(self) -> tuple[str | None, str | None, str | None]:
        return (self.phase_a, self.phase_b, self.phase_c)

    @property
    def resistances(self) -> tuple[str | None, str | None, str | None]:
        return (self.res_conn1_meas, self.res_conn2_meas, self.res_conn3_meas)


@dataclass(frozen=True)
class TgDeltaRow:
    id: str
    mode: str | None = None
    injection: str | None = None
    measurement: str | None = None
    guard: str | None = None
    test_voltage: str | None = None
    tg_percent: str | None = None
    capacitance: str | None = None


@dataclass(frozen=True)
class InsulationRow:
    id: str
    injection: str | None = None
    measurement: str | None = None
    guard: str | None = None
    val30s: str | None = None
    val1m: str | None = None
    val2m: str | None = None
    val3m: str | None = None
    val4m: str | None = None
    val5m: str | None = None
    val6m: str | None = None
    val7m: str | None = None
    val8m: str | None = None
    val9m: str | None = None
    val10m: str | None = None

    @property
    def readings(self) -> tuple[str | None, ...]:
        return tuple(getattr(self, name) for name in INSULATION_READINGS)


# Python attribute -> stored document key
HEADER_KEYS = {
    "manufacturing_number": "manufacturingNumber",
    "serial_number": "serialNumber",
    "client": "client",
    "date": "date",
}
RESISTANCE_KEYS = {
    "measured_temp": "measuredTemp",
    "ref_temp": "refTemp",
    "conn1_name": "conn1Name",
    "conn2_name": "conn2Name",
    "conn3_name": "conn3Name",
}
TAP_KEYS = {
    "ratio_percent": "ratioPercent",
    "rated_ratio": "ratedRatio",
    "phase_a": "phaseA",
    "phase_b": "phaseB",
    "phase_c": "phaseC",
    "res_conn1_meas": "resConn1Meas",
    "res_conn2_meas": "resConn2Meas",
    "res_conn3_meas": "resConn3Meas",
}
TG_DELTA_KEYS = {
    "id": "id",
    "mode": "mode",
    "injection": "injection",
    "measurement": "measurement",
    "guard": "guard",
    "test_voltage": "testVoltage",
    "tg_percent": "tgPercent",
    "capacitance": "capacitance",
}
INSULATION_KEYS = {"id": "id", "injection": "injection", "measurement": "measurement", "guard": "guard"}
INSULATION_KEYS.update({name: name for name in INSULATION_READINGS})

# Fields normalized to decimal comma on write
RESISTANCE_NUMERIC = frozenset({"measured_temp", "ref_temp"})
TAP_NUMERIC = frozenset(TAP_KEYS)
TG_DELTA_NUMERIC = frozenset({"test_voltage", "tg_percent", "capacitance"})
INSULATION_NUMERIC = frozenset(INSULATION_READINGS)

# Selector fields and their allowed values
TG_DELTA_CHOICES = {"mode": TG_DELTA_MODES, "injection": INJECTION_POINTS}
INSULATION_CHOICES = {"injection": INJECTION_POINTS}


def _prepare_value(
    owner: str,
    name: str,
    value: str | None,
    allowed: Mapping[str, Any],
    numeric: frozenset[str],
    choices: Mapping[str, tuple[str, ...]] | None = None,
) -> str | None:
    if name not in allowed or name == "id":
        raise ValueError(f"unknown {owner} field: {name!r}")
    if value is None:
        return None
    if choices and name in choices and value not in choices[name]:
        raise ValueError(f"invalid {owner} {name}: {value!r} (allowed: {choices[name]})")
    if name in numeric:
        return normalize_decimal(value)
    return value


def _to_doc(obj: Any, keys: Mapping[str, str], skip_none: bool = True) -> dict[str, Any]:
    doc: dict[str, Any] = {}
    for attr, key in keys.items():
        value = getattr(obj, attr)
        if value is None and skip_none:
            continue
        doc[key] = value
    return doc


def _from_doc(cls: type, raw: Mapping[str, Any] | None, keys: Mapping[str, str], **extra: Any) -> Any:
    raw = raw or {}
    kwargs: dict[str, Any] = {}
    for attr, key in keys.items():
        if key in raw and raw[key] is not None:
            kwargs[attr] = str(raw[key])
    kwargs.update(extra)
    return cls(**kwargs)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return EPOCH
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return EPOCH


def format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Project:
    """Immutable snapshot of a test project."""
    id: str
    last_modified: datetime = EPOCH
    tap_range: int = DEFAULT_TAP_RANGE
    header_info: HeaderInfo = field(default_factory=HeaderInfo)
    resistance_settings: ResistanceSettings = field(default_factory=ResistanceSettings)
    data: Mapping[str, TapRowData] = field(default_factory=dict)
    tg_delta_data: tuple[TgDeltaRow, ...] = ()
    insulation_data: tuple[InsulationRow, ...] = ()

    def __post_init__(self) -> None:
        validate_tap_range(self.tap_range)
        # Own read-only copies so no two snapshots share a mutable container
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))
        object.__setattr__(self, "tg_delta_data", tuple(self.tg_delta_data))
        object.__setattr__(self, "insulation_data", tuple(self.insulation_data))

    # -- reads -----------------------------------------------------------

    def tap_data(self, row_id: str) -> TapRowData:
        return self.data.get(row_id) or TapRowData()

    def row_ids(self) -> set[str]:
        return {r.id for r in self.tg_delta_data} | {r.id for r in self.insulation_data}

    # -- header / settings -------------------------------------------------

    def with_tap_range(self, tap_range: int) -> Project:
        return replace(self, tap_range=validate_tap_range(tap_range))

    def with_header_field(self, name: str, value: str) -> Project:
        prepared = _prepare_value("header", name, value, HEADER_KEYS, frozenset())
        return replace(self, header_info=replace(self.header_info, **{name: prepared or ""}))

    def with_resistance_setting(self, name: str, value: str) -> Project:
        prepared = _prepare_value("resistance setting", name, value, RESISTANCE_KEYS, RESISTANCE_NUMERIC)
        return replace(
            self, resistance_settings=replace(self.resistance_settings, **{name: prepared or ""})
        )

    def with_last_modified(self, stamp: datetime) -> Project:
        return replace(self, last_modified=stamp)

    # -- tap rows ------------------------------------------------------------

    def with_tap_field(self, row_id: str, name: str, value: str | None) -> Project:
        prepared = _prepare_value("tap", name, value, TAP_KEYS, TAP_NUMERIC)
        data = dict(self.data)
        data[row_id] = replace(self.tap_data(row_id), **{name: prepared})
        return replace(self, data=data)

    # -- TG delta rows -----------------------------------------------------------

    def with_tg_delta_row(self, row: TgDeltaRow) -> Project:
        if row.id in {r.id for r in self.tg_delta_data}:
            raise ValueError(f"duplicate TG delta row id: {row.id}")
        return replace(self, tg_delta_data=self.tg_delta_data + (row,))

    def without_tg_delta_row(self, row_id: str) -> Project:
        remaining = tuple(r for r in self.tg_delta_data if r.id != row_id)
        if len(remaining) == len(self.tg_delta_data):
            return self
        return replace(self, tg_delta_data=remaining)

    def with_tg_delta_field(self, row_id: str, name: str, value: str | None) -> Project:
        prepared = _prepare_value(
            "TG delta", name, value, TG_DELTA_KEYS, TG_DELTA_NUMERIC, TG_DELTA_CHOICES
        )
        rows, found = _replace_row(self.tg_delta_data, row_id, name, prepared)
        return replace(self, tg_delta_data=rows) if found else self

    # -- insulation rows -----------------------------------------------------------

    def with_insulation_row(self, row: InsulationRow) -> Project:
        if row.id in {r.id for r in self.insulation_data}:
            raise ValueError(f"duplicate insulation row id: {row.id}")
        return replace(self, insulation_data=self.insulation_data + (row,))

    def without_insulation_row(self, row_id: str) -> Project:
        remaining = tuple(r for r in self.insulation_data if r.id != row_id)
        if len(remaining) == len(self.insulation_data):
            return self
        return replace(self, insulation_data=remaining)

    def with_insulation_field(self, row_id: str, name: str, value: str | None) -> Project:
        prepared = _prepare_value(
            "insulation", name, value, INSULATION_KEYS, INSULATION_NUMERIC, INSULATION_CHOICES
        )
        rows, found = _replace_row(self.insulation_data, row_id, name, prepared)
        return replace(self, insulation_data=rows) if found else self

    # -- document mapping ------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored JSON document (camelCase keys)."""
        return {
            "id": self.id,
            "lastModified": format_timestamp(self.last_modified),
            "tapRange": self.tap_range,
            "headerInfo": _to_doc(self.header_info, HEADER_KEYS, skip_none=False),
            "resistanceSettings": _to_doc(self.resistance_settings, RESISTANCE_KEYS, skip_none=False),
            "data": {row_id: _to_doc(row, TAP_KEYS) for row_id, row in self.data.items()},
            "tgDeltaData": [_to_doc(row, TG_DELTA_KEYS) for row in self.tg_delta_data],
            "insulationData": [_to_doc(row, INSULATION_KEYS) for row in self.insulation_data],
        }

    @staticmethod
    def from_document(doc: Mapping[str, Any]) -> Project:
        """Build a Project from a stored document.

        Missing sections fall back to defaults, unknown keys are ignored.

        Raises:
            ValueError: If the document has no id or an invalid tap range
        """
        project_id = doc.get("id")
        if not project_id:
            raise ValueError("project document without id")
        tap_range = doc.get("tapRange", DEFAULT_TAP_RANGE)
        if tap_range is None:
            tap_range = DEFAULT_TAP_RANGE
        return Project(
            id=str(project_id),
            last_modified=_parse_timestamp(doc.get("lastModified")),
            tap_range=int(tap_range),
            header_info=_from_doc(HeaderInfo, doc.get("headerInfo"), HEADER_KEYS),
            resistance_settings=_from_doc(
                ResistanceSettings, doc.get("resistanceSettings"), RESISTANCE_KEYS
            ),
            data={
                str(row_id): _from_doc(TapRowData, raw, TAP_KEYS)
                for row_id, raw in (doc.get("data") or {}).items()
            },
            tg_delta_data=tuple(
                _from_doc(TgDeltaRow, raw, TG_DELTA_KEYS) for raw in doc.get("tgDeltaData") or []
            ),
            insulation_data=tuple(
                _from_doc(InsulationRow, raw, INSULATION_KEYS)
                for raw in doc.get("insulationData") or []
            ),
        )


def _replace_row(rows: tuple[Any, ...], row_id: str, name: str, value: Any) -> tuple[tuple[Any, ...], bool]:
    found = False
    updated = []
    for row in rows:
        if row.id == row_id:
            row = replace(row, **{name: value})
            found = True
        updated.append(row)
    return tuple(updated), found


def new_project(
    project_id: str,
    row_ids: RowIdGenerator,
    *,
    tap_range: int = DEFAULT_TAP_RANGE,
    tg_delta_rows: int = DEFAULT_TG_DELTA_ROWS,
    insulation_rows: int = DEFAULT_INSULATION_ROWS,
    resistance_settings: ResistanceSettings | None = None,
    today: date | None = None,
    now: datetime | None = None,
) -> Project:
    """Create a project with default-sized, empty tables and today's date."""
    today = today or datetime.now(UTC).date()
    return Project(
        id=project_id,
        last_modified=now or datetime.now(UTC),
        tap_range=tap_range,
        header_info=HeaderInfo(date=today.isoformat()),
        resistance_settings=resistance_settings or ResistanceSettings(),
        data={},
        tg_delta_data=tuple(TgDeltaRow(id=row_ids.new_id()) for _ in range(tg_delta_rows)),
        insulation_data=tuple(InsulationRow(id=row_ids.new_id()) for _ in range(insulation_rows)),
    )
