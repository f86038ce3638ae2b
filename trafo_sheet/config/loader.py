from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..calc.numeric import normalize_decimal
from ..models.project import ResistanceSettings

"""Configuration loader.

Responsibilities:
- Load the YAML config (default ``config/sheet.yml``)
- Validate it against the bundled JSON schema
- Apply defaults for everything except ``owner_scope``
- Resolve the PostgreSQL DSN with environment variables taking precedence
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/sheet.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    table: str = "projects"

    def resolve_dsn(self) -> str:
        """Build the connection string.

        Priority:
            1. DATABASE_URL / PGDSN environment variables, then ``dsn`` from the file
            2. Individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
            3. Values of the ``database`` section, then libpq-style defaults
        """
        dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or self.dsn
        if dsn:
            return dsn
        host = os.getenv("PGHOST", self.host or "localhost")
        port = os.getenv("PGPORT", str(self.port) if self.port else "5432")
        user = os.getenv("PGUSER", self.user or "postgres")
        password = os.getenv("PGPASSWORD", self.password or "")
        database = os.getenv("PGDATABASE", self.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"
        return dsn


@dataclass(frozen=True)
class ProjectDefaults:
    """Shape of a freshly created project."""
    tap_range: int = 5
    tg_delta_rows: int = 4
    insulation_rows: int = 6
    resistance_settings: ResistanceSettings = field(default_factory=ResistanceSettings)


@dataclass(frozen=True)
class SheetConfig:
    owner_scope: str
    debounce_ms: int = 1000
    export_directory: str = "./exports"
    defaults: ProjectDefaults = field(default_factory=ProjectDefaults)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data violates it (missing required keys, wrong types, extra keys)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_defaults(raw: dict[str, Any]) -> ProjectDefaults:
    base = ResistanceSettings()
    names = raw.get("conn_names") or list(base.connection_names)
    settings = ResistanceSettings(
        measured_temp=normalize_decimal(str(raw.get("measured_temp", base.measured_temp))),
        ref_temp=normalize_decimal(str(raw.get("ref_temp", base.ref_temp))),
        conn1_name=names[0],
        conn2_name=names[1],
        conn3_name=names[2],
    )
    return ProjectDefaults(
        tap_range=raw.get("tap_range", 5),
        tg_delta_rows=raw.get("tg_delta_rows", 4),
        insulation_rows=raw.get("insulation_rows", 6),
        resistance_settings=settings,
    )


def parse_config(data: dict[str, Any]) -> SheetConfig:
    _validate_config_schema(data)
    db_raw = data.get("database") or {}
    database = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
        table=db_raw.get("table", "projects"),
    )
    return SheetConfig(
        owner_scope=data["owner_scope"],
        debounce_ms=data.get("debounce_ms", 1000),
        export_directory=data.get("export_directory", "./exports"),
        defaults=_build_defaults(data.get("defaults") or {}),
        database=database,
    )


def load_config(path: Path) -> SheetConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")
    return parse_config(data)
