from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, SheetConfig, load_config
from ..db.repository import InMemoryProjectRepository, ProjectRepository, RepositoryError
from ..export.excel_writer import ExportError, write_workbook
from ..export.mapper import build_export
from ..logging.init import log_summary, set_debug, setup_logging
from ..services.catalog import ProjectCatalog
from ..services.progress import ProgressTracker
from ..services.summary import render_summary_line

"""Command line front end.

Commands operate on the project list of the configured owner scope:
list, create, show, set, export, delete. The repository is PostgreSQL; when
the connection cannot be established the CLI falls back to an in-memory
repository so the remaining flow can still be exercised.
"""

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_NOT_FOUND = 2

logger = logging.getLogger(__name__)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so that PostgreSQL connection variables take precedence over the config file."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


@contextmanager
def _open_repository(cfg: SheetConfig) -> Iterator[tuple[ProjectRepository, str]]:
    """Yield (repository, mode). mode is "live" for PostgreSQL and "memory" for the fallback."""
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> memory mode")
        yield InMemoryProjectRepository(cfg.owner_scope), "memory"
        return

    from ..db.postgres import PostgresProjectRepository, connect

    try:
        conn = connect(cfg.database.resolve_dsn())
        repo = PostgresProjectRepository(conn, cfg.owner_scope, table=cfg.database.table)
        repo.ensure_schema()
    except RepositoryError as e:
        logger.info(f"DB connection failed -> fallback to memory mode: {e}")
        yield InMemoryProjectRepository(cfg.owner_scope), "memory"
        return
    try:
        yield repo, "live"
    finally:
        repo.close()


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="trafo-sheet", description="Transformer test sheet manager")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config YAML path")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List projects, newest first").add_argument(
        "--search", default="", help="Filter by client / serial / manufacturing number"
    )
    sub.add_parser("create", help="Create an empty project")

    show = sub.add_parser("show", help="Print the pass/fail summary of a project")
    show.add_argument("project_id")

    edit = sub.add_parser("set", help="Edit fields of a project")
    edit.add_argument("project_id")
    edit.add_argument("--tap-range", type=int, help="Tap range N (0..16)")
    edit.add_argument("--header", action="append", default=[], metavar="FIELD=VALUE")
    edit.add_argument("--setting", action="append", default=[], metavar="FIELD=VALUE")
    edit.add_argument("--tap", action="append", default=[], metavar="ROW:FIELD=VALUE")

    export = sub.add_parser("export", help="Write the spreadsheet export")
    target = export.add_mutually_exclusive_group(required=True)
    target.add_argument("project_id", nargs="?")
    target.add_argument("--all", action="store_true", help="Export every project")
    export.add_argument("--out", type=Path, help="Output directory (default: export_directory)")

    delete = sub.add_parser("delete", help="Delete a project")
    delete.add_argument("project_id")
    delete.add_argument("--yes", action="store_true", help="Confirm the deletion")
    return p.parse_args(argv)


def _split_assignment(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise ValueError(f"expected FIELD=VALUE, got {text!r}")
    return name.strip(), value


def _cmd_list(catalog: ProjectCatalog, args: argparse.Namespace) -> int:
    projects = catalog.search(args.search)
    for p in projects:
        h = p.header_info
        print(
            f"{p.id}\t{p.last_modified.date().isoformat()}\t"
            f"{h.client or 'Sin Cliente'}\t{h.serial_number or 'S/N -'}\t{h.manufacturing_number or 'FAB -'}"
        )
    logger.info(f"projects={len(projects)}")
    return EXIT_OK


def _cmd_create(catalog: ProjectCatalog, args: argparse.Namespace) -> int:
    project = catalog.create_project()
    print(project.id)
    return EXIT_OK


def _cmd_show(catalog: ProjectCatalog, args: argparse.Namespace) -> int:
    project = catalog.find(args.project_id)
    if project is None:
        logger.error(f"project not found: {args.project_id}")
        return EXIT_NOT_FOUND
    log_summary(render_summary_line(project)[len("SUMMARY "):])
    return EXIT_OK


def _cmd_set(catalog: ProjectCatalog, args: argparse.Namespace) -> int:
    try:
        model = catalog.open_project(args.project_id)
    except KeyError:
        logger.error(f"project not found: {args.project_id}")
        return EXIT_NOT_FOUND
    try:
        if args.tap_range is not None:
            model.set_tap_range(args.tap_range)
        for item in args.header:
            model.set_header_field(*_split_assignment(item))
        for item in args.setting:
            model.set_resistance_setting(*_split_assignment(item))
        for item in args.tap:
            row_id, sep, rest = item.partition(":")
            if not sep:
                raise ValueError(f"expected ROW:FIELD=VALUE, got {item!r}")
            name, value = _split_assignment(rest)
            model.set_tap_field(row_id, name, value)
    except ValueError as e:
        logger.error(f"set: {e}")
        # Nothing of a rejected command is written
        catalog.close_project(discard=True)
        return EXIT_FATAL
    if not catalog.close_project():
        return EXIT_FATAL
    logger.info(f"saved project={args.project_id}")
    return EXIT_OK


def _cmd_export(catalog: ProjectCatalog, args: argparse.Namespace, cfg: SheetConfig) -> int:
    out_dir = args.out or Path(cfg.export_directory)
    if args.all:
        projects = catalog.projects
    else:
        project = catalog.find(args.project_id)
        if project is None:
            logger.error(f"project not found: {args.project_id}")
            return EXIT_NOT_FOUND
        projects = [project]

    failed = 0
    with ProgressTracker(len(projects)) as progress:
        for project in projects:
            progress.start(project.header_info.serial_number or project.id)
            try:
                path = write_workbook(build_export(project), out_dir)
                print(path)
            except ExportError as e:
                failed += 1
                logger.error(f"export project={project.id}: {e}")
            progress.set_postfix(failed=failed)
            progress.finish()
    log_summary(f"exported={len(projects) - failed} failed={failed}")
    return EXIT_FATAL if failed else EXIT_OK


def _cmd_delete(catalog: ProjectCatalog, args: argparse.Namespace) -> int:
    if catalog.find(args.project_id) is None:
        logger.error(f"project not found: {args.project_id}")
        return EXIT_NOT_FOUND
    if not args.yes:
        logger.warning("deletion is irreversible; pass --yes to confirm")
        return EXIT_FATAL
    return EXIT_OK if catalog.delete_project(args.project_id, confirmed=True) else EXIT_FATAL


def main(argv: list[str] | None = None) -> int:
    logger_root = setup_logging()

    # Only fall back to sys.argv for None; [] means "no arguments"
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug(logger_root)
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    with _open_repository(cfg) as (repository, mode):
        logger.debug(f"mode={mode} scope={cfg.owner_scope}")
        catalog = ProjectCatalog(
            repository,
            cfg.owner_scope,
            defaults=cfg.defaults,
            delay_seconds=cfg.debounce_seconds,
        )
        try:
            catalog.start()
            if args.command == "list":
                code = _cmd_list(catalog, args)
            elif args.command == "create":
                code = _cmd_create(catalog, args)
            elif args.command == "show":
                code = _cmd_show(catalog, args)
            elif args.command == "set":
                code = _cmd_set(catalog, args)
            elif args.command == "export":
                code = _cmd_export(catalog, args, cfg)
            else:
                code = _cmd_delete(catalog, args)
        except RepositoryError as e:
            logger.error(f"repository: {e}")
            code = EXIT_FATAL
        finally:
            catalog.stop()
            catalog.error_log.flush()
    return code
