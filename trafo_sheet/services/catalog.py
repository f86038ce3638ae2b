from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from ..config.loader import ProjectDefaults
from ..db.repository import ProjectRepository, RepositoryError, Subscription
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.project import Project, new_project
from ..models.row_id import RowIdGenerator
from .persistence import PersistenceController, Scheduler
from .project_model import ProjectModel

"""Project list of one owner scope and the editing session opened from it.

The repository subscription delivers the full list after every change; each
delivery replaces the catalog's list, sorted by last_modified (newest first).
The project open for editing is the exception: its in-memory snapshot stays
authoritative until the session is closed.
"""

__all__ = [
    "ProjectCatalog",
]

logger = logging.getLogger(__name__)


class ProjectCatalog:
    def __init__(
        self,
        repository: ProjectRepository,
        owner_scope: str,
        *,
        defaults: ProjectDefaults | None = None,
        delay_seconds: float = 1.0,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._repository = repository
        self.owner_scope = owner_scope
        self._defaults = defaults or ProjectDefaults()
        self._delay = delay_seconds
        self._scheduler = scheduler
        self._clock = clock or (lambda: datetime.now(UTC))
        self._error_log = error_log or ErrorLogBuffer()
        self._lock = threading.Lock()
        self._projects: list[Project] = []
        self._active: ProjectModel | None = None
        self._project_ids = RowIdGenerator(length=12)
        self._subscription: Subscription | None = None
        self.deliveries = 0

    # -- subscription ---------------------------------------------------------------

    def start(self) -> None:
        if self._subscription is not None:
            return
        try:
            self._subscription = self._repository.subscribe(self.owner_scope, self._on_delivery)
        except RepositoryError as e:
            self._record("", "subscribe", e)
            raise

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_delivery(self, projects: list[Project]) -> None:
        ordered = sorted(projects, key=lambda p: p.last_modified, reverse=True)
        with self._lock:
            self._projects = ordered
            self._project_ids.reserve(p.id for p in ordered)
            self.deliveries += 1
        logger.debug(f"project list delivered count={len(ordered)} scope={self.owner_scope}")

    def _record(self, project_id: str, operation: str, error: Exception) -> None:
        logger.error(f"{operation} failed project={project_id or '-'}: {error}")
        self._error_log.append(ErrorRecord.create(project_id, operation, "PERSISTENCE_ERROR", str(error)))

    # -- reads ------------------------------------------------------------------------------

    @property
    def projects(self) -> list[Project]:
        """Current list, newest first; the open project shows its local snapshot."""
        with self._lock:
            projects = list(self._projects)
            active = self._active
        if active is None:
            return projects
        return [active.snapshot if p.id == active.project_id else p for p in projects]

    @property
    def active(self) -> ProjectModel | None:
        return self._active

    @property
    def error_log(self) -> ErrorLogBuffer:
        return self._error_log

    def find(self, project_id: str) -> Project | None:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def search(self, term: str) -> list[Project]:
        """Case-insensitive match on client, serial number or manufacturing number."""
        needle = term.strip().lower()
        if not needle:
            return self.projects
        return [
            p for p in self.projects
            if needle in p.header_info.client.lower()
            or needle in p.header_info.serial_number.lower()
            or needle in p.header_info.manufacturing_number.lower()
        ]

    # -- lifecycle ------------------------------------------------------------------------------

    def create_project(self) -> Project:
        """Create a default project and write it immediately."""
        now = self._clock()
        project = new_project(
            self._project_ids.new_id(),
            RowIdGenerator(),
            tap_range=self._defaults.tap_range,
            tg_delta_rows=self._defaults.tg_delta_rows,
            insulation_rows=self._defaults.insulation_rows,
            resistance_settings=self._defaults.resistance_settings,
            today=now.date(),
            now=now,
        )
        try:
            self._repository.put(project.id, project)
        except RepositoryError as e:
            self._record(project.id, "put", e)
            raise
        logger.info(f"created project={project.id}")
        return project

    def open_project(self, project_id: str) -> ProjectModel:
        """Start an editing session; a previously open session is closed first.

        Raises:
            KeyError: If the project is not in the current list
        """
        project = self.find(project_id)
        if project is None:
            raise KeyError(project_id)
        if self._active is not None:
            self.close_project()
        controller = PersistenceController(
            self._repository,
            delay_seconds=self._delay,
            scheduler=self._scheduler,
            clock=self._clock,
            error_log=self._error_log,
        )
        self._active = ProjectModel(project, controller)
        logger.debug(f"opened project={project_id}")
        return self._active

    def close_project(self, *, discard: bool = False) -> bool:
        """Flush the open session and return to the list. False when the last write failed.

        With discard=True unsaved edits are dropped instead of written.
        """
        active = self._active
        if active is None:
            return True
        ok = True
        if active.persistence is not None:
            if discard:
                active.persistence.discard()
                logger.debug(f"discarded pending edits project={active.project_id}")
            else:
                ok = active.persistence.close()
        self._active = None
        return ok

    def delete_project(self, project_id: str, *, confirmed: bool = False) -> bool:
        """Remove a project from the repository. Requires confirmed=True."""
        if not confirmed:
            logger.debug(f"delete not confirmed project={project_id}")
            return False
        if self._active is not None and self._active.project_id == project_id:
            # Discard the session without flushing; the project is going away
            if self._active.persistence is not None:
                self._active.persistence.discard()
            self._active = None
        try:
            self._repository.delete(project_id)
        except RepositoryError as e:
            self._record(project_id, "delete", e)
            return False
        logger.info(f"deleted project={project_id}")
        return True
