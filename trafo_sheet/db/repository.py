from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

from ..models.project import Project

"""Project repository contract and the in-memory backend.

A repository stores whole project snapshots keyed by id within an owner
scope and notifies subscribers with the full project list of a scope after
every change. Delivery order is unspecified; consumers sort.
"""

__all__ = [
    "RepositoryError",
    "ProjectListener",
    "Subscription",
    "ProjectRepository",
    "InMemoryProjectRepository",
    "load_project",
    "load_projects",
]

logger = logging.getLogger(__name__)

ProjectListener = Callable[[list[Project]], None]


class RepositoryError(Exception):
    """Raised when the backing store rejects or cannot complete an operation."""


class Subscription:
    """Handle returned by subscribe(); cancel() stops further deliveries."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._cancel()


class ProjectRepository(Protocol):
    owner_scope: str

    def put(self, project_id: str, project: Project) -> None: ...

    def delete(self, project_id: str) -> None: ...

    def get(self, project_id: str) -> Project | None: ...

    def list_projects(self) -> list[Project]: ...

    def subscribe(self, owner_scope: str, listener: ProjectListener) -> Subscription: ...


def load_project(doc: dict) -> Project:
    """Decode one stored document.

    Raises:
        RepositoryError: If the document does not describe a valid project
    """
    try:
        return Project.from_document(doc)
    except (TypeError, ValueError, AttributeError) as e:
        project_id = doc.get("id", "-") if isinstance(doc, dict) else "-"
        raise RepositoryError(f"malformed project document id={project_id}: {e}") from e


def load_projects(docs: list[dict]) -> list[Project]:
    """Decode stored documents, skipping (and logging) the malformed ones."""
    projects = []
    for doc in docs:
        try:
            projects.append(load_project(doc))
        except RepositoryError as e:
            logger.error(f"skipped {e}")
    return projects


class ListenerRegistry:
    """Per-scope listener bookkeeping shared by the backends."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[ProjectListener]] = {}

    def add(self, owner_scope: str, listener: ProjectListener) -> Subscription:
        with self._lock:
            self._listeners.setdefault(owner_scope, []).append(listener)

        def _remove() -> None:
            with self._lock:
                listeners = self._listeners.get(owner_scope, [])
                if listener in listeners:
                    listeners.remove(listener)

        return Subscription(_remove)

    def listeners(self, owner_scope: str) -> list[ProjectListener]:
        with self._lock:
            return list(self._listeners.get(owner_scope, []))

    def deliver(self, owner_scope: str, projects: list[Project]) -> None:
        for listener in self.listeners(owner_scope):
            listener(list(projects))


class InMemoryProjectRepository:
    """Dictionary-backed repository.

    Snapshots are stored as documents (to_document) so that what a reader gets
    back never aliases what a writer put in, the same as a remote store.
    """

    def __init__(self, owner_scope: str) -> None:
        self.owner_scope = owner_scope
        self._lock = threading.Lock()
        self._documents: dict[str, dict[str, dict]] = {}
        self._registry = ListenerRegistry()
        self.put_count = 0

    def _scope(self, owner_scope: str) -> dict[str, dict]:
        return self._documents.setdefault(owner_scope, {})

    def _snapshot(self, owner_scope: str) -> list[Project]:
        with self._lock:
            docs = list(self._scope(owner_scope).values())
        return load_projects(docs)

    def put(self, project_id: str, project: Project) -> None:
        if project.id != project_id:
            raise RepositoryError(f"id mismatch: key={project_id} project={project.id}")
        with self._lock:
            self._scope(self.owner_scope)[project_id] = project.to_document()
            self.put_count += 1
        logger.debug(f"memory put project={project_id}")
        self._registry.deliver(self.owner_scope, self._snapshot(self.owner_scope))

    def delete(self, project_id: str) -> None:
        with self._lock:
            removed = self._scope(self.owner_scope).pop(project_id, None)
        if removed is not None:
            self._registry.deliver(self.owner_scope, self._snapshot(self.owner_scope))

    def get(self, project_id: str) -> Project | None:
        with self._lock:
            doc = self._scope(self.owner_scope).get(project_id)
        return load_project(doc) if doc is not None else None

    def list_projects(self) -> list[Project]:
        return self._snapshot(self.owner_scope)

    def subscribe(self, owner_scope: str, listener: ProjectListener) -> Subscription:
        subscription = self._registry.add(owner_scope, listener)
        listener(self._snapshot(owner_scope))
        return subscription
