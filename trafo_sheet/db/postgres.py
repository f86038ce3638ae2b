from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extras import Json

from ..models.project import Project
from .repository import (
    ListenerRegistry,
    ProjectListener,
    RepositoryError,
    Subscription,
    load_project,
    load_projects,
)

"""PostgreSQL project repository.

Each project is one JSONB document row keyed by (owner_scope, id). Writes
are upserts (last write wins). Subscribers of a scope receive the full
project list after every put/delete made through this repository and on
refresh(), which callers use to pick up changes from other sessions.
"""

__all__ = [
    "PostgresProjectRepository",
    "connect",
]

logger = logging.getLogger(__name__)


def connect(dsn: str) -> Any:
    try:
        conn = psycopg2.connect(dsn)
    except psycopg2.Error as e:
        raise RepositoryError(f"connection failed: {e}") from e
    conn.autocommit = False
    return conn


class PostgresProjectRepository:
    def __init__(self, connection: Any, owner_scope: str, table: str = "projects") -> None:
        if not table.replace("_", "").isalnum():
            raise ValueError(f"invalid table name: {table!r}")
        self.owner_scope = owner_scope
        self.table = table
        self._conn = connection
        # One cursor at a time on the shared connection
        self._lock = threading.Lock()
        self._registry = ListenerRegistry()

    @contextmanager
    def _cursor(self):
        """Cursor inside one transaction: commit on success, rollback and wrap on error."""
        with self._lock:
            cur = self._conn.cursor()
            try:
                yield cur
                self._conn.commit()
            except psycopg2.Error as e:
                self._conn.rollback()
                raise RepositoryError(str(e).strip()) from e
            finally:
                cur.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            cur.execute(
                f"CREATE TABLE IF NOT EXISTS {self.table} ("
                " owner_scope text NOT NULL,"
                " id text NOT NULL,"
                " document jsonb NOT NULL,"
                " last_modified timestamptz NOT NULL,"
                " PRIMARY KEY (owner_scope, id))"
            )

    def _fetch_scope(self, owner_scope: str) -> list[Project]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT document FROM {self.table} WHERE owner_scope = %s",
                (owner_scope,),
            )
            rows = cur.fetchall()
        return load_projects([r[0] for r in rows])

    def put(self, project_id: str, project: Project) -> None:
        if project.id != project_id:
            raise RepositoryError(f"id mismatch: key={project_id} project={project.id}")
        with self._cursor() as cur:
            cur.execute(
                f"INSERT INTO {self.table} (owner_scope, id, document, last_modified)"
                " VALUES (%s, %s, %s, %s)"
                " ON CONFLICT (owner_scope, id) DO UPDATE"
                " SET document = EXCLUDED.document, last_modified = EXCLUDED.last_modified",
                (self.owner_scope, project_id, Json(project.to_document()), project.last_modified),
            )
        logger.debug(f"postgres put project={project_id}")
        self._notify(self.owner_scope)

    def delete(self, project_id: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                f"DELETE FROM {self.table} WHERE owner_scope = %s AND id = %s",
                (self.owner_scope, project_id),
            )
        self._notify(self.owner_scope)

    def get(self, project_id: str) -> Project | None:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT document FROM {self.table} WHERE owner_scope = %s AND id = %s",
                (self.owner_scope, project_id),
            )
            row = cur.fetchone()
        return load_project(row[0]) if row else None

    def list_projects(self) -> list[Project]:
        return self._fetch_scope(self.owner_scope)

    def subscribe(self, owner_scope: str, listener: ProjectListener) -> Subscription:
        subscription = self._registry.add(owner_scope, listener)
        listener(self._fetch_scope(owner_scope))
        return subscription

    def refresh(self) -> None:
        """Re-read the repository scope and deliver it to subscribers."""
        self._notify(self.owner_scope)

    def _notify(self, owner_scope: str) -> None:
        if not self._registry.listeners(owner_scope):
            return
        try:
            projects = self._fetch_scope(owner_scope)
        except RepositoryError as e:
            # The write itself went through; subscribers catch up on the next delivery
            logger.error(f"project list refresh failed scope={owner_scope}: {e}")
            return
        self._registry.deliver(owner_scope, projects)

    def close(self) -> None:
        try:
            self._conn.close()
        except psycopg2.Error as e:  # pragma: no cover
            logger.debug(f"close failed: {e}")
