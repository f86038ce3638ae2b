"""Project storage backends."""

from .repository import InMemoryProjectRepository, ProjectRepository, RepositoryError, Subscription

__all__ = [
    "InMemoryProjectRepository",
    "ProjectRepository",
    "RepositoryError",
    "Subscription",
]
