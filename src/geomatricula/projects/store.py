"""Project storage: repository protocol and in-memory implementation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from geomatricula.projects.models import ProjectRecord


@runtime_checkable
class ProjectRepository(Protocol):
    """Storage interface for projects. Relational backends live outside this package."""

    def get(self, project_id: str) -> ProjectRecord | None: ...

    def save(self, record: ProjectRecord) -> None: ...

    def list_all(self) -> list[ProjectRecord]: ...

    def list_by_owner(self, owner_id: str) -> list[ProjectRecord]: ...


class ProjectStore:
    """In-memory dict store for projects, suitable for single-instance deployment."""

    def __init__(self) -> None:
        self._projects: dict[str, ProjectRecord] = {}

    def get(self, project_id: str) -> ProjectRecord | None:
        return self._projects.get(project_id)

    def save(self, record: ProjectRecord) -> None:
        record.updated_at = datetime.now(timezone.utc)
        self._projects[record.project_id] = record

    def list_all(self) -> list[ProjectRecord]:
        return sorted(self._projects.values(), key=lambda r: r.created_at)

    def list_by_owner(self, owner_id: str) -> list[ProjectRecord]:
        return [r for r in self.list_all() if r.owner_id == owner_id]
