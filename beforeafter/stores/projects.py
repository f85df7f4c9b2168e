"""Persistence for saved projects (drafts table)."""

import threading
import uuid
from dataclasses import asdict, replace
from typing import Any, Protocol

from ..clients.supabase import SupabaseClient
from ..errors import NotFoundError
from ..models.project import ProjectRow
from ..utils import to_iso, utc_now


class ProjectStore(Protocol):
    def create(self, user_id: str, template_id: str, values: dict[str, Any]) -> ProjectRow: ...
    def get(self, project_id: str) -> ProjectRow | None: ...
    def update(self, project_id: str, values: dict[str, Any]) -> ProjectRow: ...
    def list_for_user(self, user_id: str) -> list[ProjectRow]: ...
    def delete(self, project_id: str) -> None: ...


class InMemoryProjectStore:
    def __init__(self) -> None:
        self._items: dict[str, ProjectRow] = {}
        self._lock = threading.Lock()

    def create(self, user_id: str, template_id: str, values: dict[str, Any]) -> ProjectRow:
        now = to_iso(utc_now())
        row = ProjectRow(
            id=str(uuid.uuid4()),
            user_id=user_id,
            template_id=template_id,
            created_at=now,
            updated_at=now,
        )
        row = replace(row, **values)
        with self._lock:
            self._items[row.id] = row
        return row

    def put(self, row: ProjectRow) -> ProjectRow:
        """Insert a row as-is (used to seed legacy rows)."""
        with self._lock:
            self._items[row.id] = row
        return row

    def get(self, project_id: str) -> ProjectRow | None:
        return self._items.get(project_id)

    def update(self, project_id: str, values: dict[str, Any]) -> ProjectRow:
        with self._lock:
            current = self._items.get(project_id)
            if current is None:
                raise NotFoundError(f"Project {project_id} not found")
            row = replace(current, **values, updated_at=to_iso(utc_now()))
            self._items[project_id] = row
        return row

    def list_for_user(self, user_id: str) -> list[ProjectRow]:
        rows = [row for row in self._items.values() if row.user_id == user_id]
        return sorted(rows, key=lambda row: row.updated_at or "", reverse=True)

    def delete(self, project_id: str) -> None:
        with self._lock:
            self._items.pop(project_id, None)


class SupabaseProjectStore:
    table = "drafts"

    def __init__(self, client: SupabaseClient):
        self.client = client

    def create(self, user_id: str, template_id: str, values: dict[str, Any]) -> ProjectRow:
        row = self.client.insert(self.table, {"user_id": user_id, "template_id": template_id, **values})
        return ProjectRow.from_row(row)

    def get(self, project_id: str) -> ProjectRow | None:
        rows = self.client.select(self.table, {"id": f"eq.{project_id}"}, limit=1)
        return ProjectRow.from_row(rows[0]) if rows else None

    def update(self, project_id: str, values: dict[str, Any]) -> ProjectRow:
        rows = self.client.update(
            self.table,
            {**values, "updated_at": to_iso(utc_now())},
            {"id": f"eq.{project_id}"},
        )
        if not rows:
            raise NotFoundError(f"Project {project_id} not found")
        return ProjectRow.from_row(rows[0])

    def list_for_user(self, user_id: str) -> list[ProjectRow]:
        rows = self.client.select(self.table, {"user_id": f"eq.{user_id}"}, order="updated_at.desc")
        return [ProjectRow.from_row(row) for row in rows]

    def delete(self, project_id: str) -> None:
        self.client.delete(self.table, {"id": f"eq.{project_id}"})


def row_values(row: ProjectRow) -> dict[str, Any]:
    """Copyable columns of a row (everything except identity and timestamps)."""
    values = asdict(row)
    for key in ("id", "user_id", "template_id", "created_at", "updated_at"):
        values.pop(key)
    return values
