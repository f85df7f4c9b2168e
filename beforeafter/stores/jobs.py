"""Persistence for enhancement jobs (ai_generations)."""

import threading
from collections.abc import Callable, Iterable
from typing import Protocol

from ..clients.supabase import SupabaseClient
from ..models.job import AIGenerationJob, JobStatus


class JobStore(Protocol):
    def create(self, job: AIGenerationJob) -> AIGenerationJob: ...
    def get(self, job_id: str) -> AIGenerationJob | None: ...
    def list_for_user(self, user_id: str) -> list[AIGenerationJob]: ...
    def find_completed(self, user_id: str, input_url: str, feature_key: str) -> AIGenerationJob | None: ...
    def transition(
        self,
        job_id: str,
        expected: Iterable[JobStatus],
        updated: AIGenerationJob,
        on_commit: Callable[[AIGenerationJob], None] | None = None,
    ) -> bool: ...


class InMemoryJobStore:
    def __init__(self) -> None:
        self._items: dict[str, AIGenerationJob] = {}
        self._lock = threading.Lock()

    def create(self, job: AIGenerationJob) -> AIGenerationJob:
        with self._lock:
            self._items[job.id] = job
        return job

    def get(self, job_id: str) -> AIGenerationJob | None:
        return self._items.get(job_id)

    def list_for_user(self, user_id: str) -> list[AIGenerationJob]:
        jobs = [job for job in self._items.values() if job.user_id == user_id]
        return sorted(jobs, key=lambda job: job.created_at, reverse=True)

    def find_completed(self, user_id: str, input_url: str, feature_key: str) -> AIGenerationJob | None:
        matches = [
            job for job in self._items.values()
            if job.user_id == user_id
            and job.input_image_url == input_url
            and job.feature_key == feature_key
            and job.status is JobStatus.COMPLETED
            and job.output_url
        ]
        if not matches:
            return None
        return max(matches, key=lambda job: job.completed_at or job.created_at)

    def transition(self, job_id, expected, updated, on_commit=None) -> bool:
        """Replace the job only if its current status is one of `expected`.

        on_commit runs under the same lock, so it happens at most once per job.
        """
        expected = set(expected)
        with self._lock:
            current = self._items.get(job_id)
            if current is None or current.status not in expected:
                return False
            self._items[job_id] = updated
            if on_commit:
                on_commit(updated)
        return True


class SupabaseJobStore:
    """Jobs in the ai_generations table. Transitions are conditional PATCHes."""

    table = "ai_generations"

    def __init__(self, client: SupabaseClient):
        self.client = client

    def create(self, job: AIGenerationJob) -> AIGenerationJob:
        row = self.client.insert(self.table, job.to_row())
        return AIGenerationJob.from_row(row)

    def get(self, job_id: str) -> AIGenerationJob | None:
        rows = self.client.select(self.table, {"id": f"eq.{job_id}"}, limit=1)
        return AIGenerationJob.from_row(rows[0]) if rows else None

    def list_for_user(self, user_id: str) -> list[AIGenerationJob]:
        rows = self.client.select(self.table, {"user_id": f"eq.{user_id}"}, order="created_at.desc")
        return [AIGenerationJob.from_row(row) for row in rows]

    def find_completed(self, user_id: str, input_url: str, feature_key: str) -> AIGenerationJob | None:
        rows = self.client.select(
            self.table,
            {
                "user_id": f"eq.{user_id}",
                "input_image_url": f"eq.{input_url}",
                "feature_key": f"eq.{feature_key}",
                "status": "eq.completed",
                "output_image_url": "not.is.null",
            },
            order="completed_at.desc",
            limit=1,
        )
        return AIGenerationJob.from_row(rows[0]) if rows else None

    def transition(self, job_id, expected, updated, on_commit=None) -> bool:
        statuses = ",".join(status.value for status in expected)
        values = updated.to_row()
        del values["id"]
        rows = self.client.update(
            self.table,
            values,
            {"id": f"eq.{job_id}", "status": f"in.({statuses})"},
        )
        if not rows:
            return False
        if on_commit:
            on_commit(AIGenerationJob.from_row(rows[0]))
        return True
