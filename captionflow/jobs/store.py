"""Job store interface and the in-memory implementation.

State is ephemeral: nothing survives a process restart. Callers receive the
store as a collaborator, so a persistent key-value backend can replace
:class:`InMemoryJobStore` without touching the job logic.
"""

from __future__ import annotations

import threading
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

__all__ = ["InMemoryJobStore", "JobStore"]

JobT = TypeVar("JobT", bound=BaseModel)


class JobStore(Protocol[JobT]):
    """Keyed storage for job records."""

    def get(self, job_id: str) -> JobT | None: ...

    def set(self, job_id: str, job: JobT) -> None: ...

    def delete(self, job_id: str) -> bool: ...

    def has(self, job_id: str) -> bool: ...

    def update(self, job_id: str, **changes: Any) -> JobT | None: ...

    def list(self) -> list[JobT]: ...


class InMemoryJobStore(Generic[JobT]):
    """Process-local :class:`JobStore` guarded by a re-entrant lock.

    Records are pydantic models; :meth:`update` replaces a record with a
    modified copy under the lock, so readers never observe a half-applied
    change.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, JobT] = {}
        self._lock = threading.RLock()

    def get(self, job_id: str) -> JobT | None:
        with self._lock:
            return self._jobs.get(job_id)

    def set(self, job_id: str, job: JobT) -> None:
        with self._lock:
            self._jobs[job_id] = job

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def has(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def update(self, job_id: str, **changes: Any) -> JobT | None:
        """Apply ``changes`` to a stored record.

        Returns:
            The updated record, or ``None`` when ``job_id`` is unknown.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            updated = job.model_copy(update=changes)
            self._jobs[job_id] = updated
            return updated

    def list(self) -> list[JobT]:
        with self._lock:
            return list(self._jobs.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
