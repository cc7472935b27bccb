"""Render job lifecycle.

The video renderer itself is not part of this project: the default render
function only simulates progress. The job bookkeeping around it is real:
submission, fire-and-forget execution on the running event loop, progress
updates and terminal states are all recorded in a :class:`JobStore`.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from captionflow.jobs.store import InMemoryJobStore, JobStore
from captionflow.timestamps.models import Caption
from captionflow.utils.constant import RENDER_STEP_DELAY_SEC

__all__ = [
    "CaptionStyle",
    "RenderJob",
    "RenderJobManager",
    "RenderJobStatus",
    "RenderQuality",
    "simulated_render",
]

logger = logging.getLogger(__name__)

CaptionStyle = Literal["bottom", "top", "karaoke"]
RenderQuality = Literal["720p", "1080p"]

ProgressFn = Callable[[int], None]
RenderFn = Callable[["RenderJob", ProgressFn], Awaitable[str]]


class RenderJobStatus(str, enum.Enum):  # noqa: UP042
    """Status of a render job.

    Attributes:
        QUEUED: Job accepted, not started yet.
        PROCESSING: Job currently rendering.
        COMPLETED: Output is available at ``output_url``.
        FAILED: Rendering failed; see ``error``.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RenderJob(BaseModel):
    """A request to burn captions into a video."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    video_id: str
    video_url: str | None = None
    captions: list[Caption] = Field(default_factory=list)
    style: CaptionStyle = "bottom"
    quality: RenderQuality = "1080p"
    status: RenderJobStatus = RenderJobStatus.QUEUED
    progress: int = Field(0, ge=0, le=100)
    output_url: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None


def simulated_render(step_delay: float = RENDER_STEP_DELAY_SEC) -> RenderFn:
    """Return a render function that reports 50% and finishes after two steps."""

    async def render(job: RenderJob, report: ProgressFn) -> str:
        await asyncio.sleep(step_delay)
        report(50)
        await asyncio.sleep(step_delay)
        return f"/api/render/download?jobId={job.id}"

    return render


class RenderJobManager:
    """Submit render jobs and drive them to a terminal state.

    Attributes:
        store: Job store holding every job record.
        render_fn: Coroutine performing the render (injected for testability).
    """

    def __init__(
        self,
        store: JobStore[RenderJob] | None = None,
        render_fn: RenderFn | None = None,
        step_delay: float = RENDER_STEP_DELAY_SEC,
    ) -> None:
        self.store: JobStore[RenderJob] = store if store is not None else InMemoryJobStore()
        self.render_fn = render_fn or simulated_render(step_delay)
        self._tasks: set[asyncio.Task[None]] = set()

    def submit(
        self,
        video_id: str,
        captions: list[Caption],
        *,
        style: CaptionStyle = "bottom",
        quality: RenderQuality = "1080p",
        video_url: str | None = None,
    ) -> RenderJob:
        """Queue a job and start it on the running event loop.

        Must be called from within a running event loop (e.g. a FastAPI
        route); the job keeps running after the caller returns.

        Returns:
            RenderJob: The queued job record.
        """
        job = RenderJob(
            video_id=video_id,
            video_url=video_url,
            captions=captions,
            style=style,
            quality=quality,
        )
        self.store.set(job.id, job)
        task = asyncio.get_running_loop().create_task(self._execute(job.id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Render job %s queued (video=%s, %d captions)", job.id, video_id, len(captions))
        return job

    def get(self, job_id: str) -> RenderJob | None:
        return self.store.get(job_id)

    async def _execute(self, job_id: str) -> None:
        job = self.store.update(job_id, status=RenderJobStatus.PROCESSING, progress=10)
        if job is None:
            return

        def report(progress: int) -> None:
            self.store.update(job_id, progress=max(0, min(100, int(progress))))

        try:
            output_url = await self.render_fn(job, report)
        except Exception as exc:  # recorded on the job
            logger.error("Render job %s failed: %s", job_id, exc)
            self.store.update(
                job_id,
                status=RenderJobStatus.FAILED,
                error=str(exc) or exc.__class__.__name__,
                completed_at=_now(),
            )
            return

        self.store.update(
            job_id,
            status=RenderJobStatus.COMPLETED,
            progress=100,
            output_url=output_url,
            completed_at=_now(),
        )
        logger.info("Render job %s completed", job_id)

    async def drain(self) -> None:
        """Wait until every running job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
