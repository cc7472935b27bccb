"""Unit tests for the job store and render job lifecycle."""

from __future__ import annotations

import asyncio

import pytest

from captionflow.jobs import InMemoryJobStore, RenderJob, RenderJobManager, RenderJobStatus


def test_in_memory_store_crud(make_caption) -> None:
    store: InMemoryJobStore[RenderJob] = InMemoryJobStore()
    job = RenderJob(video_id="v1", captions=[make_caption(1, 0.0, 1.0)])

    store.set(job.id, job)

    assert store.has(job.id)
    assert store.get(job.id) == job
    assert len(store) == 1
    assert store.list() == [job]

    updated = store.update(job.id, progress=40)
    assert updated is not None and updated.progress == 40
    assert store.get(job.id).progress == 40
    assert job.progress == 0

    assert store.delete(job.id)
    assert not store.delete(job.id)
    assert store.get(job.id) is None
    assert store.update(job.id, progress=1) is None


def test_render_job_defaults() -> None:
    job = RenderJob(video_id="v1")

    assert job.status is RenderJobStatus.QUEUED
    assert job.progress == 0
    assert job.style == "bottom"
    assert job.quality == "1080p"
    assert len(job.id) == 32
    assert job.created_at.tzinfo is not None


def test_render_job_progress_is_bounded() -> None:
    with pytest.raises(ValueError):
        RenderJob(video_id="v1", progress=101)


def test_simulated_render_completes(make_caption) -> None:
    manager = RenderJobManager(step_delay=0)

    async def _run() -> RenderJob:
        job = manager.submit("video-42", [make_caption(1, 0.0, 1.0)], style="karaoke")
        assert job.status is RenderJobStatus.QUEUED
        await manager.drain()
        return manager.get(job.id)

    job = asyncio.run(_run())

    assert job.status is RenderJobStatus.COMPLETED
    assert job.progress == 100
    assert job.output_url == f"/api/render/download?jobId={job.id}"
    assert job.style == "karaoke"
    assert job.completed_at is not None


def test_render_progress_is_recorded(make_caption) -> None:
    seen: list[int] = []

    async def render(job: RenderJob, report) -> str:
        seen.append(manager.get(job.id).progress)
        report(75)
        seen.append(manager.get(job.id).progress)
        report(250)
        seen.append(manager.get(job.id).progress)
        return "/out.mp4"

    manager = RenderJobManager(render_fn=render)

    async def _run() -> RenderJob:
        job = manager.submit("v", [make_caption(1, 0.0, 1.0)])
        await manager.drain()
        return manager.get(job.id)

    job = asyncio.run(_run())

    assert seen == [10, 75, 100]
    assert job.output_url == "/out.mp4"


def test_render_failure_is_recorded(make_caption) -> None:
    async def render(job: RenderJob, report) -> str:
        raise RuntimeError("encoder crashed")

    manager = RenderJobManager(render_fn=render)

    async def _run() -> RenderJob:
        job = manager.submit("v", [make_caption(1, 0.0, 1.0)])
        await manager.drain()
        return manager.get(job.id)

    job = asyncio.run(_run())

    assert job.status is RenderJobStatus.FAILED
    assert job.error == "encoder crashed"
    assert job.output_url is None


def test_submit_requires_running_loop(make_caption) -> None:
    with pytest.raises(RuntimeError):
        RenderJobManager().submit("v", [make_caption(1, 0.0, 1.0)])
