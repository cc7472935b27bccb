"""Background job bookkeeping (render jobs and their store)."""

from .render import RenderJob, RenderJobManager, RenderJobStatus, simulated_render
from .store import InMemoryJobStore, JobStore

__all__ = [
    "InMemoryJobStore",
    "JobStore",
    "RenderJob",
    "RenderJobManager",
    "RenderJobStatus",
    "simulated_render",
]
