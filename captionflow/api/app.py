"""FastAPI application factory for the captionflow REST API."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from captionflow import __version__
from captionflow.api.routes import router as api_router
from captionflow.jobs.render import RenderJobManager
from captionflow.transcription.pipeline import TranscriptionPipeline
from captionflow.utils.constant import API_CORS_ORIGINS
from captionflow.utils.logging_config import get_logger

logger = get_logger(__name__)


def create_app(
    *,
    pipeline: TranscriptionPipeline | None = None,
    job_manager: RenderJobManager | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        pipeline: Transcription pipeline shared by all requests. A default
            pipeline (ffmpeg plus the provider from the environment) is
            built when omitted.
        job_manager: Render job manager; defaults to an in-memory store.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="captionflow API",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        redoc_url="/redoc",
    )
    app.state.pipeline = pipeline or TranscriptionPipeline()
    app.state.job_manager = job_manager or RenderJobManager()
    app.include_router(api_router)

    origins = [origin.strip() for origin in API_CORS_ORIGINS.split(",") if origin.strip()]
    if origins:
        logger.info("CORS enabled for origins: %s", ", ".join(origins))
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Return a minimal health status payload."""
        return {"status": "ok"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Return service metadata for root requests."""
        return {
            "service": "captionflow-api",
            "docs": "/docs",
            "health": "/health",
        }

    return app
