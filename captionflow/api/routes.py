"""REST routes for caption generation, export, render jobs and STT diagnostics."""

from __future__ import annotations

import logging
import os
from time import perf_counter
from typing import Any
from uuid import uuid4

import httpx
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError
from starlette.datastructures import UploadFile

from captionflow.api.schemas import (
    CaptionGenerationRequest,
    CaptionGenerationResponse,
    ErrorObject,
    ExportRequest,
    KeyValidationResponse,
    RenderRequest,
    RenderResponse,
)
from captionflow.errors import (
    AudioConversionError,
    ConfigurationError,
    DurationDetectionError,
    TranscriptionFailedError,
)
from captionflow.formatting import get_formatter_spec
from captionflow.formatting.refine import merge_overlapping_captions, validate_captions
from captionflow.jobs.render import RenderJobManager, RenderJobStatus
from captionflow.stt.providers import HUGGINGFACE, PROVIDER_KEY_ENV, clean_api_key, inspect_api_key
from captionflow.transcription.pipeline import TranscriptionPipeline, normalize_language
from captionflow.utils.constant import MAX_UPLOAD_BYTES, STT_TIMEOUT_SEC

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


class MediaDownloadError(RuntimeError):
    """Fetching media from a client-supplied URL failed."""


def _json(model: BaseModel, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=model.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def _build_error_response(
    *,
    status_code: int,
    message: str,
    error_type: str,
    code: str,
    detail: str | None = None,
    extra: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a failure envelope.

    Args:
        status_code: HTTP status code.
        message: Summary for clients.
        error_type: Coarse error category (``invalid_request_error``, ``server_error``).
        code: Short machine-readable error code.
        detail: Underlying error message, defaults to ``message``.
        extra: Additional top-level fields, e.g. a job's status.

    Returns:
        JSON response with ``success: false`` and an ``error`` object.
    """
    payload: dict[str, Any] = {
        "success": False,
        "message": message,
        "error": ErrorObject(message=detail or message, type=error_type, code=code).model_dump(),
    }
    if extra:
        payload.update(extra)
    return JSONResponse(status_code=status_code, content=payload)


def _pipeline(request: Request) -> TranscriptionPipeline:
    return request.app.state.pipeline


def _jobs(request: Request) -> RenderJobManager:
    return request.app.state.job_manager


async def _download_media(url: str) -> tuple[bytes, str | None]:
    """Download media from ``url``.

    Returns:
        The body and its declared content type.

    Raises:
        MediaDownloadError: On transport errors or a non-2xx status.
    """
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=STT_TIMEOUT_SEC) as client:
            response = await client.get(url)
    except httpx.HTTPError as exc:
        raise MediaDownloadError(f"Failed to download video from URL: {exc}") from exc
    if not response.is_success:
        raise MediaDownloadError(f"Failed to fetch video from URL ({response.status_code})")
    content_type = response.headers.get("content-type")
    return response.content, content_type.split(";", 1)[0].strip() if content_type else None


async def _read_generation_input(
    request: Request,
) -> tuple[bytes, str | None, str] | JSONResponse:
    """Return ``(media, mime_type, language)`` or an error response."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = CaptionGenerationRequest.model_validate(await request.json())
        except (ValueError, ValidationError) as exc:
            return _build_error_response(
                status_code=400,
                message="Missing videoUrl in JSON payload",
                error_type="invalid_request_error",
                code="invalid_body",
                detail=str(exc),
            )
        try:
            media, mime_type = await _download_media(body.video_url)
        except MediaDownloadError as exc:
            return _build_error_response(
                status_code=400,
                message=str(exc),
                error_type="invalid_request_error",
                code="download_failed",
            )
        return media, mime_type, body.language

    form = await request.form()
    upload = form.get("video")
    if not isinstance(upload, UploadFile):
        return _build_error_response(
            status_code=400,
            message="No video file provided",
            error_type="invalid_request_error",
            code="missing_file",
        )
    language = form.get("language")
    media = await upload.read()
    return media, upload.content_type, language if isinstance(language, str) else "auto"


@router.post("/captions/generate", response_model=CaptionGenerationResponse)
async def generate_captions(request: Request) -> JSONResponse:
    """Transcribe an uploaded video (multipart ``video``) or a ``videoUrl`` (JSON).

    Returns:
        Caption envelope; 400 for bad input or media, 500 for configuration
        or transcription failures.
    """
    request_id = uuid4().hex[:8]
    started_at = perf_counter()

    parsed = await _read_generation_input(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    media, mime_type, language = parsed

    try:
        language = normalize_language(language)
    except ValueError as exc:
        return _build_error_response(
            status_code=400,
            message=str(exc),
            error_type="invalid_request_error",
            code="invalid_language",
        )

    if not media:
        return _build_error_response(
            status_code=400,
            message="No video file provided",
            error_type="invalid_request_error",
            code="missing_file",
        )
    if len(media) > MAX_UPLOAD_BYTES:
        return _build_error_response(
            status_code=413,
            message=f"File exceeds the {MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit",
            error_type="invalid_request_error",
            code="file_too_large",
        )

    logger.info(
        "Caption generation started: id=%s bytes=%d mime=%s language=%s",
        request_id,
        len(media),
        mime_type,
        language,
    )
    try:
        result = await _pipeline(request).run(media, mime_type, language)
    except ConfigurationError as exc:
        logger.error("Caption generation misconfigured: id=%s error=%s", request_id, exc)
        return _build_error_response(
            status_code=500,
            message="STT provider is missing or misconfigured",
            error_type="server_error",
            code="configuration_error",
            detail=str(exc),
        )
    except (AudioConversionError, DurationDetectionError) as exc:
        return _build_error_response(
            status_code=400,
            message="Could not read audio from the uploaded media",
            error_type="invalid_request_error",
            code="invalid_media",
            detail=str(exc),
        )
    except TranscriptionFailedError as exc:
        logger.error("Caption generation failed: id=%s error=%s", request_id, exc)
        return _build_error_response(
            status_code=500,
            message="Failed to generate captions",
            error_type="server_error",
            code="transcription_failed",
            detail=str(exc),
        )

    errors = validate_captions(result.captions)
    if errors:
        logger.error("Generated captions failed validation: id=%s errors=%s", request_id, errors)
        return _build_error_response(
            status_code=500,
            message="Generated captions failed validation",
            error_type="server_error",
            code="invalid_captions",
            detail=", ".join(errors),
        )

    logger.info(
        "Caption generation completed: id=%s captions=%d elapsed=%.2fs",
        request_id,
        len(result.captions),
        perf_counter() - started_at,
    )
    return _json(
        CaptionGenerationResponse(
            success=True,
            message=f"Successfully generated {len(result.captions)} captions",
            captions=result.captions,
            language=result.language,
            segments=result.segment_count,
            failed_segments=result.orchestration.failed_count,
        )
    )


@router.post("/captions/export")
async def export_captions(
    body: ExportRequest,
    output_format: str = Query("srt", alias="format"),
) -> Response:
    """Serialize a caption list as SRT, VTT, JSON or plain text."""
    try:
        spec = get_formatter_spec(output_format)
    except ValueError as exc:
        return _build_error_response(
            status_code=400,
            message=str(exc),
            error_type="invalid_request_error",
            code="unsupported_format",
        )

    errors = validate_captions(body.captions)
    if errors:
        return _build_error_response(
            status_code=400,
            message="Captions failed validation",
            error_type="invalid_request_error",
            code="invalid_captions",
            detail=", ".join(errors),
        )

    captions = body.captions
    if body.merge:
        captions = merge_overlapping_captions(captions, body.merge_gap)

    content = spec.render(captions, highlight_words=body.highlight_words)
    return Response(
        content=content,
        media_type=spec.media_type,
        headers={"Content-Disposition": f'attachment; filename="captions{spec.file_extension}"'},
    )


@router.post("/render")
async def start_render(request: Request) -> JSONResponse:
    """Queue a render job for a captioned video."""
    try:
        body = RenderRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as exc:
        return _build_error_response(
            status_code=400,
            message="Missing required fields: videoId, captions",
            error_type="invalid_request_error",
            code="invalid_body",
            detail=str(exc),
        )

    job = _jobs(request).submit(
        body.video_id,
        body.captions,
        style=body.style,
        quality=body.quality,
        video_url=body.video_url,
    )
    return _json(
        RenderResponse(
            success=True,
            message="Render job started",
            job_id=job.id,
            status=job.status,
            progress=job.progress,
        )
    )


@router.get("/render")
async def get_render_status(
    request: Request,
    job_id: str | None = Query(None, alias="jobId"),
) -> JSONResponse:
    """Return the status of a render job."""
    if not job_id:
        return _build_error_response(
            status_code=400,
            message="Missing jobId parameter",
            error_type="invalid_request_error",
            code="missing_job_id",
        )
    job = _jobs(request).get(job_id)
    if job is None:
        return _build_error_response(
            status_code=404,
            message="Job not found",
            error_type="invalid_request_error",
            code="job_not_found",
        )

    error = None
    if job.status is RenderJobStatus.FAILED:
        error = ErrorObject(message=job.error or "unknown error", type="server_error", code="render_failed")
    return _json(
        RenderResponse(
            success=True,
            message=f"Job status: {job.status.value}",
            job_id=job.id,
            status=job.status,
            progress=job.progress,
            output_url=job.output_url,
            error=error,
        )
    )


@router.get("/render/download")
async def download_render(
    request: Request,
    job_id: str | None = Query(None, alias="jobId"),
) -> Response:
    """Serve the rendered video of a completed job.

    Only jobs whose output (or source video) is an absolute http(s) URL can
    be served; the simulated renderer produces no file and yields 501.
    """
    if not job_id:
        return _build_error_response(
            status_code=400,
            message="Missing jobId parameter",
            error_type="invalid_request_error",
            code="missing_job_id",
        )
    job = _jobs(request).get(job_id)
    if job is None:
        return _build_error_response(
            status_code=404,
            message="Job not found",
            error_type="invalid_request_error",
            code="job_not_found",
        )
    if job.status is not RenderJobStatus.COMPLETED:
        return _build_error_response(
            status_code=400,
            message=f"Job is not completed yet. Current status: {job.status.value}",
            error_type="invalid_request_error",
            code="job_not_completed",
            extra={"status": job.status.value, "progress": job.progress},
        )

    video_url = next(
        (url for url in (job.output_url, job.video_url) if url and url.startswith("http")),
        None,
    )
    if video_url is None:
        logger.warning(
            "Download requested but no video file exists: job=%s output=%s",
            job.id,
            job.output_url,
        )
        return _build_error_response(
            status_code=501,
            message=(
                "Video rendering is not implemented; the render job completed "
                "but no video file was generated."
            ),
            error_type="server_error",
            code="rendering_not_implemented",
            extra={"jobId": job.id, "status": job.status.value},
        )

    try:
        content, content_type = await _download_media(video_url)
    except MediaDownloadError as exc:
        logger.error("Fetching rendered video failed: job=%s error=%s", job.id, exc)
        return _build_error_response(
            status_code=500,
            message="Failed to fetch video for download",
            error_type="server_error",
            code="download_failed",
            detail=str(exc),
        )

    file_name = httpx.URL(video_url).path.rsplit("/", 1)[-1] or f"video-{job.id}.mp4"
    return Response(
        content=content,
        media_type=content_type or "video/mp4",
        headers={
            "Content-Disposition": f'attachment; filename="{file_name}"',
            "Cache-Control": "public, max-age=3600",
        },
    )


@router.get("/stt/validate")
async def validate_stt_key() -> JSONResponse:
    """Report formatting problems with the configured STT API key."""
    provider = os.getenv("STT_PROVIDER", "auto").strip().lower()
    if provider not in PROVIDER_KEY_ENV:
        provider = next(
            (name for name, var in PROVIDER_KEY_ENV.items() if clean_api_key(os.getenv(var))),
            HUGGINGFACE,
        )

    diagnostics = inspect_api_key(os.getenv(PROVIDER_KEY_ENV[provider]), provider)
    if not diagnostics.key_exists:
        message = f"{diagnostics.env_var} is not set"
    elif diagnostics.issues:
        message = f"{len(diagnostics.issues)} issue(s) found with {diagnostics.env_var}"
    else:
        message = f"{diagnostics.env_var} looks valid"
    return _json(
        KeyValidationResponse(
            success=diagnostics.ok,
            message=message,
            provider=provider,
            diagnostics=diagnostics,
        )
    )
