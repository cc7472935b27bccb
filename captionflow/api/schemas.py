"""Request and response schemas for the REST API.

Field names are exchanged in camelCase on the wire (``videoId``,
``outputUrl``) and accepted in either spelling.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from captionflow.jobs.render import CaptionStyle, RenderJobStatus, RenderQuality
from captionflow.stt.providers import KeyDiagnostics
from captionflow.timestamps.models import Caption
from captionflow.utils.constant import CAPTION_MERGE_GAP_SEC


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorObject(BaseModel):
    """Machine-readable error details."""

    message: str
    type: str
    code: str


class CaptionGenerationRequest(CamelModel):
    """JSON body for generating captions from a remote video URL."""

    video_url: str = Field(..., min_length=1, description="URL of the video to download.")
    language: str = Field("auto", description="'hi', 'en' or 'auto'.")


class CaptionGenerationResponse(CamelModel):
    """Result envelope of ``POST /api/captions/generate``."""

    success: bool
    message: str
    captions: list[Caption] | None = None
    language: str | None = None
    segments: int | None = Field(None, description="Number of segments transcribed.")
    failed_segments: int | None = Field(None, description="Segments that failed after retries.")
    error: ErrorObject | None = None


class ExportRequest(CamelModel):
    """Caption list to serialize."""

    captions: list[Caption]
    merge: bool = Field(False, description="Merge overlapping or adjacent captions first.")
    merge_gap: float = Field(CAPTION_MERGE_GAP_SEC, ge=0)
    highlight_words: bool = False


class RenderRequest(CamelModel):
    """Body of ``POST /api/render``."""

    video_id: str = Field(..., min_length=1)
    video_url: str | None = None
    captions: list[Caption] = Field(..., min_length=1)
    style: CaptionStyle = "bottom"
    quality: RenderQuality = "1080p"


class RenderResponse(CamelModel):
    """Render job submission or status envelope."""

    success: bool
    message: str
    job_id: str | None = None
    status: RenderJobStatus | None = None
    progress: int | None = None
    output_url: str | None = None
    error: ErrorObject | None = None


class KeyValidationResponse(CamelModel):
    """Result of ``GET /api/stt/validate``."""

    success: bool
    message: str
    provider: str
    diagnostics: KeyDiagnostics
