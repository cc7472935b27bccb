"""Project-wide constants for convenient reuse."""

# pylint: disable=line-too-long

from __future__ import annotations

import os
import sys
from typing import Final

from captionflow.utils.env_loader import load_project_env

# Ensure .env is loaded exactly once at import time for the whole project
if "pytest" not in sys.modules:
    load_project_env()


# STT provider selection: "huggingface", "openai" or "auto".
# API keys are read at call time (see captionflow.stt.providers), not here.
STT_PROVIDER: Final[str] = os.getenv("STT_PROVIDER", "auto").strip().lower()

# Hugging Face inference endpoint (raw audio body, word timestamps via query)
HF_STT_MODEL: Final[str] = os.getenv("HF_STT_MODEL", "openai/whisper-large-v3")
STT_ENDPOINT: Final[str] = os.getenv(
    "STT_ENDPOINT", f"https://api-inference.huggingface.co/models/{HF_STT_MODEL}"
)

# OpenAI-compatible transcription endpoint (multipart upload)
OPENAI_STT_ENDPOINT: Final[str] = os.getenv(
    "OPENAI_STT_ENDPOINT", "https://api.openai.com/v1/audio/transcriptions"
)
OPENAI_STT_MODEL: Final[str] = os.getenv("OPENAI_STT_MODEL", "whisper-1")

# Call-level retry policy
STT_TIMEOUT_SEC: Final[float] = float(os.getenv("STT_TIMEOUT_SEC", "120"))
STT_MAX_RETRIES: Final[int] = int(os.getenv("STT_MAX_RETRIES", "3"))
STT_LOADING_WAIT_SEC: Final[float] = float(
    os.getenv("STT_LOADING_WAIT_SEC", "15")
)  # fixed wait while the hosted model warms up
STT_BACKOFF_BASE_SEC: Final[float] = float(os.getenv("STT_BACKOFF_BASE_SEC", "1"))
STT_BACKOFF_MAX_SEC: Final[float] = float(os.getenv("STT_BACKOFF_MAX_SEC", "10"))

# Segmentation and segment-level retry policy
DEFAULT_SEGMENT_LEN_SEC: Final[float] = float(os.getenv("SEGMENT_LEN_SEC", "30"))
SEGMENT_MAX_ATTEMPTS: Final[int] = int(os.getenv("SEGMENT_MAX_ATTEMPTS", "3"))
SEGMENT_BACKOFF_SEC: Final[float] = float(
    os.getenv("SEGMENT_BACKOFF_SEC", "2")
)  # wait = SEGMENT_BACKOFF_SEC * attempt
SEGMENT_MAX_FAILURE_RATIO: Final[float] = float(os.getenv("SEGMENT_MAX_FAILURE_RATIO", "0.5"))
SEGMENT_CONCURRENCY: Final[int] = int(os.getenv("SEGMENT_CONCURRENCY", "1"))

# Normalized audio format expected by the STT backends
TARGET_SAMPLE_RATE: Final[int] = 16000
TARGET_CHANNELS: Final[int] = 1
FFMPEG_BINARY: Final[str] = os.getenv("FFMPEG_BINARY", "ffmpeg")

# MIME types the STT backends accept as-is (no transcoding needed)
ACCEPTED_AUDIO_MIME_TYPES: Final[dict[str, str]] = {
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/flac": ".flac",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
    "audio/webm": ".webm",
}

# Response normalization heuristics
WORDS_PER_CAPTION: Final[int] = int(os.getenv("WORDS_PER_CAPTION", "5"))
MIN_SPAN_SEC: Final[float] = float(os.getenv("MIN_SPAN_SEC", "0.05"))
SECONDS_PER_WORD_ESTIMATE: Final[float] = 0.4
MIN_ESTIMATED_DURATION_SEC: Final[float] = 5.0
# Degenerate-transcript guard: sparse chunk sets are spread over the full segment
DEGENERATE_MIN_WORDS_PER_SEC: Final[float] = float(
    os.getenv("DEGENERATE_MIN_WORDS_PER_SEC", "0.5")
)
DEGENERATE_MIN_DURATION_SEC: Final[float] = float(
    os.getenv("DEGENERATE_MIN_DURATION_SEC", "10")
)

# Timeline assembly
OFFSET_TOLERANCE_SEC: Final[float] = 0.1
MIN_COVERAGE_RATIO: Final[float] = float(os.getenv("MIN_COVERAGE_RATIO", "0.5"))

# Caption post-processing
CAPTION_MERGE_GAP_SEC: Final[float] = float(os.getenv("CAPTION_MERGE_GAP_SEC", "0.5"))
WORD_SPAN_TOLERANCE_SEC: Final[float] = 1e-3

# Supported caption languages ("auto" omits the hint)
SUPPORTED_LANGUAGES: Final[tuple[str, ...]] = ("hi", "en", "auto")

# REST API configuration
API_CORS_ORIGINS: Final[str] = os.getenv("API_CORS_ORIGINS", "")
API_SERVER_NAME: Final[str] = os.getenv("API_SERVER_NAME", "0.0.0.0")
API_SERVER_PORT: Final[int] = int(os.getenv("API_SERVER_PORT", "8080"))
MAX_UPLOAD_BYTES: Final[int] = int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))

# Simulated render job pacing
RENDER_STEP_DELAY_SEC: Final[float] = float(os.getenv("RENDER_STEP_DELAY_SEC", "1.0"))
