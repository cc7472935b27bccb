"""Remote speech-to-text clients and provider configuration."""

from .client import TranscriptionClient
from .providers import KeyDiagnostics, inspect_api_key, resolve_stt_config

__all__ = [
    "KeyDiagnostics",
    "TranscriptionClient",
    "inspect_api_key",
    "resolve_stt_config",
]
