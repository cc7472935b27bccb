"""STT provider selection and API key diagnostics.

Credentials are read from the environment at call time rather than at
import time, so a key added to the environment of a running server (or
monkeypatched in a test) is picked up by the next request.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from captionflow.config import STTConfig
from captionflow.errors import ConfigurationError
from captionflow.utils.constant import (
    OPENAI_STT_ENDPOINT,
    OPENAI_STT_MODEL,
    STT_ENDPOINT,
    STT_PROVIDER,
)

__all__ = [
    "HUGGINGFACE",
    "KeyDiagnostics",
    "OPENAI",
    "PROVIDER_KEY_ENV",
    "clean_api_key",
    "inspect_api_key",
    "resolve_stt_config",
]

logger = logging.getLogger(__name__)

HUGGINGFACE = "huggingface"
OPENAI = "openai"
AUTO = "auto"

PROVIDER_KEY_ENV: dict[str, str] = {
    HUGGINGFACE: "HUGGINGFACE_API_KEY",
    OPENAI: "OPENAI_API_KEY",
}

_MIN_KEY_LENGTH = 20
_PLACEHOLDER_MARKERS = ("your-", "placeholder")


def _is_quoted(value: str) -> bool:
    return len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}


def clean_api_key(raw: str | None) -> str:
    """Strip surrounding whitespace and one pair of wrapping quotes."""
    if not raw:
        return ""
    key = raw.strip()
    if _is_quoted(key):
        key = key[1:-1].strip()
    return key


def resolve_stt_config(
    provider: str | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> STTConfig:
    """Build an :class:`STTConfig` from the environment.

    ``auto`` prefers Hugging Face and falls back to OpenAI when only an
    OpenAI key is configured.

    Args:
        provider: Explicit provider name; defaults to ``STT_PROVIDER``.
        env: Environment mapping (``os.environ`` when omitted).

    Returns:
        STTConfig: Settings for :class:`~captionflow.stt.client.TranscriptionClient`.

    Raises:
        ConfigurationError: If the provider is unknown or has no usable key.
    """
    env = os.environ if env is None else env
    name = (provider or env.get("STT_PROVIDER") or STT_PROVIDER).strip().lower()

    if name == AUTO:
        for candidate in (HUGGINGFACE, OPENAI):
            if clean_api_key(env.get(PROVIDER_KEY_ENV[candidate])):
                name = candidate
                break
        else:
            raise ConfigurationError(
                "No STT provider configured. Set HUGGINGFACE_API_KEY or OPENAI_API_KEY"
            )

    if name not in PROVIDER_KEY_ENV:
        raise ConfigurationError(
            f"Unknown STT provider {name!r}; expected one of: huggingface, openai, auto"
        )

    key = clean_api_key(env.get(PROVIDER_KEY_ENV[name]))
    if not key:
        raise ConfigurationError(f"{PROVIDER_KEY_ENV[name]} is not configured")

    if name == HUGGINGFACE:
        config = STTConfig(
            provider=HUGGINGFACE,
            api_key=key,
            endpoint=env.get("STT_ENDPOINT", STT_ENDPOINT),
        )
    else:
        config = STTConfig(
            provider=OPENAI,
            api_key=key,
            endpoint=env.get("OPENAI_STT_ENDPOINT", OPENAI_STT_ENDPOINT),
            model=env.get("OPENAI_STT_MODEL", OPENAI_STT_MODEL),
        )
    logger.debug("Resolved STT provider: %r", config)
    return config


class KeyDiagnostics(BaseModel):
    """Format checks on a provider API key. Never includes the key itself."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    provider: str = Field(..., description="Provider the key belongs to.")
    env_var: str = Field(..., description="Environment variable holding the key.")
    key_exists: bool = Field(..., description="Whether the variable is set and non-blank.")
    key_length: int = Field(0, description="Length of the raw value.")
    key_prefix: str = Field("not set", description="First characters, masked.")
    has_spaces: bool = False
    has_quotes: bool = False
    has_surrounding_whitespace: bool = False
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """``True`` when the key is present and has no format issues."""
        return self.key_exists and not self.issues


def inspect_api_key(raw: str | None, provider: str = HUGGINGFACE) -> KeyDiagnostics:
    """Report common formatting mistakes in an API key.

    Args:
        raw: The raw environment value, possibly ``None``.
        provider: Provider the key is meant for; only Hugging Face keys are
            checked for the ``hf_`` prefix.

    Returns:
        KeyDiagnostics: Findings plus human-readable recommendations.
    """
    env_var = PROVIDER_KEY_ENV.get(provider, "API_KEY")
    if not raw:
        return KeyDiagnostics(
            provider=provider,
            env_var=env_var,
            key_exists=False,
            issues=[f"{env_var} is not set"],
            recommendations=[
                f"Set {env_var} in the project .env file",
                "Restart the server after adding the key",
            ],
        )

    key = clean_api_key(raw)
    issues: list[str] = []
    if provider == HUGGINGFACE and not key.startswith("hf_"):
        issues.append("Key should start with 'hf_'")
    if len(key) < _MIN_KEY_LENGTH:
        issues.append("Key seems too short")
    if " " in raw.strip():
        issues.append("Key contains spaces")
    if _is_quoted(raw.strip()):
        issues.append("Key is wrapped in quotes")
    if any(marker in key.lower() for marker in _PLACEHOLDER_MARKERS):
        issues.append("Key appears to be a placeholder")

    recommendations = [f"Fix: {issue}" for issue in issues]
    if raw != raw.strip():
        recommendations.append("Key has leading/trailing whitespace; it is trimmed before use")
    if issues and provider == HUGGINGFACE:
        recommendations.append("Create a new token at https://huggingface.co/settings/tokens")

    return KeyDiagnostics(
        provider=provider,
        env_var=env_var,
        key_exists=True,
        key_length=len(raw),
        key_prefix=f"{key[:6]}...",
        has_spaces=" " in raw.strip(),
        has_quotes=_is_quoted(raw.strip()),
        has_surrounding_whitespace=raw != raw.strip(),
        issues=issues,
        recommendations=recommendations,
    )
