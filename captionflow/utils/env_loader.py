"""Load STT credentials and tuning knobs from a project ``.env`` file.

``captionflow.utils.constant`` calls :func:`load_project_env` at import time,
before any ``os.getenv`` lookup, so values from ``.env`` behave exactly like
exported variables. Variables already present in the process environment win.

Set ``CAPTIONFLOW_ENV_FILE`` to read a file other than ``<repo>/.env``.
"""

from __future__ import annotations

import functools
import logging
import os
import pathlib
from collections.abc import Callable
from typing import Any, Final

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_ENV_FILE: pathlib.Path = pathlib.Path(__file__).resolve().parents[2] / ".env"
LOAD_DOTENV: Final[Callable[..., Any]] = load_dotenv


def project_env_file() -> pathlib.Path:
    """Return the ``.env`` path, honouring ``CAPTIONFLOW_ENV_FILE``."""
    override = os.getenv("CAPTIONFLOW_ENV_FILE")
    return pathlib.Path(override).expanduser() if override else _ENV_FILE


@functools.lru_cache(maxsize=1)
def load_project_env(force: bool = False) -> bool:
    """Read the project ``.env`` file once per process.

    Args:
        force: Drop the cached result and read the file again.

    Returns:
        bool: ``True`` when a file was found and handed to python-dotenv.
    """
    if force:
        load_project_env.cache_clear()  # type: ignore[attr-defined]

    env_file = project_env_file()
    if not env_file.is_file():
        logger.debug("No environment file at %s", env_file)
        return False

    LOAD_DOTENV(dotenv_path=env_file, override=False)
    logger.debug("Loaded environment from %s", env_file)
    return True


__all__ = [
    "load_project_env",
    "project_env_file",
]
