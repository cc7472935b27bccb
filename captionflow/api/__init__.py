"""REST API package for captionflow."""

from __future__ import annotations

from captionflow.api.app import create_app

__all__ = ["create_app"]
