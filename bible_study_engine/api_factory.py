"""API factory entrypoint wiring default adapters to the FastAPI app."""

from __future__ import annotations

from fastapi import FastAPI

from bible_study_engine.apps.api.app import create_app as _create_app
from bible_study_engine.bootstrap import build_default_service_container


def create_app() -> FastAPI:
    """Return the FastAPI app backed by the production service container."""
    return _create_app(build_default_service_container())


__all__ = ["create_app"]
