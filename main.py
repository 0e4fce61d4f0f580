"""Top-level ASGI entrypoint: ``uvicorn main:app``."""

from bible_study_engine.api_factory import create_app

app = create_app()


__all__ = ["app", "create_app"]
