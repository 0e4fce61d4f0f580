"""FastAPI application for the study engine."""
