"""Intent and navigation labels used by the orchestration pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Intent(str, Enum):
    """Labels the classifier may assign to a non-reference message."""

    LOCATE = "locate"
    UNDERSTAND = "understand"
    NOTE = "note"
    READ = "read"


class NavigationHint(str, Enum):
    """Which panel the client should focus after a response."""

    SCRIPTURE = "scripture"
    RESOURCES = "resources"
    SEARCH = "search"
    NOTES = "notes"


class IntentClassification(BaseModel):
    """Outcome of classifying one user message."""

    is_reference: bool
    intent: Optional[Intent] = None


__all__ = ["Intent", "NavigationHint", "IntentClassification"]
