"""Router namespace exports for FastAPI include hooks."""

from . import agents, chat, content, conversations, health, voice

__all__ = ["agents", "chat", "content", "conversations", "health", "voice"]
