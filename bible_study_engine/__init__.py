"""Bible study assistant engine: tool orchestration, streaming and replay."""
