"""Per-device request locking.

Chat requests from one device are processed one at a time so a second
message cannot interleave its tool calls and persistence with the first.
Locks for devices that have gone quiet are dropped after a TTL.
"""

from __future__ import annotations

import asyncio
from time import time
from typing import Optional

from bible_study_engine.core.config import config
from bible_study_engine.core.logging import get_logger
from bible_study_engine.services import ServiceContainer

logger = get_logger(__name__)

_device_locks: dict[str, asyncio.Lock] = {}
_device_lock_last_used: dict[str, float] = {}
_registry_lock = asyncio.Lock()

LOCK_TTL_SECONDS = 600
CLEANUP_INTERVAL_SECONDS = 300


async def get_device_lock(device_id: str) -> asyncio.Lock:
    """Return the lock serializing requests from ``device_id``."""
    async with _registry_lock:
        lock = _device_locks.get(device_id)
        if lock is None:
            lock = _device_locks[device_id] = asyncio.Lock()
        _device_lock_last_used[device_id] = time()
        return lock


async def cleanup_stale_locks() -> int:
    """Drop unheld locks idle for longer than the TTL; returns how many."""
    async with _registry_lock:
        cutoff = time() - LOCK_TTL_SECONDS
        stale = [
            device
            for device, last in _device_lock_last_used.items()
            if last < cutoff and not _device_locks[device].locked()
        ]
        for device in stale:
            del _device_locks[device]
            del _device_lock_last_used[device]
        return len(stale)


async def cleanup_idle_state(services: Optional[ServiceContainer] = None) -> None:
    """One sweep over stale device locks and idle replay engines."""
    removed = await cleanup_stale_locks()
    if removed:
        logger.info("Cleaned up %d stale device locks", removed)
    if services is not None:
        evicted = await services.evict_idle_replay_engines(config.REPLAY_ENGINE_IDLE_SECONDS)
        if evicted:
            logger.info("Evicted %d idle replay engines", evicted)


async def lock_cleanup_task(services: Optional[ServiceContainer] = None) -> None:
    """Periodically clean up stale locks and replay engines until cancelled on shutdown."""
    while True:
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
        try:
            await cleanup_idle_state(services)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Error during lock cleanup")


def clear_all_locks() -> None:
    """Forget every lock. Only for tests."""
    _device_locks.clear()
    _device_lock_last_used.clear()


__all__ = [
    "CLEANUP_INTERVAL_SECONDS",
    "LOCK_TTL_SECONDS",
    "cleanup_idle_state",
    "cleanup_stale_locks",
    "clear_all_locks",
    "get_device_lock",
    "lock_cleanup_task",
]
