"""Process-wide registry for the active :class:`ServiceContainer`.

``create_app`` registers the container it was given; route dependencies and
background callers resolve it here instead of importing adapters. Tests swap
in a container wired with fakes and clear it afterwards.
"""

from __future__ import annotations

from typing import Optional

from . import ServiceContainer

_active: dict[str, Optional[ServiceContainer]] = {"container": None}


def set_services(container: ServiceContainer) -> None:
    """Make ``container`` the one handlers resolve."""
    _active["container"] = container


def get_services() -> ServiceContainer:
    """Return the active container; raises RuntimeError before startup."""
    container = _active["container"]
    if container is None:
        raise RuntimeError("Service container has not been configured.")
    return container


def clear_services() -> None:
    """Forget the active container."""
    _active["container"] = None


__all__ = ["set_services", "get_services", "clear_services"]
