"""Welcome and liveness routes."""

from typing import Any

from fastapi import APIRouter, Depends

from ..dependencies import ServicesDep, require_healthcheck_token

router = APIRouter(tags=["health"])

WIRED_COMPONENTS = ("llm", "content_client", "note_store", "conversation_store", "speech")


@router.get("/")
def read_root() -> dict[str, str]:
    """Point visitors at the generated docs."""
    return {"message": "Bible study engine. Refer to /docs for available endpoints."}


@router.get("/alive", dependencies=[Depends(require_healthcheck_token)])
async def alive_check(services: ServicesDep) -> dict[str, Any]:
    """Liveness check; also reports which adapters the container was built with."""
    components = {name: getattr(services, name) is not None for name in WIRED_COMPONENTS}
    return {"status": "ok", "components": components}


__all__ = ["router"]
