"""FastAPI dependencies: bearer/X-API-Token guards and service container access."""

import hmac
from typing import Annotated, Any, Optional

from fastapi import Depends, Header, HTTPException, status

from bible_study_engine.core.config import config
from bible_study_engine.services import ServiceContainer, runtime

AuthorizationHeader = Annotated[Optional[str], Header(alias="Authorization")]
ApiTokenHeader = Annotated[Optional[str], Header(alias="X-API-Token")]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def presented_credential(authorization: Optional[str], x_api_token: Optional[str]) -> Optional[str]:
    """Token from ``Authorization: Bearer`` or, failing that, ``X-API-Token``."""
    scheme, _, value = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    if x_api_token and x_api_token.strip():
        return x_api_token.strip()
    return None


def check_token(expected: Optional[str], authorization: Optional[str], x_api_token: Optional[str]) -> None:
    """Raise 401 unless auth is disabled or the presented token matches ``expected``."""
    if not config.ENABLE_API_AUTH:
        return
    if not expected:
        raise _unauthorized("Token not configured")
    provided = presented_credential(authorization, x_api_token)
    if provided is None:
        raise _unauthorized("Missing credentials")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        raise _unauthorized("Invalid credentials")


async def require_api_token(
    authorization: AuthorizationHeader = None, x_api_token: ApiTokenHeader = None
) -> None:
    """Guard for every non-health route."""
    check_token(config.API_TOKEN, authorization, x_api_token)


async def require_healthcheck_token(
    authorization: AuthorizationHeader = None, x_api_token: ApiTokenHeader = None
) -> None:
    """Guard for the liveness check, which has its own token."""
    check_token(config.HEALTHCHECK_API_TOKEN, authorization, x_api_token)


def get_service_container() -> ServiceContainer:
    """Container registered by ``create_app``; 500 before startup."""
    try:
        return runtime.get_services()
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Service container not configured",
        ) from exc


def require_service(component: Optional[Any], name: str) -> Any:
    """Return ``component`` or fail the request with a 500 naming it."""
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{name} is unavailable",
        )
    return component


ServicesDep = Annotated[ServiceContainer, Depends(get_service_container)]


__all__ = [
    "ServicesDep",
    "check_token",
    "get_service_container",
    "presented_credential",
    "require_api_token",
    "require_healthcheck_token",
    "require_service",
]
