"""FastAPI dependency injection helpers."""
from __future__ import annotations

import logging
from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.ports.auth import TokenVerifier
from marketplace_chat.application.ports.notifier import Notifier
from marketplace_chat.application.uow import UnitOfWork
from marketplace_chat.config import settings
from marketplace_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from marketplace_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from marketplace_chat.infrastructure.ws.manager import ConnectionManager
from marketplace_chat.services.conversation_service import OnlineCheck

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_uow(request: Request) -> AsyncIterator[UnitOfWork]:
    async with request.app.state.uow_factory() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    claims = {
        "audience": settings.JWT_AUDIENCE,
        "issuer": settings.JWT_ISSUER,
        "leeway": settings.JWT_LEEWAY_SECONDS,
    }
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL, **claims)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM, **claims)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_verifier)],
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token is required",
        )
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        logger.debug("REST auth failed", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_manager(request: Request) -> ConnectionManager:
    return request.app.state.manager


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_online_check(
    manager: Annotated[ConnectionManager, Depends(get_manager)],
) -> OnlineCheck:
    return manager.presence.is_online


NotifierDep = Annotated[Notifier, Depends(get_notifier)]
OnlineCheckDep = Annotated[OnlineCheck, Depends(get_online_check)]
