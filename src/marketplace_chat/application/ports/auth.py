from __future__ import annotations

from typing import Any, Protocol

from marketplace_chat.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal: ...


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a principal from decoded claims.

    Tokens minted by the marketplace login carry ``userId``; standard issuers use ``sub``.
    """
    raw = payload.get("userId", payload.get("sub"))
    if raw is None:
        raise ValueError("Token has no user id")
    return Principal(user_id=int(raw), email=payload.get("email"))
