from __future__ import annotations

import jwt

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.ports.auth import principal_from_claims


class HS256Verifier:
    """Verify JWTs signed by the marketplace login with a shared secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        *,
        audience: str | None = None,
        issuer: str | None = None,
        leeway: int = 0,
    ) -> None:
        if not secret:
            raise ValueError("JWT_SECRET must be set when JWT_VERIFY_MODE=hs256")
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience
        self._issuer = issuer
        self._leeway = leeway

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            audience=self._audience,
            issuer=self._issuer,
            leeway=self._leeway,
        )
        return principal_from_claims(payload)
