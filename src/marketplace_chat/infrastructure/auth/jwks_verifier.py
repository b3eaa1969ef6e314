from __future__ import annotations

import asyncio
import logging

import jwt
from jwt import PyJWKClient

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.ports.auth import principal_from_claims

logger = logging.getLogger(__name__)

ASYMMETRIC_ALGORITHMS = ["RS256", "ES256"]


class JWKSVerifier:
    """Verify JWTs against the signing keys published by an external issuer."""

    def __init__(
        self,
        jwks_url: str,
        *,
        audience: str | None = None,
        issuer: str | None = None,
        leeway: int = 0,
    ) -> None:
        self._jwk_client = PyJWKClient(jwks_url, cache_keys=True)
        self._audience = audience
        self._issuer = issuer
        self._leeway = leeway

    async def verify(self, token: str) -> Principal:
        # PyJWKClient fetches keys with blocking urllib; keep it off the event loop.
        signing_key = await asyncio.to_thread(self._jwk_client.get_signing_key_from_jwt, token)
        payload = jwt.decode(
            token,
            signing_key.key,
            algorithms=ASYMMETRIC_ALGORITHMS,
            audience=self._audience,
            issuer=self._issuer,
            leeway=self._leeway,
        )
        return principal_from_claims(payload)
