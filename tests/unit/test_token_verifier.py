from __future__ import annotations

import time

import jwt
import pytest

from marketplace_chat.infrastructure.auth.hs256_verifier import HS256Verifier

SECRET = "unit-test-secret-with-at-least-32-bytes"


def _token(**claims) -> str:
    payload = {"exp": int(time.time()) + 60, **claims}
    return jwt.encode(payload, SECRET, algorithm="HS256")


@pytest.mark.asyncio
async def test_reads_user_id_from_login_claim():
    verifier = HS256Verifier(SECRET)

    principal = await verifier.verify(_token(userId=7, email="a@campus.edu"))

    assert principal.user_id == 7
    assert principal.email == "a@campus.edu"


@pytest.mark.asyncio
async def test_falls_back_to_subject():
    verifier = HS256Verifier(SECRET)

    principal = await verifier.verify(_token(sub="12"))

    assert principal.user_id == 12


@pytest.mark.asyncio
async def test_token_without_user_id_is_rejected():
    verifier = HS256Verifier(SECRET)

    with pytest.raises(ValueError):
        await verifier.verify(_token(email="a@campus.edu"))


@pytest.mark.asyncio
async def test_wrong_audience_is_rejected():
    verifier = HS256Verifier(SECRET, audience="marketplace-chat")

    with pytest.raises(jwt.InvalidAudienceError):
        await verifier.verify(_token(userId=1, aud="other-service"))


@pytest.mark.asyncio
async def test_issuer_is_checked_when_configured():
    verifier = HS256Verifier(SECRET, issuer="marketplace-auth")

    assert (await verifier.verify(_token(userId=1, iss="marketplace-auth"))).user_id == 1
    with pytest.raises(jwt.InvalidIssuerError):
        await verifier.verify(_token(userId=1, iss="someone-else"))


@pytest.mark.asyncio
async def test_leeway_tolerates_small_clock_skew():
    expired = jwt.encode(
        {"userId": 1, "exp": int(time.time()) - 5}, SECRET, algorithm="HS256"
    )

    with pytest.raises(jwt.ExpiredSignatureError):
        await HS256Verifier(SECRET).verify(expired)
    assert (await HS256Verifier(SECRET, leeway=30).verify(expired)).user_id == 1


def test_empty_secret_is_a_configuration_error():
    with pytest.raises(ValueError):
        HS256Verifier("")
