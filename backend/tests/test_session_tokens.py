"""Tests for session token issue, verification, rotation and revocation."""

from datetime import timedelta
from unittest.mock import AsyncMock

import jwt
import pytest
from fastapi import Response
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.config import settings
from app.services.errors import InvalidOrExpiredTokenError, TokenStoreUnavailableError
from app.services.session_tokens import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    RevocationResult,
    SessionTokenService,
)
from app.services.token_denylist import InMemoryTokenDenylist

USER_ID = "5b0c2d4e-8f61-4c2a-9a55-3c1f0e7d9b21"


@pytest.fixture
def service(denylist, clock) -> SessionTokenService:
    return SessionTokenService(settings, denylist, clock=clock)


def set_cookie_headers(response: Response) -> dict[str, str]:
    """Set-Cookie header values keyed by cookie name."""
    headers = {}
    for name, value in response.raw_headers:
        if name == b"set-cookie":
            decoded = value.decode()
            headers[decoded.split("=", 1)[0]] = decoded
    return headers


class TestIssue:
    def test_pair_uses_distinct_secrets(self, service):
        pair = service.issue_token_pair(USER_ID)

        access = jwt.decode(pair.access_token, settings.jwt_secret_key, algorithms=["HS256"],
                            options={"verify_exp": False})
        refresh = jwt.decode(pair.refresh_token, settings.jwt_refresh_secret_key,
                             algorithms=["HS256"], options={"verify_exp": False})
        assert access["sub"] == access["id"] == USER_ID
        assert access["type"] == "access"
        assert refresh["sub"] == USER_ID
        assert refresh["type"] == "refresh"

        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(pair.refresh_token, settings.jwt_secret_key, algorithms=["HS256"],
                       options={"verify_exp": False})

    def test_lifetimes_follow_settings(self, service, clock):
        pair = service.issue_token_pair(USER_ID)

        assert pair.access_expires_at == clock() + timedelta(minutes=15)
        assert pair.refresh_expires_at == clock() + timedelta(days=7)

    def test_tokens_issued_together_are_unique(self, service):
        first = service.issue_token_pair(USER_ID)
        second = service.issue_token_pair(USER_ID)

        assert first.access_token != second.access_token
        assert first.refresh_token != second.refresh_token


class TestCookies:
    def test_attach_sets_both_cookies(self, service):
        response = Response()
        service.attach_to_response(response, service.issue_token_pair(USER_ID))

        cookies = set_cookie_headers(response)
        assert set(cookies) == {ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE}
        for header in cookies.values():
            assert "HttpOnly" in header
            assert "SameSite=lax" in header
            assert "Path=/" in header
        assert "Max-Age=900" in cookies[ACCESS_TOKEN_COOKIE]
        assert f"Max-Age={7 * 86400}" in cookies[REFRESH_TOKEN_COOKIE]

    def test_secure_flag_follows_settings(self, denylist, clock):
        secure = settings.model_copy(update={"cookie_secure": True, "cookie_domain": "crew.example"})
        service = SessionTokenService(secure, denylist, clock=clock)
        response = Response()
        service.attach_to_response(response, service.issue_token_pair(USER_ID))

        for header in set_cookie_headers(response).values():
            assert "Secure" in header
            assert "Domain=crew.example" in header


class TestVerify:
    def test_access_round_trip(self, service):
        token, _ = service.issue_access_token(USER_ID)
        assert service.verify_access_token(token) == USER_ID

    def test_refresh_round_trip(self, service):
        token, _ = service.issue_refresh_token(USER_ID)
        assert service.verify_refresh_token(token) == USER_ID

    def test_access_token_rejected_as_refresh(self, service):
        token, _ = service.issue_access_token(USER_ID)
        with pytest.raises(InvalidOrExpiredTokenError):
            service.verify_refresh_token(token)

    def test_refresh_token_rejected_as_access(self, service):
        token, _ = service.issue_refresh_token(USER_ID)
        with pytest.raises(InvalidOrExpiredTokenError):
            service.verify_access_token(token)

    def test_garbage_rejected(self, service):
        with pytest.raises(InvalidOrExpiredTokenError):
            service.verify_refresh_token("not-a-token")

    def test_wrong_type_claim_with_right_secret_rejected(self, service):
        token = jwt.encode(
            {"sub": USER_ID, "type": "access", "exp": 4102444800},
            settings.jwt_refresh_secret_key,
            algorithm="HS256",
        )
        with pytest.raises(InvalidOrExpiredTokenError):
            service.verify_refresh_token(token)

    def test_expired_rejected(self, denylist, clock):
        issuer = SessionTokenService(settings, denylist, clock=clock)
        clock.advance(days=-8)
        token, _ = issuer.issue_refresh_token(USER_ID)

        with pytest.raises(InvalidOrExpiredTokenError):
            issuer.verify_refresh_token(token)


class TestRotate:
    @pytest.mark.asyncio
    async def test_rotation_issues_access_only(self, service):
        pair = service.issue_token_pair(USER_ID)
        response = Response()

        access_token = await service.rotate_access_token(pair.refresh_token, response)

        assert service.verify_access_token(access_token) == USER_ID
        assert set(set_cookie_headers(response)) == {ACCESS_TOKEN_COOKIE}

    @pytest.mark.asyncio
    async def test_missing_refresh_token(self, service):
        response = Response()
        with pytest.raises(InvalidOrExpiredTokenError):
            await service.rotate_access_token(None, response)
        assert set_cookie_headers(response) == {}

    @pytest.mark.asyncio
    async def test_expired_refresh_issues_nothing(self, denylist, clock):
        service = SessionTokenService(settings, denylist, clock=clock)
        clock.advance(days=-8)
        refresh_token, _ = service.issue_refresh_token(USER_ID)
        response = Response()

        with pytest.raises(InvalidOrExpiredTokenError):
            await service.rotate_access_token(refresh_token, response)
        assert set_cookie_headers(response) == {}

    @pytest.mark.asyncio
    async def test_revoked_refresh_rejected(self, service, denylist):
        refresh_token, _ = service.issue_refresh_token(USER_ID)
        await denylist.add(refresh_token, 60)

        with pytest.raises(InvalidOrExpiredTokenError):
            await service.rotate_access_token(refresh_token, Response())

    @pytest.mark.asyncio
    async def test_store_outage_issues_nothing(self, clock):
        denylist = AsyncMock()
        denylist.contains.side_effect = RedisConnectionError("connection refused")
        service = SessionTokenService(settings, denylist, clock=clock)
        refresh_token, _ = service.issue_refresh_token(USER_ID)
        response = Response()

        with pytest.raises(TokenStoreUnavailableError):
            await service.rotate_access_token(refresh_token, response)
        assert set_cookie_headers(response) == {}


class TestRevoke:
    @pytest.mark.asyncio
    async def test_revoke_denylists_both_and_clears_cookies(self, service, denylist):
        pair = service.issue_token_pair(USER_ID)
        response = Response()

        result = await service.revoke(
            response, access_token=pair.access_token, refresh_token=pair.refresh_token
        )

        assert result is RevocationResult.FULLY_REVOKED
        assert await service.is_revoked(pair.access_token)
        assert await service.is_revoked(pair.refresh_token)
        cookies = set_cookie_headers(response)
        assert set(cookies) == {ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE}
        for header in cookies.values():
            assert "Max-Age=0" in header

    @pytest.mark.asyncio
    async def test_denylist_ttl_is_remaining_lifetime(self, clock):
        denylist = AsyncMock()
        service = SessionTokenService(settings, denylist, clock=clock)
        pair = service.issue_token_pair(USER_ID)

        clock.advance(minutes=5)
        await service.revoke(Response(), access_token=pair.access_token)

        denylist.add.assert_awaited_once_with(pair.access_token, 600)

    @pytest.mark.asyncio
    async def test_denylist_entry_expires_with_token(self, clock):
        now = [clock().timestamp()]
        denylist = InMemoryTokenDenylist(clock=lambda: now[0])
        service = SessionTokenService(settings, denylist, clock=clock)
        pair = service.issue_token_pair(USER_ID)

        await service.revoke(Response(), access_token=pair.access_token)
        assert await denylist.contains(pair.access_token)

        now[0] += 15 * 60
        assert not await denylist.contains(pair.access_token)

    @pytest.mark.asyncio
    async def test_expired_token_is_not_stored(self, clock):
        denylist = AsyncMock()
        service = SessionTokenService(settings, denylist, clock=clock)
        pair = service.issue_token_pair(USER_ID)

        clock.advance(minutes=20)
        result = await service.revoke(Response(), access_token=pair.access_token)

        assert result is RevocationResult.FULLY_REVOKED
        denylist.add.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_undecodable_token_is_partial(self, service):
        response = Response()

        result = await service.revoke(response, access_token="garbage")

        assert result is RevocationResult.PARTIALLY_REVOKED
        assert set(set_cookie_headers(response)) == {ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exp", ["soon", ["1"], {"at": 1}, True])
    async def test_non_numeric_exp_is_partial(self, service, exp):
        forged = jwt.encode({"sub": USER_ID, "exp": exp}, "k" * 40, algorithm="HS256")
        response = Response()

        result = await service.revoke(response, refresh_token=forged)

        assert result is RevocationResult.PARTIALLY_REVOKED
        assert set(set_cookie_headers(response)) == {ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE}

    @pytest.mark.asyncio
    async def test_far_future_exp_is_capped(self, clock):
        denylist = AsyncMock()
        service = SessionTokenService(settings, denylist, clock=clock)
        exp = int((clock() + timedelta(days=365)).timestamp())
        forged = jwt.encode({"sub": USER_ID, "exp": exp}, "k" * 40, algorithm="HS256")

        result = await service.revoke(Response(), refresh_token=forged)

        assert result is RevocationResult.FULLY_REVOKED
        denylist.add.assert_awaited_once_with(forged, 7 * 86400)

    @pytest.mark.asyncio
    async def test_store_failure_is_partial(self, clock):
        denylist = AsyncMock()
        denylist.add.side_effect = RedisConnectionError("connection refused")
        service = SessionTokenService(settings, denylist, clock=clock)
        pair = service.issue_token_pair(USER_ID)
        response = Response()

        result = await service.revoke(
            response, access_token=pair.access_token, refresh_token=pair.refresh_token
        )

        assert result is RevocationResult.PARTIALLY_REVOKED
        assert denylist.add.await_count == 2
        assert set(set_cookie_headers(response)) == {ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE}

    @pytest.mark.asyncio
    async def test_no_tokens_still_clears_cookies(self, service):
        response = Response()

        result = await service.revoke(response)

        assert result is RevocationResult.FULLY_REVOKED
        assert set(set_cookie_headers(response)) == {ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE}
