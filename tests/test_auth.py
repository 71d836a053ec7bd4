"""
Unit tests for epo_ops/core/auth.py

Token exchange, caching, refresh buffer, invalidation and the httpx auth
flow, all against an in-process mock transport.
"""
import asyncio
import base64
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from epo_ops.core.api_errors import AuthenticationError
from epo_ops.core.auth import (
    TOKEN_REFRESH_BUFFER,
    OPSAuth,
    TokenCache,
    TokenParseError,
)
from fakes import TEST_AUTH_URL, TEST_BASE_URL, FakeOPS


class FakeClock:
    """Controllable clock for expiry tests."""

    def __init__(self):
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_cache(fake: FakeOPS, clock=None) -> TokenCache:
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    return TokenCache(
        consumer_key="my-key",
        consumer_secret="my-secret",
        auth_url=TEST_AUTH_URL,
        transport=fake.transport(),
        **kwargs,
    )


class TestTokenExchange:
    """Credential exchange with the token endpoint."""

    @pytest.mark.asyncio
    async def test_request_format(self):
        fake = FakeOPS()
        cache = make_cache(fake)

        token = await cache.get_token()
        await cache.close()

        assert token == "token-1"
        request = fake.auth_requests[0]
        assert request.method == "POST"
        assert str(request.url) == TEST_AUTH_URL
        expected = base64.b64encode(b"my-key:my-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert request.content == b"grant_type=client_credentials"

    @pytest.mark.asyncio
    async def test_expiry_from_string_expires_in(self):
        fake = FakeOPS(expires_in="1199")
        clock = FakeClock()
        cache = make_cache(fake, clock)

        await cache.get_token()
        await cache.close()

        assert cache.token.expires_at == clock.now + timedelta(seconds=1199)

    @pytest.mark.asyncio
    async def test_non_200_raises_authentication_error(self):
        fake = FakeOPS()
        fake.auth_status = 401
        cache = make_cache(fake)

        with pytest.raises(AuthenticationError) as exc_info:
            await cache.get_token()
        await cache.close()

        assert exc_info.value.status_code == 401
        assert "invalid client credentials" in exc_info.value.message
        assert cache.token is None

    @pytest.mark.asyncio
    async def test_empty_access_token(self):
        fake = FakeOPS()
        fake.auth_body = {"access_token": "", "expires_in": "1200"}
        cache = make_cache(fake)

        with pytest.raises(AuthenticationError, match="empty access token"):
            await cache.get_token()
        await cache.close()

    @pytest.mark.asyncio
    async def test_malformed_expires_in(self):
        fake = FakeOPS(expires_in="twenty minutes")
        cache = make_cache(fake)

        with pytest.raises(TokenParseError) as exc_info:
            await cache.get_token()
        await cache.close()

        assert isinstance(exc_info.value, ValueError)
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert cache.token is None

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        fake = FakeOPS()
        fake.auth_body = b"{not json"
        cache = make_cache(fake)

        with pytest.raises(TokenParseError):
            await cache.get_token()
        await cache.close()


class TestTokenCaching:
    """Caching, refresh buffer and invalidation."""

    @pytest.mark.asyncio
    async def test_cached_token_reused(self):
        fake = FakeOPS()
        cache = make_cache(fake)

        first = await cache.get_token()
        second = await cache.get_token()
        await cache.close()

        assert first == second
        assert fake.auth_calls == 1

    @pytest.mark.asyncio
    async def test_refresh_inside_buffer(self):
        """A token with less than 5 minutes left is replaced."""
        fake = FakeOPS(expires_in="1200")
        clock = FakeClock()
        cache = make_cache(fake, clock)

        assert await cache.get_token() == "token-1"
        clock.advance(seconds=1200)
        clock.now -= TOKEN_REFRESH_BUFFER
        assert await cache.get_token() == "token-2"
        await cache.close()

        assert fake.auth_calls == 2

    @pytest.mark.asyncio
    async def test_no_refresh_outside_buffer(self):
        fake = FakeOPS(expires_in="1200")
        clock = FakeClock()
        cache = make_cache(fake, clock)

        await cache.get_token()
        clock.advance(seconds=1200 - 301)
        assert await cache.get_token() == "token-1"
        await cache.close()

        assert fake.auth_calls == 1

    @pytest.mark.asyncio
    async def test_short_lived_token_never_cached(self):
        """expires_in below the buffer means every call refreshes."""
        fake = FakeOPS(expires_in="60")
        cache = make_cache(fake)

        await cache.get_token()
        await cache.get_token()
        await cache.close()

        assert fake.auth_calls == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self):
        fake = FakeOPS()
        cache = make_cache(fake)

        await cache.get_token()
        cache.invalidate()
        assert cache.token is None
        assert await cache.get_token() == "token-2"
        await cache.close()

        assert fake.auth_calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self):
        fake = FakeOPS()
        cache = make_cache(fake)

        tokens = await asyncio.gather(*[cache.get_token() for _ in range(10)])
        await cache.close()

        assert set(tokens) == {"token-1"}
        assert fake.auth_calls == 1


class TestOPSAuth:
    """The httpx auth flow."""

    @pytest.mark.asyncio
    async def test_sets_bearer_and_accept(self):
        fake = FakeOPS()
        cache = make_cache(fake)
        transport = fake.transport()

        async with httpx.AsyncClient(auth=OPSAuth(cache), transport=transport) as client:
            await client.get(
                f"{TEST_BASE_URL}/published-data/publication/docdb/EP.1000000.B1/biblio"
            )
        await cache.close()

        request = fake.data_requests[0]
        assert request.headers["Authorization"] == "Bearer token-1"
        assert request.headers["Accept"] == "application/exchange+xml"

    @pytest.mark.asyncio
    async def test_unknown_path_keeps_accept(self):
        fake = FakeOPS()
        cache = make_cache(fake)

        async with httpx.AsyncClient(auth=OPSAuth(cache), transport=fake.transport()) as client:
            await client.get(
                f"{TEST_BASE_URL}/number-service/publication/original/JP.2000-177507.A/docdb",
                headers={"Accept": "application/json"},
            )
        await cache.close()

        assert fake.data_requests[0].headers["Accept"] == "application/json"
