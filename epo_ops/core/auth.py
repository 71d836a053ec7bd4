"""
OAuth2 client-credentials authentication for OPS.

TokenCache owns the access token: it exchanges the consumer key/secret for
a bearer token, caches it, and refreshes it 5 minutes before expiry.
OPSAuth plugs the cache into httpx so every outgoing request carries the
current token and the Accept header its endpoint family requires.
"""
import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Optional

import httpx

from epo_ops.core.api_errors import AuthenticationError
from epo_ops.metadata import accept_header_for_path

logger = logging.getLogger(__name__)

# Refresh the token when less than this remains before expiry
TOKEN_REFRESH_BUFFER = timedelta(minutes=5)

DEFAULT_AUTH_TIMEOUT = 30.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenParseError(ValueError):
    """The token endpoint returned 200 with a body that could not be parsed."""


@dataclass(frozen=True)
class Token:
    """Bearer token and its absolute expiry."""

    value: str
    expires_at: datetime


class TokenCache:
    """
    Caches the OPS access token and refreshes it on demand.

    Reads are lock-free; at most one refresh runs at a time and callers
    waiting on it reuse its result.
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        auth_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_AUTH_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.auth_url = auth_url
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._client = http_client
        self._owns_client = http_client is None
        self._token: Optional[Token] = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> Optional[Token]:
        return self._token

    def _is_fresh(self, token: Optional[Token]) -> bool:
        return token is not None and self._clock() + TOKEN_REFRESH_BUFFER < token.expires_at

    async def get_token(self) -> str:
        """
        Return a valid access token, refreshing it if necessary.

        Raises:
            AuthenticationError: Token endpoint rejected the credentials
            TokenParseError: Token endpoint returned an unparseable body
        """
        token = self._token
        if self._is_fresh(token):
            return token.value

        async with self._lock:
            # Another task may have refreshed while we waited
            token = self._token
            if self._is_fresh(token):
                return token.value

            token = await self._request_token()
            self._token = token
            return token.value

    def invalidate(self) -> None:
        """Drop the cached token so the next get_token() fetches a new one."""
        self._token = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def _request_token(self) -> Token:
        credentials = f"{self.consumer_key}:{self.consumer_secret}".encode("utf-8")
        headers = {
            "Authorization": "Basic " + base64.b64encode(credentials).decode("ascii"),
            "Content-Type": "application/x-www-form-urlencoded",
        }

        client = self._get_client()
        response = await client.post(
            self.auth_url,
            content=b"grant_type=client_credentials",
            headers=headers,
        )

        if response.status_code != 200:
            raise AuthenticationError(
                message=(
                    f"token request failed with status {response.status_code}: "
                    f"{response.text}"
                ),
                status_code=response.status_code,
                response_data={"body": response.text},
            )

        try:
            payload = json.loads(response.content)
        except ValueError as e:
            raise TokenParseError(f"failed to parse token response: {e}") from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise AuthenticationError(
                message="received empty access token",
                status_code=None,
            )

        # expires_in is returned as a string by OPS
        try:
            expires_in = int(str(payload.get("expires_in")).strip())
        except ValueError as e:
            raise TokenParseError(
                f"failed to parse expires_in: {payload.get('expires_in')!r}"
            ) from e

        logger.info(f"Obtained OPS access token (expires in {expires_in}s)")
        return Token(value=access_token, expires_at=self._clock() + timedelta(seconds=expires_in))

    async def close(self) -> None:
        """Close the token HTTP client if this cache created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class OPSAuth(httpx.Auth):
    """
    httpx auth flow that attaches the bearer token and endpoint Accept header.

    The token is fetched per request, so a request rebuilt after
    TokenCache.invalidate() carries a fresh token.
    """

    def __init__(self, token_cache: TokenCache):
        self.token_cache = token_cache

    def sync_auth_flow(self, request):
        raise RuntimeError("OPSAuth only supports httpx.AsyncClient")

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        token = await self.token_cache.get_token()
        request.headers["Authorization"] = f"Bearer {token}"

        accept = accept_header_for_path(request.url.path)
        if accept:
            request.headers["Accept"] = accept

        yield request
