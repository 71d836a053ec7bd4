"""
Base HTTP client with unified retry logic, token handling, and error classification.

Every OPS call goes through BaseAPIClient.execute():
- the bearer token is attached by OPSAuth on each attempt
- a 401 triggers one token refresh and an immediate resend per call
- transient failures (408/5xx, network errors) are retried with exponential backoff
- quota headers are recorded from every response
- non-200 responses are classified into the APIError hierarchy
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from epo_ops.core.api_errors import (
    APIError,
    ConfigurationError,
    DeadlineExceededError,
    TransportError,
    classify_error_response,
)
from epo_ops.core.auth import OPSAuth, TokenCache
from epo_ops.core.config import DEFAULT_AUTH_URL, DEFAULT_BASE_URL
from epo_ops.core.quota import QuotaSnapshot, QuotaTracker, parse_quota_headers
from epo_ops.core.retry import RetryPolicy, is_retryable_error

logger = logging.getLogger(__name__)

RequestBuilder = Callable[[], httpx.Request]


class BaseAPIClient:
    """
    Base class for the OPS client.

    Provides unified:
    - OAuth2 token lifecycle (TokenCache + OPSAuth)
    - HTTP request execution with retry and backoff
    - Single-flight 401 recovery
    - Standardized error classification
    - Quota tracking
    - Connection pooling

    Subclasses implement endpoint methods that call get_text()/post_text()/
    get_binary() or execute() directly.
    """

    SOURCE_NAME: str = "epo_ops"

    # Default settings
    DEFAULT_TIMEOUT: float = 30.0
    DEFAULT_CONNECT_TIMEOUT: float = 10.0
    DEFAULT_MAX_RETRIES: int = 3
    DEFAULT_RETRY_DELAY: float = 1.0
    DEFAULT_BACKOFF_FACTOR: float = 2.0
    DEFAULT_MAX_BACKOFF: float = 60.0
    DEFAULT_MAX_CONNECTIONS: int = 10
    DEFAULT_MAX_KEEPALIVE: int = 5

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        auth_url: str = DEFAULT_AUTH_URL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_cache: Optional[TokenCache] = None,
    ):
        """
        Initialize the API client.

        Args:
            consumer_key: OPS consumer key
            consumer_secret: OPS consumer secret
            base_url: Base URL of the OPS REST services
            auth_url: OAuth2 token endpoint
            max_retries: Retries after the first attempt
            retry_delay: Base backoff delay in seconds (0 disables sleeping)
            backoff_factor: Exponential backoff multiplier
            max_backoff: Upper bound on a single backoff delay
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional httpx transport shared by API and token requests
            token_cache: Optional pre-built token cache
        """
        if not consumer_key:
            raise ConfigurationError("consumer key is required", missing_config="consumer_key")
        if not consumer_secret:
            raise ConfigurationError(
                "consumer secret is required", missing_config="consumer_secret"
            )

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.retry_policy = RetryPolicy(
            max_retries=max_retries,
            base_delay=retry_delay,
            backoff_factor=backoff_factor,
            max_backoff=max_backoff,
        )
        self._transport = transport

        if token_cache is None:
            token_cache = TokenCache(
                consumer_key=consumer_key,
                consumer_secret=consumer_secret,
                auth_url=auth_url,
                timeout=timeout,
                transport=transport,
            )
            self._owns_token_cache = True
        else:
            self._owns_token_cache = False
        self.token_cache = token_cache
        self.quota_tracker = QuotaTracker()

        # HTTP client (lazy initialization)
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            f"Initialized {self.SOURCE_NAME} client: "
            f"base_url={self.base_url}, "
            f"max_retries={max_retries}, "
            f"timeout={timeout}"
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=OPSAuth(self.token_cache),
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                follow_redirects=True,
                limits=httpx.Limits(
                    max_connections=self.DEFAULT_MAX_CONNECTIONS,
                    max_keepalive_connections=self.DEFAULT_MAX_KEEPALIVE,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP clients and release resources."""
        if self._client:
            await self._client.aclose()
            self._client = None
        if self._owns_token_cache:
            await self.token_cache.close()
        logger.debug(f"{self.SOURCE_NAME} client closed")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit - ensures cleanup."""
        await self.close()

    def get_last_quota(self) -> Optional[QuotaSnapshot]:
        """Quota reported by the most recent response, or None if none yet."""
        return self.quota_tracker.get()

    def _record_quota(self, response: httpx.Response) -> None:
        self.quota_tracker.update(parse_quota_headers(response.headers))

    def _build_url(self, url: str) -> str:
        # Prepend base_url if url is a path
        if url.startswith("http"):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def request_builder(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        content: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> RequestBuilder:
        """
        Return a zero-argument callable that builds a fresh request.

        The request is rebuilt for every attempt so the auth flow runs again
        with the current token.
        """
        full_url = self._build_url(url)

        def build() -> httpx.Request:
            return self._get_client().build_request(
                method,
                full_url,
                params=params,
                content=content,
                headers=headers,
            )

        return build

    async def execute(
        self,
        build_request: RequestBuilder,
        *,
        deadline: Optional[float] = None,
        resource_id: str = "request",
    ) -> bytes:
        """
        Execute a request with retries and return the response body.

        Args:
            build_request: Zero-argument callable returning an httpx.Request
            deadline: Optional time budget in seconds for the whole call,
                including token refresh, retries and backoff sleeps
            resource_id: Identifier for logging

        Returns:
            Raw body of the 200 response

        Raises:
            APIError: Classified upstream error, TransportError after exhausted
                network retries, or DeadlineExceededError
        """
        if deadline is None:
            return await self._execute(build_request, resource_id)

        try:
            return await asyncio.wait_for(
                self._execute(build_request, resource_id), timeout=deadline
            )
        except asyncio.TimeoutError:
            raise DeadlineExceededError(
                f"Deadline of {deadline}s exceeded for {resource_id}"
            ) from None

    async def _execute(self, build_request: RequestBuilder, resource_id: str) -> bytes:
        client = self._get_client()
        policy = self.retry_policy

        # Scoped to this call: concurrent calls each get one recovery
        recovered = False

        async def send() -> httpx.Response:
            nonlocal recovered
            response = await client.send(build_request())
            if response.status_code == 401 and not recovered:
                recovered = True
                self._record_quota(response)
                await response.aclose()
                logger.warning(
                    f"[{self.SOURCE_NAME}] 401 for {resource_id}, refreshing token and retrying"
                )
                self.token_cache.invalidate()
                response = await client.send(build_request())
            return response

        last_error: Optional[Exception] = None

        for attempt in range(policy.max_attempts):
            logger.debug(
                f"[{self.SOURCE_NAME}] {resource_id} "
                f"(attempt {attempt + 1}/{policy.max_attempts})"
            )

            try:
                response = await send()
            except Exception as e:
                if not is_retryable_error(e):
                    raise
                last_error = e
                if policy.should_retry(attempt, error=e):
                    delay = policy.backoff_delay(attempt)
                    logger.warning(
                        f"[{self.SOURCE_NAME}] Request error for {resource_id} "
                        f"(attempt {attempt + 1}): {e!r}, retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                break

            self._record_quota(response)

            if policy.should_retry(attempt, status_code=response.status_code):
                await response.aclose()
                delay = policy.backoff_delay(attempt)
                logger.warning(
                    f"[{self.SOURCE_NAME}] HTTP {response.status_code} for {resource_id} "
                    f"(attempt {attempt + 1}), retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
                continue

            return self._handle_response(response, resource_id)

        # All retries exhausted on exceptions
        if isinstance(last_error, APIError):
            raise last_error
        raise TransportError(
            message=(
                f"Request for {resource_id} failed after "
                f"{policy.max_attempts} attempts: {last_error!r}"
            ),
        ) from last_error

    def _handle_response(self, response: httpx.Response, resource_id: str) -> bytes:
        body = response.content
        if response.status_code == 200:
            logger.debug(f"[{self.SOURCE_NAME}] Successfully fetched {resource_id}")
            return body

        raise classify_error_response(
            response.status_code,
            body,
            retry_after=response.headers.get("Retry-After"),
        )

    async def execute_text(
        self,
        build_request: RequestBuilder,
        *,
        deadline: Optional[float] = None,
        resource_id: str = "request",
    ) -> str:
        """
        Execute a request and decode the body as UTF-8 text (XML/JSON).

        Raises:
            UnicodeDecodeError: If the body is not valid UTF-8
        """
        body = await self.execute(build_request, deadline=deadline, resource_id=resource_id)
        return body.decode("utf-8")

    async def execute_binary(
        self,
        build_request: RequestBuilder,
        *,
        deadline: Optional[float] = None,
        resource_id: str = "request",
    ) -> bytes:
        """Execute a request and return the raw body (images)."""
        return await self.execute(build_request, deadline=deadline, resource_id=resource_id)

    async def get_text(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Make GET request and return the body as text.

        Args:
            url: URL or path relative to base_url
            params: Query parameters
            deadline: Optional time budget in seconds

        Returns:
            Response body
        """
        return await self.execute_text(
            self.request_builder("GET", url, params=params),
            deadline=deadline,
            resource_id=url,
        )

    async def post_text(
        self,
        url: str,
        body: str,
        params: Optional[Dict[str, Any]] = None,
        deadline: Optional[float] = None,
    ) -> str:
        """
        Make POST request with a plain-text body and return the body as text.

        Args:
            url: URL or path relative to base_url
            body: Request body (newline-separated identifiers for bulk calls)
            params: Query parameters
            deadline: Optional time budget in seconds

        Returns:
            Response body
        """
        return await self.execute_text(
            self.request_builder(
                "POST",
                url,
                params=params,
                content=body,
                headers={"Content-Type": "text/plain"},
            ),
            deadline=deadline,
            resource_id=url,
        )

    async def get_binary(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        deadline: Optional[float] = None,
    ) -> bytes:
        """Make GET request and return the raw body."""
        return await self.execute_binary(
            self.request_builder("GET", url, params=params),
            deadline=deadline,
            resource_id=url,
        )

    async def post_binary(
        self,
        url: str,
        body: str,
        params: Optional[Dict[str, Any]] = None,
        deadline: Optional[float] = None,
    ) -> bytes:
        """Make POST request with a plain-text body and return the raw body."""
        return await self.execute_binary(
            self.request_builder(
                "POST",
                url,
                params=params,
                content=body,
                headers={"Content-Type": "text/plain"},
            ),
            deadline=deadline,
            resource_id=url,
        )
