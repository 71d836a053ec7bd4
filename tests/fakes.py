"""
In-process fake of the OPS token endpoint and REST services.
"""
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx

from epo_ops.client import OPSClient

TEST_BASE_URL = "https://ops.test/3.2/rest-services"
TEST_AUTH_URL = "https://ops.test/3.2/auth/accesstoken"
TEST_DEVELOPERS_URL = "https://ops.test/3.2/developers"

BIBLIO_XML = b'<?xml version="1.0"?><ops:world-patent-data xmlns:ops="http://ops.epo.org"/>'

QUOTA_HEADERS = {
    "X-Throttling-Control": "idle (images=green:200, inpadoc=green:60, search=green:30)",
    "X-IndividualQuota": "used=1200,quota=4000",
    "X-RegisteredQuota": "used=10,quota=100000",
}

Scripted = Union[Tuple[int, bytes, Dict[str, str]], Exception]


class FakeOPS:
    """
    Stand-in for the OPS token endpoint and REST services.

    Data responses are scripted in order with queue()/queue_error(); once
    the script is exhausted every data request gets the default 200.
    Every exchange is recorded so tests can count auth and data calls.
    """

    def __init__(self, expires_in: str = "1200"):
        self.expires_in = expires_in
        self.auth_status = 200
        self.auth_body: Optional[Any] = None
        self.auth_requests: List[httpx.Request] = []
        self.data_requests: List[httpx.Request] = []
        self.events: List[str] = []
        self.default: Tuple[int, bytes, Dict[str, str]] = (200, BIBLIO_XML, {})
        self._script: List[Scripted] = []

    @property
    def auth_calls(self) -> int:
        return len(self.auth_requests)

    def queue(self, status: int, body: bytes = b"", headers: Optional[Dict[str, str]] = None):
        self._script.append((status, body, headers or {}))
        return self

    def queue_error(self, error: Exception):
        self._script.append(error)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/auth/accesstoken"):
            self.auth_requests.append(request)
            self.events.append("auth")
            if self.auth_status != 200:
                return httpx.Response(self.auth_status, text="invalid client credentials")
            body = self.auth_body
            if body is None:
                body = {
                    "access_token": f"token-{self.auth_calls}",
                    "expires_in": self.expires_in,
                    "token_type": "Bearer",
                }
            if isinstance(body, (bytes, str)):
                return httpx.Response(200, content=body)
            return httpx.Response(200, json=body)

        self.data_requests.append(request)
        self.events.append("data")
        item = self._script.pop(0) if self._script else self.default
        if isinstance(item, Exception):
            raise item
        status, body, headers = item
        return httpx.Response(status, content=body, headers=headers)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_client(fake: FakeOPS, **kwargs: Any) -> OPSClient:
    """OPSClient wired to the fake, with zero backoff."""
    options: Dict[str, Any] = {
        "base_url": TEST_BASE_URL,
        "auth_url": TEST_AUTH_URL,
        "developers_url": TEST_DEVELOPERS_URL,
        "retry_delay": 0.0,
        "transport": fake.transport(),
    }
    options.update(kwargs)
    return OPSClient("test-key", "test-secret", **options)
