"""
Standardized API error classification system.

Provides a unified error hierarchy for every OPS call. Each error type
indicates whether the operation should be retried and includes context
for debugging.
"""

import logging
from typing import Optional, Dict, Any
from xml.etree import ElementTree as ET

logger = logging.getLogger(__name__)

SOURCE_NAME = "epo_ops"


class APIError(Exception):
    """
    Base exception for all API-related errors.

    Attributes:
        message: Human-readable error description
        source: API source name
        status_code: HTTP status code if applicable
        response_data: Raw response data for debugging
        retryable: Whether this error should trigger a retry
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = SOURCE_NAME,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.status_code = status_code
        self.response_data = response_data
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [self.message]
        if self.source:
            parts.insert(0, f"[{self.source}]")
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source": self.source,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "response_data": self.response_data,
        }


class RetryableError(APIError):
    """
    Transient errors that should trigger a retry.

    Examples:
    - HTTP 408 and 5xx server errors
    - Network timeouts
    - Connection refused/reset errors
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = SOURCE_NAME,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
            retryable=True,
        )


class ServiceUnavailableError(RetryableError):
    """
    Temporary upstream outage (typically HTTP 503).

    Retried up to the configured limit, then surfaced with the status
    code and the Retry-After hint if the server sent one.
    """

    def __init__(
        self,
        message: str = "Service unavailable",
        source: Optional[str] = SOURCE_NAME,
        status_code: Optional[int] = 503,
        retry_after: Optional[str] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
        )
        self.retry_after = retry_after

    def __str__(self) -> str:
        base = super().__str__()
        if self.retry_after:
            return f"{base}, retry after: {self.retry_after}"
        return base


class TransportError(RetryableError):
    """Low-level connection, timeout or truncated-read failure."""


class FatalError(APIError):
    """
    Non-retryable errors that indicate a permanent problem.

    Examples:
    - Invalid consumer credentials (401)
    - Document not found (404)
    - Fair-use quota exceeded (403/429)
    - Invalid request parameters
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = SOURCE_NAME,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
            retryable=False,
        )


class AuthenticationError(FatalError):
    """
    Authentication failed.

    Raised for token endpoint failures and for a 401 that persists after
    the one token refresh attempted per call.
    """

    def __init__(
        self,
        message: str = "Authentication failed - check consumer key and secret",
        source: Optional[str] = SOURCE_NAME,
        status_code: Optional[int] = 401,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
        )


class NotFoundError(FatalError):
    """
    Requested resource not found.

    HTTP 404 or OPS "entity not found" / "invalid reference" codes.
    """

    def __init__(
        self,
        message: str = "Resource not found",
        source: Optional[str] = SOURCE_NAME,
        resource: Optional[str] = None,
        status_code: Optional[int] = 404,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        if resource:
            message = f"{message}: {resource}"
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
        )
        self.resource = resource


class QuotaExceededError(FatalError):
    """
    Fair-use quota or rate limit tripped (HTTP 403/429).

    Not retried per request: callers are expected to back off at the
    application level.
    """

    def __init__(
        self,
        message: str = "Quota exceeded",
        source: Optional[str] = SOURCE_NAME,
        status_code: Optional[int] = 429,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            response_data=response_data,
        )


class ValidationError(FatalError):
    """
    Client-side input validation failed.

    Raised before any request is built, so it never carries an HTTP status.

    Attributes:
        field: Name of the offending parameter (e.g. "number", "ref_type")
        value: The rejected value
        number_format: Expected number format, when relevant
    """

    def __init__(
        self,
        message: str = "Invalid request parameters",
        field: Optional[str] = None,
        value: Optional[str] = None,
        number_format: Optional[str] = None,
        source: Optional[str] = SOURCE_NAME,
    ):
        super().__init__(message=message, source=source, status_code=None)
        self.field = field
        self.value = value
        self.number_format = number_format

    def __str__(self) -> str:
        if self.field and self.number_format:
            return (
                f"validation error: {self.field} ({self.number_format} format): "
                f"{self.message} - got: {self.value!r}"
            )
        if self.field:
            return f"validation error: {self.field}: {self.message} - got: {self.value!r}"
        return f"validation error: {self.message}"


class ConfigurationError(FatalError):
    """
    Configuration error - missing required settings.

    Raised when the consumer key or secret is not configured.
    """

    def __init__(
        self,
        message: str,
        source: Optional[str] = SOURCE_NAME,
        missing_config: Optional[str] = None,
    ):
        super().__init__(
            message=message, source=source, status_code=None, response_data=None
        )
        self.missing_config = missing_config


class OPSError(APIError):
    """
    Structured error returned by OPS with a machine-readable code.

    Used for any upstream code that does not map onto a more specific
    error class.

    Attributes:
        code: OPS error code (e.g. "CLIENT.InvalidQuery", "HTTP.400")
        more_info: Optional URL with more information
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        more_info: Optional[str] = None,
        source: Optional[str] = SOURCE_NAME,
    ):
        super().__init__(
            message=message,
            source=source,
            status_code=status_code,
            retryable=False,
        )
        self.code = code
        self.more_info = more_info

    def __str__(self) -> str:
        text = f"[{self.status_code}] {self.code}: {self.message}"
        if self.more_info:
            text += f" (see {self.more_info})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["code"] = self.code
        data["more_info"] = self.more_info
        return data


class DeadlineExceededError(APIError):
    """The caller's deadline expired before the call completed."""

    def __init__(self, message: str = "Deadline exceeded", source: Optional[str] = SOURCE_NAME):
        super().__init__(message=message, source=source, retryable=False)


class BulkOperationError(APIError):
    """
    A bulk operation stopped at the first failing batch.

    The underlying error is available as ``__cause__``.
    """

    def __init__(self, batch_index: int, total_batches: int, cause: BaseException):
        super().__init__(
            message=f"batch {batch_index}/{total_batches} failed: {cause}",
            status_code=getattr(cause, "status_code", None),
            retryable=False,
        )
        self.batch_index = batch_index
        self.total_batches = total_batches


# OPS error codes grouped by the error class they map onto
NOT_FOUND_CODES = frozenset({"CLIENT.InvalidReference", "SERVER.EntityNotFound", "HTTP.404"})
AUTH_CODES = frozenset({"CLIENT.InvalidAccessToken", "CLIENT.MissingAccessToken", "HTTP.401"})
QUOTA_CODES = frozenset({
    "SERVER.RateLimitExceeded",
    "SERVER.QuotaPerWeekExceeded",
    "HTTP.429",
    "HTTP.403",
})
SERVICE_UNAVAILABLE_CODES = frozenset({"HTTP.503"})


def _local_name(tag: str) -> str:
    """Strip an ElementTree namespace prefix ("{ns}code" -> "code")."""
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str:
    for child in element:
        if _local_name(child.tag) == name:
            return (child.text or "").strip()
    return ""


def parse_error_xml(body: bytes, status_code: int) -> Optional[OPSError]:
    """
    Parse an OPS error body into an OPSError.

    OPS error responses come in two shapes:

        <error>
          <code>CLIENT.InvalidReference</code>
          <message>Invalid patent number format</message>
          <moreInfo>http://...</moreInfo>
        </error>

        <fault xmlns="http://ops.epo.org">
          <code>404</code>
          <message>Document not found</message>
          <description>No published document found...</description>
        </fault>

    Fault codes are numeric and get prefixed with "HTTP.".

    Returns:
        OPSError, or None if the body matches neither shape
    """
    if not body:
        return None
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return None

    root_name = _local_name(root.tag)
    code = _child_text(root, "code")
    if not code:
        return None

    if root_name == "error":
        return OPSError(
            code=code,
            message=_child_text(root, "message"),
            status_code=status_code,
            more_info=_child_text(root, "moreInfo") or None,
        )

    if root_name == "fault":
        message = _child_text(root, "description") or _child_text(root, "message")
        return OPSError(
            code=f"HTTP.{code}",
            message=message,
            status_code=status_code,
        )

    return None


def classify_error_response(
    status_code: int,
    body: bytes = b"",
    retry_after: Optional[str] = None,
) -> APIError:
    """
    Classify a non-200 OPS response into the appropriate APIError subclass.

    Structured error bodies are mapped by their OPS code first. When the body
    is not a recognizable error document, the HTTP status alone decides.

    Args:
        status_code: HTTP status code
        body: Raw response body
        retry_after: Retry-After header value, if any

    Returns:
        Appropriate APIError subclass instance
    """
    ops_error = parse_error_xml(body, status_code)
    if ops_error is not None:
        code = ops_error.code
        if code in NOT_FOUND_CODES:
            return NotFoundError(message=ops_error.message, status_code=status_code)
        if code in AUTH_CODES:
            return AuthenticationError(message=ops_error.message, status_code=status_code)
        if code in QUOTA_CODES:
            return QuotaExceededError(message=ops_error.message, status_code=status_code)
        if code in SERVICE_UNAVAILABLE_CODES:
            return ServiceUnavailableError(
                message=ops_error.message,
                status_code=status_code,
                retry_after=retry_after,
            )
        return ops_error

    text = body.decode("utf-8", errors="replace")[:500] if body else ""
    logger.debug(f"Unstructured error body for HTTP {status_code}: {text[:200]}")

    if status_code == 404:
        return NotFoundError(message=text or "Resource not found")
    elif status_code == 401:
        return AuthenticationError(message=text or "Unauthorized", status_code=401)
    elif status_code in (429, 403):
        return QuotaExceededError(message=text or "Quota exceeded", status_code=status_code)
    elif status_code == 503:
        return ServiceUnavailableError(
            message=text or "Service unavailable",
            status_code=503,
            retry_after=retry_after,
        )
    else:
        return APIError(
            message=f"HTTP error {status_code}: {text[:200]}",
            status_code=status_code,
            retryable=False,
        )
