"""
EPO Open Patent Services (OPS) client package.

Provides an async client for the OPS v3.2 REST API with token management,
retries, quota tracking and bulk batching.
"""

from epo_ops.client import OPSClient
from epo_ops.core.api_errors import (
    APIError,
    AuthenticationError,
    BulkOperationError,
    ConfigurationError,
    DeadlineExceededError,
    NotFoundError,
    OPSError,
    QuotaExceededError,
    ServiceUnavailableError,
    TransportError,
    ValidationError,
)
from epo_ops.core.batch_operations import BulkOptions
from epo_ops.core.config import Settings, get_settings
from epo_ops.core.quota import QuotaSnapshot, UsageStats

__all__ = [
    "OPSClient",
    "APIError",
    "AuthenticationError",
    "BulkOperationError",
    "ConfigurationError",
    "DeadlineExceededError",
    "NotFoundError",
    "OPSError",
    "QuotaExceededError",
    "ServiceUnavailableError",
    "TransportError",
    "ValidationError",
    "BulkOptions",
    "Settings",
    "get_settings",
    "QuotaSnapshot",
    "UsageStats",
]
