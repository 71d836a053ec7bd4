"""
Fair-use quota tracking.

OPS reports quota consumption on every response:

- X-Throttling-Control: overall status ("green", "yellow", "red", "black"),
  optionally followed by per-service details
- X-IndividualQuota: "used=123,quota=456" (anonymous/individual tier)
- X-RegisteredQuota: "used=123,quota=456" (registered/paying tier)
- X-ImagesQuota: "used=123,quota=456" (optional, image downloads)

The latest snapshot is kept per client so callers can check remaining
allowance at any time. Also holds the usage-statistics helpers of the
developer API, which reports the same consumption historically.
"""

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from epo_ops.core.api_errors import ValidationError

logger = logging.getLogger(__name__)

THROTTLING_HEADER = "X-Throttling-Control"
INDIVIDUAL_QUOTA_HEADER = "X-IndividualQuota"
REGISTERED_QUOTA_HEADER = "X-RegisteredQuota"
IMAGES_QUOTA_HEADER = "X-ImagesQuota"

QUOTA_HEADERS = (
    THROTTLING_HEADER,
    INDIVIDUAL_QUOTA_HEADER,
    REGISTERED_QUOTA_HEADER,
    IMAGES_QUOTA_HEADER,
)


@dataclass(frozen=True)
class QuotaMetric:
    """Used/limit pair for one quota tier."""

    used: int = 0
    limit: int = 0

    @property
    def usage_percent(self) -> float:
        """Usage as a percentage of the limit (0 when no limit is known)."""
        if self.limit == 0:
            return 0.0
        return self.used / self.limit * 100


@dataclass(frozen=True)
class QuotaSnapshot:
    """
    Quota state reported by one OPS response.

    Attributes:
        status: Traffic-light status ("green" <50%, "yellow" 50-75%,
            "red" >75%, "black" blocked)
        individual: Individual (non-paying) weekly quota
        registered: Registered (paying) weekly quota
        images: Image download quota, zero when not reported
        throttling_control: Raw X-Throttling-Control value
        individual_header: Raw X-IndividualQuota value
        registered_header: Raw X-RegisteredQuota value
    """

    status: str
    individual: QuotaMetric = field(default_factory=QuotaMetric)
    registered: QuotaMetric = field(default_factory=QuotaMetric)
    images: QuotaMetric = field(default_factory=QuotaMetric)
    throttling_control: str = ""
    individual_header: str = ""
    registered_header: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "individual": {"used": self.individual.used, "limit": self.individual.limit},
            "registered": {"used": self.registered.used, "limit": self.registered.limit},
            "images": {"used": self.images.used, "limit": self.images.limit},
        }


def parse_quota_metric(header: Optional[str]) -> QuotaMetric:
    """Parse "used=123,quota=456". Malformed parts are skipped."""
    if not header:
        return QuotaMetric()

    used = 0
    limit = 0
    for part in header.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        key = key.strip()
        try:
            number = int(value.strip())
        except ValueError:
            continue
        if key == "used":
            used = number
        elif key == "quota":
            limit = number
    return QuotaMetric(used=used, limit=limit)


def calculate_status(*metrics: QuotaMetric) -> str:
    """Derive a traffic-light status from the highest usage percentage."""
    max_percent = max(
        (m.usage_percent for m in metrics if m.limit > 0),
        default=0.0,
    )
    if max_percent >= 100:
        return "black"
    if max_percent >= 75:
        return "red"
    if max_percent >= 50:
        return "yellow"
    return "green"


def parse_quota_headers(headers: Mapping[str, str]) -> Optional[QuotaSnapshot]:
    """
    Build a QuotaSnapshot from response headers.

    Args:
        headers: Case-insensitive header mapping (e.g. httpx.Headers)

    Returns:
        QuotaSnapshot, or None when the response carried no quota headers
    """
    if not any(headers.get(name) for name in QUOTA_HEADERS):
        return None

    throttling = headers.get(THROTTLING_HEADER) or ""
    individual_header = headers.get(INDIVIDUAL_QUOTA_HEADER) or ""
    registered_header = headers.get(REGISTERED_QUOTA_HEADER) or ""

    individual = parse_quota_metric(individual_header)
    registered = parse_quota_metric(registered_header)
    images = parse_quota_metric(headers.get(IMAGES_QUOTA_HEADER))

    # "idle (images=green:100, inpadoc=green:60, ...)" -> "idle"
    status = throttling.split("(", 1)[0].strip()
    if not status:
        status = calculate_status(individual, registered)

    return QuotaSnapshot(
        status=status,
        individual=individual,
        registered=registered,
        images=images,
        throttling_control=throttling,
        individual_header=individual_header,
        registered_header=registered_header,
    )


class QuotaTracker:
    """
    Latest-wins store for the most recent QuotaSnapshot.

    Thread-safe; get() returns None until the first response with quota
    headers has been recorded.
    """

    def __init__(self):
        self._last: Optional[QuotaSnapshot] = None
        self._lock = threading.Lock()

    def update(self, snapshot: Optional[QuotaSnapshot]) -> None:
        if snapshot is None:
            return
        with self._lock:
            self._last = snapshot
        logger.debug(
            "Quota status=%s individual=%s/%s registered=%s/%s",
            snapshot.status,
            snapshot.individual.used,
            snapshot.individual.limit,
            snapshot.registered.used,
            snapshot.registered.limit,
        )

    def get(self) -> Optional[QuotaSnapshot]:
        with self._lock:
            return self._last


# =============================================================================
# Usage statistics (developer API)
# =============================================================================

_DATE_PATTERN = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


@dataclass(frozen=True)
class UsageEntry:
    """One (typically hourly) usage data point."""

    timestamp: int
    total_response_size: int
    message_count: int
    service: str = ""


@dataclass(frozen=True)
class UsageStats:
    """Usage statistics for a requested time range."""

    time_range: str
    entries: List[UsageEntry] = field(default_factory=list)

    @property
    def total_response_size(self) -> int:
        return sum(e.total_response_size for e in self.entries)

    @property
    def total_messages(self) -> int:
        return sum(e.message_count for e in self.entries)


def _validate_usage_date(value: str) -> None:
    match = _DATE_PATTERN.match(value.strip())
    if not match:
        raise ValidationError(
            "date must be in dd/mm/yyyy format",
            field="time_range",
            value=value,
        )
    day, month, year = (int(g) for g in match.groups())
    if not 1 <= day <= 31:
        raise ValidationError("day must be between 01 and 31", field="time_range", value=value)
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 01 and 12", field="time_range", value=value)
    if year < 1000:
        raise ValidationError("year must be a 4-digit number", field="time_range", value=value)


def validate_time_range(time_range: str) -> None:
    """
    Validate a usage-statistics time range.

    Accepts a single date "dd/mm/yyyy" or a range "dd/mm/yyyy~dd/mm/yyyy".

    Raises:
        ValidationError: If the format is invalid
    """
    if not time_range:
        raise ValidationError("time range cannot be empty", field="time_range", value=time_range)

    if "~" in time_range:
        parts = time_range.split("~")
        if len(parts) != 2:
            raise ValidationError(
                "date range must contain exactly one tilde separator (~)",
                field="time_range",
                value=time_range,
            )
        for part in parts:
            _validate_usage_date(part)
        return

    _validate_usage_date(time_range)


def parse_usage_stats(body: str, time_range: str) -> UsageStats:
    """
    Parse the usage-statistics JSON body.

    Expected shape: {"data": [{"timestamp": ..., "total_response_size": ...,
    "message_count": ..., "service": ...}, ...]}

    Raises:
        ValueError: If the body is not valid JSON
    """
    payload = json.loads(body)
    entries = [
        UsageEntry(
            timestamp=int(item.get("timestamp", 0)),
            total_response_size=int(item.get("total_response_size", 0)),
            message_count=int(item.get("message_count", 0)),
            service=item.get("service") or "",
        )
        for item in payload.get("data") or []
    ]
    return UsageStats(time_range=time_range, entries=entries)
