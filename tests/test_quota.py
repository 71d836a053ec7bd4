"""
Unit tests for epo_ops/core/quota.py

Covers quota header parsing, the latest-wins tracker and the
usage-statistics helpers.
"""
import json

import httpx
import pytest

from epo_ops.core.api_errors import ValidationError
from epo_ops.core.quota import (
    QuotaMetric,
    QuotaSnapshot,
    QuotaTracker,
    calculate_status,
    parse_quota_headers,
    parse_quota_metric,
    parse_usage_stats,
    validate_time_range,
)


class TestParseQuotaMetric:

    @pytest.mark.unit
    def test_used_and_quota(self):
        metric = parse_quota_metric("used=1200,quota=4000")
        assert metric == QuotaMetric(used=1200, limit=4000)
        assert metric.usage_percent == 30.0

    @pytest.mark.unit
    def test_whitespace_tolerated(self):
        assert parse_quota_metric(" used = 5 , quota = 10 ") == QuotaMetric(5, 10)

    @pytest.mark.unit
    def test_malformed_parts_skipped(self):
        metric = parse_quota_metric("used=abc,quota=4000,garbage")
        assert metric == QuotaMetric(used=0, limit=4000)

    @pytest.mark.unit
    @pytest.mark.parametrize("header", [None, ""])
    def test_empty(self, header):
        metric = parse_quota_metric(header)
        assert metric == QuotaMetric()
        assert metric.usage_percent == 0.0


class TestCalculateStatus:

    @pytest.mark.unit
    @pytest.mark.parametrize("used,expected", [
        (0, "green"),
        (49, "green"),
        (50, "yellow"),
        (74, "yellow"),
        (75, "red"),
        (99, "red"),
        (100, "black"),
    ])
    def test_thresholds(self, used, expected):
        assert calculate_status(QuotaMetric(used=used, limit=100)) == expected

    @pytest.mark.unit
    def test_highest_metric_wins(self):
        assert calculate_status(QuotaMetric(10, 100), QuotaMetric(80, 100)) == "red"

    @pytest.mark.unit
    def test_unknown_limits_ignored(self):
        assert calculate_status(QuotaMetric(500, 0)) == "green"


class TestParseQuotaHeaders:

    @pytest.mark.unit
    def test_no_quota_headers(self):
        assert parse_quota_headers(httpx.Headers({"Content-Type": "text/xml"})) is None

    @pytest.mark.unit
    def test_full_headers(self):
        headers = httpx.Headers({
            "X-Throttling-Control": "idle (images=green:200, inpadoc=green:60, search=green:30)",
            "X-IndividualQuota": "used=1200,quota=4000",
            "X-RegisteredQuota": "used=10,quota=100000",
            "X-ImagesQuota": "used=3,quota=100",
        })

        snapshot = parse_quota_headers(headers)

        assert snapshot.status == "idle"
        assert snapshot.individual == QuotaMetric(1200, 4000)
        assert snapshot.registered == QuotaMetric(10, 100000)
        assert snapshot.images == QuotaMetric(3, 100)
        assert snapshot.throttling_control.startswith("idle (")
        assert snapshot.individual_header == "used=1200,quota=4000"
        assert snapshot.registered_header == "used=10,quota=100000"

    @pytest.mark.unit
    def test_header_names_case_insensitive(self):
        snapshot = parse_quota_headers(httpx.Headers({"x-individualquota": "used=1,quota=2"}))
        assert snapshot.individual == QuotaMetric(1, 2)

    @pytest.mark.unit
    def test_status_derived_without_throttling_header(self):
        snapshot = parse_quota_headers(httpx.Headers({
            "X-IndividualQuota": "used=3500,quota=4000",
        }))
        assert snapshot.status == "red"
        assert snapshot.throttling_control == ""

    @pytest.mark.unit
    def test_to_dict(self):
        snapshot = QuotaSnapshot(status="green", individual=QuotaMetric(1, 2))
        data = snapshot.to_dict()
        assert data["status"] == "green"
        assert data["individual"] == {"used": 1, "limit": 2}
        assert data["images"] == {"used": 0, "limit": 0}
        json.dumps(data)


class TestQuotaTracker:

    @pytest.mark.unit
    def test_empty_until_first_update(self):
        assert QuotaTracker().get() is None

    @pytest.mark.unit
    def test_latest_wins(self):
        tracker = QuotaTracker()
        first = QuotaSnapshot(status="green")
        second = QuotaSnapshot(status="yellow")

        tracker.update(first)
        tracker.update(second)

        assert tracker.get() is second

    @pytest.mark.unit
    def test_none_does_not_clear(self):
        tracker = QuotaTracker()
        snapshot = QuotaSnapshot(status="green")
        tracker.update(snapshot)
        tracker.update(None)
        assert tracker.get() is snapshot


class TestTimeRange:

    @pytest.mark.unit
    @pytest.mark.parametrize("time_range", [
        "01/01/2024",
        "01/01/2024~31/01/2024",
        "31/12/1999",
    ])
    def test_valid(self, time_range):
        validate_time_range(time_range)

    @pytest.mark.unit
    @pytest.mark.parametrize("time_range", [
        "",
        "2024-01-01",
        "1/1/2024",
        "32/01/2024",
        "00/01/2024",
        "01/13/2024",
        "01/01/0999",
        "01/01/2024~",
        "01/01/2024~02/01/2024~03/01/2024",
    ])
    def test_invalid(self, time_range):
        with pytest.raises(ValidationError) as exc_info:
            validate_time_range(time_range)
        assert exc_info.value.field == "time_range"


class TestParseUsageStats:

    @pytest.mark.unit
    def test_entries_and_totals(self):
        body = json.dumps({
            "data": [
                {"timestamp": 1704067200, "total_response_size": 1000,
                 "message_count": 4, "service": "published-data"},
                {"timestamp": 1704070800, "total_response_size": 500,
                 "message_count": 2},
            ]
        })

        stats = parse_usage_stats(body, "01/01/2024")

        assert stats.time_range == "01/01/2024"
        assert len(stats.entries) == 2
        assert stats.entries[0].service == "published-data"
        assert stats.entries[1].service == ""
        assert stats.total_response_size == 1500
        assert stats.total_messages == 6

    @pytest.mark.unit
    def test_no_data(self):
        stats = parse_usage_stats("{}", "01/01/2024")
        assert stats.entries == []
        assert stats.total_messages == 0

    @pytest.mark.unit
    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_usage_stats("not json", "01/01/2024")
