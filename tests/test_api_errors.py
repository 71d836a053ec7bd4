"""
Unit tests for epo_ops/core/api_errors.py

Covers OPS error XML parsing (both <error> and <fault> shapes), the
mapping of OPS codes and bare HTTP statuses onto the error hierarchy,
and the error string formats.
"""
import pytest

from epo_ops.core.api_errors import (
    APIError,
    AuthenticationError,
    BulkOperationError,
    FatalError,
    NotFoundError,
    OPSError,
    QuotaExceededError,
    RetryableError,
    ServiceUnavailableError,
    ValidationError,
    classify_error_response,
    parse_error_xml,
)

ERROR_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<error>
  <code>CLIENT.InvalidReference</code>
  <message>Invalid patent number format</message>
  <moreInfo>http://www.epo.org/ops/errors</moreInfo>
</error>"""

FAULT_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<fault xmlns="http://ops.epo.org">
  <code>404</code>
  <message>Not Found</message>
  <description>No published document found for the input</description>
</fault>"""


def error_body(code: str, message: str = "details") -> bytes:
    return f"<error><code>{code}</code><message>{message}</message></error>".encode()


# =============================================================================
# parse_error_xml
# =============================================================================


class TestParseErrorXML:
    """Tests for structured error body parsing."""

    @pytest.mark.unit
    def test_error_shape(self):
        err = parse_error_xml(ERROR_XML, 400)
        assert err.code == "CLIENT.InvalidReference"
        assert err.message == "Invalid patent number format"
        assert err.more_info == "http://www.epo.org/ops/errors"
        assert err.status_code == 400

    @pytest.mark.unit
    def test_fault_shape_gets_http_prefix(self):
        err = parse_error_xml(FAULT_XML, 404)
        assert err.code == "HTTP.404"
        # description preferred over message
        assert err.message == "No published document found for the input"
        assert err.more_info is None

    @pytest.mark.unit
    def test_fault_without_description_uses_message(self):
        body = b"<fault><code>503</code><message>Service Unavailable</message></fault>"
        err = parse_error_xml(body, 503)
        assert err.code == "HTTP.503"
        assert err.message == "Service Unavailable"

    @pytest.mark.unit
    @pytest.mark.parametrize("body", [
        b"",
        b"not xml at all",
        b"<html><body>Gateway Timeout</body></html>",
        b"<error><message>no code</message></error>",
    ])
    def test_unrecognized_bodies_return_none(self, body):
        assert parse_error_xml(body, 500) is None


# =============================================================================
# classify_error_response
# =============================================================================


class TestClassifyStructured:
    """Structured OPS codes decide the error class."""

    @pytest.mark.unit
    @pytest.mark.parametrize("code", [
        "CLIENT.InvalidReference", "SERVER.EntityNotFound",
    ])
    def test_not_found_codes(self, code):
        err = classify_error_response(404, error_body(code))
        assert isinstance(err, NotFoundError)
        assert err.status_code == 404
        assert err.retryable is False

    @pytest.mark.unit
    def test_entity_not_found_keeps_message(self):
        err = classify_error_response(404, error_body("SERVER.EntityNotFound", "No results found"))
        assert isinstance(err, NotFoundError)
        assert "No results found" in str(err)

    @pytest.mark.unit
    def test_fault_404_is_not_found(self):
        assert isinstance(classify_error_response(404, FAULT_XML), NotFoundError)

    @pytest.mark.unit
    @pytest.mark.parametrize("code", [
        "CLIENT.InvalidAccessToken", "CLIENT.MissingAccessToken",
    ])
    def test_auth_codes(self, code):
        err = classify_error_response(401, error_body(code))
        assert isinstance(err, AuthenticationError)
        assert err.status_code == 401

    @pytest.mark.unit
    @pytest.mark.parametrize("code,status", [
        ("SERVER.RateLimitExceeded", 403),
        ("SERVER.QuotaPerWeekExceeded", 403),
    ])
    def test_quota_codes(self, code, status):
        err = classify_error_response(status, error_body(code))
        assert isinstance(err, QuotaExceededError)
        assert err.status_code == status

    @pytest.mark.unit
    def test_fault_503_is_service_unavailable(self):
        body = b"<fault><code>503</code><message>down</message></fault>"
        err = classify_error_response(503, body, retry_after="30")
        assert isinstance(err, ServiceUnavailableError)
        assert err.retry_after == "30"
        assert err.retryable is True

    @pytest.mark.unit
    def test_unknown_code_returns_ops_error(self):
        err = classify_error_response(400, ERROR_XML.replace(b"CLIENT.InvalidReference", b"CLIENT.InvalidQuery"))
        assert type(err) is OPSError
        assert err.code == "CLIENT.InvalidQuery"
        assert err.status_code == 400
        assert err.more_info == "http://www.epo.org/ops/errors"


class TestClassifyUnstructured:
    """Without a recognizable body the HTTP status decides."""

    @pytest.mark.unit
    def test_503_unparseable(self):
        err = classify_error_response(503, b"<html>Service Temporarily Unavailable</html>")
        assert isinstance(err, ServiceUnavailableError)
        assert err.status_code == 503

    @pytest.mark.unit
    def test_404(self):
        assert isinstance(classify_error_response(404, b""), NotFoundError)

    @pytest.mark.unit
    def test_401(self):
        err = classify_error_response(401, b"")
        assert isinstance(err, AuthenticationError)
        assert err.status_code == 401

    @pytest.mark.unit
    @pytest.mark.parametrize("status", [403, 429])
    def test_quota_statuses(self, status):
        err = classify_error_response(status, b"slow down")
        assert isinstance(err, QuotaExceededError)
        assert err.status_code == status

    @pytest.mark.unit
    def test_other_status_generic(self):
        err = classify_error_response(418, b"teapot")
        assert type(err) is APIError
        assert err.status_code == 418
        assert "teapot" in err.message
        assert err.retryable is False


# =============================================================================
# Hierarchy and formatting
# =============================================================================


class TestErrorHierarchy:

    @pytest.mark.unit
    def test_retryable_flags(self):
        assert ServiceUnavailableError().retryable is True
        assert isinstance(ServiceUnavailableError(), RetryableError)
        for err in (AuthenticationError(), NotFoundError(), QuotaExceededError(), ValidationError()):
            assert isinstance(err, FatalError)
            assert err.retryable is False

    @pytest.mark.unit
    def test_ops_error_str(self):
        err = OPSError("CLIENT.InvalidQuery", "bad query", status_code=400, more_info="http://x")
        assert str(err) == "[400] CLIENT.InvalidQuery: bad query (see http://x)"

    @pytest.mark.unit
    def test_ops_error_to_dict(self):
        data = OPSError("CLIENT.InvalidQuery", "bad query", status_code=400).to_dict()
        assert data["error_type"] == "OPSError"
        assert data["code"] == "CLIENT.InvalidQuery"
        assert data["status_code"] == 400

    @pytest.mark.unit
    def test_validation_error_str_with_format(self):
        err = ValidationError("must match pattern", field="number", value="EP1", number_format="docdb")
        assert str(err) == "validation error: number (docdb format): must match pattern - got: 'EP1'"
        assert err.status_code is None

    @pytest.mark.unit
    def test_validation_error_str_field_only(self):
        err = ValidationError("bad", field="ref_type", value="x")
        assert str(err) == "validation error: ref_type: bad - got: 'x'"

    @pytest.mark.unit
    def test_service_unavailable_str_includes_retry_after(self):
        err = ServiceUnavailableError(retry_after="120")
        assert "retry after: 120" in str(err)
        assert "(HTTP 503)" in str(err)

    @pytest.mark.unit
    def test_not_found_resource_in_message(self):
        err = NotFoundError(resource="EP.1000000.B1")
        assert err.message == "Resource not found: EP.1000000.B1"

    @pytest.mark.unit
    def test_bulk_operation_error(self):
        cause = NotFoundError("gone")
        err = BulkOperationError(batch_index=2, total_batches=3, cause=cause)
        assert err.batch_index == 2
        assert err.total_batches == 3
        assert err.status_code == 404
        assert err.message.startswith("batch 2/3 failed:")
