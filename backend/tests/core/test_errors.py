"""Error Hierarchy — tests for codes, statuses and the REST envelope."""

from bookswap.core.errors import (
    ErrorCategory, ErrorContext, EventBusError, MalformedMessageError,
    ResourceNotFoundError, SubjectLookupError,
)


def test_resource_not_found_is_404_with_envelope():
    err = ResourceNotFoundError("Exchange", "abc")
    body = err.to_response()
    assert err.http_status == 404
    assert body["error"]["code"] == "RESOURCE_NOT_FOUND"
    assert body["error"]["message"] == "Exchange 'abc' not found"


def test_malformed_message_keeps_raw_payload():
    err = MalformedMessageError("bad", '{"x": 1}')
    assert err.code == "MALFORMED_MESSAGE"
    assert err.category is ErrorCategory.VALIDATION
    assert err.raw == '{"x": 1}'


def test_lookup_error_names_source():
    err = SubjectLookupError("timeout", "inventory-service")
    assert err.code == "LOOKUP_FAILED"
    assert "inventory-service" in err.message


def test_event_bus_error_records_stream_in_context():
    err = EventBusError("down", "validate-user")
    assert err.context.stream == "validate-user"
    assert err.http_status == 503


def test_context_correlation_key_surfaces_in_response():
    ctx = ErrorContext(correlation_key="k-1")
    err = ResourceNotFoundError("Exchange", "k-1", context=ctx)
    assert err.to_response()["error"]["context"]["correlation_key"] == "k-1"
