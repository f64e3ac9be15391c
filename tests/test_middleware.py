import logging

import pytest

from booking_assistant.core.middleware import booking_scope
from booking_assistant.utils.my_logging import CorrelationIdFilter, correlation_id_var

MIDDLEWARE_LOGGER = "booking_assistant.core.middleware"

BOOKING = {
    "conversation_id": "conv-1",
    "sender_id": "user-1",
    "platform": "instagram",
    "summary": "Haircut",
    "start": "2025-12-29T09:00:00+05:00",
    "end": "2025-12-29T10:00:00+05:00",
}


@pytest.mark.parametrize("path,expected", [
    ("/api/v1/businesses/biz-1/availability", ("biz-1", None)),
    ("/api/v1/businesses/biz-1/bookings/evt-9", ("biz-1", "evt-9")),
    ("/api/v1/calendar/biz-1/status", ("biz-1", None)),
    ("/api/v1/calendar/google/authorize/biz-1", ("biz-1", None)),
    ("/api/v1/calendar/google/callback", (None, None)),
    ("/health", (None, None)),
])
def test_booking_scope_from_path(path, expected):
    assert booking_scope(path) == expected


def test_correlation_id_is_echoed(client):
    response = client.get("/health", headers={"X-Correlation-ID": "call-42"})

    assert response.headers["X-Correlation-ID"] == "call-42"


def test_request_log_names_business_and_created_event(client, business, caplog):
    with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
        response = client.post(f"/api/v1/businesses/{business.id}/bookings", json=BOOKING)

    assert response.status_code == 201
    record = [r for r in caplog.records if r.name == MIDDLEWARE_LOGGER][-1]
    assert record.business_id == business.id
    assert record.event_id == response.json()["event_id"]
    assert record.status_code == 201
    assert f"business={business.id}" in record.getMessage()


def test_server_errors_are_logged_as_warnings(client, business, gateway, caplog):
    from booking_assistant.core.exceptions import GatewayUnavailable

    gateway.fail_with = GatewayUnavailable("calendar down")

    with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
        response = client.post(f"/api/v1/businesses/{business.id}/bookings", json=BOOKING)

    assert response.status_code == 503
    record = [r for r in caplog.records if r.name == MIDDLEWARE_LOGGER][-1]
    assert record.levelno == logging.WARNING
    assert record.event_id is None


def test_filter_stamps_current_correlation_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
    token = correlation_id_var.set("call-7")
    try:
        CorrelationIdFilter().filter(record)
    finally:
        correlation_id_var.reset(token)

    assert record.correlation_id == "call-7"


def test_filter_defaults_outside_a_request():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)

    assert CorrelationIdFilter().filter(record)
    assert record.correlation_id == "-"
