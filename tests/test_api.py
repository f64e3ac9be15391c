def booking_body(**overrides):
    body = {
        "conversation_id": "conv-1",
        "sender_id": "user-1",
        "platform": "instagram",
        "summary": "Haircut",
        "start": "2025-12-29T09:00:00+05:00",
        "end": "2025-12-29T10:00:00+05:00",
    }
    body.update(overrides)
    return body


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers


def test_availability(client, business):
    response = client.get(
        f"/api/v1/businesses/{business.id}/availability",
        params={"start_date": "2025-12-29", "end_date": "2025-12-29"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["timezone"] == "+05:00"
    assert data["total_slots"] == 2
    assert data["slots"][0]["start"] == "2025-12-29T09:00:00+05:00"
    assert data["slots"][0]["remaining"] == 1


def test_availability_bad_range_is_400(client, business):
    response = client.get(
        f"/api/v1/businesses/{business.id}/availability",
        params={"start_date": "2025-12-29", "end_date": "2025-12-01"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_unknown_business_is_404(client):
    response = client.get(
        "/api/v1/businesses/missing/availability",
        params={"start_date": "2025-12-29", "end_date": "2025-12-29"},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "BUSINESS_NOT_FOUND"


def test_schedule_for_day(client, business):
    response = client.get(f"/api/v1/businesses/{business.id}/schedule/2025-12-29")

    assert response.status_code == 200
    data = response.json()
    assert data["day_of_week"] == 1
    assert data["source"] == "regular"
    assert data["slots"][0]["start_time"] == "09:00"


def test_booking_lifecycle(client, business):
    url = f"/api/v1/businesses/{business.id}/bookings"

    created = client.post(url, json=booking_body())
    assert created.status_code == 201
    event_id = created.json()["event_id"]

    conflict = client.post(url, json=booking_body(sender_id="user-2"))
    assert conflict.status_code == 409
    assert conflict.json() == {
        "detail": conflict.json()["detail"],
        "code": "BOOKING_CONFLICT",
        "reason": "capacity",
    }

    listed = client.get(url, params={"conversation_id": "conv-1", "sender_id": "user-1"})
    assert [b["event_id"] for b in listed.json()["bookings"]] == [event_id]
    assert listed.json()["bookings"][0]["start"] == "2025-12-29T09:00:00+05:00"

    cancelled = client.delete(f"{url}/{event_id}")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    again = client.delete(f"{url}/{event_id}")
    assert again.status_code == 409
    assert again.json()["code"] == "BOOKING_ALREADY_CANCELLED"


def test_booking_missing_field_is_422(client, business):
    body = booking_body()
    del body["summary"]

    response = client.post(f"/api/v1/businesses/{business.id}/bookings", json=body)

    assert response.status_code == 422


def test_check_availability(client, business):
    response = client.post(
        f"/api/v1/businesses/{business.id}/availability/check",
        json={"start": "2025-12-29T10:00:00+05:00", "end": "2025-12-29T11:00:00+05:00"},
    )

    assert response.status_code == 200
    assert response.json()["is_available"] is True


def test_calendar_not_connected_is_401(client, make_business):
    business = make_business(connected=False)

    response = client.get(
        f"/api/v1/businesses/{business.id}/availability",
        params={"start_date": "2025-12-29", "end_date": "2025-12-29"},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "CALENDAR_NOT_CONNECTED"


def test_calendar_status(client, business):
    response = client.get(f"/api/v1/calendar/{business.id}/status")

    assert response.status_code == 200
    assert response.json()["is_connected"] is True


def test_booking_malformed_email_is_422(client, business, gateway):
    body = booking_body(attendee_email="sam@example..com")

    response = client.post(f"/api/v1/businesses/{business.id}/bookings", json=body)

    assert response.status_code == 422
    assert gateway.calls == []
