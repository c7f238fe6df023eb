import pytest
from fastapi.testclient import TestClient
from app.api.bookings import get_booking_service
from app.main import app
from app.models.db_models import BookingStatus
from fakes import MONDAY

CUSTOMER = {"X-Actor-Role": "customer", "X-Actor-Id": "cust-1"}
OWNER = {"X-Actor-Role": "business", "X-Actor-Id": "owner-1"}


@pytest.fixture
def client(booking_service):
    app.dependency_overrides[get_booking_service] = lambda: booking_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def book(client, start_time, date="2024-01-01", service_id="svc-60", headers=CUSTOMER):
    payload = {
        "business_id": "biz-1",
        "service_id": service_id,
        "date": date,
        "start_time": start_time,
    }
    return client.post("/api/bookings/", json=payload, headers=headers)


def test_health(client):
    assert client.get("/").json()["status"] == "active"
    assert client.get("/health").json()["status"] == "ok"


def test_create_booking(client, store):
    response = book(client, "10:00")

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "pending"
    assert body["data"]["end_time"] == "11:00"
    assert body["data"]["total_price"] == 50.0
    assert store.inserts == 1


def test_overlapping_booking_is_409(client):
    assert book(client, "10:00").status_code == 201

    response = book(client, "10:30")
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "SLOT_CONFLICT"
    assert "conflicting_booking_id" in body["details"]


def test_closed_day_is_422(client):
    response = book(client, "10:00", date="2024-01-05")
    assert response.status_code == 422
    assert response.json()["error_code"] == "OUT_OF_HOURS"


def test_bad_input_is_400(client):
    response = book(client, "25:00")
    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_unknown_service_is_404(client):
    response = book(client, "10:00", service_id="nope")
    assert response.status_code == 404


def test_only_customers_create_bookings(client):
    assert book(client, "10:00", headers=OWNER).status_code == 403
    assert book(client, "10:00", headers={}).status_code == 401


def test_available_slots(client, store):
    store.add_booking(
        business_id="biz-1", service_id="svc-60", customer_id="cust-9", date=MONDAY,
        start_time="09:00", end_time="10:00", status=BookingStatus.CONFIRMED,
    )
    response = client.get("/api/bookings/available-slots/biz-1/svc-60", params={"date": "2024-01-01"})

    assert response.status_code == 200
    starts = [slot["start_time"] for slot in response.json()["data"]]
    assert "09:00" not in starts
    assert starts[0] == "10:00"


def test_status_flow(client):
    booking_id = book(client, "10:00").json()["data"]["id"]

    response = client.put(f"/api/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=OWNER)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "confirmed"

    response = client.put(f"/api/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=OWNER)
    assert response.status_code == 409
    assert response.json()["error_code"] == "INVALID_TRANSITION"

    response = client.put(f"/api/bookings/{booking_id}/status", json={"status": "completed"}, headers=CUSTOMER)
    assert response.status_code == 403
    assert response.json()["error_code"] == "FORBIDDEN"


def test_customer_cancels_pending(client, store):
    booking_id = book(client, "10:00").json()["data"]["id"]

    response = client.put(f"/api/bookings/{booking_id}/cancel", json={"reason": "ظرف طارئ"}, headers=CUSTOMER)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"
    assert store.bookings[booking_id].cancellation_reason == "ظرف طارئ"


def test_reads(client):
    booking_id = book(client, "10:00").json()["data"]["id"]
    book(client, "11:00")

    response = client.get(f"/api/bookings/{booking_id}", headers=CUSTOMER)
    assert response.json()["data"]["id"] == booking_id

    response = client.get(f"/api/bookings/{booking_id}", headers={"X-Actor-Role": "customer", "X-Actor-Id": "cust-2"})
    assert response.status_code == 403

    mine = client.get("/api/bookings/my-bookings", headers=CUSTOMER).json()["data"]
    assert mine["total"] == 2

    listing = client.get("/api/bookings/business/biz-1", params={"limit": 1}, headers=OWNER).json()["data"]
    assert listing["total"] == 2
    assert listing["pages"] == 2

    stats = client.get("/api/bookings/stats/biz-1", headers=OWNER).json()["data"]
    assert stats["total_bookings"] == 2
    assert stats["pending_bookings"] == 2


def test_missing_booking_is_404(client):
    response = client.get("/api/bookings/missing", headers=OWNER)
    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


def test_storage_failure_is_503(client, store):
    store.fail = True
    response = book(client, "10:00")
    assert response.status_code == 503
    assert response.json()["error_code"] == "STORAGE_ERROR"


def test_role_without_id_is_401(client, store):
    booking_id = book(client, "10:00").json()["data"]["id"]

    for role in ("business", "customer"):
        headers = {"X-Actor-Role": role}
        response = client.put(f"/api/bookings/{booking_id}/status", json={"status": "confirmed"}, headers=headers)
        assert response.status_code == 401
        assert client.get("/api/bookings/stats/biz-1", headers=headers).status_code == 401
        assert client.get(f"/api/bookings/{booking_id}", headers=headers).status_code == 401
        response = client.put(f"/api/bookings/{booking_id}/cancel", json={}, headers=headers)
        assert response.status_code == 401

    assert store.bookings[booking_id].status == BookingStatus.PENDING


def test_admin_acts_without_id(client):
    booking_id = book(client, "10:00").json()["data"]["id"]
    response = client.put(
        f"/api/bookings/{booking_id}/status", json={"status": "confirmed"}, headers={"X-Actor-Role": "admin"}
    )
    assert response.status_code == 200
