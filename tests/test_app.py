from __future__ import annotations

import pytest

from app import create_app
from parking_system import ParkingService


@pytest.fixture
def client(service: ParkingService):
    app = create_app(parking=service)
    app.testing = True
    return app.test_client()


def test_check_in_and_out(client, clock) -> None:
    resp = client.post("/api/checkin", json={"vehicleId": "mh02fm1234", "category": "car", "plannedHours": 2})
    assert resp.status_code == 201
    assert resp.get_json()["slot"] == 1
    assert resp.get_json()["quotedCost"] == "120"

    clock.advance(minutes=61)
    resp = client.post("/api/checkout", json={"vehicleId": "MH02FM1234"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["totalCost"] == "75"
    assert body["billedHours"] == "1.25"
    assert body["billedMinutes"] == 75


def test_error_mapping(client) -> None:
    resp = client.post("/api/checkin", json={"vehicleId": "bad", "category": "car", "plannedHours": 1})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"

    client.post("/api/checkin", json={"vehicleId": "MH02FM1234", "category": "truck", "plannedHours": 1})
    resp = client.post("/api/checkin", json={"vehicleId": "MH02FM1234", "category": "car", "plannedHours": 1})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "duplicate_vehicle"

    resp = client.post("/api/checkin", json={"vehicleId": "MH02FM1235", "category": "truck", "plannedHours": 1})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "no_slot_available"

    resp = client.post("/api/checkout", json={"vehicleId": "ZZ99ZZ9999"})
    assert resp.status_code == 404


def test_non_json_body_is_bad_request(client) -> None:
    resp = client.post("/api/checkin", data="plate=MH02FM1234")

    assert resp.status_code == 400


def test_search_and_quote(client, clock) -> None:
    client.post("/api/checkin", json={"vehicleId": "MH02FM1234", "category": "bike", "plannedHours": 1})
    clock.advance(minutes=90)

    body = client.get("/api/vehicles/mh02fm1234").get_json()
    assert body["slot"] == 1
    assert body["elapsedSeconds"] == 5400
    assert body["currentCost"] == "45"

    assert client.get("/api/vehicles/MH02FM1234/quote").get_json()["currentCost"] == "45"
    assert client.get("/api/vehicles/ZZ99ZZ9999").status_code == 404
    assert client.get("/api/vehicles/ZZ99ZZ9999/quote").status_code == 404


def test_slots_and_slot_info(client) -> None:
    client.post("/api/checkin", json={"vehicleId": "MH02FM1234", "category": "car", "plannedHours": 1})

    body = client.get("/api/slots/car").get_json()
    assert (body["capacity"], body["occupied"], body["available"]) == (3, 1, 2)
    assert body["slots"][0] == {"index": 1, "status": "occupied", "occupant": "MH02FM1234"}

    info = client.get("/api/slots/car/1").get_json()
    assert info["session"]["vehicleId"] == "MH02FM1234"
    assert client.get("/api/slots/car/9").status_code == 409
    assert client.get("/api/slots/boat").status_code == 400


def test_history_report_and_analytics(client, clock) -> None:
    client.post("/api/checkin", json={"vehicleId": "MH02FM1234", "category": "car", "plannedHours": 1})
    client.post("/api/checkin", json={"vehicleId": "MH02FM1235", "category": "car", "plannedHours": 1})
    clock.advance(minutes=30)
    client.post("/api/checkout", json={"vehicleId": "MH02FM1234"})

    history = client.get("/api/history").get_json()
    assert [h["vehicleId"] for h in history] == ["MH02FM1234"]

    report = client.get("/api/report").get_json()
    assert report["occupiedSlots"] == 1
    assert report["totalCurrentRevenue"] == "60"

    analytics = client.get("/api/analytics").get_json()
    assert analytics["revenueByCategory"]["car"] == "60"
    assert analytics["peakHours"] == ["9:00-10:00"]


def test_reset_requires_confirmation(client, service: ParkingService) -> None:
    client.post("/api/checkin", json={"vehicleId": "MH02FM1234", "category": "car", "plannedHours": 1})

    assert client.post("/api/reset", json={}).status_code == 400
    assert len(service.state.ledger) == 1

    assert client.post("/api/reset", json={"confirm": True}).status_code == 200
    assert len(service.state.ledger) == 0


def test_export_then_import(client, service: ParkingService) -> None:
    client.post("/api/checkin", json={"vehicleId": "MH02FM1234", "category": "car", "plannedHours": 1})
    exported = client.get("/api/export").get_json()

    client.post("/api/reset", json={"confirm": True})
    resp = client.post("/api/import", json=exported)

    assert resp.status_code == 200
    assert resp.get_json()["sessions"] == 1
    assert service.search("MH02FM1234") is not None
    assert client.post("/api/import", json={"history": []}).status_code == 400


def test_create_app_builds_service_from_config(small_config) -> None:
    app = create_app(config=small_config)

    body = app.test_client().get("/api/slots/truck").get_json()

    assert isinstance(app.extensions["parking"], ParkingService)
    assert body["capacity"] == 1
