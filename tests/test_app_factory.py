"""Tests for the app factory, health check and error mapping."""

from fastapi.testclient import TestClient

from innkeep.api.app import app
from innkeep.api.errors import status_for
from innkeep.api.factory import create_app
from innkeep.domain.errors import (
    BookingNotFoundError,
    CapacityExceededError,
    InvalidInputError,
    InvalidTransitionError,
    LifecycleError,
    RoomNotFoundError,
    RoomUnavailableError,
)
from innkeep.domain.rooms import DuplicateRoomNumberError

client = TestClient(app)


def test_health_returns_ok_status():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_correlation_id_generated():
    response = client.get("/health")
    assert response.headers["X-Correlation-ID"]


def test_correlation_id_echoed():
    response = client.get("/health", headers={"X-Correlation-ID": "corr-abc"})
    assert response.headers["X-Correlation-ID"] == "corr-abc"


def test_docs_disabled():
    assert TestClient(create_app()).get("/docs").status_code == 404


def test_routers_mounted():
    paths = create_app().openapi()["paths"]
    assert "/rooms/{room_id}/actions/free" in paths
    assert "/bookings/{booking_id}/actions/transfer" in paths
    assert "/orders/room-booking" in paths


class TestStatusFor:
    def test_not_found(self):
        assert status_for(RoomNotFoundError("r1")) == 404
        assert status_for(BookingNotFoundError("b1")) == 404

    def test_conflicts(self):
        assert status_for(InvalidTransitionError("x")) == 409
        assert status_for(CapacityExceededError("x")) == 409
        assert status_for(RoomUnavailableError("x")) == 409

    def test_duplicate_room_is_conflict_not_bad_request(self):
        assert status_for(DuplicateRoomNumberError("Room number 101 already exists")) == 409

    def test_invalid_input(self):
        assert status_for(InvalidInputError("x")) == 400

    def test_unmapped(self):
        assert status_for(LifecycleError("x")) == 500
