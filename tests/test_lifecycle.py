"""Tests for the guest-booking lifecycle (attach, check-in, transfer, extend, depart, free)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fakes import BRANCH
from innkeep.domain import lifecycle
from innkeep.domain.errors import (
    BookingNotFoundError,
    CapacityExceededError,
    InvalidInputError,
    InvalidTransitionError,
    RoomNotFoundError,
    RoomUnavailableError,
)
from innkeep.domain.models import BookingStatus
from innkeep.domain.occupancy import DerivedStatus, ManualStatus, derive_status, is_manual

CHECK_IN = datetime(2026, 3, 1, 14, 0, tzinfo=timezone.utc)


def _attach(room_id: str, num_people: int, **kwargs):
    return lifecycle.attach_booking_to_order(
        branch_id=kwargs.pop("branch_id", BRANCH),
        room_id=room_id,
        order_id="order-1",
        order_number="ACC-000001",
        num_people=num_people,
        check_in=CHECK_IN,
        **kwargs,
    )


def _assert_invariants(store):
    for room in store.rooms.values():
        assert 0 <= room.current_occupants <= room.max_occupants
        if not is_manual(room.status):
            assert room.status == derive_status(room.current_occupants, room.max_occupants)
        assert room.current_occupants == store.booked_occupants(room.id)


class TestAttachBookingToOrder:
    def test_fills_room_to_occupied(self, store):
        """Two guests into a room for two: occupied, booking pending."""
        store.add_room("r1", max_occupants=2)

        booking = _attach("r1", 2)

        assert store.rooms["r1"].current_occupants == 2
        assert store.rooms["r1"].status == DerivedStatus.OCCUPIED
        assert booking.status == BookingStatus.PENDING_CHECKIN
        assert booking.room_id == "r1"
        assert store.event_types() == ["GUEST_BOOKING_CREATED"]
        _assert_invariants(store)

    def test_overflow_is_hard_stop_and_leaves_room_unchanged(self, store):
        store.add_room("r1", max_occupants=2)
        _attach("r1", 2)

        with pytest.raises(CapacityExceededError) as exc_info:
            _attach("r1", 1)

        assert exc_info.value.context["overflow"] == 1
        assert exc_info.value.context["current_occupants"] == 2
        assert store.rooms["r1"].current_occupants == 2
        assert len(store.bookings) == 1
        _assert_invariants(store)

    def test_partial_fill(self, store):
        store.add_room("r1", max_occupants=4)

        _attach("r1", 1)

        assert store.rooms["r1"].status == DerivedStatus.PARTIALLY_OCCUPIED

    def test_default_customer_name(self, store):
        store.add_room("r1")

        booking = _attach("r1", 1, customer_name="   ")

        assert booking.customer_name == "Walk In Customer"

    def test_naive_check_in_stored_as_utc(self, store):
        store.add_room("r1")

        booking = _attach("r1", 1, check_out=datetime(2026, 3, 2, 11, 0))

        assert booking.scheduled_check_out.tzinfo == timezone.utc

    @pytest.mark.parametrize("num_people", [0, -1])
    def test_non_positive_people_rejected(self, store, num_people):
        store.add_room("r1")

        with pytest.raises(InvalidInputError):
            _attach("r1", num_people)
        assert store.rooms["r1"].current_occupants == 0

    def test_missing_check_in_rejected(self, store):
        store.add_room("r1")

        with pytest.raises(InvalidInputError):
            lifecycle.attach_booking_to_order(
                branch_id=BRANCH,
                room_id="r1",
                order_id="o",
                order_number="ACC-1",
                num_people=1,
                check_in=None,
            )

    def test_unknown_room(self, store):
        with pytest.raises(RoomNotFoundError):
            _attach("missing", 1)

    def test_room_in_other_branch_is_not_found(self, store):
        store.add_room("r1", branch_id="other-branch")

        with pytest.raises(RoomNotFoundError):
            _attach("r1", 1)
        assert store.rooms["r1"].current_occupants == 0

    def test_inactive_room_is_not_found(self, store):
        store.add_room("r1", is_active=False)

        with pytest.raises(RoomNotFoundError):
            _attach("r1", 1)

    def test_maintenance_room_unavailable(self, store):
        store.add_room("r1", status=ManualStatus.MAINTENANCE)

        with pytest.raises(RoomUnavailableError):
            _attach("r1", 1)
        assert store.rooms["r1"].status == ManualStatus.MAINTENANCE

    def test_reserved_room_taken_by_booking(self, store):
        store.add_room("r1", max_occupants=3, status=ManualStatus.RESERVED)

        _attach("r1", 1)

        assert store.rooms["r1"].status == DerivedStatus.PARTIALLY_OCCUPIED

    def test_caller_cursor_skips_own_transaction(self, store):
        store.add_room("r1")

        with store.txn() as cur:
            _attach("r1", 1, cur=cur)

        assert store.commits == 1

    def test_lock_taken_on_room(self, store):
        store.add_room("r1")

        _attach("r1", 1)

        assert store.locks == [("room", "r1")]


class TestCheckIn:
    def test_pending_to_checked_in(self, store):
        store.add_room("r1", max_occupants=2)
        booking = _attach("r1", 2)

        result = lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id, staff_id="staff-1")

        assert result["booking"].status == BookingStatus.CHECKED_IN
        assert result["booking"].actual_check_in is not None
        assert result["room"].current_occupants == 2
        _assert_invariants(store)

    def test_head_count_increase_moves_room_by_delta(self, store):
        store.add_room("r1", max_occupants=4)
        booking = _attach("r1", 2)

        result = lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id, num_occupants=3)

        assert result["room"].current_occupants == 3
        assert result["booking"].num_occupants == 3
        assert store.events[-1]["payload"]["occupant_delta"] == 1
        _assert_invariants(store)

    def test_head_count_decrease_moves_room_by_delta(self, store):
        store.add_room("r1", max_occupants=4)
        booking = _attach("r1", 3)

        result = lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id, num_occupants=1)

        assert result["room"].current_occupants == 1
        assert result["room"].status == DerivedStatus.PARTIALLY_OCCUPIED
        _assert_invariants(store)

    def test_head_count_increase_over_capacity_rolls_back(self, store):
        store.add_room("r1", max_occupants=2)
        booking = _attach("r1", 2)

        with pytest.raises(CapacityExceededError):
            lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id, num_occupants=3)

        assert store.bookings[booking.id].status == BookingStatus.PENDING_CHECKIN
        assert store.rooms["r1"].current_occupants == 2

    def test_explicit_check_in_time(self, store):
        store.add_room("r1")
        booking = _attach("r1", 1)
        arrived = datetime(2026, 3, 1, 15, 30, tzinfo=timezone(timedelta(hours=2)))

        result = lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id, actual_check_in=arrived)

        assert result["booking"].actual_check_in == arrived
        assert result["booking"].actual_check_in.tzinfo == timezone.utc

    def test_check_in_twice_is_invalid_transition(self, store):
        store.add_room("r1")
        booking = _attach("r1", 1)
        lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id)

        with pytest.raises(InvalidTransitionError, match="already checked_in"):
            lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id)

    def test_unknown_booking(self, store):
        with pytest.raises(BookingNotFoundError):
            lifecycle.check_in(branch_id=BRANCH, booking_id="nope")

    def test_booking_in_other_branch_is_not_found(self, store):
        store.add_room("r1")
        booking = _attach("r1", 1)

        with pytest.raises(BookingNotFoundError):
            lifecycle.check_in(branch_id="other-branch", booking_id=booking.id)


class TestTransfer:
    def test_moves_party_between_rooms(self, store):
        """Check in two guests, then move them into a room for three holding one."""
        store.add_room("r1", max_occupants=2)
        store.add_room("r2", max_occupants=3, current_occupants=1)
        store.add_booking("seed", room_id="r2", num_occupants=1)
        booking = _attach("r1", 2)
        lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id)

        result = lifecycle.transfer(
            branch_id=BRANCH,
            booking_id=booking.id,
            new_room_id="r2",
            notes="AC broken",
            staff_name="Front Desk",
        )

        assert result["from_room"].current_occupants == 0
        assert result["from_room"].status == DerivedStatus.AVAILABLE
        assert result["to_room"].current_occupants == 3
        assert result["to_room"].status == DerivedStatus.OCCUPIED
        moved = result["booking"]
        assert moved.room_id == "r2"
        assert moved.status == BookingStatus.CHECKED_IN
        assert len(moved.transfer_history) == 1
        entry = moved.transfer_history[0]
        assert entry["from_room_number"] == "R1"
        assert entry["to_room_number"] == "R2"
        assert entry["by"] == "Front Desk"
        assert entry["notes"] == "AC broken"
        _assert_invariants(store)

    def test_rooms_locked_in_one_ascending_batch_after_booking(self, store):
        store.add_room("room-b", max_occupants=2, current_occupants=1)
        store.add_room("room-a", max_occupants=2)
        store.add_booking("bk", room_id="room-b", num_occupants=1)

        lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="room-a")

        assert store.locks == [("booking", "bk"), ("rooms", ("room-a", "room-b"))]

    def test_target_full_rolls_back_everything(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=2)
        store.add_room("r2", max_occupants=3, current_occupants=2)
        store.add_booking("bk", room_id="r1", num_occupants=2)
        store.add_booking("other", room_id="r2", num_occupants=2)

        with pytest.raises(CapacityExceededError, match="cannot fit 2 guest"):
            lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="r2")

        assert store.rooms["r1"].current_occupants == 2
        assert store.rooms["r2"].current_occupants == 2
        assert store.bookings["bk"].room_id == "r1"
        assert store.bookings["bk"].transfer_history == []
        assert store.events == []
        _assert_invariants(store)

    def test_failure_after_origin_write_rolls_back(self, store, monkeypatch):
        """If the second room write fails, the first room is restored."""
        store.add_room("r1", max_occupants=2, current_occupants=2)
        store.add_room("r2", max_occupants=2)
        store.add_booking("bk", room_id="r1", num_occupants=2)
        real_write = store.write_occupancy

        def failing_write(cur, **kwargs):
            if kwargs["room_id"] == "r2":
                raise RuntimeError("connection lost")
            return real_write(cur, **kwargs)

        monkeypatch.setattr(lifecycle, "write_occupancy", failing_write)

        with pytest.raises(RuntimeError):
            lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="r2")

        assert store.rooms["r1"].current_occupants == 2
        assert store.rooms["r2"].current_occupants == 0
        assert store.bookings["bk"].room_id == "r1"
        assert store.rollbacks == 1

    @pytest.mark.parametrize("status", [ManualStatus.MAINTENANCE, ManualStatus.RESERVED])
    def test_manual_status_target_unavailable(self, store, status):
        store.add_room("r1", max_occupants=2, current_occupants=1)
        store.add_room("r2", max_occupants=2, status=status)
        store.add_booking("bk", room_id="r1", num_occupants=1)

        with pytest.raises(RoomUnavailableError):
            lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="r2")

    def test_occupied_target_unavailable(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=1)
        store.add_room("r2", max_occupants=1, current_occupants=1)
        store.add_booking("bk", room_id="r1", num_occupants=1)
        store.add_booking("other", room_id="r2", num_occupants=1)

        with pytest.raises(RoomUnavailableError):
            lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="r2")

    def test_inactive_target_unavailable(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=1)
        store.add_room("r2", is_active=False)
        store.add_booking("bk", room_id="r1", num_occupants=1)

        with pytest.raises(RoomUnavailableError) as exc_info:
            lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="r2")
        assert exc_info.value.context["status"] == "inactive"

    def test_pending_booking_cannot_transfer(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=1)
        store.add_room("r2")
        store.add_booking("bk", room_id="r1", num_occupants=1, status=BookingStatus.PENDING_CHECKIN)

        with pytest.raises(InvalidTransitionError):
            lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="r2")

    def test_same_room_rejected(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=1)
        store.add_booking("bk", room_id="r1", num_occupants=1)

        with pytest.raises(InvalidInputError):
            lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="r1")

    def test_target_in_other_branch_is_not_found(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=1)
        store.add_room("r2", branch_id="other-branch")
        store.add_booking("bk", room_id="r1", num_occupants=1)

        with pytest.raises(RoomNotFoundError):
            lifecycle.transfer(branch_id=BRANCH, booking_id="bk", new_room_id="r2")
        assert store.rooms["r1"].current_occupants == 1


class TestExtendStay:
    def test_creates_extension_order_without_touching_occupancy(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=2, cost_amount="80.00")
        store.add_room("r2", max_occupants=3, current_occupants=1)
        store.add_booking("bk", room_id="r1", num_occupants=2, order_number="ACC-000042")
        store.add_booking("other", room_id="r2", num_occupants=1)
        before = {rid: r.current_occupants for rid, r in store.rooms.items()}

        result = lifecycle.extend_stay(branch_id=BRANCH, booking_id="bk", duration_count=3)

        assert {rid: r.current_occupants for rid, r in store.rooms.items()} == before
        assert result["total"] == Decimal("240.00")
        assert result["duration_unit"] == "night"
        order = store.orders[result["extension_order_id"]]
        assert order["status"] == "awaiting_payment"
        assert order["extension_of"] == "ACC-000042"
        assert order["notes"] == "Extension from booking ACC-000042"
        assert order["total"] == Decimal("240.00")
        item = store.order_items[-1]
        assert item["name"] == "Room R1 - Extension"
        assert item["quantity"] == 3
        assert item["booking_details"]["extension_of"] == "ACC-000042"
        assert store.event_types() == ["STAY_EXTENDED"]
        _assert_invariants(store)

    def test_moves_scheduled_check_out(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=1)
        store.add_booking("bk", room_id="r1", num_occupants=1)
        new_out = datetime(2026, 3, 5, 11, 0, tzinfo=timezone.utc)

        result = lifecycle.extend_stay(
            branch_id=BRANCH,
            booking_id="bk",
            duration_count=1,
            duration_unit="day",
            new_check_out=new_out,
        )

        assert result["booking"].scheduled_check_out == new_out
        assert result["duration_unit"] == "day"

    def test_zero_duration_rejected(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=1)
        store.add_booking("bk", room_id="r1", num_occupants=1)

        with pytest.raises(InvalidInputError):
            lifecycle.extend_stay(branch_id=BRANCH, booking_id="bk", duration_count=0)
        assert store.orders == {}

    def test_departed_booking_cannot_extend(self, store):
        store.add_room("r1")
        store.add_booking("bk", room_id="r1", num_occupants=1, status=BookingStatus.DEPARTED)

        with pytest.raises(InvalidTransitionError):
            lifecycle.extend_stay(branch_id=BRANCH, booking_id="bk", duration_count=1)


class TestDepart:
    def test_last_party_leaves_room_available(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=2)
        store.add_booking("bk", room_id="r1", num_occupants=2)

        result = lifecycle.depart(branch_id=BRANCH, booking_id="bk")

        assert result["room"].current_occupants == 0
        assert result["room"].status == DerivedStatus.AVAILABLE
        assert result["booking"].status == BookingStatus.DEPARTED
        assert result["booking"].actual_check_out is not None
        _assert_invariants(store)

    def test_other_party_stays(self, store):
        store.add_room("r1", max_occupants=4, current_occupants=4)
        store.add_booking("bk", room_id="r1", num_occupants=2)
        store.add_booking("other", room_id="r1", num_occupants=2)

        result = lifecycle.depart(branch_id=BRANCH, booking_id="bk")

        assert result["room"].current_occupants == 2
        assert result["room"].status == DerivedStatus.PARTIALLY_OCCUPIED
        _assert_invariants(store)

    def test_departure_from_maintenance_room_reaching_zero_is_available(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=2, status=ManualStatus.MAINTENANCE)
        store.add_booking("bk", room_id="r1", num_occupants=2)

        result = lifecycle.depart(branch_id=BRANCH, booking_id="bk")

        assert result["room"].status == DerivedStatus.AVAILABLE

    def test_departure_keeps_manual_status_while_guests_remain(self, store):
        store.add_room("r1", max_occupants=4, current_occupants=3, status=ManualStatus.MAINTENANCE)
        store.add_booking("bk", room_id="r1", num_occupants=1)
        store.add_booking("other", room_id="r1", num_occupants=2)

        result = lifecycle.depart(branch_id=BRANCH, booking_id="bk")

        assert result["room"].status == ManualStatus.MAINTENANCE
        assert result["room"].current_occupants == 2

    def test_departure_clamps_at_zero(self, store):
        store.add_room("r1", max_occupants=4, current_occupants=1)
        store.add_booking("bk", room_id="r1", num_occupants=3)

        result = lifecycle.depart(branch_id=BRANCH, booking_id="bk")

        assert result["room"].current_occupants == 0

    def test_pending_booking_cannot_depart(self, store):
        store.add_room("r1", current_occupants=1)
        store.add_booking("bk", room_id="r1", num_occupants=1, status=BookingStatus.PENDING_CHECKIN)

        with pytest.raises(InvalidTransitionError, match="pending_checkin"):
            lifecycle.depart(branch_id=BRANCH, booking_id="bk")

    def test_departed_is_terminal(self, store):
        store.add_room("r1", max_occupants=2, current_occupants=2)
        store.add_booking("bk", room_id="r1", num_occupants=2)
        lifecycle.depart(branch_id=BRANCH, booking_id="bk")

        with pytest.raises(InvalidTransitionError):
            lifecycle.depart(branch_id=BRANCH, booking_id="bk")
        assert store.rooms["r1"].current_occupants == 0


class TestFreeRoom:
    def test_clamps_to_zero(self, store):
        store.add_room("r1", max_occupants=4, current_occupants=3)

        room = lifecycle.free_room(branch_id=BRANCH, room_id="r1", people_leaving=5)

        assert room.current_occupants == 0
        assert room.status == DerivedStatus.AVAILABLE
        assert store.event_types() == ["ROOM_FREED"]
        assert store.events[0]["payload"]["occupants_before"] == 3

    def test_partial(self, store):
        store.add_room("r1", max_occupants=4, current_occupants=3)

        room = lifecycle.free_room(branch_id=BRANCH, room_id="r1", people_leaving=1)

        assert room.current_occupants == 2
        assert room.status == DerivedStatus.PARTIALLY_OCCUPIED

    def test_does_not_touch_bookings(self, store):
        store.add_room("r1", max_occupants=4, current_occupants=2)
        store.add_booking("bk", room_id="r1", num_occupants=2)

        lifecycle.free_room(branch_id=BRANCH, room_id="r1", people_leaving=2)

        assert store.bookings["bk"].status == BookingStatus.CHECKED_IN
        assert store.booked_occupants("r1") == 2
        assert store.rooms["r1"].current_occupants == 0

    @pytest.mark.parametrize("people_leaving", [0, -2])
    def test_non_positive_rejected(self, store, people_leaving):
        store.add_room("r1", current_occupants=1)

        with pytest.raises(InvalidInputError):
            lifecycle.free_room(branch_id=BRANCH, room_id="r1", people_leaving=people_leaving)

    def test_unknown_room(self, store):
        with pytest.raises(RoomNotFoundError):
            lifecycle.free_room(branch_id=BRANCH, room_id="missing", people_leaving=1)


class TestFullStay:
    def test_attach_check_in_transfer_extend_depart_keeps_invariants(self, store):
        store.add_room("r1", max_occupants=2)
        store.add_room("r2", max_occupants=3)

        booking = _attach("r1", 2)
        _assert_invariants(store)
        lifecycle.check_in(branch_id=BRANCH, booking_id=booking.id)
        _assert_invariants(store)
        lifecycle.transfer(branch_id=BRANCH, booking_id=booking.id, new_room_id="r2")
        _assert_invariants(store)
        lifecycle.extend_stay(branch_id=BRANCH, booking_id=booking.id, duration_count=2)
        _assert_invariants(store)
        lifecycle.depart(branch_id=BRANCH, booking_id=booking.id)
        _assert_invariants(store)

        assert store.event_types() == [
            "GUEST_BOOKING_CREATED",
            "GUEST_CHECKED_IN",
            "GUEST_TRANSFERRED",
            "STAY_EXTENDED",
            "GUEST_DEPARTED",
        ]
        assert all(e["correlation_id"] for e in store.events)
