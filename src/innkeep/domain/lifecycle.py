"""Guest-booking lifecycle - the only code that mutates rooms and bookings together.

States: pending_checkin → checked_in → departed (terminal). Transfer and
extend are actions allowed only while checked_in.

Each operation is one transaction:
lock booking → lock room(s) → validate → write room(s) → write booking → emit event.

Lock order is global: the booking row (if any) first, then rooms in
ascending id order. Any exception rolls the whole transaction back, so a
guest is never left in no room or in two rooms.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from innkeep.infra.db import txn
from innkeep.infra.repositories.bookings_repository import (
    insert_booking,
    lock_booking,
    mark_checked_in,
    mark_departed,
    move_booking,
    update_scheduled_check_out,
)
from innkeep.infra.repositories.outbox_repository import (
    GUEST_BOOKING_CREATED,
    GUEST_CHECKED_IN,
    GUEST_DEPARTED,
    GUEST_TRANSFERRED,
    ROOM_FREED,
    STAY_EXTENDED,
    emit_event,
)
from innkeep.infra.repositories.rooms_repository import (
    get_room,
    lock_room,
    lock_rooms,
    write_occupancy,
)
from innkeep.infra.time import as_utc, utc_now
from innkeep.observability.correlation import ensure_correlation_id
from innkeep.observability.logging import get_logger, log_event

from .capacity import can_add_occupants, can_transfer_into, remove_occupants
from .errors import (
    BookingNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
    RoomNotFoundError,
    RoomUnavailableError,
)
from .models import DEFAULT_CUSTOMER_NAME, BookingStatus, GuestBooking, Room, TransferEntry
from .occupancy import ManualStatus, resolve_status
from .orders import create_extension_order

logger = get_logger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _require_at_least_one(name: str, value: int | None) -> None:
    if value is None or value < 1:
        raise InvalidInputError(f"{name} must be at least 1", field=name, value=value)


def _require_status(booking: GuestBooking, expected: BookingStatus, message: str) -> None:
    if booking.status != expected:
        raise InvalidTransitionError(
            message,
            booking_id=booking.id,
            status=booking.status.value,
            expected=expected.value,
        )


def _locked_booking(cur: PgCursor, branch_id: str, booking_id: str) -> GuestBooking:
    booking = lock_booking(cur, branch_id=branch_id, booking_id=booking_id)
    if booking is None:
        raise BookingNotFoundError(booking_id)
    return booking


def _locked_room(cur: PgCursor, branch_id: str, room_id: str) -> Room:
    room = lock_room(cur, branch_id=branch_id, room_id=room_id)
    if room is None:
        raise RoomNotFoundError(room_id)
    return room


def _store_occupancy(
    cur: PgCursor,
    room: Room,
    occupants: int,
    *,
    release_manual: bool = False,
) -> Room:
    """Write a new occupant count with the status resolved from it."""
    status = resolve_status(
        room.status,
        occupants,
        room.max_occupants,
        release_manual=release_manual,
    )
    return write_occupancy(
        cur,
        branch_id=room.branch_id,
        room_id=room.id,
        current_occupants=occupants,
        status=status,
    )


# ── attachBookingToOrder ──────────────────────────────────────────────────────


def attach_booking_to_order(
    *,
    branch_id: str,
    room_id: str,
    order_id: str | None,
    order_number: str | None,
    num_people: int,
    check_in: datetime | None,
    check_out: datetime | None = None,
    duration_count: int = 1,
    duration_unit: str = "night",
    customer_name: str | None = None,
    notes: str | None = None,
    correlation_id: str | None = None,
    cur: PgCursor | None = None,
) -> GuestBooking:
    """Attach a room booking to an order and count its guests into the room.

    Pass the order's cursor so the booking and the order line item share one
    unit of work: if either fails, neither remains.

    Raises:
        InvalidInputError: num_people/duration_count < 1 or missing check_in.
        RoomNotFoundError: Room missing, inactive, or in another branch.
        RoomUnavailableError: Room is under maintenance.
        CapacityExceededError: Guests would overflow max_occupants (hard stop).
    """
    _require_at_least_one("num_people", num_people)
    _require_at_least_one("duration_count", duration_count)
    if check_in is None:
        raise InvalidInputError("check_in is required", field="check_in")

    correlation_id = correlation_id or ensure_correlation_id()

    def _do(c: PgCursor) -> tuple[GuestBooking, Room]:
        room = lock_room(c, branch_id=branch_id, room_id=room_id)
        if room is None or not room.is_active:
            raise RoomNotFoundError(room_id)

        if room.status == ManualStatus.MAINTENANCE:
            raise RoomUnavailableError(
                f"Room {room.room_number} is under maintenance",
                room_id=room.id,
                room_number=room.room_number,
                status=room.status.value,
            )

        can_add_occupants(room, num_people)

        # A reserved room is being taken by the booking it was held for.
        room = _store_occupancy(
            c,
            room,
            room.current_occupants + num_people,
            release_manual=room.status == ManualStatus.RESERVED,
        )

        booking = insert_booking(
            c,
            branch_id=branch_id,
            room_id=room.id,
            room_number=room.room_number,
            order_id=order_id,
            order_number=order_number,
            customer_name=(customer_name or "").strip() or DEFAULT_CUSTOMER_NAME,
            num_occupants=num_people,
            scheduled_check_in=as_utc(check_in),
            scheduled_check_out=as_utc(check_out),
            duration_count=duration_count,
            duration_unit=duration_unit,
            notes=notes,
        )

        emit_event(
            c,
            branch_id=branch_id,
            event_type=GUEST_BOOKING_CREATED,
            aggregate_type="guest_booking",
            aggregate_id=booking.id,
            payload={
                "room_id": room.id,
                "order_id": order_id,
                "num_occupants": num_people,
                "room_occupants": room.current_occupants,
                "room_status": room.status.value,
            },
            correlation_id=correlation_id,
        )
        return booking, room

    if cur is not None:
        booking, room = _do(cur)
    else:
        with txn() as c:
            booking, room = _do(c)

    log_event(
        logger,
        "guest booking attached",
        branch_id=branch_id,
        booking_id=booking.id,
        room_id=room.id,
        order_id=order_id,
        num_occupants=num_people,
        room_occupants=room.current_occupants,
        room_status=room.status,
    )
    return booking


# ── checkIn ───────────────────────────────────────────────────────────────────


def check_in(
    *,
    branch_id: str,
    booking_id: str,
    actual_check_in: datetime | None = None,
    num_occupants: int | None = None,
    notes: str | None = None,
    staff_id: str | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Check a pending booking in, optionally correcting its head count.

    A revised head count moves the room by the delta between the old and new
    counts, never by re-adding the new count. An increase is capacity-checked;
    a decrease is clamped at zero.

    Returns:
        {"booking": GuestBooking, "room": Room}

    Raises:
        BookingNotFoundError, InvalidTransitionError, InvalidInputError,
        CapacityExceededError.
    """
    if num_occupants is not None:
        _require_at_least_one("num_occupants", num_occupants)

    correlation_id = correlation_id or ensure_correlation_id()
    checked_in_at = as_utc(actual_check_in) or utc_now()

    with txn() as cur:
        booking = _locked_booking(cur, branch_id, booking_id)
        _require_status(
            booking,
            BookingStatus.PENDING_CHECKIN,
            f"Cannot check in: booking is already {booking.status.value}",
        )

        new_count = booking.num_occupants if num_occupants is None else num_occupants
        delta = new_count - booking.num_occupants

        room = _locked_room(cur, branch_id, booking.room_id)
        if delta > 0:
            can_add_occupants(room, delta)
            room = _store_occupancy(cur, room, room.current_occupants + delta)
        elif delta < 0:
            room = _store_occupancy(cur, room, remove_occupants(room, -delta))

        booking = mark_checked_in(
            cur,
            branch_id=branch_id,
            booking_id=booking_id,
            actual_check_in=checked_in_at,
            num_occupants=new_count,
            notes=notes,
            checked_in_by=staff_id,
        )

        emit_event(
            cur,
            branch_id=branch_id,
            event_type=GUEST_CHECKED_IN,
            aggregate_type="guest_booking",
            aggregate_id=booking_id,
            payload={
                "room_id": room.id,
                "num_occupants": new_count,
                "occupant_delta": delta,
                "room_occupants": room.current_occupants,
            },
            correlation_id=correlation_id,
        )

    log_event(
        logger,
        "guest checked in",
        branch_id=branch_id,
        booking_id=booking_id,
        room_id=room.id,
        occupant_delta=delta,
        room_occupants=room.current_occupants,
        room_status=room.status,
    )
    return {"booking": booking, "room": room}


# ── transfer ──────────────────────────────────────────────────────────────────


def transfer(
    *,
    branch_id: str,
    booking_id: str,
    new_room_id: str,
    notes: str | None = None,
    staff_name: str | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Move a checked-in party to another room atomically.

    Both rooms are locked in a single statement in ascending id order, so two
    transfers crossing in opposite directions cannot deadlock.

    Returns:
        {"booking": GuestBooking, "from_room": Room, "to_room": Room}

    Raises:
        BookingNotFoundError, RoomNotFoundError, InvalidTransitionError,
        InvalidInputError (same room), RoomUnavailableError, CapacityExceededError.
    """
    if not new_room_id:
        raise InvalidInputError("new_room_id is required", field="new_room_id")

    correlation_id = correlation_id or ensure_correlation_id()

    with txn() as cur:
        booking = _locked_booking(cur, branch_id, booking_id)
        _require_status(
            booking,
            BookingStatus.CHECKED_IN,
            f"Can only transfer checked-in guests (current: {booking.status.value})",
        )
        if new_room_id == booking.room_id:
            raise InvalidInputError(
                f"Booking is already in room {booking.room_number}",
                field="new_room_id",
                room_id=new_room_id,
            )

        rooms = lock_rooms(cur, branch_id=branch_id, room_ids=[booking.room_id, new_room_id])
        target = rooms.get(new_room_id)
        if target is None:
            raise RoomNotFoundError(new_room_id)
        origin = rooms.get(booking.room_id)
        if origin is None:
            raise RoomNotFoundError(booking.room_id)

        can_transfer_into(target, booking)

        from_room = _store_occupancy(cur, origin, remove_occupants(origin, booking.num_occupants))
        to_room = _store_occupancy(cur, target, target.current_occupants + booking.num_occupants)

        entry = TransferEntry(
            from_room_id=origin.id,
            from_room_number=origin.room_number,
            to_room_id=target.id,
            to_room_number=target.room_number,
            by=staff_name,
            at=utc_now(),
            notes=notes,
        )
        booking = move_booking(
            cur,
            branch_id=branch_id,
            booking_id=booking_id,
            room_id=target.id,
            room_number=target.room_number,
            history_entry=entry.to_dict(),
            notes=notes,
        )

        emit_event(
            cur,
            branch_id=branch_id,
            event_type=GUEST_TRANSFERRED,
            aggregate_type="guest_booking",
            aggregate_id=booking_id,
            payload={
                "from_room_id": origin.id,
                "to_room_id": target.id,
                "num_occupants": booking.num_occupants,
                "from_room_occupants": from_room.current_occupants,
                "to_room_occupants": to_room.current_occupants,
            },
            correlation_id=correlation_id,
        )

    log_event(
        logger,
        "guest transferred",
        branch_id=branch_id,
        booking_id=booking_id,
        from_room_id=from_room.id,
        to_room_id=to_room.id,
        num_occupants=booking.num_occupants,
        from_room_status=from_room.status,
        to_room_status=to_room.status,
    )
    return {"booking": booking, "from_room": from_room, "to_room": to_room}


# ── extendStay ────────────────────────────────────────────────────────────────


def extend_stay(
    *,
    branch_id: str,
    booking_id: str,
    duration_count: int,
    duration_unit: str | None = None,
    new_check_in: datetime | None = None,
    new_check_out: datetime | None = None,
    notes: str | None = None,
    staff_id: str | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Bill additional time for a checked-in booking.

    The guests are already counted in their room, so occupancy is not
    touched; only a separate extension order is created and, when given,
    scheduled_check_out moves.

    Returns:
        {"extension_order_id", "extension_order_number", "total",
         "duration_count", "duration_unit", "booking"}

    Raises:
        InvalidInputError, BookingNotFoundError, InvalidTransitionError,
        RoomNotFoundError.
    """
    _require_at_least_one("duration_count", duration_count)

    correlation_id = correlation_id or ensure_correlation_id()

    with txn() as cur:
        booking = _locked_booking(cur, branch_id, booking_id)
        _require_status(
            booking,
            BookingStatus.CHECKED_IN,
            f"Can only extend checked-in guests (current: {booking.status.value})",
        )

        room = get_room(cur, branch_id=branch_id, room_id=booking.room_id)
        if room is None:
            raise RoomNotFoundError(booking.room_id)

        unit = duration_unit or room.cost_duration or "night"
        total: Decimal = room.cost_amount * duration_count

        order_id, order_number = create_extension_order(
            cur,
            branch_id=branch_id,
            booking=booking,
            room=room,
            duration_count=duration_count,
            duration_unit=unit,
            new_check_in=as_utc(new_check_in),
            new_check_out=as_utc(new_check_out),
            notes=notes,
            created_by=staff_id,
        )

        if new_check_out is not None:
            booking = update_scheduled_check_out(
                cur,
                branch_id=branch_id,
                booking_id=booking_id,
                scheduled_check_out=as_utc(new_check_out),
            )

        emit_event(
            cur,
            branch_id=branch_id,
            event_type=STAY_EXTENDED,
            aggregate_type="guest_booking",
            aggregate_id=booking_id,
            payload={
                "extension_order_id": order_id,
                "extension_of": booking.order_number,
                "duration_count": duration_count,
                "duration_unit": unit,
                "total": str(total),
            },
            correlation_id=correlation_id,
        )

    log_event(
        logger,
        "stay extended",
        branch_id=branch_id,
        booking_id=booking_id,
        extension_order_id=order_id,
        duration_count=duration_count,
        total=total,
    )
    return {
        "extension_order_id": order_id,
        "extension_order_number": order_number,
        "total": total,
        "duration_count": duration_count,
        "duration_unit": unit,
        "booking": booking,
    }


# ── depart ────────────────────────────────────────────────────────────────────


def depart(
    *,
    branch_id: str,
    booking_id: str,
    actual_check_out: datetime | None = None,
    notes: str | None = None,
    staff_id: str | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Check a guest party out and release its places in the room.

    Returns:
        {"booking": GuestBooking, "room": Room}

    Raises:
        BookingNotFoundError, InvalidTransitionError.
    """
    correlation_id = correlation_id or ensure_correlation_id()
    departed_at = as_utc(actual_check_out) or utc_now()

    with txn() as cur:
        booking = _locked_booking(cur, branch_id, booking_id)
        _require_status(
            booking,
            BookingStatus.CHECKED_IN,
            f"Cannot depart: booking status is {booking.status.value}",
        )

        room = _locked_room(cur, branch_id, booking.room_id)
        room = _store_occupancy(cur, room, remove_occupants(room, booking.num_occupants))

        booking = mark_departed(
            cur,
            branch_id=branch_id,
            booking_id=booking_id,
            actual_check_out=departed_at,
            notes=notes,
            departed_by=staff_id,
        )

        emit_event(
            cur,
            branch_id=branch_id,
            event_type=GUEST_DEPARTED,
            aggregate_type="guest_booking",
            aggregate_id=booking_id,
            payload={
                "room_id": room.id,
                "num_occupants": booking.num_occupants,
                "room_occupants": room.current_occupants,
            },
            correlation_id=correlation_id,
        )

    log_event(
        logger,
        "guest departed",
        branch_id=branch_id,
        booking_id=booking_id,
        room_id=room.id,
        room_occupants=room.current_occupants,
        room_status=room.status,
    )
    return {"booking": booking, "room": room}


# ── freeRoom ──────────────────────────────────────────────────────────────────


def free_room(
    *,
    branch_id: str,
    room_id: str,
    people_leaving: int,
    staff_id: str | None = None,
    correlation_id: str | None = None,
) -> Room:
    """Partial checkout at room level, not tied to any booking.

    Booking rows are left untouched, so this can desynchronise the room's
    count from its active bookings; find_occupancy_drift reports that.

    Raises:
        InvalidInputError: people_leaving < 1.
        RoomNotFoundError: Room missing or in another branch.
    """
    _require_at_least_one("people_leaving", people_leaving)

    correlation_id = correlation_id or ensure_correlation_id()

    with txn() as cur:
        room = _locked_room(cur, branch_id, room_id)
        before = room.current_occupants
        room = _store_occupancy(cur, room, remove_occupants(room, people_leaving))

        emit_event(
            cur,
            branch_id=branch_id,
            event_type=ROOM_FREED,
            aggregate_type="room",
            aggregate_id=room_id,
            payload={
                "people_leaving": people_leaving,
                "occupants_before": before,
                "occupants_after": room.current_occupants,
                "freed_by": staff_id,
            },
            correlation_id=correlation_id,
        )

    log_event(
        logger,
        "room freed outside booking lifecycle",
        level=logging.WARNING,
        branch_id=branch_id,
        room_id=room_id,
        people_leaving=people_leaving,
        occupants_before=before,
        occupants_after=room.current_occupants,
        room_status=room.status,
    )
    return room
