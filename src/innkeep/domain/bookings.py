"""Read side of the booking store."""

from __future__ import annotations

from innkeep.infra.db import txn
from innkeep.infra.repositories.bookings_repository import (
    get_booking as _get_booking,
    list_bookings as _list_bookings,
)

from .errors import BookingNotFoundError
from .models import BookingStatus, GuestBooking


def get_booking(*, branch_id: str, booking_id: str) -> GuestBooking:
    with txn() as cur:
        booking = _get_booking(cur, branch_id=branch_id, booking_id=booking_id)
    if booking is None:
        raise BookingNotFoundError(booking_id)
    return booking


def list_bookings(*, branch_id: str, status: BookingStatus) -> list[GuestBooking]:
    """Bookings of one lifecycle state, newest first (pending check-ins, in-stay, ...)."""
    with txn() as cur:
        return _list_bookings(cur, branch_id=branch_id, status=status)
