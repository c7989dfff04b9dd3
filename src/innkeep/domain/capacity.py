"""Capacity validation for occupancy-changing operations.

Consulted before any operation that changes a room's occupant count or a
booking's room assignment. Checks raise; removal never does (it clamps).
"""

from __future__ import annotations

import logging

from innkeep.observability.logging import get_logger, log_event

from .errors import CapacityExceededError, RoomUnavailableError
from .models import GuestBooking, Room
from .occupancy import BOOKABLE_STATUSES, clamp_to_zero

logger = get_logger(__name__)


def can_add_occupants(room: Room, delta: int) -> None:
    """Raise CapacityExceededError if adding delta guests overflows the room."""
    new_total = room.current_occupants + delta
    if new_total > room.max_occupants:
        raise CapacityExceededError(
            f"Room capacity exceeded: adding {delta} guest(s) would bring total to "
            f"{new_total}, but max occupants is {room.max_occupants} "
            f"(currently {room.current_occupants} occupied).",
            room_id=room.id,
            room_number=room.room_number,
            current_occupants=room.current_occupants,
            requested=delta,
            max_occupants=room.max_occupants,
            overflow=new_total - room.max_occupants,
        )


def can_transfer_into(target: Room, booking: GuestBooking) -> None:
    """Check that a booking's whole party fits into the target room.

    Raises:
        RoomUnavailableError: Target inactive or not available/partially occupied.
        CapacityExceededError: Not enough free slots for booking.num_occupants.
    """
    if not target.is_active or target.status not in BOOKABLE_STATUSES:
        status = target.status.value if target.is_active else "inactive"
        raise RoomUnavailableError(
            f"Room {target.room_number} is not available for transfer (status: {status})",
            room_id=target.id,
            room_number=target.room_number,
            status=status,
        )

    if target.free_slots < booking.num_occupants:
        raise CapacityExceededError(
            f"Room {target.room_number} cannot fit {booking.num_occupants} guest(s). "
            f"Available capacity: {target.free_slots} (max {target.max_occupants}, "
            f"current {target.current_occupants}).",
            room_id=target.id,
            room_number=target.room_number,
            current_occupants=target.current_occupants,
            requested=booking.num_occupants,
            max_occupants=target.max_occupants,
            overflow=booking.num_occupants - target.free_slots,
        )


def remove_occupants(room: Room, delta: int) -> int:
    """Occupant count after delta guests leave, floored at zero.

    Never raises: removing more guests than recorded is a tolerated
    correction, logged so drift stays visible.
    """
    raw = room.current_occupants - delta
    remaining = clamp_to_zero(raw)
    if remaining != raw:
        log_event(
            logger,
            "occupancy clamped to zero",
            level=logging.WARNING,
            room_id=room.id,
            branch_id=room.branch_id,
            current_occupants=room.current_occupants,
            removed=delta,
        )
    return remaining
