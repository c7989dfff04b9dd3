"""Error taxonomy for the room occupancy engine.

All failures are raised synchronously to the caller with enough context to
act on (current vs. requested counts, current status). None is retried
inside the engine.
"""

from __future__ import annotations

from typing import Any


class LifecycleError(Exception):
    """Base class for every occupancy/booking failure."""

    kind = "lifecycle_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "detail": self.message, **self.context}


class NotFoundError(LifecycleError):
    """Row is missing or belongs to another branch."""

    kind = "not_found"


class RoomNotFoundError(NotFoundError):
    kind = "room_not_found"

    def __init__(self, room_id: str) -> None:
        super().__init__(f"Room {room_id} not found", room_id=room_id)


class BookingNotFoundError(NotFoundError):
    kind = "booking_not_found"

    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking {booking_id} not found", booking_id=booking_id)


class InvalidTransitionError(LifecycleError):
    """Operation attempted from a state that does not permit it."""

    kind = "invalid_transition"


class CapacityExceededError(LifecycleError):
    """Operation would push a room above max_occupants."""

    kind = "capacity_exceeded"


class RoomUnavailableError(LifecycleError):
    """Target room is not in a bookable status."""

    kind = "room_unavailable"


class InvalidInputError(LifecycleError):
    """Non-positive counts, missing timestamps, duplicates and similar."""

    kind = "invalid_input"
