"""Room and guest-booking records as seen by the lifecycle engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from .occupancy import RoomStatus


class BookingStatus(str, Enum):
    PENDING_CHECKIN = "pending_checkin"
    CHECKED_IN = "checked_in"
    DEPARTED = "departed"


# Bookings in these states count towards their room's current_occupants.
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING_CHECKIN, BookingStatus.CHECKED_IN)

COST_DURATIONS = ("night", "day", "hour")
MEDIA_TYPES = ("image", "video")
DEFAULT_CUSTOMER_NAME = "Walk In Customer"


@dataclass(frozen=True)
class Room:
    id: str
    branch_id: str
    room_number: str
    max_occupants: int
    current_occupants: int
    status: RoomStatus
    cost_amount: Decimal
    cost_duration: str
    category: str = "regular"
    floor_section: str | None = None
    benefits: list[str] = field(default_factory=list)
    media_url: str | None = None
    media_type: str | None = None
    is_active: bool = True

    @property
    def free_slots(self) -> int:
        return self.max_occupants - self.current_occupants

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "room_number": self.room_number,
            "category": self.category,
            "floor_section": self.floor_section,
            "max_occupants": self.max_occupants,
            "current_occupants": self.current_occupants,
            "status": self.status.value,
            "cost_amount": str(self.cost_amount),
            "cost_duration": self.cost_duration,
            "benefits": list(self.benefits),
            "media_url": self.media_url,
            "media_type": self.media_type,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class TransferEntry:
    from_room_id: str
    from_room_number: str
    to_room_id: str
    to_room_number: str
    by: str | None
    at: datetime
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_room_id": self.from_room_id,
            "from_room_number": self.from_room_number,
            "to_room_id": self.to_room_id,
            "to_room_number": self.to_room_number,
            "by": self.by,
            "at": self.at.isoformat(),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class GuestBooking:
    id: str
    branch_id: str
    room_id: str
    room_number: str
    order_id: str | None
    order_number: str | None
    customer_name: str
    num_occupants: int
    status: BookingStatus
    duration_count: int
    duration_unit: str
    scheduled_check_in: datetime | None = None
    scheduled_check_out: datetime | None = None
    actual_check_in: datetime | None = None
    actual_check_out: datetime | None = None
    transfer_history: list[dict[str, Any]] = field(default_factory=list)
    notes: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    def to_dict(self) -> dict[str, Any]:
        def _iso(value: datetime | None) -> str | None:
            return value.isoformat() if value is not None else None

        return {
            "id": self.id,
            "branch_id": self.branch_id,
            "room_id": self.room_id,
            "room_number": self.room_number,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "num_occupants": self.num_occupants,
            "status": self.status.value,
            "duration_count": self.duration_count,
            "duration_unit": self.duration_unit,
            "scheduled_check_in": _iso(self.scheduled_check_in),
            "scheduled_check_out": _iso(self.scheduled_check_out),
            "actual_check_in": _iso(self.actual_check_in),
            "actual_check_out": _iso(self.actual_check_out),
            "transfer_history": list(self.transfer_history),
            "notes": self.notes,
        }
