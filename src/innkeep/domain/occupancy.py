"""Occupancy deriver.

Room status is a tagged value: either derived from the occupant count
(available / partially_occupied / occupied) or set manually by staff
(maintenance / reserved). Lifecycle transitions only ever write derived
values; manual values come exclusively from set_manual_status.
"""

from __future__ import annotations

from enum import Enum
from typing import Union


class DerivedStatus(str, Enum):
    AVAILABLE = "available"
    PARTIALLY_OCCUPIED = "partially_occupied"
    OCCUPIED = "occupied"


class ManualStatus(str, Enum):
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


RoomStatus = Union[DerivedStatus, ManualStatus]

# Statuses a guest may be transferred into.
BOOKABLE_STATUSES = (DerivedStatus.AVAILABLE, DerivedStatus.PARTIALLY_OCCUPIED)


def parse_status(value: str) -> RoomStatus:
    """Map a stored status string onto its tagged variant.

    Raises:
        ValueError: For a string that is neither derived nor manual.
    """
    for enum_cls in (DerivedStatus, ManualStatus):
        try:
            return enum_cls(value)
        except ValueError:
            continue
    raise ValueError(f"Unknown room status: {value!r}")


def derive_status(occupants: int, max_occupants: int) -> DerivedStatus:
    """Derive room status from its occupancy numbers.

    - occupants <= 0          → available
    - occupants >= max        → occupied
    - otherwise               → partially_occupied
    """
    if occupants <= 0:
        return DerivedStatus.AVAILABLE
    if occupants >= max_occupants:
        return DerivedStatus.OCCUPIED
    return DerivedStatus.PARTIALLY_OCCUPIED


def is_manual(status: RoomStatus | str) -> bool:
    return isinstance(parse_status(status), ManualStatus)


def clamp_to_zero(value: int) -> int:
    """Floor an occupant count at zero.

    Removing more guests than recorded is tolerated: the count stops at 0
    instead of raising. Callers log when this actually clamps.
    """
    return value if value > 0 else 0


def resolve_status(
    current: RoomStatus | str,
    occupants: int,
    max_occupants: int,
    *,
    release_manual: bool = False,
) -> RoomStatus:
    """Status to store after an occupancy change.

    A manual status survives while the room still holds guests; once the
    count reaches 0 (or the caller explicitly releases it) the derived
    status takes over again.
    """
    if is_manual(current) and occupants > 0 and not release_manual:
        return parse_status(current)
    return derive_status(occupants, max_occupants)
