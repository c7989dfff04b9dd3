"""Occupancy consistency check.

A room's current_occupants should equal the guests of its pending and
checked-in bookings. free_room deliberately bypasses bookings, so the two
can drift apart; this module reports the drift for operational
reconciliation and never rewrites either side.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from innkeep.infra.db import txn
from innkeep.infra.repositories.bookings_repository import active_occupants_by_room
from innkeep.infra.repositories.rooms_repository import list_rooms
from innkeep.observability.logging import get_logger, log_event

from .models import Room

logger = get_logger(__name__)


@dataclass(frozen=True)
class OccupancyDrift:
    room_id: str
    room_number: str
    recorded_occupants: int
    booked_occupants: int

    @property
    def difference(self) -> int:
        return self.recorded_occupants - self.booked_occupants

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "room_number": self.room_number,
            "recorded_occupants": self.recorded_occupants,
            "booked_occupants": self.booked_occupants,
            "difference": self.difference,
        }


def compare_occupancy(rooms: list[Room], booked: dict[str, int]) -> list[OccupancyDrift]:
    """Rooms whose recorded count differs from the sum of their active bookings."""
    drift = []
    for room in rooms:
        expected = booked.get(room.id, 0)
        if room.current_occupants != expected:
            drift.append(
                OccupancyDrift(
                    room_id=room.id,
                    room_number=room.room_number,
                    recorded_occupants=room.current_occupants,
                    booked_occupants=expected,
                )
            )
    return drift


def find_occupancy_drift(*, branch_id: str) -> list[OccupancyDrift]:
    """Compare every active room of a branch against its active bookings.

    Both sides are read in one REPEATABLE READ transaction, so they share one
    snapshot and a transition committing between the two reads cannot show
    up as drift.
    """
    with txn() as cur:
        cur.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ")
        rooms = list_rooms(cur, branch_id=branch_id)
        booked = active_occupants_by_room(cur, branch_id=branch_id)

    drift = compare_occupancy(rooms, booked)
    if drift:
        log_event(
            logger,
            "occupancy drift detected",
            level=logging.WARNING,
            branch_id=branch_id,
            rooms_checked=len(rooms),
            rooms_drifted=len(drift),
        )
    return drift
