"""Rooms repository - persistence for room definitions and occupancy.

Uses raw SQL with psycopg2 (no ORM). Every query is scoped by branch_id:
a room in another branch is indistinguishable from a missing one.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json

from innkeep.domain.models import Room
from innkeep.domain.occupancy import RoomStatus, parse_status
from innkeep.infra.db import for_update, for_update_all

ROOM_COLUMNS = """
    id, branch_id, room_number, category, floor_section,
    max_occupants, current_occupants, status, cost_amount, cost_duration,
    benefits, media_url, media_type, is_active
"""

# Columns a registry update may touch. Status and occupancy are excluded:
# they change only through the lifecycle engine or the manual-status path.
UPDATABLE_COLUMNS = (
    "room_number",
    "category",
    "floor_section",
    "max_occupants",
    "cost_amount",
    "cost_duration",
    "benefits",
    "media_url",
    "media_type",
    "is_active",
)


def _row_to_room(row: tuple) -> Room:
    return Room(
        id=str(row[0]),
        branch_id=row[1],
        room_number=row[2],
        category=row[3],
        floor_section=row[4],
        max_occupants=row[5],
        current_occupants=row[6],
        status=parse_status(row[7]),
        cost_amount=Decimal(row[8]),
        cost_duration=row[9],
        benefits=list(row[10] or []),
        media_url=row[11],
        media_type=row[12],
        is_active=row[13],
    )


def get_room(cur: PgCursor, *, branch_id: str, room_id: str) -> Room | None:
    """Read a room without locking it."""
    cur.execute(
        f"SELECT {ROOM_COLUMNS} FROM rooms WHERE branch_id = %s AND id = %s",
        (branch_id, room_id),
    )
    row = cur.fetchone()
    return _row_to_room(row) if row is not None else None


def lock_room(cur: PgCursor, *, branch_id: str, room_id: str) -> Room | None:
    """Read and lock a room row until the surrounding transaction ends."""
    row = for_update(
        cur,
        f"SELECT {ROOM_COLUMNS} FROM rooms WHERE branch_id = %s AND id = %s",
        (branch_id, room_id),
    )
    return _row_to_room(row) if row is not None else None


def lock_rooms(
    cur: PgCursor,
    *,
    branch_id: str,
    room_ids: Iterable[str],
) -> dict[str, Room]:
    """Lock several rooms in one statement, lowest id first.

    Two transfers crossing between the same pair of rooms in opposite
    directions both acquire the lower id first, so neither can hold one
    room while waiting on the other.

    Returns:
        Mapping of room id to Room for the rooms found in the branch.
    """
    ids = sorted(set(room_ids))
    rows = for_update_all(
        cur,
        f"""
        SELECT {ROOM_COLUMNS} FROM rooms
        WHERE branch_id = %s AND id = ANY(%s)
        ORDER BY id
        """,
        (branch_id, ids),
    )
    return {room.id: room for room in map(_row_to_room, rows)}


def list_rooms(
    cur: PgCursor,
    *,
    branch_id: str,
    status: str | None = None,
) -> list[Room]:
    """List active rooms for a branch ordered by room number."""
    conditions = ["branch_id = %s", "is_active = true"]
    params: list[Any] = [branch_id]
    if status is not None:
        conditions.append("status = %s")
        params.append(status)

    cur.execute(
        f"""
        SELECT {ROOM_COLUMNS} FROM rooms
        WHERE {" AND ".join(conditions)}
        ORDER BY room_number
        """,
        params,
    )
    return [_row_to_room(row) for row in cur.fetchall()]


def room_number_taken(
    cur: PgCursor,
    *,
    branch_id: str,
    room_number: str,
    exclude_room_id: str | None = None,
) -> bool:
    """True if another room in the branch already uses room_number."""
    query = "SELECT 1 FROM rooms WHERE branch_id = %s AND room_number = %s"
    params: list[Any] = [branch_id, room_number]
    if exclude_room_id is not None:
        query += " AND id != %s"
        params.append(exclude_room_id)
    cur.execute(query, params)
    return cur.fetchone() is not None


def insert_room(
    cur: PgCursor,
    *,
    branch_id: str,
    room_number: str,
    max_occupants: int,
    cost_amount: Decimal,
    cost_duration: str,
    category: str,
    floor_section: str | None,
    benefits: list[str],
    media_url: str | None,
    media_type: str | None,
    created_by: str | None,
) -> Room:
    """Insert a new, empty, available room."""
    cur.execute(
        f"""
        INSERT INTO rooms (
            branch_id, room_number, category, floor_section,
            max_occupants, current_occupants, status,
            cost_amount, cost_duration, benefits,
            media_url, media_type, is_active, created_by
        )
        VALUES (%s, %s, %s, %s, %s, 0, 'available', %s, %s, %s, %s, %s, true, %s)
        RETURNING {ROOM_COLUMNS}
        """,
        (
            branch_id,
            room_number,
            category,
            floor_section,
            max_occupants,
            cost_amount,
            cost_duration,
            Json(benefits),
            media_url,
            media_type,
            created_by,
        ),
    )
    return _row_to_room(cur.fetchone())


def update_room_fields(
    cur: PgCursor,
    *,
    branch_id: str,
    room_id: str,
    fields: dict[str, Any],
    status: RoomStatus | None = None,
) -> Room | None:
    """Partially update registry columns (and optionally re-derived status).

    Raises:
        ValueError: If fields names a column outside UPDATABLE_COLUMNS.
    """
    unknown = set(fields) - set(UPDATABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update room columns: {sorted(unknown)}")

    sets: list[str] = ["updated_at = now()"]
    params: list[Any] = []
    for column in UPDATABLE_COLUMNS:
        if column in fields:
            sets.append(f"{column} = %s")
            value = fields[column]
            params.append(Json(value) if column == "benefits" else value)
    if status is not None:
        sets.append("status = %s")
        params.append(status.value)

    params.extend([branch_id, room_id])
    cur.execute(
        f"""
        UPDATE rooms
        SET {", ".join(sets)}
        WHERE branch_id = %s AND id = %s
        RETURNING {ROOM_COLUMNS}
        """,  # noqa: S608 – only whitelisted column names are interpolated
        params,
    )
    row = cur.fetchone()
    return _row_to_room(row) if row is not None else None


def write_occupancy(
    cur: PgCursor,
    *,
    branch_id: str,
    room_id: str,
    current_occupants: int,
    status: RoomStatus,
) -> Room:
    """Store a room's new occupant count together with its status.

    Count and status are always written in the same statement so a reader
    never sees one without the other.
    """
    cur.execute(
        f"""
        UPDATE rooms
        SET current_occupants = %s, status = %s, updated_at = now()
        WHERE branch_id = %s AND id = %s
        RETURNING {ROOM_COLUMNS}
        """,
        (current_occupants, status.value, branch_id, room_id),
    )
    return _row_to_room(cur.fetchone())


def write_status(
    cur: PgCursor,
    *,
    branch_id: str,
    room_id: str,
    status: RoomStatus,
) -> Room | None:
    """Overwrite only the status column (manual set / clear)."""
    cur.execute(
        f"""
        UPDATE rooms
        SET status = %s, updated_at = now()
        WHERE branch_id = %s AND id = %s
        RETURNING {ROOM_COLUMNS}
        """,
        (status.value, branch_id, room_id),
    )
    row = cur.fetchone()
    return _row_to_room(row) if row is not None else None
