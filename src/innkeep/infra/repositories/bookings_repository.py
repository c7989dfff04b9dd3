"""Guest bookings repository - persistence for booking records.

Uses raw SQL with psycopg2 (no ORM). Every query is scoped by branch_id.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json

from innkeep.domain.models import ACTIVE_BOOKING_STATUSES, BookingStatus, GuestBooking
from innkeep.infra.db import for_update

BOOKING_COLUMNS = """
    id, branch_id, room_id, room_number, order_id, order_number,
    customer_name, num_occupants, status, duration_count, duration_unit,
    scheduled_check_in, scheduled_check_out, actual_check_in, actual_check_out,
    transfer_history, notes
"""


def _row_to_booking(row: tuple) -> GuestBooking:
    return GuestBooking(
        id=str(row[0]),
        branch_id=row[1],
        room_id=str(row[2]),
        room_number=row[3],
        order_id=str(row[4]) if row[4] is not None else None,
        order_number=row[5],
        customer_name=row[6],
        num_occupants=row[7],
        status=BookingStatus(row[8]),
        duration_count=row[9],
        duration_unit=row[10],
        scheduled_check_in=row[11],
        scheduled_check_out=row[12],
        actual_check_in=row[13],
        actual_check_out=row[14],
        transfer_history=list(row[15] or []),
        notes=row[16],
    )


def insert_booking(
    cur: PgCursor,
    *,
    branch_id: str,
    room_id: str,
    room_number: str,
    order_id: str | None,
    order_number: str | None,
    customer_name: str,
    num_occupants: int,
    scheduled_check_in: datetime,
    scheduled_check_out: datetime | None,
    duration_count: int,
    duration_unit: str,
    notes: str | None = None,
) -> GuestBooking:
    """Insert a booking in pending_checkin state."""
    cur.execute(
        f"""
        INSERT INTO guest_bookings (
            branch_id, room_id, room_number, order_id, order_number,
            customer_name, num_occupants, status,
            scheduled_check_in, scheduled_check_out,
            duration_count, duration_unit, notes
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING {BOOKING_COLUMNS}
        """,
        (
            branch_id,
            room_id,
            room_number,
            order_id,
            order_number,
            customer_name,
            num_occupants,
            BookingStatus.PENDING_CHECKIN.value,
            scheduled_check_in,
            scheduled_check_out,
            duration_count,
            duration_unit,
            notes,
        ),
    )
    return _row_to_booking(cur.fetchone())


def get_booking(cur: PgCursor, *, branch_id: str, booking_id: str) -> GuestBooking | None:
    cur.execute(
        f"SELECT {BOOKING_COLUMNS} FROM guest_bookings WHERE branch_id = %s AND id = %s",
        (branch_id, booking_id),
    )
    row = cur.fetchone()
    return _row_to_booking(row) if row is not None else None


def lock_booking(cur: PgCursor, *, branch_id: str, booking_id: str) -> GuestBooking | None:
    """Read and lock a booking row; always taken before any room lock."""
    row = for_update(
        cur,
        f"SELECT {BOOKING_COLUMNS} FROM guest_bookings WHERE branch_id = %s AND id = %s",
        (branch_id, booking_id),
    )
    return _row_to_booking(row) if row is not None else None


def list_bookings(
    cur: PgCursor,
    *,
    branch_id: str,
    status: BookingStatus,
) -> list[GuestBooking]:
    cur.execute(
        f"""
        SELECT {BOOKING_COLUMNS} FROM guest_bookings
        WHERE branch_id = %s AND status = %s
        ORDER BY created_at DESC
        """,
        (branch_id, status.value),
    )
    return [_row_to_booking(row) for row in cur.fetchall()]


def mark_checked_in(
    cur: PgCursor,
    *,
    branch_id: str,
    booking_id: str,
    actual_check_in: datetime,
    num_occupants: int,
    notes: str | None,
    checked_in_by: str | None,
) -> GuestBooking:
    cur.execute(
        f"""
        UPDATE guest_bookings
        SET status = %s,
            actual_check_in = %s,
            num_occupants = %s,
            notes = COALESCE(%s, notes),
            checked_in_by = %s,
            checked_in_at = now(),
            updated_at = now()
        WHERE branch_id = %s AND id = %s
        RETURNING {BOOKING_COLUMNS}
        """,
        (
            BookingStatus.CHECKED_IN.value,
            actual_check_in,
            num_occupants,
            notes,
            checked_in_by,
            branch_id,
            booking_id,
        ),
    )
    return _row_to_booking(cur.fetchone())


def mark_departed(
    cur: PgCursor,
    *,
    branch_id: str,
    booking_id: str,
    actual_check_out: datetime,
    notes: str | None,
    departed_by: str | None,
) -> GuestBooking:
    cur.execute(
        f"""
        UPDATE guest_bookings
        SET status = %s,
            actual_check_out = %s,
            notes = COALESCE(%s, notes),
            departed_by = %s,
            departed_at = now(),
            updated_at = now()
        WHERE branch_id = %s AND id = %s
        RETURNING {BOOKING_COLUMNS}
        """,
        (
            BookingStatus.DEPARTED.value,
            actual_check_out,
            notes,
            departed_by,
            branch_id,
            booking_id,
        ),
    )
    return _row_to_booking(cur.fetchone())


def move_booking(
    cur: PgCursor,
    *,
    branch_id: str,
    booking_id: str,
    room_id: str,
    room_number: str,
    history_entry: dict[str, Any],
    notes: str | None,
) -> GuestBooking:
    """Point a booking at a new room and append one transfer_history entry."""
    cur.execute(
        f"""
        UPDATE guest_bookings
        SET room_id = %s,
            room_number = %s,
            transfer_history = COALESCE(transfer_history, '[]'::jsonb) || %s::jsonb,
            notes = COALESCE(%s, notes),
            updated_at = now()
        WHERE branch_id = %s AND id = %s
        RETURNING {BOOKING_COLUMNS}
        """,
        (room_id, room_number, Json([history_entry]), notes, branch_id, booking_id),
    )
    return _row_to_booking(cur.fetchone())


def update_scheduled_check_out(
    cur: PgCursor,
    *,
    branch_id: str,
    booking_id: str,
    scheduled_check_out: datetime,
) -> GuestBooking:
    cur.execute(
        f"""
        UPDATE guest_bookings
        SET scheduled_check_out = %s, updated_at = now()
        WHERE branch_id = %s AND id = %s
        RETURNING {BOOKING_COLUMNS}
        """,
        (scheduled_check_out, branch_id, booking_id),
    )
    return _row_to_booking(cur.fetchone())


def active_occupants_by_room(cur: PgCursor, *, branch_id: str) -> dict[str, int]:
    """Sum num_occupants of active bookings per room in a branch."""
    cur.execute(
        """
        SELECT room_id, COALESCE(SUM(num_occupants), 0)
        FROM guest_bookings
        WHERE branch_id = %s AND status = ANY(%s)
        GROUP BY room_id
        """,
        (branch_id, [s.value for s in ACTIVE_BOOKING_STATUSES]),
    )
    return {str(row[0]): int(row[1]) for row in cur.fetchall()}
