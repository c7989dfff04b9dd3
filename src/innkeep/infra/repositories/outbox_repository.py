"""Outbox repository - transition events written in the same transaction.

Uses raw SQL with psycopg2 (no ORM).
"""

import json

from psycopg2.extensions import cursor as PgCursor

GUEST_BOOKING_CREATED = "GUEST_BOOKING_CREATED"
GUEST_CHECKED_IN = "GUEST_CHECKED_IN"
GUEST_TRANSFERRED = "GUEST_TRANSFERRED"
STAY_EXTENDED = "STAY_EXTENDED"
GUEST_DEPARTED = "GUEST_DEPARTED"
ROOM_FREED = "ROOM_FREED"
ROOM_STATUS_OVERRIDDEN = "ROOM_STATUS_OVERRIDDEN"


def emit_event(
    cur: PgCursor,
    *,
    branch_id: str,
    event_type: str,
    aggregate_type: str,
    aggregate_id: str,
    payload: dict | None = None,
    correlation_id: str | None = None,
) -> int:
    """Emit an event to the outbox.

    Args:
        cur: Database cursor (within transaction).
        branch_id: Branch the aggregate belongs to.
        event_type: One of the event type constants above.
        aggregate_type: "room" or "guest_booking".
        aggregate_id: Aggregate ID.
        payload: Optional JSON payload (ids and counts only, no guest names).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The generated event ID.
    """
    payload_json = json.dumps(payload, default=str) if payload else None

    cur.execute(
        """
        INSERT INTO outbox_events (
            branch_id, event_type, aggregate_type,
            aggregate_id, payload, correlation_id
        )
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            branch_id,
            event_type,
            aggregate_type,
            aggregate_id,
            payload_json,
            correlation_id,
        ),
    )
    return cur.fetchone()[0]
