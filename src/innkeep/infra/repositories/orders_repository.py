"""Orders repository - the slice of the order ledger this service writes.

Uses raw SQL with psycopg2 (no ORM). Pricing and payment capture live in the
order/billing service; rows written here are the room line items and stay
extensions that service later settles.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json


def insert_order(
    cur: PgCursor,
    *,
    branch_id: str,
    status: str,
    customer_name: str,
    linked_room_id: str | None,
    linked_room_number: str | None,
    notes: str | None,
    subtotal: Decimal,
    total: Decimal,
    discount_amount: Decimal = Decimal("0"),
    extension_of: str | None = None,
    created_by: str | None = None,
) -> tuple[str, str]:
    """Insert an accommodation order.

    order_number is generated by the database sequence so concurrent
    requests never collide.

    Returns:
        Tuple of (order_id, order_number).
    """
    cur.execute(
        """
        INSERT INTO orders (
            branch_id, order_number, status, source, department,
            customer_name, linked_room_id, linked_room_number, notes,
            subtotal, discount_amount, total, extension_of, created_by
        )
        VALUES (
            %s, 'ACC-' || lpad(nextval('order_number_seq')::text, 6, '0'),
            %s, 'accommodation', 'accommodation',
            %s, %s, %s, %s, %s, %s, %s, %s, %s
        )
        RETURNING id, order_number
        """,
        (
            branch_id,
            status,
            customer_name,
            linked_room_id,
            linked_room_number,
            notes,
            subtotal,
            discount_amount,
            total,
            extension_of,
            created_by,
        ),
    )
    row = cur.fetchone()
    return str(row[0]), row[1]


def insert_order_item(
    cur: PgCursor,
    *,
    order_id: str,
    name: str,
    quantity: int,
    unit_price: Decimal,
    source: str,
    room_id: str | None = None,
    booking_details: dict[str, Any] | None = None,
) -> str:
    """Insert one order line; item_total is quantity * unit_price."""
    cur.execute(
        """
        INSERT INTO order_items (
            order_id, name, quantity, unit_price, item_total,
            source, room_id, booking_details
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            order_id,
            name,
            quantity,
            unit_price,
            unit_price * quantity,
            source,
            room_id,
            Json(booking_details) if booking_details is not None else None,
        ),
    )
    return str(cur.fetchone()[0])
