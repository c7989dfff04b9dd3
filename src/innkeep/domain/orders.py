"""Order-side entry points for room bookings.

Creates accommodation orders with a room line item and stay-extension
orders. Pricing beyond cost_amount * duration and payment capture belong
to the billing service that settles these orders.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from innkeep.infra.db import txn
from innkeep.infra.repositories.orders_repository import insert_order, insert_order_item
from innkeep.infra.repositories.rooms_repository import get_room
from innkeep.observability.correlation import ensure_correlation_id
from innkeep.observability.logging import get_logger, log_event

from .errors import InvalidInputError, RoomNotFoundError
from .models import DEFAULT_CUSTOMER_NAME, GuestBooking, Room

logger = get_logger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def create_room_booking_order(
    *,
    branch_id: str,
    room_id: str,
    num_people: int,
    check_in: datetime | None,
    check_out: datetime | None = None,
    duration_count: int = 1,
    duration_unit: str | None = None,
    customer_name: str | None = None,
    notes: str | None = None,
    discount_amount: Decimal = Decimal("0"),
    created_by: str | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Create an order with one room line item and attach the booking.

    Order, line item and booking share one transaction: a capacity failure
    while attaching rolls the order back too.

    Returns:
        {"order_id", "order_number", "total", "booking"}

    Raises:
        InvalidInputError, RoomNotFoundError, RoomUnavailableError,
        CapacityExceededError.
    """
    from innkeep.domain.lifecycle import attach_booking_to_order

    # Checked before the order row exists: order_items.quantity >= 1.
    for field, value in (("num_people", num_people), ("duration_count", duration_count)):
        if value is None or value < 1:
            raise InvalidInputError(f"{field} must be at least 1", field=field, value=value)
    if check_in is None:
        raise InvalidInputError("check_in is required", field="check_in")
    if discount_amount < 0:
        raise InvalidInputError("discount_amount cannot be negative", field="discount_amount")

    correlation_id = correlation_id or ensure_correlation_id()
    name = (customer_name or "").strip() or DEFAULT_CUSTOMER_NAME

    with txn() as cur:
        room = get_room(cur, branch_id=branch_id, room_id=room_id)
        if room is None or not room.is_active:
            raise RoomNotFoundError(room_id)

        unit = duration_unit or room.cost_duration
        subtotal = room.cost_amount * duration_count
        total = max(Decimal("0"), subtotal - discount_amount)

        order_id, order_number = insert_order(
            cur,
            branch_id=branch_id,
            status="pending",
            customer_name=name,
            linked_room_id=room.id,
            linked_room_number=room.room_number,
            notes=notes,
            subtotal=subtotal,
            total=total,
            discount_amount=discount_amount,
            created_by=created_by,
        )
        insert_order_item(
            cur,
            order_id=order_id,
            name=f"Room {room.room_number}",
            quantity=duration_count,
            unit_price=room.cost_amount,
            source="room",
            room_id=room.id,
            booking_details={
                "type": "booking",
                "num_people": num_people,
                "duration_count": duration_count,
                "duration_unit": unit,
                "check_in": _iso(check_in),
                "check_out": _iso(check_out),
            },
        )

        booking = attach_booking_to_order(
            branch_id=branch_id,
            room_id=room.id,
            order_id=order_id,
            order_number=order_number,
            num_people=num_people,
            check_in=check_in,
            check_out=check_out,
            duration_count=duration_count,
            duration_unit=unit,
            customer_name=name,
            notes=notes,
            correlation_id=correlation_id,
            cur=cur,
        )

    log_event(
        logger,
        "room booking order created",
        branch_id=branch_id,
        order_id=order_id,
        booking_id=booking.id,
        total=total,
    )
    return {
        "order_id": order_id,
        "order_number": order_number,
        "total": total,
        "booking": booking,
    }


def create_extension_order(
    cur: PgCursor,
    *,
    branch_id: str,
    booking: GuestBooking,
    room: Room,
    duration_count: int,
    duration_unit: str,
    new_check_in: datetime | None = None,
    new_check_out: datetime | None = None,
    notes: str | None = None,
    created_by: str | None = None,
) -> tuple[str, str]:
    """Insert an awaiting-payment order extending booking's original order.

    Runs inside the caller's transaction.

    Returns:
        Tuple of (order_id, order_number).
    """
    total = room.cost_amount * duration_count

    order_id, order_number = insert_order(
        cur,
        branch_id=branch_id,
        status="awaiting_payment",
        customer_name=booking.customer_name or DEFAULT_CUSTOMER_NAME,
        linked_room_id=room.id,
        linked_room_number=room.room_number,
        notes=notes or f"Extension from booking {booking.order_number}",
        subtotal=total,
        total=total,
        extension_of=booking.order_number,
        created_by=created_by,
    )
    insert_order_item(
        cur,
        order_id=order_id,
        name=f"Room {room.room_number} - Extension",
        quantity=duration_count,
        unit_price=room.cost_amount,
        source="room",
        room_id=room.id,
        booking_details={
            "type": "booking",
            "num_people": booking.num_occupants,
            "duration_count": duration_count,
            "duration_unit": duration_unit,
            "check_in": _iso(new_check_in),
            "check_out": _iso(new_check_out),
            "extension_of": booking.order_number,
        },
    )
    return order_id, order_number
