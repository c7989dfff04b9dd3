"""Order endpoints owned by the accommodation department.

POST /orders/room-booking?branch_id=...  → order + room line item + booking (staff+, 201)
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from innkeep.api.rbac import BranchRoleContext, require_branch_role
from innkeep.domain.orders import create_room_booking_order
from innkeep.observability.correlation import get_correlation_id

router = APIRouter(prefix="/orders", tags=["orders"])


class RoomBookingOrderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    room_id: str
    num_people: int
    check_in: datetime
    check_out: datetime | None = None
    duration_count: int = 1
    duration_unit: str | None = None
    customer_name: str | None = None
    notes: str | None = None
    discount_amount: Decimal = Decimal("0")


@router.post("/room-booking", status_code=201)
def create_room_booking(
    body: RoomBookingOrderRequest,
    ctx: BranchRoleContext = Depends(require_branch_role("staff")),
) -> dict:
    """Create an accommodation order and count its guests into the room.

    Fails with 409 if the room is under maintenance or would overflow; no
    order is left behind in that case. Requires staff role or higher.
    """
    result = create_room_booking_order(
        branch_id=ctx.branch_id,
        created_by=ctx.user.id,
        correlation_id=get_correlation_id(),
        **body.model_dump(),
    )
    return {
        "order_id": result["order_id"],
        "order_number": result["order_number"],
        "total": str(result["total"]),
        "booking": result["booking"].to_dict(),
    }
