"""Guest booking endpoints: reads and lifecycle actions.

GET  /bookings?branch_id=...&status=...                   → list   (viewer+)
GET  /bookings/{id}?branch_id=...                         → detail (viewer+)
POST /bookings/{id}/actions/check-in?branch_id=...        → check in (staff+)
POST /bookings/{id}/actions/transfer?branch_id=...        → change room (staff+)
POST /bookings/{id}/actions/extend-stay?branch_id=...     → extension order (staff+, 201)
POST /bookings/{id}/actions/depart?branch_id=...          → check out (staff+)
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, ConfigDict

from innkeep.api.rbac import BranchRoleContext, require_branch_role
from innkeep.domain import bookings, lifecycle
from innkeep.domain.models import BookingStatus
from innkeep.observability.correlation import get_correlation_id

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ── Schemas ───────────────────────────────────────────────────────────────────


class CheckInRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    actual_check_in: datetime | None = None
    num_occupants: int | None = None
    notes: str | None = None


class TransferRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    new_room_id: str
    notes: str | None = None


class ExtendStayRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    duration_count: int
    duration_unit: str | None = None
    new_check_in: datetime | None = None
    new_check_out: datetime | None = None
    notes: str | None = None


class DepartRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    actual_check_out: datetime | None = None
    notes: str | None = None


def _with_room(result: dict) -> dict:
    return {"booking": result["booking"].to_dict(), "room": result["room"].to_dict()}


# ── Reads ─────────────────────────────────────────────────────────────────────


@router.get("")
def list_bookings(
    status: BookingStatus = Query(BookingStatus.CHECKED_IN, description="Booking status"),
    ctx: BranchRoleContext = Depends(require_branch_role("viewer")),
) -> list[dict]:
    """List bookings of one status, newest first.

    Requires viewer role or higher.
    """
    return [b.to_dict() for b in bookings.list_bookings(branch_id=ctx.branch_id, status=status)]


@router.get("/{booking_id}")
def get_booking(
    booking_id: str = Path(..., description="Booking ID"),
    ctx: BranchRoleContext = Depends(require_branch_role("viewer")),
) -> dict:
    return bookings.get_booking(branch_id=ctx.branch_id, booking_id=booking_id).to_dict()


# ── Actions ───────────────────────────────────────────────────────────────────


@router.post("/{booking_id}/actions/check-in")
def check_in(
    booking_id: str = Path(..., description="Booking ID"),
    body: CheckInRequest = ...,
    ctx: BranchRoleContext = Depends(require_branch_role("staff")),
) -> dict:
    """Check a pending booking in.

    num_occupants corrects the head count; the room moves by the difference.
    Fails with 409 if the booking is not pending or the room would overflow.
    """
    result = lifecycle.check_in(
        branch_id=ctx.branch_id,
        booking_id=booking_id,
        actual_check_in=body.actual_check_in,
        num_occupants=body.num_occupants,
        notes=body.notes,
        staff_id=ctx.user.id,
        correlation_id=get_correlation_id(),
    )
    return _with_room(result)


@router.post("/{booking_id}/actions/transfer")
def transfer(
    booking_id: str = Path(..., description="Booking ID"),
    body: TransferRequest = ...,
    ctx: BranchRoleContext = Depends(require_branch_role("staff")),
) -> dict:
    """Move a checked-in party to another room of the branch."""
    result = lifecycle.transfer(
        branch_id=ctx.branch_id,
        booking_id=booking_id,
        new_room_id=body.new_room_id,
        notes=body.notes,
        staff_name=ctx.user.name or ctx.user.email or ctx.user.id,
        correlation_id=get_correlation_id(),
    )
    return {
        "booking": result["booking"].to_dict(),
        "from_room": result["from_room"].to_dict(),
        "to_room": result["to_room"].to_dict(),
    }


@router.post("/{booking_id}/actions/extend-stay", status_code=201)
def extend_stay(
    booking_id: str = Path(..., description="Booking ID"),
    body: ExtendStayRequest = ...,
    ctx: BranchRoleContext = Depends(require_branch_role("staff")),
) -> dict:
    """Create an awaiting-payment extension order; occupancy is unchanged."""
    result = lifecycle.extend_stay(
        branch_id=ctx.branch_id,
        booking_id=booking_id,
        duration_count=body.duration_count,
        duration_unit=body.duration_unit,
        new_check_in=body.new_check_in,
        new_check_out=body.new_check_out,
        notes=body.notes,
        staff_id=ctx.user.id,
        correlation_id=get_correlation_id(),
    )
    return {
        "extension_order_id": result["extension_order_id"],
        "extension_order_number": result["extension_order_number"],
        "total": str(result["total"]),
        "duration_count": result["duration_count"],
        "duration_unit": result["duration_unit"],
        "booking": result["booking"].to_dict(),
    }


@router.post("/{booking_id}/actions/depart")
def depart(
    booking_id: str = Path(..., description="Booking ID"),
    body: DepartRequest = ...,
    ctx: BranchRoleContext = Depends(require_branch_role("staff")),
) -> dict:
    """Check a guest party out and release its places in the room."""
    result = lifecycle.depart(
        branch_id=ctx.branch_id,
        booking_id=booking_id,
        actual_check_out=body.actual_check_out,
        notes=body.notes,
        staff_id=ctx.user.id,
        correlation_id=get_correlation_id(),
    )
    return _with_room(result)
