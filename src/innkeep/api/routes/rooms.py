"""Rooms endpoints for the branch dashboard.

GET    /rooms?branch_id=...                      → list   (viewer+)
GET    /rooms/occupancy-drift?branch_id=...      → report (manager+)
GET    /rooms/{id}?branch_id=...                 → detail (viewer+)
POST   /rooms?branch_id=...                      → create (manager+, 201)
PATCH  /rooms/{id}?branch_id=...                 → update (manager+)
DELETE /rooms/{id}?branch_id=...                 → soft delete (manager+, 204)
PUT    /rooms/{id}/manual-status?branch_id=...   → maintenance/reserved (manager+)
DELETE /rooms/{id}/manual-status?branch_id=...   → back to derived status (manager+)
POST   /rooms/{id}/actions/free?branch_id=...    → room-level checkout (staff+)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, ConfigDict, Field

from innkeep.api.rbac import BranchRoleContext, require_branch_role
from innkeep.domain import lifecycle, reconciliation
from innkeep.domain import rooms as registry
from innkeep.domain.occupancy import ManualStatus, parse_status
from innkeep.observability.correlation import get_correlation_id

router = APIRouter(prefix="/rooms", tags=["rooms"])


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    room_number: str
    max_occupants: int
    cost_amount: Decimal
    cost_duration: Literal["night", "day", "hour"] = "night"
    category: str = "regular"
    floor_section: str | None = None
    benefits: list[str] = Field(default_factory=list)
    media_url: str | None = None
    media_type: Literal["image", "video"] | None = None


class UpdateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    room_number: str | None = None
    max_occupants: int | None = None
    cost_amount: Decimal | None = None
    cost_duration: Literal["night", "day", "hour"] | None = None
    category: str | None = None
    floor_section: str | None = None
    benefits: list[str] | None = None
    media_url: str | None = None
    media_type: Literal["image", "video"] | None = None
    is_active: bool | None = None


class ManualStatusRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ManualStatus


class FreeRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    people_leaving: int


# ── GET /rooms ────────────────────────────────────────────────────────────────


@router.get("")
def list_rooms(
    status: str | None = Query(None, description="Filter by room status"),
    ctx: BranchRoleContext = Depends(require_branch_role("viewer")),
) -> list[dict]:
    """List active rooms of the branch ordered by room number.

    Requires viewer role or higher.
    """
    if status is not None:
        try:
            status = parse_status(status).value
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown room status: {status}")

    return [room.to_dict() for room in registry.list_rooms(branch_id=ctx.branch_id, status=status)]


# ── GET /rooms/occupancy-drift ────────────────────────────────────────────────


@router.get("/occupancy-drift")
def occupancy_drift(
    ctx: BranchRoleContext = Depends(require_branch_role("manager")),
) -> dict:
    """Rooms whose occupant count disagrees with their active bookings.

    Report only; nothing is repaired. Requires manager role or higher.
    """
    drift = reconciliation.find_occupancy_drift(branch_id=ctx.branch_id)
    return {"branch_id": ctx.branch_id, "rooms": [d.to_dict() for d in drift]}


# ── GET /rooms/{room_id} ──────────────────────────────────────────────────────


@router.get("/{room_id}")
def get_room(
    room_id: str = Path(..., description="Room ID"),
    ctx: BranchRoleContext = Depends(require_branch_role("viewer")),
) -> dict:
    return registry.get_room(branch_id=ctx.branch_id, room_id=room_id).to_dict()


# ── POST /rooms ───────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def create_room(
    body: CreateRoomRequest,
    ctx: BranchRoleContext = Depends(require_branch_role("manager")),
) -> dict:
    """Create an empty, available room.

    Fails with 409 if the room number is already used in the branch.
    Requires manager role or higher.
    """
    room = registry.create_room(
        branch_id=ctx.branch_id,
        created_by=ctx.user.id,
        **body.model_dump(),
    )
    return room.to_dict()


# ── PATCH /rooms/{room_id} ────────────────────────────────────────────────────


@router.patch("/{room_id}")
def update_room(
    room_id: str = Path(..., description="Room ID"),
    body: UpdateRoomRequest = ...,
    ctx: BranchRoleContext = Depends(require_branch_role("manager")),
) -> dict:
    """Partially update a room's definition.

    Status and occupancy are not accepted here. Requires manager role or higher.
    """
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    room = registry.update_room(branch_id=ctx.branch_id, room_id=room_id, **changes)
    return room.to_dict()


# ── DELETE /rooms/{room_id} ───────────────────────────────────────────────────


@router.delete("/{room_id}", status_code=204)
def delete_room(
    room_id: str = Path(..., description="Room ID"),
    ctx: BranchRoleContext = Depends(require_branch_role("manager")),
) -> None:
    """Soft-delete a room.

    Fails with 409 while guests are recorded in it. Requires manager role or higher.
    """
    registry.deactivate_room(branch_id=ctx.branch_id, room_id=room_id)


# ── PUT/DELETE /rooms/{room_id}/manual-status ─────────────────────────────────


@router.put("/{room_id}/manual-status")
def set_manual_status(
    room_id: str = Path(..., description="Room ID"),
    body: ManualStatusRequest = ...,
    ctx: BranchRoleContext = Depends(require_branch_role("manager")),
) -> dict:
    """Put the room under maintenance or hold it as reserved."""
    room = registry.set_manual_status(
        branch_id=ctx.branch_id,
        room_id=room_id,
        status=body.status,
        staff_id=ctx.user.id,
        correlation_id=get_correlation_id(),
    )
    return room.to_dict()


@router.delete("/{room_id}/manual-status")
def clear_manual_status(
    room_id: str = Path(..., description="Room ID"),
    ctx: BranchRoleContext = Depends(require_branch_role("manager")),
) -> dict:
    """Clear a manual status; the room returns to the status its occupancy implies."""
    room = registry.clear_manual_status(
        branch_id=ctx.branch_id,
        room_id=room_id,
        staff_id=ctx.user.id,
        correlation_id=get_correlation_id(),
    )
    return room.to_dict()


# ── POST /rooms/{room_id}/actions/free ────────────────────────────────────────


@router.post("/{room_id}/actions/free")
def free_room(
    room_id: str = Path(..., description="Room ID"),
    body: FreeRoomRequest = ...,
    ctx: BranchRoleContext = Depends(require_branch_role("staff")),
) -> dict:
    """Release places in a room without touching any booking.

    Prefer departing the booking; this leaves booking rows as they are.
    Requires staff role or higher.
    """
    room = lifecycle.free_room(
        branch_id=ctx.branch_id,
        room_id=room_id,
        people_leaving=body.people_leaving,
        staff_id=ctx.user.id,
        correlation_id=get_correlation_id(),
    )
    return room.to_dict()
