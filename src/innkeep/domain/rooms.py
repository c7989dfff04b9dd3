"""Room registry - definitions, soft delete and manual status overrides.

Occupancy is never written here except to re-derive status when capacity
changes; guest counts move only through innkeep.domain.lifecycle.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from innkeep.infra.db import txn
from innkeep.infra.repositories.outbox_repository import ROOM_STATUS_OVERRIDDEN, emit_event
from innkeep.infra.repositories.rooms_repository import (
    UPDATABLE_COLUMNS,
    get_room as _get_room,
    insert_room,
    list_rooms as _list_rooms,
    lock_room,
    room_number_taken,
    update_room_fields,
    write_status,
)
from innkeep.observability.correlation import ensure_correlation_id
from innkeep.observability.logging import get_logger, log_event

from .errors import (
    CapacityExceededError,
    InvalidInputError,
    InvalidTransitionError,
    RoomNotFoundError,
)
from .models import COST_DURATIONS, MEDIA_TYPES, Room
from .occupancy import ManualStatus, derive_status, is_manual

logger = get_logger(__name__)


class DuplicateRoomNumberError(InvalidInputError):
    kind = "duplicate_room"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _validate_amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInputError("Cost amount must be a number", field="cost_amount")
    if amount <= 0:
        raise InvalidInputError("Cost amount must be positive", field="cost_amount")
    return amount


def _validate_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalise registry fields present in fields."""
    clean: dict[str, Any] = {}
    for key, value in fields.items():
        if key == "room_number":
            number = _clean(value)
            if not number:
                raise InvalidInputError("Room number is required", field=key)
            clean[key] = number
        elif key == "max_occupants":
            if value is None or int(value) < 1:
                raise InvalidInputError("Max occupants must be at least 1", field=key)
            clean[key] = int(value)
        elif key == "cost_amount":
            clean[key] = _validate_amount(value)
        elif key == "cost_duration":
            if value not in COST_DURATIONS:
                raise InvalidInputError(
                    f"Cost duration must be one of {', '.join(COST_DURATIONS)}",
                    field=key,
                )
            clean[key] = value
        elif key == "media_type":
            if value is not None and value not in MEDIA_TYPES:
                raise InvalidInputError("Invalid media type (image or video only)", field=key)
            clean[key] = value
        elif key == "category":
            clean[key] = _clean(value) or "regular"
        elif key == "floor_section":
            clean[key] = _clean(value)
        elif key == "benefits":
            clean[key] = [b.strip() for b in (value or []) if b and b.strip()]
        else:
            clean[key] = value
    return clean


def create_room(
    *,
    branch_id: str,
    room_number: str,
    max_occupants: int,
    cost_amount: Decimal,
    cost_duration: str,
    category: str = "regular",
    floor_section: str | None = None,
    benefits: Iterable[str] = (),
    media_url: str | None = None,
    media_type: str | None = None,
    created_by: str | None = None,
) -> Room:
    """Create an empty, available room.

    Raises:
        InvalidInputError: On any invalid field.
        DuplicateRoomNumberError: room_number already used in the branch.
    """
    fields = _validate_fields(
        {
            "room_number": room_number,
            "max_occupants": max_occupants,
            "cost_amount": cost_amount,
            "cost_duration": cost_duration,
            "category": category,
            "floor_section": floor_section,
            "benefits": list(benefits),
            "media_type": media_type,
        }
    )

    with txn() as cur:
        if room_number_taken(cur, branch_id=branch_id, room_number=fields["room_number"]):
            raise DuplicateRoomNumberError(
                f'Room "{fields["room_number"]}" already exists in this branch',
                field="room_number",
            )
        room = insert_room(
            cur,
            branch_id=branch_id,
            media_url=media_url,
            created_by=created_by,
            **fields,
        )

    log_event(
        logger,
        "room created",
        branch_id=branch_id,
        room_id=room.id,
        max_occupants=room.max_occupants,
    )
    return room


def get_room(*, branch_id: str, room_id: str) -> Room:
    """Raises RoomNotFoundError if missing or in another branch."""
    with txn() as cur:
        room = _get_room(cur, branch_id=branch_id, room_id=room_id)
    if room is None:
        raise RoomNotFoundError(room_id)
    return room


def list_rooms(*, branch_id: str, status: str | None = None) -> list[Room]:
    with txn() as cur:
        return _list_rooms(cur, branch_id=branch_id, status=status)


def update_room(*, branch_id: str, room_id: str, **changes: Any) -> Room:
    """Partially update a room's definition.

    Lowering max_occupants below the guests currently in the room is refused;
    any capacity change re-derives the status of a room not under a manual
    status.

    Raises:
        InvalidInputError, DuplicateRoomNumberError, RoomNotFoundError,
        CapacityExceededError.
    """
    if not changes:
        raise InvalidInputError("No fields to update")
    if "status" in changes or "current_occupants" in changes:
        raise InvalidInputError(
            "Status and occupancy are not editable; use the manual status "
            "or lifecycle operations",
            field="status" if "status" in changes else "current_occupants",
        )
    unknown = set(changes) - set(UPDATABLE_COLUMNS)
    if unknown:
        raise InvalidInputError(f"Unknown room fields: {sorted(unknown)}")

    fields = _validate_fields(changes)

    with txn() as cur:
        room = lock_room(cur, branch_id=branch_id, room_id=room_id)
        if room is None:
            raise RoomNotFoundError(room_id)

        if "room_number" in fields and room_number_taken(
            cur,
            branch_id=branch_id,
            room_number=fields["room_number"],
            exclude_room_id=room_id,
        ):
            raise DuplicateRoomNumberError(
                f'Room "{fields["room_number"]}" already exists in this branch',
                field="room_number",
            )

        status = None
        new_max = fields.get("max_occupants")
        if new_max is not None:
            if new_max < room.current_occupants:
                raise CapacityExceededError(
                    f"Cannot lower max occupants to {new_max}: room {room.room_number} "
                    f"currently holds {room.current_occupants} guest(s).",
                    room_id=room.id,
                    current_occupants=room.current_occupants,
                    max_occupants=new_max,
                )
            if not is_manual(room.status):
                status = derive_status(room.current_occupants, new_max)

        if fields.get("is_active") is False and room.current_occupants > 0:
            raise InvalidTransitionError(
                f"Room {room.room_number} still has {room.current_occupants} guest(s)",
                room_id=room.id,
                current_occupants=room.current_occupants,
            )

        updated = update_room_fields(
            cur,
            branch_id=branch_id,
            room_id=room_id,
            fields=fields,
            status=status,
        )

    log_event(
        logger,
        "room updated",
        branch_id=branch_id,
        room_id=room_id,
        fields=sorted(fields),
    )
    return updated


def deactivate_room(*, branch_id: str, room_id: str) -> Room:
    """Soft-delete a room; refused while guests are recorded in it."""
    return update_room(branch_id=branch_id, room_id=room_id, is_active=False)


def set_manual_status(
    *,
    branch_id: str,
    room_id: str,
    status: ManualStatus,
    staff_id: str | None = None,
    correlation_id: str | None = None,
) -> Room:
    """Put a room under maintenance or hold it as reserved.

    Staff-only: the lifecycle engine never writes a manual status.
    """
    return _override_status(
        branch_id=branch_id,
        room_id=room_id,
        status=ManualStatus(status),
        staff_id=staff_id,
        correlation_id=correlation_id,
    )


def clear_manual_status(
    *,
    branch_id: str,
    room_id: str,
    staff_id: str | None = None,
    correlation_id: str | None = None,
) -> Room:
    """Drop a manual status; the room goes back to its derived status."""
    return _override_status(
        branch_id=branch_id,
        room_id=room_id,
        status=None,
        staff_id=staff_id,
        correlation_id=correlation_id,
    )


def _override_status(
    *,
    branch_id: str,
    room_id: str,
    status: ManualStatus | None,
    staff_id: str | None,
    correlation_id: str | None,
) -> Room:
    correlation_id = correlation_id or ensure_correlation_id()

    with txn() as cur:
        room = lock_room(cur, branch_id=branch_id, room_id=room_id)
        if room is None:
            raise RoomNotFoundError(room_id)

        new_status = status or derive_status(room.current_occupants, room.max_occupants)
        previous = room.status
        room = write_status(cur, branch_id=branch_id, room_id=room_id, status=new_status)

        emit_event(
            cur,
            branch_id=branch_id,
            event_type=ROOM_STATUS_OVERRIDDEN,
            aggregate_type="room",
            aggregate_id=room_id,
            payload={
                "previous_status": previous.value,
                "status": new_status.value,
                "manual": status is not None,
                "changed_by": staff_id,
            },
            correlation_id=correlation_id,
        )

    log_event(
        logger,
        "room status overridden" if status is not None else "room manual status cleared",
        branch_id=branch_id,
        room_id=room_id,
        previous_status=previous,
        status=new_status,
    )
    return room
