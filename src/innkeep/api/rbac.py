"""RBAC (Role-Based Access Control) by branch.

Provides:
- Role hierarchy: viewer < staff < manager < owner
- require_branch_role(): FastAPI dependency for branch-scoped authorization

The branch_id resolved here is the tenant every domain call is scoped to;
a user without a role on the branch is rejected before any room or booking
is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException, Query

from innkeep.api.auth import CurrentUser, get_current_user

# Role hierarchy: lower index = less privilege
ROLE_HIERARCHY = ["viewer", "staff", "manager", "owner"]


@dataclass
class BranchRoleContext:
    """Context returned by require_branch_role."""

    user: CurrentUser
    branch_id: str
    role: str


def _role_level(role: str) -> int:
    """Get numeric level for role (higher = more privilege)."""
    try:
        return ROLE_HIERARCHY.index(role)
    except ValueError:
        return -1


def _get_user_role_for_branch(user_id: str, branch_id: str) -> str | None:
    """Lookup user's role for a branch (None if the user has no access)."""
    from innkeep.infra.db import txn

    with txn() as cur:
        cur.execute(
            "SELECT role FROM user_branch_roles WHERE user_id = %s AND branch_id = %s",
            (user_id, branch_id),
        )
        row = cur.fetchone()
        if row is None:
            return None
        return row[0]


def require_branch_role(min_role: str) -> Callable[..., BranchRoleContext]:
    """Create a dependency that requires a minimum role on a branch.

    Usage:
        @router.post("/something")
        def endpoint(ctx: BranchRoleContext = Depends(require_branch_role("staff"))):
            ...
    """
    min_level = _role_level(min_role)
    if min_level < 0:
        raise ValueError(f"Invalid role: {min_role}")

    def dependency(
        branch_id: str = Query(..., description="Branch ID"),
        user: CurrentUser = Depends(get_current_user),
    ) -> BranchRoleContext:
        role = _get_user_role_for_branch(user.id, branch_id)

        if role is None:
            raise HTTPException(status_code=403, detail="No access to branch")

        if _role_level(role) < min_level:
            raise HTTPException(status_code=403, detail="Insufficient role")

        return BranchRoleContext(user=user, branch_id=branch_id, role=role)

    return dependency
