"""
Caller identity dependencies.

Identity arrives on request headers set by the gateway in front of this service:
  X-User-Id    acting user (UUID)
  X-Org-Id     organisation (UUID)
  X-User-Role  owner | admin | manager | member

With AUTH_MODE=demo missing headers fall back to the demo placeholders below;
with AUTH_MODE=strict a missing user id is a 401.
"""

import os
import uuid
from fastapi import HTTPException, Header, Depends
from typing import Optional

from weekgrid.services.timesheet_lifecycle import Actor, ORG_ROLES

AUTH_MODE = os.getenv("AUTH_MODE", "demo")  # "demo" or "strict"

# Demo placeholders, used only when AUTH_MODE=demo and no header is provided
DEMO_ORG_ID = "00000000-0000-0000-0000-000000000000"
DEMO_USER_ID = "00000000-0000-0000-0000-000000000000"
DEMO_ROLE = "member"


def _as_uuid(value) -> uuid.UUID:
    if value is None:
        raise ValueError("None is not a UUID")
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None),
) -> uuid.UUID:
    """User UUID from X-User-Id, or the demo user."""
    if x_user_id:
        try:
            return _as_uuid(x_user_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid X-User-Id (must be UUID)")

    if AUTH_MODE == "demo":
        return _as_uuid(DEMO_USER_ID)

    raise HTTPException(status_code=401, detail="Not authenticated")


def get_current_org_id(
    x_org_id: Optional[str] = Header(default=None),
) -> Optional[uuid.UUID]:
    """Org UUID from X-Org-Id, or the demo org. Strict mode allows no org."""
    if x_org_id:
        try:
            return _as_uuid(x_org_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid X-Org-Id (must be UUID)")

    if AUTH_MODE == "demo":
        return _as_uuid(DEMO_ORG_ID)
    return None


def get_current_role(
    x_user_role: Optional[str] = Header(default=None),
) -> str:
    role = (x_user_role or DEMO_ROLE).strip().lower()
    if role not in ORG_ROLES:
        raise HTTPException(status_code=400, detail=f"Unknown X-User-Role '{x_user_role}'")
    return role


def get_actor(
    user_id: uuid.UUID = Depends(get_current_user_id),
    org_id: Optional[uuid.UUID] = Depends(get_current_org_id),
    role: str = Depends(get_current_role),
) -> Actor:
    return Actor(user_id=user_id, org_id=org_id, role=role)
