from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request


USER_ID_HEADER = "x-user-id"
USER_ROLE_HEADER = "x-user-role"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str


def get_current_user(request: Request) -> CurrentUser:
    # The gateway in front of this service authenticates callers and forwards their identity.
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing user identity")
    role = (request.headers.get(USER_ROLE_HEADER) or "user").strip().lower() or "user"
    return CurrentUser(id=user_id, role=role)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if (user.role or "").lower() != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
