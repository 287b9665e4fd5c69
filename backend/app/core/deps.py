"""Request dependencies.

Callers are authenticated upstream (API gateway / SSO proxy), which forwards
the user id in the X-User-Id header. This service only resolves that id to
an active user and checks roles.
"""
import uuid
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_sync_session
from app.services import directory


def get_current_user(
    db: Annotated[Session, Depends(get_sync_session)],
    x_user_id: Annotated[str | None, Header()] = None,
):
    """Resolve X-User-Id to an active User ORM object."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not identify caller",
    )
    if not x_user_id:
        raise credentials_exc
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise credentials_exc

    user = directory.get_user(db, user_id)
    if user is None or not user.is_active:
        raise credentials_exc
    return user


def require_role(*roles: str):
    """Dependency factory: raises 403 if user role not in allowed list."""
    def check(user=Depends(get_current_user)):
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user.role}' is not permitted for this action.",
            )
        return user
    return check
