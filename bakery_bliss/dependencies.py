# bakery_bliss/dependencies.py
"""
Used by FastAPI for dependency injection - Database, Auth & Notifications
It verifies who the caller is, which role they act in, and where status events go
"""

from functools import lru_cache

from fastapi import HTTPException, Header, Depends
from sqlmodel import Session
from typing import Annotated

from bakery_bliss.utils.db import get_session
from bakery_bliss.models import User, UserRole
from bakery_bliss.events import build_publisher
from bakery_bliss.workflow import Actor


# 1. Simulate Authentication
# Sessions / tokens are handled in front of this service.
# Here we trust the user ID header that the gateway sets after verifying the session.
async def get_current_user(
    user_id: Annotated[int | None, Header()] = None,
    session: Session = Depends(get_session)
) -> User:

    if not user_id:
        raise HTTPException(status_code=401, detail="User ID is Missing")

    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid User ID")

    return user


async def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(user)


# 2. Role guard for endpoints that only some roles may call at all
def require_roles(*roles: UserRole):
    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise HTTPException(status_code=403, detail=f"Not authorized. Requires role: {allowed}")
        return user
    return checker


# 3. Notification channel
# One publisher per process; tests override this dependency with an InMemoryPublisher
@lru_cache
def get_publisher():
    return build_publisher()
