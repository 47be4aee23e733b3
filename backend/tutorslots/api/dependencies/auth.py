# backend/tutorslots/api/dependencies/auth.py
"""
Actor identification dependencies.

Identity is established upstream; requests arrive with the caller's user id
in the ``X-Actor-Id`` header. These dependencies resolve that id to a user
and enforce the role and ownership checks routes need.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-Actor-Id"


def get_current_actor(
    x_actor_id: Optional[str] = Header(None, alias=ACTOR_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the calling user from the actor header."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": f"Missing {ACTOR_HEADER} header", "code": "UNAUTHENTICATED"},
        )
    user = RepositoryFactory.create_profile_repository(db).get_user(x_actor_id)
    if not user or not user.is_active:
        logger.warning(f"Unknown or inactive actor {x_actor_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Unknown actor", "code": "UNAUTHENTICATED"},
        )
    return user


def require_self(actor: User, user_id: str) -> None:
    """Allow the user themselves (or an admin) to act on ``user_id``'s data."""
    if actor.id != user_id and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Not allowed to act for another user", "code": "FORBIDDEN"},
        )


def require_party(actor: User, student_id: str, tutor_id: str) -> None:
    """Allow only the booking's student, its tutor, or an admin."""
    if actor.id not in (student_id, tutor_id) and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Not a party to this booking", "code": "FORBIDDEN"},
        )
