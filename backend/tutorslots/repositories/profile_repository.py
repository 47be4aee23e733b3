# backend/tutorslots/repositories/profile_repository.py
"""
Profile Repository.

Read access to the user/tutor profile collaborator data the scheduling core
depends on: hourly rate and timezone for tutors, name and email for
notification recipients.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.user import TutorProfile, User
from .base_repository import BaseRepository


class ProfileRepository(BaseRepository[User]):
    """Repository for users and tutor profiles."""

    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_user(self, user_id: str) -> Optional[User]:
        return self.get_by_id(user_id)

    def get_tutor_profile(self, tutor_id: str, *, for_update: bool = False) -> Optional[TutorProfile]:
        """
        Load the tutor profile for a tutor's user id.

        ``for_update`` takes a row lock that serializes booking creation for
        the tutor until the surrounding transaction ends (no-op on SQLite).
        """
        try:
            query = (
                self.db.query(TutorProfile)
                .options(joinedload(TutorProfile.user))
                .filter(TutorProfile.user_id == tutor_id)
            )
            if for_update:
                query = query.with_for_update(of=TutorProfile)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading tutor profile {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to load tutor profile: {str(e)}")
