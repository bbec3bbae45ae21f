"""
Staff Service.

Resolves the staff profile behind a staff request. Authentication is an
external concern; here a profile only has to exist and be active.
"""

from sqlalchemy.orm import Session

from rest_api.models import StaffProfile
from shared.utils.exceptions import ForbiddenError


class StaffService:
    """Lookup of staff profiles."""

    def __init__(self, db: Session):
        self._db = db

    def get_active_profile(self, profile_id: int) -> StaffProfile:
        profile = self._db.get(StaffProfile, profile_id)
        if profile is None or not profile.active:
            raise ForbiddenError("act as staff", profile_id=profile_id)
        return profile
