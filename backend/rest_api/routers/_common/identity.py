"""
Request identity.

Authentication is handled outside this service. Guests present the id
persisted on their device in `X-Guest-Id`; staff consoles present their
profile in `X-Staff-Profile-Id`, which must name an active profile.
"""

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from rest_api.models import Guest, StaffProfile
from rest_api.services.domain import StaffService
from shared.config.constants import MANAGEMENT_ROLES
from shared.infrastructure.db import get_db
from shared.utils.exceptions import ForbiddenError


def get_guest_id(x_guest_id: int | None = Header(default=None, alias="X-Guest-Id")) -> int:
    if x_guest_id is None:
        raise ForbiddenError("act without a guest identity")
    return x_guest_id


def get_staff_profile(
    x_staff_profile_id: int | None = Header(default=None, alias="X-Staff-Profile-Id"),
    db: Session = Depends(get_db),
) -> StaffProfile:
    if x_staff_profile_id is None:
        raise ForbiddenError("act without a staff profile")
    return StaffService(db).get_active_profile(x_staff_profile_id)


def require_management(profile: StaffProfile = Depends(get_staff_profile)) -> StaffProfile:
    if profile.role not in MANAGEMENT_ROLES:
        raise ForbiddenError("manage promotions", profile_id=profile.id, role=profile.role)
    return profile


def require_session_guest(db: Session, session_id: int, guest_id: int) -> Guest:
    """The guest, provided they belong to the session."""
    guest = db.get(Guest, guest_id)
    if guest is None or guest.session_id != session_id:
        raise ForbiddenError("access this session", session_id=session_id, guest_id=guest_id)
    return guest
