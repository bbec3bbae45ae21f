"""
Staff session router: counter and virtual sessions, lock/unlock/close.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rest_api.models import StaffProfile
from rest_api.routers._common import get_staff_profile
from rest_api.services.domain import CartService, SessionService
from shared.config.logging import staff_logger as logger
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    CartOutput,
    CloseSessionRequest,
    StaffSessionOutput,
    VirtualSessionRequest,
)

router = APIRouter(prefix="/api/staff", tags=["staff-sessions"])


def _staff_output(service: SessionService, session_id: int) -> StaffSessionOutput:
    return SessionService.to_staff_output(service.get_session(session_id))


@router.post("/counter-session", response_model=StaffSessionOutput)
def counter_session(
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> StaffSessionOutput:
    """The caller's counter session, created on first use."""
    service = SessionService(db)
    session = service.get_or_create_counter_session(profile)
    return _staff_output(service, session.id)


@router.post("/virtual-sessions", response_model=StaffSessionOutput)
def virtual_session(
    body: VirtualSessionRequest,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> StaffSessionOutput:
    service = SessionService(db)
    session = service.create_waiter_virtual_session(profile, body.name)
    return _staff_output(service, session.id)


@router.get("/sessions/{session_id}", response_model=StaffSessionOutput)
def get_session(
    session_id: int,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> StaffSessionOutput:
    return _staff_output(SessionService(db), session_id)


@router.get("/sessions/{session_id}/cart", response_model=CartOutput)
def get_session_cart(
    session_id: int,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> CartOutput:
    lines = CartService(db).list_session_cart(session_id)
    return CartOutput(session_id=session_id, lines=[CartService.to_output(line) for line in lines])


@router.post("/sessions/{session_id}/lock", response_model=StaffSessionOutput)
def lock_session(
    session_id: int,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> StaffSessionOutput:
    session = SessionService(db).lock_session(session_id)
    logger.info("Session locked by staff", session_id=session_id, profile_id=profile.id)
    return SessionService.to_staff_output(session)


@router.post("/sessions/{session_id}/unlock", response_model=StaffSessionOutput)
def unlock_session(
    session_id: int,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> StaffSessionOutput:
    session = SessionService(db).unlock_session(session_id)
    return SessionService.to_staff_output(session)


@router.post("/sessions/{session_id}/close", response_model=StaffSessionOutput)
def close_session(
    session_id: int,
    body: CloseSessionRequest,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> StaffSessionOutput:
    """Close out the table: settle open orders, expire the session, free the table."""
    session = SessionService(db).close_session(session_id, body.outcome)
    logger.info("Session closed by staff", session_id=session_id, profile_id=profile.id, outcome=body.outcome)
    return SessionService.to_staff_output(session)
