"""
Diner session router: join a table through its QR token and read the
session.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rest_api.routers._common import get_guest_id, require_session_guest
from rest_api.services.domain import SessionService
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.utils.schemas import GuestOutput, JoinTableRequest, JoinTableResponse, SessionOutput

router = APIRouter(prefix="/api/diner", tags=["diner"])


@router.post("/tables/{token}/join", response_model=JoinTableResponse)
@limiter.limit(settings.guest_join_rate_limit)
def join_table(
    request: Request,
    token: str,
    body: JoinTableRequest,
    db: Session = Depends(get_db),
) -> JoinTableResponse:
    """
    Join the table's open session, opening one if the table is free.
    The first guest of a session becomes its host.
    """
    service = SessionService(db)
    session, guest = service.join_table(token, body.name)
    return JoinTableResponse(
        session=SessionService.to_output(session),
        guest=GuestOutput.model_validate(guest),
    )


@router.get("/sessions/{session_id}", response_model=SessionOutput)
def get_session(
    session_id: int,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> SessionOutput:
    service = SessionService(db)
    session = service.get_session(session_id)
    require_session_guest(db, session_id, guest_id)
    return SessionService.to_output(session)
