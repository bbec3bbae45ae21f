"""
Diner cart router.

Every guest sees the whole table's cart but only mutates their own lines.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from rest_api.routers._common import get_guest_id, require_session_guest
from rest_api.services.domain import CartService
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.utils.schemas import (
    CartIncrementRequest,
    CartLineDeltaRequest,
    CartMutationResponse,
    CartOutput,
)

router = APIRouter(prefix="/api/diner/sessions/{session_id}/cart", tags=["diner-cart"])


def _mutation(line) -> CartMutationResponse:
    return CartMutationResponse(line=CartService.to_output(line) if line is not None else None)


@router.get("", response_model=CartOutput)
def get_cart(
    session_id: int,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> CartOutput:
    require_session_guest(db, session_id, guest_id)
    lines = CartService(db).list_session_cart(session_id)
    return CartOutput(session_id=session_id, lines=[CartService.to_output(line) for line in lines])


@router.post("/increment", response_model=CartMutationResponse)
@limiter.limit(settings.guest_write_rate_limit)
def increment(
    request: Request,
    session_id: int,
    body: CartIncrementRequest,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> CartMutationResponse:
    """
    Change the qty of the (product, add-ons, observation) line.
    Add-on names and prices are resolved server-side.
    """
    line = CartService(db).add_with_addons(
        session_id,
        guest_id,
        body.product_id,
        body.addon_ids,
        body.observation,
        delta=body.delta,
    )
    return _mutation(line)


@router.patch("/lines/{line_id}", response_model=CartMutationResponse)
@limiter.limit(settings.guest_write_rate_limit)
def change_line(
    request: Request,
    session_id: int,
    line_id: int,
    body: CartLineDeltaRequest,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> CartMutationResponse:
    line = CartService(db).change_line(session_id, guest_id, line_id, body.delta)
    return _mutation(line)


@router.delete("/lines/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(settings.guest_write_rate_limit)
def remove_line(
    request: Request,
    session_id: int,
    line_id: int,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> None:
    CartService(db).remove_line(session_id, guest_id, line_id)


@router.delete("")
@limiter.limit(settings.guest_write_rate_limit)
def clear_own_cart(
    request: Request,
    session_id: int,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> dict:
    removed = CartService(db).remove_all(session_id, guest_id)
    return {"removed": removed}
