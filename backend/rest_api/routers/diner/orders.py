"""
Diner orders router: submit the own cart, list the table's orders and, for
the host, resolve pending approvals.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from rest_api.routers._common import get_guest_id, require_session_guest
from rest_api.services.domain import OrderService
from shared.config.logging import diner_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from shared.utils.schemas import OrderOutput, SubmitCartRequest

router = APIRouter(prefix="/api/diner", tags=["diner-orders"])


@router.post(
    "/sessions/{session_id}/orders",
    response_model=OrderOutput,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.guest_write_rate_limit)
def submit_cart(
    request: Request,
    session_id: int,
    body: SubmitCartRequest,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> OrderOutput:
    """
    Send the guest's own cart. Not idempotent: clients must not retry it
    automatically.
    """
    order = OrderService(db).submit_guest_cart(session_id, guest_id, body.general_note)
    logger.info("Cart submitted", session_id=session_id, guest_id=guest_id, order_id=order.id)
    return OrderOutput.model_validate(order)


@router.get("/sessions/{session_id}/orders", response_model=list[OrderOutput])
def list_orders(
    session_id: int,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> list[OrderOutput]:
    require_session_guest(db, session_id, guest_id)
    orders = OrderService(db).list_session_orders(session_id)
    return [OrderOutput.model_validate(o) for o in orders]


@router.post("/orders/{order_id}/approve", response_model=OrderOutput)
@limiter.limit(settings.guest_write_rate_limit)
def approve_order(
    request: Request,
    order_id: int,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> OrderOutput:
    """Host only."""
    return OrderOutput.model_validate(OrderService(db).approve(order_id, guest_id=guest_id))


@router.post("/orders/{order_id}/reject", response_model=OrderOutput)
@limiter.limit(settings.guest_write_rate_limit)
def reject_order(
    request: Request,
    order_id: int,
    guest_id: int = Depends(get_guest_id),
    db: Session = Depends(get_db),
) -> OrderOutput:
    """Host only. Final."""
    return OrderOutput.model_validate(OrderService(db).reject(order_id, guest_id=guest_id))
