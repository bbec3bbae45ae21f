"""
Staff printing router: kitchen tickets, printed tracking and receipt links.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rest_api.models import StaffProfile
from rest_api.routers._common import get_staff_profile
from rest_api.services.domain import OrderService, ReceiptService, TicketService
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    KitchenTicketOutput,
    MarkPrintedRequest,
    OrderOutput,
    ReceiptTokenOutput,
    TicketScope,
)

router = APIRouter(prefix="/api/staff", tags=["staff-printing"])


@router.get("/sessions/{session_id}/ticket", response_model=KitchenTicketOutput)
def kitchen_ticket(
    session_id: int,
    scope: TicketScope = Query(default="ALL"),
    order_id: int | None = Query(default=None),
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> KitchenTicketOutput:
    return TicketService(db).build_kitchen_ticket(session_id, scope, order_id)


@router.post("/sessions/{session_id}/printed", response_model=list[OrderOutput])
def mark_printed(
    session_id: int,
    body: MarkPrintedRequest,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> list[OrderOutput]:
    orders = OrderService(db).mark_orders_printed(session_id, body.order_ids)
    return [OrderOutput.model_validate(o) for o in orders]


@router.post("/orders/{order_id}/receipt-token", response_model=ReceiptTokenOutput)
def receipt_token(
    order_id: int,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> ReceiptTokenOutput:
    token = ReceiptService(db).ensure_receipt_token(order_id)
    return ReceiptTokenOutput(order_id=order_id, receipt_token=token)
