"""
Staff orders router: inject orders, resolve approvals, move fulfillment.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from rest_api.models import StaffProfile
from rest_api.routers._common import get_staff_profile
from rest_api.services.domain import OrderService
from shared.infrastructure.db import get_db
from shared.utils.schemas import OrderOutput, StaffOrderRequest, UpdateOrderStatusRequest

router = APIRouter(prefix="/api/staff", tags=["staff-orders"])


@router.post("/orders", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def create_order(
    body: StaffOrderRequest,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> OrderOutput:
    """Staff orders are approved on creation."""
    return OrderOutput.model_validate(OrderService(db).create_staff_order(profile, body))


@router.get("/sessions/{session_id}/orders", response_model=list[OrderOutput])
def list_orders(
    session_id: int,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> list[OrderOutput]:
    return [OrderOutput.model_validate(o) for o in OrderService(db).list_session_orders(session_id)]


@router.post("/orders/{order_id}/approve", response_model=OrderOutput)
def approve_order(
    order_id: int,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> OrderOutput:
    return OrderOutput.model_validate(OrderService(db).approve(order_id, profile_id=profile.id))


@router.post("/orders/{order_id}/reject", response_model=OrderOutput)
def reject_order(
    order_id: int,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> OrderOutput:
    return OrderOutput.model_validate(OrderService(db).reject(order_id, profile_id=profile.id))


@router.patch("/orders/{order_id}/status", response_model=OrderOutput)
def update_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> OrderOutput:
    order = OrderService(db).transition_status(order_id, body.status, close_session=body.close_session)
    return OrderOutput.model_validate(order)
