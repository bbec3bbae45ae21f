"""
Order lifecycle state machine.

Two orthogonal axes on every order:

    status           PENDING → PREPARING → READY → FINISHED
                     (CANCELLED from any non-terminal state)
    approval_status  PENDING_APPROVAL → APPROVED | REJECTED

The approval axis only matters while status is PENDING: an order waiting
for approval is invisible to the kitchen and cannot advance.

These functions validate and mutate the ORM object in memory; persisting
and publishing the change is the caller's job.
"""

from datetime import datetime

from rest_api.models import Order
from shared.config.constants import (
    ApprovalMode,
    ApprovalStatus,
    OrderOrigin,
    OrderStatus,
    SessionCloseOutcome,
    validate_approval_transition,
    validate_order_transition,
)
from shared.utils.exceptions import InvalidTransitionError


def initial_approval_status(origin: str, approval_mode: str, submitter_is_host: bool) -> str:
    """
    Approval status an order is created with.

    Staff orders, orders in SELF mode and orders sent by the host skip the
    gate; everything else waits for the host.
    """
    if origin in OrderOrigin.STAFF:
        return ApprovalStatus.APPROVED
    if approval_mode == ApprovalMode.SELF or submitter_is_host:
        return ApprovalStatus.APPROVED
    return ApprovalStatus.PENDING_APPROVAL


def _check_approval(order: Order, target: str) -> None:
    if order.status != OrderStatus.PENDING or not validate_approval_transition(
        order.approval_status, target
    ):
        raise InvalidTransitionError(
            "order approval",
            order.approval_status,
            target,
            order_id=order.id,
            status=order.status,
        )


def approve(
    order: Order,
    now: datetime,
    guest_id: int | None = None,
    profile_id: int | None = None,
) -> None:
    """PENDING_APPROVAL → APPROVED; the order enters the kitchen queue as PENDING."""
    _check_approval(order, ApprovalStatus.APPROVED)
    order.approval_status = ApprovalStatus.APPROVED
    order.status = OrderStatus.PENDING
    order.approved_by_guest_id = guest_id
    order.approved_by_profile_id = profile_id
    order.approved_at = now


def reject(order: Order) -> None:
    """PENDING_APPROVAL → REJECTED, fulfillment CANCELLED. Final."""
    _check_approval(order, ApprovalStatus.REJECTED)
    order.approval_status = ApprovalStatus.REJECTED
    order.status = OrderStatus.CANCELLED


def advance(order: Order, target: str) -> None:
    """
    Move the fulfillment status.

    Cancelling an order still waiting for approval rejects it as well;
    any other move requires the order to be approved.
    """
    if not validate_order_transition(order.status, target):
        raise InvalidTransitionError("order", order.status, target, order_id=order.id)

    if order.approval_status == ApprovalStatus.PENDING_APPROVAL:
        if target != OrderStatus.CANCELLED:
            raise InvalidTransitionError(
                "order", order.approval_status, target, order_id=order.id
            )
        order.approval_status = ApprovalStatus.REJECTED

    order.status = target


def close_out(order: Order, outcome: str) -> bool:
    """
    Settle an order when its session is closed.

    Orders still waiting for approval are rejected. Approved non-terminal
    orders become FINISHED (outcome FINISH) or CANCELLED (outcome CANCEL)
    from whatever stage they are in. Returns False when nothing changed.
    """
    if order.status in OrderStatus.TERMINAL:
        return False

    if order.approval_status == ApprovalStatus.PENDING_APPROVAL:
        order.approval_status = ApprovalStatus.REJECTED
        order.status = OrderStatus.CANCELLED
        return True

    if outcome == SessionCloseOutcome.FINISH:
        order.status = OrderStatus.FINISHED
    else:
        order.status = OrderStatus.CANCELLED
    return True
