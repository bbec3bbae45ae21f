"""
Kitchen ticket and receipt projections.

Both merge order items through the grouping engine so a printed ticket shows
one line per (name, unit price, note) instead of duplicate rows.
"""

import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import Order, StoreSettings, TableSession
from rest_api.services.events import record_update
from shared.config.constants import ApprovalStatus, FeedTable, OrderStatus, TicketScope
from shared.config.logging import get_logger
from shared.domain.grouping import LineItem, group_line_items
from shared.infrastructure.db import safe_commit
from shared.utils.clock import utcnow
from shared.utils.exceptions import NotFoundError, OrderNotFoundError, SessionNotFoundError, ValidationError
from shared.utils.schemas import KitchenTicketOutput, PublicReceiptOutput, TicketLineOutput

logger = get_logger(__name__)


def _ticket_lines(items: list[LineItem]) -> list[TicketLineOutput]:
    return [
        TicketLineOutput(
            name_snapshot=item.name_snapshot,
            unit_price_cents=item.unit_price_cents,
            qty=item.qty,
            note=item.note,
            total_cents=item.total_cents,
        )
        for item in items
    ]


class TicketService:
    """
    Domain service for kitchen tickets.
    Only orders the kitchen may see (approved, not cancelled) are printed.
    """

    def __init__(self, db: Session):
        self._db = db

    def _visible_orders(self, session_id: int) -> list[Order]:
        return list(
            self._db.scalars(
                select(Order)
                .where(
                    Order.session_id == session_id,
                    Order.approval_status == ApprovalStatus.APPROVED,
                    Order.status != OrderStatus.CANCELLED,
                )
                .options(selectinload(Order.items))
                .order_by(Order.id)
            ).all()
        )

    def build_kitchen_ticket(
        self,
        session_id: int,
        scope: str = TicketScope.ALL,
        order_id: int | None = None,
    ) -> KitchenTicketOutput:
        session = self._db.get(TableSession, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        orders = self._visible_orders(session_id)
        if scope == TicketScope.UNPRINTED:
            orders = [o for o in orders if o.printed_at is None]
        elif scope == TicketScope.ORDER:
            if order_id is None:
                raise ValidationError("order_id is required for an ORDER ticket", field="order_id")
            orders = [o for o in orders if o.id == order_id]
            if not orders:
                raise OrderNotFoundError(order_id, session_id=session_id)

        items = group_line_items(
            LineItem.from_row(item) for order in orders for item in order.items
        )
        return KitchenTicketOutput(
            session_id=session_id,
            table_name=session.table.name,
            scope=scope,
            order_ids=[o.id for o in orders],
            items=_ticket_lines(items),
            subtotal_cents=sum(item.total_cents for item in items),
            generated_at=utcnow(),
        )


class ReceiptService:
    """Customer-facing receipts reached through an unguessable token."""

    def __init__(self, db: Session):
        self._db = db

    def ensure_receipt_token(self, order_id: int) -> str:
        """Return the order's receipt token, assigning one on first use."""
        order = self._db.scalar(select(Order).where(Order.id == order_id).with_for_update())
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.receipt_token:
            return order.receipt_token

        old = order.as_row()
        order.receipt_token = secrets.token_urlsafe(24)
        record_update(self._db, FeedTable.ORDERS, order, old)
        safe_commit(self._db)
        logger.info("Receipt token issued", order_id=order_id)
        return order.receipt_token

    def get_public_receipt_by_token(self, token: str) -> PublicReceiptOutput:
        order = self._db.scalar(
            select(Order)
            .where(Order.receipt_token == token)
            .options(selectinload(Order.items))
        )
        if order is None:
            raise NotFoundError("Receipt")

        store_name = self._db.scalar(
            select(StoreSettings.store_name).order_by(StoreSettings.id).limit(1)
        )
        items = group_line_items(LineItem.from_row(item) for item in order.items)
        return PublicReceiptOutput(
            order_id=order.id,
            store_name=store_name or "Restaurante",
            table_name=order.table.name,
            created_at=order.created_at,
            status=order.status,
            service_type=order.service_type,
            customer_name=order.customer_name,
            items=_ticket_lines(items),
            subtotal_cents=order.subtotal_cents,
            promo_discount_cents=order.promo_discount_cents,
            discount_cents=order.discount_cents,
            delivery_fee_cents=order.delivery_fee_cents,
            total_cents=order.total_cents,
        )
