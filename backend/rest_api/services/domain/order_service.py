"""
Order Domain Service.

Order creation, approval and fulfillment. Each public method is one
transaction: the order header, its items, the consumed cart lines and the
change-feed events commit together or not at all.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from rest_api.models import (
    Guest,
    Order,
    OrderItem,
    Product,
    StaffProfile,
    StoreSettings,
    TableSession,
)
from rest_api.services.domain import order_state_machine
from rest_api.services.domain.cart_service import CartService
from rest_api.services.domain.promotion_service import PromotionService
from rest_api.services.domain.session_service import SessionService
from rest_api.services.events import record_insert, record_update
from shared.config.constants import (
    ApprovalMode,
    ApprovalStatus,
    DiscountMode,
    FeedTable,
    OrderOrigin,
    OrderStatus,
    ServiceType,
    SessionCloseOutcome,
    SessionStatus,
)
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.domain.cart_note import CartNote
from shared.domain.grouping import LineItem, group_line_items
from shared.domain.pricing import PromotionRule, manual_discount_cents, price_line
from shared.infrastructure.db import safe_commit
from shared.utils.clock import store_now, utcnow
from shared.utils.exceptions import (
    DatabaseError,
    EmptyCartError,
    ForbiddenError,
    NotFoundError,
    NotHostError,
    OrderNotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from shared.utils.schemas import StaffOrderLineInput, StaffOrderRequest

logger = get_logger(__name__)


class OrderService:
    """
    Domain service for orders.

    Plays the role of the store's transactional procedures: guest cart
    submission, staff order injection, approval resolution, fulfillment
    transitions and printed tracking.
    """

    def __init__(self, db: Session):
        self._db = db
        self._sessions = SessionService(db)
        self._carts = CartService(db)
        self._promotions = PromotionService(db)

    # =========================================================================
    # Helpers
    # =========================================================================

    def get_approval_mode(self) -> str:
        mode = self._db.scalar(
            select(StoreSettings.order_approval_mode).order_by(StoreSettings.id).limit(1)
        )
        return mode or settings.default_order_approval_mode or ApprovalMode.HOST

    def get_order(self, order_id: int) -> Order:
        order = self._db.scalar(
            select(Order).where(Order.id == order_id).options(selectinload(Order.items))
        )
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _lock_order(self, order_id: int) -> Order:
        order = self._db.scalar(select(Order).where(Order.id == order_id).with_for_update())
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _lock_session(self, session_id: int) -> TableSession:
        session = self._db.scalar(
            select(TableSession).where(TableSession.id == session_id).with_for_update()
        )
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def find_root_order_id(self, session_id: int) -> int | None:
        """Earliest non-rejected order of the session without a parent."""
        return self._db.scalar(
            select(Order.id)
            .where(
                Order.session_id == session_id,
                Order.parent_order_id.is_(None),
                Order.approval_status != ApprovalStatus.REJECTED,
            )
            .order_by(Order.created_at, Order.id)
            .limit(1)
        )

    def _normalize_parent(self, session_id: int, parent_order_id: int) -> int:
        parent = self._db.get(Order, parent_order_id)
        if parent is None or parent.session_id != session_id:
            raise ValidationError(
                f"Parent order {parent_order_id} does not belong to session {session_id}",
                session_id=session_id,
            )
        return parent.parent_order_id or parent.id

    def _price_items(
        self,
        lines: list[tuple[Product, int, CartNote, str | None]],
        promotions: list[PromotionRule],
        now: datetime,
    ) -> tuple[list[LineItem], int, int]:
        """
        Price (product, qty, note, added_by) lines and merge them.
        Returns (grouped items, subtotal, promotion discount).
        """
        raw: list[LineItem] = []
        subtotal = 0
        promo_discount = 0
        for product, qty, note, added_by in lines:
            pricing = price_line(
                product.id, product.price_cents, note.addon_total_cents, qty, promotions, now
            )
            subtotal += pricing.subtotal_cents
            promo_discount += pricing.discount_cents
            raw.append(
                LineItem(
                    name_snapshot=product.name,
                    unit_price_cents=pricing.unit_price_cents,
                    qty=qty,
                    note=note.render(),
                    product_id=product.id,
                    added_by_name=added_by,
                )
            )
        return group_line_items(raw), subtotal, promo_discount

    def _add_items(self, order: Order, items: list[LineItem]) -> None:
        for item in items:
            order.items.append(
                OrderItem(
                    product_id=item.product_id,
                    name_snapshot=item.name_snapshot,
                    unit_price_cents=item.unit_price_cents,
                    qty=item.qty,
                    note=item.note,
                    added_by_name=item.added_by_name,
                )
            )

    # =========================================================================
    # Guest submission
    # =========================================================================

    def submit_guest_cart(
        self,
        session_id: int,
        guest_id: int,
        general_note: str | None = None,
        now: datetime | None = None,
    ) -> Order:
        """
        Turn the guest's own cart lines into an order.

        The pending-approval guard is re-checked here against the database,
        so a second tab that missed the first submission cannot create a
        duplicate. Prices are recomputed server-side; the submitted lines are
        consumed in the same transaction.
        """
        session = self._lock_session(session_id)
        self._sessions.require_status(session, SessionStatus.OPEN)

        guest = self._db.get(Guest, guest_id)
        if guest is None or guest.session_id != session_id:
            raise ForbiddenError("submit in this session", session_id=session_id, guest_id=guest_id)
        self._carts.ensure_no_pending_approval(session_id, guest_id)

        cart_lines = self._carts.list_guest_cart(session_id, guest_id)
        if not cart_lines:
            raise EmptyCartError(session_id=session_id, guest_id=guest_id)

        now = now or store_now()
        try:
            priced, subtotal, promo_discount = self._price_items(
                [(line.product, line.qty, line.cart_note, guest.name) for line in cart_lines],
                self._promotions.active_rules(),
                now,
            )

            approval = order_state_machine.initial_approval_status(
                OrderOrigin.CUSTOMER,
                self.get_approval_mode(),
                submitter_is_host=session.host_guest_id == guest.id,
            )
            order = Order(
                session_id=session.id,
                table_id=session.table_id,
                origin=OrderOrigin.CUSTOMER,
                parent_order_id=self.find_root_order_id(session.id),
                status=OrderStatus.PENDING,
                approval_status=approval,
                created_by_guest_id=guest.id,
                subtotal_cents=subtotal,
                promo_discount_cents=promo_discount,
                discount_mode=DiscountMode.NONE,
                discount_value=0,
                discount_cents=0,
                delivery_fee_cents=0,
                total_cents=max(0, subtotal - promo_discount),
                service_type=ServiceType.ON_TABLE,
                customer_name=guest.name,
                general_note=(general_note or "").strip() or None,
            )
            if approval == ApprovalStatus.APPROVED:
                order.approved_by_guest_id = guest.id
                order.approved_at = utcnow()
            self._add_items(order, priced)
            self._db.add(order)
            record_insert(self._db, FeedTable.ORDERS, order)

            self._carts.clear_guest_lines(session_id, guest_id)
            safe_commit(self._db)
        except SQLAlchemyError as e:
            self._db.rollback()
            raise DatabaseError("submit order", session_id=session_id, guest_id=guest_id) from e

        logger.info(
            "Guest order submitted",
            order_id=order.id,
            session_id=session_id,
            guest_id=guest_id,
            approval_status=approval,
            total_cents=order.total_cents,
        )
        return self.get_order(order.id)

    # =========================================================================
    # Staff orders
    # =========================================================================

    def _load_staff_lines(
        self, lines: list[StaffOrderLineInput], added_by: str
    ) -> list[tuple[Product, int, CartNote, str | None]]:
        resolved = []
        for line in lines:
            product = self._db.get(Product, line.product_id)
            if product is None or not product.active:
                raise NotFoundError("Product", line.product_id)
            note = self._carts.build_note(product.id, line.addon_ids, line.observation)
            resolved.append((product, line.qty, note, added_by))
        return resolved

    def create_staff_order(
        self,
        profile: StaffProfile,
        request: StaffOrderRequest,
        now: datetime | None = None,
    ) -> Order:
        """
        Waiter or counter injects an order. Staff orders skip the approval
        gate and may carry a manual discount, a delivery fee and customer
        details.
        """
        session = self._lock_session(request.session_id)
        self._sessions.require_status(session, *SessionStatus.ACTIVE)

        now = now or store_now()
        lines = self._load_staff_lines(request.items, profile.name)
        try:
            priced, subtotal, promo_discount = self._price_items(
                lines, self._promotions.active_rules(), now
            )
            after_promo = max(0, subtotal - promo_discount)
            discount = manual_discount_cents(after_promo, request.discount_mode, request.discount_value)

            if request.parent_order_id is not None:
                parent_id = self._normalize_parent(session.id, request.parent_order_id)
            else:
                parent_id = self.find_root_order_id(session.id)

            order = Order(
                session_id=session.id,
                table_id=session.table_id,
                origin=request.origin,
                parent_order_id=parent_id,
                status=OrderStatus.PENDING,
                approval_status=ApprovalStatus.APPROVED,
                created_by_profile_id=profile.id,
                approved_by_profile_id=profile.id,
                approved_at=utcnow(),
                subtotal_cents=subtotal,
                promo_discount_cents=promo_discount,
                discount_mode=request.discount_mode,
                discount_value=request.discount_value,
                discount_cents=discount,
                delivery_fee_cents=request.delivery_fee_cents,
                total_cents=max(0, after_promo - discount) + request.delivery_fee_cents,
                service_type=request.service_type,
                customer_name=request.customer_name,
                customer_phone=request.customer_phone,
                general_note=(request.general_note or "").strip() or None,
            )
            self._add_items(order, priced)
            self._db.add(order)
            record_insert(self._db, FeedTable.ORDERS, order)
            safe_commit(self._db)
        except SQLAlchemyError as e:
            self._db.rollback()
            raise DatabaseError("create staff order", session_id=session.id) from e

        logger.info(
            "Staff order created",
            order_id=order.id,
            session_id=session.id,
            profile_id=profile.id,
            origin=request.origin,
            total_cents=order.total_cents,
        )
        return self.get_order(order.id)

    # =========================================================================
    # Approval
    # =========================================================================

    def _require_resolver(self, order: Order, guest_id: int | None, profile_id: int | None) -> None:
        """Staff, or the host of the order's session."""
        if profile_id is not None:
            return
        session = self._db.get(TableSession, order.session_id)
        if guest_id is None or session.host_guest_id != guest_id:
            raise NotHostError(order_id=order.id, session_id=order.session_id, guest_id=guest_id)

    def approve(self, order_id: int, guest_id: int | None = None, profile_id: int | None = None) -> Order:
        """
        Host (or staff) approves a pending order. The order enters the
        kitchen queue and the submitter's leftover cart lines are cleared.
        """
        order = self._lock_order(order_id)
        self._require_resolver(order, guest_id, profile_id)

        old = order.as_row()
        order_state_machine.approve(order, utcnow(), guest_id=guest_id, profile_id=profile_id)
        record_update(self._db, FeedTable.ORDERS, order, old)
        cleared = 0
        if order.created_by_guest_id is not None:
            cleared = self._carts.clear_guest_lines(order.session_id, order.created_by_guest_id)
        safe_commit(self._db)

        logger.info(
            "Order approved",
            order_id=order_id,
            session_id=order.session_id,
            approved_by_guest_id=guest_id,
            approved_by_profile_id=profile_id,
            cart_lines_cleared=cleared,
        )
        return self.get_order(order_id)

    def reject(self, order_id: int, guest_id: int | None = None, profile_id: int | None = None) -> Order:
        """Final; the submitter's consumed cart lines are not restored."""
        order = self._lock_order(order_id)
        self._require_resolver(order, guest_id, profile_id)

        old = order.as_row()
        order_state_machine.reject(order)
        record_update(self._db, FeedTable.ORDERS, order, old)
        safe_commit(self._db)

        logger.info("Order rejected", order_id=order_id, session_id=order.session_id)
        return self.get_order(order_id)

    # =========================================================================
    # Fulfillment
    # =========================================================================

    def transition_status(self, order_id: int, target: str, close_session: bool = False) -> Order:
        """
        Move an order along the fulfillment axis.

        With `close_session`, entering FINISHED or CANCELLED also closes the
        order's session (the staff "close out the table" action).
        """
        order = self._lock_order(order_id)
        old = order.as_row()
        order_state_machine.advance(order, target)
        record_update(self._db, FeedTable.ORDERS, order, old)

        if close_session and target in OrderStatus.TERMINAL:
            session = self._lock_session(order.session_id)
            if session.is_active:
                outcome = (
                    SessionCloseOutcome.FINISH
                    if target == OrderStatus.FINISHED
                    else SessionCloseOutcome.CANCEL
                )
                self._sessions.expire(session, outcome)

        safe_commit(self._db)
        logger.info(
            "Order status changed",
            order_id=order_id,
            from_status=old["status"],
            to_status=target,
            close_session=close_session,
        )
        return self.get_order(order_id)

    def mark_orders_printed(self, session_id: int, order_ids: list[int]) -> list[Order]:
        """
        Record that tickets were printed. Orders outside the session are
        ignored; `printed_at` keeps the first print time.
        """
        orders = self._db.scalars(
            select(Order)
            .where(Order.session_id == session_id, Order.id.in_(set(order_ids)))
            .order_by(Order.id)
            .with_for_update()
        ).all()
        now = utcnow()
        for order in orders:
            old = order.as_row()
            if order.printed_at is None:
                order.printed_at = now
            order.printed_count = (order.printed_count or 0) + 1
            record_update(self._db, FeedTable.ORDERS, order, old)
        safe_commit(self._db)

        logger.info("Orders marked printed", session_id=session_id, order_ids=[o.id for o in orders])
        return [self.get_order(o.id) for o in orders]

    # =========================================================================
    # Reads
    # =========================================================================

    def list_session_orders(self, session_id: int) -> list[Order]:
        return list(
            self._db.scalars(
                select(Order)
                .where(Order.session_id == session_id)
                .options(selectinload(Order.items))
                .order_by(Order.id)
            ).all()
        )

    def list_pending_approval(self, session_id: int) -> list[Order]:
        return [o for o in self.list_session_orders(session_id) if o.is_pending_approval]
