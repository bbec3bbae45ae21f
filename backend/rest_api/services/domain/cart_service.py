"""
Cart Domain Service.

A session's cart is partitioned by guest: every operation is scoped to
(session_id, guest_id) and only ever reads or writes that guest's lines.
A line is identified by (product, note) where note is the canonical
CartNote encoding, so two selections of the same product with different
add-ons or observations stay separate lines.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from rest_api.models import CartItem, Guest, Order, Product, ProductAddon, TableSession
from rest_api.services.events import record_delete, record_insert, record_update
from shared.config.constants import ApprovalStatus, FeedTable, MAX_CART_LINE_QTY, SessionStatus
from shared.config.logging import diner_logger as logger
from shared.domain.cart_note import AddonChoice, CartNote
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PendingApprovalError,
    SessionNotFoundError,
    ValidationError,
)
from shared.utils.schemas import CartLineOutput, CartNoteOutput


class CartService:
    """
    Domain service for guest cart lines.

    Mutations are guarded: the session must be OPEN, the guest must belong
    to it and must not have an own order waiting for approval. The pending
    check reads the orders table on every call rather than trusting any
    client-side flag.
    """

    def __init__(self, db: Session):
        self._db = db

    # =========================================================================
    # Guards
    # =========================================================================

    def _require_writable(self, session_id: int, guest_id: int) -> tuple[TableSession, Guest]:
        session = self._db.get(TableSession, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.status != SessionStatus.OPEN:
            raise InvalidStateError(
                "Session", session.status, [SessionStatus.OPEN], session_id=session_id
            )

        guest = self._db.get(Guest, guest_id)
        if guest is None or guest.session_id != session_id:
            raise ForbiddenError("use this session's cart", session_id=session_id, guest_id=guest_id)

        self.ensure_no_pending_approval(session_id, guest_id)
        return session, guest

    def ensure_no_pending_approval(self, session_id: int, guest_id: int) -> None:
        pending_id = self._db.scalar(
            select(Order.id)
            .where(
                Order.session_id == session_id,
                Order.created_by_guest_id == guest_id,
                Order.approval_status == ApprovalStatus.PENDING_APPROVAL,
            )
            .limit(1)
        )
        if pending_id is not None:
            raise PendingApprovalError(guest_id, pending_id, session_id=session_id)

    def _require_product(self, product_id: int) -> Product:
        product = self._db.get(Product, product_id)
        if product is None or not product.active:
            raise NotFoundError("Product", product_id)
        return product

    # =========================================================================
    # Mutations
    # =========================================================================

    def _find_line(self, session_id: int, guest_id: int, product_id: int, note: str | None) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.session_id == session_id,
            CartItem.guest_id == guest_id,
            CartItem.product_id == product_id,
        )
        if note is None:
            stmt = stmt.where(CartItem.note.is_(None))
        else:
            stmt = stmt.where(CartItem.note == note)
        return self._db.scalars(stmt.order_by(CartItem.id).limit(1)).first()

    def increment(
        self,
        session_id: int,
        guest_id: int,
        product_id: int,
        delta: int,
        note: CartNote | None = None,
    ) -> CartItem | None:
        """
        Add `delta` to the guest's (product, note) line.

        The line is deleted when the result drops to zero or below, and
        created with qty=delta when missing and delta is positive. Returns the
        line after the change, or None when it no longer exists.
        """
        if delta == 0:
            raise ValidationError("Quantity delta must not be zero", field="delta")

        self._require_writable(session_id, guest_id)
        self._require_product(product_id)
        stored_note = (note or CartNote()).to_storage()

        line = self._find_line(session_id, guest_id, product_id, stored_note)
        if line is None:
            if delta < 0:
                return None
            if delta > MAX_CART_LINE_QTY:
                raise ValidationError(f"Quantity cannot exceed {MAX_CART_LINE_QTY}", field="delta")
            line = CartItem(
                session_id=session_id,
                guest_id=guest_id,
                product_id=product_id,
                qty=delta,
                note=stored_note,
            )
            self._db.add(line)
            record_insert(self._db, FeedTable.CART_ITEMS, line)
            safe_commit(self._db)
            logger.debug("Cart line created", session_id=session_id, guest_id=guest_id, line_id=line.id)
            return line

        new_qty = line.qty + delta
        if new_qty <= 0:
            record_delete(self._db, FeedTable.CART_ITEMS, line)
            self._db.delete(line)
            safe_commit(self._db)
            logger.debug("Cart line removed", session_id=session_id, guest_id=guest_id, line_id=line.id)
            return None

        if new_qty > MAX_CART_LINE_QTY:
            raise ValidationError(f"Quantity cannot exceed {MAX_CART_LINE_QTY}", field="delta")

        old = line.as_row()
        line.qty = new_qty
        record_update(self._db, FeedTable.CART_ITEMS, line, old)
        safe_commit(self._db)
        return line

    def resolve_addons(self, product_id: int, addon_ids: list[int]) -> list[AddonChoice]:
        """
        Look up the selected add-ons. Every id must be an active add-on of
        this product.
        """
        wanted = sorted(set(addon_ids))
        if not wanted:
            return []

        addons = self._db.scalars(
            select(ProductAddon).where(
                ProductAddon.id.in_(wanted),
                ProductAddon.product_id == product_id,
                ProductAddon.active.is_(True),
            )
        ).all()
        found = {a.id for a in addons}
        missing = [i for i in wanted if i not in found]
        if missing:
            raise ValidationError(
                f"Add-ons {missing} are not available for product {product_id}",
                product_id=product_id,
            )
        return [AddonChoice(id=a.id, name=a.name, price_cents=a.price_cents) for a in addons]

    def build_note(self, product_id: int, addon_ids: list[int], observation: str | None) -> CartNote:
        return CartNote.build(self.resolve_addons(product_id, addon_ids), observation)

    def add_with_addons(
        self,
        session_id: int,
        guest_id: int,
        product_id: int,
        addon_ids: list[int],
        observation: str | None = None,
        delta: int = 1,
    ) -> CartItem | None:
        """Resolve add-on names and prices server-side, then increment that line."""
        note = self.build_note(product_id, addon_ids, observation)
        return self.increment(session_id, guest_id, product_id, delta, note)

    def change_line(self, session_id: int, guest_id: int, line_id: int, delta: int) -> CartItem | None:
        """Increment/decrement a line by id (the +/- buttons of the cart drawer)."""
        line = self._get_own_line(session_id, guest_id, line_id)
        return self.increment(
            session_id, guest_id, line.product_id, delta, CartNote.from_storage(line.note)
        )

    def _get_own_line(self, session_id: int, guest_id: int, line_id: int) -> CartItem:
        line = self._db.get(CartItem, line_id)
        if line is None or line.session_id != session_id:
            raise NotFoundError("Cart line", line_id)
        if line.guest_id != guest_id:
            raise ForbiddenError("modify another guest's cart", line_id=line_id, guest_id=guest_id)
        return line

    def remove_line(self, session_id: int, guest_id: int, line_id: int) -> None:
        self._require_writable(session_id, guest_id)
        line = self._get_own_line(session_id, guest_id, line_id)
        record_delete(self._db, FeedTable.CART_ITEMS, line)
        self._db.delete(line)
        safe_commit(self._db)

    def clear_guest_lines(self, session_id: int, guest_id: int) -> int:
        """
        Delete every line owned by the guest in the session. Does not commit;
        used inside order submission/approval transactions.
        """
        lines = self._db.scalars(
            select(CartItem).where(
                CartItem.session_id == session_id,
                CartItem.guest_id == guest_id,
            )
        ).all()
        for line in lines:
            record_delete(self._db, FeedTable.CART_ITEMS, line)
            self._db.delete(line)
        return len(lines)

    def remove_all(self, session_id: int, guest_id: int) -> int:
        """Empty the guest's own cart."""
        self._require_writable(session_id, guest_id)
        removed = self.clear_guest_lines(session_id, guest_id)
        safe_commit(self._db)
        logger.info("Cart cleared", session_id=session_id, guest_id=guest_id, removed=removed)
        return removed

    # =========================================================================
    # Reads
    # =========================================================================

    def _lines(self, session_id: int, guest_id: int | None = None) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.session_id == session_id)
            .options(joinedload(CartItem.product))
            .order_by(CartItem.id)
        )
        if guest_id is not None:
            stmt = stmt.where(CartItem.guest_id == guest_id)
        return list(self._db.scalars(stmt).all())

    def list_session_cart(self, session_id: int) -> list[CartItem]:
        return self._lines(session_id)

    def list_guest_cart(self, session_id: int, guest_id: int) -> list[CartItem]:
        return self._lines(session_id, guest_id)

    @staticmethod
    def to_output(line: CartItem) -> CartLineOutput:
        note = line.cart_note
        return CartLineOutput(
            id=line.id,
            session_id=line.session_id,
            guest_id=line.guest_id,
            product_id=line.product_id,
            product_name=line.product.name,
            base_price_cents=line.product.price_cents,
            qty=line.qty,
            note=None if note.is_empty else CartNoteOutput(**note.to_dict()),
        )
