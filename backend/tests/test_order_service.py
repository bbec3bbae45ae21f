"""
Tests for OrderService: submission, approval gate, staff orders and fulfillment.
"""

import pytest
from sqlalchemy import select

from rest_api.models import CartItem, Order, OutboxEvent, StoreSettings, TableSession
from rest_api.services.domain import CartService, OrderService, PromotionService, SessionService
from shared.config.constants import (
    ApprovalMode,
    ApprovalStatus,
    FeedTable,
    OrderOrigin,
    OrderStatus,
    SessionStatus,
    TableStatus,
)
from shared.utils.exceptions import (
    EmptyCartError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    NotHostError,
    PendingApprovalError,
    ValidationError,
)
from shared.utils.schemas import PromotionCreate, StaffOrderLineInput, StaffOrderRequest
from tests.conftest import MONDAY, TUESDAY


@pytest.fixture
def ctx(db_session, seated_session, seed_products, seed_staff):
    return {
        "session": seated_session["session"].id,
        "host": seated_session["host"].id,
        "guest": seated_session["guest"].id,
        "burger": seed_products["burger"],
        "soda": seed_products["soda"],
        "waiter": seed_staff["waiter"],
        "carts": CartService(db_session),
        "orders": OrderService(db_session),
    }


def guest_lines(db, session_id, guest_id):
    return db.scalars(
        select(CartItem).where(CartItem.session_id == session_id, CartItem.guest_id == guest_id)
    ).all()


class TestSubmitGuestCart:
    def test_host_order_is_approved_immediately(self, db_session, ctx):
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["soda"].id, 2)

        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"], general_note=" mesa da janela ")

        assert order.approval_status == ApprovalStatus.APPROVED
        assert order.status == OrderStatus.PENDING
        assert order.approved_by_guest_id == ctx["host"]
        assert order.approved_at is not None
        assert order.origin == OrderOrigin.CUSTOMER
        assert order.customer_name == "Alice"
        assert order.general_note == "mesa da janela"
        assert order.total_cents == 1200
        assert guest_lines(db_session, ctx["session"], ctx["host"]) == []

    def test_non_host_order_waits_for_approval(self, db_session, ctx):
        ctx["carts"].increment(ctx["session"], ctx["guest"], ctx["soda"].id, 1)

        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["guest"])

        assert order.approval_status == ApprovalStatus.PENDING_APPROVAL
        assert order.approved_at is None
        assert order.created_by_guest_id == ctx["guest"]

    def test_self_mode_skips_host(self, db_session, ctx):
        store = db_session.scalar(select(StoreSettings))
        store.order_approval_mode = ApprovalMode.SELF
        db_session.commit()
        ctx["carts"].increment(ctx["session"], ctx["guest"], ctx["soda"].id, 1)

        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["guest"])

        assert order.approval_status == ApprovalStatus.APPROVED
        assert order.approved_by_guest_id == ctx["guest"]

    def test_only_own_lines_are_submitted(self, db_session, ctx):
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["soda"].id, 1)
        ctx["carts"].increment(ctx["session"], ctx["guest"], ctx["burger"].id, 3)

        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"])

        assert [(i.name_snapshot, i.qty) for i in order.items] == [("Refrigerante", 1)]
        assert len(guest_lines(db_session, ctx["session"], ctx["guest"])) == 1

    def test_empty_cart_rejected(self, ctx):
        with pytest.raises(EmptyCartError):
            ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"])

    def test_second_submission_blocked_while_pending(self, ctx):
        ctx["carts"].increment(ctx["session"], ctx["guest"], ctx["soda"].id, 1)
        ctx["orders"].submit_guest_cart(ctx["session"], ctx["guest"])

        with pytest.raises(PendingApprovalError):
            ctx["orders"].submit_guest_cart(ctx["session"], ctx["guest"])

    def test_locked_session_refuses_guest_submission(self, db_session, ctx):
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["soda"].id, 1)
        SessionService(db_session).lock_session(ctx["session"])

        with pytest.raises(InvalidStateError):
            ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"])

    def test_guest_of_other_session_rejected(self, ctx):
        with pytest.raises(ForbiddenError):
            ctx["orders"].submit_guest_cart(ctx["session"], 99999)

    def test_prices_recomputed_with_promotion_and_addons(self, db_session, ctx):
        PromotionService(db_session).create(
            PromotionCreate(name="Segunda", discount_type="PERCENT", discount_value=10, weekdays=[1])
        )
        bacon = ctx["burger"].addons[0]
        ctx["carts"].add_with_addons(ctx["session"], ctx["host"], ctx["burger"].id, [bacon.id], delta=2)

        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"], now=MONDAY)

        item = order.items[0]
        assert item.unit_price_cents == 2250 + 300
        assert item.note == "Add-ons: Bacon"
        assert item.added_by_name == "Alice"
        assert order.subtotal_cents == 5600
        assert order.promo_discount_cents == 500
        assert order.total_cents == 5100

    def test_promotion_not_applied_on_other_day(self, db_session, ctx):
        PromotionService(db_session).create(
            PromotionCreate(name="Segunda", discount_type="AMOUNT", discount_value=500, weekdays=[1])
        )
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["burger"].id, 1)

        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"], now=TUESDAY)

        assert order.total_cents == 2500
        assert order.promo_discount_cents == 0

    def test_later_orders_link_to_root(self, ctx):
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["soda"].id, 1)
        root = ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"])
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["burger"].id, 1)
        second = ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"])

        assert root.parent_order_id is None
        assert second.parent_order_id == root.id

    def test_order_insert_published(self, db_session, ctx):
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["soda"].id, 1)
        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"])

        event = db_session.scalar(
            select(OutboxEvent).where(
                OutboxEvent.feed_table == FeedTable.ORDERS, OutboxEvent.row_id == order.id
            )
        )
        assert event.event_type == "INSERT"
        assert event.session_id == ctx["session"]


class TestApproval:
    def _pending(self, ctx):
        ctx["carts"].increment(ctx["session"], ctx["guest"], ctx["soda"].id, 1)
        return ctx["orders"].submit_guest_cart(ctx["session"], ctx["guest"])

    def test_host_approves(self, ctx):
        order = self._pending(ctx)

        approved = ctx["orders"].approve(order.id, guest_id=ctx["host"])

        assert approved.approval_status == ApprovalStatus.APPROVED
        assert approved.status == OrderStatus.PENDING
        assert approved.approved_by_guest_id == ctx["host"]

    def test_approval_unblocks_submitter_cart(self, ctx):
        order = self._pending(ctx)
        ctx["orders"].approve(order.id, guest_id=ctx["host"])

        line = ctx["carts"].increment(ctx["session"], ctx["guest"], ctx["soda"].id, 1)
        assert line.qty == 1

    def test_approval_clears_only_submitter_lines(self, db_session, ctx):
        order = self._pending(ctx)
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["burger"].id, 2)
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["soda"].id, 1)
        # Leftover line of the submitter, written while the order waited.
        db_session.add(CartItem(session_id=ctx["session"], guest_id=ctx["guest"], product_id=ctx["soda"].id, qty=1))
        db_session.commit()

        ctx["orders"].approve(order.id, guest_id=ctx["host"])

        db_session.expire_all()
        assert guest_lines(db_session, ctx["session"], ctx["guest"]) == []
        host_lines = guest_lines(db_session, ctx["session"], ctx["host"])
        assert sorted((line.product_id, line.qty) for line in host_lines) == sorted(
            [(ctx["burger"].id, 2), (ctx["soda"].id, 1)]
        )

    def test_non_host_cannot_approve_or_reject(self, ctx):
        order = self._pending(ctx)

        with pytest.raises(NotHostError):
            ctx["orders"].approve(order.id, guest_id=ctx["guest"])
        with pytest.raises(NotHostError):
            ctx["orders"].reject(order.id, guest_id=ctx["guest"])

    def test_staff_can_resolve(self, ctx):
        order = self._pending(ctx)

        approved = ctx["orders"].approve(order.id, profile_id=ctx["waiter"].id)

        assert approved.approved_by_profile_id == ctx["waiter"].id
        assert approved.approved_by_guest_id is None

    def test_rejection_is_final(self, db_session, ctx):
        order = self._pending(ctx)

        rejected = ctx["orders"].reject(order.id, guest_id=ctx["host"])

        assert rejected.approval_status == ApprovalStatus.REJECTED
        assert rejected.status == OrderStatus.CANCELLED
        assert guest_lines(db_session, ctx["session"], ctx["guest"]) == []
        with pytest.raises(InvalidTransitionError):
            ctx["orders"].approve(order.id, guest_id=ctx["host"])

    def test_approved_order_cannot_be_approved_twice(self, ctx):
        order = self._pending(ctx)
        ctx["orders"].approve(order.id, guest_id=ctx["host"])

        with pytest.raises(InvalidTransitionError):
            ctx["orders"].approve(order.id, guest_id=ctx["host"])

    def test_rejected_root_is_not_used_as_parent(self, ctx):
        rejected = self._pending(ctx)
        ctx["orders"].reject(rejected.id, guest_id=ctx["host"])
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["soda"].id, 1)

        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"])

        assert order.parent_order_id is None


class TestStaffOrders:
    def _request(self, ctx, **overrides):
        data = {
            "session_id": ctx["session"],
            "items": [StaffOrderLineInput(product_id=ctx["burger"].id, qty=2)],
        }
        data.update(overrides)
        return StaffOrderRequest(**data)

    def test_staff_order_is_approved(self, ctx):
        order = ctx["orders"].create_staff_order(ctx["waiter"], self._request(ctx))

        assert order.origin == OrderOrigin.WAITER
        assert order.approval_status == ApprovalStatus.APPROVED
        assert order.created_by_profile_id == ctx["waiter"].id
        assert order.items[0].added_by_name == "Ana"
        assert order.total_cents == 5000

    def test_manual_discount_and_delivery_fee(self, ctx):
        request = self._request(
            ctx,
            discount_mode="PERCENT",
            discount_value=10,
            delivery_fee_cents=700,
            service_type="ENTREGA",
            customer_phone="11 99999-0000",
        )

        order = ctx["orders"].create_staff_order(ctx["waiter"], request)

        assert order.subtotal_cents == 5000
        assert order.discount_cents == 500
        assert order.delivery_fee_cents == 700
        assert order.total_cents == 5200

    def test_manual_discount_applies_after_promotion(self, db_session, ctx):
        PromotionService(db_session).create(
            PromotionCreate(name="Tudo 10%", discount_type="PERCENT", discount_value=10, weekdays=[1])
        )
        request = self._request(ctx, discount_mode="AMOUNT", discount_value=1000)

        order = ctx["orders"].create_staff_order(ctx["waiter"], request, now=MONDAY)

        assert order.promo_discount_cents == 500
        assert order.discount_cents == 1000
        assert order.total_cents == 3500

    def test_allowed_on_locked_session(self, db_session, ctx):
        SessionService(db_session).lock_session(ctx["session"])

        order = ctx["orders"].create_staff_order(ctx["waiter"], self._request(ctx))

        assert order.session_id == ctx["session"]

    def test_explicit_parent_normalized_to_root(self, ctx):
        root = ctx["orders"].create_staff_order(ctx["waiter"], self._request(ctx))
        child = ctx["orders"].create_staff_order(ctx["waiter"], self._request(ctx))

        grandchild = ctx["orders"].create_staff_order(
            ctx["waiter"], self._request(ctx, parent_order_id=child.id)
        )

        assert child.parent_order_id == root.id
        assert grandchild.parent_order_id == root.id

    def test_parent_from_other_session_rejected(self, db_session, ctx, seed_staff):
        counter = SessionService(db_session).get_or_create_counter_session(seed_staff["manager"])
        foreign = ctx["orders"].create_staff_order(
            seed_staff["manager"], self._request(ctx, session_id=counter.id, origin="BALCAO")
        )

        with pytest.raises(ValidationError):
            ctx["orders"].create_staff_order(ctx["waiter"], self._request(ctx, parent_order_id=foreign.id))


class TestFulfillment:
    def _approved(self, ctx):
        ctx["carts"].increment(ctx["session"], ctx["host"], ctx["soda"].id, 1)
        return ctx["orders"].submit_guest_cart(ctx["session"], ctx["host"])

    def test_happy_path(self, ctx):
        order = self._approved(ctx)
        for target in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.FINISHED):
            order = ctx["orders"].transition_status(order.id, target)
        assert order.status == OrderStatus.FINISHED

    def test_cannot_skip_states(self, ctx):
        order = self._approved(ctx)
        with pytest.raises(InvalidTransitionError):
            ctx["orders"].transition_status(order.id, OrderStatus.READY)

    def test_pending_approval_cannot_be_prepared(self, ctx):
        ctx["carts"].increment(ctx["session"], ctx["guest"], ctx["soda"].id, 1)
        order = ctx["orders"].submit_guest_cart(ctx["session"], ctx["guest"])

        with pytest.raises(InvalidTransitionError):
            ctx["orders"].transition_status(order.id, OrderStatus.PREPARING)

    def test_finish_with_close_session(self, db_session, ctx):
        order = self._approved(ctx)
        ctx["orders"].transition_status(order.id, OrderStatus.PREPARING)
        ctx["orders"].transition_status(order.id, OrderStatus.READY)
        ctx["orders"].transition_status(order.id, OrderStatus.FINISHED, close_session=True)

        session = db_session.get(TableSession, ctx["session"])
        db_session.refresh(session)
        assert session.status == SessionStatus.EXPIRED
        assert session.table.status == TableStatus.FREE

    def test_mark_printed(self, ctx):
        order = self._approved(ctx)

        first = ctx["orders"].mark_orders_printed(ctx["session"], [order.id])[0]
        second = ctx["orders"].mark_orders_printed(ctx["session"], [order.id])[0]

        assert first.printed_count == 1
        assert second.printed_count == 2
        assert second.printed_at == first.printed_at

    def test_mark_printed_ignores_other_sessions(self, db_session, ctx, seed_staff):
        counter = SessionService(db_session).get_or_create_counter_session(seed_staff["manager"])
        foreign = ctx["orders"].create_staff_order(
            seed_staff["manager"],
            StaffOrderRequest(
                session_id=counter.id,
                origin="BALCAO",
                items=[StaffOrderLineInput(product_id=ctx["soda"].id, qty=1)],
            ),
        )

        assert ctx["orders"].mark_orders_printed(ctx["session"], [foreign.id]) == []
        assert db_session.get(Order, foreign.id).printed_count == 0
