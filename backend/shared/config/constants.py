"""
Centralized constants for the ordering engine.
Avoids magic strings for statuses, origins and modes.

Usage:
    from shared.config.constants import OrderStatus, ApprovalStatus

    if order.approval_status == ApprovalStatus.PENDING_APPROVAL:
        ...
"""

from typing import Final


# =============================================================================
# Staff Roles
# =============================================================================


class Roles:
    """Staff role constants."""

    ADMIN: Final[str] = "ADMIN"
    MANAGER: Final[str] = "MANAGER"
    WAITER: Final[str] = "WAITER"
    COUNTER: Final[str] = "COUNTER"

    ALL: Final[list[str]] = [ADMIN, MANAGER, WAITER, COUNTER]


MANAGEMENT_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER})


# =============================================================================
# Table / Session
# =============================================================================


class TableStatus:
    """Cached projection of whether a table has an active session."""

    FREE: Final[str] = "FREE"
    OCCUPIED: Final[str] = "OCCUPIED"


class TableType:
    """Physical tables versus staff-created virtual ones."""

    DINING: Final[str] = "DINING"
    COUNTER: Final[str] = "COUNTER"
    VIRTUAL: Final[str] = "VIRTUAL"


class SessionStatus:
    """Table session status constants."""

    OPEN: Final[str] = "OPEN"
    LOCKED: Final[str] = "LOCKED"
    EXPIRED: Final[str] = "EXPIRED"

    # A table has at most one session in one of these states
    ACTIVE: Final[list[str]] = [OPEN, LOCKED]


class SessionCloseOutcome:
    """How staff closes out a table."""

    FINISH: Final[str] = "FINISH"
    CANCEL: Final[str] = "CANCEL"


# =============================================================================
# Orders
# =============================================================================


class OrderStatus:
    """Fulfillment axis of the order lifecycle."""

    PENDING: Final[str] = "PENDING"
    PREPARING: Final[str] = "PREPARING"
    READY: Final[str] = "READY"
    FINISHED: Final[str] = "FINISHED"
    CANCELLED: Final[str] = "CANCELLED"

    TERMINAL: Final[frozenset[str]] = frozenset({FINISHED, CANCELLED})
    ALL: Final[list[str]] = [PENDING, PREPARING, READY, FINISHED, CANCELLED]


class ApprovalStatus:
    """Approval axis, only meaningful while fulfillment is PENDING."""

    PENDING_APPROVAL: Final[str] = "PENDING_APPROVAL"
    APPROVED: Final[str] = "APPROVED"
    REJECTED: Final[str] = "REJECTED"


class OrderOrigin:
    """Who injected the order into the session."""

    CUSTOMER: Final[str] = "CUSTOMER"
    WAITER: Final[str] = "WAITER"
    BALCAO: Final[str] = "BALCAO"

    STAFF: Final[frozenset[str]] = frozenset({WAITER, BALCAO})


class ApprovalMode:
    """Store-level setting deciding whether guest orders need the host."""

    HOST: Final[str] = "HOST"
    SELF: Final[str] = "SELF"


class ServiceType:
    """Where the order is delivered."""

    ON_TABLE: Final[str] = "ON_TABLE"
    RETIRADA: Final[str] = "RETIRADA"  # pickup at the counter
    ENTREGA: Final[str] = "ENTREGA"  # delivery


class DiscountMode:
    """Manual discount applied by staff on top of promotions."""

    NONE: Final[str] = "NONE"
    AMOUNT: Final[str] = "AMOUNT"
    PERCENT: Final[str] = "PERCENT"


class TicketScope:
    """Which orders of a session go on a kitchen ticket."""

    ALL: Final[str] = "ALL"
    UNPRINTED: Final[str] = "UNPRINTED"
    ORDER: Final[str] = "ORDER"


# =============================================================================
# Promotions
# =============================================================================


class PromotionScope:
    """Promotion targeting."""

    GLOBAL: Final[str] = "GLOBAL"
    PRODUCT: Final[str] = "PRODUCT"


class DiscountType:
    """Promotion discount kind."""

    AMOUNT: Final[str] = "AMOUNT"
    PERCENT: Final[str] = "PERCENT"


ALL_WEEKDAYS: Final[tuple[int, ...]] = (0, 1, 2, 3, 4, 5, 6)  # 0 = Sunday


# =============================================================================
# Status Transitions
# =============================================================================

# Fulfillment axis: PENDING → PREPARING → READY → FINISHED, CANCELLED from any non-terminal
ORDER_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.FINISHED, OrderStatus.CANCELLED}),
    OrderStatus.FINISHED: frozenset(),  # Terminal state
    OrderStatus.CANCELLED: frozenset(),  # Terminal state
}

# Approval axis, resolved exactly once
APPROVAL_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    ApprovalStatus.PENDING_APPROVAL: frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}

SESSION_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    SessionStatus.OPEN: frozenset({SessionStatus.LOCKED, SessionStatus.EXPIRED}),
    SessionStatus.LOCKED: frozenset({SessionStatus.OPEN, SessionStatus.EXPIRED}),
    SessionStatus.EXPIRED: frozenset(),  # Terminal state
}


def validate_order_transition(current_status: str, new_status: str) -> bool:
    """True if the fulfillment transition is allowed."""
    return new_status in ORDER_TRANSITIONS.get(current_status, frozenset())


def validate_approval_transition(current_status: str, new_status: str) -> bool:
    """True if the approval transition is allowed."""
    return new_status in APPROVAL_TRANSITIONS.get(current_status, frozenset())


def validate_session_transition(current_status: str, new_status: str) -> bool:
    """True if the session transition is allowed."""
    return new_status in SESSION_TRANSITIONS.get(current_status, frozenset())


# =============================================================================
# Change-feed
# =============================================================================


class ChangeType:
    """Row-level change kinds delivered on the change-feed."""

    INSERT: Final[str] = "INSERT"
    UPDATE: Final[str] = "UPDATE"
    DELETE: Final[str] = "DELETE"


class FeedTable:
    """Tables whose row changes are published per session."""

    CART_ITEMS: Final[str] = "cart_items"
    ORDERS: Final[str] = "orders"
    SESSIONS: Final[str] = "sessions"

    ALL: Final[tuple[str, ...]] = (CART_ITEMS, ORDERS, SESSIONS)


# =============================================================================
# Limits
# =============================================================================

MAX_CART_LINE_QTY: Final[int] = 99
MAX_OBSERVATION_LENGTH: Final[int] = 500
MAX_GUEST_NAME_LENGTH: Final[int] = 60
