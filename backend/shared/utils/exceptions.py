"""
Centralized HTTP exceptions for consistent error handling.

Services raise these directly; FastAPI turns them into JSON responses and
every instance is logged once at construction.

Usage:
    from shared.utils.exceptions import NotFoundError, NotHostError, PromotionConflictError

    raise OrderNotFoundError(order_id)
    raise NotHostError(session_id=session.id, guest_id=guest.id)
    raise PromotionConflictError(product_id=3, weekday=5, promotion_id=9)
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Product", 123)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class SessionNotFoundError(NotFoundError):
    """Table session not found."""

    def __init__(self, session_id: int | None = None, **log_context: Any):
        super().__init__("Session", session_id, **log_context)


class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Order", order_id, **log_context)


class TableNotFoundError(NotFoundError):
    """Table not found (by id or by QR token)."""

    def __init__(self, table_ref: int | str | None = None, **log_context: Any):
        super().__init__("Table", table_ref, **log_context)


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("modify another guest's cart")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not allowed to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class NotHostError(ForbiddenError):
    """Only the session host (or staff) may resolve a pending approval."""

    def __init__(self, **log_context: Any):
        super().__init__("resolve this order (only the table host can)", **log_context)


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Quantity delta must not be zero", field="delta")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidStateError(ValidationError):
    """Entity is in an invalid state for the operation."""

    def __init__(self, entity: str, current_state: str, expected_states: list[str] | None = None, **log_context: Any):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} is '{current_state}', expected: {states_str}"
        else:
            detail = f"{entity} cannot be '{current_state}' for this operation"

        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


class InvalidTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        detail = f"Invalid transition from '{from_status}' to '{to_status}' for {entity}"
        super().__init__(detail, entity=entity, from_status=from_status, to_status=to_status, **log_context)


class EmptyCartError(ValidationError):
    """Submitting a cart with no lines."""

    def __init__(self, **log_context: Any):
        super().__init__("Cart is empty", **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Table already has an active session")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class PromotionConflictError(ConflictError):
    """An active product promotion already covers the same product and weekday."""

    def __init__(self, product_id: int, weekday: int, conflicting_promotion_id: int, **log_context: Any):
        detail = (
            f"Product {product_id} already has active promotion "
            f"{conflicting_promotion_id} on weekday {weekday}"
        )
        super().__init__(
            detail,
            product_id=product_id,
            weekday=weekday,
            conflicting_promotion_id=conflicting_promotion_id,
            **log_context,
        )


class PendingApprovalError(ConflictError):
    """The guest already has an own order waiting for the host."""

    def __init__(self, guest_id: int, order_id: int, **log_context: Any):
        super().__init__(
            f"Order {order_id} is still waiting for approval",
            guest_id=guest_id,
            order_id=order_id,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to create order", session_id=12)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(detail, operation=operation, **log_context)
