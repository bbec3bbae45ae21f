"""
Domain Services - application layer.

Services contain the business logic and own their transactions; routers
stay thin.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import OrderService

    # In router
    service = OrderService(db)
    order = service.submit_guest_cart(session_id, guest_id)
"""

from .staff_service import StaffService
from .promotion_service import PromotionService
from .session_service import SessionService
from .cart_service import CartService
from .order_service import OrderService
from .ticket_service import ReceiptService, TicketService
from .menu_service import MenuService

__all__ = [
    "StaffService",
    "PromotionService",
    "SessionService",
    "CartService",
    "OrderService",
    "ReceiptService",
    "TicketService",
    "MenuService",
]
