"""
Diner routers - /api/diner/*
Guest-facing operations: join, cart, own orders, host approval.
"""

from fastapi import APIRouter

from .cart import router as cart_router
from .orders import router as orders_router
from .session import router as session_router

router = APIRouter()
router.include_router(session_router)
router.include_router(cart_router)
router.include_router(orders_router)

__all__ = ["router", "session_router", "cart_router", "orders_router"]
