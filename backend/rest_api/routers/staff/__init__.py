"""
Staff routers - /api/staff/*
Waiter, counter and admin consoles: staff sessions, order injection,
approval, fulfillment, printing and receipts.
"""

from fastapi import APIRouter

from .orders import router as orders_router
from .printing import router as printing_router
from .sessions import router as sessions_router

router = APIRouter()
router.include_router(sessions_router)
router.include_router(orders_router)
router.include_router(printing_router)

__all__ = ["router", "sessions_router", "orders_router", "printing_router"]
