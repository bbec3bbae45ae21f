"""
SQLAlchemy ORM Models Package.

- base: Base class and TimestampMixin
- table: Table, TableSession, Guest
- catalog: Product, ProductAddon
- cart: CartItem
- order: Order, OrderItem
- promotion: Promotion, PromotionProduct
- store: StoreSettings, StaffProfile
- outbox: OutboxEvent (change-feed)
"""

from .base import Base, BigIntPK, TimestampMixin
from .store import StaffProfile, StoreSettings
from .table import Guest, Table, TableSession
from .catalog import Product, ProductAddon
from .cart import CartItem
from .order import Order, OrderItem
from .promotion import Promotion, PromotionProduct
from .outbox import OutboxEvent, OutboxStatus

__all__ = [
    "Base",
    "BigIntPK",
    "TimestampMixin",
    "StaffProfile",
    "StoreSettings",
    "Guest",
    "Table",
    "TableSession",
    "Product",
    "ProductAddon",
    "CartItem",
    "Order",
    "OrderItem",
    "Promotion",
    "PromotionProduct",
    "OutboxEvent",
    "OutboxStatus",
]
