"""
Content routers.
- /api/promotions - weekday promotions (management)
- /api/menu - priced menu for guests and consoles
"""

from .menu import router as menu_router
from .promotions import router as promotions_router

__all__ = ["menu_router", "promotions_router"]
