"""
Menu router.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rest_api.services.domain import MenuService
from shared.infrastructure.db import get_db
from shared.utils.schemas import MenuOutput

router = APIRouter(prefix="/api/menu", tags=["menu"])


@router.get("", response_model=MenuOutput)
def get_menu(db: Session = Depends(get_db)) -> MenuOutput:
    """
    Active products with today's effective prices, plus the active
    promotions so clients can price carts with the same rules.
    """
    return MenuService(db).get_menu()
