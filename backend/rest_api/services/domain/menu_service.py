"""
Menu projection: active products priced for today plus the active
promotions, so clients can price their carts with the same resolver.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import Product
from rest_api.services.domain.promotion_service import PromotionService
from shared.domain.pricing import apply_promotion, resolve_promotion, weekday_of
from shared.utils.clock import store_now
from shared.utils.schemas import AddonOutput, MenuOutput, MenuProductOutput


class MenuService:
    def __init__(self, db: Session):
        self._db = db
        self._promotions = PromotionService(db)

    def get_menu(self, now: datetime | None = None) -> MenuOutput:
        now = now or store_now()
        promotions = self._promotions.list_all(active_only=True)
        rules = [p.to_rule() for p in promotions]

        products = self._db.scalars(
            select(Product)
            .where(Product.active.is_(True))
            .options(selectinload(Product.addons))
            .order_by(Product.category, Product.name)
        ).all()

        items = []
        for product in products:
            breakdown = apply_promotion(product.price_cents, resolve_promotion(product.id, rules, now))
            items.append(
                MenuProductOutput(
                    id=product.id,
                    name=product.name,
                    description=product.description,
                    category=product.category,
                    price_cents=product.price_cents,
                    effective_price_cents=breakdown.final_unit_price_cents,
                    discount_cents=breakdown.discount_cents,
                    promo_name=breakdown.promo_name if breakdown.has_promotion else None,
                    addons=[AddonOutput.model_validate(a) for a in product.addons if a.active],
                )
            )

        return MenuOutput(
            weekday=weekday_of(now),
            products=items,
            promotions=[PromotionService.to_output(p) for p in promotions],
        )
