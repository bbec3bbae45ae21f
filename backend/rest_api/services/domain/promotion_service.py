"""
Promotion Service.

Handles weekday promotions:
- CRUD with validation (PERCENT capped at 100, PRODUCT scope needs products)
- Conflict check: two active PRODUCT promotions never share a product and
  a weekday. Checked before every create, update and activation; nothing is
  written when it fails.
- The active rule set consumed by the pricing resolver

Usage:
    from rest_api.services.domain import PromotionService

    service = PromotionService(db)
    promotion = service.create(data)
    rules = service.active_rules()
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rest_api.models import Product, Promotion, PromotionProduct
from shared.config.constants import DiscountType, PromotionScope
from shared.config.logging import get_logger
from shared.domain.pricing import PromotionRule
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import NotFoundError, PromotionConflictError, ValidationError
from shared.utils.schemas import PromotionCreate, PromotionOutput, PromotionUpdate

logger = get_logger(__name__)


class PromotionService:
    """
    Service for promotion management.

    Business rules:
    - GLOBAL promotions apply to every product and carry no product links
    - PRODUCT promotions must name at least one existing product
    - weekdays are a non-empty set of 0 (Sunday) .. 6 (Saturday)
    """

    def __init__(self, db: Session):
        self._db = db

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, promotion_id: int) -> Promotion:
        promotion = self._db.scalar(
            select(Promotion)
            .where(Promotion.id == promotion_id)
            .options(selectinload(Promotion.products))
        )
        if promotion is None:
            raise NotFoundError("Promotion", promotion_id)
        return promotion

    def list_all(self, active_only: bool = False) -> list[Promotion]:
        stmt = select(Promotion).options(selectinload(Promotion.products)).order_by(Promotion.id)
        if active_only:
            stmt = stmt.where(Promotion.active.is_(True))
        return list(self._db.scalars(stmt).all())

    def active_rules(self) -> list[PromotionRule]:
        """Active promotions in id order (the resolver's first-wins order)."""
        return [p.to_rule() for p in self.list_all(active_only=True)]

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate(
        self,
        scope: str,
        discount_type: str,
        discount_value: float,
        weekdays: list[int],
        product_ids: list[int],
    ) -> None:
        if discount_type == DiscountType.PERCENT and discount_value > 100:
            raise ValidationError("Percent discount cannot exceed 100", field="discount_value")
        if not weekdays:
            raise ValidationError("At least one weekday is required", field="weekdays")

        if scope == PromotionScope.GLOBAL:
            if product_ids:
                raise ValidationError("GLOBAL promotions cannot list products", field="product_ids")
            return

        if not product_ids:
            raise ValidationError("PRODUCT promotions need at least one product", field="product_ids")
        found = set(self._db.scalars(select(Product.id).where(Product.id.in_(product_ids))).all())
        missing = sorted(set(product_ids) - found)
        if missing:
            raise ValidationError(f"Products {missing} do not exist", field="product_ids")

    def find_conflict(
        self,
        product_ids: list[int],
        weekdays: list[int],
        exclude_id: int | None = None,
    ) -> tuple[int, int, int] | None:
        """
        First (product_id, weekday, promotion_id) already covered by another
        active PRODUCT promotion, or None.
        """
        if not product_ids or not weekdays:
            return None

        stmt = (
            select(Promotion)
            .join(PromotionProduct, PromotionProduct.promotion_id == Promotion.id)
            .where(
                Promotion.active.is_(True),
                Promotion.scope == PromotionScope.PRODUCT,
                PromotionProduct.product_id.in_(product_ids),
            )
            .options(selectinload(Promotion.products))
            .order_by(Promotion.id)
        )
        if exclude_id is not None:
            stmt = stmt.where(Promotion.id != exclude_id)

        wanted_days = set(weekdays)
        for other in self._db.scalars(stmt).unique().all():
            shared_days = wanted_days & set(other.weekdays or [])
            if not shared_days:
                continue
            shared_products = set(product_ids) & set(other.product_ids)
            if shared_products:
                return min(shared_products), min(shared_days), other.id
        return None

    def _check_conflict(
        self,
        scope: str,
        active: bool,
        product_ids: list[int],
        weekdays: list[int],
        exclude_id: int | None = None,
    ) -> None:
        if not active or scope != PromotionScope.PRODUCT:
            return
        conflict = self.find_conflict(product_ids, weekdays, exclude_id)
        if conflict is not None:
            product_id, weekday, promotion_id = conflict
            raise PromotionConflictError(product_id, weekday, promotion_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, data: PromotionCreate) -> Promotion:
        weekdays = sorted(set(data.weekdays))
        product_ids = sorted(set(data.product_ids))
        self._validate(data.scope, data.discount_type, data.discount_value, weekdays, product_ids)
        self._check_conflict(data.scope, data.active, product_ids, weekdays)

        promotion = Promotion(
            name=data.name.strip(),
            scope=data.scope,
            discount_type=data.discount_type,
            discount_value=data.discount_value,
            weekdays=weekdays,
            active=data.active,
            products=[PromotionProduct(product_id=pid) for pid in product_ids],
        )
        self._db.add(promotion)
        safe_commit(self._db)
        logger.info("Promotion created", promotion_id=promotion.id, scope=promotion.scope)
        return self.get(promotion.id)

    def update(self, promotion_id: int, data: PromotionUpdate) -> Promotion:
        promotion = self.get(promotion_id)
        changes = data.model_dump(exclude_unset=True)

        scope = changes.get("scope", promotion.scope)
        discount_type = changes.get("discount_type", promotion.discount_type)
        discount_value = changes.get("discount_value", float(promotion.discount_value))
        weekdays = sorted(set(changes.get("weekdays") or promotion.weekdays or []))
        active = changes.get("active", promotion.active)
        if "product_ids" in changes:
            product_ids = sorted(set(changes["product_ids"] or []))
        elif scope == PromotionScope.GLOBAL:
            product_ids = []
        else:
            product_ids = promotion.product_ids

        self._validate(scope, discount_type, discount_value, weekdays, product_ids)
        self._check_conflict(scope, active, product_ids, weekdays, exclude_id=promotion.id)

        if "name" in changes:
            promotion.name = changes["name"].strip()
        promotion.scope = scope
        promotion.discount_type = discount_type
        promotion.discount_value = discount_value
        promotion.weekdays = weekdays
        promotion.active = active
        wanted = set(product_ids)
        for link in list(promotion.products):
            if link.product_id not in wanted:
                promotion.products.remove(link)
        existing = set(promotion.product_ids)
        for pid in product_ids:
            if pid not in existing:
                promotion.products.append(PromotionProduct(product_id=pid))

        safe_commit(self._db)
        logger.info("Promotion updated", promotion_id=promotion_id, fields=sorted(changes))
        return self.get(promotion_id)

    def set_active(self, promotion_id: int, active: bool) -> Promotion:
        promotion = self.get(promotion_id)
        if active and not promotion.active:
            self._check_conflict(
                promotion.scope, True, promotion.product_ids, promotion.weekdays or [],
                exclude_id=promotion.id,
            )
        promotion.active = active
        safe_commit(self._db)
        logger.info("Promotion activation changed", promotion_id=promotion_id, active=active)
        return self.get(promotion_id)

    @staticmethod
    def to_output(promotion: Promotion) -> PromotionOutput:
        return PromotionOutput(
            id=promotion.id,
            name=promotion.name,
            scope=promotion.scope,
            discount_type=promotion.discount_type,
            discount_value=float(promotion.discount_value),
            weekdays=sorted(promotion.weekdays or []),
            active=promotion.active,
            product_ids=promotion.product_ids,
        )
