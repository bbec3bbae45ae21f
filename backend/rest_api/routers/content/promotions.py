"""
Promotions router.

Listing is open to any staff profile; writes need a management role.
Overlapping active product promotions are rejected with 409.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from rest_api.models import StaffProfile
from rest_api.routers._common import get_staff_profile, require_management
from rest_api.services.domain import PromotionService
from shared.infrastructure.db import get_db
from shared.utils.schemas import PromotionCreate, PromotionOutput, PromotionUpdate

router = APIRouter(prefix="/api/promotions", tags=["promotions"])


@router.get("", response_model=list[PromotionOutput])
def list_promotions(
    active_only: bool = False,
    profile: StaffProfile = Depends(get_staff_profile),
    db: Session = Depends(get_db),
) -> list[PromotionOutput]:
    return [PromotionService.to_output(p) for p in PromotionService(db).list_all(active_only)]


@router.post("", response_model=PromotionOutput, status_code=status.HTTP_201_CREATED)
def create_promotion(
    body: PromotionCreate,
    profile: StaffProfile = Depends(require_management),
    db: Session = Depends(get_db),
) -> PromotionOutput:
    return PromotionService.to_output(PromotionService(db).create(body))


@router.patch("/{promotion_id}", response_model=PromotionOutput)
def update_promotion(
    promotion_id: int,
    body: PromotionUpdate,
    profile: StaffProfile = Depends(require_management),
    db: Session = Depends(get_db),
) -> PromotionOutput:
    return PromotionService.to_output(PromotionService(db).update(promotion_id, body))


@router.post("/{promotion_id}/activate", response_model=PromotionOutput)
def activate_promotion(
    promotion_id: int,
    profile: StaffProfile = Depends(require_management),
    db: Session = Depends(get_db),
) -> PromotionOutput:
    return PromotionService.to_output(PromotionService(db).set_active(promotion_id, True))


@router.post("/{promotion_id}/deactivate", response_model=PromotionOutput)
def deactivate_promotion(
    promotion_id: int,
    profile: StaffProfile = Depends(require_management),
    db: Session = Depends(get_db),
) -> PromotionOutput:
    return PromotionService.to_output(PromotionService(db).set_active(promotion_id, False))
