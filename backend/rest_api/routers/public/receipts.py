"""
Public receipt router. The token is the only credential.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rest_api.services.domain import ReceiptService
from shared.infrastructure.db import get_db
from shared.utils.schemas import PublicReceiptOutput

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/receipts/{token}", response_model=PublicReceiptOutput)
def get_receipt(token: str, db: Session = Depends(get_db)) -> PublicReceiptOutput:
    return ReceiptService(db).get_public_receipt_by_token(token)
