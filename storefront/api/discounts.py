from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import datetime, timezone

from storefront.application.discount_service import DiscountService
from storefront.application.schemas import DiscountCreate, DiscountRead, DiscountUpdate
from storefront.domain.models import User
from storefront.infrastructure.db import get_db
from .deps import PageParams, require_admin

router = APIRouter(prefix="/discounts", tags=["discounts"])

@router.post("/", status_code=201)
def create_discount(payload: DiscountCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    discount = DiscountService(db).create(payload)
    return {"success": True, "discount": DiscountRead.model_validate(discount)}

@router.get("/")
def list_discounts(paging: PageParams = Depends(), db: Session = Depends(get_db)):
    discounts, total = DiscountService(db).list(paging.page, paging.limit)
    return {
        "success": True,
        "discounts": [DiscountRead.model_validate(d) for d in discounts],
        "pagination": paging.envelope(total),
    }

@router.get("/name/{code}")
def get_discount_by_code(code: str, db: Session = Depends(get_db)):
    """Case-insensitive lookup; ``valid`` says whether the code applies right now."""
    discount = DiscountService(db).get_by_code(code)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return {"success": True, "discount": DiscountRead.model_validate(discount), "valid": discount.is_valid_at(now)}

@router.get("/{discount_id}")
def get_discount(discount_id: int, db: Session = Depends(get_db)):
    return {"success": True, "discount": DiscountRead.model_validate(DiscountService(db).get(discount_id))}

@router.put("/{discount_id}")
def update_discount(
    discount_id: int, payload: DiscountUpdate, db: Session = Depends(get_db), _: User = Depends(require_admin)
):
    discount = DiscountService(db).update(discount_id, payload)
    return {"success": True, "discount": DiscountRead.model_validate(discount)}

@router.delete("/{discount_id}")
def delete_discount(discount_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    DiscountService(db).delete(discount_id)
    return {"success": True, "message": "Discount deleted"}
