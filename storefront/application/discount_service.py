from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from typing import Optional

from storefront.core.logging_config import get_logger
from storefront.domain.enums import DiscountType
from storefront.domain.models import Discount
from .errors import Conflict, NotFound, ValidationError
from .schemas import DiscountCreate, DiscountUpdate

logger = get_logger(__name__)

class DiscountService:
    """Discount codes. Codes are stored upper-case and matched case-insensitively."""

    def __init__(self, db: Session):
        self.db = db

    def _code_taken(self, code: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Discount.id).where(func.upper(Discount.code) == code.upper())
        if exclude_id is not None:
            stmt = stmt.where(Discount.id != exclude_id)
        return self.db.scalar(stmt) is not None

    def list(self, page: int = 1, limit: int = 10) -> tuple[list[Discount], int]:
        total = self.db.scalar(select(func.count(Discount.id))) or 0
        discounts = self.db.scalars(
            select(Discount)
            .order_by(Discount.created_at.desc(), Discount.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(discounts), total

    def get(self, discount_id: int) -> Discount:
        discount = self.db.get(Discount, discount_id)
        if not discount:
            raise NotFound("Discount not found")
        return discount

    def get_by_code(self, code: str) -> Discount:
        discount = self.db.scalar(select(Discount).where(func.upper(Discount.code) == code.strip().upper()))
        if not discount:
            raise NotFound("Discount not found")
        return discount

    def create(self, data: DiscountCreate) -> Discount:
        if self._code_taken(data.code):
            raise Conflict("Discount code already exists")
        discount = Discount(
            code=data.code,
            type=data.type.value,
            value=data.value,
            min_purchase=data.min_purchase,
            usage_limit=data.usage_limit,
            start_date=data.start_date,
            end_date=data.end_date,
            status=data.status.value,
            usage_count=0,
        )
        self.db.add(discount)
        self.db.commit()
        self.db.refresh(discount)
        logger.info("Discount created", extra={'extra_fields': {'discount_id': discount.id, 'code': discount.code}})
        return discount

    def update(self, discount_id: int, data: DiscountUpdate) -> Discount:
        discount = self.get(discount_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("code") and self._code_taken(changes["code"], exclude_id=discount_id):
            raise Conflict("Discount code already exists")

        for field, value in changes.items():
            if value is None and field in ("code", "type", "value", "start_date", "status"):
                continue
            if field in ("type", "status"):
                value = value.value
            setattr(discount, field, value)

        if discount.end_date is not None and discount.end_date < discount.start_date:
            raise ValidationError("end_date must not be before start_date")
        if discount.type == DiscountType.PERCENTAGE.value and float(discount.value) > 100:
            raise ValidationError("percentage discounts cannot exceed 100")

        self.db.commit()
        self.db.refresh(discount)
        return discount

    def delete(self, discount_id: int) -> None:
        discount = self.get(discount_id)
        self.db.delete(discount)
        self.db.commit()
        logger.info("Discount deleted", extra={'extra_fields': {'discount_id': discount_id}})
