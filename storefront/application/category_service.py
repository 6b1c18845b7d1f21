from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.core.logging_config import get_logger
from storefront.domain.models import Category, Product
from storefront.infrastructure.db import is_unique_violation
from .errors import Conflict, NotFound, ValidationError
from .schemas import CategoryCreate, CategoryPreviewRead, CategoryRead, CategoryUpdate

logger = get_logger(__name__)

WRITE_ATTEMPTS = 3

class CategoryService:
    """Category CRUD plus the priority ranking.

    Priorities are kept as the dense sequence 1..N. A unique constraint on the
    column means every shift is written as a sign flip: the moving rows are
    parked at negative values, the target takes its slot, and the parked rows
    are flipped back to their new positive values.
    """

    def __init__(self, db: Session):
        self.db = db

    def _product_count(self, category_id: int) -> int:
        return self.db.scalar(select(func.count(Product.id)).where(Product.category_id == category_id)) or 0

    def _read(self, category: Category) -> CategoryRead:
        return CategoryRead(
            id=category.id,
            name=category.name,
            priority=category.priority,
            description=category.description,
            product_count=self._product_count(category.id),
        )

    def _get_or_404(self, category_id: int) -> Category:
        category = self.db.scalar(select(Category).where(Category.id == category_id))
        if not category:
            raise NotFound("Category not found")
        return category

    def _lock_range(self, low: int, high: int) -> list[Category]:
        """Lock every category ranked in [low, high] in one statement, always in id order."""
        return list(self.db.scalars(
            select(Category)
            .where(Category.priority >= low, Category.priority <= high)
            .order_by(Category.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ))

    def _shift(self, low: int, high: int, step: int) -> list[int]:
        """Move every priority in [low, high] by ``step`` via negative parking.

        The range must already be locked. Returns the ids that were parked so
        the caller can flip them back once the freed slot has been filled.
        """
        ids = list(self.db.scalars(
            select(Category.id).where(Category.priority >= low, Category.priority <= high)
        ))
        if ids:
            self.db.execute(
                update(Category)
                .where(Category.id.in_(ids))
                .values(priority=-(Category.priority + step))
                .execution_options(synchronize_session=False)
            )
        return ids

    def _unpark(self, ids: list[int]) -> None:
        if ids:
            self.db.execute(
                update(Category)
                .where(Category.id.in_(ids))
                .values(priority=-Category.priority)
                .execution_options(synchronize_session=False)
            )

    def list(self) -> list[CategoryRead]:
        rows = self.db.execute(
            select(Category, func.count(Product.id))
            .outerjoin(Product, Product.category_id == Category.id)
            .group_by(Category.id)
            .order_by(Category.priority)
        ).all()
        return [
            CategoryRead(
                id=category.id,
                name=category.name,
                priority=category.priority,
                description=category.description,
                product_count=count,
            )
            for category, count in rows
        ]

    def list_with_preview(self) -> list[CategoryPreviewRead]:
        """Categories that hold products, each with the first product's first asset."""
        rows = self.db.execute(
            select(Category, func.count(Product.id), func.min(Product.id))
            .join(Product, Product.category_id == Category.id)
            .group_by(Category.id)
            .order_by(Category.priority)
        ).all()
        result = []
        for category, count, first_product_id in rows:
            product = self.db.get(Product, first_product_id)
            image = product.assets[0].asset_url if product and product.assets else None
            result.append(CategoryPreviewRead(
                id=category.id,
                name=category.name,
                priority=category.priority,
                product_count=count,
                image=image,
            ))
        return result

    def get(self, category_id: int) -> CategoryRead:
        return self._read(self._get_or_404(category_id))

    def create(self, data: CategoryCreate) -> CategoryRead:
        # a concurrent create that read the same maximum is rejected by the unique index and retried
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            highest = self.db.scalar(select(func.max(Category.priority))) or 0
            category = Category(name=data.name, description=data.description, priority=highest + 1)
            self.db.add(category)
            try:
                self.db.commit()
                break
            except IntegrityError as e:
                self.db.rollback()
                if attempt == WRITE_ATTEMPTS or not is_unique_violation(e, "priority"):
                    raise
                logger.warning("Category priority taken, retrying", extra={'extra_fields': {'priority': highest + 1}})
        self.db.refresh(category)
        logger.info(
            "Category created",
            extra={'extra_fields': {'category_id': category.id, 'priority': category.priority}},
        )
        return self._read(category)

    def update(self, category_id: int, data: CategoryUpdate) -> CategoryRead:
        category = self._get_or_404(category_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "name" and value is None:
                continue
            setattr(category, field, value)
        self.db.commit()
        self.db.refresh(category)
        return self._read(category)

    def delete(self, category_id: int) -> None:
        category = self._get_or_404(category_id)
        if self._product_count(category_id):
            raise Conflict("Category still has products")
        removed_priority = category.priority
        try:
            highest = self.db.scalar(select(func.max(Category.priority))) or 0
            locked = {c.id: c for c in self._lock_range(removed_priority, highest)}
            if category_id not in locked or locked[category_id].priority != removed_priority:
                raise Conflict("Category ranking changed, try again")
            self.db.delete(locked[category_id])
            self.db.flush()
            if highest > removed_priority:
                parked = self._shift(removed_priority + 1, highest, -1)
                self._unpark(parked)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "Category deleted",
            extra={'extra_fields': {'category_id': category_id, 'priority': removed_priority}},
        )

    def set_priority(self, category_id: int, new_priority: int) -> CategoryRead:
        category = self._get_or_404(category_id)
        total = self.db.scalar(select(func.count(Category.id))) or 0
        if new_priority < 1 or new_priority > total:
            raise ValidationError(
                f"Priority must be between 1 and {total}",
                details=[{"field": "priority", "message": f"out of range 1..{total}"}],
            )

        current = category.priority
        for attempt in range(1, WRITE_ATTEMPTS + 1):
            if current == new_priority:
                return self._read(category)
            try:
                locked = {c.id: c for c in self._lock_range(min(current, new_priority), max(current, new_priority))}
                if category_id in locked and locked[category_id].priority == current:
                    self._move(category_id, current, new_priority)
                    self.db.commit()
                    break
                # another reorder moved the target between the read and the lock
                self.db.rollback()
            except Exception:
                self.db.rollback()
                raise
            if attempt == WRITE_ATTEMPTS:
                raise Conflict("Category ranking changed, try again")
            category = self._get_or_404(category_id)
            current = category.priority

        self.db.refresh(category)
        logger.info(
            "Category priority changed",
            extra={'extra_fields': {'category_id': category_id, 'from': current, 'to': new_priority}},
        )
        return self._read(category)

    def _move(self, category_id: int, current: int, new_priority: int) -> None:
        if current > new_priority:
            parked = self._shift(new_priority, current - 1, 1)
        else:
            parked = self._shift(current + 1, new_priority, -1)
        self.db.execute(
            update(Category)
            .where(Category.id == category_id)
            .values(priority=new_priority)
            .execution_options(synchronize_session=False)
        )
        self._unpark(parked)
