from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from storefront.domain.models import Product, User, Wishlist
from .errors import Conflict, NotFound

class WishlistService:
    def __init__(self, db: Session):
        self.db = db

    def list(self, user: User, page: int = 1, limit: int = 10) -> tuple[list[Wishlist], int]:
        total = self.db.scalar(select(func.count(Wishlist.id)).where(Wishlist.user_id == user.id)) or 0
        entries = self.db.scalars(
            select(Wishlist)
            .options(selectinload(Wishlist.product).selectinload(Product.assets))
            .where(Wishlist.user_id == user.id)
            .order_by(Wishlist.created_at.desc(), Wishlist.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(entries), total

    def product_ids(self, user: User) -> list[int]:
        return list(self.db.scalars(
            select(Wishlist.product_id).where(Wishlist.user_id == user.id).order_by(Wishlist.id)
        ))

    def add(self, user: User, product_id: int) -> Wishlist:
        if not self.db.get(Product, product_id):
            raise NotFound("Product not found")
        existing = self.db.scalar(
            select(Wishlist.id).where(Wishlist.user_id == user.id, Wishlist.product_id == product_id)
        )
        if existing:
            raise Conflict("Product already in wishlist")
        entry = Wishlist(user_id=user.id, product_id=product_id)
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def remove(self, user: User, product_id: int) -> None:
        entry = self.db.scalar(
            select(Wishlist).where(Wishlist.user_id == user.id, Wishlist.product_id == product_id)
        )
        if not entry:
            raise NotFound("Product not in wishlist")
        self.db.delete(entry)
        self.db.commit()
