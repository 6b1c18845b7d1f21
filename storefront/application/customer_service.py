from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload
from typing import Optional

from storefront.core.logging_config import get_logger
from storefront.domain.enums import Role
from storefront.domain.models import Address, Order, User, Wishlist
from .errors import Conflict, NotFound
from .schemas import AddressCreate, CustomerSummaryRead, ProfileUpdate

logger = get_logger(__name__)

class CustomerService:
    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user:
            raise NotFound("Customer not found")
        return user

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    def list_addresses(self, user: User) -> list[Address]:
        return list(self.db.scalars(select(Address).where(Address.user_id == user.id).order_by(Address.id)))

    def _own_address(self, user: User, address_id: int) -> Address:
        address = self.db.scalar(select(Address).where(Address.id == address_id, Address.user_id == user.id))
        if not address:
            raise NotFound("Address not found")
        return address

    def add_address(self, user: User, data: AddressCreate) -> Address:
        address = Address(user_id=user.id, **data.model_dump())
        self.db.add(address)
        self.db.commit()
        self.db.refresh(address)
        return address

    def update_address(self, user: User, address_id: int, data: AddressCreate) -> Address:
        address = self._own_address(user, address_id)
        for field, value in data.model_dump().items():
            setattr(address, field, value)
        self.db.commit()
        self.db.refresh(address)
        return address

    def delete_address(self, user: User, address_id: int) -> None:
        address = self._own_address(user, address_id)
        in_use = self.db.scalar(select(func.count(Order.id)).where(Order.address_id == address_id))
        if in_use:
            raise Conflict("Address is referenced by existing orders")
        self.db.delete(address)
        self.db.commit()

    def list_customers(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        has_orders: Optional[bool] = None,
    ) -> tuple[list[CustomerSummaryRead], int]:
        """Plain customers (role USER), newest first, with order and wishlist totals."""
        conditions = [User.role == Role.USER.value]
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(User.name.ilike(pattern), User.mobile_no.ilike(pattern), User.email.ilike(pattern)))
        if has_orders is not None:
            has_any = select(Order.id).where(Order.user_id == User.id).exists()
            conditions.append(has_any if has_orders else ~has_any)

        total = self.db.scalar(select(func.count(User.id)).where(*conditions)) or 0

        order_totals = (
            select(
                Order.user_id.label("user_id"),
                func.count(Order.id).label("total_orders"),
                func.coalesce(func.sum(Order.total), 0).label("total_spent"),
                func.max(Order.created_at).label("last_order"),
            )
            .group_by(Order.user_id)
            .subquery()
        )
        wishlist_totals = (
            select(Wishlist.user_id.label("user_id"), func.count(Wishlist.id).label("wishlist_count"))
            .group_by(Wishlist.user_id)
            .subquery()
        )
        rows = self.db.execute(
            select(
                User,
                func.coalesce(order_totals.c.total_orders, 0),
                func.coalesce(order_totals.c.total_spent, 0),
                order_totals.c.last_order,
                func.coalesce(wishlist_totals.c.wishlist_count, 0),
            )
            .outerjoin(order_totals, order_totals.c.user_id == User.id)
            .outerjoin(wishlist_totals, wishlist_totals.c.user_id == User.id)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        customers = [
            CustomerSummaryRead(
                id=user.id,
                name=user.name,
                mobile_no=user.mobile_no,
                email=user.email,
                created_at=user.created_at,
                total_orders=total_orders,
                total_spent=float(total_spent),
                last_order=last_order,
                wishlist_count=wishlist_count,
            )
            for user, total_orders, total_spent, last_order, wishlist_count in rows
        ]
        return customers, total

    def get_customer(self, user_id: int) -> User:
        user = self.db.scalar(
            select(User)
            .options(selectinload(User.addresses), selectinload(User.orders).selectinload(Order.items))
            .where(User.id == user_id)
        )
        if not user:
            raise NotFound("Customer not found")
        return user

    def make_admin(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if user.is_admin:
            raise Conflict("User is already an admin")
        user.role = Role.ADMIN.value
        self.db.commit()
        self.db.refresh(user)
        logger.info("User promoted to admin", extra={'extra_fields': {'target_user_id': user_id}})
        return user
