from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import (
    String, ForeignKey, Numeric, DateTime, Integer, Text, Boolean, JSON,
    UniqueConstraint, CheckConstraint, func,
)
from datetime import datetime
from typing import Optional

from .enums import (
    Role, ProductStatus, AssetType, OrderStatus, Fulfillment, TimelineEventType,
    DiscountType, DiscountStatus,
)

class Base(DeclarativeBase):
    pass

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    mobile_no: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    role: Mapped[str] = mapped_column(String(10), default=Role.USER.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    addresses: Mapped[list["Address"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    orders: Mapped[list["Order"]] = relationship(back_populates="user")
    wishlist: Mapped[list["Wishlist"]] = relationship(back_populates="user", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

class Address(Base):
    __tablename__ = "addresses"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    address_name: Mapped[str] = mapped_column(String(100))
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    apt_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    street: Mapped[str] = mapped_column(String(500))
    city: Mapped[str] = mapped_column(String(100))
    state: Mapped[str] = mapped_column(String(100))
    country: Mapped[str] = mapped_column(String(100))
    zip_code: Mapped[str] = mapped_column(String(20))
    phone_number: Mapped[str] = mapped_column(String(20))
    user: Mapped[User] = relationship(back_populates="addresses")

class Category(Base):
    __tablename__ = "categories"
    # Priorities form the dense ranking 1..N; see CategoryService.set_priority
    __table_args__ = (UniqueConstraint("priority", name="uq_categories_priority"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    priority: Mapped[int] = mapped_column(Integer, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    products: Mapped[list["Product"]] = relationship(back_populates="category")

class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(220), unique=True, index=True)
    description: Mapped[str] = mapped_column(Text)
    price: Mapped[float] = mapped_column(Numeric(10,2))
    discount_price: Mapped[Optional[float]] = mapped_column(Numeric(10,2), nullable=True)
    material: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ProductStatus.DRAFT.value)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="RESTRICT"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    category: Mapped[Category] = relationship(back_populates="products")
    assets: Mapped[list["ProductAsset"]] = relationship(back_populates="product", cascade="all, delete-orphan")
    colors: Mapped[list["ProductColor"]] = relationship(back_populates="product", cascade="all, delete-orphan")
    wishlisted_by: Mapped[list["Wishlist"]] = relationship(back_populates="product", cascade="all, delete-orphan")

class ProductAsset(Base):
    __tablename__ = "product_assets"
    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), index=True)
    asset_url: Mapped[str] = mapped_column(String(500))
    type: Mapped[str] = mapped_column(String(10), default=AssetType.IMAGE.value)
    product: Mapped[Product] = relationship(back_populates="assets")

class ProductColor(Base):
    __tablename__ = "product_colors"
    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), index=True)
    color: Mapped[str] = mapped_column(String(50))
    product: Mapped[Product] = relationship(back_populates="colors")
    variants: Mapped[list["ProductVariant"]] = relationship(back_populates="color", cascade="all, delete-orphan")

class ProductVariant(Base):
    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("color_id", "size", name="uq_product_variants_color_size"),
        CheckConstraint("stock >= 0", name="ck_product_variants_stock_non_negative"),
    )
    id: Mapped[int] = mapped_column(primary_key=True)
    color_id: Mapped[int] = mapped_column(ForeignKey("product_colors.id", ondelete="CASCADE"), index=True)
    size: Mapped[str] = mapped_column(String(20))
    stock: Mapped[int] = mapped_column(Integer, default=0)
    color: Mapped[ProductColor] = relationship(back_populates="variants")

class Order(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), index=True)
    address_id: Mapped[int] = mapped_column(ForeignKey("addresses.id", ondelete="RESTRICT"))
    total: Mapped[float] = mapped_column(Numeric(10,2))
    status: Mapped[str] = mapped_column(String(30), default=OrderStatus.PENDING.value)
    fulfillment: Mapped[str] = mapped_column(String(30), default=Fulfillment.PENDING.value)
    paid: Mapped[bool] = mapped_column(Boolean, default=False)
    is_discount: Mapped[bool] = mapped_column(Boolean, default=False)
    discount: Mapped[float] = mapped_column(Numeric(10,2), default=0)
    discount_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    provider_order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # Carrier-side identifiers, filled by order placement and webhooks
    external_shipping_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    awb: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    delivery_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    etd: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    user: Mapped[User] = relationship(back_populates="orders")
    address: Mapped[Address] = relationship()
    items: Mapped[list["OrderItem"]] = relationship(back_populates="order", cascade="all, delete-orphan")
    timeline: Mapped[list["ShipmentTimeline"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="ShipmentTimeline.id"
    )
    carrier_events: Mapped[list["CarrierEvent"]] = relationship(back_populates="order", cascade="all, delete-orphan")

class OrderItem(Base):
    __tablename__ = "order_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    # Catalog references may disappear later; the snapshot columns stay
    product_id: Mapped[Optional[int]] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_variant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True, index=True
    )
    quantity: Mapped[int]
    price_at_order: Mapped[float] = mapped_column(Numeric(10,2))
    size: Mapped[str] = mapped_column(String(20))
    color: Mapped[str] = mapped_column(String(50))
    product_name: Mapped[str] = mapped_column(String(200))
    product_image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    order: Mapped[Order] = relationship(back_populates="items")

class ShipmentTimeline(Base):
    __tablename__ = "shipment_timeline"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    label: Mapped[str] = mapped_column(String(100))
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime)
    type: Mapped[str] = mapped_column(String(10), default=TimelineEventType.INFO.value)
    order: Mapped[Order] = relationship(back_populates="timeline")

class CarrierEvent(Base):
    __tablename__ = "carrier_events"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    awb_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_time: Mapped[datetime] = mapped_column(DateTime)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    courier_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payment_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    edd: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    raw_payload: Mapped[dict] = mapped_column(JSON)
    received_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    order: Mapped[Order] = relationship(back_populates="carrier_events")

class Discount(Base):
    __tablename__ = "discounts"
    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    type: Mapped[str] = mapped_column(String(20), default=DiscountType.PERCENTAGE.value)
    value: Mapped[float] = mapped_column(Numeric(10,2))
    min_purchase: Mapped[Optional[float]] = mapped_column(Numeric(10,2), nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=DiscountStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def is_valid_at(self, now: datetime) -> bool:
        if self.status != DiscountStatus.ACTIVE.value:
            return False
        if self.start_date > now:
            return False
        if self.end_date is not None and now > self.end_date:
            return False
        if self.usage_limit is not None and self.usage_count >= self.usage_limit:
            return False
        return True

class Wishlist(Base):
    __tablename__ = "wishlists"
    __table_args__ = (UniqueConstraint("user_id", "product_id", name="uq_wishlists_user_product"),)
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    user: Mapped[User] = relationship(back_populates="wishlist")
    product: Mapped[Product] = relationship(back_populates="wishlisted_by")
