from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime, timezone
from typing import Optional, Union

from storefront.domain.enums import (
    AssetType, DiscountStatus, DiscountType, Fulfillment, OrderStatus, ProductStatus, Role, TimelineEventType,
)

def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; aware input is converted, naive input is taken as UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class StrictModel(BaseModel):
    """Request bodies reject fields they do not declare."""
    class Config:
        extra = "forbid"

class ReadModel(BaseModel):
    class Config:
        from_attributes = True

class Pagination(BaseModel):
    totalPages: int
    currentPage: int
    totalItems: int
    itemsPerPage: int

# Categories

class CategoryCreate(StrictModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None

class CategoryUpdate(StrictModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None

class CategoryPriorityUpdate(StrictModel):
    id: int
    priority: int

class CategoryRead(ReadModel):
    id: int
    name: str
    priority: int
    description: Optional[str] = None
    product_count: int = 0

class CategoryPreviewRead(BaseModel):
    id: int
    name: str
    priority: int
    product_count: int
    image: Optional[str] = None

# Products

class AssetIn(StrictModel):
    url: str = Field(min_length=1, max_length=500)
    type: AssetType = AssetType.IMAGE

class ProductCreate(StrictModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    price: float = Field(gt=0)
    discount_price: Optional[float] = Field(default=None, gt=0)
    category_id: int
    status: ProductStatus = ProductStatus.DRAFT
    material: Optional[str] = Field(default=None, max_length=100)
    assets: list[AssetIn] = []

class ProductUpdate(ProductCreate):
    # None keeps the existing assets, a list replaces them
    assets: Optional[list[AssetIn]] = None

class ProductStatusUpdate(StrictModel):
    status: ProductStatus

class ColorCreate(StrictModel):
    color: str = Field(min_length=1, max_length=50)

class SizeIn(StrictModel):
    size: str = Field(min_length=1, max_length=20)
    stock: int = Field(ge=0)

class SizesCreate(StrictModel):
    sizes: list[SizeIn] = Field(min_length=1)

class StockUpdate(StrictModel):
    variant_id: int
    stock: int = Field(ge=0)

class AssetRead(ReadModel):
    id: int
    asset_url: str
    type: AssetType

class VariantRead(ReadModel):
    id: int
    size: str
    stock: int

class ColorRead(ReadModel):
    id: int
    color: str
    variants: list[VariantRead] = []

class ProductRead(ReadModel):
    id: int
    name: str
    slug: str
    description: str
    price: float
    discount_price: Optional[float] = None
    material: Optional[str] = None
    status: ProductStatus
    category_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    assets: list[AssetRead] = []

class ProductDetailRead(ProductRead):
    colors: list[ColorRead] = []

class InventoryItemRead(BaseModel):
    variant_id: int
    product_id: int
    product_name: str
    color: str
    size: str
    stock: int
    low_stock: bool

class InventoryOverview(BaseModel):
    variants: int
    units_in_stock: int
    out_of_stock: int
    low_stock: int
    low_stock_threshold: int

# Customers

class UserRead(ReadModel):
    id: int
    name: Optional[str] = None
    mobile_no: str
    email: Optional[str] = None
    image: Optional[str] = None
    role: Role
    created_at: datetime

class ProfileUpdate(StrictModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    image: Optional[str] = Field(default=None, min_length=1, max_length=500)

class AddressCreate(StrictModel):
    address_name: str = Field(min_length=1, max_length=100)
    first_name: str = Field(default="", max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    apt_number: Optional[str] = Field(default=None, max_length=50)
    street: str = Field(min_length=1, max_length=500)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    country: str = Field(min_length=1, max_length=100)
    zip_code: str = Field(pattern=r"^\d{6}$")
    phone_number: str = Field(pattern=r"^\d{10}$")

class AddressRead(ReadModel):
    id: int
    user_id: int
    address_name: str
    first_name: str
    last_name: Optional[str] = None
    apt_number: Optional[str] = None
    street: str
    city: str
    state: str
    country: str
    zip_code: str
    phone_number: str

class CustomerSummaryRead(BaseModel):
    id: int
    name: Optional[str] = None
    mobile_no: str
    email: Optional[str] = None
    created_at: datetime
    total_orders: int
    total_spent: float
    last_order: Optional[datetime] = None
    wishlist_count: int

# Orders

class OrderItemCreate(StrictModel):
    product_id: int
    product_variant_id: int
    quantity: int = Field(gt=0)
    price_at_order: float = Field(ge=0)
    size: str = Field(min_length=1, max_length=20)
    color: str = Field(min_length=1, max_length=50)
    product_name: str = Field(min_length=1, max_length=200)
    product_image: Optional[str] = Field(default=None, max_length=500)

class OrderCreate(StrictModel):
    user_id: int
    address_id: int
    items: list[OrderItemCreate] = Field(min_length=1)
    total: float = Field(ge=0)
    paid: bool = False
    is_discount: bool = False
    discount: float = Field(default=0, ge=0)
    discount_code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    provider_order_id: Optional[str] = Field(default=None, min_length=1, max_length=100)

    @model_validator(mode="after")
    def check_payment_and_discount(self):
        if self.paid and not self.provider_order_id:
            raise ValueError("provider_order_id is required for paid orders")
        if self.is_discount and not self.discount_code:
            raise ValueError("discount_code is required when is_discount is set")
        return self

class OrderStatusUpdate(StrictModel):
    status: OrderStatus

class FulfillmentUpdate(StrictModel):
    fulfillment: Fulfillment

class OrderItemRead(ReadModel):
    id: int
    product_id: Optional[int] = None
    product_variant_id: Optional[int] = None
    quantity: int
    price_at_order: float
    size: str
    color: str
    product_name: str
    product_image: Optional[str] = None

class TimelineRead(ReadModel):
    id: int
    label: str
    note: Optional[str] = None
    timestamp: datetime
    type: TimelineEventType

class OrderRead(ReadModel):
    id: int
    order_number: str
    user_id: int
    address_id: int
    total: float
    status: OrderStatus
    fulfillment: Fulfillment
    paid: bool
    is_discount: bool
    discount: float
    discount_code: Optional[str] = None
    external_shipping_id: Optional[str] = None
    awb: Optional[str] = None
    delivery_status: Optional[str] = None
    etd: Optional[str] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime
    items: list[OrderItemRead]

class OrderDetailRead(OrderRead):
    address: Optional[AddressRead] = None
    timeline: list[TimelineRead] = []

class CustomerDetailRead(UserRead):
    addresses: list[AddressRead] = []
    orders: list[OrderRead] = []

class CarrierWebhook(BaseModel):
    """Inbound carrier event. The carrier owns this schema, so extra keys are kept."""
    order_number: Union[int, str]
    awb_number: Optional[str] = None
    status: Optional[str] = None
    status_code: Optional[Union[int, str]] = None
    message: Optional[str] = None
    event_time: Optional[str] = None
    location: Optional[str] = None
    courier_name: Optional[str] = None
    payment_type: Optional[str] = None
    edd: Optional[str] = None

    class Config:
        extra = "allow"

# Discounts

class DiscountCreate(StrictModel):
    code: str = Field(min_length=1, max_length=50)
    type: DiscountType
    value: float = Field(gt=0)
    min_purchase: Optional[float] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    start_date: datetime
    end_date: Optional[datetime] = None
    status: DiscountStatus = DiscountStatus.ACTIVE

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.type == DiscountType.PERCENTAGE and self.value > 100:
            raise ValueError("percentage discounts cannot exceed 100")
        return self

class DiscountUpdate(StrictModel):
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    type: Optional[DiscountType] = None
    value: Optional[float] = Field(default=None, gt=0)
    min_purchase: Optional[float] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[DiscountStatus] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value is not None else None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(value)

class DiscountRead(ReadModel):
    id: int
    code: str
    type: DiscountType
    value: float
    min_purchase: Optional[float] = None
    usage_count: int
    usage_limit: Optional[int] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    status: DiscountStatus
    created_at: datetime

# Wishlists

class WishlistCreate(StrictModel):
    product_id: int

class WishlistRead(ReadModel):
    id: int
    product_id: int
    created_at: datetime
    product: ProductRead

# Analytics

class TopProductRead(BaseModel):
    id: Optional[int] = None
    name: str
    sales: int
    revenue: float

class ProductCardRead(BaseModel):
    id: int
    name: str
    img: Optional[str] = None
    price: float
    slug: str
    category: Optional[str] = None
    discount_price: Optional[float] = None

class SalesOverview(BaseModel):
    total_revenue: float
    total_orders: int
    new_customers: int
    sales_growth: float

class SalesPoint(BaseModel):
    name: str
    sales: int
