"""Read-only storefront and sales analytics."""

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from datetime import datetime, timedelta, timezone
from typing import Optional

from storefront.domain.enums import ProductStatus
from storefront.domain.models import Order, OrderItem, Product, ProductColor, ProductVariant, User
from .errors import ValidationError
from .schemas import ProductCardRead, SalesOverview, SalesPoint, TopProductRead

GRAPH_PERIODS = ("daily", "weekly", "monthly", "yearly")

def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

def _bucket(moment: datetime, period: str) -> str:
    if period == "daily":
        return moment.strftime("%Y-%m-%d")
    if period == "weekly":
        year, week, _ = moment.isocalendar()
        return f"{year}-W{week:02d}"
    if period == "monthly":
        return moment.strftime("%Y-%m")
    return moment.strftime("%Y")

def _card(product: Product) -> ProductCardRead:
    return ProductCardRead(
        id=product.id,
        name=product.name,
        img=product.assets[0].asset_url if product.assets else None,
        price=product.price,
        slug=product.slug,
        category=product.category.name if product.category else None,
        discount_price=product.discount_price,
    )

class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def top_products(self, limit: int = 5) -> list[TopProductRead]:
        """Units sold per variant, highest first."""
        units = func.sum(OrderItem.quantity)
        rows = self.db.execute(
            select(
                OrderItem.product_variant_id,
                units,
                func.sum(OrderItem.quantity * OrderItem.price_at_order),
                func.min(OrderItem.product_name),
                Product.id,
                Product.name,
            )
            .outerjoin(ProductVariant, ProductVariant.id == OrderItem.product_variant_id)
            .outerjoin(ProductColor, ProductColor.id == ProductVariant.color_id)
            .outerjoin(Product, Product.id == ProductColor.product_id)
            .group_by(OrderItem.product_variant_id, Product.id, Product.name)
            .order_by(units.desc())
            .limit(limit)
        ).all()
        return [
            TopProductRead(
                id=product_id,
                name=product_name or snapshot_name or "Unknown Product",
                sales=sales or 0,
                revenue=float(revenue or 0),
            )
            for _, sales, revenue, snapshot_name, product_id, product_name in rows
        ]

    def best_sellers(self, limit: int = 5) -> list[ProductCardRead]:
        """Products by units sold, padded with other products when sales are thin."""
        units = func.sum(OrderItem.quantity)
        ranked = self.db.execute(
            select(OrderItem.product_id, units)
            .where(OrderItem.product_id.is_not(None))
            .group_by(OrderItem.product_id)
            .order_by(units.desc())
            .limit(limit)
        ).all()
        ids = [product_id for product_id, _ in ranked]

        loaded = {
            product.id: product
            for product in self.db.scalars(
                select(Product)
                .options(selectinload(Product.assets), selectinload(Product.category))
                .where(Product.id.in_(ids))
            )
        }
        products = [loaded[product_id] for product_id in ids if product_id in loaded]

        if len(products) < limit:
            stmt = (
                select(Product)
                .options(selectinload(Product.assets), selectinload(Product.category))
                .order_by(Product.id)
                .limit(limit - len(products))
            )
            if ids:
                stmt = stmt.where(Product.id.not_in(ids))
            products.extend(self.db.scalars(stmt))
        return [_card(product) for product in products]

    def new_arrivals(self, limit: int = 5) -> list[ProductCardRead]:
        products = self.db.scalars(
            select(Product)
            .options(selectinload(Product.assets), selectinload(Product.category))
            .where(Product.status == ProductStatus.PUBLISHED.value)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
        )
        return [_card(product) for product in products]

    def _paid_revenue(self, since: Optional[datetime] = None) -> float:
        stmt = select(func.coalesce(func.sum(Order.total), 0)).where(Order.paid.is_(True))
        if since is not None:
            stmt = stmt.where(Order.created_at >= since)
        return float(self.db.scalar(stmt) or 0)

    def _growth(self, window_revenue: float) -> float:
        """Share of ``window_revenue`` earned in the last 30 days, as a percentage."""
        last_month = self._paid_revenue(_utcnow() - timedelta(days=30))
        if not last_month or not window_revenue:
            return 0.0
        return round(last_month / window_revenue * 100, 2)

    def sales_metrics(self) -> SalesOverview:
        total_revenue = float(self.db.scalar(select(func.coalesce(func.sum(Order.total), 0))) or 0)
        total_orders = self.db.scalar(select(func.count(Order.id))) or 0
        customers = self.db.scalar(select(func.count(User.id))) or 0
        return SalesOverview(
            total_revenue=total_revenue,
            total_orders=total_orders,
            new_customers=customers,
            sales_growth=self._growth(total_revenue),
        )

    def sales_overview(self, days: str = "30") -> SalesOverview:
        if days == "all":
            since = None
        else:
            try:
                window = int(days)
            except ValueError:
                raise ValidationError("days must be a positive integer or 'all'")
            if window < 1:
                raise ValidationError("days must be a positive integer or 'all'")
            since = _utcnow() - timedelta(days=window)

        paid_orders = select(func.count(Order.id)).where(Order.paid.is_(True))
        new_customers = select(func.count(User.id))
        if since is not None:
            paid_orders = paid_orders.where(Order.created_at >= since)
            new_customers = new_customers.where(User.created_at >= since)

        revenue = self._paid_revenue(since)
        return SalesOverview(
            total_revenue=revenue,
            total_orders=self.db.scalar(paid_orders) or 0,
            new_customers=self.db.scalar(new_customers) or 0,
            sales_growth=self._growth(revenue),
        )

    def sales_graph(self, period: str = "monthly") -> list[SalesPoint]:
        period = period.lower()
        if period not in GRAPH_PERIODS:
            raise ValidationError(f"period must be one of {', '.join(GRAPH_PERIODS)}")
        buckets: dict[str, float] = {}
        for created_at, total in self.db.execute(
            select(Order.created_at, Order.total).where(Order.paid.is_(True))
        ):
            key = _bucket(created_at, period)
            buckets[key] = buckets.get(key, 0.0) + float(total)
        return [SalesPoint(name=key, sales=round(value)) for key, value in sorted(buckets.items())]
