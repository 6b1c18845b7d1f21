from __future__ import annotations

import re

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session, selectinload
from typing import Optional

from storefront.core.logging_config import get_logger
from storefront.domain.enums import ProductStatus
from storefront.domain.models import Category, Product, ProductAsset, ProductColor, ProductVariant
from .errors import NotFound
from .schemas import (
    ColorCreate, InventoryItemRead, InventoryOverview, ProductCreate, ProductUpdate, SizesCreate,
)

logger = get_logger(__name__)

def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "product"

class ProductService:
    def __init__(self, db: Session):
        self.db = db

    def _unique_slug(self, name: str, exclude_id: Optional[int] = None) -> str:
        base = slugify(name)
        stmt = select(Product.slug).where(or_(Product.slug == base, Product.slug.like(f"{base}-%")))
        if exclude_id is not None:
            stmt = stmt.where(Product.id != exclude_id)
        taken = set(self.db.scalars(stmt))
        if base not in taken:
            return base
        suffix = 2
        while f"{base}-{suffix}" in taken:
            suffix += 1
        return f"{base}-{suffix}"

    def _ensure_category(self, category_id: int) -> None:
        if not self.db.get(Category, category_id):
            raise NotFound("Category not found")

    def _detail_query(self):
        return select(Product).options(
            selectinload(Product.assets),
            selectinload(Product.colors).selectinload(ProductColor.variants),
        )

    def list(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[ProductStatus] = None,
        category_id: Optional[int] = None,
    ) -> tuple[list[Product], int]:
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        if status is not None:
            conditions.append(Product.status == status.value)
        if category_id is not None:
            conditions.append(Product.category_id == category_id)

        total = self.db.scalar(select(func.count(Product.id)).where(*conditions)) or 0
        products = self.db.scalars(
            select(Product)
            .options(selectinload(Product.assets))
            .where(*conditions)
            .order_by(Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(products), total

    def get(self, product_id: int) -> Product:
        product = self.db.scalar(self._detail_query().where(Product.id == product_id))
        if not product:
            raise NotFound("Product not found")
        return product

    def get_by_slug(self, slug: str) -> Product:
        product = self.db.scalar(self._detail_query().where(Product.slug == slug))
        if not product:
            raise NotFound("Product not found")
        return product

    def create(self, data: ProductCreate) -> Product:
        self._ensure_category(data.category_id)
        product = Product(
            name=data.name,
            slug=self._unique_slug(data.name),
            description=data.description,
            price=data.price,
            discount_price=data.discount_price,
            material=data.material,
            status=data.status.value,
            category_id=data.category_id,
            assets=[ProductAsset(asset_url=asset.url, type=asset.type.value) for asset in data.assets],
        )
        self.db.add(product)
        self.db.commit()
        logger.info("Product created", extra={'extra_fields': {'product_id': product.id, 'slug': product.slug}})
        return self.get(product.id)

    def update(self, product_id: int, data: ProductUpdate) -> Product:
        product = self.get(product_id)
        self._ensure_category(data.category_id)
        if product.name != data.name:
            product.slug = self._unique_slug(data.name, exclude_id=product_id)
        product.name = data.name
        product.description = data.description
        product.price = data.price
        product.discount_price = data.discount_price
        product.material = data.material
        product.status = data.status.value
        product.category_id = data.category_id
        if data.assets is not None:
            product.assets = [ProductAsset(asset_url=asset.url, type=asset.type.value) for asset in data.assets]
        self.db.commit()
        return self.get(product_id)

    def set_status(self, product_id: int, status: ProductStatus) -> Product:
        product = self.get(product_id)
        product.status = status.value
        self.db.commit()
        logger.info("Product status changed", extra={'extra_fields': {'product_id': product_id, 'status': status.value}})
        return self.get(product_id)

    def delete(self, product_id: int) -> None:
        product = self.get(product_id)
        self.db.delete(product)
        self.db.commit()
        logger.info("Product deleted", extra={'extra_fields': {'product_id': product_id}})

    def add_color(self, product_id: int, data: ColorCreate) -> ProductColor:
        product = self.get(product_id)
        color = ProductColor(product_id=product.id, color=data.color)
        self.db.add(color)
        self.db.commit()
        self.db.refresh(color)
        return color

    def add_sizes(self, color_id: int, data: SizesCreate) -> tuple[ProductColor, int]:
        """Add the sizes a color does not have yet; returns the color and how many were added."""
        color = self.db.scalar(
            select(ProductColor).options(selectinload(ProductColor.variants)).where(ProductColor.id == color_id)
        )
        if not color:
            raise NotFound("Product color not found")
        existing = {variant.size for variant in color.variants}
        added = 0
        for entry in data.sizes:
            if entry.size in existing:
                continue
            color.variants.append(ProductVariant(size=entry.size, stock=entry.stock))
            existing.add(entry.size)
            added += 1
        self.db.commit()
        self.db.refresh(color)
        return color, added

    def set_stock(self, variant_id: int, stock: int) -> ProductVariant:
        variant = self.db.get(ProductVariant, variant_id)
        if not variant:
            raise NotFound("Product variant not found")
        variant.stock = stock
        self.db.commit()
        self.db.refresh(variant)
        logger.info("Stock updated", extra={'extra_fields': {'variant_id': variant_id, 'stock': stock}})
        return variant

    def delete_variant(self, variant_id: int) -> None:
        variant = self.db.get(ProductVariant, variant_id)
        if not variant:
            raise NotFound("Product variant not found")
        self.db.delete(variant)
        self.db.commit()

    def inventory(self, low_stock_threshold: int) -> list[InventoryItemRead]:
        rows = self.db.execute(
            select(ProductVariant, ProductColor.color, Product.id, Product.name)
            .join(ProductColor, ProductColor.id == ProductVariant.color_id)
            .join(Product, Product.id == ProductColor.product_id)
            .order_by(Product.name, ProductColor.color, ProductVariant.size)
        ).all()
        return [
            InventoryItemRead(
                variant_id=variant.id,
                product_id=product_id,
                product_name=product_name,
                color=color,
                size=variant.size,
                stock=variant.stock,
                low_stock=variant.stock <= low_stock_threshold,
            )
            for variant, color, product_id, product_name in rows
        ]

    def inventory_overview(self, low_stock_threshold: int) -> InventoryOverview:
        variants, units, out_of_stock, low_stock = self.db.execute(
            select(
                func.count(ProductVariant.id),
                func.coalesce(func.sum(ProductVariant.stock), 0),
                func.coalesce(func.sum(case((ProductVariant.stock == 0, 1), else_=0)), 0),
                func.coalesce(func.sum(case(
                    ((ProductVariant.stock > 0) & (ProductVariant.stock <= low_stock_threshold), 1), else_=0
                )), 0),
            )
        ).one()
        return InventoryOverview(
            variants=variants,
            units_in_stock=units,
            out_of_stock=out_of_stock,
            low_stock=low_stock,
            low_stock_threshold=low_stock_threshold,
        )
