from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from typing import Optional

from storefront.application.product_service import ProductService
from storefront.application.schemas import (
    ColorCreate, ColorRead, ProductCreate, ProductDetailRead, ProductRead, ProductStatusUpdate, ProductUpdate,
    SizesCreate, StockUpdate, VariantRead,
)
from storefront.domain.enums import ProductStatus
from storefront.domain.models import User
from storefront.infrastructure.db import get_db
from .deps import PageParams, require_admin

router = APIRouter(prefix="/products", tags=["products"])
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])

@router.post("/", status_code=201)
def create_product(payload: ProductCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    product = ProductService(db).create(payload)
    return {"success": True, "product": ProductDetailRead.model_validate(product)}

@router.get("/")
def list_products(
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[ProductStatus] = None,
    category_id: Optional[int] = None,
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
):
    products, total = ProductService(db).list(paging.page, paging.limit, search, status, category_id)
    return {
        "success": True,
        "products": [ProductRead.model_validate(p) for p in products],
        "pagination": paging.envelope(total),
    }

@router.put("/stock")
def update_stock(payload: StockUpdate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    variant = ProductService(db).set_stock(payload.variant_id, payload.stock)
    return {"success": True, "variant": VariantRead.model_validate(variant)}

@router.get("/slug/{slug}")
def get_product_by_slug(slug: str, db: Session = Depends(get_db)):
    return {"success": True, "product": ProductDetailRead.model_validate(ProductService(db).get_by_slug(slug))}

@router.post("/colors/{color_id}/sizes", status_code=201)
def add_sizes(color_id: int, payload: SizesCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    """Existing sizes of the color are left untouched."""
    color, added = ProductService(db).add_sizes(color_id, payload)
    return {"success": True, "added": added, "color": ColorRead.model_validate(color)}

@router.delete("/variants/{variant_id}")
def delete_variant(variant_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    ProductService(db).delete_variant(variant_id)
    return {"success": True, "message": "Variant deleted"}

@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    return {"success": True, "product": ProductDetailRead.model_validate(ProductService(db).get(product_id))}

@router.put("/{product_id}")
def update_product(
    product_id: int, payload: ProductUpdate, db: Session = Depends(get_db), _: User = Depends(require_admin)
):
    product = ProductService(db).update(product_id, payload)
    return {"success": True, "product": ProductDetailRead.model_validate(product)}

@router.put("/{product_id}/status")
def update_product_status(
    product_id: int, payload: ProductStatusUpdate, db: Session = Depends(get_db), _: User = Depends(require_admin)
):
    product = ProductService(db).set_status(product_id, payload.status)
    return {"success": True, "product": ProductRead.model_validate(product)}

@router.delete("/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    ProductService(db).delete(product_id)
    return {"success": True, "message": "Product deleted"}

@router.post("/{product_id}/colors", status_code=201)
def add_color(product_id: int, payload: ColorCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    color = ProductService(db).add_color(product_id, payload)
    return {"success": True, "color": ColorRead.model_validate(color)}

@inventory_router.get("/")
def list_inventory(request: Request, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    threshold = request.app.state.settings.LOW_STOCK_THRESHOLD
    return {"success": True, "inventory": ProductService(db).inventory(threshold)}

@inventory_router.get("/overview")
def inventory_overview(request: Request, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    threshold = request.app.state.settings.LOW_STOCK_THRESHOLD
    return {"success": True, "overview": ProductService(db).inventory_overview(threshold)}
