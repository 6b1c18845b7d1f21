from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.application.schemas import WishlistCreate, WishlistRead
from storefront.application.wishlist_service import WishlistService
from storefront.domain.models import User
from storefront.infrastructure.db import get_db
from .deps import PageParams, get_current_user

router = APIRouter(prefix="/wishlists", tags=["wishlists"])

@router.get("/")
def list_wishlist(paging: PageParams = Depends(), db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    entries, total = WishlistService(db).list(user, paging.page, paging.limit)
    return {
        "success": True,
        "wishlists": [WishlistRead.model_validate(e) for e in entries],
        "pagination": paging.envelope(total),
    }

@router.get("/products")
def list_wishlist_product_ids(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "product_ids": WishlistService(db).product_ids(user)}

@router.post("/", status_code=201)
def add_to_wishlist(payload: WishlistCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    entry = WishlistService(db).add(user, payload.product_id)
    return {"success": True, "wishlist": WishlistRead.model_validate(entry)}

@router.delete("/{product_id}")
def remove_from_wishlist(product_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    WishlistService(db).remove(user, product_id)
    return {"success": True, "message": "Product removed from wishlist"}
