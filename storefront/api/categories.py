from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.application.category_service import CategoryService
from storefront.application.schemas import CategoryCreate, CategoryPriorityUpdate, CategoryUpdate
from storefront.domain.models import User
from storefront.infrastructure.db import get_db
from .deps import require_admin

router = APIRouter(prefix="/categories", tags=["categories"])

@router.post("/", status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return {"success": True, "category": CategoryService(db).create(payload)}

@router.get("/")
def list_categories(db: Session = Depends(get_db)):
    """Categories ordered by priority, with product counts."""
    return {"success": True, "categories": CategoryService(db).list()}

@router.get("/detail")
def list_category_details(db: Session = Depends(get_db)):
    """Only categories holding products, each with a preview image."""
    return {"success": True, "categories": CategoryService(db).list_with_preview()}

@router.put("/priority")
def set_category_priority(
    payload: CategoryPriorityUpdate, db: Session = Depends(get_db), _: User = Depends(require_admin)
):
    return {"success": True, "category": CategoryService(db).set_priority(payload.id, payload.priority)}

@router.get("/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_db)):
    return {"success": True, "category": CategoryService(db).get(category_id)}

@router.put("/{category_id}")
def update_category(
    category_id: int, payload: CategoryUpdate, db: Session = Depends(get_db), _: User = Depends(require_admin)
):
    return {"success": True, "category": CategoryService(db).update(category_id, payload)}

@router.delete("/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    CategoryService(db).delete(category_id)
    return {"success": True, "message": "Category deleted"}
