from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.application.analytics_service import AnalyticsService
from storefront.domain.models import User
from storefront.infrastructure.db import get_db
from .deps import require_admin

router = APIRouter(prefix="/analytics", tags=["analytics"])
sales_router = APIRouter(prefix="/sales", tags=["sales"])

@router.get("/top-products")
def top_products(limit: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    return {"success": True, "products": AnalyticsService(db).top_products(limit)}

@router.get("/best-sellers")
def best_sellers(limit: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    return {"success": True, "products": AnalyticsService(db).best_sellers(limit)}

@router.get("/new-arrivals")
def new_arrivals(limit: int = Query(5, ge=1, le=50), db: Session = Depends(get_db)):
    return {"success": True, "products": AnalyticsService(db).new_arrivals(limit)}

@sales_router.get("/metrics")
def sales_metrics(db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return {"success": True, "metrics": AnalyticsService(db).sales_metrics()}

@sales_router.get("/overview")
def sales_overview(days: str = Query("30"), db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return {"success": True, "sales_overview": AnalyticsService(db).sales_overview(days)}

@sales_router.get("/graph")
def sales_graph(period: str = Query("monthly"), db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return {"success": True, "period": period.lower(), "data": AnalyticsService(db).sales_graph(period)}
