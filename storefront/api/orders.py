from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from storefront.application.order_service import OrderService
from storefront.application.schemas import (
    FulfillmentUpdate, OrderCreate, OrderDetailRead, OrderRead, OrderStatusUpdate,
)
from storefront.domain.models import User
from storefront.infrastructure.carrier import NimbusPostClient
from storefront.infrastructure.db import get_db
from storefront.infrastructure.messaging import WhatsAppNotifier
from storefront.infrastructure.payments import RazorpayClient
from .deps import PageParams, get_carrier, get_current_user, get_notifier, get_payments, require_admin

router = APIRouter(prefix="/orders", tags=["orders"])

@router.post("/", status_code=201)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    payments: RazorpayClient = Depends(get_payments),
    carrier: NimbusPostClient = Depends(get_carrier),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    """Place an order: verify payment, reserve stock, book the shipment, notify the buyer."""
    order = OrderService(db, payments=payments, carrier=carrier, notifier=notifier).create(user, payload)
    return {"success": True, "order": OrderDetailRead.model_validate(order)}

@router.get("/")
def list_orders(
    search: Optional[str] = Query(None, max_length=100),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    orders, total = OrderService(db).list(user, paging.page, paging.limit, search)
    return {
        "success": True,
        "orders": [OrderRead.model_validate(order) for order in orders],
        "pagination": paging.envelope(total),
    }

@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "order": OrderDetailRead.model_validate(OrderService(db).get(order_id, user))}

@router.patch("/{order_id}/status")
def update_order_status(
    order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db), _: User = Depends(require_admin)
):
    order = OrderService(db).update_status(order_id, payload.status)
    return {"success": True, "order": OrderRead.model_validate(order)}

@router.patch("/{order_id}/fulfillment")
def update_order_fulfillment(
    order_id: int, payload: FulfillmentUpdate, db: Session = Depends(get_db), _: User = Depends(require_admin)
):
    order = OrderService(db).update_fulfillment(order_id, payload.fulfillment)
    return {"success": True, "order": OrderRead.model_validate(order)}

@router.delete("/{order_id}")
def delete_order(order_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    OrderService(db).delete(order_id)
    return {"success": True, "message": "Order deleted"}

@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    carrier: NimbusPostClient = Depends(get_carrier),
):
    order = OrderService(db, carrier=carrier).cancel(user, order_id)
    return {"success": True, "message": "Order cancelled", "order": OrderRead.model_validate(order)}
