from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional

from storefront.application.customer_service import CustomerService
from storefront.application.schemas import (
    AddressCreate, AddressRead, CustomerDetailRead, ProfileUpdate, UserRead,
)
from storefront.domain.models import User
from storefront.infrastructure.db import get_db
from .deps import PageParams, get_current_user, require_admin

router = APIRouter(prefix="/customers", tags=["customers"])

@router.get("/me")
def get_profile(user: User = Depends(get_current_user)):
    return {"success": True, "user": UserRead.model_validate(user)}

@router.put("/me")
def update_profile(payload: ProfileUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "user": UserRead.model_validate(CustomerService(db).update_profile(user, payload))}

@router.get("/me/addresses")
def list_addresses(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    addresses = CustomerService(db).list_addresses(user)
    return {"success": True, "addresses": [AddressRead.model_validate(a) for a in addresses]}

@router.post("/me/addresses", status_code=201)
def add_address(payload: AddressCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "address": AddressRead.model_validate(CustomerService(db).add_address(user, payload))}

@router.put("/me/addresses/{address_id}")
def update_address(
    address_id: int, payload: AddressCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)
):
    address = CustomerService(db).update_address(user, address_id, payload)
    return {"success": True, "address": AddressRead.model_validate(address)}

@router.delete("/me/addresses/{address_id}")
def delete_address(address_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    CustomerService(db).delete_address(user, address_id)
    return {"success": True, "message": "Address deleted"}

@router.get("/")
def list_customers(
    search: Optional[str] = Query(None, max_length=100),
    has_orders: Optional[bool] = None,
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    customers, total = CustomerService(db).list_customers(paging.page, paging.limit, search, has_orders)
    return {"success": True, "customers": customers, "pagination": paging.envelope(total)}

@router.get("/{user_id}")
def get_customer(user_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return {"success": True, "customer": CustomerDetailRead.model_validate(CustomerService(db).get_customer(user_id))}

@router.post("/{user_id}/make-admin")
def make_admin(user_id: int, db: Session = Depends(get_db), _: User = Depends(require_admin)):
    user = CustomerService(db).make_admin(user_id)
    return {"success": True, "message": "User is now an admin", "user": UserRead.model_validate(user)}
