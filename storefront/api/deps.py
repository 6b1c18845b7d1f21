from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from storefront.application.errors import Forbidden, Unauthorized
from storefront.application.schemas import Pagination
from storefront.auth import decode_access_token
from storefront.core.logging_config import set_request_context
from storefront.domain.models import User
from storefront.infrastructure.carrier import NimbusPostClient
from storefront.infrastructure.db import get_db
from storefront.infrastructure.messaging import WhatsAppNotifier
from storefront.infrastructure.payments import RazorpayClient

BEARER_PREFIX = "Bearer "

def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise Unauthorized("Missing token")
    token_data = decode_access_token(auth_header.split(" ", 1)[1], request.app.state.settings)
    if not token_data or not str(token_data.get("sub", "")).isdigit():
        raise Unauthorized("Invalid token")
    user = db.get(User, int(token_data["sub"]))
    if not user:
        raise Unauthorized("Unknown user")
    set_request_context(user_id=str(user.id))
    return user

def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user

def get_payments(request: Request) -> RazorpayClient:
    return request.app.state.payments

def get_carrier(request: Request) -> NimbusPostClient:
    return request.app.state.carrier

def get_notifier(request: Request) -> WhatsAppNotifier:
    return request.app.state.notifier

class PageParams:
    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        self.page = page
        self.limit = limit

    def envelope(self, total: int) -> Pagination:
        return Pagination(
            totalPages=(total + self.limit - 1) // self.limit,
            currentPage=self.page,
            totalItems=total,
            itemsPerPage=self.limit,
        )
