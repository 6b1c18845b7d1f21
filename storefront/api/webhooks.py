"""Carrier status webhook.

The carrier only looks at the status code, so responses are plain text
rather than the JSON envelope used by the rest of the API.
"""

from fastapi import APIRouter, Body, Depends
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from storefront.application.errors import NotFound
from storefront.application.order_service import OrderService
from storefront.application.schemas import CarrierWebhook
from storefront.core.logging_config import get_logger
from storefront.infrastructure.db import get_db

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

@router.post("/carrier", response_class=PlainTextResponse)
def carrier_webhook(raw: dict = Body(...), db: Session = Depends(get_db)):
    try:
        payload = CarrierWebhook.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning(f"Rejected carrier webhook: {e}")
        return PlainTextResponse("Invalid payload", status_code=400)

    try:
        OrderService(db).process_carrier_webhook(payload, raw)
    except NotFound:
        logger.warning(
            "Carrier webhook for unknown order",
            extra={'extra_fields': {'order_number': str(payload.order_number)}},
        )
        return PlainTextResponse("Order not found", status_code=404)
    except Exception:
        logger.error("Error processing carrier webhook", exc_info=True)
        return PlainTextResponse("Internal Server Error", status_code=500)
    return PlainTextResponse("Webhook received and processed", status_code=200)
