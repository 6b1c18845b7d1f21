"""NimbusPost shipping adapter.

Books shipments for placed orders and cancels them. The carrier reports
progress back through the webhook in ``storefront.api.webhooks``.
"""

from typing import Optional

import httpx

from storefront.application.errors import ExternalServiceError
from storefront.core.logging_config import get_logger
from storefront.domain.models import Address, Order

logger = get_logger(__name__)

class NimbusPostClient:
    def __init__(
        self,
        create_url: str,
        cancel_url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.create_url = create_url
        self.cancel_url = cancel_url
        self.token = token
        self.timeout = timeout
        self.transport = transport

    @staticmethod
    def build_shipment_form(order: Order, address: Address) -> dict:
        """Flatten an order into the carrier's form fields."""
        street = " ".join(part for part in (address.apt_number, address.street) if part)
        form = {
            "order_number": str(order.id),
            "payment_method": "prepaid" if order.paid else "COD",
            "amount": str(order.total),
            "fname": address.first_name,
            "lname": address.last_name or "",
            "address": street,
            "phone": address.phone_number,
            "city": address.city,
            "state": address.state,
            "country": address.country,
            "pincode": address.zip_code,
        }
        for index, item in enumerate(order.items):
            form[f"products[{index}][name]"] = f"{item.product_name} {item.size} {item.color}"
            form[f"products[{index}][qty]"] = str(item.quantity)
            form[f"products[{index}][price]"] = str(item.price_at_order)
            form[f"products[{index}][sku]"] = order.order_number
        return form

    def _post(self, url: str, form: dict) -> httpx.Response:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                return client.post(url, data=form, headers={"NP-API-KEY": self.token})
        except httpx.TimeoutException as e:
            raise ExternalServiceError("Shipping carrier timed out", timeout=True) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Shipping carrier unreachable: {e}") from e

    def create_shipment(self, order: Order, address: Address) -> str:
        """Book a shipment and return the carrier's shipment id."""
        response = self._post(self.create_url, self.build_shipment_form(order, address))
        body = _json_or_empty(response)
        if response.status_code >= 400 or body.get("status") is False or not body.get("data"):
            logger.error(
                "Carrier rejected shipment",
                extra={'extra_fields': {
                    'order_id': order.id,
                    'status_code': response.status_code,
                    'carrier_message': body.get("message"),
                }},
            )
            raise ExternalServiceError("Failed to create carrier shipment", details=body.get("message"))
        shipment_id = body["data"]
        if isinstance(shipment_id, dict):
            shipment_id = shipment_id.get("order_id") or shipment_id.get("id")
        logger.info(
            "Carrier shipment created",
            extra={'extra_fields': {'order_id': order.id, 'shipment_id': shipment_id}},
        )
        return str(shipment_id)

    def cancel_shipment(self, shipment_id: str) -> None:
        response = self._post(self.cancel_url, {"id": shipment_id})
        body = _json_or_empty(response)
        if response.status_code != 200 or body.get("status") is False:
            logger.error(
                "Carrier refused cancellation",
                extra={'extra_fields': {'shipment_id': shipment_id, 'status_code': response.status_code}},
            )
            raise ExternalServiceError("Failed to cancel carrier shipment", details=body.get("message"))

def _json_or_empty(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
