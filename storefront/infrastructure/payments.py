from typing import Optional

import httpx

from storefront.application.errors import ExternalServiceError, PaymentNotConfirmed
from storefront.core.logging_config import get_logger

logger = get_logger(__name__)

class RazorpayClient:
    """Looks up provider orders to confirm that a checkout was actually paid."""

    def __init__(
        self,
        base_url: str,
        key_id: str,
        secret: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth = (key_id, secret)
        self.timeout = timeout
        self.transport = transport

    def fetch_order_status(self, provider_order_id: str) -> str:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(f"{self.base_url}/orders/{provider_order_id}", auth=self.auth)
        except httpx.TimeoutException as e:
            raise ExternalServiceError("Payment provider timed out", timeout=True) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Payment provider unreachable: {e}") from e

        if response.status_code != 200:
            logger.warning(
                "Payment lookup failed",
                extra={'extra_fields': {'provider_order_id': provider_order_id, 'status_code': response.status_code}},
            )
            raise ExternalServiceError(f"Payment provider returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError:
            body = None
        status = body.get("status") if isinstance(body, dict) else None
        if not status:
            logger.warning(
                "Payment lookup returned no status",
                extra={'extra_fields': {'provider_order_id': provider_order_id}},
            )
            raise ExternalServiceError("Payment provider returned an unreadable response")
        return str(status)

    def ensure_paid(self, provider_order_id: str) -> None:
        status = self.fetch_order_status(provider_order_id)
        if status != "paid":
            logger.info(
                "Payment not confirmed",
                extra={'extra_fields': {'provider_order_id': provider_order_id, 'provider_status': status}},
            )
            raise PaymentNotConfirmed(f"Order is not paid (provider status: {status or 'unknown'})")
