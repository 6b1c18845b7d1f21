from typing import Optional

import httpx

from storefront.core.logging_config import get_logger

logger = get_logger(__name__)

class WhatsAppNotifier:
    """Sends order notifications as WhatsApp template messages.

    Delivery is best effort: failures are logged and reported as ``False``,
    never raised.
    """

    def __init__(
        self,
        api_url: str,
        token: str,
        phone_number_id: str,
        template: str = "order_processed",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.phone_number_id = phone_number_id
        self.template = template
        self.timeout = timeout
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.phone_number_id)

    def order_processed(self, name: Optional[str], mobile_no: Optional[str], order_number: str, products: str) -> bool:
        if not self.enabled or not mobile_no:
            logger.info("WhatsApp notification skipped", extra={'extra_fields': {'order_number': order_number}})
            return False

        payload = {
            "messaging_product": "whatsapp",
            "to": mobile_no,
            "type": "template",
            "template": {
                "name": self.template,
                "language": {"code": "en"},
                "components": [{
                    "type": "body",
                    "parameters": [
                        {"type": "text", "text": name or "Customer"},
                        {"type": "text", "text": f"# {order_number}"},
                        {"type": "text", "text": products},
                    ],
                }],
            },
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    f"{self.api_url}/{self.phone_number_id}/messages",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.token}"},
                )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                f"WhatsApp notification failed: {e}",
                extra={'extra_fields': {'order_number': order_number}},
            )
            return False
        return True
