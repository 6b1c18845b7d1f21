"""Fulfillment state machine shared by admin updates and carrier webhooks."""

from typing import NamedTuple, Optional

from storefront.domain.enums import Fulfillment, TimelineEventType

ALLOWED_TRANSITIONS: dict[Fulfillment, frozenset[Fulfillment]] = {
    Fulfillment.PENDING: frozenset({Fulfillment.SHIPPED, Fulfillment.CANCELLED, Fulfillment.RETURNED}),
    Fulfillment.SHIPPED: frozenset({Fulfillment.DELIVERED, Fulfillment.CANCELLED, Fulfillment.RETURNED}),
    Fulfillment.DELIVERED: frozenset(),
    Fulfillment.CANCELLED: frozenset(),
    Fulfillment.RETURNED: frozenset(),
}

def can_transition(current: Fulfillment, target: Fulfillment) -> bool:
    """Setting the current state again is allowed and changes nothing."""
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS[current]

class CarrierStatus(NamedTuple):
    label: str
    type: TimelineEventType
    fulfillment: Optional[Fulfillment] = None

CARRIER_STATUS_MAP: dict[str, CarrierStatus] = {
    "booked": CarrierStatus("Processing", TimelineEventType.INFO),
    "pending pickup": CarrierStatus("Processing", TimelineEventType.INFO),
    "in transit": CarrierStatus("Shipped", TimelineEventType.INFO, Fulfillment.SHIPPED),
    "exception": CarrierStatus("Delivery Issue", TimelineEventType.WARNING),
    "out for delivery": CarrierStatus("Out for Delivery", TimelineEventType.INFO),
    "delivered": CarrierStatus("Delivered", TimelineEventType.SUCCESS, Fulfillment.DELIVERED),
    "rto in transit": CarrierStatus("RTO In Transit", TimelineEventType.WARNING, Fulfillment.RETURNED),
    "rto delivered": CarrierStatus("RTO Delivered", TimelineEventType.ERROR, Fulfillment.RETURNED),
    "cancelled": CarrierStatus("Cancelled", TimelineEventType.ERROR, Fulfillment.CANCELLED),
}

def map_carrier_status(status: Optional[str]) -> Optional[CarrierStatus]:
    if not status:
        return None
    return CARRIER_STATUS_MAP.get(status.strip().lower())
