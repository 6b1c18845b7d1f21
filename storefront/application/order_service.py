from __future__ import annotations

from sqlalchemy import String, cast, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from datetime import datetime, timezone
from typing import Optional

from storefront.core.logging_config import get_logger
from storefront.domain.enums import Fulfillment, OrderStatus, TimelineEventType
from storefront.domain.models import (
    Address, CarrierEvent, Discount, Order, OrderItem, ProductColor, ProductVariant, ShipmentTimeline, User,
)
from storefront.infrastructure.carrier import NimbusPostClient
from storefront.infrastructure.db import is_unique_violation
from storefront.infrastructure.messaging import WhatsAppNotifier
from storefront.infrastructure.payments import RazorpayClient
from .errors import (
    AppError, ExternalServiceError, Forbidden, InsufficientStock, InvalidTransition, NotFound, ValidationError,
)
from .fulfillment import can_transition, map_carrier_status
from .schemas import CarrierWebhook, OrderCreate

logger = get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5
# order ids are 32-bit integer keys
MAX_ORDER_ID = 2**31 - 1

def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse carrier timestamps into naive UTC; unparseable values become None."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

class OrderService:
    def __init__(
        self,
        db: Session,
        payments: Optional[RazorpayClient] = None,
        carrier: Optional[NimbusPostClient] = None,
        notifier: Optional[WhatsAppNotifier] = None,
    ):
        self.db = db
        self.payments = payments
        self.carrier = carrier
        self.notifier = notifier

    def _generate_order_number(self) -> str:
        """Generate an order number in format ORD-YYYY-NNNNN"""
        year = _utcnow().year
        prefix = f"ORD-{year}-"
        latest = self.db.scalar(
            select(func.max(Order.order_number)).where(Order.order_number.like(f"{prefix}%"))
        )
        sequence = int(latest[len(prefix):]) + 1 if latest else 1
        return f"{prefix}{sequence:05d}"

    def _base_query(self):
        return select(Order).options(selectinload(Order.items))

    def get(self, order_id: int, user: Optional[User] = None) -> Order:
        order = self.db.scalar(
            self._base_query()
            .options(selectinload(Order.address), selectinload(Order.timeline))
            .where(Order.id == order_id)
        )
        if not order:
            raise NotFound("Order not found")
        if user is not None and not user.is_admin and order.user_id != user.id:
            raise Forbidden("You can only view your own orders")
        return order

    def list(self, user: User, page: int = 1, limit: int = 10, search: Optional[str] = None) -> tuple[list[Order], int]:
        """Newest first. Non-admins only ever see their own orders."""
        conditions = []
        if not user.is_admin:
            conditions.append(Order.user_id == user.id)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Order.order_number.ilike(pattern),
                cast(Order.id, String).ilike(pattern),
                cast(Order.user_id, String).ilike(pattern),
            ))

        total = self.db.scalar(select(func.count(Order.id)).where(*conditions)) or 0
        orders = self.db.scalars(
            self._base_query()
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(orders), total

    def create(self, user: User, data: OrderCreate) -> Order:
        if not user.is_admin and data.user_id != user.id:
            raise Forbidden("You can only place orders for yourself")

        # Everything below up to the first write only reads, so failures leave no trace
        purchaser = self.db.get(User, data.user_id)
        if not purchaser:
            raise NotFound("User not found")

        if data.paid:
            self.payments.ensure_paid(data.provider_order_id)

        address = self.db.scalar(
            select(Address).where(Address.id == data.address_id, Address.user_id == data.user_id)
        )
        if not address:
            raise NotFound("Address not found")

        self._check_items(data)

        discount_code = data.discount_code.strip().upper() if data.discount_code else None
        if discount_code:
            exists = self.db.scalar(select(Discount.id).where(func.upper(Discount.code) == discount_code))
            if not exists:
                raise NotFound(f"Discount code {discount_code} not found")

        shipment_id = None
        try:
            order = self._insert_order(data, address, discount_code)

            if discount_code:
                self.db.execute(
                    update(Discount)
                    .where(func.upper(Discount.code) == discount_code)
                    .values(usage_count=Discount.usage_count + 1)
                    .execution_options(synchronize_session=False)
                )

            for item in data.items:
                result = self.db.execute(
                    update(ProductVariant)
                    .where(ProductVariant.id == item.product_variant_id, ProductVariant.stock >= item.quantity)
                    .values(stock=ProductVariant.stock - item.quantity)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InsufficientStock(
                        f"Insufficient stock for {item.product_name} ({item.size}, {item.color})",
                        details={"product_variant_id": item.product_variant_id, "requested": item.quantity},
                    )

            shipment_id = self.carrier.create_shipment(order, address)
            order.external_shipping_id = shipment_id
            order.timeline.append(ShipmentTimeline(
                label="Order Placed",
                timestamp=_utcnow(),
                type=TimelineEventType.INFO.value,
            ))
            self.db.flush()
        except (AppError, SQLAlchemyError):
            self.db.rollback()
            raise

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            self._compensate_shipment(shipment_id)
            raise

        logger.info(
            "Order placed",
            extra={'extra_fields': {
                'order_id': order.id,
                'order_number': order.order_number,
                'user_id': order.user_id,
                'items': len(data.items),
                'shipment_id': shipment_id,
            }},
        )

        if self.notifier is not None:
            self.notifier.order_processed(
                purchaser.name,
                purchaser.mobile_no,
                order.order_number,
                ", ".join(item.product_name for item in data.items),
            )

        return self.get(order.id)

    def _insert_order(self, data: OrderCreate, address: Address, discount_code: Optional[str]) -> Order:
        """Insert the order and its items; the first write of the checkout transaction.

        Two checkouts can read the same latest order number. The unique index rejects
        the second insert, which is retried with a fresh number; nothing else has been
        written yet, so rolling back loses no work.
        """
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            order = Order(
                order_number=self._generate_order_number(),
                user_id=data.user_id,
                address_id=address.id,
                total=data.total,
                status=OrderStatus.PENDING.value,
                fulfillment=Fulfillment.PENDING.value,
                paid=data.paid,
                is_discount=data.is_discount or discount_code is not None,
                discount=data.discount,
                discount_code=discount_code,
                provider_order_id=data.provider_order_id,
                items=[
                    OrderItem(
                        product_id=item.product_id,
                        product_variant_id=item.product_variant_id,
                        quantity=item.quantity,
                        price_at_order=item.price_at_order,
                        size=item.size,
                        color=item.color,
                        product_name=item.product_name,
                        product_image=item.product_image,
                    )
                    for item in data.items
                ],
            )
            self.db.add(order)
            try:
                self.db.flush()
                return order
            except IntegrityError as e:
                self.db.rollback()
                if attempt == ORDER_NUMBER_ATTEMPTS or not is_unique_violation(e, "order_number"):
                    raise
                logger.warning(
                    "Order number taken, retrying",
                    extra={'extra_fields': {'order_number': order.order_number, 'attempt': attempt}},
                )

    def _check_items(self, data: OrderCreate) -> None:
        variant_ids = {item.product_variant_id for item in data.items}
        rows = self.db.execute(
            select(ProductVariant.id, ProductColor.product_id)
            .join(ProductColor, ProductColor.id == ProductVariant.color_id)
            .where(ProductVariant.id.in_(variant_ids))
        ).all()
        owners = {variant_id: product_id for variant_id, product_id in rows}
        for item in data.items:
            if item.product_variant_id not in owners:
                raise NotFound(f"Product variant {item.product_variant_id} not found")
            if owners[item.product_variant_id] != item.product_id:
                raise ValidationError(
                    f"Variant {item.product_variant_id} does not belong to product {item.product_id}",
                    details=[{"field": "items.product_variant_id", "message": "variant/product mismatch"}],
                )

    def _compensate_shipment(self, shipment_id: Optional[str]) -> None:
        if not shipment_id:
            return
        try:
            self.carrier.cancel_shipment(shipment_id)
            logger.warning(
                "Carrier shipment cancelled after failed commit",
                extra={'extra_fields': {'shipment_id': shipment_id}},
            )
        except ExternalServiceError as e:
            logger.error(
                f"Compensating shipment cancel failed: {e.message}",
                extra={'extra_fields': {'shipment_id': shipment_id}},
            )

    def update_status(self, order_id: int, status: OrderStatus) -> Order:
        order = self.get(order_id)
        order.status = status.value
        self.db.commit()
        logger.info("Order status updated", extra={'extra_fields': {'order_id': order_id, 'status': status.value}})
        return self.get(order_id)

    def update_fulfillment(self, order_id: int, fulfillment: Fulfillment) -> Order:
        order = self.get(order_id)
        current = Fulfillment(order.fulfillment)
        if not can_transition(current, fulfillment):
            raise InvalidTransition(f"Cannot move fulfillment from {current.value} to {fulfillment.value}")
        if current != fulfillment:
            order.fulfillment = fulfillment.value
            if fulfillment == Fulfillment.DELIVERED and order.delivered_at is None:
                order.delivered_at = _utcnow()
            self.db.commit()
            logger.info(
                "Order fulfillment updated",
                extra={'extra_fields': {'order_id': order_id, 'from': current.value, 'to': fulfillment.value}},
            )
        return self.get(order_id)

    def delete(self, order_id: int) -> None:
        order = self.get(order_id)
        self.db.delete(order)
        self.db.commit()
        logger.info("Order deleted", extra={'extra_fields': {'order_id': order_id}})

    def cancel(self, user: User, order_id: int) -> Order:
        order = self.db.scalar(select(Order).where(Order.id == order_id, Order.user_id == user.id))
        if not order:
            raise NotFound("Order not found")
        current = Fulfillment(order.fulfillment)
        if current == Fulfillment.CANCELLED or not can_transition(current, Fulfillment.CANCELLED):
            raise InvalidTransition(f"Order cannot be cancelled once {current.value}")

        if order.external_shipping_id:
            self.carrier.cancel_shipment(order.external_shipping_id)

        order.status = OrderStatus.CANCELLED.value
        order.fulfillment = Fulfillment.CANCELLED.value
        order.timeline.append(ShipmentTimeline(
            label="Cancelled",
            note="Cancelled by customer",
            timestamp=_utcnow(),
            type=TimelineEventType.ERROR.value,
        ))
        self.db.commit()
        logger.info("Order cancelled", extra={'extra_fields': {'order_id': order_id, 'user_id': user.id}})
        return self.get(order_id)

    def _find_by_carrier_reference(self, reference: str) -> Optional[Order]:
        # Shipments are booked with the numeric order id as the carrier's order number
        if reference.isdigit():
            order_id = int(reference)
            if order_id > MAX_ORDER_ID:
                return None
            return self.db.get(Order, order_id)
        return self.db.scalar(select(Order).where(Order.order_number == reference))

    def process_carrier_webhook(self, payload: CarrierWebhook, raw: dict) -> Order:
        order = self._find_by_carrier_reference(str(payload.order_number).strip())
        if not order:
            raise NotFound("Order not found")

        mapped = map_carrier_status(payload.status)
        if mapped is None:
            logger.warning(
                "Unknown carrier status",
                extra={'extra_fields': {'order_id': order.id, 'carrier_status': payload.status}},
            )

        event_time = _parse_timestamp(payload.event_time) or _utcnow()
        try:
            if not order.awb and payload.awb_number:
                order.awb = payload.awb_number

            self.db.add(CarrierEvent(
                order_id=order.id,
                awb_number=payload.awb_number,
                status=payload.status,
                status_code=str(payload.status_code) if payload.status_code is not None else None,
                message=payload.message,
                event_time=event_time,
                location=payload.location,
                courier_name=payload.courier_name,
                payment_type=payload.payment_type,
                edd=_parse_timestamp(payload.edd),
                raw_payload=raw,
            ))

            if mapped is not None:
                self.db.add(ShipmentTimeline(
                    order_id=order.id,
                    label=mapped.label,
                    note=payload.message or None,
                    timestamp=event_time,
                    type=mapped.type.value,
                ))
                order.delivery_status = payload.status.strip().upper()
                if payload.edd:
                    order.etd = payload.edd
                if mapped.fulfillment is not None:
                    self._apply_carrier_fulfillment(order, mapped.fulfillment, event_time)

            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            "Carrier webhook processed",
            extra={'extra_fields': {
                'order_id': order.id,
                'carrier_status': payload.status,
                'fulfillment': order.fulfillment,
            }},
        )
        return order

    def _apply_carrier_fulfillment(self, order: Order, target: Fulfillment, event_time: datetime) -> None:
        current = Fulfillment(order.fulfillment)
        if not can_transition(current, target):
            logger.warning(
                "Ignoring carrier fulfillment transition",
                extra={'extra_fields': {'order_id': order.id, 'from': current.value, 'to': target.value}},
            )
            return
        order.fulfillment = target.value
        if target == Fulfillment.DELIVERED:
            order.delivered_at = event_time
        elif target == Fulfillment.CANCELLED:
            order.status = OrderStatus.CANCELLED.value
