from storefront.domain.models import CarrierEvent, Order, ShipmentTimeline

def _place(client, auth, customer, order_payload) -> int:
    return client.post("/orders/", json=order_payload(quantity=1), headers=auth(customer)).json()["order"]["id"]

def _event(order_id, status, **extra):
    body = {
        "order_number": str(order_id),
        "awb_number": "AWB123",
        "status": status,
        "status_code": "DL",
        "message": f"{status} at hub",
        "event_time": "2024-06-18T10:30:00",
        "location": "Pune",
        "courier_name": "Delhivery",
        "payment_type": "prepaid",
        "edd": "2024-06-20",
    }
    body.update(extra)
    return body

def test_delivered_event_updates_order(client, auth, customer, order_payload, database):
    order_id = _place(client, auth, customer, order_payload)
    assert client.post("/webhooks/carrier", json=_event(order_id, "in transit")).status_code == 200
    resp = client.post("/webhooks/carrier", json=_event(order_id, "Delivered"))
    assert resp.status_code == 200
    assert resp.text == "Webhook received and processed"

    with database.session() as s:
        order = s.get(Order, order_id)
        assert order.fulfillment == "DELIVERED"
        assert order.delivery_status == "DELIVERED"
        assert order.awb == "AWB123"
        assert order.etd == "2024-06-20"
        assert order.delivered_at.isoformat() == "2024-06-18T10:30:00"
        labels = [t.label for t in s.query(ShipmentTimeline).filter_by(order_id=order_id).order_by(ShipmentTimeline.id)]
        assert labels == ["Order Placed", "Shipped", "Delivered"]

def test_unknown_order_is_404(client):
    resp = client.post("/webhooks/carrier", json=_event(424242, "delivered"))
    assert resp.status_code == 404
    assert resp.text == "Order not found"

def test_out_of_range_order_reference_is_404(client):
    resp = client.post("/webhooks/carrier", json=_event("99999999999999999999999", "delivered"))
    assert resp.status_code == 404
    assert resp.text == "Order not found"

def test_unknown_status_still_stores_event(client, auth, customer, order_payload, database):
    order_id = _place(client, auth, customer, order_payload)
    resp = client.post("/webhooks/carrier", json=_event(order_id, "weather delay", tracking_url="https://t.example"))
    assert resp.status_code == 200
    with database.session() as s:
        event = s.query(CarrierEvent).filter_by(order_id=order_id).one()
        assert event.raw_payload["tracking_url"] == "https://t.example"
        assert event.edd.isoformat() == "2024-06-20T00:00:00"
        assert s.get(Order, order_id).fulfillment == "PENDING"
        assert s.query(ShipmentTimeline).filter_by(order_id=order_id).count() == 1

def test_repeated_events_are_not_deduplicated(client, auth, customer, order_payload, database):
    order_id = _place(client, auth, customer, order_payload)
    for _ in range(2):
        assert client.post("/webhooks/carrier", json=_event(order_id, "out for delivery")).status_code == 200
    with database.session() as s:
        assert s.query(CarrierEvent).filter_by(order_id=order_id).count() == 2
        assert s.query(ShipmentTimeline).filter_by(order_id=order_id, label="Out for Delivery").count() == 2

def test_illegal_transition_is_skipped_but_recorded(client, auth, admin, customer, order_payload, database):
    order_id = _place(client, auth, customer, order_payload)
    url = f"/orders/{order_id}/fulfillment"
    client.patch(url, json={"fulfillment": "SHIPPED"}, headers=auth(admin))
    client.patch(url, json={"fulfillment": "DELIVERED"}, headers=auth(admin))

    resp = client.post("/webhooks/carrier", json=_event(order_id, "RTO Delivered"))
    assert resp.status_code == 200
    with database.session() as s:
        assert s.get(Order, order_id).fulfillment == "DELIVERED"
        assert s.query(ShipmentTimeline).filter_by(order_id=order_id, label="RTO Delivered", type="ERROR").count() == 1

def test_awb_is_only_set_once(client, auth, customer, order_payload, database):
    order_id = _place(client, auth, customer, order_payload)
    client.post("/webhooks/carrier", json=_event(order_id, "booked", awb_number="FIRST"))
    client.post("/webhooks/carrier", json=_event(order_id, "in transit", awb_number="SECOND"))
    with database.session() as s:
        assert s.get(Order, order_id).awb == "FIRST"

def test_order_number_reference_is_accepted(client, auth, customer, order_payload, database):
    resp = client.post("/orders/", json=order_payload(quantity=1), headers=auth(customer))
    order = resp.json()["order"]
    assert client.post("/webhooks/carrier", json=_event(order["order_number"], "cancelled")).status_code == 200
    with database.session() as s:
        stored = s.get(Order, order["id"])
        assert (stored.fulfillment, stored.status) == ("CANCELLED", "CANCELLED")

def test_payload_without_order_number_is_rejected(client):
    resp = client.post("/webhooks/carrier", json={"status": "delivered"})
    assert resp.status_code == 400
