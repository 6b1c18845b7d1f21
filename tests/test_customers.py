from storefront.domain.enums import Role

ADDRESS = {
    "address_name": "Office",
    "first_name": "Asha",
    "last_name": "Rao",
    "street": "FC Road",
    "city": "Pune",
    "state": "Maharashtra",
    "country": "India",
    "zip_code": "411004",
    "phone_number": "9123456780",
}

def test_profile_read_and_update(client, auth, customer):
    resp = client.get("/customers/me", headers=auth(customer))
    assert resp.status_code == 200
    assert resp.json()["user"]["mobile_no"] == customer.mobile_no
    assert resp.json()["user"]["role"] == "USER"

    resp = client.put("/customers/me", json={"name": "Asha R", "email": "asha@example.com"}, headers=auth(customer))
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Asha R"
    assert resp.json()["user"]["email"] == "asha@example.com"

def test_profile_rejects_bad_email(client, auth, customer):
    assert client.put("/customers/me", json={"email": "not-an-email"}, headers=auth(customer)).status_code == 400

def test_profile_requires_token(client):
    assert client.get("/customers/me").status_code == 401
    assert client.get("/customers/me", headers={"Authorization": "Bearer garbage"}).status_code == 401

class TestAddresses:
    def test_add_list_update_delete(self, client, auth, customer):
        resp = client.post("/customers/me/addresses", json=ADDRESS, headers=auth(customer))
        assert resp.status_code == 201
        address_id = resp.json()["address"]["id"]

        listed = client.get("/customers/me/addresses", headers=auth(customer)).json()["addresses"]
        assert [a["address_name"] for a in listed] == ["Office"]

        resp = client.put(
            f"/customers/me/addresses/{address_id}", json={**ADDRESS, "city": "Mumbai"}, headers=auth(customer)
        )
        assert resp.status_code == 200
        assert resp.json()["address"]["city"] == "Mumbai"

        assert client.delete(f"/customers/me/addresses/{address_id}", headers=auth(customer)).status_code == 200
        assert client.get("/customers/me/addresses", headers=auth(customer)).json()["addresses"] == []

    def test_zip_and_phone_are_validated(self, client, auth, customer):
        for field, value in (("zip_code", "4110"), ("phone_number", "12345")):
            resp = client.post("/customers/me/addresses", json={**ADDRESS, field: value}, headers=auth(customer))
            assert resp.status_code == 400

    def test_foreign_address_is_404(self, client, auth, seed, customer):
        other = seed.user(name="Ravi")
        foreign = seed.address(other)
        url = f"/customers/me/addresses/{foreign.id}"
        assert client.put(url, json=ADDRESS, headers=auth(customer)).status_code == 404
        assert client.delete(url, headers=auth(customer)).status_code == 404

    def test_address_used_by_order_cannot_be_deleted(self, client, auth, customer, customer_address, order_payload):
        assert client.post("/orders/", json=order_payload(quantity=1), headers=auth(customer)).status_code == 201
        resp = client.delete(f"/customers/me/addresses/{customer_address.id}", headers=auth(customer))
        assert resp.status_code == 409

class TestAdministration:
    def test_list_with_order_totals(self, client, auth, admin, customer, seed, order_payload):
        seed.user(name="Window Shopper")
        client.post("/orders/", json=order_payload(quantity=2), headers=auth(customer))

        body = client.get("/customers/", headers=auth(admin)).json()
        assert body["pagination"]["totalItems"] == 2
        rows = {c["name"]: c for c in body["customers"]}
        assert "Store Admin" not in rows
        assert rows["Asha Rao"]["total_orders"] == 1
        assert rows["Asha Rao"]["total_spent"] == 1500
        assert rows["Asha Rao"]["last_order"] is not None
        assert rows["Window Shopper"]["total_orders"] == 0

        with_orders = client.get("/customers/?has_orders=true", headers=auth(admin)).json()["customers"]
        assert [c["name"] for c in with_orders] == ["Asha Rao"]
        searched = client.get("/customers/?search=window", headers=auth(admin)).json()["customers"]
        assert [c["name"] for c in searched] == ["Window Shopper"]

    def test_detail_includes_addresses_and_orders(self, client, auth, admin, customer, order_payload):
        order = client.post("/orders/", json=order_payload(quantity=1), headers=auth(customer)).json()["order"]
        resp = client.get(f"/customers/{customer.id}", headers=auth(admin))
        assert resp.status_code == 200
        detail = resp.json()["customer"]
        assert len(detail["addresses"]) == 1
        assert [o["id"] for o in detail["orders"]] == [order["id"]]
        assert client.get("/customers/999", headers=auth(admin)).status_code == 404

    def test_make_admin(self, client, auth, admin, customer):
        resp = client.post(f"/customers/{customer.id}/make-admin", headers=auth(admin))
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == Role.ADMIN.value
        assert client.post(f"/customers/{customer.id}/make-admin", headers=auth(admin)).status_code == 409
        # the promoted user can now reach admin endpoints
        assert client.get("/customers/", headers=auth(customer)).status_code == 200

    def test_customers_cannot_list_customers(self, client, auth, customer):
        assert client.get("/customers/", headers=auth(customer)).status_code == 403
