from datetime import datetime, timedelta

def _body(**overrides):
    body = {
        "code": "summer15",
        "type": "PERCENTAGE",
        "value": 15,
        "min_purchase": 999,
        "usage_limit": 100,
        "start_date": (datetime.utcnow() - timedelta(days=1)).isoformat(),
        "end_date": (datetime.utcnow() + timedelta(days=10)).isoformat(),
    }
    body.update(overrides)
    return body

def test_create_stores_upper_case_code(client, auth, admin):
    resp = client.post("/discounts/", json=_body(), headers=auth(admin))
    assert resp.status_code == 201
    discount = resp.json()["discount"]
    assert discount["code"] == "SUMMER15"
    assert discount["usage_count"] == 0
    assert discount["status"] == "ACTIVE"

def test_duplicate_code_is_conflict(client, auth, admin):
    client.post("/discounts/", json=_body(), headers=auth(admin))
    resp = client.post("/discounts/", json=_body(code="Summer15"), headers=auth(admin))
    assert resp.status_code == 409

def test_lookup_is_case_insensitive(client, seed):
    seed.discount("WELCOME10")
    resp = client.get("/discounts/name/welcome10")
    assert resp.status_code == 200
    body = resp.json()
    assert body["discount"]["code"] == "WELCOME10"
    assert body["valid"] is True

def test_lookup_reports_exhausted_code_invalid(client, seed):
    seed.discount("ONCE", usage_limit=1, usage_count=1)
    assert client.get("/discounts/name/once").json()["valid"] is False

def test_lookup_reports_expired_code_invalid(client, seed):
    seed.discount("OLD", start_date=datetime.utcnow() - timedelta(days=10), end_date=datetime.utcnow() - timedelta(days=1))
    assert client.get("/discounts/name/OLD").json()["valid"] is False

def test_unknown_code_is_404(client):
    assert client.get("/discounts/name/NOPE").status_code == 404

def test_end_before_start_rejected(client, auth, admin):
    body = _body(end_date=(datetime.utcnow() - timedelta(days=5)).isoformat())
    assert client.post("/discounts/", json=body, headers=auth(admin)).status_code == 400

def test_mixed_timezone_dates_are_compared_in_utc(client, auth, admin):
    body = _body(start_date="2026-01-01T00:00:00Z", end_date="2026-02-01T00:00:00")
    resp = client.post("/discounts/", json=body, headers=auth(admin))
    assert resp.status_code == 201
    assert resp.json()["discount"]["start_date"] == "2026-01-01T00:00:00"

    # 05:30 in India is midnight UTC, so the range is empty but not inverted
    body = _body(code="IST", start_date="2026-01-01T05:30:00+05:30", end_date="2026-01-01T00:00:00")
    assert client.post("/discounts/", json=body, headers=auth(admin)).status_code == 201

    body = _body(code="LATE", start_date="2026-01-01T00:00:00Z", end_date="2025-12-31T23:00:00")
    assert client.post("/discounts/", json=body, headers=auth(admin)).status_code == 400

def test_update_with_aware_end_before_start_rejected(client, auth, admin):
    body = _body(start_date="2026-01-01T00:00:00", end_date="2026-02-01T00:00:00")
    discount_id = client.post("/discounts/", json=body, headers=auth(admin)).json()["discount"]["id"]
    resp = client.put(f"/discounts/{discount_id}", json={"end_date": "2025-12-31T00:00:00+00:00"}, headers=auth(admin))
    assert resp.status_code == 400

def test_percentage_over_100_rejected(client, auth, admin):
    assert client.post("/discounts/", json=_body(value=150), headers=auth(admin)).status_code == 400

def test_list_newest_first_with_pagination(client, auth, admin):
    for code in ("A1", "B2", "C3"):
        client.post("/discounts/", json=_body(code=code), headers=auth(admin))
    body = client.get("/discounts/?limit=2").json()
    assert [d["code"] for d in body["discounts"]] == ["C3", "B2"]
    assert body["pagination"]["totalItems"] == 3
    assert body["pagination"]["totalPages"] == 2

def test_update_and_delete(client, auth, admin):
    discount_id = client.post("/discounts/", json=_body(), headers=auth(admin)).json()["discount"]["id"]
    resp = client.put(f"/discounts/{discount_id}", json={"status": "INACTIVE", "value": 20}, headers=auth(admin))
    assert resp.status_code == 200
    assert resp.json()["discount"]["status"] == "INACTIVE"
    assert resp.json()["discount"]["value"] == 20
    assert client.get("/discounts/name/summer15").json()["valid"] is False

    assert client.delete(f"/discounts/{discount_id}", headers=auth(admin)).status_code == 200
    assert client.get(f"/discounts/{discount_id}").status_code == 404

def test_update_to_taken_code_is_conflict(client, auth, admin):
    client.post("/discounts/", json=_body(code="FIRST"), headers=auth(admin))
    second = client.post("/discounts/", json=_body(code="SECOND"), headers=auth(admin)).json()["discount"]["id"]
    assert client.put(f"/discounts/{second}", json={"code": "first"}, headers=auth(admin)).status_code == 409

def test_create_requires_admin(client, auth, customer):
    assert client.post("/discounts/", json=_body(), headers=auth(customer)).status_code == 403
