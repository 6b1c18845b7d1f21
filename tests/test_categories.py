import itertools
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import event

from storefront.application.category_service import CategoryService
from storefront.application.schemas import CategoryCreate
from storefront.domain.models import Category

def _priorities(database) -> dict[str, int]:
    with database.session() as s:
        return {c.name: c.priority for c in s.query(Category).all()}

def _create(client, auth, admin, *names):
    ids = []
    for name in names:
        resp = client.post("/categories/", json={"name": name}, headers=auth(admin))
        assert resp.status_code == 201
        ids.append(resp.json()["category"]["id"])
    return ids

def test_create_assigns_next_priority(client, auth, admin):
    first, second = _create(client, auth, admin, "Shirts", "Trousers")
    resp = client.get("/categories/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert [(c["id"], c["priority"]) for c in body["categories"]] == [(first, 1), (second, 2)]
    assert body["categories"][0]["product_count"] == 0

def test_move_last_to_top(client, auth, admin, database):
    a, b, c = _create(client, auth, admin, "A", "B", "C")
    resp = client.put("/categories/priority", json={"id": c, "priority": 1}, headers=auth(admin))
    assert resp.status_code == 200
    assert resp.json()["category"]["priority"] == 1
    assert _priorities(database) == {"A": 2, "B": 3, "C": 1}

def test_move_down_shifts_range_up(client, auth, admin, database):
    _create(client, auth, admin, "A", "B", "C", "D")
    a_id = client.get("/categories/").json()["categories"][0]["id"]
    resp = client.put("/categories/priority", json={"id": a_id, "priority": 3}, headers=auth(admin))
    assert resp.status_code == 200
    assert _priorities(database) == {"A": 3, "B": 1, "C": 2, "D": 4}

def test_same_priority_is_a_no_op(client, auth, admin, database):
    _, b, _ = _create(client, auth, admin, "A", "B", "C")
    before = _priorities(database)
    resp = client.put("/categories/priority", json={"id": b, "priority": 2}, headers=auth(admin))
    assert resp.status_code == 200
    assert _priorities(database) == before

@pytest.mark.parametrize("priority", [0, 4, -1])
def test_out_of_range_priority_rejected(client, auth, admin, database, priority):
    a, _, _ = _create(client, auth, admin, "A", "B", "C")
    resp = client.put("/categories/priority", json={"id": a, "priority": priority}, headers=auth(admin))
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert _priorities(database) == {"A": 1, "B": 2, "C": 3}

def test_unknown_category_priority_is_404(client, auth, admin):
    _create(client, auth, admin, "A")
    resp = client.put("/categories/priority", json={"id": 999, "priority": 1}, headers=auth(admin))
    assert resp.status_code == 404

def test_priorities_stay_dense_after_many_moves(client, auth, admin, database):
    ids = _create(client, auth, admin, *[f"C{i}" for i in range(1, 7)])
    moves = [(ids[5], 1), (ids[0], 6), (ids[2], 2), (ids[3], 5), (ids[1], 3), (ids[5], 6)]
    for category_id, priority in moves:
        resp = client.put("/categories/priority", json={"id": category_id, "priority": priority}, headers=auth(admin))
        assert resp.status_code == 200
    assert sorted(_priorities(database).values()) == [1, 2, 3, 4, 5, 6]

def test_delete_compacts_priorities(client, auth, admin, database):
    _, b, _, _ = _create(client, auth, admin, "A", "B", "C", "D")
    resp = client.delete(f"/categories/{b}", headers=auth(admin))
    assert resp.status_code == 200
    assert _priorities(database) == {"A": 1, "C": 2, "D": 3}
    c_id = _create(client, auth, admin, "E")[0]
    assert client.get(f"/categories/{c_id}").json()["category"]["priority"] == 4

def test_delete_refuses_category_with_products(client, auth, admin, catalog):
    resp = client.delete(f"/categories/{catalog['category'].id}", headers=auth(admin))
    assert resp.status_code == 409

def test_update_name_and_description(client, auth, admin):
    (cat_id,) = _create(client, auth, admin, "Shirts")
    resp = client.put(
        f"/categories/{cat_id}", json={"name": "Formal Shirts", "description": "Office wear"}, headers=auth(admin)
    )
    assert resp.status_code == 200
    category = resp.json()["category"]
    assert category["name"] == "Formal Shirts"
    assert category["description"] == "Office wear"
    assert category["priority"] == 1

def test_detail_lists_only_categories_with_products(client, auth, admin, catalog):
    _create(client, auth, admin, "Empty")
    resp = client.get("/categories/detail")
    assert resp.status_code == 200
    categories = resp.json()["categories"]
    assert [c["name"] for c in categories] == ["Shirts"]
    assert categories[0]["product_count"] == 1
    assert categories[0]["image"] == "https://cdn.example.com/linen.jpg"

def test_mutations_require_admin(client, auth, customer):
    assert client.post("/categories/", json={"name": "X"}).status_code == 401
    assert client.post("/categories/", json={"name": "X"}, headers=auth(customer)).status_code == 403

def test_unknown_fields_rejected(client, auth, admin):
    resp = client.post("/categories/", json={"name": "X", "priority": 7}, headers=auth(admin))
    assert resp.status_code == 400
    assert resp.json()["details"]

@pytest.mark.concurrency
def test_concurrent_moves_on_disjoint_ranges(client, auth, admin, database):
    ids = _create(client, auth, admin, *[f"C{i}" for i in range(1, 7)])

    def move(category_id, priority):
        with database.session() as session:
            return CategoryService(session).set_priority(category_id, priority).priority

    with ThreadPoolExecutor(max_workers=2) as pool:
        first = pool.submit(move, ids[1], 1)
        second = pool.submit(move, ids[5], 4)
        assert first.result() == 1
        assert second.result() == 4

    assert _priorities(database) == {"C1": 2, "C2": 1, "C3": 3, "C4": 5, "C5": 6, "C6": 4}

def test_reorder_follows_target_moved_by_another_reorder(client, auth, admin, database):
    *_, d = _create(client, auth, admin, "A", "B", "C", "D")
    ranges = []

    with database.session() as session:
        service = CategoryService(session)
        lock_range = service._lock_range

        def interleaved(low, high):
            if not ranges:
                # another admin moves D to the top after this reorder has read its position
                with database.session() as other:
                    CategoryService(other).set_priority(d, 1)
            ranges.append((low, high))
            return lock_range(low, high)

        service._lock_range = interleaved
        assert service.set_priority(d, 2).priority == 2

    assert ranges == [(2, 4), (1, 2)]
    assert _priorities(database) == {"A": 1, "D": 2, "B": 3, "C": 4}

@pytest.mark.concurrency
def test_concurrent_creates_get_distinct_priorities(client, database):
    barrier = threading.Barrier(2, timeout=5)
    commits = itertools.count()

    def hold_first_commits(session):
        # both creates have read the same highest priority before either writes
        if next(commits) < 2:
            barrier.wait()

    def create(name):
        with database.session() as session:
            return CategoryService(session).create(CategoryCreate(name=name)).priority

    event.listen(database.SessionLocal, "before_commit", hold_first_commits)
    try:
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(create, name) for name in ("Shirts", "Trousers")]
            priorities = sorted(f.result() for f in futures)
    finally:
        event.remove(database.SessionLocal, "before_commit", hold_first_commits)

    assert priorities == [1, 2]
    assert sorted(_priorities(database).values()) == [1, 2]
