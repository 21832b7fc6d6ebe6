from unittest.mock import MagicMock

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from posledger.api.deps import get_change_log_recorder
from posledger.models.inventory import ChangeAction, ProductChangeLog
from posledger.services.catalog import get_product
from posledger.services.change_log import ChangeLogRecorder


def _logs(db, product_id):
    return db.scalars(
        select(ProductChangeLog).where(ProductChangeLog.product_id == product_id).order_by(ProductChangeLog.id)
    ).all()


def test_create_product_normalizes_input_and_logs_creation(client, db):
    response = client.post(
        "/products",
        json={"sku": " ab-9 ", "name": " Gadget ", "stock": 4, "vendors": "Acme, Globex ,", "needToOrder": 2},
    )

    assert response.status_code == 201
    product = response.json()
    assert product["sku"] == "AB-9"
    assert product["name"] == "Gadget"
    assert product["vendors"] == ["Acme", "Globex"]
    assert product["deletedAt"] is None

    logs = _logs(db, product["id"])
    assert len(logs) == 1
    assert logs[0].action == ChangeAction.CREATE
    assert logs[0].changes["sku"] == {"old": None, "new": "AB-9"}
    assert logs[0].changes["stock"] == {"old": None, "new": 4}


def test_duplicate_sku_conflicts(client, make_product):
    make_product(sku="DUP-1")

    response = client.post("/products", json={"sku": "dup-1", "name": "Other"})

    assert response.status_code == 409
    assert response.json()["sku"] == "DUP-1"


def test_negative_stock_is_rejected_on_create(client):
    response = client.post("/products", json={"sku": "NEG-1", "name": "Bad", "stock": -1})

    assert response.status_code == 400


def test_update_logs_only_changed_fields(client, make_product, db):
    product = make_product(sku="UPD-1", name="Old name", stock=5)

    response = client.patch(f"/products/{product['id']}", json={"name": "New name", "stock": 5})

    assert response.status_code == 200
    assert response.json()["name"] == "New name"
    logs = _logs(db, product["id"])
    assert len(logs) == 2
    assert logs[-1].action == ChangeAction.UPDATE
    assert logs[-1].changes == {"name": {"old": "Old name", "new": "New name"}}


def test_update_without_changes_still_logs_one_empty_entry(client, make_product, db):
    product = make_product(sku="UPD-2", name="Same")

    response = client.patch(f"/products/{product['id']}", json={"name": "Same"})

    assert response.status_code == 200
    logs = _logs(db, product["id"])
    assert len(logs) == 2
    assert logs[-1].changes == {}


def test_update_rejects_blank_sku_and_taken_sku(client, make_product):
    make_product(sku="TAKEN")
    product = make_product(sku="MINE", name="Mine")

    assert client.patch(f"/products/{product['id']}", json={"sku": "   "}).status_code == 400
    assert client.patch(f"/products/{product['id']}", json={"sku": "taken"}).status_code == 409
    assert client.get(f"/products/{product['id']}").json()["sku"] == "MINE"


def test_update_missing_product_is_not_found(client):
    assert client.patch("/products/404", json={"name": "Ghost"}).status_code == 404


def test_soft_delete_hides_product_from_listing(client, make_product, db):
    kept = make_product(sku="KEEP", name="Keep")
    gone = make_product(sku="GONE", name="Gone")

    deleted = client.delete(f"/products/{gone['id']}")
    assert deleted.status_code == 200
    assert deleted.json()["deletedAt"] is not None

    listing = client.get("/products").json()
    assert [item["id"] for item in listing["items"]] == [kept["id"]]
    assert listing["total"] == 1

    assert client.get(f"/products/{gone['id']}").status_code == 404
    direct = client.get(f"/products/{gone['id']}", params={"includeDeleted": "true"})
    assert direct.status_code == 200
    assert direct.json()["sku"] == "GONE"

    product = get_product(db, gone["id"])
    assert product is not None
    assert product.is_deleted
    assert get_product(db, gone["id"], include_deleted=False) is None

    logs = _logs(db, gone["id"])
    assert logs[-1].action == ChangeAction.DELETE
    assert list(logs[-1].changes) == ["deleted_at"]

    assert client.delete(f"/products/{gone['id']}").status_code == 404


def test_search_matches_name_sku_and_vendor(client, make_product):
    make_product(sku="HAM-1", name="Claw Hammer", vendors=["Stanley"])
    make_product(sku="SCR-1", name="Screwdriver", vendors=["Bosch"])
    make_product(sku="NAI-1", name="Nails", vendors=["Stanley"])

    by_name = client.get("/products", params={"q": "hammer"}).json()
    assert [item["sku"] for item in by_name["items"]] == ["HAM-1"]

    by_sku = client.get("/products", params={"q": "scr"}).json()
    assert [item["sku"] for item in by_sku["items"]] == ["SCR-1"]

    by_vendor = client.get("/products", params={"q": "stanley"}).json()
    assert sorted(item["sku"] for item in by_vendor["items"]) == ["HAM-1", "NAI-1"]


def test_listing_is_paginated(client, make_product):
    for index in range(5):
        make_product(sku=f"P-{index}", name=f"Product {index}")

    first = client.get("/products", params={"page": 1, "limit": 2}).json()
    last = client.get("/products", params={"page": 3, "limit": 2}).json()

    assert first["total"] == 5
    assert first["totalPages"] == 3
    assert first["limit"] == 2
    assert [item["sku"] for item in first["items"]] == ["P-0", "P-1"]
    assert [item["sku"] for item in last["items"]] == ["P-4"]


def test_limit_is_capped(client, make_product):
    make_product()

    body = client.get("/products", params={"limit": 5000}).json()

    assert body["limit"] == 100


def test_low_stock_lists_products_at_or_below_threshold(client, make_product):
    make_product(sku="LOW", name="Low", stock=2, needToOrder=5)
    make_product(sku="EDGE", name="Edge", stock=5, needToOrder=5)
    make_product(sku="FINE", name="Fine", stock=50, needToOrder=5)
    make_product(sku="NONE", name="Untracked", stock=0)

    response = client.get("/products/low-stock")

    assert [item["sku"] for item in response.json()] == ["LOW", "EDGE"]


def test_change_log_endpoint_filters(client, make_product, db):
    product = make_product(sku="LOG-1", name="Logged")
    other = make_product(sku="LOG-2", name="Other")
    client.patch(f"/products/{product['id']}", json={"name": "Renamed"})

    response = client.get("/product-change-logs", params={"productId": product["id"]})
    entries = response.json()
    assert [entry["action"] for entry in entries] == ["update", "create"]
    assert entries[0]["changes"] == {"name": {"old": "Logged", "new": "Renamed"}}
    assert entries[0]["timestamp"] == entries[0]["createdAt"]

    creates = client.get("/product-change-logs", params={"action": "create"}).json()
    assert {entry["productId"] for entry in creates} == {product["id"], other["id"]}

    limited = client.get("/product-change-logs", params={"limit": 1}).json()
    assert len(limited) == 1

    total = db.scalar(select(func.count()).select_from(ProductChangeLog))
    assert total == 3


def test_search_matches_vendor_elements_not_json_text(client, make_product):
    make_product(sku="A-1", name="Anvil", vendors=["Acme"])
    make_product(sku="B-1", name="Beans", vendors=["Café Co"])

    def skus(q):
        return [item["sku"] for item in client.get("/products", params={"q": q}).json()["items"]]

    assert skus("café") == ["B-1"]
    assert skus("acme") == ["A-1"]
    assert skus('"') == []
    assert skus(",") == []


def test_search_treats_wildcards_literally(client, make_product):
    make_product(sku="UNDER_1", name="Underscore")
    make_product(sku="PLAIN-1", name="Plain")
    make_product(sku="PCT-1", name="50% off")

    def skus(q):
        return [item["sku"] for item in client.get("/products", params={"q": q}).json()["items"]]

    assert skus("_") == ["UNDER_1"]
    assert skus("%") == ["PCT-1"]
    assert skus("/") == []


def test_failed_change_log_write_does_not_fail_update(app, client, make_product, db):
    product = make_product(sku="LOG-F", name="Before")
    broken = MagicMock()
    broken.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
    app.dependency_overrides[get_change_log_recorder] = lambda: ChangeLogRecorder(broken)
    try:
        response = client.patch(f"/products/{product['id']}", json={"name": "After"})
    finally:
        app.dependency_overrides.pop(get_change_log_recorder, None)

    assert response.status_code == 200
    assert response.json()["name"] == "After"
    assert client.get(f"/products/{product['id']}").json()["name"] == "After"
    broken.rollback.assert_called_once()
    assert [log.action for log in _logs(db, product["id"])] == [ChangeAction.CREATE]
