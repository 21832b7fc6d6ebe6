from decimal import Decimal

from posledger.services.sales import SALE_CREATED, compute_totals


def _sale(items, **extra):
    body = {"items": items, "payment": {"method": "cash"}}
    body.update(extra)
    return body


def test_compute_totals_rounds_to_cents():
    subtotal, tax, total = compute_totals([(3, Decimal("3.33")), (1, Decimal("0.01"))], Decimal("0.07"))

    assert subtotal == Decimal("10.00")
    assert tax == Decimal("0.70")
    assert total == Decimal("10.70")


def test_sale_decrements_stock_and_publishes(client, make_product, publisher):
    product = make_product(sku="SALE-1", stock=10)

    response = client.post(
        "/sales",
        json=_sale([{"productId": product["id"], "qty": 3, "price": "10.00"}], customerName="Walk-in"),
    )

    assert response.status_code == 201, response.text
    sale = response.json()
    assert Decimal(sale["subtotal"]) == Decimal("30.00")
    assert Decimal(sale["tax"]) == Decimal("2.10")
    assert Decimal(sale["total"]) == Decimal("32.10")
    assert sale["customerName"] == "Walk-in"
    assert sale["payment"]["method"] == "cash"
    assert Decimal(sale["payment"]["amount"]) == Decimal("32.10")
    assert [item["qty"] for item in sale["items"]] == [3]

    assert client.get(f"/products/{product['id']}").json()["stock"] == 7

    assert len(publisher.events) == 1
    event, payload = publisher.events[0]
    assert event == SALE_CREATED
    assert payload["id"] == sale["id"]
    assert payload["total"] == sale["total"]

    logs = client.get("/product-change-logs", params={"productId": product["id"]}).json()
    assert logs[0]["changes"] == {"stock": {"old": 10, "new": 7}}


def test_repeated_lines_for_one_product_are_combined(client, make_product, publisher):
    product = make_product(sku="SALE-2", stock=5)

    response = client.post(
        "/sales",
        json=_sale(
            [
                {"productId": product["id"], "qty": 2, "price": "1.00"},
                {"productId": product["id"], "qty": 3, "price": "1.00"},
            ]
        ),
    )

    assert response.status_code == 201
    assert len(response.json()["items"]) == 2
    assert client.get(f"/products/{product['id']}").json()["stock"] == 0


def test_insufficient_stock_rolls_back_the_whole_sale(client, make_product, publisher):
    plenty = make_product(sku="PLENTY", name="Plenty", stock=5)
    scarce = make_product(sku="SCARCE", name="Scarce", stock=1)

    response = client.post(
        "/sales",
        json=_sale(
            [
                {"productId": plenty["id"], "qty": 2, "price": "4.00"},
                {"productId": scarce["id"], "qty": 3, "price": "4.00"},
            ]
        ),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["sku"] == "SCARCE"
    assert body["available"] == 1
    assert body["requested"] == 3
    assert client.get(f"/products/{plenty['id']}").json()["stock"] == 5
    assert client.get(f"/products/{scarce['id']}").json()["stock"] == 1
    assert client.get("/sales").json()["total"] == 0
    assert publisher.events == []


def test_sale_for_unknown_product_or_user_is_rejected(client, make_product, publisher):
    product = make_product(sku="SALE-3")

    missing = client.post("/sales", json=_sale([{"productId": 999, "qty": 1, "price": "1.00"}]))
    assert missing.status_code == 404
    assert missing.json()["productId"] == 999

    bad_user = client.post(
        "/sales",
        json=_sale([{"productId": product["id"], "qty": 1, "price": "1.00"}], userId=42),
    )
    assert bad_user.status_code == 400
    assert client.get(f"/products/{product['id']}").json()["stock"] == 10


def test_sale_requires_items_and_payment(client):
    assert client.post("/sales", json={"items": [], "payment": {"method": "cash"}}).status_code == 400
    assert client.post("/sales", json={"items": [{"productId": 1, "qty": 1, "price": "1"}]}).status_code == 400


def test_sales_listing_and_lookup(client, make_product, publisher):
    product = make_product(sku="SALE-4", stock=10)
    created = [
        client.post("/sales", json=_sale([{"productId": product["id"], "qty": 1, "price": "2.00"}])).json()
        for _ in range(3)
    ]

    page = client.get("/sales", params={"limit": 2}).json()
    assert page["total"] == 3
    assert page["totalPages"] == 2
    assert [sale["id"] for sale in page["items"]] == [created[2]["id"], created[1]["id"]]

    assert client.get(f"/sales/{created[0]['id']}").json()["id"] == created[0]["id"]
    assert client.get("/sales/999").status_code == 404


def test_sales_feed_streams_new_sales(client, make_product):
    product = make_product(sku="FEED-1", stock=4)

    with client.websocket_connect("/ws/sales") as websocket:
        response = client.post("/sales", json=_sale([{"productId": product["id"], "qty": 1, "price": "5.00"}]))
        assert response.status_code == 201
        message = websocket.receive_json()

    assert message["event"] == SALE_CREATED
    assert message["data"]["id"] == response.json()["id"]
    assert "emittedAt" in message
