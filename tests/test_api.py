from uuid import uuid4


def _create(client, payload, headers=None):
    response = client.post("/api/orders", json=payload, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_and_fetch_order(client, seed, order_payload, stock_level):
    user_id = str(uuid4())
    created = _create(client, order_payload(), headers={"X-User-Id": user_id})

    assert created["invoice_number"] == "SALE032026-0001"
    assert stock_level(seed.product_1, seed.warehouse_a) == -5

    order = client.get(f"/api/orders/{created['orderId']}").json()
    assert order["invoice_number"] == "SALE032026-0001"
    assert order["order_type"] == "sale"
    assert order["total"] == 50.0
    assert order["payment_status"] == "unpaid"
    assert order["created_by"] == user_id
    assert [(i["product_id"], i["quantity"]) for i in order["items"]] == [(str(seed.product_1), 5)]

    history = client.get("/api/stock-history", params={"product_id": str(seed.product_1)}).json()
    assert history["history"][0]["created_by"] == user_id


def test_create_validation_is_400(client, order_payload):
    response = client.post("/api/orders", json=order_payload(warehouse_id=None))

    assert response.status_code == 400
    assert response.json()["detail"] == "Warehouse is required"


def test_malformed_body_is_400(client, order_payload):
    response = client.post("/api/orders", json=order_payload(order_type="barter"))

    assert response.status_code == 400


def test_invalid_user_header_is_400(client, order_payload):
    response = client.post("/api/orders", json=order_payload(), headers={"X-User-Id": "nobody"})

    assert response.status_code == 400


def test_missing_order_is_404(client):
    assert client.get(f"/api/orders/{uuid4()}").status_code == 404
    assert client.delete(f"/api/orders/{uuid4()}").status_code == 404
    assert client.post(f"/api/orders/{uuid4()}/restore").status_code == 404


def test_list_orders(client, order_payload):
    _create(client, order_payload())
    _create(client, order_payload("purchase"))

    body = client.get("/api/orders", params={"order_type": "purchase"}).json()

    assert body["total"] == 1
    assert body["orders"][0]["invoice_number"] == "ACHT032026-0001"
    assert client.get("/api/orders", params={"limit": 1}).json()["pages"] == 2


def test_delete_restore_over_http(client, seed, order_payload, stock_level):
    created = _create(client, order_payload("purchase"))
    order_id = created["orderId"]

    assert client.delete(f"/api/orders/{order_id}").status_code == 200
    assert stock_level(seed.product_1, seed.warehouse_a) == 0

    second = client.delete(f"/api/orders/{order_id}")
    assert second.status_code == 400
    assert second.json()["detail"] == "Order is already deleted"

    assert client.post(f"/api/orders/{order_id}/restore").status_code == 200
    assert stock_level(seed.product_1, seed.warehouse_a) == 5


def test_paid_order_delete_is_400(client, order_payload):
    created = _create(client, order_payload(payments=[{"amount": "50"}]))

    response = client.delete(f"/api/orders/{created['orderId']}")

    assert response.status_code == 400


def test_full_update_over_http(client, seed, order_payload, stock_level):
    created = _create(client, order_payload())

    response = client.put(f"/api/orders/{created['orderId']}", json={
        "items": [{"product_id": str(seed.product_2), "quantity": 2, "unit_price": "4.50"}]
    })

    assert response.status_code == 200
    assert response.json()["invoice_number"] == created["invoice_number"]
    assert stock_level(seed.product_1, seed.warehouse_a) == 0
    assert stock_level(seed.product_2, seed.warehouse_a) == -2


def test_payment_only_update_over_http(client, order_payload):
    created = _create(client, order_payload())

    response = client.put(f"/api/orders/{created['orderId']}", json={
        "is_payment_only": True,
        "payments": [{"amount": "50"}]
    })

    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"
    assert response.json()["is_deletable"] is False


def test_order_payments_endpoints(client, order_payload):
    created = _create(client, order_payload())
    order_id = created["orderId"]

    response = client.post(f"/api/orders/{order_id}/payments", json={"amount": "20", "payment_mode": "cash"})
    assert response.status_code == 201
    assert response.json()["payment_status"] == "partial"
    assert response.json()["due_amount"] == 30.0

    payments = client.get(f"/api/orders/{order_id}/payments").json()["payments"]
    assert len(payments) == 1
    assert payments[0]["amount"] == 20.0
    assert payments[0]["payment_mode"] == "cash"


def test_idempotency_header_applies_payment_once(client, order_payload):
    created = _create(client, order_payload())
    url = f"/api/orders/{created['orderId']}/payments"
    headers = {"X-Idempotency-Key": "pos-42-0001"}

    first = client.post(url, json={"amount": "20"}, headers=headers)
    retry = client.post(url, json={"amount": "20"}, headers=headers)

    assert first.status_code == retry.status_code == 201
    assert retry.json()["paid_amount"] == 20.0
    assert len(client.get(url).json()["payments"]) == 1


def test_delete_payment_over_http(client, order_payload):
    created = _create(client, order_payload(payments=[{"amount": "50"}]))
    order_id = created["orderId"]
    [payment] = client.get(f"/api/orders/{order_id}/payments").json()["payments"]

    response = client.delete(f"/api/payments/{payment['payment_id']}")

    assert response.status_code == 200
    assert response.json()["orderIds"] == [order_id]
    order = client.get(f"/api/orders/{order_id}").json()
    assert order["payment_status"] == "unpaid"
    assert order["due_amount"] == 50.0
    assert order["is_deletable"] is True
    assert client.get(f"/api/orders/{order_id}/payments").json()["payments"] == []


def test_delete_missing_payment_is_404(client):
    response = client.delete(f"/api/payments/{uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"] == "Payment not found"


def test_convert_over_http(client, seed, order_payload, stock_level):
    created = _create(client, order_payload("proforma"))
    proforma_id = created["orderId"]

    response = client.post(f"/api/orders/{proforma_id}/convert-to-sale")

    assert response.status_code == 200
    body = response.json()
    assert body["proformaId"] == proforma_id
    assert body["invoice_number"].startswith("SALE")
    assert stock_level(seed.product_1, seed.warehouse_a) == -5

    sale = client.get(f"/api/orders/{body['saleId']}").json()
    assert sale["original_order_id"] == proforma_id

    again = client.post(f"/api/orders/{proforma_id}/convert-to-sale")
    assert again.status_code == 400


def test_stock_adjustments_over_http(client, seed, stock_level):
    response = client.post("/api/stock-adjustments", json={
        "warehouse_id": str(seed.warehouse_a),
        "product_id": str(seed.product_1),
        "quantity": 12,
        "adjustment_kind": "add",
        "notes": "Inventory count"
    })
    assert response.status_code == 201
    adjustment_id = response.json()["id"]
    assert stock_level(seed.product_1, seed.warehouse_a) == 12

    listed = client.get("/api/stock-adjustments", params={"warehouse_id": str(seed.warehouse_a)}).json()
    assert listed["total"] == 1

    updated = client.put(f"/api/stock-adjustments/{adjustment_id}", json={"quantity": 2})
    assert updated.status_code == 200
    assert stock_level(seed.product_1, seed.warehouse_a) == 2

    assert client.get(f"/api/stock-adjustments/{adjustment_id}").json()["quantity"] == 2

    assert client.delete(f"/api/stock-adjustments/{adjustment_id}").status_code == 200
    assert stock_level(seed.product_1, seed.warehouse_a) == 0
    assert client.get(f"/api/stock-adjustments/{adjustment_id}").status_code == 404


def test_adjustment_with_zero_quantity_is_400(client, seed):
    response = client.post("/api/stock-adjustments", json={
        "warehouse_id": str(seed.warehouse_a),
        "product_id": str(seed.product_1),
        "quantity": 0,
        "adjustment_kind": "subtract"
    })

    assert response.status_code == 400


def test_stock_summary_and_reconcile(client, seed, order_payload):
    _create(client, order_payload("purchase"))

    summary = client.get("/api/stock/summary", params={"warehouse_id": str(seed.warehouse_a)}).json()
    assert summary["stock"][0]["quantity"] == 5

    reconcile = client.get("/api/stock/reconcile").json()
    assert reconcile == {"consistent": True, "mismatches": []}


def test_stock_history_requires_product(client):
    assert client.get("/api/stock-history").status_code == 400
