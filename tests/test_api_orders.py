from __future__ import annotations

from ordersync.core.config import get_settings


def _order_payload(**overrides) -> dict:
    payload = {
        "site_id": 1,
        "order_id": 100,
        "status": "processing",
        "items": [
            {"item_id": 1, "product_id": 10, "quantity": "2", "price": "5", "subtotal": "10", "total": "10"},
        ],
    }
    payload.update(overrides)
    return payload


def _catalog_payload() -> dict:
    return {
        "products": [
            {"product_id": 10, "site_id": 1, "name": "Coffee beans", "price": "5.00"},
            {
                "product_id": 30,
                "site_id": 1,
                "name": "Breakfast box",
                "product_type": "bundle",
                "price": "40",
                "bundled_items": [{"bundled_item_id": 301, "product_id": 10}],
            },
        ],
        "variations": [{"product_variation_id": 21, "product_id": 20, "site_id": 1, "price": "12.50"}],
    }


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_apply_inputs(client):
    resp = client.post(
        "/orders/sync/items",
        json={
            "order": _order_payload(),
            "inputs": [
                {
                    "id": 1,
                    "product": {"kind": "product", "product": {"product_id": 10, "price": "5.00"}},
                    "quantity": "5",
                }
            ],
        },
    )
    assert resp.status_code == 200
    [item] = resp.json()["items"]
    assert item["item_id"] == 1
    assert item["subtotal"] == "25"
    assert item["total"] == "25"


def test_apply_inputs_zero_quantity_policy(client):
    body = {
        "order": _order_payload(),
        "inputs": [
            {
                "id": 1,
                "product": {"kind": "product", "product": {"product_id": 10, "price": "5.00"}},
                "quantity": "0",
            }
        ],
    }

    deleted = client.post("/orders/sync/items", json=body)
    kept = client.post("/orders/sync/items", json={**body, "zero_quantity_policy": "update"})

    assert get_settings().zero_quantity_policy == "delete"
    assert deleted.json()["items"] == []
    assert len(kept.json()["items"]) == 1


def test_apply_inputs_rejects_unknown_product_kind(client):
    resp = client.post(
        "/orders/sync/items",
        json={
            "order": _order_payload(),
            "inputs": [{"product": {"kind": "service", "product": {"product_id": 10}}, "quantity": "1"}],
        },
    )
    assert resp.status_code == 422


def test_sync_selection(client):
    resp = client.post(
        "/orders/sync/selection",
        json={
            "order": _order_payload(),
            "catalog": _catalog_payload(),
            "product_ids": [30],
            "variation_ids": [21],
            "bundle_configurations": [
                {
                    "product_id": 30,
                    "configuration": [
                        {
                            "bundled_item_id": 301,
                            "product_or_variation": {"kind": "product", "product_id": 10},
                            "quantity": "2",
                        }
                    ],
                }
            ],
        },
    )
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [(item["product_id"], item["variation_id"]) for item in items] == [(30, 0), (20, 21)]
    assert items[0]["bundle_configuration"][0]["product_id"] == 10


def test_sync_selection_unknown_bundle_product(client):
    resp = client.post(
        "/orders/sync/selection",
        json={
            "order": _order_payload(),
            "catalog": _catalog_payload(),
            "bundle_configurations": [{"product_id": 99, "configuration": []}],
        },
    )
    assert resp.status_code == 404


def test_update_item_quantity(client):
    resp = client.post(
        "/orders/sync/items/1/quantity",
        json={"order": _order_payload(), "catalog": _catalog_payload(), "quantity": "3", "discount": "1"},
    )
    assert resp.status_code == 200
    [item] = resp.json()["items"]
    assert item["subtotal"] == "15"
    assert item["total"] == "14"


def test_update_item_quantity_not_found(client):
    missing_item = client.post(
        "/orders/sync/items/9/quantity",
        json={"order": _order_payload(), "catalog": _catalog_payload(), "quantity": "3"},
    )
    missing_product = client.post(
        "/orders/sync/items/1/quantity",
        json={"order": _order_payload(), "catalog": {"products": [], "variations": []}, "quantity": "3"},
    )
    assert missing_item.status_code == 404
    assert missing_product.status_code == 404


def test_upsert_and_read_back(client):
    order = _order_payload(
        items=[
            {
                "item_id": 1,
                "product_id": 10,
                "quantity": "2",
                "price": "5",
                "subtotal": "10",
                "total": "10",
                "taxes": [{"tax_id": 7, "total": "1"}],
            }
        ],
        coupons=[{"coupon_id": 3, "code": "SPRING"}],
    )

    resp = client.post("/orders/upsert", json={"orders": [order], "inserting_search_results": True})
    assert resp.status_code == 200
    summary = resp.json()
    assert summary["count"] == 1
    assert summary["orders"][0] == {"site_id": 1, "order_id": 100, "item_count": 1, "exclusive_for_search": True}

    stored = client.get("/orders/1/100")
    assert stored.status_code == 200
    body = stored.json()
    assert body["status"] == "processing"
    assert body["items"][0]["taxes"][0]["tax_id"] == 7
    assert body["coupons"][0]["code"] == "SPRING"


def test_read_missing_order(client):
    resp = client.get("/orders/1/404")
    assert resp.status_code == 404
