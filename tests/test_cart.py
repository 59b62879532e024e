"""
tests/test_cart.py -- Integration tests for /api/v1/cart/*.

Covers:
  - Cart created empty on first read
  - Adding merges quantities for the same product/variant; total is derived
  - Image lookup only for new lines
  - Quantity update / removal, including 404 for unknown lines
  - count, clear
  - Admin listing with owner details and deletion
  - Concurrent writers to one cart do not lose each other's updates
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from commerce.models import CartItem
from commerce.store import CartStore
from core.db import create_db_engine
from core.errors import ConflictError

PRODUCT = "gid://shopify/Product/100"
VARIANT = "gid://shopify/ProductVariant/200"


def _line(**overrides):
    line = {"product_id": PRODUCT, "variant_id": VARIANT, "quantity": 1, "price": 12.5, "title": "Mug"}
    line.update(overrides)
    return line


def test_get_cart_creates_empty_cart(client, customer, customer_headers):
    resp = client.get("/api/v1/cart", headers=customer_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["user_id"] == customer.id
    assert body["items"] == []
    assert body["total_price"] == 0
    assert body["item_count"] == 0


def test_add_merges_same_variant(client, customer_headers, shopify):
    client.post("/api/v1/cart/add", json=_line(), headers=customer_headers)
    resp = client.post("/api/v1/cart/add", json=_line(quantity=2), headers=customer_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["items"]) == 1
    assert body["items"][0]["quantity"] == 3
    assert body["items"][0]["image"] == "https://cdn.example.com/100.jpg"
    assert body["total_price"] == 37.5
    assert shopify.lookups == [PRODUCT]


def test_add_second_variant_is_new_line(client, customer_headers):
    client.post("/api/v1/cart/add", json=_line(), headers=customer_headers)
    resp = client.post(
        "/api/v1/cart/add",
        json=_line(variant_id="gid://shopify/ProductVariant/201", price=10.0, quantity=2),
        headers=customer_headers,
    )
    body = resp.json()
    assert len(body["items"]) == 2
    assert body["total_price"] == 32.5

    count = client.get("/api/v1/cart/count", headers=customer_headers).json()
    assert count == {"item_count": 3, "total_items": 2}


def test_add_rejects_bad_quantity(client, customer_headers):
    resp = client.post("/api/v1/cart/add", json=_line(quantity=0), headers=customer_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_total_price_is_not_client_controlled(client, customer_headers):
    resp = client.post("/api/v1/cart/add", json={**_line(), "total_price": 0.01}, headers=customer_headers)
    assert resp.json()["total_price"] == 12.5


def test_update_quantity(client, customer_headers):
    client.post("/api/v1/cart/add", json=_line(), headers=customer_headers)
    resp = client.put(f"/api/v1/cart/update/{VARIANT}", json={"quantity": 4}, headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["items"][0]["quantity"] == 4
    assert resp.json()["total_price"] == 50.0

    missing = client.put("/api/v1/cart/update/nope", json={"quantity": 1}, headers=customer_headers)
    assert missing.status_code == 404


def test_update_without_cart_is_404(client, customer_headers):
    resp = client.put(f"/api/v1/cart/update/{VARIANT}", json={"quantity": 1}, headers=customer_headers)
    assert resp.status_code == 404


def test_remove_and_clear(client, customer_headers):
    client.post("/api/v1/cart/add", json=_line(), headers=customer_headers)
    client.post("/api/v1/cart/add", json=_line(variant_id="v-2", price=1.0), headers=customer_headers)

    resp = client.delete(f"/api/v1/cart/remove/{VARIANT}", headers=customer_headers)
    assert resp.status_code == 200
    assert [i["variant_id"] for i in resp.json()["items"]] == ["v-2"]
    assert client.delete(f"/api/v1/cart/remove/{VARIANT}", headers=customer_headers).status_code == 404

    cleared = client.delete("/api/v1/cart/clear", headers=customer_headers)
    assert cleared.json()["items"] == []
    assert cleared.json()["total_price"] == 0


def test_count_without_cart(client, customer_headers):
    resp = client.get("/api/v1/cart/count", headers=customer_headers)
    assert resp.json() == {"item_count": 0, "total_items": 0}


def test_admin_lists_carts_with_customer(client, customer, customer_headers, admin_headers):
    client.post("/api/v1/cart/add", json=_line(), headers=customer_headers)
    resp = client.get("/api/v1/cart/admin/all", headers=admin_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"]["total"] == 1
    assert body["carts"][0]["customer"] == {"id": customer.id, "name": customer.name, "email": customer.email}

    assert client.get("/api/v1/cart/admin/all", headers=customer_headers).status_code == 403


def test_admin_deletes_cart(client, customer_headers, admin_headers):
    cart_id = client.get("/api/v1/cart", headers=customer_headers).json()["id"]
    assert client.delete(f"/api/v1/cart/admin/{cart_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/v1/cart/admin/{cart_id}", headers=admin_headers).status_code == 404


@pytest.fixture
def cart_store(tmp_path):
    return CartStore(create_db_engine(f"sqlite:///{tmp_path / 'carts.db'}"))


def _item(**overrides) -> CartItem:
    fields = {"product_id": PRODUCT, "variant_id": VARIANT, "quantity": 1, "price": 1.0, "title": "Mug"}
    fields.update(overrides)
    return CartItem(**fields)


def test_concurrent_adds_are_all_counted(cart_store):
    def add_ten(_):
        for _ in range(10):
            cart_store.add_item(7, _item(price=2.5))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(add_ten, range(8)))

    cart = cart_store.get(7)
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 80
    assert cart.total_price == 200.0
    assert cart.version == 80


def test_concurrent_adds_of_distinct_variants_keep_every_line(cart_store):
    def add_variant(n):
        cart_store.add_item(7, _item(variant_id=f"v-{n}", quantity=n + 1))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(add_variant, range(16)))

    cart = cart_store.get(7)
    assert sorted(i.variant_id for i in cart.items) == sorted(f"v-{n}" for n in range(16))
    assert cart.total_price == float(sum(range(1, 17)))


def test_stale_write_is_retried_against_fresh_items(cart_store, monkeypatch):
    cart_store.add_item(7, _item())
    stale = cart_store.get(7)
    real_get = cart_store.get
    raced = []

    def get_then_race(user_id):
        if not raced:
            raced.append(user_id)
            # Another writer lands between this read and the write.
            cart_store.update_quantity(7, VARIANT, 5)
            return stale
        return real_get(user_id)

    monkeypatch.setattr(cart_store, "get", get_then_race)
    cart = cart_store.remove_item(7, VARIANT)
    assert cart.items == []
    assert cart.version == stale.version + 2


def test_write_gives_up_after_repeated_conflicts(cart_store, monkeypatch):
    cart_store.add_item(7, _item())
    stale = cart_store.get(7)
    cart_store.update_quantity(7, VARIANT, 3)
    monkeypatch.setattr(cart_store, "get", lambda user_id: stale)
    with pytest.raises(ConflictError):
        cart_store.clear(7)
    assert cart_store.get_by_id(stale.id).items[0].quantity == 3


def test_image_resolver_runs_once_per_new_line(cart_store):
    looked_up = []

    def resolver(product_id):
        looked_up.append(product_id)
        return "https://cdn/mug.jpg"

    cart = cart_store.add_item(7, _item(), resolver)
    cart_store.add_item(7, _item(), resolver)
    assert looked_up == [PRODUCT]
    assert cart.items[0].image == "https://cdn/mug.jpg"
