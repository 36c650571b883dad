"""Tests for the session cart."""
from decimal import Decimal

import pytest

from app.storefront import create_app
from app.storefront.auth import _login_attempts
from app.storefront.db import session_scope
from app.storefront.models import Base
from app.storefront.modules.cart.service import (
    CART_KEY,
    add_item,
    cart_count,
    cart_lines,
    clear_cart,
    load_cart,
    remove_item,
    update_quantity,
)
from app.storefront.modules.catalog.models import Product, ProductImage

CSRF = "test-csrf-token"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    _login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    return app


@pytest.fixture()
def client(app):
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["csrf_token"] = CSRF
    return c


def _add_product(app, name="Drill", price="40.00", stock=10) -> int:
    with session_scope(app) as s:
        p = Product(name=name, price=Decimal(price), stock=stock)
        p.images = [ProductImage(url="https://img.example/p.jpg", position=0)]
        s.add(p)
        s.flush()
        return p.id


def _cart(client) -> dict:
    with client.session_transaction() as sess:
        return dict(sess.get(CART_KEY) or {})


def test_add_item_merges_lines():
    store = {}
    assert add_item(store, 1) == 1
    assert add_item(store, 1, 2) == 3
    assert add_item(store, 2, 0) == 1
    assert load_cart(store) == {"1": 3, "2": 1}
    assert cart_count(store) == 4


def test_quantities_are_clamped():
    store = {}
    add_item(store, 1, 500)
    assert load_cart(store) == {"1": 99}
    assert update_quantity(store, 1, 0) == 1
    assert update_quantity(store, 1, 1000) == 99
    with pytest.raises(ValueError, match="Item is not in your cart."):
        update_quantity(store, 2, 3)


def test_remove_and_clear():
    store = {}
    add_item(store, 1)
    add_item(store, 2)
    remove_item(store, 1)
    remove_item(store, 42)
    assert load_cart(store) == {"2": 1}
    clear_cart(store)
    assert CART_KEY not in store
    assert cart_count(store) == 0


def test_load_cart_ignores_garbage():
    store = {CART_KEY: {"1": "2", "x": 3, "3": "nope", "4": 0}}
    assert load_cart(store) == {"1": 2}


def test_cart_lines_prune_deleted_products(app):
    pid = _add_product(app)
    store = {CART_KEY: {str(pid): 2, "999": 1}}
    with session_scope(app) as s:
        lines = cart_lines(s, store)
        assert [(line.product.id, line.quantity) for line in lines] == [(pid, 2)]
        assert lines[0].line_total == Decimal("80.00")
    assert store[CART_KEY] == {str(pid): 2}


def test_add_to_cart_and_view(app, client):
    pid = _add_product(app, price="40.00")
    r = client.post("/cart/add", data={"csrf_token": CSRF, "product_id": str(pid), "quantity": "2"}, follow_redirects=True)
    assert b"to your cart." in r.data
    assert b"Your cart" in r.data
    assert b"Drill" in r.data
    # 80.00 + 15.00 shipping + 6.40 tax
    assert b"$101.40" in r.data
    assert _cart(client) == {str(pid): 2}


def test_add_redirects_to_next(app, client):
    pid = _add_product(app)
    r = client.post("/cart/add", data={"csrf_token": CSRF, "product_id": str(pid), "next": f"/products/{pid}"})
    assert r.status_code == 302
    assert r.headers["Location"].endswith(f"/products/{pid}")


def test_out_of_stock_product_is_not_added(app, client):
    pid = _add_product(app, stock=0)
    r = client.post("/cart/add", data={"csrf_token": CSRF, "product_id": str(pid)}, follow_redirects=True)
    assert b"is out of stock." in r.data
    assert _cart(client) == {}


def test_unknown_product_404(client):
    assert client.post("/cart/add", data={"csrf_token": CSRF, "product_id": "999"}).status_code == 404
    assert client.post("/cart/add", data={"csrf_token": CSRF}).status_code == 404


def test_oversized_product_ids_are_rejected(client):
    huge = "99999999999999999999999"
    assert client.post("/cart/add", data={"csrf_token": CSRF, "product_id": huge}).status_code == 404
    assert client.post("/cart/update", data={"csrf_token": CSRF, "product_id": huge, "quantity": "2"}).status_code == 400
    assert client.post("/cart/remove", data={"csrf_token": CSRF, "product_id": huge}).status_code == 400


def test_update_remove_clear(app, client):
    a = _add_product(app, name="Drill")
    b = _add_product(app, name="Saw")
    client.post("/cart/add", data={"csrf_token": CSRF, "product_id": str(a)})
    client.post("/cart/add", data={"csrf_token": CSRF, "product_id": str(b)})

    client.post("/cart/update", data={"csrf_token": CSRF, "product_id": str(a), "quantity": "5"})
    assert _cart(client) == {str(a): 5, str(b): 1}

    r = client.post("/cart/update", data={"csrf_token": CSRF, "product_id": "999", "quantity": "5"}, follow_redirects=True)
    assert b"Item is not in your cart." in r.data

    r = client.post("/cart/remove", data={"csrf_token": CSRF, "product_id": str(b)}, follow_redirects=True)
    assert b"Item removed from your cart." in r.data
    assert _cart(client) == {str(a): 5}

    r = client.post("/cart/clear", data={"csrf_token": CSRF}, follow_redirects=True)
    assert b"Cart cleared." in r.data
    assert b"Your cart is empty." in r.data


def test_free_shipping_above_threshold(app, client):
    pid = _add_product(app, price="60.00")
    r = client.post("/cart/add", data={"csrf_token": CSRF, "product_id": str(pid), "quantity": "2"}, follow_redirects=True)
    assert b"Free" in r.data
    # 120.00 + 9.60 tax
    assert b"$129.60" in r.data
