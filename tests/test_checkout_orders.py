"""Tests for checkout and admin order handling."""
from decimal import Decimal
from io import BytesIO
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from app.storefront import create_app
from app.storefront.auth import _login_attempts
from app.storefront.db import session_scope
from app.storefront.models import AuditEvent, Base, Permission, Role, User
from app.storefront.modules.catalog.models import Product, ProductImage
from app.storefront.modules.customers.models import Customer
from app.storefront.modules.orders.models import Order, OrderItem
from app.storefront.modules.orders.service import _adjust_stock, dashboard_stats, order_stats, update_order_status
from app.storefront.modules.payments.service import save_payment_settings

CSRF = "test-csrf-token"
PNG = b"\x89PNG\r\n\x1a\nfake-image-bytes"


def _seed(s):
    perms = [
        Permission(key="admin.view", name="Admin: view dashboard"),
        Permission(key="orders.view", name="Orders: view"),
        Permission(key="orders.edit", name="Orders: edit"),
    ]
    r = Role(key="admin", name="Administrator")
    r.permissions.extend(perms)
    u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
    u.roles.append(r)
    s.add_all([*perms, r, u])
    save_payment_settings(
        s,
        {"p2p.venmo.handle": "@toolcraft", "p2p.venmo.enabled": "on", "bank.account_number": "12345678", "bank.enabled": "on"},
        None,
    )


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    _login_attempts.clear()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    with session_scope(app) as s:
        _seed(s)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _set_csrf(client):
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF


def _add_product(app, name="Drill", price="60.00", stock=10) -> int:
    with session_scope(app) as s:
        p = Product(name=name, price=Decimal(price), stock=stock)
        p.images = [ProductImage(url="https://img.example/p.jpg", position=0)]
        s.add(p)
        s.flush()
        return p.id


def _signup(client, email="jane@example.com"):
    client.post(
        "/account/signup",
        data={"first_name": "Jane", "last_name": "Doe", "email": email, "password": "secret1", "password_confirm": "secret1"},
    )
    _set_csrf(client)


def _add_to_cart(client, pid, qty=1):
    client.post("/cart/add", data={"csrf_token": CSRF, "product_id": str(pid), "quantity": str(qty)})


def _checkout_form(**over):
    data = {
        "csrf_token": CSRF,
        "street": "1 Main St",
        "city": "Austin",
        "state": "TX",
        "zip": "73301",
        "country": "US",
        "payment_category": "p2p",
        "payment_code": "venmo",
        "payment_proof": (BytesIO(PNG), "receipt.png", "image/png"),
    }
    data.update(over)
    return data


def _place_order(client, **over):
    return client.post("/checkout", data=_checkout_form(**over), content_type="multipart/form-data")


def _stock(app, pid) -> int:
    with session_scope(app) as s:
        return s.get(Product, pid).stock


def _staff_login(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    _set_csrf(client)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


def test_checkout_requires_customer_login(client):
    r = client.get("/checkout")
    assert r.status_code == 302
    assert "/account/login" in r.headers["Location"]


def test_checkout_with_empty_cart(client):
    _signup(client)
    r = client.get("/checkout", follow_redirects=True)
    assert b"Your cart is empty." in r.data


def test_checkout_page_lists_enabled_methods(app, client):
    pid = _add_product(app)
    _signup(client)
    _add_to_cart(client, pid)
    r = client.get("/checkout")
    assert r.status_code == 200
    assert b"Venmo" in r.data
    assert b"Cash App" not in r.data


def test_place_order(app, client, tmp_path):
    pid = _add_product(app, price="60.00", stock=10)
    _signup(client)
    _add_to_cart(client, pid, 2)

    r = _place_order(client, notes="Leave at the door")
    assert r.status_code == 302
    assert "/checkout/success/ORD-" in r.headers["Location"]

    r = client.get(r.headers["Location"])
    assert b"Thank you for your order!" in r.data

    with session_scope(app) as s:
        o = s.query(Order).one()
        assert o.id.startswith("ORD-")
        assert o.subtotal == Decimal("120.00")
        assert o.shipping == Decimal("0.00")
        assert o.tax == Decimal("9.60")
        assert o.total == Decimal("129.60")
        assert o.status == "pending"
        assert o.payment_status == "pending"
        assert o.payment_method == "Venmo"
        assert o.customer_email == "jane@example.com"
        assert o.notes == "Leave at the door"
        assert [(i.name, i.quantity, i.price) for i in o.items] == [("Drill", 2, Decimal("60.00"))]
        assert o.payment_proof_key.startswith("payment-proofs/")
        assert o.payment_proof_key.endswith("-receipt.png")
        proof_path = Path(tmp_path / "storage" / o.payment_proof_key)
        order_id = o.id

        c = s.query(Customer).one()
        assert c.orders_count == 1
        assert c.total_spent == Decimal("129.60")

    assert proof_path.read_bytes() == PNG
    assert _stock(app, pid) == 8
    with client.session_transaction() as sess:
        assert not sess.get("cart")

    r = client.get(f"/orders/{order_id}")
    assert r.status_code == 200
    assert order_id.encode() in r.data

    r = client.get("/account/orders")
    assert order_id.encode() in r.data


def test_bank_transfer_needs_no_sub_option(app, client):
    pid = _add_product(app)
    _signup(client)
    _add_to_cart(client, pid)
    r = _place_order(client, payment_category="bank", payment_code="")
    assert r.status_code == 302
    with session_scope(app) as s:
        assert s.query(Order).one().payment_method == "Bank Transfer"


def test_checkout_validation_errors(app, client):
    pid = _add_product(app)
    _signup(client)
    _add_to_cart(client, pid)

    r = client.post(
        "/checkout",
        data={"csrf_token": CSRF, "state": "", "country": "US", "payment_category": "p2p", "payment_code": "venmo"},
        content_type="multipart/form-data",
        follow_redirects=True,
    )
    assert b"State is required." in r.data
    assert b"Please upload a screenshot of your payment." in r.data

    r = client.post(
        "/checkout",
        data=_checkout_form(payment_proof=(BytesIO(b"%PDF-1.4"), "receipt.pdf", "application/pdf")),
        content_type="multipart/form-data",
        follow_redirects=True,
    )
    assert b"Payment screenshot must be an image" in r.data

    with session_scope(app) as s:
        assert s.query(Order).count() == 0
    assert _stock(app, pid) == 10


def test_disabled_payment_method_is_rejected(app, client):
    pid = _add_product(app)
    _signup(client)
    _add_to_cart(client, pid)
    r = client.post(
        "/checkout",
        data=_checkout_form(payment_code="cashapp"),
        content_type="multipart/form-data",
        follow_redirects=True,
    )
    assert b"Selected payment method is not available." in r.data
    with session_scope(app) as s:
        assert s.query(Order).count() == 0
    assert _stock(app, pid) == 10


def test_insufficient_stock_blocks_order(app, client):
    pid = _add_product(app, stock=1)
    _signup(client)
    _add_to_cart(client, pid, 3)
    r = client.post("/checkout", data=_checkout_form(), content_type="multipart/form-data", follow_redirects=True)
    assert b"Only 1 left in stock for" in r.data
    with session_scope(app) as s:
        assert s.query(Order).count() == 0
    assert _stock(app, pid) == 1


def test_failed_commit_removes_stored_payment_proof(app, client, tmp_path, monkeypatch):
    pid = _add_product(app, stock=5)
    _signup(client)
    _add_to_cart(client, pid, 2)

    def _commit_fails(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    with monkeypatch.context() as m:
        m.setattr(Session, "commit", _commit_fails)
        r = client.post("/checkout", data=_checkout_form(), content_type="multipart/form-data", follow_redirects=True)

    assert b"place your order. Please try again." in r.data
    assert not [p for p in (tmp_path / "storage").rglob("*") if p.is_file()]
    with session_scope(app) as s:
        assert s.query(Order).count() == 0
    assert _stock(app, pid) == 5


def test_concurrent_reservations_cannot_oversell(app):
    pid = _add_product(app, stock=1)
    engine = app.extensions["sqlalchemy_engine"]
    first, second = Session(bind=engine), Session(bind=engine)
    try:
        # both sessions saw the last unit before either reserved it
        assert first.get(Product, pid).stock == 1
        assert second.get(Product, pid).stock == 1

        _adjust_stock(first, [(pid, 1)], -1)
        first.commit()
        with pytest.raises(ValueError, match="Only 0 left in stock for 'Drill'"):
            _adjust_stock(second, [(pid, 1)], -1)
        second.rollback()
    finally:
        first.close()
        second.close()
    assert _stock(app, pid) == 0


def test_restock_adds_to_current_value(app):
    pid = _add_product(app, stock=3)
    with session_scope(app) as s:
        p = s.get(Product, pid)
        _adjust_stock(s, [(pid, 2), (None, 4)], +1)
        assert p.stock == 5
    assert _stock(app, pid) == 5


def test_orders_are_private_to_their_customer(app, client):
    pid = _add_product(app)
    _signup(client)
    _add_to_cart(client, pid)
    r = _place_order(client)
    order_id = r.headers["Location"].rsplit("/", 1)[-1]

    client.get("/account/logout")
    _signup(client, email="other@example.com")
    assert client.get(f"/orders/{order_id}").status_code == 404
    assert client.get(f"/checkout/success/{order_id}").status_code == 404


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def _order_via_checkout(app, client, qty=2, stock=10):
    pid = _add_product(app, stock=stock)
    _signup(client)
    _add_to_cart(client, pid, qty)
    r = _place_order(client)
    order_id = r.headers["Location"].rsplit("/", 1)[-1]
    client.get("/account/logout")
    _staff_login(client)
    return pid, order_id


def test_admin_order_list_and_detail(app, client):
    _, order_id = _order_via_checkout(app, client)
    r = client.get("/admin/orders")
    assert r.status_code == 200
    assert order_id.encode() in r.data

    r = client.get("/admin/orders?status=shipped")
    assert order_id.encode() not in r.data

    r = client.get(f"/admin/orders/{order_id}")
    assert b"jane@example.com" in r.data
    assert client.get("/admin/orders/ORD-NOPE").status_code == 404


def test_admin_confirm_payment(app, client):
    _, order_id = _order_via_checkout(app, client)
    r = client.post(f"/admin/orders/{order_id}/confirm-payment", data={"csrf_token": CSRF}, follow_redirects=True)
    assert b"Payment confirmed." in r.data
    with session_scope(app) as s:
        o = s.get(Order, order_id)
        assert o.payment_status == "paid"
        assert o.status == "confirmed"

    r = client.post(f"/admin/orders/{order_id}/confirm", data={"csrf_token": CSRF}, follow_redirects=True)
    assert b"Only pending orders can be confirmed." in r.data


def test_admin_confirm_order_redirects_to_list(app, client):
    _, order_id = _order_via_checkout(app, client)
    r = client.post(f"/admin/orders/{order_id}/confirm", data={"csrf_token": CSRF, "next": "list"})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/orders")
    with session_scope(app) as s:
        o = s.get(Order, order_id)
        assert o.status == "confirmed"
        assert o.payment_status == "pending"


def test_cancel_restores_stock_and_reopen_reserves(app, client):
    pid, order_id = _order_via_checkout(app, client, qty=2, stock=10)
    assert _stock(app, pid) == 8

    r = client.post(
        f"/admin/orders/{order_id}/status",
        data={"csrf_token": CSRF, "status": "cancelled", "reason": "Customer request"},
        follow_redirects=True,
    )
    assert b"Order status set to cancelled." in r.data
    assert _stock(app, pid) == 10
    with session_scope(app) as s:
        c = s.query(Customer).one()
        assert c.total_spent == Decimal("0.00")
        assert c.orders_count == 1
        ev = s.query(AuditEvent).filter(AuditEvent.action == "order.status").one()
        assert ev.reason == "Customer request"

    r = client.post(f"/admin/orders/{order_id}/confirm-payment", data={"csrf_token": CSRF}, follow_redirects=True)
    assert b"Cannot confirm payment on a cancelled order." in r.data

    client.post(f"/admin/orders/{order_id}/status", data={"csrf_token": CSRF, "status": "processing"})
    assert _stock(app, pid) == 8


def test_invalid_status_is_rejected(app, client):
    _, order_id = _order_via_checkout(app, client)
    r = client.post(f"/admin/orders/{order_id}/status", data={"csrf_token": CSRF, "status": "lost"}, follow_redirects=True)
    assert b"Invalid status." in r.data
    r = client.post(
        f"/admin/orders/{order_id}/payment-status", data={"csrf_token": CSRF, "payment_status": "refunded"}, follow_redirects=True
    )
    assert b"Payment status set to refunded." in r.data


def test_admin_can_view_payment_proof(app, client):
    _, order_id = _order_via_checkout(app, client)
    r = client.get(f"/admin/orders/{order_id}/proof")
    assert r.status_code == 200
    assert r.data == PNG
    assert r.mimetype == "image/png"


def test_reopening_fails_when_stock_is_gone(app):
    with session_scope(app) as s:
        p = Product(name="Saw", price=Decimal("10"), stock=0)
        s.add(p)
        s.flush()
        o = Order(
            id="ORD-X",
            customer_name="Guest",
            customer_email="guest@example.com",
            subtotal=Decimal("10"),
            shipping=Decimal("15"),
            tax=Decimal("0.80"),
            total=Decimal("25.80"),
            status="cancelled",
            payment_status="pending",
            payment_category="bank",
            payment_method="Bank Transfer",
            ship_state="TX",
            ship_country="US",
        )
        o.items = [OrderItem(product_id=p.id, name="Saw", price=Decimal("10"), quantity=1)]
        s.add(o)
        user = s.query(User).one()
        s.flush()
        with pytest.raises(ValueError, match="Only 0 left in stock"):
            update_order_status(s, o, "pending", user)


def test_order_and_dashboard_stats(app, client):
    _, order_id = _order_via_checkout(app, client)
    client.post(f"/admin/orders/{order_id}/confirm-payment", data={"csrf_token": CSRF})
    with session_scope(app) as s:
        stats = order_stats(s)
        assert stats["total"] == 1
        assert stats["confirmed"] == 1
        assert stats["pending"] == 0
        assert stats["revenue"] == Decimal("129.60")
        assert stats["by_status"]["confirmed"] == 1

        dash = dashboard_stats(s)
        assert dash["total_orders"] == 1
        assert dash["total_customers"] == 1
        assert dash["total_products"] == 1
        assert dash["total_revenue"] == Decimal("129.60")
        assert [o.id for o in dash["recent_orders"]] == [order_id]

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"$129.60" in r.data
