import pytest
from werkzeug.security import generate_password_hash

from app.storefront import create_app
from app.storefront.auth import _login_attempts
from app.storefront.db import session_scope
from app.storefront.models import AuditEvent, Base, Permission, Role, User


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

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        p = Permission(key="admin.view", name="Admin: view dashboard")
        r = Role(key="admin", name="Administrator")
        r.permissions.append(p)
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        nobody = User(email="clerk@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        s.add_all([p, r, u, nobody])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_ok(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_storefront_home_renders_without_data(client):
    r = client.get("/")
    assert r.status_code == 200
    assert b"ToolCraft" in r.data


def test_unknown_page_is_404(client):
    r = client.get("/products/999")
    assert r.status_code == 404
    assert b"Not found" in r.data


def test_login_and_admin_access(client):
    # Anonymous goes to the staff login
    r = client.get("/admin/")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302

    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Dashboard" in r.data


def test_login_records_audit_events(app, client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"})
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    with session_scope(app) as s:
        actions = [e.action for e in s.query(AuditEvent).order_by(AuditEvent.id).all()]
        user = s.query(User).filter(User.email == "admin@example.com").one()
        assert user.last_login_at is not None
    assert actions == ["auth.login_failed", "auth.login"]


def test_staff_without_permission_gets_403(client):
    client.post("/auth/login", data={"email": "clerk@example.com", "password": "pw"})
    r = client.get("/admin/")
    assert r.status_code == 403
    assert b"admin.view" in r.data


def test_staff_login_is_rate_limited(client):
    for _ in range(5):
        client.post("/auth/login", data={"email": "admin@example.com", "password": "wrong"})
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    assert b"Too many login attempts" in r.data


def test_post_without_csrf_token_is_rejected(client):
    r = client.post("/cart/add", data={"product_id": "1"})
    assert r.status_code == 400
    assert b"CSRF token missing or invalid." in r.data


def test_logout_clears_staff_session(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.get("/auth/logout")
    assert r.status_code == 302
    r = client.get("/admin/")
    assert r.status_code == 302
