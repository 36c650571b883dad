from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for

from app.storefront.audit import record_event
from app.storefront.db import db_session
from app.storefront.models import User
from app.storefront.modules.customers.models import Customer
from app.storefront.security import verify_password

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def check_rate_limit(key: str) -> bool:
    """True when `key` has used up its login attempts for the window."""
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[key] = [t for t in _login_attempts[key] if t > cutoff]
    return len(_login_attempts[key]) >= _LOGIN_RATE_LIMIT


def record_attempt(key: str) -> None:
    _login_attempts[key].append(datetime.utcnow())


def clear_attempts(key: str) -> None:
    _login_attempts.pop(key, None)


def safe_next(nxt: str | None) -> str | None:
    nxt = (nxt or "").strip()
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


def load_current_user() -> None:
    """
    Loads g.current_user (staff) and g.current_customer (shopper) from the signed session.
    Also assigns a per-request request_id for audit/log correlation.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.current_customer = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    user_id = session.get("user_id")
    customer_id = session.get("customer_id")
    if not user_id and not customer_id:
        return

    s = db_session()
    if user_id:
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
        else:
            g.current_user = user
    if customer_id:
        customer = s.get(Customer, int(customer_id))
        if not customer or customer.status != "active":
            session.pop("customer_id", None)
        else:
            g.current_customer = customer


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt)


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    rate_key = f"staff:{request.remote_addr or 'unknown'}"

    if check_rate_limit(rate_key):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("auth.login_get"))

    record_attempt(rate_key)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not verify_password(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.info("Staff login failed (email=%s request_id=%s)", email, g.request_id)
        flash("Invalid credentials.", "danger")
        return redirect(url_for("auth.login_get"))

    session["user_id"] = user.id
    clear_attempts(rate_key)
    user.last_login_at = datetime.utcnow()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return redirect(safe_next(nxt) or url_for("admin.index"))


@bp.get("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return redirect(url_for("auth.login_get"))
