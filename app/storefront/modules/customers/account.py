from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, session, url_for

from app.storefront.auth import check_rate_limit, clear_attempts, record_attempt, safe_next
from app.storefront.db import db_session
from app.storefront.modules.catalog.models import Product
from app.storefront.modules.customers.service import (
    AuthError,
    add_address,
    authenticate_customer,
    change_password,
    customer_stats,
    list_favorites,
    register_customer,
    remove_address,
    toggle_favorite,
    update_profile,
    validate_customer_payload,
)
from app.storefront.modules.orders.service import list_customer_orders
from app.storefront.rbac import require_customer

bp = Blueprint("account", __name__)


@bp.get("/login")
def login_get():
    if getattr(g, "current_customer", None):
        return redirect(url_for("account.dashboard"))
    return render_template("account/login.html", next=(request.args.get("next") or "").strip())


@bp.post("/login")
def login_post():
    email = request.form.get("email") or ""
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    rate_key = f"customer:{request.remote_addr or 'unknown'}"

    if check_rate_limit(rate_key):
        flash("Too many login attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for("account.login_get", next=nxt or None))
    record_attempt(rate_key)

    s = db_session()
    try:
        customer = authenticate_customer(s, email, password)
    except AuthError as e:
        current_app.logger.info("Customer login failed (request_id=%s)", g.request_id)
        flash(str(e), "danger")
        return redirect(url_for("account.login_get", next=nxt or None))

    clear_attempts(rate_key)
    session["customer_id"] = customer.id
    flash(f"Welcome back, {customer.first_name}!", "success")
    return redirect(safe_next(nxt) or url_for("account.dashboard"))


@bp.get("/signup")
def signup_get():
    return render_template("account/signup.html", next=(request.args.get("next") or "").strip())


@bp.post("/signup")
def signup_post():
    s = db_session()
    payload = {k: request.form.get(k) for k in ("first_name", "last_name", "email", "phone", "password", "password_confirm")}
    nxt = (request.form.get("next") or "").strip()
    errs = validate_customer_payload(payload, require_password=True)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("account.signup_get", next=nxt or None))
    try:
        customer = register_customer(s, payload)
        s.commit()
    except AuthError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("account.signup_get", next=nxt or None))

    current_app.logger.info("Customer registered (customer_id=%s)", customer.id)
    session["customer_id"] = customer.id
    flash("Account created. Welcome!", "success")
    return redirect(safe_next(nxt) or url_for("account.dashboard"))


@bp.get("/logout")
def logout():
    session.pop("customer_id", None)
    flash("You have been logged out.", "success")
    return redirect(url_for("routes.index"))


@bp.get("")
@require_customer
def dashboard():
    s = db_session()
    customer = g.current_customer
    orders = list_customer_orders(s, customer)
    return render_template(
        "account/dashboard.html",
        customer=customer,
        stats=customer_stats(s, customer),
        recent_orders=orders[:5],
    )


@bp.get("/orders")
@require_customer
def orders():
    s = db_session()
    return render_template("account/orders.html", orders=list_customer_orders(s, g.current_customer))


@bp.get("/profile")
@require_customer
def profile_get():
    return render_template("account/profile.html", customer=g.current_customer)


@bp.post("/profile")
@require_customer
def profile_post():
    s = db_session()
    payload = {k: request.form.get(k) for k in ("first_name", "last_name", "phone", "avatar") if k in request.form}
    try:
        update_profile(s, g.current_customer, payload)
        s.commit()
        flash("Profile updated.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("account.profile_get"))


@bp.post("/password")
@require_customer
def password_post():
    s = db_session()
    try:
        change_password(
            s,
            g.current_customer,
            request.form.get("current_password") or "",
            request.form.get("password") or "",
            request.form.get("password_confirm") or "",
        )
        s.commit()
        flash("Password changed.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("account.profile_get"))


@bp.post("/addresses")
@require_customer
def addresses_add():
    s = db_session()
    payload = {k: request.form.get(k) for k in ("label", "street", "city", "state", "zip", "country", "is_default")}
    try:
        add_address(s, g.current_customer, payload)
        s.commit()
        flash("Address saved.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("account.profile_get"))


@bp.post("/addresses/<int:address_id>/delete")
@require_customer
def addresses_delete(address_id: int):
    s = db_session()
    try:
        remove_address(s, g.current_customer, address_id)
        s.commit()
        flash("Address removed.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("account.profile_get"))


@bp.get("/favorites")
@require_customer
def favorites():
    s = db_session()
    return render_template("account/favorites.html", products=list_favorites(s, g.current_customer))


@bp.post("/favorites/<int:product_id>")
@require_customer
def favorites_toggle(product_id: int):
    s = db_session()
    if s.get(Product, product_id) is None:
        abort(404)
    added = toggle_favorite(s, g.current_customer, product_id)
    s.commit()
    flash("Added to favorites." if added else "Removed from favorites.", "success")
    return redirect(safe_next(request.form.get("next")) or url_for("account.favorites"))
