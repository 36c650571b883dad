from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.storefront.constants import CUSTOMER_STATUSES
from app.storefront.db import db_session
from app.storefront.models import User
from app.storefront.modules.customers.models import Customer
from app.storefront.modules.customers.service import (
    admin_create_customer,
    admin_update_customer,
    customer_stats,
    customers_summary,
    delete_customer,
    list_customers,
    set_customer_status,
    validate_customer_payload,
)
from app.storefront.modules.orders.service import list_customer_orders
from app.storefront.rbac import require_permission

bp = Blueprint("customers", __name__)

_FIELDS = ("first_name", "last_name", "email", "phone", "status")


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/customers")
@require_permission("customers.view")
def customers_list():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    status = (request.args.get("status") or "").strip()
    return render_template(
        "admin/customers/list.html",
        customers=list_customers(s, q=q, status=status or None),
        summary=customers_summary(s),
        q=q,
        status=status,
        statuses=CUSTOMER_STATUSES,
    )


@bp.get("/customers/new")
@require_permission("customers.edit")
def customers_new_get():
    return render_template("admin/customers/form.html", customer=None, statuses=CUSTOMER_STATUSES)


@bp.post("/customers/new")
@require_permission("customers.edit")
def customers_new_post():
    s = db_session()
    payload = {k: request.form.get(k) for k in _FIELDS}
    errs = validate_customer_payload(payload)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("customers.customers_new_get"))
    try:
        c = admin_create_customer(s, payload, _current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("customers.customers_new_get"))
    flash(f"Customer {c.full_name} added.", "success")
    return redirect(url_for("customers.customer_detail", customer_id=c.id))


@bp.get("/customers/<int:customer_id>")
@require_permission("customers.view")
def customer_detail(customer_id: int):
    s = db_session()
    c = s.get(Customer, customer_id)
    if not c:
        abort(404)
    return render_template(
        "admin/customers/detail.html",
        customer=c,
        stats=customer_stats(s, c),
        orders=list_customer_orders(s, c),
        statuses=CUSTOMER_STATUSES,
    )


@bp.get("/customers/<int:customer_id>/edit")
@require_permission("customers.edit")
def customers_edit_get(customer_id: int):
    s = db_session()
    c = s.get(Customer, customer_id)
    if not c:
        abort(404)
    return render_template("admin/customers/form.html", customer=c, statuses=CUSTOMER_STATUSES)


@bp.post("/customers/<int:customer_id>/edit")
@require_permission("customers.edit")
def customers_edit_post(customer_id: int):
    s = db_session()
    c = s.get(Customer, customer_id)
    if not c:
        abort(404)
    payload = {k: request.form.get(k) for k in _FIELDS}
    errs = validate_customer_payload(payload)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("customers.customers_edit_get", customer_id=customer_id))
    try:
        admin_update_customer(s, c, payload, _current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("customers.customers_edit_get", customer_id=customer_id))
    flash("Customer updated.", "success")
    return redirect(url_for("customers.customer_detail", customer_id=customer_id))


@bp.post("/customers/<int:customer_id>/status")
@require_permission("customers.edit")
def customers_status(customer_id: int):
    s = db_session()
    c = s.get(Customer, customer_id)
    if not c:
        abort(404)
    try:
        set_customer_status(s, c, (request.form.get("status") or "").strip(), _current_user())
        s.commit()
        flash(f"Customer status set to {c.status}.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("customers.customer_detail", customer_id=customer_id))


@bp.post("/customers/<int:customer_id>/delete")
@require_permission("customers.edit")
def customers_delete(customer_id: int):
    s = db_session()
    c = s.get(Customer, customer_id)
    if not c:
        abort(404)
    name = c.full_name
    delete_customer(s, c, _current_user())
    s.commit()
    flash(f"Customer {name} deleted.", "success")
    return redirect(url_for("customers.customers_list"))
