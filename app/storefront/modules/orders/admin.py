from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, send_file, url_for

from app.storefront.constants import ORDER_STATUSES, PAYMENT_STATUSES
from app.storefront.db import db_session
from app.storefront.models import User
from app.storefront.modules.orders.models import Order
from app.storefront.modules.orders.service import (
    confirm_order,
    confirm_payment,
    list_orders,
    order_stats,
    update_order_status,
    update_payment_status,
)
from app.storefront.rbac import require_permission
from app.storefront.storage import StorageError, storage_from_config

bp = Blueprint("orders", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _get_order_or_404(order_id: str) -> Order:
    order = db_session().get(Order, order_id)
    if not order:
        abort(404)
    return order


@bp.get("/orders")
@require_permission("orders.view")
def orders_list():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    status = (request.args.get("status") or "").strip()
    payment_status = (request.args.get("payment_status") or "").strip()
    orders = list_orders(s, q=q, status=status or None, payment_status=payment_status or None)
    return render_template(
        "admin/orders/list.html",
        orders=orders,
        stats=order_stats(s),
        q=q,
        status=status,
        payment_status=payment_status,
        statuses=ORDER_STATUSES,
        payment_statuses=PAYMENT_STATUSES,
    )


@bp.get("/orders/<order_id>")
@require_permission("orders.view")
def order_detail(order_id: str):
    order = _get_order_or_404(order_id)
    return render_template(
        "admin/orders/detail.html",
        order=order,
        statuses=ORDER_STATUSES,
        payment_statuses=PAYMENT_STATUSES,
    )


def _apply(order_id: str, fn, success: str):
    s = db_session()
    order = _get_order_or_404(order_id)
    try:
        fn(s, order)
        s.commit()
        flash(success, "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    nxt = (request.form.get("next") or "").strip()
    if nxt == "list":
        return redirect(url_for("orders.orders_list"))
    return redirect(url_for("orders.order_detail", order_id=order_id))


@bp.post("/orders/<order_id>/status")
@require_permission("orders.edit")
def order_status(order_id: str):
    status = (request.form.get("status") or "").strip()
    reason = (request.form.get("reason") or "").strip() or None
    return _apply(
        order_id,
        lambda s, o: update_order_status(s, o, status, _current_user(), reason=reason),
        f"Order status set to {status}.",
    )


@bp.post("/orders/<order_id>/payment-status")
@require_permission("orders.edit")
def order_payment_status(order_id: str):
    payment_status = (request.form.get("payment_status") or "").strip()
    return _apply(
        order_id,
        lambda s, o: update_payment_status(s, o, payment_status, _current_user()),
        f"Payment status set to {payment_status}.",
    )


@bp.post("/orders/<order_id>/confirm")
@require_permission("orders.edit")
def order_confirm(order_id: str):
    return _apply(order_id, lambda s, o: confirm_order(s, o, _current_user()), "Order confirmed.")


@bp.post("/orders/<order_id>/confirm-payment")
@require_permission("orders.edit")
def order_confirm_payment(order_id: str):
    return _apply(order_id, lambda s, o: confirm_payment(s, o, _current_user()), "Payment confirmed.")


@bp.get("/orders/<order_id>/proof")
@require_permission("orders.view")
def order_proof(order_id: str):
    order = _get_order_or_404(order_id)
    if not order.payment_proof_key:
        abort(404)
    storage = storage_from_config(current_app.config)
    try:
        fobj = storage.open(order.payment_proof_key)
    except StorageError:
        current_app.logger.warning("Payment proof missing for order %s (key=%s)", order.id, order.payment_proof_key)
        abort(404)
    return send_file(
        fobj,
        mimetype=order.payment_proof_content_type or "application/octet-stream",
        download_name=order.payment_proof_key.rsplit("/", 1)[-1],
    )
