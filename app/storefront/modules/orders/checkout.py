from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError

from app.storefront.db import db_session
from app.storefront.modules.cart.service import cart_lines, clear_cart
from app.storefront.modules.orders.service import (
    PaymentProof,
    create_order,
    get_order_for_customer,
    totals_from_config,
    validate_checkout_payload,
)
from app.storefront.modules.payments.service import enabled_payment_methods
from app.storefront.rbac import require_customer
from app.storefront.storage import StorageError, storage_from_config

bp = Blueprint("checkout", __name__)

_CHECKOUT_FIELDS = ("street", "city", "state", "zip", "country", "notes", "payment_category", "payment_code")


def _proof_from_request() -> PaymentProof | None:
    f = request.files.get("payment_proof")
    if not f or not f.filename:
        return None
    return PaymentProof(filename=f.filename, data=f.read(), content_type=f.mimetype)


@bp.get("/checkout")
@require_customer
def checkout_get():
    s = db_session()
    lines = cart_lines(s, session)
    if not lines:
        flash("Your cart is empty.", "warning")
        return redirect(url_for("cart.view"))
    totals = totals_from_config(((line.price, line.quantity) for line in lines), current_app.config)
    return render_template(
        "checkout/checkout.html",
        lines=lines,
        totals=totals,
        methods=enabled_payment_methods(s),
        address=g.current_customer.default_address,
    )


@bp.post("/checkout")
@require_customer
def checkout_post():
    s = db_session()
    customer = g.current_customer
    lines = cart_lines(s, session)
    if not lines:
        flash("Your cart is empty.", "warning")
        return redirect(url_for("cart.view"))

    payload = {k: request.form.get(k) for k in _CHECKOUT_FIELDS}
    proof = _proof_from_request()
    errs = validate_checkout_payload(payload, proof, max_proof_bytes=int(current_app.config["PAYMENT_PROOF_MAX_BYTES"]))
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("checkout.checkout_get"))

    storage = storage_from_config(current_app.config)
    order = None
    try:
        order = create_order(
            s,
            customer,
            lines,
            payload,
            proof,
            storage=storage,
            config=current_app.config,
        )
        s.commit()
    except SQLAlchemyError:
        proof_key = order.payment_proof_key if order is not None else None
        s.rollback()
        current_app.logger.exception("Order could not be saved (request_id=%s)", g.request_id)
        if proof_key:
            storage.delete(proof_key)
        flash("We couldn't place your order. Please try again.", "danger")
        return redirect(url_for("checkout.checkout_get"))
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("checkout.checkout_get"))
    except StorageError:
        s.rollback()
        current_app.logger.exception("Payment proof upload failed (request_id=%s)", g.request_id)
        flash("We couldn't save your payment screenshot. Please try again.", "danger")
        return redirect(url_for("checkout.checkout_get"))

    clear_cart(session)
    current_app.logger.info("Order %s placed by customer_id=%s total=%s", order.id, customer.id, order.total)
    return redirect(url_for("checkout.success", order_id=order.id))


@bp.get("/checkout/success/<order_id>")
@require_customer
def success(order_id: str):
    s = db_session()
    order = get_order_for_customer(s, g.current_customer, order_id)
    if not order:
        abort(404)
    return render_template("checkout/success.html", order=order)


@bp.get("/orders/<order_id>")
@require_customer
def order_detail(order_id: str):
    s = db_session()
    order = get_order_for_customer(s, g.current_customer, order_id)
    if not order:
        abort(404)
    return render_template("orders/detail.html", order=order)
