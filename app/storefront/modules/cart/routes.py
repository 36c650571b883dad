from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, session, url_for

from app.storefront.auth import safe_next
from app.storefront.db import db_session
from app.storefront.modules.cart.service import (
    add_item,
    cart_lines,
    clear_cart,
    remove_item,
    update_quantity,
)
from app.storefront.modules.catalog.models import Product
from app.storefront.modules.orders.service import totals_from_config
from app.storefront.utils import parse_int

bp = Blueprint("cart", __name__)


def _back():
    return redirect(safe_next(request.form.get("next")) or url_for("cart.view"))


@bp.get("")
def view():
    s = db_session()
    lines = cart_lines(s, session)
    totals = totals_from_config(((line.price, line.quantity) for line in lines), current_app.config)
    return render_template("cart/cart.html", lines=lines, totals=totals)


@bp.post("/add")
def add():
    s = db_session()
    product_id = parse_int(request.form.get("product_id"))
    p = s.get(Product, product_id) if product_id is not None else None
    if p is None:
        abort(404)
    if not p.in_stock:
        flash(f"'{p.name}' is out of stock.", "danger")
        return _back()
    add_item(session, p.id, parse_int(request.form.get("quantity"), 1) or 1)
    flash(f"Added '{p.name}' to your cart.", "success")
    return _back()


@bp.post("/update")
def update():
    product_id = parse_int(request.form.get("product_id"))
    quantity = parse_int(request.form.get("quantity"), 1) or 1
    if product_id is None:
        abort(400)
    try:
        update_quantity(session, product_id, quantity)
    except ValueError as e:
        flash(str(e), "danger")
    return _back()


@bp.post("/remove")
def remove():
    product_id = parse_int(request.form.get("product_id"))
    if product_id is None:
        abort(400)
    remove_item(session, product_id)
    flash("Item removed from your cart.", "success")
    return _back()


@bp.post("/clear")
def clear():
    clear_cart(session)
    flash("Cart cleared.", "success")
    return _back()
