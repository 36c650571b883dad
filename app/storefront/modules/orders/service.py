from __future__ import annotations

import hashlib
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session
from werkzeug.utils import secure_filename

from app.storefront.audit import record_event
from app.storefront.constants import (
    FLAT_SHIPPING_RATE,
    FREE_SHIPPING_THRESHOLD,
    ORDER_STATUSES,
    PAYMENT_CATEGORIES,
    PAYMENT_PROOF_CONTENT_TYPES,
    PAYMENT_STATUSES,
    TAX_RATE,
)
from app.storefront.modules.catalog.models import Product
from app.storefront.modules.customers.models import Customer
from app.storefront.modules.customers.service import refresh_customer_totals
from app.storefront.modules.orders.models import Order, OrderItem
from app.storefront.modules.payments.service import resolve_payment_choice
from app.storefront.storage import Storage
from app.storefront.utils import base36, to_money

if TYPE_CHECKING:
    from app.storefront.models import User
    from app.storefront.modules.cart.service import CartLine


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class PaymentProof:
    filename: str
    data: bytes
    content_type: str | None


def compute_totals(
    lines: Iterable[tuple[Decimal, int]],
    *,
    free_shipping_threshold: Decimal = FREE_SHIPPING_THRESHOLD,
    flat_shipping_rate: Decimal = FLAT_SHIPPING_RATE,
    tax_rate: Decimal = TAX_RATE,
) -> OrderTotals:
    """
    subtotal = sum(price * qty); shipping is free strictly above the threshold;
    tax = rate * subtotal; everything rounded to cents.
    """
    subtotal = to_money(sum((Decimal(str(price)) * int(qty) for price, qty in lines), Decimal("0")))
    shipping = Decimal("0.00") if subtotal > free_shipping_threshold else to_money(flat_shipping_rate)
    tax = to_money(subtotal * tax_rate)
    return OrderTotals(subtotal=subtotal, shipping=shipping, tax=tax, total=to_money(subtotal + shipping + tax))


def totals_from_config(lines: Iterable[tuple[Decimal, int]], config: dict) -> OrderTotals:
    return compute_totals(
        lines,
        free_shipping_threshold=Decimal(str(config.get("FREE_SHIPPING_THRESHOLD", FREE_SHIPPING_THRESHOLD))),
        flat_shipping_rate=Decimal(str(config.get("FLAT_SHIPPING_RATE", FLAT_SHIPPING_RATE))),
        tax_rate=Decimal(str(config.get("TAX_RATE", TAX_RATE))),
    )


def generate_order_id(now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"ORD-{base36(now_ms)}"


def _unused_order_id(s: "Session") -> str:
    now_ms = int(time.time() * 1000)
    while True:
        oid = generate_order_id(now_ms)
        if s.get(Order, oid) is None:
            return oid
        now_ms += 1


def validate_checkout_payload(payload: dict, proof: PaymentProof | None, *, max_proof_bytes: int) -> list[str]:
    errors = []
    if not (payload.get("state") or "").strip():
        errors.append("State is required.")
    if not (payload.get("country") or "").strip():
        errors.append("Country is required.")

    category = (payload.get("payment_category") or "").strip()
    if category not in PAYMENT_CATEGORIES:
        errors.append("Please select a payment method.")
    elif category != "bank" and not (payload.get("payment_code") or "").strip():
        errors.append("Please choose which payment option you used.")

    if proof is None or not proof.data:
        errors.append("Please upload a screenshot of your payment.")
    else:
        if (proof.content_type or "").lower() not in PAYMENT_PROOF_CONTENT_TYPES:
            errors.append("Payment screenshot must be an image (PNG, JPEG, GIF or WebP).")
        if len(proof.data) > max_proof_bytes:
            errors.append(f"Payment screenshot must be under {max_proof_bytes // (1024 * 1024)}MB.")
    return errors


def build_payment_proof_key(order_id: str, filename: str, data: bytes, upload_date: date | None = None) -> str:
    upload_date = upload_date or date.today()
    safe = secure_filename(filename) or "proof.bin"
    digest = hashlib.sha256(data).hexdigest()[:12]
    return f"payment-proofs/{upload_date:%Y/%m}/{order_id}/{digest}-{safe}"


def _adjust_stock(s: "Session", items: Iterable[tuple[int | None, int]], sign: int) -> None:
    """
    sign=-1 reserves stock (fails if short), sign=+1 puts it back.

    The availability check lives in the UPDATE's WHERE clause, one statement per row.
    """
    for product_id, qty in items:
        if product_id is None:
            continue
        stmt = update(Product).where(Product.id == product_id)
        if sign < 0:
            stmt = stmt.where(Product.stock >= qty).values(stock=Product.stock - qty)
        else:
            stmt = stmt.values(stock=Product.stock + qty)
        result = s.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount == 0 and sign < 0:
            row = s.query(Product.name, Product.stock).filter(Product.id == product_id).one_or_none()
            if row is not None:
                raise ValueError(f"Only {row.stock} left in stock for '{row.name}'.")
        loaded = s.identity_map.get(Session.identity_key(Product, product_id))
        if loaded is not None:
            s.expire(loaded, ["stock"])


def create_order(
    s: "Session",
    customer: Customer,
    lines: list["CartLine"],
    payload: dict,
    proof: PaymentProof,
    *,
    storage: Storage,
    config: dict,
) -> Order:
    if not lines:
        raise ValueError("Your cart is empty.")
    category = (payload.get("payment_category") or "").strip()
    code = (payload.get("payment_code") or "").strip() or None
    payment_label = resolve_payment_choice(s, category, code)

    _adjust_stock(s, ((line.product.id, line.quantity) for line in lines), -1)
    totals = totals_from_config(((line.price, line.quantity) for line in lines), config)

    order_id = _unused_order_id(s)
    proof_key = build_payment_proof_key(order_id, proof.filename, proof.data)

    now = datetime.utcnow()
    order = Order(
        id=order_id,
        customer_id=customer.id,
        customer_name=customer.full_name,
        customer_email=customer.email,
        subtotal=totals.subtotal,
        shipping=totals.shipping,
        tax=totals.tax,
        total=totals.total,
        status="pending",
        payment_status="pending",
        payment_category=category,
        payment_method=payment_label,
        payment_proof_key=proof_key,
        payment_proof_content_type=proof.content_type,
        ship_street=(payload.get("street") or "").strip() or None,
        ship_city=(payload.get("city") or "").strip() or None,
        ship_state=(payload.get("state") or "").strip(),
        ship_zip=(payload.get("zip") or "").strip() or None,
        ship_country=(payload.get("country") or "").strip(),
        notes=(payload.get("notes") or "").strip() or None,
        created_at=now,
        updated_at=now,
    )
    order.items = [
        OrderItem(
            product_id=line.product.id,
            name=line.product.name,
            image=line.product.image,
            price=line.price,
            quantity=line.quantity,
        )
        for line in lines
    ]
    s.add(order)
    s.flush()
    refresh_customer_totals(s, customer)
    # Written only once the row has flushed; the caller deletes it if the commit fails.
    storage.put_bytes(proof_key, proof.data, content_type=proof.content_type)
    return order


def list_customer_orders(s: "Session", customer: Customer) -> list[Order]:
    return (
        s.query(Order)
        .filter(Order.customer_id == customer.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_order_for_customer(s: "Session", customer: Customer, order_id: str) -> Order | None:
    return s.query(Order).filter(Order.id == order_id, Order.customer_id == customer.id).one_or_none()


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def list_orders(
    s: "Session",
    *,
    q: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
) -> list[Order]:
    query = s.query(Order)
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(Order.id.ilike(like), Order.customer_name.ilike(like), Order.customer_email.ilike(like))
        )
    if status and status in ORDER_STATUSES:
        query = query.filter(Order.status == status)
    if payment_status and payment_status in PAYMENT_STATUSES:
        query = query.filter(Order.payment_status == payment_status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def order_stats(s: "Session") -> dict:
    counts = dict(s.query(Order.status, func.count(Order.id)).group_by(Order.status).all())
    revenue = (
        s.query(func.coalesce(func.sum(Order.total), 0)).filter(Order.payment_status == "paid").scalar() or 0
    )
    return {
        "total": sum(counts.values()),
        "revenue": to_money(revenue),
        "pending": counts.get("pending", 0),
        "confirmed": counts.get("confirmed", 0),
        "processing": counts.get("processing", 0),
        "by_status": {st: counts.get(st, 0) for st in ORDER_STATUSES},
    }


def dashboard_stats(s: "Session", recent: int = 5) -> dict:
    revenue = (
        s.query(func.coalesce(func.sum(Order.total), 0)).filter(Order.status != "cancelled").scalar() or 0
    )
    return {
        "total_revenue": to_money(revenue),
        "total_orders": s.query(func.count(Order.id)).scalar() or 0,
        "total_customers": s.query(func.count(Customer.id)).scalar() or 0,
        "total_products": s.query(func.count(Product.id)).scalar() or 0,
        "recent_orders": s.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(recent).all(),
    }


def _refresh_owner(s: "Session", order: Order) -> None:
    if order.customer_id is not None:
        owner = s.get(Customer, order.customer_id)
        if owner is not None:
            refresh_customer_totals(s, owner)


def update_order_status(s: "Session", order: Order, status: str, user: "User", reason: str | None = None) -> Order:
    if status not in ORDER_STATUSES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")
    old = order.status
    if old == status:
        return order
    items = [(i.product_id, i.quantity) for i in order.items]
    if status == "cancelled":
        _adjust_stock(s, items, +1)
    elif old == "cancelled":
        _adjust_stock(s, items, -1)
    order.status = status
    order.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="order.status",
        entity_type="Order",
        entity_id=order.id,
        reason=reason,
        metadata={"old": old, "new": status},
    )
    _refresh_owner(s, order)
    return order


def update_payment_status(s: "Session", order: Order, payment_status: str, user: "User") -> Order:
    if payment_status not in PAYMENT_STATUSES:
        raise ValueError(f"Invalid payment status. Must be one of: {', '.join(PAYMENT_STATUSES)}")
    old = order.payment_status
    order.payment_status = payment_status
    order.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="order.payment_status",
        entity_type="Order",
        entity_id=order.id,
        metadata={"old": old, "new": payment_status},
    )
    return order


def confirm_order(s: "Session", order: Order, user: "User") -> Order:
    if order.status != "pending":
        raise ValueError("Only pending orders can be confirmed.")
    return update_order_status(s, order, "confirmed", user)


def confirm_payment(s: "Session", order: Order, user: "User") -> Order:
    """Marks the payment proof as verified: paid, and a pending order moves to confirmed."""
    if order.status == "cancelled":
        raise ValueError("Cannot confirm payment on a cancelled order.")
    update_payment_status(s, order, "paid", user)
    if order.status == "pending":
        update_order_status(s, order, "confirmed", user)
    return order
