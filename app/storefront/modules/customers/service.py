from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.storefront.audit import record_event
from app.storefront.constants import CUSTOMER_STATUSES, OPEN_ORDER_STATUSES
from app.storefront.modules.customers.models import Customer, CustomerAddress, Favorite
from app.storefront.modules.orders.models import Order
from app.storefront.security import hash_password, password_problems, verify_password
from app.storefront.utils import is_valid_email, to_money

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.storefront.models import User


class AuthError(ValueError):
    """Login/signup rejection with a user-facing message."""


@dataclass(frozen=True)
class CustomerStats:
    total_orders: int
    total_spent: Decimal
    pending_orders: int
    this_month_spent: Decimal


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def get_customer_by_email(s: "Session", email: str) -> Customer | None:
    return s.query(Customer).filter(Customer.email == normalize_email(email)).one_or_none()


def validate_customer_payload(payload: dict, *, require_password: bool = False) -> list[str]:
    errors = []
    if not (payload.get("first_name") or "").strip():
        errors.append("First name is required.")
    if not (payload.get("last_name") or "").strip():
        errors.append("Last name is required.")
    email = normalize_email(payload.get("email"))
    if not email:
        errors.append("Email is required.")
    elif not is_valid_email(email):
        errors.append("Invalid email format.")
    status = (payload.get("status") or "").strip()
    if status and status not in CUSTOMER_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(CUSTOMER_STATUSES)}")
    if require_password:
        errors.extend(password_problems(payload.get("password") or "", payload.get("password_confirm")))
    return errors


# ---------------------------------------------------------------------------
# Storefront accounts
# ---------------------------------------------------------------------------


def register_customer(s: "Session", payload: dict) -> Customer:
    email = normalize_email(payload.get("email"))
    if get_customer_by_email(s, email) is not None:
        raise AuthError("Email already registered")
    now = datetime.utcnow()
    c = Customer(
        email=email,
        password_hash=hash_password(payload.get("password") or ""),
        first_name=(payload.get("first_name") or "").strip(),
        last_name=(payload.get("last_name") or "").strip(),
        phone=(payload.get("phone") or "").strip() or None,
        status="active",
        total_spent=Decimal("0"),
        orders_count=0,
        created_at=now,
        updated_at=now,
    )
    s.add(c)
    s.flush()
    return c


def authenticate_customer(s: "Session", email: str, password: str) -> Customer:
    c = get_customer_by_email(s, email)
    if c is None or not verify_password(c.password_hash, password):
        raise AuthError("Invalid email or password")
    if c.status != "active":
        raise AuthError("This account is not active. Please contact support.")
    return c


def update_profile(s: "Session", customer: Customer, payload: dict) -> Customer:
    """Only keys present in `payload` are changed; names cannot be blanked."""
    for field in ("first_name", "last_name"):
        if field in payload:
            value = (payload.get(field) or "").strip()
            if not value:
                raise ValueError(f"{field.replace('_', ' ').capitalize()} is required.")
            setattr(customer, field, value)
    for field in ("phone", "avatar"):
        if field in payload:
            setattr(customer, field, (payload.get(field) or "").strip() or None)
    customer.updated_at = datetime.utcnow()
    return customer


def change_password(s: "Session", customer: Customer, current: str, new: str, confirm: str) -> None:
    if not verify_password(customer.password_hash, current):
        raise AuthError("Current password is incorrect.")
    errs = password_problems(new, confirm)
    if errs:
        raise ValueError(errs[0])
    customer.password_hash = hash_password(new)
    customer.updated_at = datetime.utcnow()


def validate_address_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("state") or "").strip():
        errors.append("State is required.")
    if not (payload.get("country") or "").strip():
        errors.append("Country is required.")
    return errors


def add_address(s: "Session", customer: Customer, payload: dict) -> CustomerAddress:
    errs = validate_address_payload(payload)
    if errs:
        raise ValueError("; ".join(errs))
    make_default = str(payload.get("is_default") or "").lower() in ("1", "true", "on") or not customer.addresses
    if make_default:
        for a in customer.addresses:
            a.is_default = False
    addr = CustomerAddress(
        label=(payload.get("label") or "").strip() or "Home",
        street=(payload.get("street") or "").strip() or None,
        city=(payload.get("city") or "").strip() or None,
        state=(payload.get("state") or "").strip(),
        zip=(payload.get("zip") or "").strip() or None,
        country=(payload.get("country") or "").strip(),
        is_default=make_default,
    )
    customer.addresses.append(addr)
    s.flush()
    return addr


def remove_address(s: "Session", customer: Customer, address_id: int) -> None:
    addr = next((a for a in customer.addresses if a.id == address_id), None)
    if addr is None:
        raise ValueError("Address not found.")
    was_default = addr.is_default
    customer.addresses.remove(addr)
    if was_default and customer.addresses:
        customer.addresses[0].is_default = True


def favorite_product_ids(s: "Session", customer: Customer) -> set[int]:
    rows = s.query(Favorite.product_id).filter(Favorite.customer_id == customer.id).all()
    return {r[0] for r in rows}


def toggle_favorite(s: "Session", customer: Customer, product_id: int) -> bool:
    """Returns True when the product is now a favorite."""
    fav = s.get(Favorite, (customer.id, product_id))
    if fav is not None:
        s.delete(fav)
        return False
    s.add(Favorite(customer_id=customer.id, product_id=product_id, created_at=datetime.utcnow()))
    return True


def list_favorites(s: "Session", customer: Customer) -> list:
    favs = (
        s.query(Favorite)
        .filter(Favorite.customer_id == customer.id)
        .order_by(Favorite.created_at.desc())
        .all()
    )
    return [f.product for f in favs if f.product is not None]


def customer_stats(s: "Session", customer: Customer, *, now: datetime | None = None) -> CustomerStats:
    now = now or datetime.utcnow()
    start_of_month = datetime(now.year, now.month, 1)
    orders = s.query(Order).filter(Order.customer_id == customer.id).all()
    live = [o for o in orders if o.status != "cancelled"]
    return CustomerStats(
        total_orders=len(orders),
        total_spent=to_money(sum((o.total for o in live), Decimal("0"))),
        pending_orders=sum(1 for o in orders if o.status in OPEN_ORDER_STATUSES),
        this_month_spent=to_money(sum((o.total for o in live if o.created_at >= start_of_month), Decimal("0"))),
    )


def refresh_customer_totals(s: "Session", customer: Customer) -> Customer:
    """Recompute total_spent / orders_count / last_order_at from the orders table."""
    s.flush()
    count, last = (
        s.query(func.count(Order.id), func.max(Order.created_at))
        .filter(Order.customer_id == customer.id)
        .one()
    )
    spent = (
        s.query(func.coalesce(func.sum(Order.total), 0))
        .filter(Order.customer_id == customer.id, Order.status != "cancelled")
        .scalar()
    )
    customer.total_spent = to_money(spent or 0)
    customer.orders_count = int(count or 0)
    customer.last_order_at = last
    return customer


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def list_customers(s: "Session", *, q: str | None = None, status: str | None = None) -> list[Customer]:
    query = s.query(Customer)
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                Customer.first_name.ilike(like),
                Customer.last_name.ilike(like),
                Customer.email.ilike(like),
                Customer.phone.ilike(like),
                (Customer.first_name + " " + Customer.last_name).ilike(like),
            )
        )
    if status and status in CUSTOMER_STATUSES:
        query = query.filter(Customer.status == status)
    return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def customers_summary(s: "Session") -> dict:
    total = s.query(func.count(Customer.id)).scalar() or 0
    active = s.query(func.count(Customer.id)).filter(Customer.status == "active").scalar() or 0
    revenue = s.query(func.coalesce(func.sum(Customer.total_spent), 0)).scalar() or 0
    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "total_revenue": to_money(revenue),
    }


def admin_create_customer(s: "Session", payload: dict, user: "User") -> Customer:
    email = normalize_email(payload.get("email"))
    if get_customer_by_email(s, email) is not None:
        raise ValueError("A customer with this email already exists.")
    # Admin-created accounts get an unusable random password until the shopper resets it.
    password = payload.get("password") or secrets.token_urlsafe(24)
    now = datetime.utcnow()
    c = Customer(
        email=email,
        password_hash=hash_password(password),
        first_name=(payload.get("first_name") or "").strip(),
        last_name=(payload.get("last_name") or "").strip(),
        phone=(payload.get("phone") or "").strip() or None,
        status=(payload.get("status") or "active").strip(),
        total_spent=Decimal("0"),
        orders_count=0,
        created_at=now,
        updated_at=now,
    )
    s.add(c)
    s.flush()
    record_event(
        s,
        actor=user,
        action="customer.create",
        entity_type="Customer",
        entity_id=str(c.id),
        metadata={"email": c.email, "status": c.status},
    )
    return c


def admin_update_customer(s: "Session", customer: Customer, payload: dict, user: "User") -> Customer:
    email = normalize_email(payload.get("email"))
    if email != customer.email:
        clash = get_customer_by_email(s, email)
        if clash is not None and clash.id != customer.id:
            raise ValueError("A customer with this email already exists.")
    changes = {}
    for field, new in (
        ("first_name", (payload.get("first_name") or "").strip()),
        ("last_name", (payload.get("last_name") or "").strip()),
        ("email", email),
        ("phone", (payload.get("phone") or "").strip() or None),
        ("status", (payload.get("status") or customer.status).strip()),
    ):
        old = getattr(customer, field)
        if old != new:
            changes[field] = {"old": old, "new": new}
            setattr(customer, field, new)
    customer.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="customer.update",
        entity_type="Customer",
        entity_id=str(customer.id),
        metadata={"changes": changes},
    )
    return customer


def set_customer_status(s: "Session", customer: Customer, status: str, user: "User") -> Customer:
    if status not in CUSTOMER_STATUSES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(CUSTOMER_STATUSES)}")
    old = customer.status
    customer.status = status
    customer.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="customer.status",
        entity_type="Customer",
        entity_id=str(customer.id),
        metadata={"old": old, "new": status},
    )
    return customer


def delete_customer(s: "Session", customer: Customer, user: "User") -> None:
    """Orders keep their name/email snapshot; only the link is cleared."""
    record_event(
        s,
        actor=user,
        action="customer.delete",
        entity_type="Customer",
        entity_id=str(customer.id),
        metadata={"email": customer.email},
    )
    s.query(Order).filter(Order.customer_id == customer.id).update(
        {Order.customer_id: None}, synchronize_session=False
    )
    s.delete(customer)
