from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from app.storefront.modules.catalog.models import Product

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

CART_KEY = "cart"
MAX_LINE_QUANTITY = 99


@dataclass(frozen=True)
class CartLine:
    product: Product
    quantity: int

    @property
    def price(self) -> Decimal:
        return self.product.price

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity


def load_cart(store: MutableMapping[str, Any]) -> dict[str, int]:
    raw = store.get(CART_KEY) or {}
    cart: dict[str, int] = {}
    for k, v in raw.items():
        if not str(k).isdigit():
            continue
        try:
            qty = int(v)
        except (TypeError, ValueError):
            continue
        if qty > 0:
            cart[str(k)] = min(qty, MAX_LINE_QUANTITY)
    return cart


def _save(store: MutableMapping[str, Any], cart: dict[str, int]) -> None:
    # Reassign so Flask notices the change to a nested value.
    store[CART_KEY] = dict(cart)


def add_item(store: MutableMapping[str, Any], product_id: int, quantity: int = 1) -> int:
    """Adds `quantity` (default 1) to the line, creating it if needed. Returns the new quantity."""
    cart = load_cart(store)
    key = str(product_id)
    cart[key] = min(cart.get(key, 0) + max(int(quantity), 1), MAX_LINE_QUANTITY)
    _save(store, cart)
    return cart[key]


def remove_item(store: MutableMapping[str, Any], product_id: int) -> None:
    cart = load_cart(store)
    cart.pop(str(product_id), None)
    _save(store, cart)


def update_quantity(store: MutableMapping[str, Any], product_id: int, quantity: int) -> int:
    """Quantities below 1 are clamped to 1; use remove_item to drop a line."""
    cart = load_cart(store)
    key = str(product_id)
    if key not in cart:
        raise ValueError("Item is not in your cart.")
    cart[key] = min(max(int(quantity), 1), MAX_LINE_QUANTITY)
    _save(store, cart)
    return cart[key]


def clear_cart(store: MutableMapping[str, Any]) -> None:
    store.pop(CART_KEY, None)


def cart_count(store: MutableMapping[str, Any]) -> int:
    return sum(load_cart(store).values())


def cart_lines(s: "Session", store: MutableMapping[str, Any]) -> list[CartLine]:
    """Resolve the cart against the catalog, pruning products that no longer exist."""
    cart = load_cart(store)
    if not cart:
        return []
    ids = [int(k) for k in cart]
    products = {p.id: p for p in s.query(Product).filter(Product.id.in_(ids)).all()}
    lines = []
    for key, qty in cart.items():
        p = products.get(int(key))
        if p is not None:
            lines.append(CartLine(product=p, quantity=qty))
    if len(lines) != len(cart):
        _save(store, {str(line.product.id): line.quantity for line in lines})
    return lines
