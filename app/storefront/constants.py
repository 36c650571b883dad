"""
Central constants for the storefront application.
"""
from __future__ import annotations

from decimal import Decimal

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
CUSTOMER_STATUSES = ("active", "inactive", "banned")

# Statuses counted as "still in flight" on the customer dashboard.
OPEN_ORDER_STATUSES = ("pending", "processing", "shipped")

PAYMENT_CATEGORIES = ("crypto", "bank", "p2p", "square")

UNCATEGORIZED = "Uncategorized"

# Pricing defaults (overridable through config).
FREE_SHIPPING_THRESHOLD = Decimal("100")  # strictly above this ships free
FLAT_SHIPPING_RATE = Decimal("15")
TAX_RATE = Decimal("0.08")

# (label, min inclusive, max exclusive); None means unbounded.
PRICE_RANGES: tuple[tuple[str, Decimal, Decimal | None], ...] = (
    ("Under $100", Decimal("0"), Decimal("100")),
    ("$100 - $200", Decimal("100"), Decimal("200")),
    ("$200 - $300", Decimal("200"), Decimal("300")),
    ("Over $300", Decimal("300"), None),
)

PAYMENT_PROOF_CONTENT_TYPES = frozenset({"image/png", "image/jpeg", "image/gif", "image/webp"})

# Staff permissions; "admin" gets everything except staff account management.
PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("admin.view", "Admin: view dashboard"),
    ("admin.edit", "Admin: manage staff accounts"),
    ("orders.view", "Orders: view"),
    ("orders.edit", "Orders: update status and payment"),
    ("customers.view", "Customers: view"),
    ("customers.edit", "Customers: create, edit, delete"),
    ("catalog.view", "Catalog: view"),
    ("catalog.edit", "Catalog: manage products and categories"),
    ("payments.edit", "Payments: configure payment methods"),
)

ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "super_admin": tuple(k for k, _ in PERMISSIONS),
    "admin": tuple(k for k, _ in PERMISSIONS if k != "admin.edit"),
}

ROLE_NAMES = {
    "super_admin": "Super Administrator",
    "admin": "Administrator",
}
