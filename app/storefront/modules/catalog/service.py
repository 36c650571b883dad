from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.storefront.audit import record_event
from app.storefront.constants import PRICE_RANGES
from app.storefront.modules.catalog.models import Category, Product, ProductImage
from app.storefront.utils import parse_decimal, parse_int, slugify

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.storefront.models import User

# Numeric(10, 2)
MAX_PRICE = Decimal("99999999.99")


def _truthy(v) -> bool:
    return str(v or "").strip().lower() in ("1", "true", "on", "yes")


def _image_list(payload: dict) -> list[str]:
    raw = payload.get("images") or []
    if isinstance(raw, str):
        raw = raw.splitlines()
    out: list[str] = []
    for url in raw:
        url = (url or "").strip()
        if url and url not in out:
            out.append(url)
    return out


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def validate_category_payload(payload: dict) -> list[str]:
    errors = []
    name = (payload.get("name") or "").strip()
    if not name:
        errors.append("Category name is required.")
    elif not slugify(payload.get("slug") or name):
        errors.append("Category name must contain letters or numbers.")
    return errors


def _ensure_unique_category(s: "Session", name: str, slug: str, *, exclude_id: int | None = None) -> None:
    q = s.query(Category).filter(or_(func.lower(Category.name) == name.lower(), Category.slug == slug))
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first() is not None:
        raise ValueError(f"A category named '{name}' already exists.")


def create_category(s: "Session", payload: dict, user: "User") -> Category:
    name = (payload.get("name") or "").strip()
    slug = slugify(payload.get("slug") or name)
    _ensure_unique_category(s, name, slug)
    now = datetime.utcnow()
    c = Category(
        name=name,
        slug=slug,
        description=(payload.get("description") or "").strip() or None,
        image=(payload.get("image") or "").strip() or None,
        created_at=now,
        updated_at=now,
    )
    s.add(c)
    s.flush()
    record_event(s, actor=user, action="category.create", entity_type="Category", entity_id=str(c.id), metadata={"name": name})
    return c


def update_category(s: "Session", category: Category, payload: dict, user: "User") -> Category:
    """Products reference the row, so a rename shows up on every product at once."""
    changes = {}
    name = (payload.get("name") or "").strip()
    slug = slugify(payload.get("slug") or name)
    _ensure_unique_category(s, name, slug, exclude_id=category.id)
    for field, new in (
        ("name", name),
        ("slug", slug),
        ("description", (payload.get("description") or "").strip() or None),
        ("image", (payload.get("image") or "").strip() or None),
    ):
        old = getattr(category, field)
        if old != new:
            changes[field] = {"old": old, "new": new}
            setattr(category, field, new)
    category.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="category.update",
        entity_type="Category",
        entity_id=str(category.id),
        metadata={"changes": changes},
    )
    return category


def delete_category(s: "Session", category: Category, user: "User") -> None:
    count = s.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar() or 0
    if count:
        raise ValueError(
            f"Cannot delete category with {count} product(s). Move or delete products first."
        )
    record_event(
        s,
        actor=user,
        action="category.delete",
        entity_type="Category",
        entity_id=str(category.id),
        metadata={"name": category.name},
    )
    s.delete(category)


def list_categories(s: "Session") -> list[Category]:
    return s.query(Category).order_by(Category.name.asc()).all()


def get_category_by_slug(s: "Session", slug: str) -> Category | None:
    return s.query(Category).filter(Category.slug == slug).one_or_none()


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


def validate_product_payload(s: "Session", payload: dict) -> list[str]:
    """Validate product create/update payload. Returns list of errors."""
    errors = []
    if not (payload.get("name") or "").strip():
        errors.append("Product name is required.")

    raw_price = (payload.get("price") or "").strip()
    price = parse_decimal(raw_price)
    if not raw_price:
        errors.append("Price is required.")
    elif price is None:
        errors.append("Price must be a number.")
    elif price < 0:
        errors.append("Price cannot be negative.")
    elif price > MAX_PRICE:
        errors.append(f"Price cannot exceed {MAX_PRICE}.")

    raw_original = (payload.get("original_price") or "").strip()
    if raw_original:
        original = parse_decimal(raw_original)
        if original is None or original < 0:
            errors.append("Original price must be a positive number.")
        elif original > MAX_PRICE:
            errors.append(f"Original price cannot exceed {MAX_PRICE}.")

    category_id = parse_int(payload.get("category_id"))
    if category_id is None:
        errors.append("Please select a category.")
    elif s.get(Category, category_id) is None:
        errors.append("Selected category no longer exists.")

    raw_stock = (payload.get("stock") or "").strip()
    stock = parse_int(raw_stock, 0)
    if (raw_stock and parse_int(raw_stock) is None) or stock < 0:
        errors.append("Stock must be a whole number of zero or more.")

    raw_rating = (payload.get("rating") or "").strip()
    if raw_rating:
        rating = parse_decimal(raw_rating)
        if rating is None or not (Decimal("0") <= rating <= Decimal("5")):
            errors.append("Rating must be between 0 and 5.")

    if not _image_list(payload):
        errors.append("Please add at least one image.")
    return errors


def _apply_product_payload(s: "Session", p: Product, payload: dict) -> dict:
    sku = (payload.get("sku") or "").strip() or None
    if sku:
        clash = s.query(Product.id).filter(Product.sku == sku)
        if p.id is not None:
            clash = clash.filter(Product.id != p.id)
        if clash.first() is not None:
            raise ValueError(f"SKU '{sku}' is already used by another product.")

    changes = {}
    values = {
        "name": (payload.get("name") or "").strip(),
        "description": (payload.get("description") or "").strip() or None,
        "sku": sku,
        "price": parse_decimal(payload.get("price")),
        "original_price": parse_decimal(payload.get("original_price")),
        "badge": (payload.get("badge") or "").strip() or None,
        "rating": parse_decimal(payload.get("rating")) or Decimal("0"),
        "review_count": parse_int(payload.get("review_count"), 0) or 0,
        "stock": parse_int(payload.get("stock"), 0) or 0,
        "is_featured": _truthy(payload.get("is_featured")),
        "is_new": _truthy(payload.get("is_new")),
        "category_id": parse_int(payload.get("category_id")),
    }
    for field, new in values.items():
        old = getattr(p, field)
        if old != new:
            changes[field] = {"old": str(old) if old is not None else None, "new": str(new) if new is not None else None}
            setattr(p, field, new)

    urls = _image_list(payload)
    if urls != p.image_urls:
        changes["images"] = {"old": p.image_urls, "new": urls}
        p.images = [ProductImage(url=url, position=i) for i, url in enumerate(urls)]

    if "category_id" in changes:
        # Keep the relationship in step with the FK for this unit of work.
        p.category = s.get(Category, p.category_id) if p.category_id else None
    return changes


def create_product(s: "Session", payload: dict, user: "User") -> Product:
    now = datetime.utcnow()
    p = Product(created_at=now, updated_at=now)
    _apply_product_payload(s, p, payload)
    s.add(p)
    s.flush()
    record_event(
        s,
        actor=user,
        action="product.create",
        entity_type="Product",
        entity_id=str(p.id),
        metadata={"name": p.name, "category": p.category_name, "price": str(p.price)},
    )
    return p


def update_product(s: "Session", product: Product, payload: dict, user: "User") -> Product:
    changes = _apply_product_payload(s, product, payload)
    product.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="product.update",
        entity_type="Product",
        entity_id=str(product.id),
        metadata={"name": product.name, "changes": changes},
    )
    return product


def delete_product(s: "Session", product: Product, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="product.delete",
        entity_type="Product",
        entity_id=str(product.id),
        metadata={"name": product.name},
    )
    s.delete(product)


def set_primary_image(s: "Session", product: Product, url: str, user: "User") -> Product:
    urls = product.image_urls
    if url not in urls:
        raise ValueError("Image is not attached to this product.")
    reordered = [url] + [u for u in urls if u != url]
    for img in product.images:
        img.position = reordered.index(img.url)
    product.images.sort(key=lambda i: i.position)
    product.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="product.primary_image",
        entity_type="Product",
        entity_id=str(product.id),
        metadata={"url": url},
    )
    return product


def get_product(s: "Session", product_id: int) -> Product | None:
    return s.get(Product, product_id)


def price_range_bounds(label: str) -> tuple[Decimal, Decimal | None] | None:
    for name, lo, hi in PRICE_RANGES:
        if name == label:
            return lo, hi
    return None


def list_products(
    s: "Session",
    *,
    q: str | None = None,
    category_ids: list[int] | None = None,
    price_ranges: list[str] | None = None,
    in_stock_only: bool = False,
) -> list[Product]:
    query = s.query(Product).outerjoin(Category, Product.category_id == Category.id)
    q = (q or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                Product.name.ilike(like),
                Product.description.ilike(like),
                Product.sku.ilike(like),
                Category.name.ilike(like),
            )
        )
    if category_ids:
        query = query.filter(Product.category_id.in_(category_ids))
    clauses = []
    for label in price_ranges or []:
        bounds = price_range_bounds(label)
        if bounds is None:
            continue
        lo, hi = bounds
        clauses.append(Product.price >= lo if hi is None else (Product.price >= lo) & (Product.price < hi))
    if clauses:
        query = query.filter(or_(*clauses))
    if in_stock_only:
        query = query.filter(Product.stock > 0)
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def featured_products(s: "Session", limit: int = 8) -> list[Product]:
    return (
        s.query(Product)
        .filter(Product.is_featured.is_(True))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )


def new_arrivals(s: "Session", limit: int = 8) -> list[Product]:
    return (
        s.query(Product)
        .filter(Product.is_new.is_(True))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )


def products_by_category(s: "Session", category: Category) -> list[Product]:
    return list_products(s, category_ids=[category.id])


def related_products(s: "Session", product: Product, limit: int = 4) -> list[Product]:
    if product.category_id is None:
        return []
    return (
        s.query(Product)
        .filter(Product.category_id == product.category_id, Product.id != product.id)
        .order_by(Product.is_featured.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )
