from flask import Blueprint, abort, g, render_template, request

from app.storefront.constants import PRICE_RANGES
from app.storefront.db import db_session
from app.storefront.modules.catalog.service import (
    featured_products,
    get_category_by_slug,
    get_product,
    list_categories,
    list_products,
    new_arrivals,
    products_by_category,
    related_products,
)
from app.storefront.modules.customers.service import favorite_product_ids

bp = Blueprint("routes", __name__)


def _favorite_ids(s) -> set[int]:
    customer = getattr(g, "current_customer", None)
    return favorite_product_ids(s, customer) if customer else set()


@bp.get("/")
def index():
    s = db_session()
    return render_template(
        "public/index.html",
        featured=featured_products(s),
        arrivals=new_arrivals(s),
        categories=list_categories(s),
        favorite_ids=_favorite_ids(s),
    )


@bp.get("/products")
def products():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    slugs = [x for x in request.args.getlist("category") if x]
    price = [x for x in request.args.getlist("price") if x]
    categories = list_categories(s)
    selected_ids = [c.id for c in categories if c.slug in slugs]
    results = list_products(s, q=q, category_ids=selected_ids or None, price_ranges=price)
    return render_template(
        "public/products.html",
        products=results,
        categories=categories,
        price_ranges=[label for label, _, _ in PRICE_RANGES],
        q=q,
        selected_slugs=slugs,
        selected_prices=price,
        favorite_ids=_favorite_ids(s),
    )


@bp.get("/products/<int:product_id>")
def product_detail(product_id: int):
    s = db_session()
    p = get_product(s, product_id)
    if not p:
        abort(404)
    return render_template(
        "public/product.html",
        product=p,
        related=related_products(s, p),
        favorite_ids=_favorite_ids(s),
    )


@bp.get("/categories/<slug>")
def category(slug: str):
    s = db_session()
    c = get_category_by_slug(s, slug)
    if not c:
        abort(404)
    return render_template(
        "public/category.html",
        category=c,
        products=products_by_category(s, c),
        favorite_ids=_favorite_ids(s),
    )


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness probe. No DB access.
    """
    return "ok", 200
