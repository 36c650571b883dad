from flask import Blueprint, abort, current_app, flash, g, jsonify, redirect, render_template, request, url_for

from app.storefront.db import db_session
from app.storefront.models import User
from app.storefront.modules.catalog.media import MediaUploadError, upload_images
from app.storefront.modules.catalog.models import Category, Product
from app.storefront.modules.catalog.service import (
    create_category,
    create_product,
    delete_category,
    delete_product,
    list_categories,
    list_products,
    set_primary_image,
    update_category,
    update_product,
    validate_category_payload,
    validate_product_payload,
)
from app.storefront.rbac import require_permission
from app.storefront.utils import parse_int

bp = Blueprint("catalog", __name__)

_PRODUCT_FIELDS = (
    "name",
    "description",
    "sku",
    "price",
    "original_price",
    "badge",
    "rating",
    "review_count",
    "stock",
    "category_id",
    "is_featured",
    "is_new",
    "images",
)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _product_payload() -> dict:
    payload = {k: request.form.get(k) for k in _PRODUCT_FIELDS}
    images = (payload.get("images") or "").splitlines()
    files = [f for f in request.files.getlist("image_files") if f and f.filename]
    if files:
        images.extend(upload_images(current_app.config, files))
    payload["images"] = images
    return payload


def _category_payload() -> dict:
    return {k: request.form.get(k) for k in ("name", "slug", "description", "image")}


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


@bp.get("/products")
@require_permission("catalog.view")
def products_list():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    category_id = parse_int(request.args.get("category_id"))
    products = list_products(s, q=q, category_ids=[category_id] if category_id is not None else None)
    return render_template(
        "admin/catalog/products.html",
        products=products,
        categories=list_categories(s),
        q=q,
        category_id=category_id,
    )


@bp.get("/products/new")
@require_permission("catalog.edit")
def products_new_get():
    s = db_session()
    categories = list_categories(s)
    if not categories:
        flash("Create a category before adding products.", "warning")
    return render_template("admin/catalog/product_form.html", product=None, categories=categories)


@bp.post("/products/new")
@require_permission("catalog.edit")
def products_new_post():
    s = db_session()
    u = _current_user()
    try:
        payload = _product_payload()
    except MediaUploadError as e:
        current_app.logger.warning("Product image upload failed: %s", e)
        flash(f"Image upload failed: {e}", "danger")
        return redirect(url_for("catalog.products_new_get"))

    errs = validate_product_payload(s, payload)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("catalog.products_new_get"))
    try:
        p = create_product(s, payload, u)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("catalog.products_new_get"))
    flash(f"Product '{p.name}' created.", "success")
    return redirect(url_for("catalog.products_list"))


@bp.get("/products/<int:product_id>/edit")
@require_permission("catalog.edit")
def products_edit_get(product_id: int):
    s = db_session()
    p = s.get(Product, product_id)
    if not p:
        abort(404)
    return render_template("admin/catalog/product_form.html", product=p, categories=list_categories(s))


@bp.post("/products/<int:product_id>/edit")
@require_permission("catalog.edit")
def products_edit_post(product_id: int):
    s = db_session()
    u = _current_user()
    p = s.get(Product, product_id)
    if not p:
        abort(404)
    try:
        payload = _product_payload()
    except MediaUploadError as e:
        current_app.logger.warning("Product image upload failed: %s", e)
        flash(f"Image upload failed: {e}", "danger")
        return redirect(url_for("catalog.products_edit_get", product_id=product_id))

    errs = validate_product_payload(s, payload)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("catalog.products_edit_get", product_id=product_id))
    try:
        update_product(s, p, payload, u)
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("catalog.products_edit_get", product_id=product_id))
    flash("Product updated.", "success")
    return redirect(url_for("catalog.products_list"))


@bp.post("/products/<int:product_id>/delete")
@require_permission("catalog.edit")
def products_delete(product_id: int):
    s = db_session()
    p = s.get(Product, product_id)
    if not p:
        abort(404)
    name = p.name
    delete_product(s, p, _current_user())
    s.commit()
    flash(f"Product '{name}' deleted.", "success")
    return redirect(url_for("catalog.products_list"))


@bp.post("/products/<int:product_id>/primary-image")
@require_permission("catalog.edit")
def products_primary_image(product_id: int):
    s = db_session()
    p = s.get(Product, product_id)
    if not p:
        abort(404)
    try:
        set_primary_image(s, p, (request.form.get("url") or "").strip(), _current_user())
        s.commit()
        flash("Primary image updated.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("catalog.products_edit_get", product_id=product_id))


@bp.post("/media/upload")
@require_permission("catalog.edit")
def media_upload():
    """Upload one or more images to the media host; used by the product form."""
    files = [f for f in request.files.getlist("file") if f and f.filename]
    if not files:
        return jsonify({"ok": False, "error": "No file provided."}), 400
    try:
        urls = upload_images(current_app.config, files)
    except MediaUploadError as e:
        current_app.logger.warning("Media upload failed: %s", e)
        return jsonify({"ok": False, "error": str(e)}), 502
    return jsonify({"ok": True, "urls": urls})


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@bp.get("/categories")
@require_permission("catalog.view")
def categories_list():
    s = db_session()
    return render_template("admin/catalog/categories.html", categories=list_categories(s))


@bp.get("/categories/new")
@require_permission("catalog.edit")
def categories_new_get():
    return render_template("admin/catalog/category_form.html", category=None)


@bp.post("/categories/new")
@require_permission("catalog.edit")
def categories_new_post():
    s = db_session()
    payload = _category_payload()
    errs = validate_category_payload(payload)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("catalog.categories_new_get"))
    try:
        c = create_category(s, payload, _current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("catalog.categories_new_get"))
    flash(f"Category '{c.name}' created.", "success")
    return redirect(url_for("catalog.categories_list"))


@bp.get("/categories/<int:category_id>/edit")
@require_permission("catalog.edit")
def categories_edit_get(category_id: int):
    s = db_session()
    c = s.get(Category, category_id)
    if not c:
        abort(404)
    return render_template("admin/catalog/category_form.html", category=c)


@bp.post("/categories/<int:category_id>/edit")
@require_permission("catalog.edit")
def categories_edit_post(category_id: int):
    s = db_session()
    c = s.get(Category, category_id)
    if not c:
        abort(404)
    payload = _category_payload()
    errs = validate_category_payload(payload)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("catalog.categories_edit_get", category_id=category_id))
    try:
        update_category(s, c, payload, _current_user())
        s.commit()
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("catalog.categories_edit_get", category_id=category_id))
    flash("Category updated.", "success")
    return redirect(url_for("catalog.categories_list"))


@bp.post("/categories/<int:category_id>/delete")
@require_permission("catalog.edit")
def categories_delete(category_id: int):
    s = db_session()
    c = s.get(Category, category_id)
    if not c:
        abort(404)
    try:
        delete_category(s, c, _current_user())
        s.commit()
        flash("Category deleted.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("catalog.categories_list"))
