from flask import Blueprint, flash, g, redirect, render_template, request, url_for

from app.storefront.db import db_session
from app.storefront.modules.payments.service import (
    merged_payment_settings,
    save_payment_settings,
    validate_payment_settings_payload,
)
from app.storefront.rbac import require_permission

bp = Blueprint("payments", __name__)


@bp.get("/payments")
@require_permission("payments.edit")
def settings_get():
    s = db_session()
    return render_template("admin/payments/settings.html", settings=merged_payment_settings(s))


@bp.post("/payments")
@require_permission("payments.edit")
def settings_post():
    s = db_session()
    payload = request.form.to_dict()
    errs = validate_payment_settings_payload(payload)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("payments.settings_get"))
    save_payment_settings(s, payload, g.current_user)
    s.commit()
    flash("Payment settings saved.", "success")
    return redirect(url_for("payments.settings_get"))
