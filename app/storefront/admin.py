from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.storefront.db import db_session
from app.storefront.models import User
from app.storefront.modules.orders.service import dashboard_stats
from app.storefront.rbac import require_permission
from app.storefront.staff import (
    AuditFilter,
    create_staff_account,
    list_audit_events,
    list_roles,
    list_staff,
    parse_day,
    reset_staff_password,
    update_staff_account,
    validate_staff_payload,
)

bp = Blueprint("admin", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _get_account_or_404(user_id: int) -> User:
    user = db_session().get(User, user_id)
    if not user:
        abort(404)
    return user


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    return render_template("admin/index.html", stats=dashboard_stats(s))


@bp.get("/login")
def login_redirect():
    return redirect(url_for("auth.login_get"))


@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """Latest audit events, filterable by action, actor email and date range (YYYY-MM-DD)."""
    s = db_session()
    raw_from = (request.args.get("date_from") or "").strip()
    raw_to = (request.args.get("date_to") or "").strip()
    f = AuditFilter(
        action=(request.args.get("action") or "").strip(),
        actor_email=(request.args.get("actor_email") or "").strip(),
        date_from=parse_day(raw_from),
        date_to=parse_day(raw_to),
    )
    if raw_from and not f.date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if raw_to and not f.date_to:
        flash("date_to must be YYYY-MM-DD", "danger")
    return render_template(
        "admin/audit/list.html",
        events=list_audit_events(s, f),
        action=f.action,
        actor_email=f.actor_email,
        date_from=raw_from,
        date_to=raw_to,
    )


# ---------------------------------------------------------------------------
# Staff accounts (super_admin only)
# ---------------------------------------------------------------------------


@bp.get("/accounts")
@require_permission("admin.edit")
def accounts_list():
    return render_template("admin/accounts/list.html", users=list_staff(db_session()))


@bp.get("/accounts/new")
@require_permission("admin.edit")
def accounts_new_get():
    return render_template("admin/accounts/new.html", roles=list_roles(db_session()))


@bp.post("/accounts/new")
@require_permission("admin.edit")
def accounts_new_post():
    s = db_session()
    payload = {k: request.form.get(k) for k in ("email", "name", "password", "password_confirm")}
    errs = validate_staff_payload(s, payload)
    if errs:
        for e in errs:
            flash(e, "danger")
        return redirect(url_for("admin.accounts_new_get"))
    user = create_staff_account(s, payload, request.form.getlist("role_ids"), _current_user())
    s.commit()
    flash(f"Account created for {user.email}.", "success")
    return redirect(url_for("admin.accounts_list"))


@bp.get("/accounts/<int:user_id>")
@require_permission("admin.edit")
def accounts_detail(user_id: int):
    account = _get_account_or_404(user_id)
    return render_template("admin/accounts/detail.html", account=account, roles=list_roles(db_session()))


@bp.post("/accounts/<int:user_id>/update")
@require_permission("admin.edit")
def accounts_update(user_id: int):
    s = db_session()
    user = _get_account_or_404(user_id)
    try:
        update_staff_account(
            s,
            user,
            is_active=request.form.get("is_active") == "1",
            role_ids=request.form.getlist("role_ids"),
            actor=_current_user(),
        )
        s.commit()
        flash(f"Account updated for {user.email}.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("admin.accounts_detail", user_id=user_id))


@bp.post("/accounts/<int:user_id>/reset-password")
@require_permission("admin.edit")
def accounts_reset_password(user_id: int):
    s = db_session()
    user = _get_account_or_404(user_id)
    try:
        reset_staff_password(
            s,
            user,
            request.form.get("password") or "",
            request.form.get("password_confirm") or "",
            _current_user(),
        )
        s.commit()
        flash(f"Password reset for {user.email}.", "success")
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("admin.accounts_detail", user_id=user_id))
