from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, flash, g, redirect, request, url_for

from app.storefront.models import User


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def _next_path() -> str:
    nxt = request.full_path or request.path
    # full_path always carries a '?', even without a query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return nxt


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Staff-only views. Anonymous → staff login; signed in without the key → 403."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                return redirect(url_for("auth.login_get", next=_next_path()))
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_customer(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Shopper-only views; redirects to the storefront login."""

    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        customer = getattr(g, "current_customer", None)
        if customer is None:
            flash("Please log in to continue.", "warning")
            return redirect(url_for("account.login_get", next=_next_path()))
        return fn(*args, **kwargs)

    return wrapped
