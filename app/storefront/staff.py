"""
Staff (admin dashboard) accounts and the audit trail query.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from app.storefront.audit import record_event
from app.storefront.models import AuditEvent, Role, User
from app.storefront.security import hash_password, password_problems
from app.storefront.utils import is_valid_email, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

STAFF_MIN_PASSWORD = 8
AUDIT_PAGE_SIZE = 200


@dataclass(frozen=True)
class AuditFilter:
    action: str = ""
    actor_email: str = ""
    date_from: date | None = None
    date_to: date | None = None  # inclusive


def parse_day(raw: str | None) -> date | None:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def list_audit_events(s: "Session", f: AuditFilter) -> list[AuditEvent]:
    q = s.query(AuditEvent)
    if f.action:
        q = q.filter(AuditEvent.action.like(f"%{f.action}%"))
    if f.actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{f.actor_email.lower()}%"))
    if f.date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(f.date_from, time.min))
    if f.date_to:
        q = q.filter(AuditEvent.created_at < datetime.combine(f.date_to + timedelta(days=1), time.min))
    return q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(AUDIT_PAGE_SIZE).all()


def list_staff(s: "Session") -> list[User]:
    return s.query(User).order_by(User.email.asc()).all()


def list_roles(s: "Session") -> list[Role]:
    return s.query(Role).order_by(Role.name.asc()).all()


def _roles_by_id(s: "Session", raw_ids: list[str]) -> list[Role]:
    ids = [i for i in (parse_int(r) for r in raw_ids) if i is not None]
    if not ids:
        return []
    return s.query(Role).filter(Role.id.in_(ids)).all()


def validate_staff_payload(s: "Session", payload: dict) -> list[str]:
    errors = []
    email = (payload.get("email") or "").strip().lower()
    if not email:
        errors.append("Email is required.")
    elif not is_valid_email(email):
        errors.append("Invalid email format.")
    elif s.query(User.id).filter(User.email == email).first() is not None:
        errors.append("An account with this email already exists.")
    errors.extend(
        password_problems(
            payload.get("password") or "",
            payload.get("password_confirm") or "",
            min_length=STAFF_MIN_PASSWORD,
        )
    )
    return errors


def create_staff_account(s: "Session", payload: dict, role_ids: list[str], actor: User) -> User:
    user = User(
        email=(payload.get("email") or "").strip().lower(),
        name=(payload.get("name") or "").strip() or None,
        password_hash=hash_password(payload.get("password") or ""),
        is_active=True,
    )
    user.roles = _roles_by_id(s, role_ids)
    s.add(user)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email, "roles": user.role_keys},
    )
    return user


def update_staff_account(s: "Session", user: User, *, is_active: bool, role_ids: list[str], actor: User) -> User:
    """Replaces the account's roles and active flag. Staff cannot edit themselves here."""
    if user.id == actor.id:
        raise ValueError("You cannot modify your own account from this page.")
    before = {"is_active": user.is_active, "roles": user.role_keys}
    user.is_active = is_active
    user.roles = _roles_by_id(s, role_ids)
    record_event(
        s,
        actor=actor,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": {"is_active": user.is_active, "roles": user.role_keys}},
    )
    return user


def reset_staff_password(s: "Session", user: User, password: str, confirm: str, actor: User) -> None:
    errs = password_problems(password, confirm, min_length=STAFF_MIN_PASSWORD)
    if errs:
        raise ValueError(errs[0])
    user.password_hash = hash_password(password)
    record_event(
        s,
        actor=actor,
        action="user.password_reset",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"target_email": user.email},
    )
