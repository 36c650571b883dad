from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from app.storefront.audit import record_event
from app.storefront.modules.payments.defaults import BANK_FIELDS, CATALOGUE, catalog_entry
from app.storefront.modules.payments.models import BankDetails, PaymentMethod

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.storefront.models import User

BANK_ROW_ID = 1


@dataclass(frozen=True)
class MethodView:
    kind: str
    code: str
    name: str
    image: str
    symbol: str | None
    handle: str
    enabled: bool

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.handle)


@dataclass(frozen=True)
class BankView:
    bank_name: str = ""
    account_name: str = ""
    account_number: str = ""
    routing_number: str = ""
    swift_code: str = ""
    iban: str = ""
    enabled: bool = False

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.account_number)


@dataclass(frozen=True)
class PaymentSettings:
    crypto_wallets: list[MethodView] = field(default_factory=list)
    bank: BankView = field(default_factory=BankView)
    p2p_payments: list[MethodView] = field(default_factory=list)
    square_payments: list[MethodView] = field(default_factory=list)


@dataclass(frozen=True)
class EnabledPaymentMethods:
    crypto_wallets: list[MethodView]
    bank: BankView | None
    p2p_payments: list[MethodView]
    square_payments: list[MethodView]

    @property
    def has_payment_methods(self) -> bool:
        return bool(self.crypto_wallets or self.p2p_payments or self.square_payments or self.bank)

    def categories(self) -> list[str]:
        out = []
        if self.crypto_wallets:
            out.append("crypto")
        if self.bank:
            out.append("bank")
        if self.p2p_payments:
            out.append("p2p")
        if self.square_payments:
            out.append("square")
        return out


def _merge(kind: str, saved: dict[str, PaymentMethod]) -> list[MethodView]:
    views = []
    for entry in CATALOGUE[kind]:
        row = saved.get(entry.code)
        views.append(
            MethodView(
                kind=kind,
                code=entry.code,
                name=entry.name,
                image=entry.image,
                symbol=entry.symbol,
                handle=(row.handle or "") if row else "",
                enabled=bool(row.enabled) if row else False,
            )
        )
    return views


def merged_payment_settings(s: "Session") -> PaymentSettings:
    """Catalogue defaults overlaid with whatever admins have saved."""
    saved: dict[str, dict[str, PaymentMethod]] = {k: {} for k in CATALOGUE}
    for row in s.query(PaymentMethod).all():
        if row.kind in saved:
            saved[row.kind][row.code] = row
    bank_row = s.get(BankDetails, BANK_ROW_ID)
    bank = BankView()
    if bank_row is not None:
        bank = BankView(
            **{f: getattr(bank_row, f) or "" for f in BANK_FIELDS},
            enabled=bool(bank_row.enabled),
        )
    return PaymentSettings(
        crypto_wallets=_merge("crypto", saved["crypto"]),
        bank=bank,
        p2p_payments=_merge("p2p", saved["p2p"]),
        square_payments=_merge("square", saved["square"]),
    )


def enabled_payment_methods(s: "Session") -> EnabledPaymentMethods:
    settings = merged_payment_settings(s)
    return EnabledPaymentMethods(
        crypto_wallets=[w for w in settings.crypto_wallets if w.usable],
        bank=settings.bank if settings.bank.usable else None,
        p2p_payments=[p for p in settings.p2p_payments if p.usable],
        square_payments=[q for q in settings.square_payments if q.usable],
    )


def payment_method_label(category: str, code: str | None = None) -> str:
    if category == "bank":
        return "Bank Transfer"
    entry = catalog_entry(category, code or "")
    if entry is None:
        raise ValueError("Unknown payment method.")
    if category == "crypto":
        return f"Cryptocurrency ({entry.name})"
    if category == "square":
        return f"SQUARE - {entry.name}"
    return entry.name


def resolve_payment_choice(s: "Session", category: str, code: str | None) -> str:
    """Label for a checkout choice; rejects methods that are not currently offered."""
    enabled = enabled_payment_methods(s)
    if category == "bank":
        if enabled.bank is None:
            raise ValueError("Bank transfer is not available.")
        return payment_method_label("bank")
    pool = {
        "crypto": enabled.crypto_wallets,
        "p2p": enabled.p2p_payments,
        "square": enabled.square_payments,
    }.get(category)
    if pool is None:
        raise ValueError("Please select a payment method.")
    if not any(m.code == code for m in pool):
        raise ValueError("Selected payment method is not available.")
    return payment_method_label(category, code)


def validate_payment_settings_payload(payload: dict) -> list[str]:
    errors = []
    for kind, entries in CATALOGUE.items():
        for entry in entries:
            handle = (payload.get(f"{kind}.{entry.code}.handle") or "").strip()
            enabled = bool(payload.get(f"{kind}.{entry.code}.enabled"))
            if enabled and not handle:
                what = "a wallet address" if kind == "crypto" else "a username"
                errors.append(f"{entry.name}: {what} is required to enable it.")
    if payload.get("bank.enabled") and not (payload.get("bank.account_number") or "").strip():
        errors.append("Bank transfer: an account number is required to enable it.")
    return errors


def save_payment_settings(s: "Session", payload: dict, user: "User") -> PaymentSettings:
    """
    Row-level upsert of every catalogued method and the bank row.

    Payload keys: "<kind>.<code>.handle", "<kind>.<code>.enabled", "bank.<field>", "bank.enabled".
    """
    now = datetime.utcnow()
    existing = {(r.kind, r.code): r for r in s.query(PaymentMethod).all()}
    changed: list[str] = []
    for kind, entries in CATALOGUE.items():
        for entry in entries:
            handle = (payload.get(f"{kind}.{entry.code}.handle") or "").strip() or None
            enabled = bool(payload.get(f"{kind}.{entry.code}.enabled")) and bool(handle)
            row = existing.get((kind, entry.code))
            if row is None:
                if handle is None and not enabled:
                    continue
                row = PaymentMethod(kind=kind, code=entry.code)
                s.add(row)
            if row.handle != handle or row.enabled != enabled:
                changed.append(f"{kind}.{entry.code}")
                row.handle = handle
                row.enabled = enabled
                row.updated_at = now

    bank = s.get(BankDetails, BANK_ROW_ID)
    if bank is None:
        bank = BankDetails(id=BANK_ROW_ID)
        s.add(bank)
    for f in BANK_FIELDS:
        new = (payload.get(f"bank.{f}") or "").strip() or None
        if getattr(bank, f) != new:
            changed.append(f"bank.{f}")
            setattr(bank, f, new)
    bank_enabled = bool(payload.get("bank.enabled")) and bool(bank.account_number)
    if bank.enabled != bank_enabled:
        changed.append("bank.enabled")
        bank.enabled = bank_enabled
    bank.updated_at = now

    s.flush()
    record_event(
        s,
        actor=user,
        action="payment_settings.update",
        entity_type="PaymentSettings",
        entity_id="store",
        metadata={"changed": changed},
    )
    return merged_payment_settings(s)
