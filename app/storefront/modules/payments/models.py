from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.storefront.models import Base


class PaymentMethod(Base):
    """
    Saved state for one catalogued method. Display identity (name, symbol, logo)
    comes from the built-in catalogue; this row only holds what admins edit.
    """

    __tablename__ = "payment_methods"
    __table_args__ = (
        UniqueConstraint("kind", "code", name="uq_payment_methods_kind_code"),
        CheckConstraint("kind in ('crypto','p2p','square')", name="ck_payment_methods_kind"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    code: Mapped[str] = mapped_column(String(32), nullable=False)  # e.g. "btc", "venmo"
    handle: Mapped[str | None] = mapped_column(Text, nullable=True)  # wallet address or username
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class BankDetails(Base):
    """Single row (id=1) holding bank transfer instructions."""

    __tablename__ = "bank_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    routing_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    swift_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    iban: Mapped[str | None] = mapped_column(String(64), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
