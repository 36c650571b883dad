from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.storefront.models import Base


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "status in ('pending','confirmed','processing','shipped','delivered','cancelled')",
            name="ck_orders_status",
        ),
        CheckConstraint("payment_status in ('pending','paid','failed','refunded')", name="ck_orders_payment_status"),
        Index("idx_orders_customer_id", "customer_id"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)  # "ORD-<base36 ms timestamp>"
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(256), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(320), nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    payment_category: Mapped[str | None] = mapped_column(String(16), nullable=True)  # crypto|bank|p2p|square
    payment_method: Mapped[str] = mapped_column(String(128), nullable=False)  # display label
    payment_proof_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_proof_content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)

    ship_street: Mapped[str | None] = mapped_column(Text, nullable=True)
    ship_city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    ship_state: Mapped[str] = mapped_column(String(128), nullable=False)
    ship_zip: Mapped[str | None] = mapped_column(String(32), nullable=True)
    ship_country: Mapped[str] = mapped_column(String(128), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def shipping_address(self) -> str:
        parts = [self.ship_street, self.ship_city, self.ship_state, self.ship_zip, self.ship_country]
        return ", ".join(p for p in parts if p)


class OrderItem(Base):
    """Line snapshot: name/image/price are copied so later catalog edits don't rewrite history."""

    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity"),
        Index("idx_order_items_order_id", "order_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[int | None] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[Order] = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity
