"""initial storefront schema

Revision ID: a1c3e5f7b9d0
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=False),
        nullable=nullable,
        server_default=None if nullable else sa.func.current_timestamp(),
    )


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in inspect(op.get_bind()).get_indexes(table))
        except sa.exc.NoSuchTableError:
            return False

    def _ensure_indexes(table: str, indexes) -> None:
        for idx_name, cols in indexes:
            if not _has_index(table, idx_name):
                op.create_index(idx_name, table, cols)

    # --- staff / RBAC / audit ---
    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("name", sa.String(128), nullable=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _ts("last_login_at", nullable=True),
            _ts("created_at"),
            sa.UniqueConstraint("email", name="uq_users_email"),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("key", sa.String(64), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            _ts("created_at"),
            sa.UniqueConstraint("key", name="uq_roles_key"),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("key", sa.String(128), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            _ts("created_at"),
            sa.UniqueConstraint("key", name="uq_permissions_key"),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("user_id", "role_id"),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("permission_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("role_id", "permission_id"),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            _ts("created_at"),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )

    # --- catalog ---
    if "categories" not in existing_tables:
        op.create_table(
            "categories",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("slug", sa.String(160), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("image", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.UniqueConstraint("name", name="uq_categories_name"),
            sa.UniqueConstraint("slug", name="uq_categories_slug"),
        )

    if "products" not in existing_tables:
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("sku", sa.String(64), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("original_price", sa.Numeric(10, 2), nullable=True),
            sa.Column("badge", sa.String(64), nullable=True),
            sa.Column("rating", sa.Numeric(2, 1), nullable=False, server_default="0"),
            sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_new", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("category_id", sa.Integer(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="RESTRICT"),
            sa.UniqueConstraint("sku", name="uq_products_sku"),
        )
    _ensure_indexes(
        "products",
        (
            ("idx_products_category_id", ["category_id"]),
            ("idx_products_name", ["name"]),
            ("idx_products_is_featured", ["is_featured"]),
            ("idx_products_is_new", ["is_new"]),
        ),
    )

    if "product_images" not in existing_tables:
        op.create_table(
            "product_images",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("product_id", sa.Integer(), nullable=False),
            sa.Column("url", sa.Text(), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        )
    _ensure_indexes("product_images", (("idx_product_images_product_id", ["product_id"]),))

    # --- customers ---
    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("first_name", sa.String(128), nullable=False),
            sa.Column("last_name", sa.String(128), nullable=False),
            sa.Column("phone", sa.String(64), nullable=True),
            sa.Column("avatar", sa.Text(), nullable=True),
            sa.Column("status", sa.String(16), nullable=False, server_default="active"),
            sa.Column("total_spent", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("orders_count", sa.Integer(), nullable=False, server_default="0"),
            _ts("last_order_at", nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.UniqueConstraint("email", name="uq_customers_email"),
            sa.CheckConstraint("status in ('active','inactive','banned')", name="ck_customers_status"),
        )
    _ensure_indexes(
        "customers",
        (
            ("idx_customers_status", ["status"]),
            ("idx_customers_last_name", ["last_name"]),
        ),
    )

    if "customer_addresses" not in existing_tables:
        op.create_table(
            "customer_addresses",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=False),
            sa.Column("label", sa.String(64), nullable=False, server_default="Home"),
            sa.Column("street", sa.Text(), nullable=True),
            sa.Column("city", sa.String(128), nullable=True),
            sa.Column("state", sa.String(128), nullable=False),
            sa.Column("zip", sa.String(32), nullable=True),
            sa.Column("country", sa.String(128), nullable=False),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
        )
    _ensure_indexes("customer_addresses", (("idx_customer_addresses_customer_id", ["customer_id"]),))

    if "favorites" not in existing_tables:
        op.create_table(
            "favorites",
            sa.Column("customer_id", sa.Integer(), nullable=False),
            sa.Column("product_id", sa.Integer(), nullable=False),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("customer_id", "product_id"),
        )

    # --- orders ---
    if "orders" not in existing_tables:
        op.create_table(
            "orders",
            sa.Column("id", sa.String(32), primary_key=True, nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=True),
            sa.Column("customer_name", sa.String(256), nullable=False),
            sa.Column("customer_email", sa.String(320), nullable=False),
            sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
            sa.Column("shipping", sa.Numeric(12, 2), nullable=False),
            sa.Column("tax", sa.Numeric(12, 2), nullable=False),
            sa.Column("total", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
            sa.Column("payment_status", sa.String(16), nullable=False, server_default="pending"),
            sa.Column("payment_category", sa.String(16), nullable=True),
            sa.Column("payment_method", sa.String(128), nullable=False),
            sa.Column("payment_proof_key", sa.Text(), nullable=True),
            sa.Column("payment_proof_content_type", sa.String(128), nullable=True),
            sa.Column("ship_street", sa.Text(), nullable=True),
            sa.Column("ship_city", sa.String(128), nullable=True),
            sa.Column("ship_state", sa.String(128), nullable=False),
            sa.Column("ship_zip", sa.String(32), nullable=True),
            sa.Column("ship_country", sa.String(128), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="SET NULL"),
            sa.CheckConstraint(
                "status in ('pending','confirmed','processing','shipped','delivered','cancelled')",
                name="ck_orders_status",
            ),
            sa.CheckConstraint("payment_status in ('pending','paid','failed','refunded')", name="ck_orders_payment_status"),
        )
    _ensure_indexes(
        "orders",
        (
            ("idx_orders_customer_id", ["customer_id"]),
            ("idx_orders_status", ["status"]),
            ("idx_orders_created_at", ["created_at"]),
        ),
    )

    if "order_items" not in existing_tables:
        op.create_table(
            "order_items",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_id", sa.String(32), nullable=False),
            sa.Column("product_id", sa.Integer(), nullable=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("image", sa.Text(), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="SET NULL"),
            sa.CheckConstraint("quantity >= 1", name="ck_order_items_quantity"),
        )
    _ensure_indexes("order_items", (("idx_order_items_order_id", ["order_id"]),))

    # --- payment settings ---
    if "payment_methods" not in existing_tables:
        op.create_table(
            "payment_methods",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("kind", sa.String(16), nullable=False),
            sa.Column("code", sa.String(32), nullable=False),
            sa.Column("handle", sa.Text(), nullable=True),
            sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("updated_at"),
            sa.UniqueConstraint("kind", "code", name="uq_payment_methods_kind_code"),
            sa.CheckConstraint("kind in ('crypto','p2p','square')", name="ck_payment_methods_kind"),
        )

    if "bank_details" not in existing_tables:
        op.create_table(
            "bank_details",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("bank_name", sa.String(255), nullable=True),
            sa.Column("account_name", sa.String(255), nullable=True),
            sa.Column("account_number", sa.String(64), nullable=True),
            sa.Column("routing_number", sa.String(64), nullable=True),
            sa.Column("swift_code", sa.String(32), nullable=True),
            sa.Column("iban", sa.String(64), nullable=True),
            sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("updated_at"),
        )


def downgrade() -> None:
    for table in (
        "bank_details",
        "payment_methods",
        "order_items",
        "orders",
        "favorites",
        "customer_addresses",
        "customers",
        "product_images",
        "products",
        "categories",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
