"""create stores, profiles and store-scoped entity tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
    ]


def upgrade() -> None:
    op.create_table(
        "tenancy_store",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("domain", sa.String(length=63), nullable=False),
        sa.Column("owner_email", sa.String(length=320), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("default_tax_rate", sa.Numeric(9, 4), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("domain"),
    )

    op.create_table(
        "tenancy_profile",
        sa.Column("id", sa.String(length=128), nullable=False),
        sa.Column("store_id", sa.String(length=64), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="store_user"),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tenancy_profile_store_id", "tenancy_profile", ["store_id"], unique=False)

    op.create_table(
        "crm_lead",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("store_id", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=128), nullable=False, server_default="Direct"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="New"),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_lead_store_created", "crm_lead", ["store_id", "created_at"], unique=False)

    op.create_table(
        "crm_customer",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("store_id", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("shipping_address", sa.JSON(), nullable=False),
        sa.Column("billing_different", sa.Boolean(), nullable=False),
        sa.Column("billing_address", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("source_lead_id", sa.String(length=64), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_customer_store_created", "crm_customer", ["store_id", "created_at"], unique=False)
    op.create_index("ix_crm_customer_source_lead_id", "crm_customer", ["source_lead_id"], unique=False)

    op.create_table(
        "crm_claim",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("store_id", sa.String(length=64), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("issue", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Open"),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_claim_store_created", "crm_claim", ["store_id", "created_at"], unique=False)

    op.create_table(
        "sales_order",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("store_id", sa.String(length=64), nullable=False),
        sa.Column("customer_id", sa.String(length=64), nullable=False),
        sa.Column("line_items", sa.JSON(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Quote"),
        sa.Column("tax_rate", sa.Numeric(9, 4), nullable=True),
        sa.Column("sales_tax_override", sa.Numeric(9, 4), nullable=True),
        sa.Column("is_non_taxable", sa.Boolean(), nullable=False),
        sa.Column("expenses", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("tracking_number", sa.String(length=128), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sales_order_store_created", "sales_order", ["store_id", "created_at"], unique=False)
    op.create_index("ix_sales_order_store_status", "sales_order", ["store_id", "status"], unique=False)

    op.create_table(
        "ops_inventory_item",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("store_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sku", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("price", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("track_stock", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="In Stock"),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_ops_inventory_item_store_created", "ops_inventory_item", ["store_id", "created_at"], unique=False
    )

    op.create_table(
        "ops_planner_event",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("store_id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="Measurement"),
        sa.Column("customer_id", sa.String(length=64), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(length=16), nullable=True),
        sa.Column("address", sa.Text(), nullable=False, server_default=""),
        sa.Column("assigned_to", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Scheduled"),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ops_planner_event_store_date", "ops_planner_event", ["store_id", "date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_ops_planner_event_store_date", table_name="ops_planner_event")
    op.drop_table("ops_planner_event")
    op.drop_index("ix_ops_inventory_item_store_created", table_name="ops_inventory_item")
    op.drop_table("ops_inventory_item")
    op.drop_index("ix_sales_order_store_status", table_name="sales_order")
    op.drop_index("ix_sales_order_store_created", table_name="sales_order")
    op.drop_table("sales_order")
    op.drop_index("ix_crm_claim_store_created", table_name="crm_claim")
    op.drop_table("crm_claim")
    op.drop_index("ix_crm_customer_source_lead_id", table_name="crm_customer")
    op.drop_index("ix_crm_customer_store_created", table_name="crm_customer")
    op.drop_table("crm_customer")
    op.drop_index("ix_crm_lead_store_created", table_name="crm_lead")
    op.drop_table("crm_lead")
    op.drop_index("ix_tenancy_profile_store_id", table_name="tenancy_profile")
    op.drop_table("tenancy_profile")
    op.drop_table("tenancy_store")
